"""Prometheus text-format metrics for GestureTree.

Generates the exposition format directly, without a client library.

Tracked metrics:
- gesture_tree_transitions_total (counter, by label)
- gesture_tree_blocked_transitions_total (counter, by label)
- gesture_tree_frames_total (counter)
- gesture_tree_hands_detected_total (counter)
- gesture_tree_hand_detection_rate (gauge)
- gesture_tree_particles (gauge)
- gesture_tree_tick_latency_seconds (histogram)
- gesture_tree_active_connections (gauge)
"""

from __future__ import annotations

import threading
import time
from collections import Counter


class _Histogram:
    def __init__(self, buckets: list[float]):
        self.buckets = sorted(buckets)
        self.bucket_counts = [0] * len(self.buckets)
        self.count = 0
        self.sum = 0.0
        self._lock = threading.Lock()

    def observe(self, value: float):
        with self._lock:
            self.count += 1
            self.sum += value
            for i, b in enumerate(self.buckets):
                if value <= b:
                    self.bucket_counts[i] += 1
                    break

    def render(self, name: str, help_text: str) -> list[str]:
        lines = [f"# HELP {name} {help_text}", f"# TYPE {name} histogram"]
        with self._lock:
            cumulative = 0
            for b, n in zip(self.buckets, self.bucket_counts):
                cumulative += n
                lines.append(f'{name}_bucket{{le="{b}"}} {cumulative}')
            lines.append(f'{name}_bucket{{le="+Inf"}} {self.count}')
            lines.append(f"{name}_sum {self.sum:.6f}")
            lines.append(f"{name}_count {self.count}")
        return lines


def _metric(lines: list[str], name: str, kind: str, help_text: str):
    lines.append(f"# HELP {name} {help_text}")
    lines.append(f"# TYPE {name} {kind}")


class MetricsCollector:
    """Counters and gauges fed by the detection and animation loops."""

    def __init__(self):
        self._transitions: Counter = Counter()
        self._blocked: Counter = Counter()
        self._frames_total = 0
        self._hands_total = 0
        self._hand_detection_rate = 0.0
        self._particles = 0
        self._active_connections = 0
        self._lock = threading.Lock()
        # 1ms to 50ms; a 60Hz tick has a 16.7ms budget
        self._tick_latency = _Histogram([0.001, 0.002, 0.005, 0.010, 0.0167, 0.033, 0.050])
        self._start_time = time.time()

    def record_transition(self, label: str):
        with self._lock:
            self._transitions[label] += 1

    def record_blocked(self, label: str):
        with self._lock:
            self._blocked[label] += 1

    def record_frame(self, hand_detected: bool):
        with self._lock:
            self._frames_total += 1
            if hand_detected:
                self._hands_total += 1
            rate = 1.0 if hand_detected else 0.0
            self._hand_detection_rate = 0.95 * self._hand_detection_rate + 0.05 * rate

    def record_tick(self, latency_seconds: float, particles: int):
        self._tick_latency.observe(latency_seconds)
        self._particles = particles

    def set_connections(self, count: int):
        self._active_connections = count

    def render(self) -> str:
        lines: list[str] = []

        _metric(lines, "gesture_tree_uptime_seconds", "gauge", "Time since start")
        lines.append(f"gesture_tree_uptime_seconds {time.time() - self._start_time:.1f}")
        lines.append("")

        with self._lock:
            _metric(lines, "gesture_tree_transitions_total", "counter",
                    "Accepted gesture transitions by label")
            for label, count in sorted(self._transitions.items()):
                lines.append(f'gesture_tree_transitions_total{{label="{label}"}} {count}')
            lines.append("")

            _metric(lines, "gesture_tree_blocked_transitions_total", "counter",
                    "Transitions rejected by the cooldown or current state")
            for label, count in sorted(self._blocked.items()):
                lines.append(f'gesture_tree_blocked_transitions_total{{label="{label}"}} {count}')
            lines.append("")

            _metric(lines, "gesture_tree_frames_total", "counter", "Detector frames processed")
            lines.append(f"gesture_tree_frames_total {self._frames_total}")
            lines.append("")

            _metric(lines, "gesture_tree_hands_detected_total", "counter",
                    "Frames in which a hand was found")
            lines.append(f"gesture_tree_hands_detected_total {self._hands_total}")
            lines.append("")

            _metric(lines, "gesture_tree_hand_detection_rate", "gauge",
                    "Exponential moving average of hand presence")
            lines.append(f"gesture_tree_hand_detection_rate {self._hand_detection_rate:.4f}")
            lines.append("")

        _metric(lines, "gesture_tree_particles", "gauge", "Live particles after the last tick")
        lines.append(f"gesture_tree_particles {self._particles}")
        lines.append("")

        lines.extend(self._tick_latency.render(
            "gesture_tree_tick_latency_seconds", "Animation tick latency in seconds"
        ))
        lines.append("")

        _metric(lines, "gesture_tree_active_connections", "gauge", "Current WebSocket connections")
        lines.append(f"gesture_tree_active_connections {self._active_connections}")
        lines.append("")

        return "\n".join(lines) + "\n"

    @property
    def transition_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._transitions)

    @property
    def frames_total(self) -> int:
        return self._frames_total

    @property
    def hands_total(self) -> int:
        return self._hands_total
