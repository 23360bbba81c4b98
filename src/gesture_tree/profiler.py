"""Stage timing for the detection and animation loops.

Each stage keeps a rolling window of durations. Stages belong to one of the
two loops, so the profiler can also report how much of a loop's frame
budget the stages use together.

Usage:
    profiler = PipelineProfiler()

    with profiler.stage("advance"):
        field.advance()

    print(profiler.summary())
    print(profiler.loop_summary())
"""

from __future__ import annotations

import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

import numpy as np


# loop name → (stages in call order, frame budget in ms)
LOOPS: dict[str, tuple[list[str], float]] = {
    "detection": (["detection", "classification", "dispatch"], 1000.0 / 30),
    "animation": (["advance", "render"], 1000.0 / 60),
}


@dataclass
class StageStats:
    """Timing statistics for a single stage, in milliseconds."""
    name: str
    avg_ms: float
    min_ms: float
    max_ms: float
    p95_ms: float
    call_count: int

    def to_dict(self) -> dict:
        return {
            "avg_ms": round(self.avg_ms, 3),
            "min_ms": round(self.min_ms, 3),
            "max_ms": round(self.max_ms, 3),
            "p95_ms": round(self.p95_ms, 3),
            "calls": self.call_count,
        }


class _StageWindow:
    def __init__(self, size: int):
        self.samples: deque[float] = deque(maxlen=size)
        self.calls = 0

    def add(self, ms: float):
        self.samples.append(ms)
        self.calls += 1

    def stats(self, name: str) -> StageStats | None:
        if not self.samples:
            return None
        values = np.fromiter(self.samples, dtype=np.float64)
        return StageStats(
            name=name,
            avg_ms=float(values.mean()),
            min_ms=float(values.min()),
            max_ms=float(values.max()),
            p95_ms=float(np.percentile(values, 95)),
            call_count=self.calls,
        )


class PipelineProfiler:
    """Per-stage rolling timings. Unknown stage names are added on first use."""

    STAGES = [name for stages, _ in LOOPS.values() for name in stages]

    def __init__(self, window_size: int = 120):
        self.window_size = window_size
        self.enabled = True
        self._stages: dict[str, _StageWindow] = {
            name: _StageWindow(window_size) for name in self.STAGES
        }

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        """Time the enclosed block under `name`, even if it raises."""
        if not self.enabled:
            yield
            return

        start = time.perf_counter()
        try:
            yield
        finally:
            self.record(name, time.perf_counter() - start)

    def record(self, name: str, seconds: float):
        """Add an externally measured duration."""
        if not self.enabled:
            return
        window = self._stages.get(name)
        if window is None:
            window = self._stages[name] = _StageWindow(self.window_size)
        window.add(seconds * 1000.0)

    def get_stage_stats(self, name: str) -> StageStats | None:
        window = self._stages.get(name)
        return window.stats(name) if window else None

    def summary(self) -> dict[str, dict]:
        """Stats for every stage that has been timed at least once."""
        out = {}
        for name, window in self._stages.items():
            stats = window.stats(name)
            if stats is not None:
                out[name] = stats.to_dict()
        return out

    def loop_summary(self) -> dict[str, dict]:
        """Average time per loop iteration and its share of the frame budget."""
        out = {}
        for loop, (stages, budget_ms) in LOOPS.items():
            timed = [s for s in (self.get_stage_stats(n) for n in stages) if s is not None]
            if not timed:
                continue
            total = sum(s.avg_ms for s in timed)
            out[loop] = {
                "avg_ms": round(total, 3),
                "budget_ms": round(budget_ms, 3),
                "budget_used": round(total / budget_ms, 4),
            }
        return out

    def reset(self):
        for window in self._stages.values():
            window.samples.clear()
            window.calls = 0
