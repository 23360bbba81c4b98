"""Coordinator between the gesture classifier and the particle field.

Two loops meet here:

- the detection loop calls `on_landmarks()` once per camera frame;
- the animation loop calls `tick()` once per display refresh.

Detection never touches the particle field. An accepted transition only
appends a request to a queue, and `tick()` is the single place that
applies requests and mutates particles. A cooldown (a timestamp comparison,
not a timer) keeps a fresh tree from being re-spawned or cleared while it
is still animating. A label the cooldown blocked is re-issued once the
cooldown expires, as long as the hand still holds it.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Optional

from gesture_tree.canvas import Surface
from gesture_tree.classifier import GestureClassifier, hand_missing
from gesture_tree.config import AppConfig
from gesture_tree.gestures import GestureLabel
from gesture_tree.metrics import MetricsCollector
from gesture_tree.particles import ParticleField
from gesture_tree.profiler import PipelineProfiler

logger = logging.getLogger("gesture_tree.pipeline")


class TreeState(Enum):
    IDLE = "idle"
    GROWN = "grown"
    DISSIPATING = "dissipating"


class FieldRequest(Enum):
    SPAWN = "spawn"
    DISSIPATE = "dissipate"


class Decision(Enum):
    ACCEPTED = "accepted"
    COOLDOWN = "cooldown"    # too soon after the previous transition
    IGNORED = "ignored"      # nothing to do in the current state


@dataclass
class GestureEvent:
    """A classified transition and what the coordinator did with it."""
    label: GestureLabel
    decision: Decision
    request: Optional[FieldRequest]
    timestamp: float

    @property
    def accepted(self) -> bool:
        return self.decision == Decision.ACCEPTED

    def to_dict(self) -> dict:
        return {
            "type": "gesture",
            "gesture": self.label.value,
            "decision": self.decision.value,
            "action": self.request.value if self.request else None,
            "timestamp": self.timestamp,
        }


@dataclass
class PipelineStats:
    """Runtime statistics."""
    state: str
    particles: int
    total_frames: int
    total_transitions: int
    pending_requests: int
    profiler_summary: dict = field(default_factory=dict)


class TreeCoordinator:
    """Turns open/closed transitions into spawn/dissipate requests.

    Usage:
        coordinator = TreeCoordinator(ParticleField(1280, 720))
        # detection loop
        coordinator.on_landmarks(landmarks)
        # animation loop
        coordinator.tick(surface)
    """

    def __init__(
        self,
        particle_field: ParticleField,
        classifier: Optional[GestureClassifier] = None,
        cooldown_seconds: float = 1.0,
        metrics: Optional[MetricsCollector] = None,
        profiler: Optional[PipelineProfiler] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.field = particle_field
        self.classifier = classifier or GestureClassifier()
        self.cooldown_seconds = cooldown_seconds
        self.metrics = metrics or MetricsCollector()
        self.profiler = profiler or PipelineProfiler()
        self._clock = clock

        self._state = TreeState.IDLE
        self._last_transition_at: Optional[float] = None
        self._requests: deque[FieldRequest] = deque()
        self._dissipating = False
        self._deferred: Optional[GestureLabel] = None
        self._callbacks: list[Callable[[GestureEvent], None]] = []
        self._total_frames = 0
        self._total_transitions = 0

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        metrics: Optional[MetricsCollector] = None,
        seed: Optional[int] = None,
    ) -> TreeCoordinator:
        """Build the field, classifier and coordinator described by `config`."""
        particle_field = ParticleField(
            width=config.display.width,
            height=config.display.height,
            shape=config.tree,
            physics=config.physics,
            seed=seed,
        )
        classifier = GestureClassifier(
            rules=config.classifier.rules(),
            unknown_resets_edge=config.classifier.unknown_resets_edge,
        )
        return cls(
            particle_field,
            classifier=classifier,
            cooldown_seconds=config.coordinator.cooldown_seconds,
            metrics=metrics,
        )

    def on_gesture(self, callback: Callable[[GestureEvent], None]):
        """Register a callback for every classified transition."""
        self._callbacks.append(callback)

    # --- detection side ---

    def on_landmarks(self, landmarks: Any, now: Optional[float] = None) -> Optional[GestureEvent]:
        """Feed one detector frame (None when no hand was found)."""
        now = self._clock() if now is None else now
        self._total_frames += 1
        self.metrics.record_frame(not hand_missing(landmarks))

        with self.profiler.stage("classification"):
            label = self.classifier.on_frame(landmarks)

        if label is None:
            label = self._retry_deferred(now)
        if label is None:
            return None

        with self.profiler.stage("dispatch"):
            event = self.handle_label(label, now)
        self._deferred = label if event.decision == Decision.COOLDOWN else None
        return event

    def _retry_deferred(self, now: float) -> Optional[GestureLabel]:
        """Re-issue a label blocked by the cooldown while the hand still holds it."""
        if self._deferred is None:
            return None
        if self.classifier.last_label != self._deferred:
            self._deferred = None
            return None
        if self.cooling_down(now):
            return None
        return self._deferred

    def cooling_down(self, now: float) -> bool:
        if self._last_transition_at is None:
            return False
        return now - self._last_transition_at < self.cooldown_seconds

    def handle_label(self, label: GestureLabel, now: Optional[float] = None) -> GestureEvent:
        """Apply the state machine to one emitted label."""
        now = self._clock() if now is None else now
        request: Optional[FieldRequest] = None

        if label == GestureLabel.OPEN:
            decision = Decision.COOLDOWN if self.cooling_down(now) else Decision.ACCEPTED
            if decision == Decision.ACCEPTED:
                request = FieldRequest.SPAWN
                self._state = TreeState.GROWN
        elif label == GestureLabel.CLOSED:
            if self._state != TreeState.GROWN:
                decision = Decision.IGNORED
            elif self.cooling_down(now):
                decision = Decision.COOLDOWN
            else:
                decision = Decision.ACCEPTED
                request = FieldRequest.DISSIPATE
                self._state = TreeState.DISSIPATING
        else:
            decision = Decision.IGNORED

        if request is not None:
            self._requests.append(request)
            self._last_transition_at = now
            self._total_transitions += 1
            self.metrics.record_transition(label.value)
            logger.info("Gesture %s → %s", label.value, request.value)
        else:
            self.metrics.record_blocked(label.value)
            logger.debug("Gesture %s not applied (%s, state=%s)", label.value, decision.value, self._state.value)

        event = GestureEvent(label=label, decision=decision, request=request, timestamp=now)
        for cb in self._callbacks:
            cb(event)
        return event

    # --- animation side ---

    def tick(self, surface: Optional[Surface] = None) -> int:
        """Run one animation frame. Returns the live particle count."""
        t0 = time.perf_counter()

        while self._requests:
            request = self._requests.popleft()
            if request == FieldRequest.SPAWN:
                self.field.spawn()
                self._dissipating = False
            else:
                self._dissipating = True

        if self._dissipating:
            remaining = self.field.dissipate()
            if remaining == 0:
                self._dissipating = False
                if self._state == TreeState.DISSIPATING:
                    self._state = TreeState.IDLE
                logger.debug("Tree fully dissipated")

        with self.profiler.stage("advance"):
            self.field.advance()

        if surface is not None:
            with self.profiler.stage("render"):
                self.field.render(surface)

        count = self.field.count
        self.metrics.record_tick(time.perf_counter() - t0, count)
        return count

    def replay(
        self,
        frames: Iterable[Any],
        tick_rate: float = 60.0,
        surface: Optional[Surface] = None,
        on_tick: Optional[Callable[[int], None]] = None,
    ) -> int:
        """Drive both loops from recorded frames on a simulated clock.

        Each frame needs `timestamp` and `landmarks`. Ticks run at `tick_rate`
        per recorded second up to each frame's timestamp, so the result does
        not depend on wall-clock speed. Returns the number of ticks run.
        """
        interval = 1.0 / tick_rate
        clock = 0.0
        ticks = 0
        for frame in frames:
            self.on_landmarks(frame.landmarks, now=frame.timestamp)
            while clock <= frame.timestamp:
                count = self.tick(surface)
                ticks += 1
                if on_tick is not None:
                    on_tick(count)
                clock += interval
        return ticks

    def resize(self, width: int, height: int):
        self.field.resize(width, height)

    def reset(self):
        """Drop all particles, pending requests and edge memory."""
        self._requests.clear()
        self._dissipating = False
        self._deferred = None
        self._state = TreeState.IDLE
        self._last_transition_at = None
        self.classifier.reset()
        self.field.clear()

    @property
    def state(self) -> TreeState:
        return self._state

    @property
    def pending(self) -> int:
        return len(self._requests)

    @property
    def stats(self) -> PipelineStats:
        return PipelineStats(
            state=self._state.value,
            particles=self.field.count,
            total_frames=self._total_frames,
            total_transitions=self._total_transitions,
            pending_requests=len(self._requests),
            profiler_summary=self.profiler.summary(),
        )
