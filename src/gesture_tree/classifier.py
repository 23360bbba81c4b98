"""Open/closed hand classification with edge-triggered output."""

from __future__ import annotations

import logging
from typing import Any, Optional

from gesture_tree.gestures import (
    ExtensionRules,
    FingerState,
    GestureLabel,
    as_points,
    finger_states,
)

logger = logging.getLogger("gesture_tree.classifier")


def hand_missing(landmarks: Any) -> bool:
    if landmarks is None:
        return True
    try:
        return len(landmarks) == 0
    except TypeError:
        return False


class GestureClassifier:
    """Classifies a single hand as open, closed or unknown.

    `classify()` is a pure function of one frame. `on_frame()` wraps it with
    edge triggering: it returns a label only when the hand changes into a
    new open/closed state, and forgets the last label whenever the hand
    leaves the frame so the next appearance can trigger again.
    """

    def __init__(
        self,
        rules: Optional[ExtensionRules] = None,
        unknown_resets_edge: bool = True,
    ):
        self.rules = rules or ExtensionRules()
        self.rules.validate()
        self.unknown_resets_edge = unknown_resets_edge
        self._last_label: Optional[GestureLabel] = None

    def finger_states(self, landmarks: Any) -> Optional[list[FingerState]]:
        """Per-finger extension (thumb first), or None for malformed input."""
        points = as_points(landmarks)
        if points is None:
            return None
        return finger_states(points, self.rules.extension_ratio)

    def extended_count(self, landmarks: Any) -> Optional[int]:
        states = self.finger_states(landmarks)
        if states is None:
            return None
        return sum(1 for s in states if s == FingerState.EXTENDED)

    def classify(self, landmarks: Any) -> GestureLabel:
        """Classify one frame's landmarks. Malformed input yields UNKNOWN."""
        count = self.extended_count(landmarks)
        if count is None:
            logger.debug("Malformed landmark set, treating as unknown")
            return GestureLabel.UNKNOWN
        return self.rules.label_for(count)

    def on_frame(self, landmarks: Any) -> Optional[GestureLabel]:
        """Feed one frame; return a label only on an open/closed transition.

        Pass None (or an empty sequence) when no hand was detected.
        """
        if hand_missing(landmarks):
            self.reset()
            return None

        label = self.classify(landmarks)
        if label == GestureLabel.UNKNOWN:
            if self.unknown_resets_edge:
                self._last_label = None
            return None

        if label == self._last_label:
            return None

        self._last_label = label
        return label

    def reset(self):
        """Forget the last emitted label."""
        self._last_label = None

    @property
    def last_label(self) -> Optional[GestureLabel]:
        return self._last_label
