"""Single-hand landmark extraction using MediaPipe Hands."""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

try:
    import mediapipe as mp
except ImportError:
    mp = None

from gesture_tree.gestures import NUM_LANDMARKS

logger = logging.getLogger("gesture_tree.detector")


def landmarks_to_array(hand_landmarks) -> np.ndarray:
    """Convert one MediaPipe NormalizedLandmarkList into a (21, 3) float32 array."""
    return np.array(
        [[lm.x, lm.y, lm.z] for lm in hand_landmarks.landmark],
        dtype=np.float32,
    )


class HandDetector:
    """Returns the 21 normalized landmarks of at most one hand per frame.

    Each landmark is (x, y, z) with x and y normalized to [0, 1] relative to
    the image dimensions.
    """

    def __init__(
        self,
        model_complexity: int = 1,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        static_image_mode: bool = False,
    ):
        if mp is None:
            raise ImportError(
                "mediapipe is required. Install with: pip install mediapipe"
            )

        self._hands = mp.solutions.hands.Hands(
            static_image_mode=static_image_mode,
            max_num_hands=1,
            model_complexity=model_complexity,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )

    def detect(self, frame_rgb: np.ndarray) -> Optional[np.ndarray]:
        """Detect a hand in an RGB frame.

        Returns:
            Landmark array of shape (21, 3), or None when no hand is visible.
        """
        results = self._hands.process(frame_rgb)
        if not results.multi_hand_landmarks:
            return None

        landmarks = landmarks_to_array(results.multi_hand_landmarks[0])
        if landmarks.shape[0] != NUM_LANDMARKS:
            logger.debug("Detector returned %d landmarks, skipping", landmarks.shape[0])
            return None
        return landmarks

    def close(self):
        """Release MediaPipe resources."""
        self._hands.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
