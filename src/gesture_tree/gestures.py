"""Hand geometry: landmark indices, finger extension rules, gesture labels."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Optional

import numpy as np


NUM_LANDMARKS = 21

# MediaPipe hand landmark indices
WRIST = 0
THUMB_CMC, THUMB_MCP, THUMB_IP, THUMB_TIP = 1, 2, 3, 4
INDEX_MCP, INDEX_PIP, INDEX_DIP, INDEX_TIP = 5, 6, 7, 8
MIDDLE_MCP, MIDDLE_PIP, MIDDLE_DIP, MIDDLE_TIP = 9, 10, 11, 12
RING_MCP, RING_PIP, RING_DIP, RING_TIP = 13, 14, 15, 16
PINKY_MCP, PINKY_PIP, PINKY_DIP, PINKY_TIP = 17, 18, 19, 20

FINGER_NAMES = ["thumb", "index", "middle", "ring", "pinky"]

# (tip, pip) pairs for the four bending fingers; the MCP sits two below the PIP
_FINGER_JOINTS = [
    (INDEX_TIP, INDEX_PIP),
    (MIDDLE_TIP, MIDDLE_PIP),
    (RING_TIP, RING_PIP),
    (PINKY_TIP, PINKY_PIP),
]


class GestureLabel(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    UNKNOWN = "unknown"


class FingerState(Enum):
    """Binary finger state based on landmark positions."""
    EXTENDED = "extended"
    CURLED = "curled"


@dataclass
class ExtensionRules:
    """Tuned thresholds for the open/closed heuristic.

    `extension_ratio` compares the tip→PIP segment against the PIP→MCP
    segment. `open_min_extended` and `closed_max_extended` bound the number
    of extended fingers for each label; anything in between is unknown.
    """

    extension_ratio: float = 0.8
    open_min_extended: int = 4
    closed_max_extended: int = 1

    def validate(self):
        if self.extension_ratio <= 0:
            raise ValueError(f"extension_ratio must be positive, got {self.extension_ratio}")
        if not 0 <= self.closed_max_extended < self.open_min_extended <= 5:
            raise ValueError(
                "expected 0 <= closed_max_extended < open_min_extended <= 5, got "
                f"{self.closed_max_extended} / {self.open_min_extended}"
            )

    def label_for(self, extended: int) -> GestureLabel:
        if extended >= self.open_min_extended:
            return GestureLabel.OPEN
        if extended <= self.closed_max_extended:
            return GestureLabel.CLOSED
        return GestureLabel.UNKNOWN

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> ExtensionRules:
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


def _point_xy(point: Any) -> tuple[float, float]:
    if hasattr(point, "x") and hasattr(point, "y"):
        return float(point.x), float(point.y)
    if isinstance(point, Mapping):
        return float(point["x"]), float(point["y"])
    return float(point[0]), float(point[1])


def as_points(landmarks: Any) -> Optional[np.ndarray]:
    """Coerce a landmark set into a (21, 2) float array.

    Accepts numpy arrays, sequences of (x, y[, z]) tuples, MediaPipe
    landmark objects (anything with `.x`/`.y`) and mappings with "x"/"y".
    Returns None when the input cannot describe a full, finite hand.
    """
    if landmarks is None:
        return None

    # MediaPipe NormalizedLandmarkList wraps its points in `.landmark`
    if hasattr(landmarks, "landmark"):
        landmarks = landmarks.landmark

    if isinstance(landmarks, np.ndarray):
        if landmarks.ndim != 2 or landmarks.shape[1] < 2:
            return None
        points = landmarks[:, :2].astype(np.float64)
    else:
        try:
            points = np.array([_point_xy(p) for p in landmarks], dtype=np.float64)
        except (TypeError, ValueError, KeyError, IndexError):
            return None
        if points.ndim != 2:
            return None

    if points.shape[0] < NUM_LANDMARKS:
        return None
    points = points[:NUM_LANDMARKS]
    if not np.all(np.isfinite(points)):
        return None
    return points


def distance(a, b) -> float:
    """Euclidean distance between two landmarks in normalized image space."""
    return math.hypot(a[0] - b[0], a[1] - b[1])


def is_finger_extended(points: np.ndarray, tip: int, pip: int, ratio: float = 0.8) -> bool:
    """A finger is extended when its distal segment is long relative to its proximal one."""
    mcp = pip - 2
    return distance(points[tip], points[pip]) > ratio * distance(points[pip], points[mcp])


def is_thumb_extended(points: np.ndarray) -> bool:
    """Thumb extension judged along x, flipped by which way the palm faces.

    The sign of index_mcp.x - pinky_mcp.x tells which side of the hand the
    thumb sits on, so the test holds for either hand and mirrored cameras.
    """
    direction = points[INDEX_MCP][0] - points[PINKY_MCP][0]
    if direction > 0:
        return points[THUMB_TIP][0] > points[THUMB_IP][0]
    return points[THUMB_TIP][0] < points[THUMB_IP][0]


def finger_states(points: np.ndarray, ratio: float = 0.8) -> list[FingerState]:
    """Extension state of thumb, index, middle, ring and pinky, in that order."""
    extended = [is_thumb_extended(points)]
    extended.extend(is_finger_extended(points, tip, pip, ratio) for tip, pip in _FINGER_JOINTS)
    return [FingerState.EXTENDED if e else FingerState.CURLED for e in extended]
