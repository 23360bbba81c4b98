"""Render surfaces for the particle field.

Two interchangeable surfaces implement the same small drawing protocol
(`width`, `height`, `clear()`, `fill_circle()`):

- `ImageSurface` rasterizes into a BGR numpy image with OpenCV, doing its
  own alpha compositing and Gaussian glow. Used by the desktop window and
  for offline video output.
- `CommandSurface` records one `DiscCommand` per circle so a browser client
  can draw the frame on an HTML canvas. Coordinates are normalized to
  [0, 1] so clients can scale to any resolution.

Usage:
    surface = ImageSurface(1280, 720)
    field.render(surface)
    cv2.imshow("tree", surface.image)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import cv2
import numpy as np


class Surface(Protocol):
    width: int
    height: int

    def clear(self) -> None: ...

    def fill_circle(
        self, x: float, y: float, radius: float, color: str, opacity: float, glow: float = 0.0
    ) -> None: ...


def hex_to_bgr(color: str) -> tuple[int, int, int]:
    """Convert '#rrggbb' (or '#rgb') to an OpenCV BGR tuple."""
    value = color.lstrip("#")
    if len(value) == 3:
        value = "".join(c * 2 for c in value)
    if len(value) != 6:
        raise ValueError(f"Invalid color: {color!r}")
    r, g, b = int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)
    return b, g, r


class ImageSurface:
    """OpenCV-backed surface drawing glowing, translucent discs."""

    def __init__(self, width: int, height: int, background: str = "#000000"):
        self.width = int(width)
        self.height = int(height)
        self.background = hex_to_bgr(background)
        self.image = np.zeros((self.height, self.width, 3), dtype=np.uint8)
        self.clear()

    def resize(self, width: int, height: int):
        self.width = int(width)
        self.height = int(height)
        self.image = np.zeros((self.height, self.width, 3), dtype=np.uint8)
        self.clear()

    def clear(self):
        self.image[:] = self.background

    def fill_circle(
        self, x: float, y: float, radius: float, color: str, opacity: float, glow: float = 0.0
    ):
        opacity = float(np.clip(opacity, 0.0, 1.0))
        if opacity <= 0.0 or radius <= 0:
            return

        r = max(1, int(round(radius)))
        pad = r + int(np.ceil(glow * 1.5))
        cx, cy = int(round(x)), int(round(y))

        x1, y1 = max(0, cx - pad), max(0, cy - pad)
        x2, y2 = min(self.width, cx + pad + 1), min(self.height, cy + pad + 1)
        if x1 >= x2 or y1 >= y2:
            return

        roi = self.image[y1:y2, x1:x2]
        alpha = np.zeros(roi.shape[:2], dtype=np.float32)
        cv2.circle(alpha, (cx - x1, cy - y1), r, 1.0, -1, cv2.LINE_AA)

        if glow > 0:
            halo = cv2.GaussianBlur(alpha, (0, 0), glow / 2.0)
            alpha = np.maximum(alpha, halo)

        alpha *= opacity
        color_bgr = np.array(hex_to_bgr(color), dtype=np.float32)
        blended = color_bgr * alpha[..., None] + roi.astype(np.float32) * (1.0 - alpha[..., None])
        roi[:] = np.clip(blended, 0, 255).astype(np.uint8)

    def composite_over(self, frame: np.ndarray, weight: float = 1.0) -> np.ndarray:
        """Additively blend the rendered particles over a camera frame of the same size."""
        if frame.shape[:2] != self.image.shape[:2]:
            frame = cv2.resize(frame, (self.width, self.height))
        return cv2.addWeighted(frame, 1.0, self.image, weight, 0)


@dataclass
class DiscCommand:
    """A single disc to draw on a client canvas."""
    x: float
    y: float
    radius: float
    color: str
    opacity: float
    glow: float = 0.0

    def to_dict(self) -> dict:
        return {
            "x": round(self.x, 4),
            "y": round(self.y, 4),
            "r": round(self.radius, 2),
            "color": self.color,
            "a": round(self.opacity, 3),
            "glow": self.glow,
        }


class CommandSurface:
    """Records draw calls as JSON-ready commands instead of pixels."""

    def __init__(self, width: int, height: int):
        self.width = int(width)
        self.height = int(height)
        self._commands: list[DiscCommand] = []

    def clear(self):
        self._commands = []

    def fill_circle(
        self, x: float, y: float, radius: float, color: str, opacity: float, glow: float = 0.0
    ):
        if opacity <= 0 or radius <= 0:
            return
        self._commands.append(DiscCommand(
            x=x / self.width if self.width else 0.0,
            y=y / self.height if self.height else 0.0,
            radius=radius,
            color=color,
            opacity=min(1.0, opacity),
            glow=glow,
        ))

    @property
    def commands(self) -> list[DiscCommand]:
        return list(self._commands)

    @property
    def command_count(self) -> int:
        return len(self._commands)

    def to_message(self) -> dict:
        """WebSocket payload for the current frame."""
        return {
            "type": "frame",
            "width": self.width,
            "height": self.height,
            "discs": [cmd.to_dict() for cmd in self._commands],
        }
