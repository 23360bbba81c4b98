"""Particle tree: procedural generation, per-tick physics, fade-out.

A `ParticleField` owns one generation of particles at a time. `spawn()`
builds a layered conical tree around the viewport center, `dissipate()`
fades and shrinks it one step, and `advance()` + `render()` run every
animation tick whether or not a gesture is active.

Usage:
    field = ParticleField(width=1280, height=720)
    field.spawn()
    # In the animation loop:
    field.advance()
    field.render(surface)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, asdict
from typing import Optional

import numpy as np

from gesture_tree.canvas import Surface

logger = logging.getLogger("gesture_tree.particles")


# Greens dominate; the rest are ornament accents
PALETTE = [
    "#00ff00", "#00cc00", "#66ff66",
    "#ff0000", "#ff6600", "#ffff00",
    "#ff00ff", "#00ffff", "#ffffff",
]
STAR_COLOR = "#ffff00"


@dataclass
class Particle:
    x: float
    y: float
    base_x: float
    base_y: float
    vx: float
    vy: float
    size: float
    color: str
    opacity: float
    twinkle: float
    twinkle_speed: float


@dataclass
class TreeShape:
    """Silhouette parameters for `ParticleField.spawn()`.

    Layer 0 is the top band and the widest; each lower band loses `taper`
    of the width and gains `count_step` particles, so the star cluster sits
    just above the widest band. With the defaults the last band's factor
    dips just below zero and its ring is drawn mirrored through the centre.
    """
    layers: int = 8
    height_ratio: float = 0.6     # of viewport height
    max_height: float = 400.0     # px
    width_ratio: float = 0.6      # of tree height
    taper: float = 0.15           # width fraction lost per layer below the top
    base_count: int = 15          # particles in the top (widest) layer
    count_step: int = 3           # extra particles per layer
    jitter: float = 30.0          # px, full vertical spread
    star_count: int = 5
    star_offset: float = 20.0     # px above the top layer
    palette: list[str] = field(default_factory=lambda: list(PALETTE))

    def layer_count(self, layer: int) -> int:
        return self.base_count + layer * self.count_step

    def expected_count(self) -> int:
        """Total particles one spawn produces."""
        return sum(self.layer_count(k) for k in range(self.layers)) + self.star_count

    def validate(self):
        if self.layers < 1:
            raise ValueError("layers must be at least 1")
        if self.base_count < 0 or self.count_step < 0 or self.star_count < 0:
            raise ValueError("particle counts must be non-negative")
        if not self.palette:
            raise ValueError("palette must not be empty")
        if not 0 <= self.taper <= 1:
            raise ValueError(f"taper must be in [0, 1], got {self.taper}")

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class FieldPhysics:
    """Motion and decay constants."""
    wobble: float = 5.0            # px, twinkle orbit radius
    follow: float = 0.1            # anchor interpolation per tick
    bounce_damping: float = 0.8    # velocity kept after hitting an edge
    fade_step: float = 0.02        # opacity lost per dissipate()
    shrink_factor: float = 0.95    # size multiplier per dissipate()
    min_size: float = 0.5          # px, smaller particles are dropped
    glow: float = 10.0             # blur radius passed to the surface

    def to_dict(self) -> dict:
        return asdict(self)


class ParticleField:
    """Owns and simulates the particle set."""

    def __init__(
        self,
        width: int = 1280,
        height: int = 720,
        shape: Optional[TreeShape] = None,
        physics: Optional[FieldPhysics] = None,
        seed: Optional[int] = None,
    ):
        self.shape = shape or TreeShape()
        self.shape.validate()
        self.physics = physics or FieldPhysics()
        self._rng = np.random.default_rng(seed)
        self._particles: list[Particle] = []
        self._active = False
        self.resize(width, height)

    def resize(self, width: int, height: int):
        """Track new viewport dimensions. Existing particles are not moved."""
        self.width = int(width)
        self.height = int(height)
        self.center_x = self.width / 2
        self.center_y = self.height / 2

    def _uniform(self, low: float, high: float) -> float:
        return float(self._rng.uniform(low, high))

    def spawn(self) -> int:
        """Replace the particle set with a freshly generated tree.

        Returns the number of particles created.
        """
        shape = self.shape
        tree_height = min(self.height * shape.height_ratio, shape.max_height)
        tree_width = tree_height * shape.width_ratio
        top = self.center_y - tree_height / 2

        particles: list[Particle] = []
        for layer in range(shape.layers):
            layer_y = top + layer * tree_height / shape.layers
            layer_width = tree_width * (1 - layer * shape.taper)
            count = shape.layer_count(layer)

            for i in range(count):
                angle = 2 * math.pi * i / count
                radius = (layer_width / 2) * self._uniform(0.5, 1.0)
                x = self.center_x + math.cos(angle) * radius
                y = layer_y + self._uniform(-0.5, 0.5) * shape.jitter
                particles.append(Particle(
                    x=x, y=y, base_x=x, base_y=y,
                    vx=self._uniform(-0.25, 0.25),
                    vy=self._uniform(-0.25, 0.25),
                    size=self._uniform(2.0, 5.0),
                    color=shape.palette[int(self._rng.integers(len(shape.palette)))],
                    opacity=self._uniform(0.7, 1.0),
                    twinkle=self._uniform(0.0, 2 * math.pi),
                    twinkle_speed=self._uniform(0.02, 0.05),
                ))

        star_y = top - shape.star_offset
        for _ in range(shape.star_count):
            particles.append(Particle(
                x=self.center_x, y=star_y,
                base_x=self.center_x, base_y=star_y,
                vx=self._uniform(-0.15, 0.15),
                vy=self._uniform(-0.15, 0.15),
                size=self._uniform(4.0, 8.0),
                color=STAR_COLOR,
                opacity=self._uniform(0.8, 1.0),
                twinkle=self._uniform(0.0, 2 * math.pi),
                twinkle_speed=self._uniform(0.05, 0.10),
            ))

        dropped = len(self._particles)
        self._particles = particles
        self._active = True
        logger.debug("Spawned %d particles (discarded %d)", len(particles), dropped)
        return len(particles)

    def dissipate(self) -> int:
        """Fade and shrink every particle one step; drop the spent ones.

        Returns the number of particles left. Safe on an empty field.
        """
        self._active = False
        phys = self.physics
        retained: list[Particle] = []
        for p in self._particles:
            p.opacity -= phys.fade_step
            p.size *= phys.shrink_factor
            if p.opacity > 0 and p.size >= phys.min_size:
                retained.append(p)
        self._particles = retained
        return len(retained)

    def advance(self):
        """Run one physics tick."""
        if not self._particles:
            return

        phys = self.physics
        w, h = self.width, self.height
        for p in self._particles:
            p.x = p.base_x + math.sin(p.twinkle) * phys.wobble
            p.y = p.base_y + math.cos(p.twinkle) * phys.wobble

            p.x += p.vx
            p.y += p.vy

            if p.x < 0 or p.x > w:
                p.vx = -p.vx * phys.bounce_damping
                p.x = min(max(p.x, 0.0), float(w))
            if p.y < 0 or p.y > h:
                p.vy = -p.vy * phys.bounce_damping
                p.y = min(max(p.y, 0.0), float(h))

            p.twinkle += p.twinkle_speed

            p.base_x += (p.x - p.base_x) * phys.follow
            p.base_y += (p.y - p.base_y) * phys.follow

        self._particles = [p for p in self._particles if p.opacity > 0]

    def render(self, surface: Surface):
        """Draw the current state. Does not touch particle data."""
        surface.clear()
        glow = self.physics.glow
        for p in self._particles:
            surface.fill_circle(p.x, p.y, p.size, p.color, p.opacity, glow)

    def clear(self):
        """Drop every particle at once."""
        self._particles = []
        self._active = False

    @property
    def particles(self) -> list[Particle]:
        return list(self._particles)

    @property
    def count(self) -> int:
        return len(self._particles)

    @property
    def active(self) -> bool:
        """True between a spawn and the next dissipate/clear."""
        return self._active

    def __len__(self) -> int:
        return len(self._particles)
