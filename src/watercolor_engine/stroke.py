"""
Stroke values handed to the engine, and the drag bookkeeping that produces them.

Neither is stored by the engine: a ``BrushStroke`` is consumed by
``WatercolorEngine.apply_stroke`` and a ``StrokeSession`` lives with the caller
for the length of one pointer drag.
"""
import math
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import NamedTuple, Optional, Tuple

from .sim.constants import (
    MIN_RADIUS_SCALE,
    MIN_SAMPLE_INTERVAL,
    RADIUS_SPEED_FALLOFF,
    SESSION_FRAME_RATE,
    VELOCITY_SMOOTHING,
)


class BrushMode(str, Enum):
    PAINT = "paint"
    FADE = "fade"
    BLEND = "blend"
    WATER = "water"


@dataclass(frozen=True)
class BrushStroke:
    """One segment of brush input.

    ``strength`` drives the fade and blend modes, ``flow`` the water mode;
    ``water``/``pigment``/``color`` are read by paint (and ``water`` by the
    water mode). A segment whose ends coincide stamps once.
    """

    x0: float
    y0: float
    x1: float
    y1: float
    size: float
    mode: BrushMode = BrushMode.PAINT
    water: float = 0.0
    pigment: float = 0.0
    color: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    strength: float = 0.0
    flow: float = 1.0
    velocity: float = 0.0

    @classmethod
    def dab(cls, x: float, y: float, size: float, **kwargs) -> "BrushStroke":
        return cls(x, y, x, y, size, **kwargs)


class StrokeSegment(NamedTuple):
    x0: float
    y0: float
    x1: float
    y1: float
    size: float
    velocity: float

    def to_stroke(self, mode: BrushMode = BrushMode.PAINT, **kwargs) -> BrushStroke:
        return BrushStroke(self.x0, self.y0, self.x1, self.y1, self.size, mode=BrushMode(mode), velocity=self.velocity, **kwargs)


def _dynamic_radius(base_radius: float, velocity: float) -> float:
    """Fast drags thin the stroke down to ``MIN_RADIUS_SCALE`` of the base radius."""
    scale = 1.0 / (1.0 + velocity * RADIUS_SPEED_FALLOFF)
    return base_radius * min(1.0, max(MIN_RADIUS_SCALE, scale))


@dataclass(frozen=True)
class StrokeSession:
    """Last point, time and smoothed speed of a pointer drag.

    Usage::

        session = StrokeSession.begin(x, y, radius=8.0)
        session, segment = session.advance(x2, y2)
        engine.apply_stroke(segment.to_stroke(BrushMode.PAINT, water=2.0, pigment=0.5, color=(0.8, 0.1, 0.1)))

    ``velocity`` is in cells per frame at ``SESSION_FRAME_RATE``, the unit the
    stroke calls expect.
    """

    x: float
    y: float
    timestamp: float
    base_radius: float
    velocity: float = 0.0
    radius: float = 0.0

    @classmethod
    def begin(cls, x: float, y: float, radius: float, timestamp: Optional[float] = None) -> "StrokeSession":
        if timestamp is None:
            timestamp = time.monotonic()
        radius = max(0.0, float(radius))
        return cls(float(x), float(y), float(timestamp), radius, 0.0, radius)

    def advance(self, x: float, y: float, timestamp: Optional[float] = None) -> Tuple["StrokeSession", StrokeSegment]:
        """Moves the session to (x, y) and returns it with the segment just drawn."""
        if timestamp is None:
            timestamp = time.monotonic()
        x, y, timestamp = float(x), float(y), float(timestamp)

        elapsed = max(MIN_SAMPLE_INTERVAL, timestamp - self.timestamp)
        sample = math.hypot(x - self.x, y - self.y) / (elapsed * SESSION_FRAME_RATE)
        if not math.isfinite(sample):
            sample = self.velocity
        velocity = self.velocity + (sample - self.velocity) * VELOCITY_SMOOTHING
        radius = _dynamic_radius(self.base_radius, velocity)

        segment = StrokeSegment(self.x, self.y, x, y, radius, velocity)
        return replace(self, x=x, y=y, timestamp=timestamp, velocity=velocity, radius=radius), segment
