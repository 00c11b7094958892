"""
Parameter sets with UI metadata.

``PhysicsParams`` and ``PigmentProps`` are engine state, replaced through
``WatercolorEngine.set_physics`` and ``set_pigment_props``. ``BrushRanges`` is
never read by the engine: it only carries defaults and slider bounds for a
painting UI, which passes the chosen values to the brush calls itself.
"""
import math
from dataclasses import dataclass, field, fields, replace


def _clamp_to_limits(params):
    """Returns a copy of a params dataclass with every field inside its physical limits.

    Non-finite values fall back to the field default. The UI ``min``/``max`` hints
    are not enforced here, only the wider ``limits`` the solver can tolerate.
    """
    updates = {}
    for f in fields(params):
        lo, hi = f.metadata.get("limits", (None, None))
        val = getattr(params, f.name)
        if isinstance(f.default, bool):
            updates[f.name] = bool(val)
            continue
        try:
            val = float(val)
        except (TypeError, ValueError):
            val = float(f.default)
        if not math.isfinite(val):
            val = float(f.default)
        if lo is not None:
            val = max(lo, val)
        if hi is not None:
            val = min(hi, val)
        if isinstance(f.default, int):
            val = int(round(val))
        updates[f.name] = val
    return replace(params, **updates)


@dataclass
class PhysicsParams:
    """Fluid and drying parameters, replaced wholesale by ``set_physics``."""

    dt: float = field(default=0.15, metadata={"help": "Simulation time advanced by one step.", "category": "Physics", "min": 0.01, "max": 1.0, "limits": (0.0, 10.0)})
    evaporation_rate: float = field(default=0.002, metadata={"help": "Fraction of water evaporated per unit time.", "category": "Physics", "min": 0.0001, "max": 0.01, "limits": (0.0, 1000.0)})
    viscosity: float = field(default=0.05, metadata={"help": "Weight of neighbor averaging in the velocity field.", "category": "Physics", "min": 0.0, "max": 0.5, "limits": (0.0, 1.0)})
    pressure_coefficient: float = field(default=5.0, metadata={"help": "Scale of the water-depth pressure head.", "category": "Physics", "min": 0.5, "max": 15.0, "limits": (0.0, 100.0)})
    solver_iterations: int = field(default=10, metadata={"help": "Relaxation passes per step (quality/performance knob).", "category": "Physics", "min": 1, "max": 50, "limits": (1, 200)})

    def clamped(self) -> "PhysicsParams":
        return _clamp_to_limits(self)

    @property
    def evaporation_factor(self) -> float:
        """Per-step multiplier applied to water depth by the drying model."""
        return max(0.0, min(1.0, 1.0 - self.evaporation_rate * self.dt))


@dataclass
class PigmentProps:
    """Pigment behavior, replaced wholesale by ``set_pigment_props``."""

    adhesion: float = field(default=0.05, metadata={"help": "Suspended to deposited transfer rate per step.", "category": "Pigment", "min": 0.001, "max": 0.3, "limits": (0.0, 1.0)})
    granularity: float = field(default=0.8, metadata={"help": "How strongly paper height modulates deposition.", "category": "Pigment", "min": 0.0, "max": 2.0, "limits": (0.0, 10.0)})

    def clamped(self) -> "PigmentProps":
        return _clamp_to_limits(self)


@dataclass
class BrushRanges:
    """Practical brush ranges of a painting UI.

    Only used as slider hints; the applicator accepts anything and clamps.
    """

    size: float = field(default=6.0, metadata={"help": "Brush radius in cells.", "category": "Brush", "min": 1.0, "max": 25.0})
    water: float = field(default=2.5, metadata={"help": "Water released per stamp.", "category": "Brush", "min": 0.1, "max": 5.0})
    pigment: float = field(default=0.6, metadata={"help": "Pigment released per stamp.", "category": "Brush", "min": 0.05, "max": 2.0})
    fade_strength: float = field(default=0.5, metadata={"help": "Fraction of pigment lifted by the fade brush.", "category": "Brush", "min": 0.05, "max": 1.0})
    blend_strength: float = field(default=0.5, metadata={"help": "Weight of neighbor smoothing for the blend brush.", "category": "Brush", "min": 0.05, "max": 1.0})
    flow: float = field(default=1.0, metadata={"help": "Flow strength of the clean water brush.", "category": "Brush", "min": 0.1, "max": 2.0})
