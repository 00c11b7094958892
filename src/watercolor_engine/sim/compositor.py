import numpy as np
import taichi as ti

from ..backend import clamp_01, clamp_vec3_01
from .constants import (
    PIGMENT_ABSORB_FLOOR,
    PIGMENT_NEUTRAL_DENSITY,
    REFERENCE_PIGMENT_MASS,
    STAIN_STRENGTH,
    WET_PIGMENT_VISIBILITY,
    WET_SHEEN_GAIN,
    WET_SHEEN_THRESHOLD,
)
from .grid import GridState


@ti.func
def _optical_density(layer: ti.template(), strength: ti.f32):
    """Beer-Lambert density of one pigment layer against white paper."""
    mass = layer.w
    rgb = ti.Vector([0.0, 0.0, 0.0])
    if mass > 1e-8:
        rgb = layer.xyz / mass
    absorb = ti.max(PIGMENT_ABSORB_FLOOR, clamp_vec3_01(1.0 - rgb))
    return strength * (mass / REFERENCE_PIGMENT_MASS) * (absorb + PIGMENT_NEUTRAL_DENSITY)


@ti.data_oriented
class Compositor:
    """Maps deposited + suspended pigment, wetness and paper grain to RGBA8."""

    def __init__(self, grid: GridState):
        self.grid = grid

    def render(self, show_texture: bool, granularity: float) -> np.ndarray:
        """Composites the canvas and returns a flat row-major RGBA buffer."""
        self._draw_canvas(int(bool(show_texture)), float(granularity))
        return self.grid.pixels.to_numpy().reshape(-1)

    @ti.kernel
    def _draw_canvas(self, show_texture: ti.i32, granularity: ti.f32):
        for i, j in self.grid.water_depth:
            dep = self.grid.pigment_deposited[i, j]
            sus = self.grid.pigment_suspended[i, j]

            # Subtractive mixing: densities add, light is attenuated
            od = _optical_density(dep, STAIN_STRENGTH)
            od += _optical_density(sus, STAIN_STRENGTH * WET_PIGMENT_VISIBILITY)
            col = ti.exp(-od)

            # Wet shine
            wetness = ti.min(1.0, self.grid.water_depth[i, j])
            if wetness > WET_SHEEN_THRESHOLD:
                col = ti.min(1.0, col * (1.0 + wetness * WET_SHEEN_GAIN))

            if show_texture != 0:
                paper = self.grid.paper_render[i, j]
                has_paint = clamp_01((dep.w + sus.w * WET_PIGMENT_VISIBILITY) / REFERENCE_PIGMENT_MASS)
                # Painted areas mute the grain so it does not read as lines through the wash
                tex_fade = ti.max(0.12, 1.0 - has_paint * 0.85)
                tex_strength = (0.03 + granularity * 0.08) * tex_fade
                col *= 1.0 + (paper - 0.5) * tex_strength * 1.8

            col = ti.max(0.0, ti.min(1.0, col))
            self.grid.pixels[i, j, 0] = ti.cast(ti.cast(col.x * 255.0, ti.i32), ti.u8)
            self.grid.pixels[i, j, 1] = ti.cast(ti.cast(col.y * 255.0, ti.i32), ti.u8)
            self.grid.pixels[i, j, 2] = ti.cast(ti.cast(col.z * 255.0, ti.i32), ti.u8)
            self.grid.pixels[i, j, 3] = ti.cast(255, ti.u8)
