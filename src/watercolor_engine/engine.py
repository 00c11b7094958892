"""
Watercolor Engine.

Copyright (c) 2026 Shuoqi Chen
SPDX-License-Identifier: MIT OR Apache-2.0
"""
import logging
import time

import numpy as np
import taichi as ti

from .backend import initialize_taichi_backend
from .configs import PhysicsParams, PigmentProps
from .errors import InvalidGridDimensions
from .sim.brush import BrushApplicator
from .sim.compositor import Compositor
from .sim.drying import DryingModel
from .sim.fluid import FluidSolver
from .sim.grid import GridState
from .sim.paper import PaperModel
from .sim.pigment import PigmentTransport
from .stroke import BrushMode, BrushStroke

logger = logging.getLogger(__name__)


def _extent(value, name: str) -> int:
    try:
        extent = int(value)
    except (TypeError, ValueError, OverflowError):
        raise InvalidGridDimensions(f"{name} must be a positive integer, got {value!r}")
    if extent <= 0:
        raise InvalidGridDimensions(f"{name} must be a positive integer, got {value!r}")
    return extent


class WatercolorEngine:
    """Stateful watercolor canvas: brushes in, simulation steps, RGBA out.

    One instance owns one grid:
    - water_depth, velocity: the free water layer
    - pigment_suspended: pigment carried by the water
    - pigment_deposited: pigment bound to the paper
    - paper_height / paper_absorption: static paper, procedural unless a
      texture is loaded

    Each ``step()`` runs FluidSolver -> PigmentTransport -> DryingModel.
    All calls are synchronous; instances share nothing but the Taichi runtime.
    """

    def __init__(self, width: int, height: int, arch: str = "cpu", use_profiler: bool = False, warmup: bool = False):
        width = _extent(width, "width")
        height = _extent(height, "height")
        initialize_taichi_backend(arch, use_profiler=use_profiler)

        self.width = width
        self.height = height
        self.timing_mode = False
        self._frame_count = 0

        # User properties
        self.physics = PhysicsParams()
        self.pigment_props = PigmentProps()
        self.show_texture = True

        self.grid = GridState(width, height)
        self.paper = PaperModel(self.grid)
        self.brush = BrushApplicator(self.grid)
        self.fluid = FluidSolver(self.grid)
        self.pigment = PigmentTransport(self.grid)
        self.drying = DryingModel(self.grid)
        self.compositor = Compositor(self.grid)

        self.paper.generate()
        logger.debug("Created %dx%d watercolor engine", width, height)

        if warmup:
            self.warmup()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_physics(self, dt: float, evaporation: float, viscosity: float, pressure: float, iterations: int):
        """Replaces the fluid and drying parameters. Values are clamped, never rejected."""
        self.physics = PhysicsParams(
            dt=dt,
            evaporation_rate=evaporation,
            viscosity=viscosity,
            pressure_coefficient=pressure,
            solver_iterations=iterations,
        ).clamped()

    def set_pigment_props(self, adhesion: float, granularity: float):
        self.pigment_props = PigmentProps(adhesion=adhesion, granularity=granularity).clamped()

    def set_show_texture(self, show: bool):
        self.show_texture = bool(show)

    def load_paper_texture(self, data, w: int, h: int):
        """Replaces the paper with a luminance or RGBA bitmap, resampled to the grid.

        Raises InvalidTextureDimensions, leaving the current paper in place,
        when ``data`` does not hold ``w * h`` pixels of 1 or 4 channels.
        The texture survives ``reset()``.
        """
        self.paper.load_texture(data, w, h)

    # ------------------------------------------------------------------
    # Brushes
    # ------------------------------------------------------------------

    def apply_brush(self, cx, cy, size, water, pigment, r, g, b, angle=0.0, pressure=1.0):
        """Stamps water and pigment of color (r, g, b) at one point."""
        self.brush.paint(cx, cy, size, water, pigment, (r, g, b), angle, pressure)

    def apply_brush_stroke(self, x0, y0, x1, y1, size, water, pigment, r, g, b, velocity=0.0):
        self.brush.paint_stroke(x0, y0, x1, y1, size, water, pigment, (r, g, b), velocity)

    def apply_fade_brush_stroke(self, x0, y0, x1, y1, size, strength, velocity=0.0):
        self.brush.fade_stroke(x0, y0, x1, y1, size, strength, velocity)

    def apply_blend_brush_stroke(self, x0, y0, x1, y1, size, strength, velocity=0.0):
        self.brush.blend_stroke(x0, y0, x1, y1, size, strength, velocity)

    def apply_water_brush_stroke(self, x0, y0, x1, y1, size, water, flow, velocity=0.0):
        self.brush.water_stroke(x0, y0, x1, y1, size, water, flow, velocity)

    def apply_stroke(self, stroke: BrushStroke):
        """Dispatches a ``BrushStroke`` to the stroke call of its mode."""
        mode = BrushMode(stroke.mode)
        s = stroke
        if mode is BrushMode.PAINT:
            self.apply_brush_stroke(s.x0, s.y0, s.x1, s.y1, s.size, s.water, s.pigment, *s.color, velocity=s.velocity)
        elif mode is BrushMode.FADE:
            self.apply_fade_brush_stroke(s.x0, s.y0, s.x1, s.y1, s.size, s.strength, velocity=s.velocity)
        elif mode is BrushMode.BLEND:
            self.apply_blend_brush_stroke(s.x0, s.y0, s.x1, s.y1, s.size, s.strength, velocity=s.velocity)
        else:
            self.apply_water_brush_stroke(s.x0, s.y0, s.x1, s.y1, s.size, s.water, s.flow, velocity=s.velocity)

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    def step(self, steps: int = 1):
        """Advances the simulation by the specified number of time steps."""
        for _ in range(max(0, int(steps))):
            t0 = time.perf_counter() if self.timing_mode else 0

            # Phase 1: water flow
            self.fluid.step(self.physics)

            t1 = time.perf_counter() if self.timing_mode else 0

            # Phase 2: pigment rides the recorded water fluxes, then settles
            self.pigment.step(self.physics.dt, self.pigment_props)

            # Phase 3: evaporation and pigment locking
            self.drying.step(self.physics)

            self._frame_count += 1

            if self.timing_mode and self._frame_count % 30 == 0:
                ti.sync()
                t2 = time.perf_counter()
                logger.debug("Sim step: %4.1fms (fluid) + %4.1fms (pigment, drying)", (t1 - t0) * 1000, (t2 - t1) * 1000)

    def render(self) -> np.ndarray:
        """Composites the canvas into a flat row-major RGBA ``uint8`` buffer."""
        t0 = time.perf_counter() if self.timing_mode else 0
        img = self.compositor.render(self.show_texture, self.pigment_props.granularity)
        if self.timing_mode and self._frame_count % 30 == 0:
            logger.debug("Render: %4.1fms", (time.perf_counter() - t0) * 1000)
        return img

    def render_image(self) -> np.ndarray:
        """Same pixels as ``render()``, shaped ``(height, width, 4)``."""
        return self.render().reshape(self.height, self.width, 4)

    def reset(self):
        """Clears water, velocity and pigment. Paper and parameters are kept."""
        self.grid.clear()
        self._frame_count = 0
        logger.info("Canvas reset (%s paper)", "loaded" if self.paper.texture_loaded else "procedural")

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def get_width(self) -> int:
        return self.width

    def get_height(self) -> int:
        return self.height

    def total_pigment(self) -> np.ndarray:
        """Grid total of suspended + deposited pigment as (r, g, b, mass)."""
        return self.grid.total_pigment()

    def total_water(self) -> float:
        return self.grid.total_water()

    def check_integrity(self) -> bool:
        """Scans the dynamic fields for NaNs and negative amounts."""
        ok = True
        for name in ("water_depth", "velocity", "pigment_suspended", "pigment_deposited"):
            values = getattr(self.grid, name).to_numpy()
            if not np.all(np.isfinite(values)):
                logger.error("INTEGRITY ERROR: non-finite values in %s", name)
                ok = False
            elif name != "velocity" and values.min() < -1e-6:
                logger.error("INTEGRITY ERROR: %s below zero (min %g)", name, values.min())
                ok = False
        if ok:
            logger.debug("Integrity check passed.")
        return ok

    def warmup(self):
        """Compiles every kernel by running a throwaway stroke, step and render.

        Leaves the canvas in its just-constructed state, so call it before painting.
        """
        cx, cy = self.width / 2.0, self.height / 2.0
        size = max(1.0, min(self.width, self.height) / 8.0)
        self.brush.paint(cx, cy, size, 1.0, 0.5, (0.5, 0.5, 0.5))
        self.brush.fade(cx, cy, size, 0.5)
        self.brush.blend(cx, cy, size, 0.5)
        self.brush.wet(cx, cy, size, 1.0, 1.0)
        self.step(1)
        self.render()
        self.reset()
        ti.sync()
        logger.info("Warmup complete.")

    def close(self):
        """Releases the grid allocation. The engine must not be used afterwards."""
        if self.grid.released:
            return
        self.grid.release()
        logger.debug("Released %dx%d watercolor engine", self.width, self.height)
