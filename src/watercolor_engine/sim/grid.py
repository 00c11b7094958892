import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np
import taichi as ti


@dataclass(frozen=True)
class Cell:
    """Read-only snapshot of one grid position."""
    water_depth: float
    velocity: Tuple[float, float]
    pigment_suspended: Tuple[float, float, float]
    pigment_deposited: Tuple[float, float, float]
    suspended_mass: float
    deposited_mass: float
    paper_absorption: float
    paper_height: float


@ti.data_oriented
class GridState:
    """Per-cell fields of one canvas.

    Fields are indexed ``[row, col]`` (``[y, x]``), so ``to_numpy()`` already has
    the row-major layout of the render buffer.

    - water_depth: free water [>= 0]
    - velocity: (vx, vy) flow vector
    - pigment_suspended / pigment_deposited: (r*m, g*m, b*m, m), m is pigment mass
    - paper_height / paper_absorption / paper_render: static paper maps

    Solver scratch buffers live here too so that the whole canvas is a single
    SNode tree, released once by ``release()``.
    """

    def __init__(self, width: int, height: int):
        self.width = int(width)
        self.height = int(height)
        self.shape = (self.height, self.width)

        self.water_depth = ti.field(dtype=ti.f32)
        self.velocity = ti.Vector.field(2, dtype=ti.f32)
        self.pigment_suspended = ti.Vector.field(4, dtype=ti.f32)
        self.pigment_deposited = ti.Vector.field(4, dtype=ti.f32)
        self.paper_height = ti.field(dtype=ti.f32)
        self.paper_absorption = ti.field(dtype=ti.f32)
        self.paper_render = ti.field(dtype=ti.f32)  # Blurred, compressed height for display

        # Transport record of the current step (face fluxes to the right / downward)
        self.water_prev = ti.field(dtype=ti.f32)
        self.flux_x = ti.field(dtype=ti.f32)
        self.flux_y = ti.field(dtype=ti.f32)
        self.outflow_scale = ti.field(dtype=ti.f32)

        # Solver scratch
        self.velocity_tmp = ti.Vector.field(2, dtype=ti.f32)
        self.head = ti.field(dtype=ti.f32)
        self.divergence = ti.field(dtype=ti.f32)
        self.phi_a = ti.field(dtype=ti.f32)
        self.phi_b = ti.field(dtype=ti.f32)
        self.pigment_tmp = ti.Vector.field(4, dtype=ti.f32)
        self.pigment_flux_x = ti.Vector.field(4, dtype=ti.f32)
        self.pigment_flux_y = ti.Vector.field(4, dtype=ti.f32)
        self.brush_weight = ti.field(dtype=ti.f32)

        self.pixels = ti.field(dtype=ti.u8)

        fb = ti.FieldsBuilder()
        for f in (
            self.water_depth, self.velocity, self.pigment_suspended, self.pigment_deposited,
            self.paper_height, self.paper_absorption, self.paper_render,
            self.water_prev, self.flux_x, self.flux_y, self.outflow_scale,
            self.velocity_tmp, self.head, self.divergence, self.phi_a, self.phi_b,
            self.pigment_tmp, self.pigment_flux_x, self.pigment_flux_y,
            self.brush_weight,
        ):
            fb.dense(ti.ij, self.shape).place(f)
        fb.dense(ti.ijk, (self.height, self.width, 4)).place(self.pixels)
        self._snode_tree = fb.finalize()
        self.released = False

        self.clear()

    def release(self):
        """Frees the canvas allocation. Safe to call more than once."""
        if self.released:
            return
        self._snode_tree.destroy()
        self.released = True

    @ti.kernel
    def clear(self):
        """Zeroes every dynamic field; paper maps are left untouched."""
        for i, j in self.water_depth:
            self.water_depth[i, j] = 0.0
            self.water_prev[i, j] = 0.0
            self.velocity[i, j] = ti.Vector([0.0, 0.0])
            self.velocity_tmp[i, j] = ti.Vector([0.0, 0.0])
            self.pigment_suspended[i, j] = ti.Vector([0.0, 0.0, 0.0, 0.0])
            self.pigment_deposited[i, j] = ti.Vector([0.0, 0.0, 0.0, 0.0])
            self.pigment_tmp[i, j] = ti.Vector([0.0, 0.0, 0.0, 0.0])
            self.pigment_flux_x[i, j] = ti.Vector([0.0, 0.0, 0.0, 0.0])
            self.pigment_flux_y[i, j] = ti.Vector([0.0, 0.0, 0.0, 0.0])
            self.flux_x[i, j] = 0.0
            self.flux_y[i, j] = 0.0
            self.outflow_scale[i, j] = 1.0
            self.head[i, j] = 0.0
            self.divergence[i, j] = 0.0
            self.phi_a[i, j] = 0.0
            self.phi_b[i, j] = 0.0
            self.brush_weight[i, j] = 0.0
        for i, j, k in self.pixels:
            self.pixels[i, j, k] = ti.cast(255, ti.u8)

    def clamp_point(self, x: float, y: float) -> Tuple[float, float]:
        """Clamps a grid-space point into [0, width) x [0, height)."""
        x, y = float(x), float(y)
        cx = min(max(x, 0.0), float(self.width - 1)) if math.isfinite(x) else 0.0
        cy = min(max(y, 0.0), float(self.height - 1)) if math.isfinite(y) else 0.0
        return cx, cy

    def cell(self, x: int, y: int) -> Cell:
        """Reads one cell back to Python. Coordinates are clamped into the grid."""
        x = min(max(int(x), 0), self.width - 1)
        y = min(max(int(y), 0), self.height - 1)
        vel = self.velocity[y, x]
        sus = self.pigment_suspended[y, x]
        dep = self.pigment_deposited[y, x]
        return Cell(
            water_depth=float(self.water_depth[y, x]),
            velocity=(float(vel[0]), float(vel[1])),
            pigment_suspended=(float(sus[0]), float(sus[1]), float(sus[2])),
            pigment_deposited=(float(dep[0]), float(dep[1]), float(dep[2])),
            suspended_mass=float(sus[3]),
            deposited_mass=float(dep[3]),
            paper_absorption=float(self.paper_absorption[y, x]),
            paper_height=float(self.paper_height[y, x]),
        )

    def total_pigment(self) -> np.ndarray:
        """Suspended + deposited totals per component (r, g, b, mass), in float64."""
        sus = self.pigment_suspended.to_numpy().astype(np.float64)
        dep = self.pigment_deposited.to_numpy().astype(np.float64)
        return sus.sum(axis=(0, 1)) + dep.sum(axis=(0, 1))

    def total_water(self) -> float:
        return float(self.water_depth.to_numpy().astype(np.float64).sum())
