"""
Suspended pigment transport and the suspended -> deposited exchange.

Runs after ``FluidSolver.step`` and reuses the water fluxes it recorded:
- advection: each face carries ``flux / donor_depth`` of the donor's pigment
- wet-in-wet diffusion plus an edge drift toward shallower wet neighbors
- adhesion: a per-cell fraction settles into the paper, boosted in paper
  valleys (granulation) and at drying fronts (edge darkening)
- backruns: films in the nearly dry band shed pigment into the bed of their
  wettest neighbor, leaving cauliflower edges where a wash is re-wetted

Every move is written as a face flux computed identically on both sides, or
as a transfer that removes exactly what it adds, so the grid total of each
pigment component is conserved up to float rounding.
"""
import taichi as ti

from ..backend import clamp_01
from ..configs import PigmentProps
from .constants import (
    BACKRUN_MAX_DEPTH,
    BACKRUN_MIN_DEPTH,
    BACKRUN_RATE,
    DRY_EPSILON,
    EDGE_DEPOSIT_GAIN,
    EDGE_DRIFT_RATE,
    GRANULATION_GAIN,
    MAX_DEPOSIT_RATE,
    MAX_DIFFUSION_RATE,
    MAX_EDGE_DRIFT,
    PIGMENT_DIFFUSION,
    THIN_FILM_DEPTH,
    TINY,
    WET_HALF_DEPTH,
)
from .grid import GridState


@ti.func
def _carried(flux: ti.f32, donor_depth: ti.f32, donor_pigment: ti.template()):
    frac = ti.min(1.0, flux / ti.max(donor_depth, TINY))
    return frac * donor_pigment


@ti.func
def _exchange_flux(h_a: ti.f32, h_b: ti.f32, p_a: ti.template(), p_b: ti.template(), dt: ti.f32):
    """Pigment moved from a to b by diffusion and edge drift (negative means b -> a)."""
    flux = ti.Vector([0.0, 0.0, 0.0, 0.0])
    if h_a >= DRY_EPSILON and h_b >= DRY_EPSILON:
        shallow = ti.min(h_a, h_b)
        rate = ti.min(MAX_DIFFUSION_RATE, PIGMENT_DIFFUSION * dt * shallow / (shallow + WET_HALF_DEPTH))
        flux = rate * (p_a - p_b)
        if h_a > h_b:
            flux += ti.min(MAX_EDGE_DRIFT, EDGE_DRIFT_RATE * (h_a - h_b) / (h_a + TINY)) * p_a
        elif h_b > h_a:
            flux -= ti.min(MAX_EDGE_DRIFT, EDGE_DRIFT_RATE * (h_b - h_a) / (h_b + TINY)) * p_b
    return flux


@ti.data_oriented
class PigmentTransport:
    def __init__(self, grid: GridState):
        self.grid = grid

    def step(self, dt: float, props: PigmentProps):
        self._advect()
        self._commit_suspended()
        self._compute_exchange_fluxes(float(dt))
        self._apply_exchange_fluxes()
        self._deposit(float(props.adhesion), float(props.granularity))
        self._back_run()

    @ti.kernel
    def _advect(self):
        h, w = ti.static(self.grid.height, self.grid.width)
        for i, j in self.grid.pigment_suspended:
            hp = self.grid.water_prev[i, j]
            p = self.grid.pigment_suspended[i, j]
            out = ti.Vector([0.0, 0.0, 0.0, 0.0])
            inflow = ti.Vector([0.0, 0.0, 0.0, 0.0])

            fr = self.grid.flux_x[i, j]
            if fr > 0.0:
                out += _carried(fr, hp, p)
            elif fr < 0.0 and j < w - 1:
                inflow += _carried(-fr, self.grid.water_prev[i, j + 1], self.grid.pigment_suspended[i, j + 1])

            fd = self.grid.flux_y[i, j]
            if fd > 0.0:
                out += _carried(fd, hp, p)
            elif fd < 0.0 and i < h - 1:
                inflow += _carried(-fd, self.grid.water_prev[i + 1, j], self.grid.pigment_suspended[i + 1, j])

            if j > 0:
                fl = self.grid.flux_x[i, j - 1]
                if fl > 0.0:
                    inflow += _carried(fl, self.grid.water_prev[i, j - 1], self.grid.pigment_suspended[i, j - 1])
                elif fl < 0.0:
                    out += _carried(-fl, hp, p)

            if i > 0:
                fu = self.grid.flux_y[i - 1, j]
                if fu > 0.0:
                    inflow += _carried(fu, self.grid.water_prev[i - 1, j], self.grid.pigment_suspended[i - 1, j])
                elif fu < 0.0:
                    out += _carried(-fu, hp, p)

            self.grid.pigment_tmp[i, j] = ti.max(0.0, p - out + inflow)

    @ti.kernel
    def _commit_suspended(self):
        for i, j in self.grid.pigment_suspended:
            self.grid.pigment_suspended[i, j] = self.grid.pigment_tmp[i, j]

    @ti.kernel
    def _compute_exchange_fluxes(self, dt: ti.f32):
        h, w = ti.static(self.grid.height, self.grid.width)
        for i, j in self.grid.pigment_flux_x:
            h_a = self.grid.water_depth[i, j]
            p_a = self.grid.pigment_suspended[i, j]

            fx = ti.Vector([0.0, 0.0, 0.0, 0.0])
            if j < w - 1:
                fx = _exchange_flux(h_a, self.grid.water_depth[i, j + 1], p_a, self.grid.pigment_suspended[i, j + 1], dt)
            fy = ti.Vector([0.0, 0.0, 0.0, 0.0])
            if i < h - 1:
                fy = _exchange_flux(h_a, self.grid.water_depth[i + 1, j], p_a, self.grid.pigment_suspended[i + 1, j], dt)

            self.grid.pigment_flux_x[i, j] = fx
            self.grid.pigment_flux_y[i, j] = fy

    @ti.kernel
    def _apply_exchange_fluxes(self):
        for i, j in self.grid.pigment_suspended:
            net = -self.grid.pigment_flux_x[i, j] - self.grid.pigment_flux_y[i, j]
            if j > 0:
                net += self.grid.pigment_flux_x[i, j - 1]
            if i > 0:
                net += self.grid.pigment_flux_y[i - 1, j]
            self.grid.pigment_suspended[i, j] = ti.max(0.0, self.grid.pigment_suspended[i, j] + net)

    @ti.kernel
    def _deposit(self, adhesion: ti.f32, granularity: ti.f32):
        h, w = ti.static(self.grid.height, self.grid.width)
        for i, j in self.grid.pigment_suspended:
            depth = self.grid.water_depth[i, j]
            if depth < DRY_EPSILON:
                continue

            # Granulation: paper valleys (low height) catch more pigment
            ph = self.grid.paper_height[i, j]
            grain = ti.max(0.0, 1.0 + granularity * GRANULATION_GAIN * (0.5 - ph) * 2.0)
            absorb = clamp_01(self.grid.paper_absorption[i, j] * grain)

            # Drying front: shallower than a neighbor, or a thin receding film
            h_min = ti.min(
                ti.min(self.grid.water_depth[i, ti.max(0, j - 1)], self.grid.water_depth[i, ti.min(w - 1, j + 1)]),
                ti.min(self.grid.water_depth[ti.max(0, i - 1), j], self.grid.water_depth[ti.min(h - 1, i + 1), j]),
            )
            front = clamp_01((depth - h_min) / (depth + TINY))
            thin = clamp_01(1.0 - depth / THIN_FILM_DEPTH)

            speed = self.grid.velocity[i, j].norm()
            rate = adhesion * absorb * (1.0 + EDGE_DEPOSIT_GAIN * (front + thin)) / (1.0 + speed)
            rate = ti.min(MAX_DEPOSIT_RATE, ti.max(0.0, rate))

            moved = self.grid.pigment_suspended[i, j] * rate
            self.grid.pigment_suspended[i, j] -= moved
            self.grid.pigment_deposited[i, j] += moved

    @ti.kernel
    def _back_run(self):
        # Only strictly wetter neighbors receive; ties keep the pigment in place
        h, w = ti.static(self.grid.height, self.grid.width)
        for i, j in self.grid.pigment_suspended:
            depth = self.grid.water_depth[i, j]
            if depth < BACKRUN_MIN_DEPTH or depth > BACKRUN_MAX_DEPTH:
                continue

            best_i, best_j = i, j
            best = depth
            for di, dj in ti.static(((0, -1), (0, 1), (-1, 0), (1, 0))):
                ni = ti.min(h - 1, ti.max(0, i + di))
                nj = ti.min(w - 1, ti.max(0, j + dj))
                hn = self.grid.water_depth[ni, nj]
                if hn > best:
                    best = hn
                    best_i, best_j = ni, nj

            if best > depth:
                moved = self.grid.pigment_suspended[i, j] * BACKRUN_RATE
                self.grid.pigment_suspended[i, j] -= moved
                self.grid.pigment_deposited[best_i, best_j] += moved
