"""
Shallow-flow solver for the water layer.

One call to ``FluidSolver.step`` runs, in order:
1. pressure head from water depth (plus paper relief), gradient acceleration
2. ``iterations`` Jacobi passes on a correction potential, partial projection
3. viscosity averaging with a hard speed clamp
4. conservative water transport through face fluxes

Water only ever moves through the face fluxes, which are outflow-limited per
donor cell, so depth stays non-negative and the grid total is untouched.
The limited fluxes are left in ``grid.flux_x``/``grid.flux_y`` together with
the pre-transport depth in ``grid.water_prev`` for the pigment pass.
"""
import taichi as ti

from ..configs import PhysicsParams
from .constants import (
    CAPILLARY_MIN_DEPTH,
    CAPILLARY_RATE,
    DRY_EPSILON,
    DRY_VELOCITY_DECAY,
    FLOW_MIN_DEPTH,
    MAX_COURANT,
    MAX_OUTFLOW,
    MAX_SPEED,
    PAPER_RELIEF,
    RELAX_STRENGTH,
    TINY,
    VELOCITY_DAMPING,
)
from .grid import GridState


@ti.func
def _face_flux(h_a: ti.f32, h_b: ti.f32, u_face: ti.f32, ph_a: ti.f32, ph_b: ti.f32, dt: ti.f32) -> ti.f32:
    """Signed water flux from cell a to its neighbor b (positive means a -> b)."""
    c = ti.min(MAX_COURANT, ti.max(-MAX_COURANT, u_face * dt))
    adv = 0.0
    if c > 0.0 and h_a > FLOW_MIN_DEPTH:
        adv = c * h_a
    elif c < 0.0 and h_b > FLOW_MIN_DEPTH:
        adv = c * h_b

    # Capillary spreading toward the shallower side, easier into low fibers
    cap = 0.0
    diff = h_a - h_b
    if diff > 0.0 and h_a > CAPILLARY_MIN_DEPTH:
        cap = CAPILLARY_RATE * diff * (1.0 - 0.5 * ph_b)
    elif diff < 0.0 and h_b > CAPILLARY_MIN_DEPTH:
        cap = CAPILLARY_RATE * diff * (1.0 - 0.5 * ph_a)
    return adv + cap


@ti.data_oriented
class FluidSolver:
    def __init__(self, grid: GridState):
        self.grid = grid

    def step(self, params: PhysicsParams):
        dt = float(params.dt)
        self._update_head(float(params.pressure_coefficient))
        self._accelerate(dt)

        self._compute_divergence()
        self.grid.phi_a.fill(0.0)
        src, dst = self.grid.phi_a, self.grid.phi_b
        for _ in range(max(1, int(params.solver_iterations))):
            self._jacobi(src, dst)
            src, dst = dst, src
        self._project(src)

        self._apply_viscosity(float(params.viscosity))
        self._commit_velocity()

        self._compute_face_fluxes(dt)
        self._compute_outflow_scale()
        self._limit_face_fluxes()
        self._apply_water_fluxes()

    @ti.kernel
    def _update_head(self, k_pressure: ti.f32):
        for i, j in self.grid.head:
            surface = self.grid.water_depth[i, j] + PAPER_RELIEF * self.grid.paper_height[i, j]
            self.grid.head[i, j] = k_pressure * surface

    @ti.kernel
    def _accelerate(self, dt: ti.f32):
        h, w = ti.static(self.grid.height, self.grid.width)
        keep = ti.max(0.0, 1.0 - VELOCITY_DAMPING * dt)
        for i, j in self.grid.velocity:
            v = self.grid.velocity[i, j]
            if self.grid.water_depth[i, j] < DRY_EPSILON:
                v *= DRY_VELOCITY_DECAY
            else:
                pl = self.grid.head[i, ti.max(0, j - 1)]
                pr = self.grid.head[i, ti.min(w - 1, j + 1)]
                pu = self.grid.head[ti.max(0, i - 1), j]
                pd = self.grid.head[ti.min(h - 1, i + 1), j]
                grad = ti.Vector([(pr - pl) * 0.5, (pd - pu) * 0.5])
                v = (v - grad * dt) * keep
            self.grid.velocity[i, j] = v

    @ti.kernel
    def _compute_divergence(self):
        h, w = ti.static(self.grid.height, self.grid.width)
        for i, j in self.grid.divergence:
            div = 0.0
            if self.grid.water_depth[i, j] >= DRY_EPSILON:
                ul = self.grid.velocity[i, ti.max(0, j - 1)].x
                ur = self.grid.velocity[i, ti.min(w - 1, j + 1)].x
                vu = self.grid.velocity[ti.max(0, i - 1), j].y
                vd = self.grid.velocity[ti.min(h - 1, i + 1), j].y
                div = 0.5 * ((ur - ul) + (vd - vu))
            self.grid.divergence[i, j] = div

    @ti.kernel
    def _jacobi(self, src: ti.template(), dst: ti.template()):
        h, w = ti.static(self.grid.height, self.grid.width)
        for i, j in dst:
            phi = 0.0
            if self.grid.water_depth[i, j] >= DRY_EPSILON:
                nb = (
                    src[i, ti.max(0, j - 1)] + src[i, ti.min(w - 1, j + 1)]
                    + src[ti.max(0, i - 1), j] + src[ti.min(h - 1, i + 1), j]
                )
                phi = (nb - self.grid.divergence[i, j]) * 0.25
            dst[i, j] = phi

    @ti.kernel
    def _project(self, phi: ti.template()):
        h, w = ti.static(self.grid.height, self.grid.width)
        for i, j in self.grid.velocity:
            if self.grid.water_depth[i, j] >= DRY_EPSILON:
                gx = (phi[i, ti.min(w - 1, j + 1)] - phi[i, ti.max(0, j - 1)]) * 0.5
                gy = (phi[ti.min(h - 1, i + 1), j] - phi[ti.max(0, i - 1), j]) * 0.5
                self.grid.velocity[i, j] -= RELAX_STRENGTH * ti.Vector([gx, gy])

    @ti.kernel
    def _apply_viscosity(self, viscosity: ti.f32):
        h, w = ti.static(self.grid.height, self.grid.width)
        nu = ti.min(1.0, ti.max(0.0, viscosity))
        for i, j in self.grid.velocity:
            v = self.grid.velocity[i, j]
            if self.grid.water_depth[i, j] >= DRY_EPSILON:
                avg = (
                    self.grid.velocity[i, ti.max(0, j - 1)] + self.grid.velocity[i, ti.min(w - 1, j + 1)]
                    + self.grid.velocity[ti.max(0, i - 1), j] + self.grid.velocity[ti.min(h - 1, i + 1), j]
                ) * 0.25
                v = (1.0 - nu) * v + nu * avg
            speed = v.norm()
            if speed > MAX_SPEED:
                v *= MAX_SPEED / speed
            self.grid.velocity_tmp[i, j] = v

    @ti.kernel
    def _commit_velocity(self):
        for i, j in self.grid.velocity:
            self.grid.velocity[i, j] = self.grid.velocity_tmp[i, j]

    @ti.kernel
    def _compute_face_fluxes(self, dt: ti.f32):
        h, w = ti.static(self.grid.height, self.grid.width)
        for i, j in self.grid.flux_x:
            h_a = self.grid.water_depth[i, j]
            ph_a = self.grid.paper_height[i, j]
            v_a = self.grid.velocity[i, j]

            fx = 0.0
            if j < w - 1:
                u_face = 0.5 * (v_a.x + self.grid.velocity[i, j + 1].x)
                fx = _face_flux(h_a, self.grid.water_depth[i, j + 1], u_face, ph_a, self.grid.paper_height[i, j + 1], dt)
            fy = 0.0
            if i < h - 1:
                v_face = 0.5 * (v_a.y + self.grid.velocity[i + 1, j].y)
                fy = _face_flux(h_a, self.grid.water_depth[i + 1, j], v_face, ph_a, self.grid.paper_height[i + 1, j], dt)

            self.grid.flux_x[i, j] = fx
            self.grid.flux_y[i, j] = fy

    @ti.kernel
    def _compute_outflow_scale(self):
        for i, j in self.grid.outflow_scale:
            out = ti.max(0.0, self.grid.flux_x[i, j]) + ti.max(0.0, self.grid.flux_y[i, j])
            if j > 0:
                out += ti.max(0.0, -self.grid.flux_x[i, j - 1])
            if i > 0:
                out += ti.max(0.0, -self.grid.flux_y[i - 1, j])

            budget = MAX_OUTFLOW * self.grid.water_depth[i, j]
            scale = 1.0
            if out > budget:
                scale = budget / (out + TINY)
            self.grid.outflow_scale[i, j] = scale

    @ti.kernel
    def _limit_face_fluxes(self):
        h, w = ti.static(self.grid.height, self.grid.width)
        for i, j in self.grid.flux_x:
            fx = self.grid.flux_x[i, j]
            if fx > 0.0:
                fx *= self.grid.outflow_scale[i, j]
            elif fx < 0.0 and j < w - 1:
                fx *= self.grid.outflow_scale[i, j + 1]
            self.grid.flux_x[i, j] = fx

            fy = self.grid.flux_y[i, j]
            if fy > 0.0:
                fy *= self.grid.outflow_scale[i, j]
            elif fy < 0.0 and i < h - 1:
                fy *= self.grid.outflow_scale[i + 1, j]
            self.grid.flux_y[i, j] = fy

    @ti.kernel
    def _apply_water_fluxes(self):
        for i, j in self.grid.water_depth:
            h_old = self.grid.water_depth[i, j]
            net = -self.grid.flux_x[i, j] - self.grid.flux_y[i, j]
            if j > 0:
                net += self.grid.flux_x[i, j - 1]
            if i > 0:
                net += self.grid.flux_y[i - 1, j]
            self.grid.water_prev[i, j] = h_old
            self.grid.water_depth[i, j] = ti.max(0.0, h_old + net)
