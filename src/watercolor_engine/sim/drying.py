import taichi as ti

from ..configs import PhysicsParams
from .constants import DRY_EPSILON
from .grid import GridState


@ti.data_oriented
class DryingModel:
    """Exponential evaporation; cells that dry out lock their suspended pigment."""

    def __init__(self, grid: GridState):
        self.grid = grid

    def step(self, params: PhysicsParams):
        self._evaporate(params.evaporation_factor)

    @ti.kernel
    def _evaporate(self, factor: ti.f32):
        for i, j in self.grid.water_depth:
            depth = ti.max(0.0, self.grid.water_depth[i, j] * factor)
            self.grid.water_depth[i, j] = depth
            if depth < DRY_EPSILON:
                self.grid.pigment_deposited[i, j] += self.grid.pigment_suspended[i, j]
                self.grid.pigment_suspended[i, j] = ti.Vector([0.0, 0.0, 0.0, 0.0])
