"""
Shared fixtures for the watercolor engine test suite.

All tests run on the CPU backend; Taichi is initialized once per session
and every engine fixture releases its grid when the test finishes.
"""

import numpy as np
import pytest

from watercolor_engine import WatercolorEngine
from watercolor_engine.backend import initialize_taichi_backend


@pytest.fixture(scope="session", autouse=True)
def taichi_cpu():
    initialize_taichi_backend("cpu")


# ---------------------------------------------------------------------------
# Engines
# ---------------------------------------------------------------------------

@pytest.fixture
def make_engine():
    """Factory for engines that are closed at teardown."""
    created = []

    def _make(width=32, height=32, **kwargs):
        engine = WatercolorEngine(width, height, **kwargs)
        created.append(engine)
        return engine

    yield _make
    for engine in created:
        engine.close()


@pytest.fixture
def engine(make_engine):
    """32x32 canvas with default parameters."""
    return make_engine(32, 32)


@pytest.fixture
def still_engine(make_engine):
    """32x32 canvas without evaporation, for mass balance checks."""
    engine = make_engine(32, 32)
    engine.set_physics(dt=0.15, evaporation=0.0, viscosity=0.0, pressure=5.0, iterations=10)
    return engine


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def disk_mask(height, width, cy, cx, radius):
    yy, xx = np.mgrid[0:height, 0:width]
    return (xx - cx) ** 2 + (yy - cy) ** 2 <= radius ** 2


def pigment_layer(mask, color, mass):
    """(H, W, 4) float32 pigment layer holding ``mass`` of ``color`` inside ``mask``."""
    layer = np.zeros(mask.shape + (4,), dtype=np.float32)
    r, g, b = color
    layer[mask] = (r * mass, g * mass, b * mass, mass)
    return layer
