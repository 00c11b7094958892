"""Taichi runtime setup and small kernel helpers shared by the simulation modules."""
import logging

import taichi as ti

logger = logging.getLogger(__name__)

_GLOBAL_TAICHI_INITIALIZED = False

_ARCHS = {
    "cpu": ti.cpu,
    "gpu": ti.gpu,
    "cuda": ti.cuda,
    "vulkan": ti.vulkan,
    "metal": ti.metal,
}


def initialize_taichi_backend(arch: str = "cpu", use_profiler: bool = False):
    """Initializes the Taichi runtime once per process.

    Later calls are no-ops, so every engine instance shares the backend picked
    by the first one. A backend that fails to start falls back to CPU.
    """
    global _GLOBAL_TAICHI_INITIALIZED
    if _GLOBAL_TAICHI_INITIALIZED:
        return

    init_kwargs = {
        "offline_cache": True,
        "kernel_profiler": use_profiler,
    }
    ti_arch = _ARCHS.get(arch, ti.cpu)

    logger.info("Initializing Taichi with backend: %s", ti_arch)
    try:
        ti.init(arch=ti_arch, **init_kwargs)
    except Exception as e:
        if ti_arch == ti.cpu:
            raise
        logger.warning("Taichi init on %s failed: %s. Falling back to CPU.", arch, e)
        ti.init(arch=ti.cpu, **init_kwargs)

    logger.info("Taichi initialized. Backend: %s | Profiler: %s", ti.cfg.arch, use_profiler)
    _GLOBAL_TAICHI_INITIALIZED = True


@ti.func
def clamp_01(x: ti.f32) -> ti.f32:
    """Clamps a scalar value to the range [0.0, 1.0]."""
    return ti.min(1.0, ti.max(0.0, x))


@ti.func
def clamp_vec3_01(v):
    """Clamps a 3-component vector to the range [0.0, 1.0]."""
    return ti.Vector([clamp_01(v.x), clamp_01(v.y), clamp_01(v.z)])


@ti.func
def hash21(p: ti.math.vec2) -> ti.f32:
    q = ti.math.fract(p * 0.1031)
    q += ti.math.dot(q, q.yx + 33.33)
    return ti.math.fract((q.x + q.y) * q.x)


@ti.func
def smoothstep(edge0: ti.f32, edge1: ti.f32, x: ti.f32) -> ti.f32:
    t = clamp_01((x - edge0) / (edge1 - edge0))
    return t * t * (3.0 - 2.0 * t)
