import logging

import numpy as np
import taichi as ti

from ..backend import clamp_01, hash21
from ..errors import InvalidTextureDimensions
from .constants import ABSORPTION_BASE, ABSORPTION_RANGE, PAPER_GRAIN_SCALE, PAPER_SEED_OFFSET
from .grid import GridState

logger = logging.getLogger(__name__)

_TEXTURE_CHANNELS = (1, 4)


def _texture_to_height(data, tex_w: int, tex_h: int, width: int, height: int) -> np.ndarray:
    """Validates a raw bitmap and resamples its luminance to a (height, width) map in [0, 1]."""
    if isinstance(data, (bytes, bytearray, memoryview)):
        buf = np.frombuffer(data, dtype=np.uint8)
    else:
        buf = np.asarray(data, dtype=np.uint8).ravel()

    tw, th = int(tex_w), int(tex_h)
    if tw <= 0 or th <= 0 or buf.size % (tw * th) != 0:
        raise InvalidTextureDimensions(buf.size, tw, th)
    channels = buf.size // (tw * th)
    if channels not in _TEXTURE_CHANNELS:
        raise InvalidTextureDimensions(buf.size, tw, th)

    img = buf.reshape(th, tw, channels).astype(np.float32)
    if channels == 4:
        gray = (img[..., 0] * 0.3 + img[..., 1] * 0.59 + img[..., 2] * 0.11) / 255.0
    else:
        gray = img[..., 0] / 255.0

    # Nearest-neighbor resample onto the grid
    src_y = (np.arange(height) * th) // height
    src_x = (np.arange(width) * tw) // width
    return np.clip(gray[np.ix_(src_y, src_x)], 0.0, 1.0).astype(np.float32)


@ti.data_oriented
class PaperModel:
    """Static paper maps: fiber height, absorption and the display texture.

    The default paper is procedural and deterministic, so two canvases of the
    same size start from identical paper. ``load_texture`` replaces both maps
    wholesale until the owning engine is discarded.
    """

    def __init__(self, grid: GridState):
        self.grid = grid
        self.texture_loaded = False

    def generate(self, scale: float = PAPER_GRAIN_SCALE):
        self._build_paper_texture(float(scale))
        self._derive_absorption()
        self._rebuild_render_map()
        self.texture_loaded = False

    def load_texture(self, data, tex_w: int, tex_h: int):
        """Loads a luminance or RGBA bitmap as paper height.

        Raises InvalidTextureDimensions before touching any field when the
        buffer does not hold ``tex_w * tex_h`` pixels of 1 or 4 channels.
        """
        height_map = _texture_to_height(data, tex_w, tex_h, self.grid.width, self.grid.height)
        self.grid.paper_height.from_numpy(height_map)
        self._derive_absorption()
        self._rebuild_render_map()
        self.texture_loaded = True
        logger.info("Loaded %dx%d paper texture onto %dx%d grid", tex_w, tex_h, self.grid.width, self.grid.height)

    @ti.kernel
    def _build_paper_texture(self, scale: ti.f32):
        """Multi-octave hash noise plus crossed sinusoidal fibers."""
        for i, j in self.grid.paper_height:
            fi = ti.cast(i, ti.f32)
            fj = ti.cast(j, ti.f32)
            p = ti.Vector([fj, fi])

            n0 = hash21(p * (0.015 * scale) + PAPER_SEED_OFFSET)
            n1 = hash21(p * (0.050 * scale) + 19.7)
            n2 = hash21(p * (0.120 * scale) + 41.3)
            n = 0.50 * n0 + 0.35 * n1 + 0.15 * n2

            fiber = ti.sin(fi * 0.05) * ti.cos(fj * 0.07) * 0.08
            fiber += ti.cos(fi * 0.15) * ti.sin(fj * 0.11) * 0.04
            fiber += (ti.sin(fi * 0.3) + ti.cos(fj * 0.25)) * 0.02

            self.grid.paper_height[i, j] = clamp_01(0.45 + 0.25 * n + fiber)

    @ti.kernel
    def _derive_absorption(self):
        # Valleys hold more water and take up more pigment
        for i, j in self.grid.paper_height:
            ph = self.grid.paper_height[i, j]
            self.grid.paper_absorption[i, j] = clamp_01(ABSORPTION_BASE + ABSORPTION_RANGE * (1.0 - ph))

    @ti.kernel
    def _rebuild_render_map(self):
        """3x3 box blur with contrast compression so fibers read as grain, not lines."""
        h, w = ti.static(self.grid.height, self.grid.width)
        for i, j in self.grid.paper_render:
            total = 0.0
            count = 0.0
            for di, dj in ti.static(ti.ndrange((-1, 2), (-1, 2))):
                ii = ti.min(h - 1, ti.max(0, i + di))
                jj = ti.min(w - 1, ti.max(0, j + dj))
                total += self.grid.paper_height[ii, jj]
                count += 1.0
            avg = total / count
            self.grid.paper_render[i, j] = clamp_01(0.5 + (avg - 0.5) * 0.35)
