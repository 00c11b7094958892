"""
Brush applicator: turns a point or a segment into additive changes on the grid.

Four modes share one elliptical footprint (gaussian falloff, rotated along
the stroke, perturbed by bristle and paper noise):
- paint: water + pigment
- fade: lifts a fraction of both pigment layers
- blend: neighbor exchange inside both pigment layers, moves pigment without adding any
- water: clean water, radial push and re-wetting of deposited pigment

Stroke forms stamp the single-point footprint at a spacing of a fraction of
the radius, so long or fast segments never leave gaps.
"""
import math
from typing import Iterator, Tuple

import taichi as ti

from ..backend import clamp_01, hash21, smoothstep
from .constants import (
    BLEND_EXCHANGE_RATE,
    BRUSH_ASPECT,
    BRUSH_SIGMA,
    MAX_BLEND_WEIGHT,
    MIN_STROKE_PRESSURE,
    MIN_STROKE_SPACING,
    STROKE_JITTER,
    STROKE_SPACING,
    STROKE_TAPER,
    VELOCITY_PRESSURE,
)
from .grid import GridState


def _amount(x) -> float:
    """Non-negative finite float, anything else counts as zero."""
    try:
        x = float(x)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(x) or x <= 0.0:
        return 0.0
    return x


def _angle(a) -> float:
    try:
        a = float(a)
    except (TypeError, ValueError):
        return 0.0
    return a if math.isfinite(a) else 0.0


def stroke_pressure(velocity: float) -> float:
    """Faster strokes press lighter, so they leave less per unit length."""
    v = _amount(velocity)
    return min(1.0, max(MIN_STROKE_PRESSURE, 1.0 / (1.0 + v * VELOCITY_PRESSURE)))


def stroke_samples(x0: float, y0: float, x1: float, y1: float, size: float) -> Iterator[Tuple[float, float, float]]:
    """Yields (x, y, attenuation) stamp centers along a segment.

    A zero-length segment yields a single stamp.
    """
    dx = x1 - x0
    dy = y1 - y0
    length = math.hypot(dx, dy)
    if length < 1e-6:
        yield x0, y0, 1.0
        return
    spacing = max(MIN_STROKE_SPACING, size * STROKE_SPACING)
    steps = max(1, int(math.ceil(length / spacing)))
    for s in range(steps + 1):
        t = s / steps
        yield x0 + dx * t, y0 + dy * t, 1.0 - t * STROKE_TAPER


def jitter_point(x: float, y: float) -> Tuple[float, float]:
    """Fixed hand wobble for a stamp center, at most ``STROKE_JITTER`` cells per axis."""
    jx = math.sin(x * 17.0 + y * 31.0) * STROKE_JITTER
    jy = math.cos(x * 23.0 + y * 13.0) * STROKE_JITTER
    return x + jx, y + jy


@ti.func
def _footprint(i: ti.i32, j: ti.i32, cx: ti.f32, cy: ti.f32, radius: ti.f32, cos_a: ti.f32, sin_a: ti.f32):
    """(distance, gaussian) of cell (i, j) in the rotated stamp ellipse."""
    fx = ti.cast(j, ti.f32) - cx
    fy = ti.cast(i, ti.f32) - cy
    rot_x = fx * cos_a + fy * sin_a
    rot_y = (-fx * sin_a + fy * cos_a) / BRUSH_ASPECT
    dist2 = rot_x * rot_x + rot_y * rot_y
    sigma = radius * BRUSH_SIGMA
    return ti.Vector([ti.sqrt(dist2), ti.exp(-dist2 / (2.0 * sigma * sigma))])


@ti.func
def _bristle_noise(i: ti.i32, j: ti.i32) -> ti.f32:
    p = ti.Vector([ti.cast(j, ti.f32), ti.cast(i, ti.f32)])
    return 0.6 + 0.4 * hash21(p * 1.37 + 11.3)


@ti.data_oriented
class BrushApplicator:
    def __init__(self, grid: GridState):
        self.grid = grid

    def _window(self, cx: float, cy: float, radius: float):
        """Row/column range covering a stamp, clipped to the grid."""
        r = int(math.ceil(radius)) + 1
        ix, iy = int(round(cx)), int(round(cy))
        y_lo, y_hi = max(0, iy - r), min(self.grid.height, iy + r + 1)
        x_lo, x_hi = max(0, ix - r), min(self.grid.width, ix + r + 1)
        return y_lo, y_hi, x_lo, x_hi

    # ------------------------------------------------------------------
    # Single stamps
    # ------------------------------------------------------------------

    def paint(self, cx, cy, size, water, pigment, color, angle=0.0, pressure=1.0):
        radius, pressure = _amount(size), _amount(pressure)
        water, pigment = _amount(water), _amount(pigment)
        if radius <= 0.0 or pressure <= 0.0 or (water <= 0.0 and pigment <= 0.0):
            return
        r, g, b = (min(1.0, max(0.0, float(c))) for c in color)
        cx, cy = self.grid.clamp_point(cx, cy)
        self._paint_stamp(
            cx, cy, radius, math.cos(_angle(angle)), math.sin(_angle(angle)), *self._window(cx, cy, radius),
            water, pigment, r, g, b, pressure,
        )

    def fade(self, cx, cy, size, strength, angle=0.0, pressure=1.0):
        radius, pressure, strength = _amount(size), _amount(pressure), min(1.0, _amount(strength))
        if radius <= 0.0 or pressure <= 0.0 or strength <= 0.0:
            return
        cx, cy = self.grid.clamp_point(cx, cy)
        self._fade_stamp(cx, cy, radius, math.cos(_angle(angle)), math.sin(_angle(angle)), *self._window(cx, cy, radius), strength, pressure)

    def blend(self, cx, cy, size, strength, angle=0.0, pressure=1.0):
        radius, pressure, strength = _amount(size), _amount(pressure), min(1.0, _amount(strength))
        if radius <= 0.0 or pressure <= 0.0 or strength <= 0.0:
            return
        cx, cy = self.grid.clamp_point(cx, cy)
        window = self._window(cx, cy, radius)
        self._blend_weights(cx, cy, radius, math.cos(_angle(angle)), math.sin(_angle(angle)), *window, strength, pressure)
        for layer in (self.grid.pigment_suspended, self.grid.pigment_deposited):
            self._compute_blend_fluxes(layer, *window)
            self._apply_blend_fluxes(layer, *window)

    def wet(self, cx, cy, size, water, flow, angle=0.0, pressure=1.0):
        radius, pressure = _amount(size), _amount(pressure)
        water, flow = _amount(water), min(2.0, _amount(flow))
        if radius <= 0.0 or pressure <= 0.0 or water <= 0.0 or flow <= 0.0:
            return
        cx, cy = self.grid.clamp_point(cx, cy)
        self._water_stamp(cx, cy, radius, math.cos(_angle(angle)), math.sin(_angle(angle)), *self._window(cx, cy, radius), water, flow, pressure)

    # ------------------------------------------------------------------
    # Strokes
    # ------------------------------------------------------------------

    def _segment(self, x0, y0, x1, y1, size, velocity):
        x0, y0 = self.grid.clamp_point(x0, y0)
        x1, y1 = self.grid.clamp_point(x1, y1)
        angle = math.atan2(y1 - y0, x1 - x0)
        pressure = stroke_pressure(velocity)
        moving = math.hypot(x1 - x0, y1 - y0) >= 1e-6
        for x, y, att in stroke_samples(x0, y0, x1, y1, _amount(size)):
            if moving:
                x, y = self.grid.clamp_point(*jitter_point(x, y))
            yield x, y, att, angle, pressure * att

    def paint_stroke(self, x0, y0, x1, y1, size, water, pigment, color, velocity=0.0):
        if _amount(size) <= 0.0:
            return
        for x, y, att, angle, pressure in self._segment(x0, y0, x1, y1, size, velocity):
            self.paint(x, y, size, _amount(water) * att, _amount(pigment) * att, color, angle, pressure)

    def fade_stroke(self, x0, y0, x1, y1, size, strength, velocity=0.0):
        if _amount(size) <= 0.0:
            return
        for x, y, att, angle, pressure in self._segment(x0, y0, x1, y1, size, velocity):
            self.fade(x, y, size, _amount(strength) * att, angle, pressure)

    def blend_stroke(self, x0, y0, x1, y1, size, strength, velocity=0.0):
        if _amount(size) <= 0.0:
            return
        for x, y, att, angle, pressure in self._segment(x0, y0, x1, y1, size, velocity):
            self.blend(x, y, size, _amount(strength) * att, angle, pressure)

    def water_stroke(self, x0, y0, x1, y1, size, water, flow, velocity=0.0):
        if _amount(size) <= 0.0:
            return
        for x, y, att, angle, pressure in self._segment(x0, y0, x1, y1, size, velocity):
            self.wet(x, y, size, _amount(water) * att, _amount(flow) * att, angle, pressure)

    # ===============================
    # Taichi kernels
    # ===============================

    @ti.kernel
    def _paint_stamp(self, cx: ti.f32, cy: ti.f32, radius: ti.f32, cos_a: ti.f32, sin_a: ti.f32,
                     y_lo: ti.i32, y_hi: ti.i32, x_lo: ti.i32, x_hi: ti.i32,
                     water: ti.f32, pigment: ti.f32, r: ti.f32, g: ti.f32, b: ti.f32, pressure: ti.f32):
        for i, j in ti.ndrange((y_lo, y_hi), (x_lo, x_hi)):
            fp = _footprint(i, j, cx, cy, radius, cos_a, sin_a)
            dist = fp[0]
            if dist <= radius:
                paper_response = 0.6 + 0.4 * (1.0 - self.grid.paper_height[i, j])
                edge_factor = 1.0 + smoothstep(0.5, 0.95, dist / radius) * 0.6
                wet_spread = 1.0 + ti.min(1.0, self.grid.water_depth[i, j]) * 0.4
                brush = fp[1] * paper_response * _bristle_noise(i, j) * pressure

                self.grid.water_depth[i, j] += water * brush * wet_spread * 0.7
                m = pigment * brush * edge_factor * 0.5
                self.grid.pigment_suspended[i, j] += ti.Vector([r * m, g * m, b * m, m])

    @ti.kernel
    def _fade_stamp(self, cx: ti.f32, cy: ti.f32, radius: ti.f32, cos_a: ti.f32, sin_a: ti.f32,
                    y_lo: ti.i32, y_hi: ti.i32, x_lo: ti.i32, x_hi: ti.i32,
                    strength: ti.f32, pressure: ti.f32):
        for i, j in ti.ndrange((y_lo, y_hi), (x_lo, x_hi)):
            fp = _footprint(i, j, cx, cy, radius, cos_a, sin_a)
            if fp[0] <= radius:
                paper_response = 0.7 + 0.3 * (1.0 - self.grid.paper_height[i, j])
                wet_boost = 1.0 + ti.min(1.0, self.grid.water_depth[i, j]) * 0.6
                fade = ti.min(0.75, ti.max(0.0, strength * fp[1] * paper_response * pressure * wet_boost * 0.5))

                self.grid.pigment_suspended[i, j] *= 1.0 - fade
                self.grid.pigment_deposited[i, j] *= 1.0 - fade * 0.8
                self.grid.water_depth[i, j] *= 1.0 - fade * 0.25

    @ti.kernel
    def _blend_weights(self, cx: ti.f32, cy: ti.f32, radius: ti.f32, cos_a: ti.f32, sin_a: ti.f32,
                       y_lo: ti.i32, y_hi: ti.i32, x_lo: ti.i32, x_hi: ti.i32,
                       strength: ti.f32, pressure: ti.f32):
        for i, j in ti.ndrange((y_lo, y_hi), (x_lo, x_hi)):
            fp = _footprint(i, j, cx, cy, radius, cos_a, sin_a)
            blend = 0.0
            if fp[0] <= radius:
                blend = ti.min(MAX_BLEND_WEIGHT, ti.max(0.0, strength * fp[1] * pressure))
            self.grid.brush_weight[i, j] = blend

    @ti.kernel
    def _compute_blend_fluxes(self, layer: ti.template(), y_lo: ti.i32, y_hi: ti.i32, x_lo: ti.i32, x_hi: ti.i32):
        # Faces leaving the window are closed; window rims sit outside the footprint
        for i, j in ti.ndrange((y_lo, y_hi), (x_lo, x_hi)):
            w_a = self.grid.brush_weight[i, j]
            p_a = layer[i, j]
            fx = ti.Vector([0.0, 0.0, 0.0, 0.0])
            if j + 1 < x_hi:
                fx = BLEND_EXCHANGE_RATE * ti.min(w_a, self.grid.brush_weight[i, j + 1]) * (p_a - layer[i, j + 1])
            fy = ti.Vector([0.0, 0.0, 0.0, 0.0])
            if i + 1 < y_hi:
                fy = BLEND_EXCHANGE_RATE * ti.min(w_a, self.grid.brush_weight[i + 1, j]) * (p_a - layer[i + 1, j])
            self.grid.pigment_flux_x[i, j] = fx
            self.grid.pigment_flux_y[i, j] = fy

    @ti.kernel
    def _apply_blend_fluxes(self, layer: ti.template(), y_lo: ti.i32, y_hi: ti.i32, x_lo: ti.i32, x_hi: ti.i32):
        for i, j in ti.ndrange((y_lo, y_hi), (x_lo, x_hi)):
            net = -self.grid.pigment_flux_x[i, j] - self.grid.pigment_flux_y[i, j]
            if j > x_lo:
                net += self.grid.pigment_flux_x[i, j - 1]
            if i > y_lo:
                net += self.grid.pigment_flux_y[i - 1, j]
            layer[i, j] = ti.max(0.0, layer[i, j] + net)

    @ti.kernel
    def _water_stamp(self, cx: ti.f32, cy: ti.f32, radius: ti.f32, cos_a: ti.f32, sin_a: ti.f32,
                     y_lo: ti.i32, y_hi: ti.i32, x_lo: ti.i32, x_hi: ti.i32,
                     water: ti.f32, flow: ti.f32, pressure: ti.f32):
        for i, j in ti.ndrange((y_lo, y_hi), (x_lo, x_hi)):
            fp = _footprint(i, j, cx, cy, radius, cos_a, sin_a)
            dist = fp[0]
            if dist <= radius:
                gaussian = fp[1]
                self.grid.water_depth[i, j] += water * flow * gaussian * pressure * 0.45

                # Push outward from the stamp center, strongest near the rim
                edge = smoothstep(0.2, 1.0, dist / radius)
                radial = ti.Vector([ti.cast(j, ti.f32) - cx, ti.cast(i, ti.f32) - cy]) / (radius + 0.001)
                self.grid.velocity[i, j] += radial * flow * edge * 0.04

                # Re-wet dried pigment so it can move again
                lift = clamp_01(ti.min(0.2, gaussian * flow * 0.06))
                moved = self.grid.pigment_deposited[i, j] * lift
                self.grid.pigment_deposited[i, j] -= moved
                self.grid.pigment_suspended[i, j] += moved
