"""Tests for parameter dataclasses and their clamping."""

import math
from dataclasses import fields

import pytest

from watercolor_engine.configs import BrushRanges, PhysicsParams, PigmentProps


class TestPhysicsParams:
    def test_defaults_are_inside_limits(self):
        params = PhysicsParams()
        assert params.clamped() == params

    def test_out_of_range_values_are_clamped(self):
        params = PhysicsParams(dt=-1.0, evaporation_rate=5000.0, viscosity=3.0, pressure_coefficient=-2.0, solver_iterations=0).clamped()
        assert params.dt == 0.0
        assert params.evaporation_rate == 1000.0
        assert params.viscosity == 1.0
        assert params.pressure_coefficient == 0.0
        assert params.solver_iterations == 1

    def test_non_finite_values_fall_back_to_defaults(self):
        params = PhysicsParams(dt=float("nan"), viscosity=float("inf")).clamped()
        assert params.dt == PhysicsParams().dt
        assert params.viscosity == PhysicsParams().viscosity

    def test_iterations_are_integers(self):
        params = PhysicsParams(solver_iterations=7.6).clamped()
        assert params.solver_iterations == 8
        assert isinstance(params.solver_iterations, int)

    def test_evaporation_factor(self):
        assert PhysicsParams(dt=0.5, evaporation_rate=0.01).evaporation_factor == pytest.approx(0.995)
        assert PhysicsParams(dt=10.0, evaporation_rate=1.0).evaporation_factor == 0.0
        assert PhysicsParams(dt=1.0, evaporation_rate=0.0).evaporation_factor == 1.0


class TestPigmentProps:
    def test_clamped(self):
        props = PigmentProps(adhesion=2.0, granularity=-1.0).clamped()
        assert props.adhesion == 1.0
        assert props.granularity == 0.0

    def test_unparseable_value_uses_default(self):
        props = PigmentProps(adhesion="lots").clamped()
        assert props.adhesion == PigmentProps().adhesion


class TestFieldMetadata:
    @pytest.mark.parametrize("cls", [PhysicsParams, PigmentProps, BrushRanges])
    def test_every_field_has_ui_range(self, cls):
        for f in fields(cls):
            meta = f.metadata
            assert meta["help"]
            assert meta["min"] <= f.default <= meta["max"], f.name

    @pytest.mark.parametrize("cls", [PhysicsParams, PigmentProps])
    def test_ui_range_fits_inside_limits(self, cls):
        for f in fields(cls):
            lo, hi = f.metadata["limits"]
            assert lo <= f.metadata["min"] and f.metadata["max"] <= hi, f.name
            assert not math.isinf(hi)

    def test_brush_defaults_drive_the_brush_calls(self, engine):
        ranges = BrushRanges()
        engine.apply_brush(16, 16, ranges.size, ranges.water, ranges.pigment, 0.8, 0.2, 0.2)
        engine.apply_blend_brush_stroke(10, 16, 22, 16, ranges.size, ranges.blend_strength)
        engine.apply_water_brush_stroke(16, 16, 16, 16, ranges.size, ranges.water, ranges.flow)
        assert engine.total_pigment()[3] > 0.0
        assert engine.check_integrity()
