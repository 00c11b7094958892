"""Tests for the engine facade: construction, lifecycle and diagnostics."""

import logging

import numpy as np
import pytest

from watercolor_engine import InvalidGridDimensions, WatercolorEngine, WatercolorEngineError
from watercolor_engine.configs import PhysicsParams, PigmentProps


class TestConstruction:
    def test_dimensions(self, make_engine):
        engine = make_engine(40, 24)
        assert engine.get_width() == 40
        assert engine.get_height() == 24
        assert engine.grid.water_depth.shape == (24, 40)

    @pytest.mark.parametrize("width, height", [(0, 10), (10, 0), (-3, 5), (5, float("nan")), ("wide", 5)])
    def test_invalid_dimensions(self, width, height):
        with pytest.raises(InvalidGridDimensions):
            WatercolorEngine(width, height)

    def test_invalid_dimensions_is_value_error(self):
        with pytest.raises(ValueError):
            WatercolorEngine(0, 0)
        assert issubclass(InvalidGridDimensions, WatercolorEngineError)

    def test_starts_with_default_parameters(self, engine):
        assert engine.physics == PhysicsParams()
        assert engine.pigment_props == PigmentProps()
        assert engine.show_texture is True


class TestConfiguration:
    def test_set_physics_replaces_wholesale(self, engine):
        engine.set_physics(0.3, 0.005, 0.2, 8.0, 25)
        assert engine.physics == PhysicsParams(dt=0.3, evaporation_rate=0.005, viscosity=0.2, pressure_coefficient=8.0, solver_iterations=25)

    def test_set_physics_clamps(self, engine):
        engine.set_physics(dt=-1.0, evaporation=float("nan"), viscosity=2.0, pressure=1.0, iterations=0)
        assert engine.physics.dt == 0.0
        assert engine.physics.evaporation_rate == PhysicsParams().evaporation_rate
        assert engine.physics.viscosity == 1.0
        assert engine.physics.solver_iterations == 1
        engine.step(3)
        assert engine.check_integrity()

    def test_set_pigment_props(self, engine):
        engine.set_pigment_props(0.2, 1.5)
        assert engine.pigment_props == PigmentProps(adhesion=0.2, granularity=1.5)

    def test_engines_do_not_share_state(self, make_engine):
        a, b = make_engine(), make_engine()
        blank = b.render()
        a.set_physics(0.5, 0.01, 0.3, 10.0, 5)
        a.set_pigment_props(0.3, 2.0)
        a.set_show_texture(False)
        a.apply_brush(16, 16, 6, 3.0, 1.5, 0.9, 0.1, 0.1)
        a.step(5)

        assert b.physics == PhysicsParams()
        assert b.pigment_props == PigmentProps()
        assert b.total_water() == 0.0
        np.testing.assert_array_equal(b.render(), blank)


class TestDiagnostics:
    def test_totals(self, engine):
        engine.apply_brush(16, 16, 4, 2.0, 1.0, 1.0, 0.0, 0.0)
        total = engine.total_pigment()
        assert total.shape == (4,)
        assert total.dtype == np.float64
        assert total[0] == pytest.approx(total[3])
        assert total[1] == 0.0
        assert engine.total_water() > 0.0

    def test_cell_snapshot(self, engine):
        engine.apply_brush(16, 16, 4, 2.0, 1.0, 0.0, 0.0, 1.0)
        cell = engine.grid.cell(16, 16)
        assert cell.water_depth > 0.0
        assert cell.suspended_mass > 0.0
        assert cell.pigment_suspended[2] == pytest.approx(cell.suspended_mass)
        assert cell.deposited_mass == 0.0
        assert 0.0 <= cell.paper_absorption <= 1.0
        assert engine.grid.cell(-5, 99) == engine.grid.cell(0, 31)

    def test_integrity_flags_nan(self, engine, caplog):
        assert engine.check_integrity()
        water = np.zeros((32, 32), dtype=np.float32)
        water[3, 4] = np.nan
        engine.grid.water_depth.from_numpy(water)
        with caplog.at_level(logging.ERROR, logger="watercolor_engine.engine"):
            assert not engine.check_integrity()
        assert "water_depth" in caplog.text

    def test_integrity_flags_negative_pigment(self, engine):
        layer = np.zeros((32, 32, 4), dtype=np.float32)
        layer[0, 0, 3] = -1.0
        engine.grid.pigment_deposited.from_numpy(layer)
        assert not engine.check_integrity()


class TestLifecycle:
    def test_warmup_leaves_fresh_canvas(self, make_engine):
        warmed = make_engine(24, 24, warmup=True)
        fresh = make_engine(24, 24)
        np.testing.assert_array_equal(warmed.render(), fresh.render())
        assert warmed.total_water() == 0.0

    def test_close_is_idempotent(self):
        engine = WatercolorEngine(8, 8)
        engine.close()
        engine.close()
        assert engine.grid.released

    def test_context_manager_releases(self):
        with WatercolorEngine(8, 8) as engine:
            engine.apply_brush(4, 4, 2, 1.0, 1.0, 0.5, 0.5, 0.5)
            assert engine.render().size == 8 * 8 * 4
        assert engine.grid.released

    def test_many_engines_can_coexist(self, make_engine):
        engines = [make_engine(12, 12) for _ in range(4)]
        for k, e in enumerate(engines):
            e.apply_brush(6, 6, 1 + k, 1.0, 1.0, 0.5, 0.5, 0.5)
        masses = [e.total_pigment()[3] for e in engines]
        assert masses == sorted(masses)
        assert len(set(masses)) == 4
