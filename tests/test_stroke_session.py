"""Tests for stroke values and drag sessions."""

import dataclasses

import numpy as np
import pytest

from watercolor_engine.stroke import BrushMode, BrushStroke, StrokeSession


class TestStrokeSession:
    def test_begin(self):
        session = StrokeSession.begin(3, 4, radius=8.0, timestamp=10.0)
        assert (session.x, session.y) == (3.0, 4.0)
        assert session.velocity == 0.0
        assert session.radius == 8.0

    def test_advance_returns_segment_from_last_point(self):
        session = StrokeSession.begin(0, 0, radius=8.0, timestamp=0.0)
        session, segment = session.advance(6, 8, timestamp=1.0)
        assert (segment.x0, segment.y0, segment.x1, segment.y1) == (0.0, 0.0, 6.0, 8.0)
        assert (session.x, session.y, session.timestamp) == (6.0, 8.0, 1.0)

    def test_velocity_is_smoothed(self):
        session = StrokeSession.begin(0, 0, radius=8.0, timestamp=0.0)
        # 60 cells in one second is one cell per frame
        session, segment = session.advance(60, 0, timestamp=1.0)
        assert session.velocity == pytest.approx(0.3)
        assert segment.velocity == session.velocity
        session, _ = session.advance(120, 0, timestamp=2.0)
        assert session.velocity == pytest.approx(0.51)

    def test_fast_drag_thins_the_brush(self):
        session = StrokeSession.begin(0, 0, radius=10.0, timestamp=0.0)
        slow, _ = session.advance(1, 0, timestamp=1.0)
        fast, segment = session.advance(600, 0, timestamp=0.1)
        assert slow.radius > fast.radius
        assert fast.radius == pytest.approx(6.0)
        assert segment.size == fast.radius

    def test_session_is_immutable(self):
        session = StrokeSession.begin(0, 0, radius=5.0, timestamp=0.0)
        session.advance(10, 10, timestamp=1.0)
        assert (session.x, session.y) == (0.0, 0.0)
        with pytest.raises(dataclasses.FrozenInstanceError):
            session.x = 1.0

    def test_repeated_timestamp_does_not_blow_up(self):
        session = StrokeSession.begin(0, 0, radius=5.0, timestamp=1.0)
        session, segment = session.advance(3, 4, timestamp=1.0)
        assert np.isfinite(session.velocity)
        assert segment.size >= 3.0

    def test_default_clock(self):
        session = StrokeSession.begin(0, 0, radius=5.0)
        session, segment = session.advance(1, 1)
        assert segment.velocity >= 0.0


class TestBrushStroke:
    def test_dab_is_zero_length(self):
        stroke = BrushStroke.dab(4, 5, 3.0, water=1.0)
        assert (stroke.x0, stroke.y0) == (stroke.x1, stroke.y1)
        assert stroke.mode is BrushMode.PAINT

    def test_segment_to_stroke(self):
        session = StrokeSession.begin(0, 0, radius=4.0, timestamp=0.0)
        _, segment = session.advance(10, 0, timestamp=0.5)
        stroke = segment.to_stroke("water", water=2.0, flow=1.5)
        assert stroke.mode is BrushMode.WATER
        assert stroke.velocity == segment.velocity
        assert stroke.size == segment.size

    def test_unknown_mode_is_rejected(self):
        with pytest.raises(ValueError):
            BrushMode("spray")


class TestApplyStroke:
    def test_session_drives_engine(self, engine):
        session = StrokeSession.begin(4, 16, radius=3.0, timestamp=0.0)
        for k, x in enumerate(range(8, 29, 4), start=1):
            session, segment = session.advance(x, 16, timestamp=k / 60.0)
            engine.apply_stroke(segment.to_stroke(BrushMode.PAINT, water=1.5, pigment=0.5, color=(0.9, 0.2, 0.1)))
        water = engine.grid.water_depth.to_numpy()
        assert np.all(water[16, 4:29] > 0.0)

    @pytest.mark.parametrize("mode", list(BrushMode))
    def test_every_mode_dispatches(self, engine, mode):
        engine.apply_brush(16, 16, 5, 2.0, 1.0, 0.4, 0.4, 0.4)
        before = (engine.grid.water_depth.to_numpy(), engine.grid.pigment_suspended.to_numpy())
        stroke = BrushStroke(12, 16, 20, 16, 3.0, mode=mode, water=1.0, pigment=1.0, color=(0.1, 0.9, 0.1), strength=1.0, flow=1.0)
        engine.apply_stroke(stroke)
        after = (engine.grid.water_depth.to_numpy(), engine.grid.pigment_suspended.to_numpy())
        assert not all(np.array_equal(x, y) for x, y in zip(before, after))

    def test_matches_direct_call(self, make_engine):
        a, b = make_engine(), make_engine()
        for e in (a, b):
            e.apply_brush(16, 16, 5, 2.0, 1.0, 0.4, 0.4, 0.4)
        a.apply_fade_brush_stroke(16, 16, 16, 16, 4, 0.5)
        b.apply_stroke(BrushStroke.dab(16, 16, 4, mode=BrushMode.FADE, strength=0.5))
        np.testing.assert_array_equal(a.render(), b.render())
