"""Tests for tool-radius compensation of loops."""
import numpy as np
import pytest

from component_cam.contracts import CrossSection, EngineConfig, Loop
from component_cam.errors import OFFSET_EXCEEDS_FEATURE
from component_cam.offsetting import offset_distance, offset_loop, offset_sections
from component_cam.polygons import circle_ring, rect_ring


def _radii(loop):
    return np.linalg.norm(loop.vertices, axis=1)


class TestCircleOffsets:
    """Circle R offsets to R + D/2, R - D/2, or R."""

    def test_outside(self, circle_loop):
        out, problem = offset_loop(circle_loop, 6.0, "outside")
        assert problem is None
        assert _radii(out).mean() == pytest.approx(23.0, abs=0.05)
        assert out.offset == pytest.approx(3.0)

    def test_inside(self, circle_loop):
        out, problem = offset_loop(circle_loop, 6.0, "inside")
        assert problem is None
        assert _radii(out).mean() == pytest.approx(17.0, abs=0.05)
        assert out.offset == pytest.approx(-3.0)

    def test_center(self, circle_loop):
        out, problem = offset_loop(circle_loop, 6.0, "center")
        assert problem is None
        assert _radii(out) == pytest.approx(np.full(64, 20.0))

    def test_hole_sign_flips(self):
        hole = Loop(points=circle_ring((0.0, 0.0), 10.0, 64), is_hole=True)
        out, _ = offset_loop(hole, 6.0, "outside")
        assert _radii(out).mean() == pytest.approx(7.0, abs=0.05)
        out, _ = offset_loop(hole, 6.0, "inside")
        assert _radii(out).mean() == pytest.approx(13.0, abs=0.05)

    def test_distance_magnitude_is_tool_radius(self):
        loop = Loop(points=rect_ring((0, 0), 10, 10))
        for mode in ("inside", "outside"):
            assert abs(offset_distance(loop, 8.0, mode)) == 4.0
        assert offset_distance(loop, 8.0, "center") == 0.0

    def test_unknown_mode(self, circle_loop):
        with pytest.raises(ValueError):
            offset_distance(circle_loop, 6.0, "sideways")


class TestSquareCorners:

    def test_mitre_keeps_square_corners(self):
        square = Loop(points=rect_ring((0.0, 0.0), 20.0, 20.0))
        out, _ = offset_loop(square, 4.0, "outside")
        xs, ys = out.vertices[:, 0], out.vertices[:, 1]
        assert xs.max() == pytest.approx(12.0)
        assert ys.min() == pytest.approx(-12.0)
        assert out.area == pytest.approx(24.0 * 24.0)


class TestOversizedOffset:
    """An offset larger than the feature keeps the nominal loop and warns."""

    def test_collapse_keeps_nominal(self):
        small = Loop(points=circle_ring((0.0, 0.0), 2.0, 32), source="pin")
        out, problem = offset_loop(small, 6.0, "inside")
        assert problem is not None
        assert _radii(out) == pytest.approx(np.full(32, 2.0))

    def test_section_warning_and_level_kept(self):
        section = CrossSection(
            level_index=3, z=-3.0, z_world=7.0,
            loops=[
                Loop(points=circle_ring((0.0, 0.0), 2.0, 32), source="pin"),
                Loop(points=circle_ring((50.0, 0.0), 20.0, 32), source="disc"),
            ],
        )
        out, warnings = offset_sections([section], 6.0, "inside", EngineConfig())
        assert len(out) == 1
        assert len(out[0].loops) == 2
        assert len(warnings) == 1
        assert warnings[0].code == OFFSET_EXCEEDS_FEATURE
        assert warnings[0].z == -3.0
        assert warnings[0].element_id == "pin"

    def test_split_is_rejected(self):
        # Dumbbell: two 20 mm squares joined by a 2 mm neck.
        from shapely.geometry import box
        from shapely.ops import unary_union

        shape = unary_union([box(0, 0, 20, 20), box(20, 9, 40, 11), box(40, 0, 60, 20)])
        loop = Loop(points=np.asarray(shape.exterior.coords))
        out, problem = offset_loop(loop, 6.0, "inside")
        assert "split" in problem
        assert out.area == pytest.approx(shape.area)
