"""Tests for per-element fallback planning."""
import numpy as np
import pytest
import trimesh

from component_cam.contracts import Component
from component_cam.fallback import element_loops, is_planar_rigid, plan_fallback
from component_cam.normalize import combined_bounds, normalize_component
from component_cam.slicing import level_schedule

from conftest import make_element


def _centroid(loop):
    return loop.vertices.mean(axis=0)


def _plan(component, config, depth=5.0, stepdown=1.0):
    meshes = normalize_component(component, config)
    top = float(combined_bounds(meshes)[1][2])
    levels = level_schedule(depth, stepdown)
    return plan_fallback(meshes, top, levels, config), levels, top


class TestPlanarRigid:

    def test_identity(self):
        assert is_planar_rigid(np.eye(4))

    def test_rotation_about_z(self):
        matrix = trimesh.transformations.rotation_matrix(np.radians(30), [0, 0, 1])
        matrix[:3, 3] = [5, -2, 7]
        assert is_planar_rigid(matrix)

    def test_tilt(self):
        assert not is_planar_rigid(trimesh.transformations.rotation_matrix(0.3, [1, 0, 0]))

    def test_scale(self):
        assert not is_planar_rigid(np.diag([2.0, 2.0, 1.0, 1.0]))


class TestFallbackPlanner:
    """Each element keeps its own profile at every level."""

    def test_two_spheres_give_two_circles(self, two_spheres_component, fallback_config):
        (sections, warnings), levels, top = _plan(two_spheres_component, fallback_config)
        assert warnings == []
        assert len(sections) == len(levels) == 6
        for s in sections:
            assert [loop.source for loop in s.loops] == ["left", "right"]
            left, right = s.loops
            assert _centroid(left) == pytest.approx([-25.0, 0.0], abs=1e-6)
            assert _centroid(right) == pytest.approx([40.0, 0.0], abs=1e-6)
            expected = np.sqrt(10.0 ** 2 - (top + s.z - fallback_config.slice_epsilon) ** 2)
            radii = np.linalg.norm(left.vertices - [-25.0, 0.0], axis=1)
            assert radii == pytest.approx(np.full(len(radii), expected))

    def test_overlapping_profiles_are_not_merged(self, fallback_config):
        comp = Component(id="pair", elements=[
            make_element("a", "cube", width=20, depth=20, height=20),
            make_element("b", "cube", x=10.0, width=20, depth=20, height=20),
        ])
        (sections, _), _, _ = _plan(comp, fallback_config)
        for s in sections:
            assert len(s.loops) == 2
            assert [loop.area for loop in s.loops] == pytest.approx([400.0, 400.0])

    def test_tilted_element_uses_its_mesh(self, fallback_config):
        comp = Component(id="tilt", elements=[
            make_element("log", "cylinder", rotation=(90.0, 0.0, 0.0), radius=5, height=40),
        ])
        meshes = normalize_component(comp, fallback_config)
        loops, n_open = element_loops(meshes[0], 0.5, fallback_config)
        assert n_open == 0
        assert len(loops) == 1
        assert loops[0].source == "log"
        # Lying cylinder cut just above its axis: roughly a 40 x 10 rectangle.
        assert loops[0].area == pytest.approx(400.0, rel=0.02)

    def test_torus_hole(self, fallback_config):
        comp = Component(id="t", elements=[make_element("ring", "torus", radius=20, tube=5)])
        (sections, _), _, _ = _plan(comp, fallback_config, depth=5.0, stepdown=2.5)
        middle = sections[-1]
        assert sorted(loop.is_hole for loop in middle.loops) == [False, True]

    def test_level_without_elements_is_skipped(self, fallback_config):
        comp = Component(id="short", elements=[make_element("c", "cube", width=10, depth=10, height=2)])
        (sections, warnings), levels, _ = _plan(comp, fallback_config, depth=5.0, stepdown=1.0)
        # Levels 0, -1 and -2; the last lies on the bottom face.
        assert len(sections) == 3
        assert len(warnings) == len(levels) - 3

    def test_element_bottom_on_level_is_profiled(self, fallback_config):
        comp = Component(id="plates", elements=[
            make_element("thin", "cube", z=-1.0, width=10, depth=10, height=2),
            make_element("tall", "cube", x=30.0, z=-1.0, width=10, depth=10, height=6),
        ])
        (sections, warnings), levels, _ = _plan(comp, fallback_config, depth=4.0, stepdown=2.0)
        assert warnings == []
        assert [s.z for s in sections] == levels == [0.0, -2.0, -4.0]
        assert [loop.source for loop in sections[0].loops] == ["tall"]
        # Z-4 lies on the bottom face of "thin" (world Z-2).
        assert [loop.source for loop in sections[2].loops] == ["thin", "tall"]
        assert sections[2].loops[0].area == pytest.approx(100.0)
