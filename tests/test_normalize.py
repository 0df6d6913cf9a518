"""Tests for component tree flattening into world-space meshes."""
import numpy as np
import pytest

from component_cam.contracts import Component, Element, EngineConfig, Transform
from component_cam.errors import GeometryError, InputError
from component_cam.normalize import combined_bounds, iter_elements, normalize_component

from conftest import make_element


class TestTransforms:
    """Element and ancestor transforms compose into one world frame."""

    def test_nested_translation(self):
        inner = Component(
            id="inner",
            transform=Transform(position=(0.0, 5.0, 0.0)),
            elements=[make_element("c", "cube", x=10.0, width=2, depth=2, height=2)],
        )
        root = Component(id="root", transform=Transform(position=(100.0, 0.0, 0.0)), elements=[inner])
        (wm,) = normalize_component(root)
        center = wm.mesh.bounds.mean(axis=0)
        assert center == pytest.approx([110.0, 5.0, 0.0])

    def test_rotation_about_z(self):
        root = Component(id="r", elements=[
            make_element("c", "cube", rotation=(0.0, 0.0, 90.0), width=40, depth=20, height=10),
        ])
        (wm,) = normalize_component(root)
        assert wm.mesh.extents == pytest.approx([20.0, 40.0, 10.0])

    def test_scale(self):
        el = Element(
            id="s", type="cube", params={"width": 10, "depth": 10, "height": 10},
            transform=Transform(scale=(2.0, 1.0, 0.5)),
        )
        (wm,) = normalize_component(Component(id="r", elements=[el]))
        assert wm.mesh.extents == pytest.approx([20.0, 10.0, 5.0])
        assert wm.mesh.is_volume

    def test_matrix_override(self):
        matrix = np.eye(4)
        matrix[:3, 3] = [1.0, 2.0, 3.0]
        el = Element(
            id="m", type="cube", params={"width": 2, "depth": 2, "height": 2},
            transform=Transform(matrix_override=tuple(matrix.reshape(-1))),
        )
        (wm,) = normalize_component(Component(id="r", elements=[el]))
        assert wm.mesh.bounds.mean(axis=0) == pytest.approx([1.0, 2.0, 3.0])


class TestTraversal:
    """Input order, indices, and recursion guard."""

    def test_depth_first_order(self, cone_sphere_component):
        meshes = normalize_component(cone_sphere_component)
        assert [wm.element_id for wm in meshes] == ["cone", "ball"]
        assert [wm.index for wm in meshes] == [0, 1]

    def test_combined_bounds(self, cone_sphere_component):
        bounds = combined_bounds(normalize_component(cone_sphere_component))
        # Polygonal circles may sit just inside the nominal radius in X.
        assert bounds[0][0] == pytest.approx(-35.0, abs=0.1)
        assert bounds[1][0] == pytest.approx(35.0, abs=0.1)
        assert bounds[0][2] == pytest.approx(-15.0, abs=1e-6)
        assert bounds[1][2] == pytest.approx(15.0, abs=1e-6)

    def test_nesting_limit(self):
        node = Component(id="leaf", elements=[make_element("c", "cube")])
        for i in range(10):
            node = Component(id=f"level{i}", elements=[node])
        with pytest.raises(GeometryError):
            normalize_component(node, EngineConfig(max_nesting_depth=8))

    def test_nesting_within_limit(self):
        node = Component(id="leaf", elements=[make_element("c", "cube")])
        for i in range(8):
            node = Component(id=f"level{i}", elements=[node])
        assert len(normalize_component(node, EngineConfig(max_nesting_depth=8))) == 1

    def test_cycle_is_stopped(self):
        root = Component(id="loop", elements=[make_element("c", "cube")])
        root.elements.append(root)
        with pytest.raises(GeometryError):
            list(iter_elements(root, max_depth=8))

    def test_unknown_type(self):
        root = Component(id="r", elements=[make_element("q", "hyperboloid")])
        with pytest.raises(GeometryError):
            normalize_component(root)

    def test_invalid_parameters(self):
        root = Component(id="r", elements=[make_element("s", "sphere", radius=0)])
        with pytest.raises(InputError):
            normalize_component(root)

    def test_empty_component(self):
        with pytest.raises(GeometryError):
            normalize_component(Component(id="empty"))
