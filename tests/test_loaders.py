"""Tests for JSON component and settings loading."""
import json

import numpy as np
import pytest

from component_cam.contracts import Component, Element, ToolpathSettings
from component_cam.errors import InputError
from component_cam.loaders import (
    component_from_dict,
    load_component,
    load_settings,
    transform_from_dict,
)


ASSEMBLY = {
    "id": "table",
    "elements": [
        {"id": "top", "type": "cube", "width": 80, "depth": 40, "height": 4, "z": 30},
        {
            "id": "legs",
            "type": "group",
            "position": [0, 0, 14],
            "elements": [
                {"type": "cylinder", "radius": 2, "height": 28, "x": -35, "y": -15},
                {"type": "cylinder", "radius": 2, "height": 28, "x": 35, "y": 15},
            ],
        },
    ],
}


class TestTransforms:

    def test_xyz_keys(self):
        t = transform_from_dict({"x": 1, "y": 2, "z": 3, "rotation": [0, 0, 90]})
        assert t.position == (1.0, 2.0, 3.0)
        assert t.rotation_deg == (0.0, 0.0, 90.0)
        assert t.scale == (1.0, 1.0, 1.0)

    def test_uniform_scale(self):
        assert transform_from_dict({"scale": 2}).scale == (2.0, 2.0, 2.0)

    def test_nested_matrix(self):
        m = np.eye(4)
        m[:3, 3] = [5, 6, 7]
        t = transform_from_dict({"transform": m.tolist()})
        assert np.allclose(t.matrix(), m)

    def test_bad_matrix(self):
        with pytest.raises(InputError):
            transform_from_dict({"transform": [1, 2, 3]})

    def test_bad_vector(self):
        with pytest.raises(InputError):
            transform_from_dict({"rotation": [0, 90]})


class TestComponentTree:

    def test_groups_become_components(self):
        comp = component_from_dict(ASSEMBLY)
        assert comp.id == "table"
        top, legs = comp.elements
        assert isinstance(top, Element)
        assert isinstance(legs, Component)
        assert [e.id for e in legs.elements] == ["legs/0", "legs/1"]
        assert legs.transform.position == (0.0, 0.0, 14.0)

    def test_params_exclude_placement(self):
        top = component_from_dict(ASSEMBLY).elements[0]
        assert top.params == {"width": 80, "depth": 40, "height": 4}
        assert top.transform.position == (0.0, 0.0, 30.0)

    def test_nested_params_mapping(self):
        comp = component_from_dict({"elements": [
            {"id": "s", "type": "sphere", "params": {"radius": 7}},
        ]})
        assert comp.elements[0].params == {"radius": 7}

    def test_missing_type(self):
        with pytest.raises(InputError):
            component_from_dict({"elements": [{"id": "x", "radius": 3}]})

    def test_elements_must_be_list(self):
        with pytest.raises(InputError):
            component_from_dict({"elements": {"a": 1}})


class TestFiles:

    def test_load_wrapped_component(self, tmp_path):
        path = tmp_path / "table.json"
        path.write_text(json.dumps({"component": ASSEMBLY}))
        assert load_component(path).id == "table"

    def test_fallback_id_from_filename(self, tmp_path):
        path = tmp_path / "bracket.json"
        path.write_text(json.dumps({"elements": []}))
        assert load_component(path).id == "bracket"

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(InputError):
            load_component(path)

    def test_camel_case_settings(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({
            "toolDiameter": 3.175,
            "stepdown": "0.5",
            "controller": "heidenhain",
            "useMetricUnits": "false",
            "someUnknownKey": 1,
        }))
        s = load_settings(path)
        assert s.tool_diameter == pytest.approx(3.175)
        assert s.stepdown == pytest.approx(0.5)
        assert s.controller == "heidenhain"
        assert s.use_metric_units is False

    def test_uncoercible_setting(self):
        with pytest.raises(InputError):
            ToolpathSettings.from_dict({"feedrate": "fast"})

    def test_validation_messages(self):
        ok, errors = ToolpathSettings(depth=2.0, stepdown=5.0, offset="around").validate()
        assert not ok
        assert any("stepdown" in e for e in errors)
        assert any("offset" in e for e in errors)
