"""Build Components and settings from JSON-style dictionaries."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import numpy as np

from component_cam.contracts import Component, Element, ToolpathSettings, Transform
from component_cam.errors import InputError

_PLACEMENT_KEYS = {
    "id", "name", "type", "x", "y", "z", "position", "rotation", "scale",
    "transform", "elements", "children",
}
_GROUP_TYPES = {"component", "group", "assembly"}


def _vec3(value: Any, default: float, what: str):
    if value is None:
        return (default, default, default)
    if isinstance(value, (int, float)):
        return (float(value),) * 3
    if isinstance(value, Mapping):
        return tuple(float(value.get(k, default)) for k in ("x", "y", "z"))
    try:
        seq = [float(v) for v in value]
    except (TypeError, ValueError) as exc:
        raise InputError(f"Invalid {what}: {value!r}") from exc
    if len(seq) != 3:
        raise InputError(f"{what} needs 3 values (got {len(seq)})")
    return tuple(seq)


def transform_from_dict(data: Mapping[str, Any]) -> Transform:
    """Read placement from ``x/y/z``, ``position``, ``rotation``, ``scale``.

    ``transform`` may be a flat or nested 4x4 matrix, or a mapping with the
    same placement keys.
    """
    raw = data.get("transform")
    if isinstance(raw, Mapping):
        return transform_from_dict(raw)
    if raw is not None:
        try:
            flat = tuple(float(v) for v in np.asarray(raw, dtype=float).reshape(-1))
        except (TypeError, ValueError) as exc:
            raise InputError(f"Invalid transform matrix: {raw!r}") from exc
        if len(flat) != 16:
            raise InputError(f"Transform matrix needs 16 values (got {len(flat)})")
        return Transform(matrix_override=flat)

    if "position" in data:
        position = _vec3(data["position"], 0.0, "position")
    else:
        position = tuple(float(data.get(k, 0.0) or 0.0) for k in ("x", "y", "z"))
    return Transform(
        position=position,
        rotation_deg=_vec3(data.get("rotation"), 0.0, "rotation"),
        scale=_vec3(data.get("scale"), 1.0, "scale"),
    )


def _is_group(data: Mapping[str, Any]) -> bool:
    return str(data.get("type", "")).lower() in _GROUP_TYPES or (
        "type" not in data and ("elements" in data or "children" in data)
    )


def element_from_dict(data: Mapping[str, Any], fallback_id: str) -> Element:
    if "type" not in data:
        raise InputError(f"Element {data.get('id', fallback_id)!r} has no type")
    params = {k: v for k, v in data.items() if k not in _PLACEMENT_KEYS}
    if isinstance(data.get("params"), Mapping):
        params.update(params.pop("params"))
    return Element(
        id=str(data.get("id", fallback_id)),
        type=str(data["type"]),
        params=params,
        transform=transform_from_dict(data),
    )


def component_from_dict(data: Mapping[str, Any], fallback_id: str = "component") -> Component:
    """Recursively build a Component tree.

    Children with ``type`` of component/group (or with their own
    ``elements`` and no type) become nested Components.
    """
    if not isinstance(data, Mapping):
        raise InputError(f"Component must be an object (got {type(data).__name__})")
    comp_id = str(data.get("id", fallback_id))
    children = data.get("elements", data.get("children", []))
    if not isinstance(children, list):
        raise InputError(f"Component {comp_id!r}: elements must be a list")

    elements = []
    for i, child in enumerate(children):
        if not isinstance(child, Mapping):
            raise InputError(f"Component {comp_id!r}: element {i} is not an object")
        child_id = f"{comp_id}/{i}"
        if _is_group(child):
            elements.append(component_from_dict(child, child_id))
        else:
            elements.append(element_from_dict(child, child_id))
    return Component(
        id=comp_id,
        name=str(data.get("name", comp_id)),
        transform=transform_from_dict(data),
        elements=elements,
    )


def settings_from_dict(data: Optional[Mapping[str, Any]]) -> ToolpathSettings:
    return ToolpathSettings.from_dict(data or {})


def _read_json(path: Union[str, Path]) -> Dict[str, Any]:
    path = Path(path)
    try:
        with open(path) as f:
            return json.load(f)
    except json.JSONDecodeError as exc:
        raise InputError(f"Invalid JSON in {path}: {exc}") from exc


def load_component(path: Union[str, Path]) -> Component:
    data = _read_json(path)
    # Accept {"component": {...}} wrappers as well as a bare component.
    if isinstance(data, Mapping) and isinstance(data.get("component"), Mapping):
        data = data["component"]
    return component_from_dict(data, fallback_id=Path(path).stem)


def load_settings(path: Union[str, Path]) -> ToolpathSettings:
    return settings_from_dict(_read_json(path))
