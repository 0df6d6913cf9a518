"""Public API for the component toolpath engine."""

from component_cam.contracts import (
    Component,
    Element,
    EngineConfig,
    ToolpathPlan,
    ToolpathResult,
    ToolpathSettings,
    Transform,
)
from component_cam.errors import EngineError, GeometryError, InputError
from component_cam.gcode_metrics import analyze_gcode, parse_motion_waypoints
from component_cam.loaders import component_from_dict, load_component, load_settings
from component_cam.pipeline import generate_component_toolpath

__all__ = [
    "Component",
    "Element",
    "EngineConfig",
    "EngineError",
    "GeometryError",
    "InputError",
    "ToolpathPlan",
    "ToolpathResult",
    "ToolpathSettings",
    "Transform",
    "analyze_gcode",
    "component_from_dict",
    "generate_component_toolpath",
    "load_component",
    "load_settings",
    "parse_motion_waypoints",
]
