"""Contracts for the component toolpath engine.

Input model (Transform, Element, Component), settings/config objects, and the
intermediate and output records that flow between pipeline stages.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np
import trimesh
from shapely.geometry import Polygon

from component_cam.errors import EngineWarning, InputError
from component_cam.polygons import close_ring, ring_to_polygon, signed_area

Vec2 = Tuple[float, float]
Vec3 = Tuple[float, float, float]

OFFSET_MODES = ("inside", "outside", "center")
DIRECTIONS = ("climb", "conventional")
CONTROLLERS = ("fanuc", "heidenhain", "generic")


# ─── Configuration ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class EngineConfig:
    """Engine tolerances and tessellation resolution."""

    max_nesting_depth: int = 8
    curve_segments: int = 32
    profile_segments: int = 64
    slice_epsilon: float = 1e-4
    chain_digits: int = 6  # endpoint rounding when chaining slice segments
    closure_epsilon: float = 1e-6
    min_loop_area_mm2: float = 1e-6
    mitre_limit: float = 5.0
    collinear_tolerance_deg: float = 0.5
    boolean_engine: str = "manifold"
    rapid_feed_mm_min: float = 5000.0


def _snake_case(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


_CONVERTERS = {"float": float, "int": int, "bool": _to_bool, "str": str}


@dataclass
class ToolpathSettings:
    """Machining and controller settings for one program."""

    tool_diameter: float = 6.0
    depth: float = 10.0
    stepdown: float = 1.0
    feedrate: float = 800.0
    plungerate: float = 300.0
    offset: str = "outside"
    direction: str = "climb"
    controller: str = "fanuc"
    safe_height: float = 30.0
    program_name: str = "CAD_CAM"
    program_number: int = 1
    tool_number: int = 1
    spindle_speed: float = 12000.0
    use_metric_units: bool = True
    use_absolute_coordinates: bool = True
    optimize_rapid_moves: bool = True
    include_comments: bool = True
    coolant_on: bool = True
    use_high_precision: bool = False
    use_radius_compensation: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ToolpathSettings":
        """Build settings from camelCase or snake_case keys.

        Unknown keys are ignored. Values that cannot be coerced to the
        field type raise InputError.
        """
        known = {f.name: f for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            name = _snake_case(key)
            if name not in known:
                continue
            convert = _CONVERTERS[known[name].type]
            try:
                kwargs[name] = convert(value)
            except (TypeError, ValueError) as exc:
                raise InputError(f"Invalid value for {key}: {value!r}") from exc
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @property
    def decimals(self) -> int:
        return 4 if self.use_high_precision else 3

    def validate(self) -> Tuple[bool, List[str]]:
        """
        Check ranges and enumerations.

        Returns:
            (is_valid, list_of_errors)
        """
        errors = []
        positive = {
            "toolDiameter": self.tool_diameter,
            "depth": self.depth,
            "stepdown": self.stepdown,
            "feedrate": self.feedrate,
            "plungerate": self.plungerate,
            "safeHeight": self.safe_height,
            "spindleSpeed": self.spindle_speed,
        }
        for name, value in positive.items():
            if not math.isfinite(value) or value <= 0:
                errors.append(f"{name} must be > 0 (got {value})")

        if self.stepdown > 0 and self.depth > 0 and self.stepdown > self.depth:
            errors.append(
                f"stepdown ({self.stepdown}) must not exceed depth ({self.depth})"
            )
        if self.offset not in OFFSET_MODES:
            errors.append(f"offset must be one of {OFFSET_MODES} (got {self.offset!r})")
        if self.direction not in DIRECTIONS:
            errors.append(f"direction must be one of {DIRECTIONS} (got {self.direction!r})")
        if self.controller not in CONTROLLERS:
            errors.append(
                f"controller must be one of {CONTROLLERS} (got {self.controller!r})"
            )
        if self.tool_number < 1:
            errors.append(f"toolNumber must be >= 1 (got {self.tool_number})")
        if self.program_number < 1:
            errors.append(f"programNumber must be >= 1 (got {self.program_number})")
        if not self.program_name.strip():
            errors.append("programName must not be empty")

        return (len(errors) == 0, errors)


# ─── Input model ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Transform:
    """Placement of an element or component relative to its parent.

    Rotation is XYZ Euler in degrees about rotating axes. An explicit 4x4
    ``matrix_override`` replaces position/rotation/scale entirely.
    """

    position: Vec3 = (0.0, 0.0, 0.0)
    rotation_deg: Vec3 = (0.0, 0.0, 0.0)
    scale: Vec3 = (1.0, 1.0, 1.0)
    matrix_override: Optional[Tuple[float, ...]] = None

    def matrix(self) -> np.ndarray:
        if self.matrix_override is not None:
            return np.asarray(self.matrix_override, dtype=float).reshape(4, 4)
        rx, ry, rz = np.radians(np.asarray(self.rotation_deg, dtype=float))
        rotation = trimesh.transformations.euler_matrix(rx, ry, rz, axes="rxyz")
        translation = trimesh.transformations.translation_matrix(self.position)
        scale = np.diag([float(s) for s in self.scale] + [1.0])
        return translation @ rotation @ scale


@dataclass(frozen=True)
class Element:
    """A single primitive solid. ``type`` selects the tessellator/profiler."""

    id: str
    type: str
    params: Mapping[str, Any] = field(default_factory=dict)
    transform: Transform = field(default_factory=Transform)

    def number(self, name: str, default: float) -> float:
        value = self.params.get(name, default)
        if value is None:
            return float(default)
        return float(value)


@dataclass
class Component:
    """A node of the assembly tree. ``elements`` may hold nested Components."""

    id: str
    name: str = ""
    transform: Transform = field(default_factory=Transform)
    elements: List[Union[Element, "Component"]] = field(default_factory=list)


# ─── Stage records ───────────────────────────────────────────────────────────


@dataclass
class WorldMesh:
    """An element tessellated and placed in the shared world frame."""

    index: int
    element: Element
    mesh: trimesh.Trimesh
    world_matrix: np.ndarray

    @property
    def element_id(self) -> str:
        return self.element.id

    @property
    def element_type(self) -> str:
        return self.element.type

    @property
    def z_range(self) -> Tuple[float, float]:
        bounds = self.mesh.bounds
        return float(bounds[0][2]), float(bounds[1][2])


@dataclass
class UnionFailure:
    element_index: int
    element_id: str
    reason: str


@dataclass
class UnionResult:
    """Binary outcome of the CSG fold: a solid, or a failure. Never both."""

    solid: Optional[trimesh.Trimesh] = None
    failure: Optional[UnionFailure] = None

    @property
    def ok(self) -> bool:
        return self.solid is not None and self.failure is None


@dataclass
class Loop:
    """Closed 2D ring; ``points[0] == points[-1]``."""

    points: np.ndarray
    is_hole: bool = False
    source: str = "solid"
    offset: float = 0.0

    def __post_init__(self):
        self.points = close_ring(np.asarray(self.points, dtype=float))

    @property
    def vertices(self) -> np.ndarray:
        """Ring without the repeated closing point."""
        return self.points[:-1]

    @property
    def signed_area(self) -> float:
        return signed_area(self.points)

    @property
    def area(self) -> float:
        return abs(self.signed_area)

    def polygon(self) -> Polygon:
        return ring_to_polygon(self.points)


@dataclass
class CrossSection:
    level_index: int
    z: float  # relative to the top face
    z_world: float
    loops: List[Loop] = field(default_factory=list)


class MotionKind(Enum):
    """Controller-agnostic motion command kinds."""
    RAPID = "rapid"
    PLUNGE = "plunge"
    CUT = "cut"
    COMMENT = "comment"
    COMP_ON = "comp_on"
    COMP_OFF = "comp_off"


@dataclass
class MotionCommand:
    kind: MotionKind
    x: Optional[float] = None
    y: Optional[float] = None
    z: Optional[float] = None
    feed: Optional[float] = None
    level: Optional[int] = None
    text: str = ""
    side: str = ""  # "left" / "right" for COMP_ON

    @property
    def is_motion(self) -> bool:
        return self.kind in (MotionKind.RAPID, MotionKind.PLUNGE, MotionKind.CUT)


@dataclass
class ToolpathSegment:
    z: float
    level: Optional[int]
    points: List[Vec3]
    motion_kind: str  # "rapid" | "plunge" | "cut"

    def length(self) -> float:
        if len(self.points) < 2:
            return 0.0
        pts = np.asarray(self.points, dtype=float)
        return float(np.linalg.norm(np.diff(pts, axis=0), axis=1).sum())


@dataclass
class ToolpathPlan:
    """Ordered motion segments plus the level schedule and summary metrics."""

    segments: List[ToolpathSegment] = field(default_factory=list)
    levels: List[float] = field(default_factory=list)
    skipped_levels: List[float] = field(default_factory=list)
    strategy: str = "csg_section"
    loop_count: int = 0
    metrics: Dict[str, float] = field(default_factory=dict)

    def waypoints(self) -> List[Vec3]:
        """Visited tool positions in order, consecutive duplicates removed."""
        out: List[Vec3] = []
        for seg in self.segments:
            for p in seg.points:
                if out and np.allclose(out[-1], p, atol=1e-9):
                    continue
                out.append(p)
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            "levels": list(self.levels),
            "skipped_levels": list(self.skipped_levels),
            "loop_count": self.loop_count,
            "metrics": dict(self.metrics),
            "segments": [
                {
                    "z": seg.z,
                    "level": seg.level,
                    "motion_kind": seg.motion_kind,
                    "points": [list(p) for p in seg.points],
                }
                for seg in self.segments
            ],
        }


@dataclass
class GCodeProgram:
    header: List[str]
    body: List[str]
    footer: List[str]
    plan: ToolpathPlan
    controller: str

    @property
    def lines(self) -> List[str]:
        return self.header + self.body + self.footer

    @property
    def text(self) -> str:
        return "\n".join(self.lines) + "\n"


class EngineState(Enum):
    """States of the top-level toolpath pipeline."""
    IDLE = "IDLE"
    NORMALIZING = "NORMALIZING"
    UNIFYING = "UNIFYING"
    SLICING = "SLICING"
    FALLBACK_PLANNING = "FALLBACK_PLANNING"
    OFFSETTING = "OFFSETTING"
    SEQUENCING = "SEQUENCING"
    EMITTING = "EMITTING"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclass
class ToolpathResult:
    gcode: str
    warnings: List[str]
    plan: ToolpathPlan
    program: GCodeProgram
    strategy: str
    state_history: List[str] = field(default_factory=list)
    warning_records: List[EngineWarning] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gcode": self.gcode,
            "warnings": list(self.warnings),
            "plan": self.plan.to_dict(),
        }
