"""
Primitive registry: tessellation and analytic Z-profiles per element type.

Every tessellator returns a watertight mesh in the element's local frame,
centred on z=0. Every profiler returns the element's silhouette at a local
height as ``[(ring, is_hole), ...]``, ``[]`` when the plane misses the
element, or ``None`` when no analytic profile exists for that configuration.
"""
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
import trimesh
from shapely.geometry import Polygon
from shapely.geometry.polygon import orient

from component_cam.contracts import Element, EngineConfig
from component_cam.errors import GeometryError
from component_cam.polygons import (
    circle_ring,
    close_ring,
    ellipse_ring,
    polygon_rings,
    rect_ring,
    regular_polygon_ring,
)

Profile = List[Tuple[np.ndarray, bool]]

# Parameter defaults (mm) per element type.
PRIMITIVE_DEFAULTS: Dict[str, Dict[str, float]] = {
    "cube": {"width": 50.0, "depth": 50.0, "height": 50.0},
    "sphere": {"radius": 25.0},
    "hemisphere": {"radius": 25.0},
    "cylinder": {"radius": 25.0, "height": 50.0},
    "cone": {"radius": 25.0, "height": 50.0},
    "capsule": {"radius": 15.0, "height": 60.0},
    "ellipsoid": {"radiusX": 25.0, "radiusY": 15.0, "radiusZ": 20.0},
    "torus": {"radius": 25.0, "tube": 8.0},
    "pyramid": {"width": 50.0, "depth": 50.0, "height": 50.0},
    "prism": {"sides": 6, "radius": 25.0, "height": 50.0},
    "extrude": {"height": 20.0},
    "gear": {"teeth": 12, "radius": 25.0, "toothDepth": 4.0, "height": 10.0},
}

ALIASES = {"box": "cube", "rectangle": "cube"}

DEFAULT_EXTRUDE_PROFILE = [(-25.0, -25.0), (25.0, -25.0), (25.0, 25.0), (-25.0, 25.0)]


def canonical_type(element_type: str) -> str:
    t = str(element_type).lower()
    return ALIASES.get(t, t)


def _p(element: Element, name: str) -> float:
    return element.number(name, PRIMITIVE_DEFAULTS[canonical_type(element.type)][name])


def _center_z(mesh: trimesh.Trimesh) -> trimesh.Trimesh:
    zmin, zmax = mesh.bounds[0][2], mesh.bounds[1][2]
    mesh.apply_translation([0.0, 0.0, -(zmin + zmax) / 2.0])
    return mesh


def _extrude(polygon: Polygon, height: float) -> trimesh.Trimesh:
    mesh = trimesh.creation.extrude_polygon(orient(polygon), height)
    return _center_z(mesh)


# ─── Parameter validation ────────────────────────────────────────────────────


def validate_element(element: Element) -> List[str]:
    """Return parameter errors for a known element type. Unknown types pass."""
    etype = canonical_type(element.type)
    if etype not in PRIMITIVE_DEFAULTS:
        return []
    errors = []
    for name in PRIMITIVE_DEFAULTS[etype]:
        try:
            value = _p(element, name)
        except (TypeError, ValueError):
            errors.append(f"{element.id}: {name} is not a number")
            continue
        if not np.isfinite(value) or value <= 0:
            errors.append(f"{element.id}: {name} must be > 0 (got {value})")
    if errors:
        return errors

    if etype == "prism" and int(_p(element, "sides")) < 3:
        errors.append(f"{element.id}: prism needs at least 3 sides")
    if etype == "gear":
        if int(_p(element, "teeth")) < 3:
            errors.append(f"{element.id}: gear needs at least 3 teeth")
        if _p(element, "toothDepth") >= _p(element, "radius"):
            errors.append(f"{element.id}: toothDepth must be smaller than radius")
    if etype == "torus" and _p(element, "tube") >= _p(element, "radius"):
        errors.append(f"{element.id}: torus tube must be smaller than radius")
    if etype == "hemisphere" and element.params.get("direction", "up") not in ("up", "down"):
        errors.append(f"{element.id}: hemisphere direction must be 'up' or 'down'")
    if etype == "capsule" and element.params.get("orientation", "z") not in ("x", "y", "z"):
        errors.append(f"{element.id}: capsule orientation must be x, y or z")
    if etype == "extrude":
        try:
            poly = _extrude_polygon(element)
        except (TypeError, ValueError, IndexError):
            poly = Polygon()
        if poly.is_empty or poly.area <= 0 or not poly.is_valid:
            errors.append(f"{element.id}: extrude profile is not a valid polygon")
    return errors


# ─── Tessellators ────────────────────────────────────────────────────────────


def _tessellate_cube(element, config):
    return trimesh.creation.box(
        extents=[_p(element, "width"), _p(element, "depth"), _p(element, "height")]
    )


def _tessellate_sphere(element, config):
    n = config.curve_segments
    return trimesh.creation.uv_sphere(radius=_p(element, "radius"), count=[n, n])


def _tessellate_hemisphere(element, config):
    r = _p(element, "radius")
    n = config.curve_segments
    theta = np.linspace(0.0, 2.0 * np.pi, n, endpoint=False)
    points = []
    for phi in np.linspace(0.0, np.pi / 2.0, max(n // 4, 2) + 1)[:-1]:
        ring_r = r * np.cos(phi)
        z = r * np.sin(phi)
        points.append(np.column_stack([
            ring_r * np.cos(theta), ring_r * np.sin(theta), np.full(n, z),
        ]))
    points.append(np.array([[0.0, 0.0, r]]))
    points = np.vstack(points)
    if element.params.get("direction", "up") == "down":
        points[:, 2] *= -1.0
    return _center_z(trimesh.convex.convex_hull(points))


def _tessellate_cylinder(element, config):
    return trimesh.creation.cylinder(
        radius=_p(element, "radius"),
        height=_p(element, "height"),
        sections=config.curve_segments,
    )


def _tessellate_cone(element, config):
    # Base at -h/2, apex at +h/2.
    mesh = trimesh.creation.cone(
        radius=_p(element, "radius"),
        height=_p(element, "height"),
        sections=config.curve_segments,
    )
    return _center_z(mesh)


def _capsule_length(element) -> float:
    return max(_p(element, "height") - 2.0 * _p(element, "radius"), 0.0)


def _tessellate_capsule(element, config):
    r = _p(element, "radius")
    n = config.curve_segments
    length = _capsule_length(element)
    if length <= 0:
        mesh = trimesh.creation.uv_sphere(radius=r, count=[n, n])
    else:
        mesh = trimesh.creation.capsule(height=length, radius=r, count=[n, n])
    mesh.apply_translation(-mesh.bounds.mean(axis=0))
    orientation = element.params.get("orientation", "z")
    if orientation == "x":
        mesh.apply_transform(trimesh.transformations.rotation_matrix(np.pi / 2, [0, 1, 0]))
    elif orientation == "y":
        mesh.apply_transform(trimesh.transformations.rotation_matrix(np.pi / 2, [1, 0, 0]))
    return mesh


def _tessellate_ellipsoid(element, config):
    n = config.curve_segments
    mesh = trimesh.creation.uv_sphere(radius=1.0, count=[n, n])
    mesh.apply_scale([_p(element, "radiusX"), _p(element, "radiusY"), _p(element, "radiusZ")])
    return mesh


def _tessellate_torus(element, config):
    n = config.curve_segments
    return trimesh.creation.torus(
        major_radius=_p(element, "radius"),
        minor_radius=_p(element, "tube"),
        major_sections=n,
        minor_sections=max(n // 2, 8),
    )


def _tessellate_pyramid(element, config):
    hw, hd, h = _p(element, "width") / 2, _p(element, "depth") / 2, _p(element, "height")
    points = np.array([
        [-hw, -hd, 0.0], [hw, -hd, 0.0], [hw, hd, 0.0], [-hw, hd, 0.0], [0.0, 0.0, h],
    ])
    return _center_z(trimesh.convex.convex_hull(points))


def _tessellate_prism(element, config):
    ring = regular_polygon_ring((0.0, 0.0), _p(element, "radius"), int(_p(element, "sides")))
    return _extrude(Polygon(ring), _p(element, "height"))


def _extrude_polygon(element: Element) -> Polygon:
    profile = element.params.get("profile") or DEFAULT_EXTRUDE_PROFILE
    holes = element.params.get("holes") or []
    if len(profile) < 3:
        return Polygon()
    return Polygon(
        [tuple(map(float, p[:2])) for p in profile],
        [[tuple(map(float, p[:2])) for p in hole] for hole in holes if len(hole) >= 3],
    )


def _tessellate_extrude(element, config):
    return _extrude(_extrude_polygon(element), _p(element, "height"))


def _gear_ring(radius: float, teeth: int, tooth_depth: float) -> np.ndarray:
    """Trapezoidal tooth outline: root, tip, tip, root per tooth."""
    root = radius - tooth_depth
    pitch = 2.0 * np.pi / teeth
    pts = []
    for i in range(teeth):
        a = i * pitch
        for r, frac in ((root, 0.0), (radius, 0.25), (radius, 0.5), (root, 0.75)):
            pts.append((r * np.cos(a + frac * pitch), r * np.sin(a + frac * pitch)))
    return close_ring(np.array(pts))


def _gear_polygon(element: Element) -> Polygon:
    return Polygon(_gear_ring(
        _p(element, "radius"), int(_p(element, "teeth")), _p(element, "toothDepth"),
    ))


def _tessellate_gear(element, config):
    return _extrude(_gear_polygon(element), _p(element, "height"))


# ─── Analytic profiles ───────────────────────────────────────────────────────


def _profile_cube(element, z, config):
    if abs(z) > _p(element, "height") / 2:
        return []
    return [(rect_ring((0.0, 0.0), _p(element, "width"), _p(element, "depth")), False)]


def _profile_sphere(element, z, config):
    r = _p(element, "radius")
    if abs(z) >= r:
        return []
    return [(circle_ring((0.0, 0.0), np.sqrt(r * r - z * z), config.profile_segments), False)]


def _profile_hemisphere(element, z, config):
    r = _p(element, "radius")
    # Height above the flat face.
    h = z + r / 2 if element.params.get("direction", "up") == "up" else r / 2 - z
    if h < 0 or h >= r:
        return []
    return [(circle_ring((0.0, 0.0), np.sqrt(r * r - h * h), config.profile_segments), False)]


def _profile_cylinder(element, z, config):
    if abs(z) > _p(element, "height") / 2:
        return []
    return [(circle_ring((0.0, 0.0), _p(element, "radius"), config.profile_segments), False)]


def _profile_cone(element, z, config):
    h = _p(element, "height")
    if abs(z) > h / 2:
        return []
    radius = _p(element, "radius") * (h / 2 - z) / h
    if radius <= 0:
        return []
    return [(circle_ring((0.0, 0.0), radius, config.profile_segments), False)]


def _profile_capsule(element, z, config):
    if element.params.get("orientation", "z") != "z":
        return None
    r = _p(element, "radius")
    half = _capsule_length(element) / 2
    over = abs(z) - half
    if over >= r:
        return []
    radius = r if over <= 0 else np.sqrt(r * r - over * over)
    return [(circle_ring((0.0, 0.0), radius, config.profile_segments), False)]


def _profile_ellipsoid(element, z, config):
    rz = _p(element, "radiusZ")
    t = 1.0 - (z / rz) ** 2
    if t <= 0:
        return []
    s = np.sqrt(t)
    ring = ellipse_ring(
        (0.0, 0.0), _p(element, "radiusX") * s, _p(element, "radiusY") * s,
        config.profile_segments,
    )
    return [(ring, False)]


def _profile_torus(element, z, config):
    big, tube = _p(element, "radius"), _p(element, "tube")
    if abs(z) >= tube:
        return []
    d = np.sqrt(tube * tube - z * z)
    out = [(circle_ring((0.0, 0.0), big + d, config.profile_segments), False)]
    if big - d > 0:
        out.append((circle_ring((0.0, 0.0), big - d, config.profile_segments), True))
    return out


def _profile_pyramid(element, z, config):
    h = _p(element, "height")
    if abs(z) > h / 2:
        return []
    s = (h / 2 - z) / h
    if s <= 0:
        return []
    return [(rect_ring((0.0, 0.0), _p(element, "width") * s, _p(element, "depth") * s), False)]


def _profile_from_polygon(poly: Polygon) -> Profile:
    out: Profile = []
    for exterior, interiors in polygon_rings(orient(poly)):
        out.append((exterior, False))
        out.extend((ring, True) for ring in interiors)
    return out


def _profile_prism(element, z, config):
    if abs(z) > _p(element, "height") / 2:
        return []
    ring = regular_polygon_ring((0.0, 0.0), _p(element, "radius"), int(_p(element, "sides")))
    return [(ring, False)]


def _profile_extrude(element, z, config):
    if abs(z) > _p(element, "height") / 2:
        return []
    return _profile_from_polygon(_extrude_polygon(element))


def _profile_gear(element, z, config):
    if abs(z) > _p(element, "height") / 2:
        return []
    return _profile_from_polygon(_gear_polygon(element))


Tessellator = Callable[[Element, EngineConfig], trimesh.Trimesh]
Profiler = Callable[[Element, float, EngineConfig], Optional[Profile]]

TESSELLATORS: Dict[str, Tessellator] = {
    "cube": _tessellate_cube,
    "sphere": _tessellate_sphere,
    "hemisphere": _tessellate_hemisphere,
    "cylinder": _tessellate_cylinder,
    "cone": _tessellate_cone,
    "capsule": _tessellate_capsule,
    "ellipsoid": _tessellate_ellipsoid,
    "torus": _tessellate_torus,
    "pyramid": _tessellate_pyramid,
    "prism": _tessellate_prism,
    "extrude": _tessellate_extrude,
    "gear": _tessellate_gear,
}

PROFILERS: Dict[str, Profiler] = {
    "cube": _profile_cube,
    "sphere": _profile_sphere,
    "hemisphere": _profile_hemisphere,
    "cylinder": _profile_cylinder,
    "cone": _profile_cone,
    "capsule": _profile_capsule,
    "ellipsoid": _profile_ellipsoid,
    "torus": _profile_torus,
    "pyramid": _profile_pyramid,
    "prism": _profile_prism,
    "extrude": _profile_extrude,
    "gear": _profile_gear,
}


def tessellate(element: Element, config: EngineConfig) -> trimesh.Trimesh:
    """Local-frame mesh for ``element``. Raises GeometryError on unknown type."""
    etype = canonical_type(element.type)
    fn = TESSELLATORS.get(etype)
    if fn is None:
        raise GeometryError(f"Unknown element type {element.type!r} ({element.id})")
    return fn(element, config)


def profile_at(element: Element, z: float, config: EngineConfig) -> Optional[Profile]:
    """Analytic silhouette of ``element`` at local height ``z``."""
    fn = PROFILERS.get(canonical_type(element.type))
    if fn is None:
        return None
    return fn(element, z, config)
