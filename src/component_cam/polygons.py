"""
2D ring helpers shared by the slicing, fallback and offsetting stages.

A ring is an (N, 2) float array. Closed rings repeat the first point at the
end. Conversions to and from Shapely keep that convention.
"""
from typing import List, Sequence, Tuple

import numpy as np
from shapely.geometry import MultiPolygon, Polygon


def close_ring(points: np.ndarray, tol: float = 1e-9) -> np.ndarray:
    """Return ``points`` with the first point repeated at the end if needed."""
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    if len(pts) == 0:
        return pts
    if np.linalg.norm(pts[0] - pts[-1]) > tol:
        pts = np.vstack([pts, pts[:1]])
    return pts


def is_closed(points: np.ndarray, tol: float) -> bool:
    pts = np.asarray(points, dtype=float)
    return len(pts) >= 4 and float(np.linalg.norm(pts[0] - pts[-1])) <= tol


def signed_area(points: np.ndarray) -> float:
    """Shoelace area. Positive for counter-clockwise rings."""
    pts = close_ring(points)
    if len(pts) < 4:
        return 0.0
    x, y = pts[:, 0], pts[:, 1]
    return 0.5 * float(np.sum(x[:-1] * y[1:] - x[1:] * y[:-1]))


def reverse_ring(points: np.ndarray) -> np.ndarray:
    return close_ring(np.asarray(points, dtype=float)[::-1])


def rotate_ring(points: np.ndarray, start: int) -> np.ndarray:
    """Re-start a closed ring at vertex ``start``."""
    open_pts = close_ring(points)[:-1]
    if len(open_pts) == 0:
        return close_ring(open_pts)
    start = start % len(open_pts)
    return close_ring(np.roll(open_pts, -start, axis=0))


def ring_to_polygon(points: np.ndarray) -> Polygon:
    """Convert a ring to a Shapely Polygon (empty if degenerate)."""
    pts = close_ring(points)
    if len(pts) < 4:
        return Polygon()
    return Polygon([tuple(p) for p in pts])


def polygon_rings(geometry) -> List[Tuple[np.ndarray, List[np.ndarray]]]:
    """Split a Polygon/MultiPolygon into (exterior, [interiors]) closed rings."""
    if geometry.is_empty:
        return []
    if isinstance(geometry, MultiPolygon):
        polys = list(geometry.geoms)
    elif isinstance(geometry, Polygon):
        polys = [geometry]
    else:
        polys = [g for g in getattr(geometry, "geoms", []) if isinstance(g, Polygon)]
    out = []
    for poly in polys:
        if poly.is_empty:
            continue
        exterior = np.asarray(poly.exterior.coords, dtype=float)[:, :2]
        interiors = [np.asarray(r.coords, dtype=float)[:, :2] for r in poly.interiors]
        out.append((exterior, interiors))
    return out


def circle_ring(center: Sequence[float], radius: float, segments: int) -> np.ndarray:
    """Closed, counter-clockwise polygonal circle starting at angle 0."""
    theta = np.linspace(0.0, 2.0 * np.pi, segments, endpoint=False)
    pts = np.column_stack([
        center[0] + radius * np.cos(theta),
        center[1] + radius * np.sin(theta),
    ])
    return close_ring(pts)


def ellipse_ring(center: Sequence[float], rx: float, ry: float, segments: int) -> np.ndarray:
    theta = np.linspace(0.0, 2.0 * np.pi, segments, endpoint=False)
    pts = np.column_stack([
        center[0] + rx * np.cos(theta),
        center[1] + ry * np.sin(theta),
    ])
    return close_ring(pts)


def rect_ring(center: Sequence[float], width: float, depth: float) -> np.ndarray:
    hx, hy = width / 2.0, depth / 2.0
    cx, cy = center[0], center[1]
    return close_ring(np.array([
        [cx - hx, cy - hy],
        [cx + hx, cy - hy],
        [cx + hx, cy + hy],
        [cx - hx, cy + hy],
    ]))


def regular_polygon_ring(
    center: Sequence[float], radius: float, sides: int, phase: float = 0.0
) -> np.ndarray:
    theta = phase + np.linspace(0.0, 2.0 * np.pi, sides, endpoint=False)
    pts = np.column_stack([
        center[0] + radius * np.cos(theta),
        center[1] + radius * np.sin(theta),
    ])
    return close_ring(pts)


def transform_ring(points: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Apply the XY part of a 4x4 transform (rotation about Z + translation)."""
    pts = close_ring(points)
    linear = np.asarray(matrix, dtype=float)[:2, :2]
    shift = np.asarray(matrix, dtype=float)[:2, 3]
    return pts @ linear.T + shift
