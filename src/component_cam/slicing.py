"""Z-level schedule and planar cross-sections of a solid.

Each level is cut with ``trimesh.intersections.mesh_plane``; the resulting
3D segments are projected to XY and chained into closed loops by joining
endpoints that agree after rounding.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from typing import List, Optional, Sequence, Tuple

import numpy as np
import trimesh

from component_cam.contracts import CrossSection, EngineConfig, Loop
from component_cam.errors import (
    SLICE_EMPTY_LEVEL,
    SLICE_OPEN_CHAIN,
    EngineWarning,
    InputError,
)
from component_cam.polygons import is_closed, ring_to_polygon, signed_area

logger = logging.getLogger(__name__)


def level_schedule(depth: float, stepdown: float) -> List[float]:
    """Relative Z levels from 0 down to ``-depth``.

    The last increment is clamped so the schedule lands exactly on -depth;
    there are always ``ceil(depth / stepdown) + 1`` levels.
    """
    if depth <= 0:
        raise InputError(f"depth must be > 0 (got {depth})")
    if stepdown <= 0 or stepdown > depth:
        raise InputError(f"stepdown must be in (0, depth] (got {stepdown})")
    n = int(math.ceil(depth / stepdown - 1e-9))
    levels = [0.0 - min(i * stepdown, depth) for i in range(n + 1)]
    levels[-1] = 0.0 - depth
    return levels


def chain_segments(
    segments: np.ndarray, digits: int = 6
) -> Tuple[List[np.ndarray], List[np.ndarray]]:
    """Chain 2D segments ``(n, 2, 2)`` into rings.

    Returns:
        (closed_rings, open_chains). Closed rings repeat their first point.
    """
    segs = np.asarray(segments, dtype=float).reshape(-1, 2, 2)
    if len(segs) == 0:
        return [], []

    keys = np.round(segs.reshape(-1, 2), digits) + 0.0  # folds -0.0 into 0.0
    unique, inverse = np.unique(keys, axis=0, return_inverse=True)
    edges = inverse.reshape(-1).reshape(-1, 2)
    edges = edges[edges[:, 0] != edges[:, 1]]
    if len(edges) == 0:
        return [], []
    edges = np.unique(np.sort(edges, axis=1), axis=0)

    adjacency = defaultdict(list)
    for i, (a, b) in enumerate(edges):
        adjacency[a].append(i)
        adjacency[b].append(i)

    used = np.zeros(len(edges), dtype=bool)

    def _extend(chain: List[int]) -> None:
        current = chain[-1]
        while current != chain[0]:
            nxt = next((e for e in adjacency[current] if not used[e]), None)
            if nxt is None:
                return
            used[nxt] = True
            a, b = edges[nxt]
            current = b if a == current else a
            chain.append(current)

    closed, open_chains = [], []
    for start in range(len(edges)):
        if used[start]:
            continue
        used[start] = True
        chain = [int(edges[start][0]), int(edges[start][1])]
        _extend(chain)
        if chain[-1] == chain[0]:
            if len(chain) >= 4:
                closed.append(unique[chain])
            continue
        # Open so far: grow the other end too so the whole chain is reported.
        chain.reverse()
        _extend(chain)
        open_chains.append(unique[chain])
    return closed, open_chains


def classify_loops(
    rings: Sequence[np.ndarray], source: str, config: EngineConfig
) -> List[Loop]:
    """Drop degenerate rings and mark holes by containment parity."""
    kept = []
    for ring in rings:
        if not is_closed(ring, config.closure_epsilon):
            continue
        if abs(signed_area(ring)) < config.min_loop_area_mm2:
            logger.debug("Discarding degenerate loop (%d points) from %s", len(ring), source)
            continue
        kept.append(ring)

    polys = [ring_to_polygon(r) for r in kept]
    probes = [p.representative_point() if p.is_valid else p.centroid for p in polys]
    loops = []
    for i, ring in enumerate(kept):
        depth = sum(
            1 for j, other in enumerate(polys)
            if j != i and other.area > polys[i].area and other.contains(probes[i])
        )
        loops.append(Loop(points=ring, is_hole=bool(depth % 2), source=source))
    return loops


def slice_plane(
    z_world: float, z_range: Tuple[float, float], epsilon: float
) -> Optional[float]:
    """Cutting height for a level at world height ``z_world``.

    The plane sits ``epsilon`` below the level and is clamped inside
    ``z_range``, so a level lying on the bottom face still cuts the material
    just above it. None when the level is outside the range.
    """
    z_lo, z_hi = z_range
    plane = z_world - epsilon
    if plane > z_hi or z_world < z_lo - epsilon:
        return None
    return max(plane, z_lo + epsilon)


def section_mesh(
    mesh: trimesh.Trimesh, plane_z: float, source: str, config: EngineConfig
) -> Tuple[List[Loop], int]:
    """Closed loops of ``mesh`` cut by the plane ``z = plane_z``.

    Returns:
        (loops, number_of_open_chains_dropped)
    """
    lines = trimesh.intersections.mesh_plane(
        mesh, plane_normal=[0.0, 0.0, 1.0], plane_origin=[0.0, 0.0, plane_z]
    )
    if len(lines) == 0:
        return [], 0
    closed, open_chains = chain_segments(
        np.asarray(lines)[:, :, :2], digits=config.chain_digits
    )
    return classify_loops(closed, source, config), len(open_chains)


def cross_section(
    solid: trimesh.Trimesh,
    top_z: float,
    levels: Sequence[float],
    config: Optional[EngineConfig] = None,
) -> Tuple[List[CrossSection], List[EngineWarning]]:
    """Slice ``solid`` at every scheduled level.

    Levels are relative to ``top_z``. Each cut is taken ``slice_epsilon``
    below the level so faces lying exactly on a level resolve to the
    material underneath; the bottom level is clamped back into the solid.
    Empty levels are skipped with a warning.
    """
    config = config or EngineConfig()
    sections: List[CrossSection] = []
    warnings: List[EngineWarning] = []
    z_range = (float(solid.bounds[0][2]), float(solid.bounds[1][2]))

    for index, level in enumerate(levels):
        z_world = top_z + level
        plane_z = slice_plane(z_world, z_range, config.slice_epsilon)
        if plane_z is None:
            loops, n_open = [], 0
        else:
            loops, n_open = section_mesh(solid, plane_z, "solid", config)
        if n_open:
            warnings.append(EngineWarning(
                SLICE_OPEN_CHAIN,
                f"dropped {n_open} open chain(s) at level {index}",
                z=level,
            ))
        if not loops:
            warnings.append(EngineWarning(
                SLICE_EMPTY_LEVEL, f"no closed loops at level {index}", z=level,
            ))
            logger.warning("Level %d (Z%.3f) produced no loops; skipped", index, level)
            continue
        logger.debug("Level %d (Z%.3f): %d loops", index, level, len(loops))
        sections.append(CrossSection(
            level_index=index, z=level, z_world=z_world, loops=loops,
        ))

    logger.info("Sliced %d/%d levels", len(sections), len(levels))
    return sections, warnings
