"""Per-element level profiles used when the boolean union fails.

Each element contributes its own silhouette at each level. Profiles from
different elements are never merged, so overlapping regions are cut once per
element that covers them.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from component_cam.contracts import CrossSection, EngineConfig, Loop, WorldMesh
from component_cam.errors import SLICE_EMPTY_LEVEL, SLICE_OPEN_CHAIN, EngineWarning
from component_cam.polygons import signed_area, transform_ring
from component_cam.primitives import profile_at
from component_cam.slicing import section_mesh, slice_plane

logger = logging.getLogger(__name__)


def is_planar_rigid(matrix: np.ndarray, tol: float = 1e-9) -> bool:
    """True when ``matrix`` is a rotation about Z plus a translation."""
    linear = np.asarray(matrix, dtype=float)[:3, :3]
    if np.abs(linear[2, :2]).max() > tol or np.abs(linear[:2, 2]).max() > tol:
        return False
    if abs(linear[2, 2] - 1.0) > tol:
        return False
    xy = linear[:2, :2]
    return bool(np.allclose(xy.T @ xy, np.eye(2), atol=1e-7))


def element_loops(
    wm: WorldMesh, plane_z: float, config: EngineConfig
) -> Tuple[List[Loop], int]:
    """Loops of one element at world height ``plane_z``.

    Uses the analytic profile when the element is only rotated about Z;
    otherwise, or when the type has no profile for its configuration, the
    element's own mesh is sectioned.

    Returns:
        (loops, number_of_open_chains_dropped)
    """
    if is_planar_rigid(wm.world_matrix):
        local_z = plane_z - float(wm.world_matrix[2, 3])
        profile = profile_at(wm.element, local_z, config)
        if profile is not None:
            loops = []
            for ring, is_hole in profile:
                world_ring = transform_ring(ring, wm.world_matrix)
                if abs(signed_area(world_ring)) < config.min_loop_area_mm2:
                    continue
                loops.append(Loop(points=world_ring, is_hole=is_hole, source=wm.element_id))
            return loops, 0
    return section_mesh(wm.mesh, plane_z, wm.element_id, config)


def plan_fallback(
    world_meshes: Sequence[WorldMesh],
    top_z: float,
    levels: Sequence[float],
    config: Optional[EngineConfig] = None,
) -> Tuple[List[CrossSection], List[EngineWarning]]:
    """Build per-level sections from each element independently.

    Uses the same level schedule as the solid path; the slice plane is
    clamped into each element's own Z extent.
    """
    config = config or EngineConfig()
    sections: List[CrossSection] = []
    warnings: List[EngineWarning] = []

    for index, level in enumerate(levels):
        z_world = top_z + level
        loops: List[Loop] = []
        for wm in world_meshes:
            plane_z = slice_plane(z_world, wm.z_range, config.slice_epsilon)
            if plane_z is None:
                continue
            found, n_open = element_loops(wm, plane_z, config)
            if n_open:
                warnings.append(EngineWarning(
                    SLICE_OPEN_CHAIN,
                    f"dropped {n_open} open chain(s) of element {wm.element_id}",
                    z=level,
                    element_id=wm.element_id,
                ))
            loops.extend(found)

        if not loops:
            warnings.append(EngineWarning(
                SLICE_EMPTY_LEVEL, f"no element profiles at level {index}", z=level,
            ))
            logger.warning("Fallback level %d (Z%.3f) has no profiles; skipped", index, level)
            continue
        sections.append(CrossSection(
            level_index=index, z=level, z_world=z_world, loops=loops,
        ))

    logger.info(
        "Fallback planned %d/%d levels from %d elements",
        len(sections), len(levels), len(world_meshes),
    )
    return sections, warnings
