"""Boolean union of all element meshes into one solid."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import trimesh

from component_cam.contracts import EngineConfig, UnionFailure, UnionResult, WorldMesh

logger = logging.getLogger(__name__)


def _solid_problem(mesh: Optional[trimesh.Trimesh]) -> Optional[str]:
    """Reason ``mesh`` is not a usable solid, or None."""
    if mesh is None or mesh.is_empty or len(mesh.faces) == 0:
        return "empty mesh"
    if not mesh.is_watertight:
        return "mesh is not watertight"
    if not mesh.is_volume:
        return "mesh does not bound a volume"
    return None


def unify_meshes(
    world_meshes: Sequence[WorldMesh], config: Optional[EngineConfig] = None
) -> UnionResult:
    """Left-fold ``union(acc, mesh_i)`` over the meshes in input order.

    The first failing input or intermediate result short-circuits the fold
    and is reported as a UnionFailure. No partial solid is returned.
    """
    config = config or EngineConfig()
    if not world_meshes:
        return UnionResult(failure=UnionFailure(-1, "", "no meshes to unify"))

    for wm in world_meshes:
        problem = _solid_problem(wm.mesh)
        if problem is not None:
            return _fail(wm, f"input {problem}")

    acc = world_meshes[0].mesh.copy()
    for wm in world_meshes[1:]:
        try:
            merged = trimesh.boolean.union([acc, wm.mesh], engine=config.boolean_engine)
        except Exception as exc:
            return _fail(wm, f"{type(exc).__name__}: {exc}")
        problem = _solid_problem(merged)
        if problem is not None:
            return _fail(wm, f"union result {problem}")
        acc = merged

    logger.info(
        "Unified %d meshes: %d faces, volume %.1f mm^3",
        len(world_meshes), len(acc.faces), acc.volume,
    )
    return UnionResult(solid=acc)


def _fail(wm: WorldMesh, reason: str) -> UnionResult:
    logger.warning("Union failed at element %d (%s): %s", wm.index, wm.element_id, reason)
    return UnionResult(failure=UnionFailure(wm.index, wm.element_id, reason))
