"""Flatten a component tree into world-space element meshes."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import numpy as np
import trimesh

from component_cam.contracts import Component, Element, EngineConfig, WorldMesh
from component_cam.errors import GeometryError, InputError
from component_cam.primitives import tessellate, validate_element

logger = logging.getLogger(__name__)


def _postprocess_mesh(mesh: trimesh.Trimesh) -> trimesh.Trimesh:
    """Normalize mesh topology after tessellation and placement."""
    out = mesh.copy()
    out.merge_vertices(digits_vertex=7)
    out.update_faces(out.unique_faces())
    out.update_faces(out.nondegenerate_faces())
    out.remove_unreferenced_vertices()
    out.fix_normals()
    return out


def iter_elements(component: Component, max_depth: int):
    """Yield ``(element, world_matrix)`` depth-first in input order.

    Raises GeometryError when nesting exceeds ``max_depth``. This also stops
    cyclic component graphs.
    """
    yield from _walk(component, np.eye(4), max_depth, 0)


def _walk(component: Component, parent: np.ndarray, max_depth: int, depth: int):
    if depth > max_depth:
        raise GeometryError(
            f"Component nesting exceeds max depth {max_depth} at {component.id!r}"
        )
    frame = parent @ component.transform.matrix()
    for child in component.elements:
        if isinstance(child, Component):
            yield from _walk(child, frame, max_depth, depth + 1)
        elif isinstance(child, Element):
            yield child, frame @ child.transform.matrix()
        else:
            raise InputError(f"Unsupported child in {component.id!r}: {type(child).__name__}")


def validate_component(component: Component, config: Optional[EngineConfig] = None) -> List[str]:
    """Collect parameter errors for every element of the tree."""
    config = config or EngineConfig()
    errors: List[str] = []
    for element, _ in iter_elements(component, config.max_nesting_depth):
        errors.extend(validate_element(element))
    return errors


def normalize_component(
    component: Component, config: Optional[EngineConfig] = None
) -> List[WorldMesh]:
    """Tessellate every element and place it in the shared world frame.

    Args:
        component: Root of the assembly tree.
        config: Tessellation resolution and nesting limit.

    Returns:
        One WorldMesh per element, in depth-first input order.
    """
    config = config or EngineConfig()
    errors = validate_component(component, config)
    if errors:
        raise InputError("Invalid element parameters: " + "; ".join(errors))

    world_meshes: List[WorldMesh] = []
    for element, matrix in iter_elements(component, config.max_nesting_depth):
        local = tessellate(element, config)
        placed = local.copy()
        placed.apply_transform(matrix)
        mesh = _postprocess_mesh(placed)
        world_meshes.append(WorldMesh(
            index=len(world_meshes),
            element=element,
            mesh=mesh,
            world_matrix=matrix,
        ))
        logger.debug(
            "Element %s (%s): %d faces, z [%.3f, %.3f]",
            element.id, element.type, len(mesh.faces), *world_meshes[-1].z_range,
        )

    if not world_meshes:
        raise GeometryError(f"Component {component.id!r} contains no elements")
    logger.info("Normalized %d elements from %s", len(world_meshes), component.id)
    return world_meshes


def combined_bounds(world_meshes: Sequence[WorldMesh]) -> np.ndarray:
    """(2, 3) bounding box over all element meshes."""
    lows = np.array([wm.mesh.bounds[0] for wm in world_meshes])
    highs = np.array([wm.mesh.bounds[1] for wm in world_meshes])
    return np.array([lows.min(axis=0), highs.max(axis=0)])
