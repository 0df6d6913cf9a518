"""Loop winding and nearest-neighbour ordering within each level."""

from __future__ import annotations

import logging
from typing import List, Sequence

import numpy as np

from component_cam.contracts import DIRECTIONS, CrossSection, Loop, Vec2
from component_cam.polygons import reverse_ring, rotate_ring, signed_area

logger = logging.getLogger(__name__)


def orient_loop(loop: Loop, direction: str) -> Loop:
    """Force the winding for ``direction``.

    Climb: outer contours counter-clockwise, holes clockwise.
    Conventional: the opposite.
    """
    if direction not in DIRECTIONS:
        raise ValueError(f"Unknown cut direction: {direction!r}")
    want_ccw = (direction == "climb") != loop.is_hole
    if (signed_area(loop.points) > 0) == want_ccw:
        return loop
    return Loop(
        points=reverse_ring(loop.points),
        is_hole=loop.is_hole,
        source=loop.source,
        offset=loop.offset,
    )


def sequence_sections(
    sections: Sequence[CrossSection],
    direction: str,
    start: Vec2 = (0.0, 0.0),
) -> List[CrossSection]:
    """Order loops greedily by distance from the current tool position.

    The first level starts from ``start``; later levels start from where the
    previous level ended. Each chosen loop is re-started at its vertex
    nearest the tool, and since loops are closed that vertex is also the
    exit. Equal distances keep the earlier loop.
    """
    position = np.asarray(start, dtype=float)
    out: List[CrossSection] = []
    for section in sections:
        remaining = [orient_loop(loop, direction) for loop in section.loops]
        ordered: List[Loop] = []
        while remaining:
            best = None
            for idx, loop in enumerate(remaining):
                dist = np.linalg.norm(loop.vertices - position, axis=1)
                vertex = int(np.argmin(dist))
                if best is None or dist[vertex] < best[0]:
                    best = (float(dist[vertex]), idx, vertex)
            _, idx, vertex = best
            loop = remaining.pop(idx)
            entered = Loop(
                points=rotate_ring(loop.points, vertex),
                is_hole=loop.is_hole,
                source=loop.source,
                offset=loop.offset,
            )
            ordered.append(entered)
            position = entered.points[-1]
        out.append(CrossSection(
            level_index=section.level_index,
            z=section.z,
            z_world=section.z_world,
            loops=ordered,
        ))
    logger.debug("Sequenced %d levels", len(out))
    return out
