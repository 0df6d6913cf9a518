"""Tool-radius compensation of section loops."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np
from shapely.geometry import Polygon

from component_cam.contracts import OFFSET_MODES, CrossSection, EngineConfig, Loop
from component_cam.errors import OFFSET_EXCEEDS_FEATURE, EngineWarning

logger = logging.getLogger(__name__)


def offset_distance(loop: Loop, tool_diameter: float, mode: str) -> float:
    """Signed buffer distance for ``loop``: positive grows the ring.

    ``outside`` keeps the tool off the material and ``inside`` keeps it on the
    material side. A hole bounds material from the other side, so its sign
    flips.
    """
    if mode not in OFFSET_MODES:
        raise ValueError(f"Unknown offset mode: {mode!r}")
    if mode == "center":
        return 0.0
    sign = 1.0 if mode == "outside" else -1.0
    if loop.is_hole:
        sign = -sign
    return sign * tool_diameter / 2.0


def offset_loop(
    loop: Loop, tool_diameter: float, mode: str, config: Optional[EngineConfig] = None
) -> Tuple[Loop, Optional[str]]:
    """Offset one loop by the tool radius.

    Returns:
        (loop, problem). When the offset collapses, splits or pinches the ring,
        the nominal loop is returned with a problem description.
    """
    config = config or EngineConfig()
    distance = offset_distance(loop, tool_diameter, mode)
    if distance == 0.0:
        return Loop(points=loop.points.copy(), is_hole=loop.is_hole, source=loop.source), None

    poly = loop.polygon()
    if not poly.is_valid:
        poly = poly.buffer(0)
    result = poly.buffer(distance, join_style="mitre", mitre_limit=config.mitre_limit)

    problem = None
    if result.is_empty:
        problem = "offset collapses the loop"
    elif not isinstance(result, Polygon):
        problem = f"offset splits the loop into {len(result.geoms)} parts"
    elif len(result.interiors) > 0:
        problem = "offset pinches the loop"
    if problem is not None:
        nominal = Loop(points=loop.points.copy(), is_hole=loop.is_hole, source=loop.source)
        return nominal, problem

    ring = np.asarray(result.exterior.coords, dtype=float)[:, :2]
    return Loop(points=ring, is_hole=loop.is_hole, source=loop.source, offset=distance), None


def offset_sections(
    sections: Sequence[CrossSection],
    tool_diameter: float,
    mode: str,
    config: Optional[EngineConfig] = None,
) -> Tuple[List[CrossSection], List[EngineWarning]]:
    """Offset every loop of every section. Levels are never dropped."""
    config = config or EngineConfig()
    out: List[CrossSection] = []
    warnings: List[EngineWarning] = []
    for section in sections:
        loops = []
        for i, loop in enumerate(section.loops):
            new_loop, problem = offset_loop(loop, tool_diameter, mode, config)
            if problem is not None:
                logger.warning(
                    "Level %d loop %d (%s): %s; using nominal boundary",
                    section.level_index, i, loop.source, problem,
                )
                warnings.append(EngineWarning(
                    OFFSET_EXCEEDS_FEATURE,
                    f"{problem} (tool {tool_diameter:g} mm, loop {i}); nominal boundary used",
                    z=section.z,
                    element_id=None if loop.source == "solid" else loop.source,
                ))
            loops.append(new_loop)
        out.append(CrossSection(
            level_index=section.level_index,
            z=section.z,
            z_world=section.z_world,
            loops=loops,
        ))
    return out, warnings
