"""
Abstract motion commands and the machine-readable toolpath plan.

The emitter turns sequenced sections into controller-agnostic
MotionCommands. Coordinates are quantized to the output precision here, so
the plan built from the command list matches the emitted program exactly.
Formatters in ``component_cam.formatters`` render the same list to text.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import numpy as np

from component_cam.contracts import (
    CrossSection,
    EngineConfig,
    GCodeProgram,
    Loop,
    MotionCommand,
    MotionKind,
    ToolpathPlan,
    ToolpathSegment,
    ToolpathSettings,
    Vec3,
)
from component_cam.formatters import get_formatter
from component_cam.polygons import close_ring, signed_area

logger = logging.getLogger(__name__)

# Programs assume the tool starts at the work origin.
START_POSITION: Vec3 = (0.0, 0.0, 0.0)


def merge_collinear(points: np.ndarray, tolerance_deg: float) -> np.ndarray:
    """Drop ring vertices whose turn angle is below ``tolerance_deg``.

    The entry vertex is always kept. Angles are measured from the last kept
    vertex, so gentle curves cannot collapse into a single chord.
    """
    ring = close_ring(points)
    verts = ring[:-1]
    n = len(verts)
    if n <= 3:
        return ring
    tol = np.radians(tolerance_deg)
    kept = [verts[0]]
    for i in range(1, n):
        cur = verts[i]
        nxt = verts[(i + 1) % n]
        a = cur - kept[-1]
        b = nxt - cur
        la, lb = np.linalg.norm(a), np.linalg.norm(b)
        if la < 1e-12:
            continue
        if lb < 1e-12:
            continue
        cross = a[0] * b[1] - a[1] * b[0]
        angle = np.arctan2(abs(cross), float(np.dot(a, b)))
        if angle >= tol:
            kept.append(cur)
    if len(kept) < 3:
        return ring
    return close_ring(np.array(kept))


def compensation_side(loop: Loop, offset_mode: str) -> str:
    """G41/G42 side for cutting ``loop`` in its current winding."""
    tool_outside_ring = (offset_mode == "outside") != loop.is_hole
    ccw = signed_area(loop.points) > 0
    # Travelling counter-clockwise, the ring interior is on the left.
    return "right" if ccw == tool_outside_ring else "left"


class _Builder:
    """Accumulates quantized commands, dropping moves that go nowhere."""

    def __init__(self, decimals: int):
        self.decimals = decimals
        self.commands: List[MotionCommand] = []
        self.position = list(START_POSITION)

    def _q(self, value: Optional[float]) -> Optional[float]:
        if value is None:
            return None
        return round(float(value), self.decimals) + 0.0

    def move(self, kind, x=None, y=None, z=None, feed=None, level=None):
        x, y, z = self._q(x), self._q(y), self._q(z)
        target = [
            self.position[0] if x is None else x,
            self.position[1] if y is None else y,
            self.position[2] if z is None else z,
        ]
        if target == self.position:
            return
        self.commands.append(MotionCommand(kind=kind, x=x, y=y, z=z, feed=feed, level=level))
        self.position = target

    def add(self, command: MotionCommand):
        self.commands.append(command)


def build_motion_commands(
    sections: Sequence[CrossSection],
    settings: ToolpathSettings,
    config: Optional[EngineConfig] = None,
    compensate: bool = False,
) -> List[MotionCommand]:
    """Controller-agnostic command list for sequenced sections.

    Per loop: retract to safe height, rapid to the entry point, plunge at the
    plunge rate, then feed through the loop. A final retract ends the list.
    """
    config = config or EngineConfig()
    b = _Builder(settings.decimals)
    safe = settings.safe_height
    comments = settings.include_comments

    b.move(MotionKind.RAPID, z=safe)
    total = len(sections)
    for n, section in enumerate(sections, 1):
        if comments:
            b.add(MotionCommand(
                MotionKind.COMMENT,
                text=f"LEVEL {n} OF {total} DEPTH {abs(section.z):.{settings.decimals}f}",
                level=section.level_index,
            ))
        for loop in section.loops:
            points = loop.points
            if settings.optimize_rapid_moves:
                points = merge_collinear(points, config.collinear_tolerance_deg)
            entry = points[0]
            b.move(MotionKind.RAPID, z=safe, level=section.level_index)
            b.move(MotionKind.RAPID, x=entry[0], y=entry[1], level=section.level_index)
            b.move(
                MotionKind.PLUNGE, z=section.z,
                feed=settings.plungerate, level=section.level_index,
            )
            if compensate:
                b.add(MotionCommand(
                    MotionKind.COMP_ON,
                    side=compensation_side(loop, settings.offset),
                    level=section.level_index,
                ))
            for p in points[1:]:
                b.move(
                    MotionKind.CUT, x=p[0], y=p[1], z=section.z,
                    feed=settings.feedrate, level=section.level_index,
                )
            if compensate:
                b.add(MotionCommand(MotionKind.COMP_OFF, level=section.level_index))
    b.move(MotionKind.RAPID, z=safe)
    return b.commands


def build_plan(
    commands: Sequence[MotionCommand],
    settings: ToolpathSettings,
    config: Optional[EngineConfig] = None,
    levels: Sequence[float] = (),
    skipped_levels: Sequence[float] = (),
    strategy: str = "csg_section",
    loop_count: int = 0,
) -> ToolpathPlan:
    """Group motion commands into segments and compute summary metrics."""
    config = config or EngineConfig()
    position = START_POSITION
    segments: List[ToolpathSegment] = []
    lengths = {"rapid": 0.0, "plunge": 0.0, "cut": 0.0}

    for cmd in commands:
        if not cmd.is_motion:
            continue
        target = (
            position[0] if cmd.x is None else cmd.x,
            position[1] if cmd.y is None else cmd.y,
            position[2] if cmd.z is None else cmd.z,
        )
        kind = cmd.kind.value
        lengths[kind] += float(np.linalg.norm(np.subtract(target, position)))
        last = segments[-1] if segments else None
        if last is not None and last.motion_kind == kind and last.level == cmd.level:
            last.points.append(target)
            last.z = target[2]
        else:
            segments.append(ToolpathSegment(
                z=target[2], level=cmd.level, points=[position, target], motion_kind=kind,
            ))
        position = target

    minutes = (
        lengths["cut"] / settings.feedrate
        + lengths["plunge"] / settings.plungerate
        + lengths["rapid"] / config.rapid_feed_mm_min
    )
    metrics = {
        "cut_length": lengths["cut"],
        "plunge_length": lengths["plunge"],
        "rapid_length": lengths["rapid"],
        "total_length": sum(lengths.values()),
        "estimated_time_min": minutes,
    }
    return ToolpathPlan(
        segments=segments,
        levels=list(levels),
        skipped_levels=list(skipped_levels),
        strategy=strategy,
        loop_count=loop_count,
        metrics=metrics,
    )


def emit_program(
    sections: Sequence[CrossSection],
    settings: ToolpathSettings,
    config: Optional[EngineConfig] = None,
    levels: Sequence[float] = (),
    strategy: str = "csg_section",
) -> GCodeProgram:
    """Render sequenced sections to a complete program for ``settings.controller``."""
    config = config or EngineConfig()
    compensate = settings.use_radius_compensation and settings.offset != "center"
    commands = build_motion_commands(sections, settings, config, compensate=compensate)
    cut_levels = {s.z for s in sections}
    plan = build_plan(
        commands,
        settings,
        config,
        levels=levels,
        skipped_levels=[z for z in levels if z not in cut_levels],
        strategy=strategy,
        loop_count=sum(len(s.loops) for s in sections),
    )
    formatter = get_formatter(settings, strategy=strategy, level_count=len(sections))
    header, body, footer = formatter.render(commands)
    logger.info(
        "Emitted %s program: %d lines, %d loops, %.1f mm cut",
        settings.controller, len(header) + len(body) + len(footer),
        plan.loop_count, plan.metrics["cut_length"],
    )
    return GCodeProgram(
        header=header, body=body, footer=footer, plan=plan, controller=settings.controller,
    )
