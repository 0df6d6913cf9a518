"""
Read emitted programs back: motion waypoints and summary metrics.

This mirrors what a toolpath viewer does with the text. Lines are scanned
for ``G0``-``G3`` motion with ``X``/``Y``/``Z`` words, ``G90``/``G91`` is
honoured, and ``( )`` and ``;`` comments are ignored.
"""
import math
import re
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Tuple

Vec3 = Tuple[float, float, float]

_WORD = re.compile(r"([A-Z])([-+]?(?:\d+\.?\d*|\.\d+))")
_PAREN_COMMENT = re.compile(r"\([^)]*\)")
_PROGRAM_LABEL = re.compile(r"%\S*")


@dataclass
class MotionLine:
    """One motion block after modal state has been applied."""
    motion: int  # 0 rapid, 1 feed, 2/3 arcs
    start: Vec3
    end: Vec3
    feed: Optional[float] = None


@dataclass
class GCodeMetrics:
    travel_distance: float = 0.0
    estimated_time: float = 0.0  # minutes
    rapid_moves: int = 0
    feed_moves: int = 0
    tool_changes: int = 0
    max_z: float = 0.0
    min_z: float = 0.0
    bounding_box: Tuple[Vec3, Vec3] = field(
        default_factory=lambda: ((0.0, 0.0, 0.0), (0.0, 0.0, 0.0))
    )


def strip_comment(line: str) -> str:
    line = _PROGRAM_LABEL.sub(" ", _PAREN_COMMENT.sub(" ", line))
    return line.split(";", 1)[0]


def iter_motion(gcode: str, start: Vec3 = (0.0, 0.0, 0.0)) -> Iterator[MotionLine]:
    """Yield every motion block with its absolute start and end position."""
    position = list(start)
    absolute = True
    motion: Optional[int] = None
    feed: Optional[float] = None
    for raw in gcode.splitlines():
        line = strip_comment(raw).strip().upper()
        if not line or line.startswith("%"):
            continue
        axes = {}
        for letter, value in _WORD.findall(line):
            if letter == "G":
                code = float(value)
                if code in (0.0, 1.0, 2.0, 3.0):
                    motion = int(code)
                elif code == 90.0:
                    absolute = True
                elif code == 91.0:
                    absolute = False
            elif letter == "F":
                feed = float(value)
            elif letter in "XYZ":
                axes[letter] = float(value)
        if motion is None or not axes:
            continue
        before = tuple(position)
        for i, axis in enumerate("XYZ"):
            if axis in axes:
                position[i] = axes[axis] if absolute else position[i] + axes[axis]
        yield MotionLine(motion=motion, start=before, end=tuple(position), feed=feed)


def parse_motion_waypoints(gcode: str, start: Vec3 = (0.0, 0.0, 0.0)) -> List[Vec3]:
    """Tool positions visited by the program, starting with ``start``.

    Consecutive duplicates are removed.
    """
    points: List[Vec3] = [tuple(start)]
    for move in iter_motion(gcode, start):
        if all(abs(a - b) <= 1e-9 for a, b in zip(points[-1], move.end)):
            continue
        points.append(move.end)
    return points


def analyze_gcode(gcode: str, rapid_feed: float = 5000.0) -> GCodeMetrics:
    """Travel distance, move counts, Z range and time estimate for a program."""
    metrics = GCodeMetrics()
    metrics.tool_changes = sum(
        1 for raw in gcode.splitlines()
        if re.search(r"\bM0?6\b", strip_comment(raw).upper())
    )
    visited: List[Vec3] = []
    for move in iter_motion(gcode):
        dist = math.dist(move.start, move.end)
        metrics.travel_distance += dist
        if move.motion == 0:
            metrics.rapid_moves += 1
            metrics.estimated_time += dist / rapid_feed
        else:
            metrics.feed_moves += 1
            if move.feed:
                metrics.estimated_time += dist / move.feed
        visited.append(move.end)

    if visited:
        lo = tuple(min(p[i] for p in visited) for i in range(3))
        hi = tuple(max(p[i] for p in visited) for i in range(3))
        metrics.bounding_box = (lo, hi)
        metrics.min_z, metrics.max_z = lo[2], hi[2]
    return metrics


def max_waypoint_deviation(a: Sequence[Vec3], b: Sequence[Vec3]) -> float:
    """Largest pointwise distance between two waypoint lists of equal length."""
    if len(a) != len(b):
        return math.inf
    return max((math.dist(p, q) for p, q in zip(a, b)), default=0.0)
