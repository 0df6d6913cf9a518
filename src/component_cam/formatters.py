"""
Controller dialects for rendering abstract motion commands.

Each Formatter consumes the same MotionCommand list and produces header,
body and footer lines. Every dialect writes uppercase, space-delimited
``G0``/``G1`` motion lines with ``X``/``Y``/``Z`` words. Adding a controller
means adding a Formatter subclass and registering it in FORMATTERS.
"""
import re
from typing import Dict, List, Optional, Sequence, Tuple, Type

from component_cam.contracts import MotionCommand, MotionKind, ToolpathSettings
from component_cam.errors import InputError


def format_number(value: float, decimals: int) -> str:
    """Fixed-decimal text with ``-0.000`` normalized to ``0.000``."""
    text = f"{value:.{decimals}f}"
    if text.startswith("-") and float(text) == 0.0:
        text = text[1:]
    return text


def format_rate(value: float) -> str:
    """Feed or spindle value: integer when whole, else one decimal."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.1f}"


def sanitize_text(text: str) -> str:
    """Comment text without nesting or terminator characters."""
    text = re.sub(r"[();*%]", " ", str(text))
    return " ".join(text.upper().split())


class GCodeFormatter:
    """Base formatter: modal state tracking and motion line rendering."""

    name = "base"
    program_end = "M30"

    def __init__(self, settings: ToolpathSettings, strategy: str = "csg_section",
                 level_count: int = 0):
        self.settings = settings
        self.strategy = strategy
        self.level_count = level_count
        self.decimals = settings.decimals
        self.scale = 10 ** self.decimals
        self._reset_state()

    def _reset_state(self):
        self._last_word: Dict[str, Optional[str]] = {"X": None, "Y": None, "Z": None}
        self._quanta: Dict[str, int] = {"X": 0, "Y": 0, "Z": 0}
        self._last_feed: Optional[str] = None

    # Dialect hooks

    def header(self) -> List[str]:
        raise NotImplementedError

    def footer(self) -> List[str]:
        raise NotImplementedError

    def comment(self, text: str) -> str:
        return f"({sanitize_text(text)})"

    def block(self, words: str) -> str:
        return words

    def comp_on_words(self, side: str) -> str:
        g = "G41" if side == "left" else "G42"
        return f"{g} D{self.settings.tool_number}"

    # Shared rendering

    @property
    def units_word(self) -> str:
        return "G21" if self.settings.use_metric_units else "G20"

    @property
    def distance_word(self) -> str:
        return "G90" if self.settings.use_absolute_coordinates else "G91"

    def info_comments(self) -> List[str]:
        if not self.settings.include_comments:
            return []
        s = self.settings
        strategy = self.strategy.replace("_", " ")
        return [
            self.comment(f"TOOL {s.tool_number} DIA {format_number(s.tool_diameter, self.decimals)}"),
            self.comment(f"STRATEGY {strategy} LEVELS {self.level_count}"),
        ]

    def motion_words(self, cmd: MotionCommand) -> Optional[str]:
        optimize = self.settings.optimize_rapid_moves
        g = "G0" if cmd.kind is MotionKind.RAPID else "G1"
        parts = [g]
        for axis, value in (("X", cmd.x), ("Y", cmd.y), ("Z", cmd.z)):
            if value is None:
                continue
            q = int(round(value * self.scale))
            if self.settings.use_absolute_coordinates:
                text = format_number(q / self.scale, self.decimals)
                if optimize and self._last_word[axis] == text:
                    continue
                self._last_word[axis] = text
            else:
                # Deltas between rounded positions so rounding never accumulates.
                delta = q - self._quanta[axis]
                if optimize and delta == 0:
                    continue
                text = format_number(delta / self.scale, self.decimals)
            self._quanta[axis] = q
            parts.append(axis + text)
        if len(parts) == 1:
            return None
        if g == "G1" and cmd.feed is not None:
            feed = format_rate(cmd.feed)
            if not optimize or feed != self._last_feed:
                parts.append("F" + feed)
                self._last_feed = feed
        return " ".join(parts)

    def command_lines(self, cmd: MotionCommand) -> List[str]:
        if cmd.kind is MotionKind.COMMENT:
            return [self.comment(cmd.text)] if self.settings.include_comments else []
        if cmd.kind is MotionKind.COMP_ON:
            return [self.block(self.comp_on_words(cmd.side))]
        if cmd.kind is MotionKind.COMP_OFF:
            return [self.block("G40")]
        words = self.motion_words(cmd)
        return [] if words is None else [self.block(words)]

    def render(self, commands: Sequence[MotionCommand]) -> Tuple[List[str], List[str], List[str]]:
        self._reset_state()
        header = self.header()
        body: List[str] = []
        for cmd in commands:
            body.extend(self.command_lines(cmd))
        footer = self.footer()
        return header, body, footer

    def _machine_start(self) -> List[str]:
        s = self.settings
        lines = [
            self.block(f"T{s.tool_number} M6"),
            self.block(f"S{format_rate(s.spindle_speed)} M3"),
        ]
        if s.coolant_on:
            lines.append(self.block("M8"))
        return lines

    def _machine_stop(self) -> List[str]:
        lines = [self.block("M9")] if self.settings.coolant_on else []
        lines += [self.block("M5"), self.block(self.program_end)]
        return lines


class GenericFormatter(GCodeFormatter):
    """Plain RS-274 with ``;`` comments."""

    name = "generic"

    def comment(self, text: str) -> str:
        return f"; {sanitize_text(text)}"

    def header(self) -> List[str]:
        lines = []
        if self.settings.include_comments:
            lines.append(self.comment(self.settings.program_name))
        lines += self.info_comments()
        lines += [self.units_word, self.distance_word, "G17"]
        return lines + self._machine_start()

    def footer(self) -> List[str]:
        return self._machine_stop()


class FanucFormatter(GCodeFormatter):
    """Fanuc: ``O`` program number, parenthesised comments, ``G41/G42 D``."""

    name = "fanuc"

    def header(self) -> List[str]:
        s = self.settings
        lines = [f"O{s.program_number:04d} ({sanitize_text(s.program_name)})"]
        lines += self.info_comments()
        lines.append(f"{self.units_word} {self.distance_word} G17 G40 G80")
        return lines + self._machine_start()

    def footer(self) -> List[str]:
        lines = [self.comment("END OF PROGRAM")] if self.settings.include_comments else []
        return lines + self._machine_stop()


class HeidenhainFormatter(GCodeFormatter):
    """Heidenhain ISO: numbered ``N`` blocks terminated by ``*``."""

    name = "heidenhain"
    block_step = 10

    def _reset_state(self):
        super()._reset_state()
        self._block_number = 0

    @property
    def program_label(self) -> str:
        label = re.sub(r"[^A-Z0-9_]", "_", self.settings.program_name.upper())
        return label or "PGM"

    @property
    def units_word(self) -> str:
        return "G71" if self.settings.use_metric_units else "G70"

    @property
    def program_end_block(self) -> str:
        return f"N99999999 %{self.program_label} {self.units_word} *"

    def _next_number(self) -> int:
        self._block_number += self.block_step
        return self._block_number

    def block(self, words: str) -> str:
        return f"N{self._next_number()} {words} *"

    def comment(self, text: str) -> str:
        return f"N{self._next_number()} ; {sanitize_text(text)}"

    def comp_on_words(self, side: str) -> str:
        return "G41" if side == "left" else "G42"

    def header(self) -> List[str]:
        s = self.settings
        lines = [f"%{self.program_label} {self.units_word} *"]
        lines += self.info_comments()
        radius = format_number(s.tool_diameter / 2.0, self.decimals)
        lines += [
            self.block(f"G99 T{s.tool_number} L0 R{radius}"),
            self.block(f"T{s.tool_number} G17 S{format_rate(s.spindle_speed)}"),
            self.block(self.distance_word),
            self.block("M3"),
        ]
        if s.coolant_on:
            lines.append(self.block("M8"))
        return lines

    def footer(self) -> List[str]:
        return self._machine_stop() + [self.program_end_block]


FORMATTERS: Dict[str, Type[GCodeFormatter]] = {
    "fanuc": FanucFormatter,
    "heidenhain": HeidenhainFormatter,
    "generic": GenericFormatter,
}


def get_formatter(settings: ToolpathSettings, strategy: str = "csg_section",
                  level_count: int = 0) -> GCodeFormatter:
    cls = FORMATTERS.get(settings.controller)
    if cls is None:
        raise InputError(f"Unknown controller: {settings.controller!r}")
    return cls(settings, strategy=strategy, level_count=level_count)
