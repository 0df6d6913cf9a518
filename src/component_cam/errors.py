"""Error types and non-fatal warning records for the toolpath engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class EngineError(Exception):
    """Fatal engine failure. ``state`` names the pipeline state it occurred in."""

    def __init__(self, message: str, state: Optional[str] = None):
        super().__init__(message)
        self.state = state


class InputError(EngineError):
    """Malformed component tree or settings."""


class GeometryError(EngineError):
    """Geometry that cannot produce a toolpath (recursion, unknown type, no levels)."""


# Warning codes
UNION_FAILED = "UNION_FAILED"
SLICE_OPEN_CHAIN = "SLICE_OPEN_CHAIN"
SLICE_EMPTY_LEVEL = "SLICE_EMPTY_LEVEL"
OFFSET_EXCEEDS_FEATURE = "OFFSET_EXCEEDS_FEATURE"


@dataclass
class EngineWarning:
    """A recoverable condition recorded while planning."""

    code: str
    message: str
    z: Optional[float] = None
    element_id: Optional[str] = None

    def __str__(self) -> str:
        prefix = self.code
        if self.z is not None:
            prefix += f" @ Z{self.z:.3f}"
        return f"{prefix}: {self.message}"
