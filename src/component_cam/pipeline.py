"""
Component -> G-code pipeline.

States:
  IDLE -> NORMALIZING -> UNIFYING -> SLICING | FALLBACK_PLANNING
       -> OFFSETTING -> SEQUENCING -> EMITTING -> DONE
Any fatal error moves to FAILED and re-raises with the failing state attached.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Union

from component_cam.contracts import (
    Component,
    EngineConfig,
    EngineState,
    ToolpathResult,
    ToolpathSettings,
)
from component_cam.csg import unify_meshes
from component_cam.emitter import emit_program
from component_cam.errors import UNION_FAILED, EngineError, EngineWarning, GeometryError, InputError
from component_cam.fallback import plan_fallback
from component_cam.normalize import combined_bounds, normalize_component
from component_cam.offsetting import offset_sections
from component_cam.sequencing import sequence_sections
from component_cam.slicing import cross_section, level_schedule

logger = logging.getLogger(__name__)

CSG_STRATEGY = "csg_section"
FALLBACK_STRATEGY = "element_fallback"


class ToolpathPipeline:
    """Single-use runner that records its state transitions and warnings."""

    def __init__(self, settings: ToolpathSettings, config: Optional[EngineConfig] = None):
        self.settings = settings
        self.config = config or EngineConfig()
        self.state = EngineState.IDLE
        self.history: List[str] = [self.state.value]
        self.warnings: List[EngineWarning] = []

    def _enter(self, state: EngineState) -> None:
        logger.info("Toolpath state %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state.value)

    def run(self, component: Component) -> ToolpathResult:
        try:
            return self._run(component)
        except EngineError as exc:
            if exc.state is None:
                exc.state = self.state.value
            logger.error("Toolpath generation failed in %s: %s", exc.state, exc)
            self._enter(EngineState.FAILED)
            raise
        except Exception:
            self._enter(EngineState.FAILED)
            raise

    def _run(self, component: Component) -> ToolpathResult:
        settings, config = self.settings, self.config
        ok, errors = settings.validate()
        if not ok:
            raise InputError("Invalid settings: " + "; ".join(errors))
        levels = level_schedule(settings.depth, settings.stepdown)

        self._enter(EngineState.NORMALIZING)
        world_meshes = normalize_component(component, config)
        top_z = float(combined_bounds(world_meshes)[1][2])

        self._enter(EngineState.UNIFYING)
        union = unify_meshes(world_meshes, config)
        if union.ok:
            self._enter(EngineState.SLICING)
            sections, warnings = cross_section(union.solid, top_z, levels, config)
            strategy = CSG_STRATEGY
        else:
            failure = union.failure
            self.warnings.append(EngineWarning(
                UNION_FAILED,
                f"boolean union failed at element {failure.element_index} "
                f"({failure.element_id}): {failure.reason}; "
                "falling back to per-element profiles",
                element_id=failure.element_id,
            ))
            self._enter(EngineState.FALLBACK_PLANNING)
            sections, warnings = plan_fallback(world_meshes, top_z, levels, config)
            strategy = FALLBACK_STRATEGY
        self.warnings.extend(warnings)
        if not sections:
            raise GeometryError(
                f"No usable Z levels: all {len(levels)} levels produced no closed loops"
            )

        self._enter(EngineState.OFFSETTING)
        # Controller-side compensation cuts the nominal boundary.
        mode = "center" if settings.use_radius_compensation else settings.offset
        sections, warnings = offset_sections(sections, settings.tool_diameter, mode, config)
        self.warnings.extend(warnings)

        self._enter(EngineState.SEQUENCING)
        sections = sequence_sections(sections, settings.direction)

        self._enter(EngineState.EMITTING)
        program = emit_program(sections, settings, config, levels=levels, strategy=strategy)

        self._enter(EngineState.DONE)
        return ToolpathResult(
            gcode=program.text,
            warnings=[str(w) for w in self.warnings],
            plan=program.plan,
            program=program,
            strategy=strategy,
            state_history=list(self.history),
            warning_records=list(self.warnings),
        )


def generate_component_toolpath(
    component: Component,
    settings: Union[ToolpathSettings, Mapping[str, Any], None] = None,
    config: Optional[EngineConfig] = None,
) -> ToolpathResult:
    """Generate one continuous program for a whole component assembly.

    Args:
        component: Root of the assembly tree.
        settings: ToolpathSettings, or a camelCase/snake_case mapping.
        config: Engine tolerances; defaults to EngineConfig().

    Returns:
        ToolpathResult with G-code text, warnings and the motion plan.

    Raises:
        InputError: invalid settings or element parameters.
        GeometryError: nesting too deep, unknown element type, or no usable levels.
    """
    if settings is None:
        settings = ToolpathSettings()
    elif not isinstance(settings, ToolpathSettings):
        settings = ToolpathSettings.from_dict(settings)
    return ToolpathPipeline(settings, config).run(component)
