#!/usr/bin/env python3
"""
Generate one continuous CNC program for a component assembly.

Usage:
    python scripts/generate_toolpath.py --input component.json
    python scripts/generate_toolpath.py --input component.json --settings settings.json --output part.nc
    python scripts/generate_toolpath.py --input component.json --controller heidenhain --depth 12 --stepdown 2 --plan-json plan.json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from component_cam import EngineError, generate_component_toolpath, load_component
from component_cam.contracts import CONTROLLERS, DIRECTIONS, OFFSET_MODES
from component_cam.loaders import load_settings, settings_from_dict


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate a layered contour toolpath (G-code) for a component assembly"
    )
    parser.add_argument("--input", required=True, help="Component JSON file")
    parser.add_argument(
        "--settings", default=None, help="Settings JSON (camelCase or snake_case keys)"
    )
    parser.add_argument(
        "--output", default=None, help="Write G-code here (default: stdout)"
    )
    parser.add_argument(
        "--plan-json", default=None, help="Write the machine-readable motion plan here"
    )
    parser.add_argument("--controller", choices=CONTROLLERS, default=None)
    parser.add_argument("--offset", choices=OFFSET_MODES, default=None)
    parser.add_argument("--direction", choices=DIRECTIONS, default=None)
    parser.add_argument("--tool-diameter", type=float, default=None, help="Tool diameter (mm)")
    parser.add_argument("--depth", type=float, default=None, help="Total cut depth (mm)")
    parser.add_argument("--stepdown", type=float, default=None, help="Depth per pass (mm)")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logs"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    overrides = {
        "controller": args.controller,
        "offset": args.offset,
        "direction": args.direction,
        "tool_diameter": args.tool_diameter,
        "depth": args.depth,
        "stepdown": args.stepdown,
    }
    try:
        settings = load_settings(args.settings) if args.settings else settings_from_dict({})
        for name, value in overrides.items():
            if value is not None:
                setattr(settings, name, value)
        component = load_component(args.input)
        result = generate_component_toolpath(component, settings)
    except EngineError as exc:
        print(f"ERROR ({exc.state}): {exc}", file=sys.stderr)
        return 2

    if args.plan_json:
        Path(args.plan_json).write_text(
            json.dumps(result.plan.to_dict(), indent=2), encoding="utf-8"
        )

    if args.output:
        Path(args.output).write_text(result.gcode, encoding="utf-8")
        metrics = result.plan.metrics
        print(f"Program: {args.output}")
        print(f"Strategy: {result.strategy}")
        print(f"Levels: {len(result.plan.levels)} ({len(result.plan.skipped_levels)} skipped)")
        print(f"Loops: {result.plan.loop_count}")
        print(f"Cut length: {metrics['cut_length']:.1f} mm")
        print(f"Estimated time: {metrics['estimated_time_min']:.1f} min")
    else:
        sys.stdout.write(result.gcode)

    for warning in result.warnings:
        print(f"WARNING: {warning}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
