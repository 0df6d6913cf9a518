from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
SCRIPT = REPO_ROOT / "scripts" / "generate_toolpath.py"

COMPONENT = {
    "id": "bracket",
    "elements": [
        {"id": "base", "type": "cube", "width": 40, "depth": 20, "height": 10},
        {"id": "boss", "type": "cylinder", "radius": 6, "height": 10, "x": 25},
    ],
}


def _write_component(tmp_path: Path) -> Path:
    path = tmp_path / "bracket.json"
    path.write_text(json.dumps(COMPONENT), encoding="utf-8")
    return path


def test_cli_writes_program_and_plan(tmp_path: Path):
    component = _write_component(tmp_path)
    output = tmp_path / "bracket.nc"
    plan = tmp_path / "plan.json"
    cmd = [
        sys.executable,
        str(SCRIPT),
        "--input", str(component),
        "--output", str(output),
        "--plan-json", str(plan),
        "--controller", "heidenhain",
        "--depth", "6",
        "--stepdown", "2",
    ]
    proc = subprocess.run(cmd, capture_output=True, text=True)
    assert proc.returncode == 0, proc.stderr
    assert "Strategy: csg_section" in proc.stdout
    assert "Levels: 4 (0 skipped)" in proc.stdout

    text = output.read_text(encoding="utf-8")
    assert text.startswith("%CAD_CAM G71 *")
    assert text.rstrip().endswith("N99999999 %CAD_CAM G71 *")

    data = json.loads(plan.read_text(encoding="utf-8"))
    assert data["levels"] == [0.0, -2.0, -4.0, -6.0]
    assert data["loop_count"] > 0


def test_cli_prints_gcode_to_stdout(tmp_path: Path):
    component = _write_component(tmp_path)
    proc = subprocess.run(
        [sys.executable, str(SCRIPT), "--input", str(component), "--depth", "2"],
        capture_output=True,
        text=True,
    )
    assert proc.returncode == 0, proc.stderr
    lines = proc.stdout.splitlines()
    assert lines[0] == "O0001 (CAD_CAM)"
    assert lines[-1] == "M30"


def test_cli_reports_invalid_settings(tmp_path: Path):
    component = _write_component(tmp_path)
    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"depth": 2, "stepdown": 5}), encoding="utf-8")
    proc = subprocess.run(
        [sys.executable, str(SCRIPT), "--input", str(component), "--settings", str(settings)],
        capture_output=True,
        text=True,
    )
    assert proc.returncode == 2
    assert "ERROR (IDLE)" in proc.stderr
