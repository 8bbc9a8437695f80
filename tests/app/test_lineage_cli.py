from __future__ import annotations

from pathlib import Path

import orjson
import pytest
from rich.console import Console
from typer.testing import CliRunner

from app import cli
from app.cli import app
from tests.helpers.genealogy_fixtures import load_genealogy_payload

runner = CliRunner()


def _flat(output: str) -> str:
    return " ".join(output.split())


@pytest.fixture(autouse=True)
def wide_console(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "console", Console(width=200))


@pytest.fixture
def smith_file(tmp_path: Path) -> Path:
    path = tmp_path / "smith.json"
    path.write_bytes(orjson.dumps(load_genealogy_payload("smith_family.json")))
    return path


def test_layout_writes_document_next_to_input(smith_file: Path) -> None:
    result = runner.invoke(app, ["layout", str(smith_file), "--canvas-width", "1000"])

    assert result.exit_code == 0, result.output
    output = smith_file.with_name("smith.layout.json")
    payload = orjson.loads(output.read_bytes())
    assert payload["global"]["canvas_width"] == 1000
    assert payload["tree"]["layout"] == "walker-tree"
    assert payload["individuals"]["john"]["width"] > 0
    assert "Wrote" in result.output


def test_layout_runs_requested_stages(smith_file: Path, tmp_path: Path) -> None:
    target = tmp_path / "custom" / "out.json"

    result = runner.invoke(
        app,
        [
            "layout",
            str(smith_file),
            "-o",
            str(target),
            "-s",
            "walker-tree",
            "-s",
            "vertical-spread",
        ],
    )

    assert result.exit_code == 0, result.output
    payload = orjson.loads(target.read_bytes())
    assert payload["individuals"]["john"]["y"] == pytest.approx(50)
    assert "Vertical Spread" in result.output


def test_layout_uses_config_file(smith_file: Path, tmp_path: Path) -> None:
    config_path = tmp_path / "lineage.yaml"
    config_path.write_text(
        "pipeline:\n  stages: [horizontal-spread]\n  inactive: [horizontal-spread]\n",
        encoding="utf-8",
    )
    target = tmp_path / "out.json"

    result = runner.invoke(
        app, ["layout", str(smith_file), "--config", str(config_path), "-o", str(target)]
    )

    assert result.exit_code == 0, result.output
    payload = orjson.loads(target.read_bytes())
    assert payload["individuals"]["john"]["x"] == 400
    assert "layout" not in payload["tree"]


def test_layout_rejects_unknown_stage(smith_file: Path) -> None:
    result = runner.invoke(app, ["layout", str(smith_file), "-s", "spiral"])

    assert result.exit_code == 1
    assert "Invalid pipeline" in result.output
    assert not smith_file.with_name("smith.layout.json").exists()


def test_layout_rejects_invalid_genealogy(tmp_path: Path) -> None:
    path = tmp_path / "bad.json"
    path.write_bytes(orjson.dumps({"individuals": {"a": {"id": "b"}}}))

    result = runner.invoke(app, ["layout", str(path)])

    assert result.exit_code == 1
    assert "Validation failed" in result.output


def test_layout_reports_failed_stage_but_succeeds(smith_file: Path, tmp_path: Path) -> None:
    config_path = tmp_path / "lineage.yaml"
    config_path.write_text(
        "\n".join(
            [
                "pipeline:",
                "  stages: [walker-tree]",
                "  parameters:",
                "    walker-tree:",
                "      visual:",
                "        node_spacing: 5",
            ]
        ),
        encoding="utf-8",
    )

    result = runner.invoke(app, ["layout", str(smith_file), "--config", str(config_path)])

    assert result.exit_code == 0, result.output
    assert "failed" in result.output
    assert "Some stages failed" in _flat(result.output)


def test_missing_input_file(tmp_path: Path) -> None:
    result = runner.invoke(app, ["validate", str(tmp_path / "nope.json")])

    assert result.exit_code == 1
    assert "File not found" in result.output


def test_validate_reports_counts(smith_file: Path) -> None:
    result = runner.invoke(app, ["validate", str(smith_file)])

    assert result.exit_code == 0
    assert "Valid genealogy file" in result.output
    assert "11 individuals" in _flat(result.output)


def test_validate_rejects_non_object_json(tmp_path: Path) -> None:
    path = tmp_path / "list.json"
    path.write_bytes(b"[]")

    result = runner.invoke(app, ["validate", str(path)])

    assert result.exit_code == 1
    assert "Cannot read genealogy JSON" in result.output


def test_stages_lists_the_registry() -> None:
    result = runner.invoke(app, ["stages"])

    assert result.exit_code == 0
    for stage_id in ("walker-tree", "vertical-spread", "horizontal-spread"):
        assert stage_id in result.output
