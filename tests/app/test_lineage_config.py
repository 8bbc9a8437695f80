from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from app.config import AppSettings, load_settings
from domain.errors import UnknownStageError
from domain.stages import StageKind


def test_defaults_without_config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    settings = load_settings()

    assert settings.canvas.width == 800
    assert settings.pipeline.stages == ["walker-tree"]
    assert settings.log_level == "INFO"


def test_yaml_file_is_loaded(tmp_path: Path) -> None:
    config_path = tmp_path / "lineage.yaml"
    config_path.write_text(
        "\n".join(
            [
                "canvas:",
                "  width: 1200",
                "pipeline:",
                "  stages: [walker-tree, horizontal-spread]",
                "  inactive: horizontal-spread-1",
                "  parameters:",
                "    walker-tree:",
                "      visual:",
                "        node_spacing: 90",
                "log_level: debug",
            ]
        ),
        encoding="utf-8",
    )

    settings = load_settings(config_path)
    config = settings.to_pipeline_config()

    assert settings.log_level == "DEBUG"
    assert config.canvas_width == 1200
    assert config.canvas_height == 600
    assert [stage.stage_type for stage in config.stages] == [
        StageKind.WALKER_TREE,
        StageKind.HORIZONTAL_SPREAD,
    ]
    assert config.stages[0].visual == {"node_spacing": 90}
    assert config.stages[1].is_active is False


def test_environment_overrides_yaml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "lineage.yaml"
    config_path.write_text("canvas:\n  width: 1200\n", encoding="utf-8")
    monkeypatch.setenv("LINEAGE_CONFIG_PATH", str(config_path))
    monkeypatch.setenv("LINEAGE_CANVAS__WIDTH", "640")
    monkeypatch.setenv("LINEAGE_PIPELINE__STAGES", "walker-tree, vertical-spread")

    settings = load_settings()

    assert settings.canvas.width == 640
    assert settings.pipeline.stages == ["walker-tree", "vertical-spread"]


def test_missing_config_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError, match="Config file not found"):
        load_settings(tmp_path / "absent.yaml")


def test_yaml_source_is_reset_after_loading(tmp_path: Path) -> None:
    config_path = tmp_path / "lineage.yaml"
    config_path.write_text("canvas:\n  height: 900\n", encoding="utf-8")

    load_settings(config_path)

    assert AppSettings._yaml_path is None
    assert AppSettings().canvas.height == 600


def test_call_arguments_override_settings(app_settings_factory: Callable[..., AppSettings]) -> None:
    settings = app_settings_factory(stages=["vertical-spread"])

    config = settings.to_pipeline_config(stages=["horizontal-spread"], canvas_width=300)

    assert [stage.instance_id for stage in config.stages] == ["horizontal-spread-0"]
    assert config.canvas_width == 300
    assert config.canvas_height == 600


def test_unknown_configured_stage_is_reported(
    app_settings_factory: Callable[..., AppSettings],
) -> None:
    settings = app_settings_factory(stages=["walker-tree", "bubbles"])

    with pytest.raises(UnknownStageError, match="bubbles"):
        settings.to_pipeline_config()
