from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated, Any, ClassVar

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic_settings.sources import PydanticBaseSettingsSource, YamlConfigSettingsSource

from domain.services.stage_registry import create_simple_pipeline
from domain.stages import PipelineConfig

DEFAULT_CONFIG_PATH = Path("config/lineage.yaml")


def _split_string_list_value(raw_value: str) -> list[str]:
    raw = raw_value.strip()
    if raw.startswith("[") and raw.endswith("]"):
        raw = raw[1:-1].strip()
    return [
        token for token in (part.strip().strip("'").strip('"') for part in raw.split(",")) if token
    ]


class CanvasSettings(BaseModel):
    width: float = Field(default=800, gt=0)
    height: float = Field(default=600, gt=0)


class PipelineSettings(BaseModel):
    stages: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["walker-tree"])
    inactive: Annotated[list[str], NoDecode] = Field(default_factory=list)
    parameters: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @field_validator("stages", "inactive", mode="before")
    @classmethod
    def normalize_lists(cls, value: object) -> list[str]:
        if value is None:
            return []
        if isinstance(value, list):
            normalized: list[str] = []
            for item in value:
                normalized.extend(_split_string_list_value(str(item)))
            return normalized
        return _split_string_list_value(str(value))


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LINEAGE_", env_nested_delimiter="__")

    canvas: CanvasSettings = CanvasSettings()
    pipeline: PipelineSettings = PipelineSettings()
    log_level: str = "INFO"

    _yaml_path: ClassVar[Path | None] = None

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: object) -> str:
        return str(value).upper() if value else "INFO"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        ]
        if cls._yaml_path:
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=cls._yaml_path))
        return tuple(sources)

    def to_pipeline_config(
        self,
        *,
        stages: list[str] | None = None,
        canvas_width: float | None = None,
        canvas_height: float | None = None,
    ) -> PipelineConfig:
        return create_simple_pipeline(
            stages or self.pipeline.stages,
            canvas_width=canvas_width or self.canvas.width,
            canvas_height=canvas_height or self.canvas.height,
            parameters=self.pipeline.parameters,
            inactive=self.pipeline.inactive,
        )


def load_settings(config_path: Path | None = None) -> AppSettings:
    env_path = os.getenv("LINEAGE_CONFIG_PATH")
    resolved_path: Path | None = None

    if config_path is not None:
        resolved_path = config_path
    elif env_path:
        resolved_path = Path(env_path)
    elif DEFAULT_CONFIG_PATH.exists():
        resolved_path = DEFAULT_CONFIG_PATH

    previous = AppSettings._yaml_path
    try:
        if resolved_path is not None:
            if not resolved_path.exists():
                msg = f"Config file not found: {resolved_path}"
                raise FileNotFoundError(msg)
            AppSettings._yaml_path = resolved_path
        return AppSettings()
    finally:
        AppSettings._yaml_path = previous
