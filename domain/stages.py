from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from domain.errors import StageParameterError, UnknownStageError
from domain.models import GenealogyDocument
from domain.ports.relationships import RelationshipGraph
from domain.visual_document import ChangeSet, VisualDocument, VisualDocumentPatch


class StageKind(str, Enum):
    WALKER_TREE = "walker-tree"
    VERTICAL_SPREAD = "vertical-spread"
    HORIZONTAL_SPREAD = "horizontal-spread"

    @classmethod
    def parse(cls, value: Union[str, "StageKind"]) -> "StageKind":
        try:
            return cls(value)
        except ValueError as exc:
            raise UnknownStageError(str(value)) from exc


class StageDimensions(BaseModel):
    model_config = ConfigDict(frozen=True)

    primary: Optional[str] = None
    secondary: Optional[str] = None


class StageInstance(BaseModel):
    """One configured pipeline step; immutable once assembled."""

    model_config = ConfigDict(frozen=True)

    stage_type: StageKind
    instance_id: str = Field(..., min_length=1)
    dimensions: StageDimensions = Field(default_factory=StageDimensions)
    visual: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True


class PipelineConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    stages: List[StageInstance] = Field(..., min_length=1)
    canvas_width: float = Field(default=800, gt=0)
    canvas_height: float = Field(default=600, gt=0)

    @field_validator("stages", mode="after")
    @classmethod
    def ensure_unique_instance_ids(cls, stages: List[StageInstance]) -> List[StageInstance]:
        seen: set[str] = set()
        for stage in stages:
            if stage.instance_id in seen:
                msg = f"Duplicate instance_id found: {stage.instance_id}"
                raise ValueError(msg)
            seen.add(stage.instance_id)
        return stages


@dataclass(frozen=True)
class VisualParameter:
    name: str
    kind: str  # "range", "boolean" or "select"
    default: Any
    min: Optional[float] = None
    max: Optional[float] = None
    options: Tuple[str, ...] = ()
    description: str = ""

    def validate(self, value: Any) -> Any:
        if self.kind == "boolean":
            if not isinstance(value, bool):
                msg = f"{self.name} must be a boolean, got {value!r}"
                raise StageParameterError(msg)
            return value
        if self.kind == "select":
            if value not in self.options:
                msg = f"{self.name} must be one of {', '.join(self.options)}, got {value!r}"
                raise StageParameterError(msg)
            return value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            msg = f"{self.name} must be a number, got {value!r}"
            raise StageParameterError(msg)
        if (self.min is not None and value < self.min) or (
            self.max is not None and value > self.max
        ):
            msg = f"{self.name}={value} is outside [{self.min}, {self.max}]"
            raise StageParameterError(msg)
        return value


@dataclass(frozen=True)
class StageContext:
    """Everything a stage may read. ``document`` is a private snapshot."""

    instance_id: str
    genealogy: GenealogyDocument
    graph: RelationshipGraph
    document: VisualDocument
    previous_change_set: Optional[ChangeSet]
    dimensions: StageDimensions
    visual: Mapping[str, Any]
    canvas_width: float
    canvas_height: float


StageOutput = Union[VisualDocumentPatch, Mapping[str, Any]]
StageTransform = Callable[[StageContext], StageOutput]


@dataclass(frozen=True)
class StageDefinition:
    kind: StageKind
    name: str
    description: str
    transform: StageTransform
    available_dimensions: Tuple[str, ...] = ()
    default_primary: Optional[str] = None
    default_secondary: Optional[str] = None
    visual_parameters: Tuple[VisualParameter, ...] = field(default_factory=tuple)

    def resolve_dimensions(self, requested: StageDimensions) -> StageDimensions:
        resolved = StageDimensions(
            primary=requested.primary or self.default_primary,
            secondary=requested.secondary or self.default_secondary,
        )
        for value in (resolved.primary, resolved.secondary):
            if value is not None and value not in self.available_dimensions:
                msg = f"Dimension {value!r} is not available for {self.kind.value}"
                raise StageParameterError(msg)
        return resolved

    def resolve_visual(self, requested: Mapping[str, Any]) -> Dict[str, Any]:
        parameters = {parameter.name: parameter for parameter in self.visual_parameters}
        unknown = sorted(set(requested) - set(parameters))
        if unknown:
            msg = f"Unknown parameter(s) for {self.kind.value}: {', '.join(unknown)}"
            raise StageParameterError(msg)
        resolved = {parameter.name: parameter.default for parameter in self.visual_parameters}
        for name, value in requested.items():
            resolved[name] = parameters[name].validate(value)
        return resolved
