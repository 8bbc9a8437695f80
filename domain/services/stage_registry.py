from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence
from types import MappingProxyType
from typing import Any, Dict, List, Union

from pydantic import ValidationError

from domain.errors import UnknownStageError
from domain.services import dimensions
from domain.services.spread_stages import (
    SPACING_MULTIPLIERS,
    horizontal_spread_transform,
    vertical_spread_transform,
)
from domain.services.walker_tree_stage import walker_tree_transform
from domain.stages import (
    PipelineConfig,
    StageDefinition,
    StageDimensions,
    StageInstance,
    StageKind,
    VisualParameter,
)

_SPREAD_PARAMETERS = (
    VisualParameter(
        name="padding",
        kind="range",
        default=50,
        min=0,
        max=300,
        description="Distance kept from both canvas edges.",
    ),
    VisualParameter(
        name="spacing",
        kind="select",
        default="normal",
        options=tuple(SPACING_MULTIPLIERS),
        description="How far the spread reaches across the usable extent.",
    ),
)

WALKER_TREE = StageDefinition(
    kind=StageKind.WALKER_TREE,
    name="Walker Tree",
    description="Tidy family-tree layout: generations as rows, couples centered over children.",
    transform=walker_tree_transform,
    available_dimensions=(dimensions.GENERATION,),
    default_primary=dimensions.GENERATION,
    visual_parameters=(
        VisualParameter("node_spacing", "range", 60, 30, 150),
        VisualParameter("generation_spacing", "range", 150, 80, 300),
        VisualParameter("spouse_spacing", "range", 30, 10, 60),
        VisualParameter("family_spacing", "range", 80, 40, 150),
        VisualParameter("tree_spacing", "range", 200, 50, 600),
        VisualParameter("show_labels", "boolean", False),
        VisualParameter("min_label_size", "range", 12, 8, 24),
    ),
)

VERTICAL_SPREAD = StageDefinition(
    kind=StageKind.VERTICAL_SPREAD,
    name="Vertical Spread",
    description="Spreads individuals vertically by a weighted pair of dimensions.",
    transform=vertical_spread_transform,
    available_dimensions=dimensions.DIMENSION_IDS,
    default_primary=dimensions.GENERATION,
    default_secondary=dimensions.BIRTH_YEAR,
    visual_parameters=_SPREAD_PARAMETERS,
)

HORIZONTAL_SPREAD = StageDefinition(
    kind=StageKind.HORIZONTAL_SPREAD,
    name="Horizontal Spread",
    description="Spreads individuals horizontally by a weighted pair of dimensions.",
    transform=horizontal_spread_transform,
    available_dimensions=dimensions.DIMENSION_IDS,
    default_primary=dimensions.GENERATION,
    default_secondary=dimensions.CHILDREN_COUNT,
    visual_parameters=_SPREAD_PARAMETERS,
)

DEFAULT_STAGE_REGISTRY: Mapping[StageKind, StageDefinition] = MappingProxyType(
    {definition.kind: definition for definition in (WALKER_TREE, VERTICAL_SPREAD, HORIZONTAL_SPREAD)}
)


def definition_for(
    kind: StageKind, registry: Mapping[StageKind, StageDefinition] = DEFAULT_STAGE_REGISTRY
) -> StageDefinition:
    try:
        return registry[kind]
    except KeyError as exc:
        raise UnknownStageError(kind.value) from exc


def validate_pipeline_config(raw: Union[PipelineConfig, Mapping[str, Any]]) -> List[str]:
    """Collect every problem in a pipeline configuration without raising."""
    if isinstance(raw, PipelineConfig):
        return []
    try:
        PipelineConfig.model_validate(raw)
    except ValidationError as exc:
        return [
            f"{'.'.join(str(part) for part in error['loc']) or 'config'}: {error['msg']}"
            for error in exc.errors()
        ]
    return []


def create_simple_pipeline(
    stage_ids: Sequence[Union[str, StageKind]],
    *,
    canvas_width: float = 800,
    canvas_height: float = 600,
    parameters: Mapping[str, Mapping[str, Any]] | None = None,
    inactive: Collection[str] = (),
    registry: Mapping[StageKind, StageDefinition] = DEFAULT_STAGE_REGISTRY,
) -> PipelineConfig:
    """Build a pipeline with one instance per stage id, named ``<kind>-<index>``.

    ``parameters`` and ``inactive`` are matched against the instance id first,
    then the stage kind. Each parameter entry may carry ``dimensions`` and
    ``visual`` mappings.
    """
    parameters = parameters or {}
    stages: List[StageInstance] = []
    for index, stage_id in enumerate(stage_ids):
        kind = StageKind.parse(stage_id)
        definition = definition_for(kind, registry)
        instance_id = f"{kind.value}-{index}"
        entry: Mapping[str, Any] = parameters.get(instance_id) or parameters.get(kind.value) or {}
        requested: Dict[str, Any] = dict(entry.get("dimensions") or {})
        stages.append(
            StageInstance(
                stage_type=kind,
                instance_id=instance_id,
                dimensions=StageDimensions(
                    primary=requested.get("primary", definition.default_primary),
                    secondary=requested.get("secondary", definition.default_secondary),
                ),
                visual=dict(entry.get("visual") or {}),
                is_active=instance_id not in inactive and kind.value not in inactive,
            )
        )
    return PipelineConfig(stages=stages, canvas_width=canvas_width, canvas_height=canvas_height)
