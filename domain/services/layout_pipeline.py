from __future__ import annotations

import logging
import time
from collections.abc import Callable, Generator, Mapping
from dataclasses import dataclass
from typing import Any, ClassVar, List, Optional, Tuple, Union

from pydantic import ValidationError

from domain.errors import LayoutPipelineError, PipelineInputError
from domain.models import GenealogyDocument
from domain.ports.relationships import RelationshipGraph
from domain.services.stage_registry import DEFAULT_STAGE_REGISTRY
from domain.services.stage_runner import StageRunner
from domain.stages import PipelineConfig, StageDefinition, StageKind
from domain.visual_document import (
    ChangeSet,
    VisualDocument,
    VisualDocumentPatch,
    build_change_set,
    create_initial_visual_document,
    merge_visual_document,
)

logger = logging.getLogger(__name__)

GraphFactory = Callable[[GenealogyDocument], RelationshipGraph]


@dataclass(frozen=True)
class StageReport:
    stage_id: str
    stage_type: StageKind
    stage_name: str
    duration_ms: float
    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class PipelineResult:
    document: VisualDocument
    config: PipelineConfig
    reports: Tuple[StageReport, ...]
    total_duration_ms: float

    @property
    def succeeded(self) -> bool:
        return all(report.success for report in self.reports)


@dataclass(frozen=True)
class ProgressEvent:
    type: ClassVar[str] = "progress"
    current: int
    total: int
    stage_name: str


@dataclass(frozen=True)
class StageResultEvent:
    type: ClassVar[str] = "stage-result"
    stage_id: str
    stage_type: StageKind
    patch: VisualDocumentPatch


@dataclass(frozen=True)
class CompleteEvent:
    type: ClassVar[str] = "complete"
    result: PipelineResult


PipelineEvent = Union[ProgressEvent, StageResultEvent, CompleteEvent]


class LayoutPipeline:
    """Runs configured stages in order over one visual document.

    Input and configuration problems raise before any stage runs. A failing
    stage is reported and skipped over; the run always completes.
    """

    def __init__(
        self,
        graph_factory: GraphFactory,
        registry: Mapping[StageKind, StageDefinition] = DEFAULT_STAGE_REGISTRY,
    ) -> None:
        self._graph_factory = graph_factory
        self._runner = StageRunner(registry)

    def run_events(
        self,
        data: Union[GenealogyDocument, Mapping[str, Any]],
        config: Union[PipelineConfig, Mapping[str, Any]],
    ) -> Generator[PipelineEvent, None, PipelineResult]:
        genealogy = _validate_input(data)
        pipeline_config = _validate_config(config)
        definitions = [
            self._runner.definition_for(stage.stage_type) for stage in pipeline_config.stages
        ]
        return self._execute(genealogy, pipeline_config, definitions)

    def run(
        self,
        data: Union[GenealogyDocument, Mapping[str, Any]],
        config: Union[PipelineConfig, Mapping[str, Any]],
        on_progress: Callable[[ProgressEvent], None] | None = None,
    ) -> PipelineResult:
        result: Optional[PipelineResult] = None
        for event in self.run_events(data, config):
            if isinstance(event, ProgressEvent) and on_progress is not None:
                on_progress(event)
            elif isinstance(event, CompleteEvent):
                result = event.result
        if result is None:
            msg = "Pipeline finished without a result"
            raise LayoutPipelineError(msg)
        return result

    def _execute(
        self,
        genealogy: GenealogyDocument,
        config: PipelineConfig,
        definitions: List[StageDefinition],
    ) -> Generator[PipelineEvent, None, PipelineResult]:
        started = time.perf_counter()
        graph = self._graph_factory(genealogy)
        document = create_initial_visual_document(
            genealogy, config.canvas_width, config.canvas_height
        )
        change_set: Optional[ChangeSet] = None
        reports: List[StageReport] = []
        total = len(config.stages)

        for position, (instance, definition) in enumerate(
            zip(config.stages, definitions), start=1
        ):
            if not instance.is_active:
                logger.debug("Skipping inactive stage %s", instance.instance_id)
                yield ProgressEvent(position, total, f"{definition.name} (skipped)")
                continue

            execution = self._runner.run(
                instance,
                genealogy=genealogy,
                graph=graph,
                document=document,
                previous_change_set=change_set,
                canvas_width=config.canvas_width,
                canvas_height=config.canvas_height,
            )
            reports.append(
                StageReport(
                    stage_id=instance.instance_id,
                    stage_type=instance.stage_type,
                    stage_name=execution.stage_name,
                    duration_ms=execution.duration_ms,
                    success=execution.success,
                    error=execution.error,
                )
            )
            if execution.success and execution.patch is not None:
                document = merge_visual_document(document, execution.patch)
                change_set = build_change_set(execution.patch)
                yield StageResultEvent(instance.instance_id, instance.stage_type, execution.patch)
            else:
                change_set = None
            yield ProgressEvent(position, total, definition.name)

        result = PipelineResult(
            document=document,
            config=config,
            reports=tuple(reports),
            total_duration_ms=(time.perf_counter() - started) * 1000,
        )
        logger.info(
            "Pipeline finished: %d/%d stages succeeded in %.1f ms",
            sum(report.success for report in reports),
            len(reports),
            result.total_duration_ms,
        )
        yield CompleteEvent(result)
        return result


def _validate_input(data: Union[GenealogyDocument, Mapping[str, Any]]) -> GenealogyDocument:
    if isinstance(data, GenealogyDocument):
        return data
    if not isinstance(data, Mapping):
        msg = f"Genealogy input must be a mapping, got {type(data).__name__}"
        raise PipelineInputError(msg)
    try:
        return GenealogyDocument.model_validate(data)
    except ValidationError as exc:
        msg = f"Invalid genealogy input: {exc}"
        raise PipelineInputError(msg) from exc


def _validate_config(config: Union[PipelineConfig, Mapping[str, Any]]) -> PipelineConfig:
    if isinstance(config, PipelineConfig):
        return config
    try:
        return PipelineConfig.model_validate(config)
    except ValidationError as exc:
        msg = f"Invalid pipeline configuration: {exc}"
        raise PipelineInputError(msg) from exc
