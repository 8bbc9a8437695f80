from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Optional

from domain.errors import StageOutputError
from domain.models import GenealogyDocument
from domain.ports.relationships import RelationshipGraph
from domain.services.stage_registry import DEFAULT_STAGE_REGISTRY, definition_for
from domain.stages import StageContext, StageDefinition, StageInstance, StageKind, StageOutput
from domain.visual_document import (
    ENTITY_GROUPS,
    ChangeSet,
    VisualDocument,
    VisualDocumentPatch,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageExecution:
    instance: StageInstance
    stage_name: str
    success: bool
    duration_ms: float
    patch: Optional[VisualDocumentPatch] = None
    error: Optional[str] = None


class StageRunner:
    """Runs one stage against a document snapshot and absorbs its failures."""

    def __init__(
        self, registry: Mapping[StageKind, StageDefinition] = DEFAULT_STAGE_REGISTRY
    ) -> None:
        self.registry = registry

    def definition_for(self, kind: StageKind) -> StageDefinition:
        return definition_for(kind, self.registry)

    def run(
        self,
        instance: StageInstance,
        *,
        genealogy: GenealogyDocument,
        graph: RelationshipGraph,
        document: VisualDocument,
        previous_change_set: Optional[ChangeSet],
        canvas_width: float,
        canvas_height: float,
    ) -> StageExecution:
        definition = self.definition_for(instance.stage_type)
        started = time.perf_counter()
        try:
            context = StageContext(
                instance_id=instance.instance_id,
                genealogy=genealogy,
                graph=graph,
                document=document.snapshot(),
                previous_change_set=previous_change_set,
                dimensions=definition.resolve_dimensions(instance.dimensions),
                visual=definition.resolve_visual(instance.visual),
                canvas_width=canvas_width,
                canvas_height=canvas_height,
            )
            patch = _validated_patch(definition.transform(context), document)
        except Exception as exc:  # noqa: BLE001
            duration_ms = (time.perf_counter() - started) * 1000
            logger.warning(
                "Stage %s (%s) failed: %s",
                instance.instance_id,
                definition.name,
                exc,
                exc_info=True,
            )
            return StageExecution(
                instance=instance,
                stage_name=definition.name,
                success=False,
                duration_ms=duration_ms,
                error=str(exc) or type(exc).__name__,
            )
        duration_ms = (time.perf_counter() - started) * 1000
        logger.debug(
            "Stage %s (%s) finished in %.1f ms", instance.instance_id, definition.name, duration_ms
        )
        return StageExecution(
            instance=instance,
            stage_name=definition.name,
            success=True,
            duration_ms=duration_ms,
            patch=patch,
        )


def _validated_patch(output: StageOutput, document: VisualDocument) -> VisualDocumentPatch:
    if isinstance(output, VisualDocumentPatch):
        patch = VisualDocumentPatch.from_mapping(output.to_dict())
    elif isinstance(output, Mapping):
        patch = VisualDocumentPatch.from_mapping(output)
    else:
        msg = f"Stage returned {type(output).__name__}, expected a partial visual document"
        raise StageOutputError(msg)
    for group in ENTITY_GROUPS:
        unknown = sorted(set(patch.entity_group(group)) - set(document.entity_group(group)))
        if unknown:
            msg = f"Stage output references unknown {group}: {', '.join(unknown)}"
            raise StageOutputError(msg)
    return patch
