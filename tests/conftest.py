from __future__ import annotations

import os
from collections.abc import Callable, Generator

import pytest

from adapters.graph.document_graph import DocumentRelationshipGraph
from app.config import AppSettings, CanvasSettings, PipelineSettings
from domain.models import GenealogyDocument
from domain.services.layout_pipeline import LayoutPipeline
from tests.helpers.genealogy_fixtures import load_genealogy_fixture


def _clear_lineage_env() -> None:
    for key in list(os.environ):
        if key.startswith("LINEAGE_"):
            os.environ.pop(key, None)


_clear_lineage_env()


@pytest.fixture(autouse=True)
def clear_lineage_env() -> Generator[None, None, None]:
    _clear_lineage_env()
    yield
    _clear_lineage_env()


@pytest.fixture
def smith_family() -> GenealogyDocument:
    return load_genealogy_fixture("smith_family.json")


@pytest.fixture
def smith_graph(smith_family: GenealogyDocument) -> DocumentRelationshipGraph:
    return DocumentRelationshipGraph.from_document(smith_family)


@pytest.fixture
def layout_pipeline() -> LayoutPipeline:
    return LayoutPipeline(graph_factory=DocumentRelationshipGraph.from_document)


@pytest.fixture
def pipeline_settings() -> PipelineSettings:
    return PipelineSettings(stages=["walker-tree"], inactive=[], parameters={})


@pytest.fixture
def app_settings_factory(
    pipeline_settings: PipelineSettings,
) -> Callable[..., AppSettings]:
    def _factory(**overrides: object) -> AppSettings:
        return AppSettings(
            canvas=CanvasSettings(),
            pipeline=pipeline_settings.model_copy(update=overrides),
        )

    return _factory
