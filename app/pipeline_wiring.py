from __future__ import annotations

from adapters.graph.document_graph import DocumentRelationshipGraph
from domain.services.layout_pipeline import LayoutPipeline


def build_layout_pipeline() -> LayoutPipeline:
    return LayoutPipeline(graph_factory=DocumentRelationshipGraph.from_document)
