from __future__ import annotations

import logging

import pytest

from adapters.graph.document_graph import DocumentRelationshipGraph
from domain.models import GenealogyDocument


def _ids(individuals: list) -> list[str]:
    return [individual.id for individual in individuals]


def test_lookups_follow_first_seen_order(smith_graph: DocumentRelationshipGraph) -> None:
    assert _ids(smith_graph.children_of("john")) == ["robert", "susan"]
    assert _ids(smith_graph.parents_of("robert")) == ["john", "mary"]
    assert _ids(smith_graph.spouses_of("susan")) == ["mark"]
    assert _ids(smith_graph.siblings_of("anna")) == ["tom"]
    assert smith_graph.children_of("tom") == []


def test_links_are_symmetric_and_deduplicated(smith_graph: DocumentRelationshipGraph) -> None:
    # robert-linda is declared by both individuals, the family and an edge
    assert _ids(smith_graph.spouses_of("linda")) == ["robert"]
    assert _ids(smith_graph.spouses_of("robert")) == ["linda"]
    assert _ids(smith_graph.children_of("linda")) == ["tom", "anna"]


def test_families_and_edges_add_missing_links() -> None:
    document = GenealogyDocument.model_validate(
        {
            "individuals": [{"id": "h"}, {"id": "w"}, {"id": "k1"}, {"id": "k2"}, {"id": "x"}],
            "families": [{"id": "f", "husband_id": "h", "wife_id": "w", "children_ids": ["k1", "k2"]}],
            "edges": [
                {"id": "e", "source_id": "k2", "target_id": "x", "relationship_type": "parent-child"}
            ],
        }
    )

    graph = DocumentRelationshipGraph.from_document(document)

    assert _ids(graph.spouses_of("w")) == ["h"]
    assert _ids(graph.parents_of("k1")) == ["h", "w"]
    assert _ids(graph.siblings_of("k2")) == ["k1"]
    assert _ids(graph.children_of("k2")) == ["x"]


def test_unknown_individuals_are_skipped_with_warning(caplog: pytest.LogCaptureFixture) -> None:
    document = GenealogyDocument.model_validate(
        {
            "individuals": [{"id": "a", "children": ["ghost"]}],
            "edges": [
                {"id": "e1", "source_id": "a", "target_id": "nobody", "relationship_type": "spouse"}
            ],
        }
    )

    with caplog.at_level(logging.WARNING, logger="adapters.graph.document_graph"):
        graph = DocumentRelationshipGraph.from_document(document)

    assert graph.children_of("a") == []
    assert graph.spouses_of("a") == []
    assert "unknown individual(s) ghost" in caplog.text
    assert "edge e1" in caplog.text


def test_self_links_are_ignored() -> None:
    document = GenealogyDocument.model_validate({"individuals": [{"id": "a", "spouses": ["a"]}]})

    assert DocumentRelationshipGraph.from_document(document).spouses_of("a") == []
