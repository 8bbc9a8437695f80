from __future__ import annotations

import pytest
from pydantic import ValidationError

from domain.models import Bounds, GenealogyDocument, PositionedNode, bounds_of


def test_individual_list_is_keyed_by_id() -> None:
    document = GenealogyDocument.model_validate(
        {"individuals": [{"id": "a", "gender": "m"}, {"id": "b"}]}
    )

    assert list(document.individuals) == ["a", "b"]
    assert document.individuals["a"].gender == "M"
    assert document.individuals["b"].generation == 0


def test_mismatched_individual_key_is_rejected() -> None:
    with pytest.raises(ValidationError, match="does not match"):
        GenealogyDocument.model_validate({"individuals": {"a": {"id": "b"}}})


def test_duplicate_ids_are_rejected() -> None:
    with pytest.raises(ValidationError, match="Duplicate individual id"):
        GenealogyDocument.model_validate({"individuals": [{"id": "a"}, {"id": "a"}]})

    edge = {"id": "e", "source_id": "a", "target_id": "b", "relationship_type": "spouse"}
    with pytest.raises(ValidationError, match="Duplicate edge id"):
        GenealogyDocument.model_validate({"edges": [edge, edge]})


def test_unknown_relationship_type_is_rejected() -> None:
    with pytest.raises(ValidationError):
        GenealogyDocument.model_validate(
            {
                "edges": [
                    {"id": "e", "source_id": "a", "target_id": "b", "relationship_type": "friend"}
                ]
            }
        )


def test_generation_counts(smith_family: GenealogyDocument) -> None:
    assert smith_family.generation_counts() == {0: 3, 1: 5, 2: 3}


def test_bounds_cover_node_extents() -> None:
    bounds = bounds_of(
        [PositionedNode(0, 0, 10, 4), PositionedNode(100, 50, 20, 10)]
    )

    assert bounds == Bounds(min_x=-5, min_y=-2, max_x=110, max_y=55)
    assert bounds is not None and bounds.width == 115
    assert bounds_of([]) is None
