from __future__ import annotations

import pytest

from adapters.graph.document_graph import DocumentRelationshipGraph
from domain.models import GenealogyDocument
from domain.services import dimensions
from domain.services.dimensions import DimensionScale, combined_value, dimension_value
from domain.services.spread_stages import horizontal_spread_transform, vertical_spread_transform
from domain.stages import StageKind
from domain.visual_document import merge_visual_document
from tests.helpers.genealogy_fixtures import make_genealogy
from tests.helpers.stage_fixtures import make_stage_context


def _scale(document: GenealogyDocument) -> DimensionScale:
    return DimensionScale.from_document(document, DocumentRelationshipGraph.from_document(document))


def test_dimension_values_are_normalized(smith_family: GenealogyDocument) -> None:
    scale = _scale(smith_family)
    people = smith_family.individuals

    assert dimension_value(dimensions.GENERATION, people["robert"], scale) == 0.5
    assert dimension_value(dimensions.BIRTH_YEAR, people["john"], scale) == 0
    assert dimension_value(dimensions.BIRTH_YEAR, people["lucy"], scale) == 1
    assert dimension_value(dimensions.CHILDREN_COUNT, people["susan"], scale) == 0.5
    assert dimension_value(dimensions.LIFESPAN, people["mary"], scale) == 1
    assert dimension_value(dimensions.LIFESPAN, people["tom"], scale) == 0
    assert 0 < dimension_value(dimensions.NAME_LENGTH, people["tom"], scale) < 1


def test_missing_values_fall_back_to_the_middle() -> None:
    document = make_genealogy([("a", None, 0), ("b", None, 0)])
    scale = _scale(document)
    a = document.individuals["a"]

    assert dimension_value(dimensions.GENERATION, a, scale) == 0.5
    assert dimension_value(dimensions.BIRTH_YEAR, a, scale) == 0.5
    assert dimension_value(dimensions.CHILDREN_COUNT, a, scale) == 0.5
    assert dimension_value("shoe_size", a, scale) == 0.5


def test_generation_without_relative_value_uses_span() -> None:
    document = make_genealogy([("a", None, 2), ("b", None, 4), ("c", None, 3)])
    scale = _scale(document)

    values = [
        dimension_value(dimensions.GENERATION, document.individuals[key], scale) for key in "abc"
    ]
    assert values == [0, 1, 0.5]


def test_combined_value_weights_primary_and_secondary(smith_family: GenealogyDocument) -> None:
    scale = _scale(smith_family)
    tom = smith_family.individuals["tom"]

    assert combined_value(tom, scale, "generation", "children_count") == pytest.approx(0.7)
    assert combined_value(tom, scale, "generation", None) == 1
    assert combined_value(tom, scale, "generation", "generation") == 1
    assert combined_value(tom, scale, None, None) == 0.5


def test_horizontal_spread_sets_only_x(smith_family: GenealogyDocument) -> None:
    context = make_stage_context(smith_family, StageKind.HORIZONTAL_SPREAD)

    patch = horizontal_spread_transform(context)

    assert set(patch.individuals) == set(smith_family.individuals)
    assert all(set(attrs) == {"x"} for attrs in patch.individuals.values())
    # usable width 700: john 0.3, tom 0.7
    assert patch.individuals["john"]["x"] == pytest.approx(50 + 0.3 * 700)
    assert patch.individuals["tom"]["x"] == pytest.approx(50 + 0.7 * 700)
    assert patch.families == {} and patch.edges == {} and patch.tree == {}


def test_vertical_spread_leaves_x_untouched(smith_family: GenealogyDocument) -> None:
    context = make_stage_context(smith_family, StageKind.VERTICAL_SPREAD)

    patch = vertical_spread_transform(context)
    merged = merge_visual_document(context.document, patch)

    assert patch.individuals["john"] == {"y": pytest.approx(50)}
    assert patch.individuals["lucy"] == {"y": pytest.approx(550)}
    assert merged.individuals["lucy"]["x"] == context.document.individuals["lucy"]["x"]


def test_spacing_and_padding_stay_inside_the_canvas(smith_family: GenealogyDocument) -> None:
    sparse = make_stage_context(
        smith_family, StageKind.VERTICAL_SPREAD, visual={"spacing": "sparse", "padding": 0}
    )
    tight = make_stage_context(
        smith_family, StageKind.VERTICAL_SPREAD, visual={"spacing": "tight", "padding": 100}
    )

    sparse_y = vertical_spread_transform(sparse).individuals
    tight_y = vertical_spread_transform(tight).individuals

    assert sparse_y["lucy"]["y"] == 600
    assert tight_y["lucy"]["y"] == pytest.approx(100 + 0.6 * 400)
    assert all(0 <= attrs["y"] <= 600 for attrs in sparse_y.values())


def test_spread_is_deterministic(smith_family: GenealogyDocument) -> None:
    context = make_stage_context(
        smith_family, StageKind.HORIZONTAL_SPREAD, primary="lifespan", secondary="name_length"
    )

    assert horizontal_spread_transform(context) == horizontal_spread_transform(context)


def test_spread_over_empty_document_is_empty() -> None:
    context = make_stage_context(GenealogyDocument(), StageKind.HORIZONTAL_SPREAD)

    assert horizontal_spread_transform(context).is_empty()
