from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from domain.models import GenealogyDocument, Individual
from domain.ports.relationships import RelationshipGraph

logger = logging.getLogger(__name__)

GENERATION = "generation"
BIRTH_YEAR = "birth_year"
CHILDREN_COUNT = "children_count"
LIFESPAN = "lifespan"
NAME_LENGTH = "name_length"

DIMENSION_IDS = (GENERATION, BIRTH_YEAR, CHILDREN_COUNT, LIFESPAN, NAME_LENGTH)

PRIMARY_WEIGHT = 0.7
SECONDARY_WEIGHT = 0.3
FALLBACK_VALUE = 0.5


@dataclass(frozen=True)
class DimensionScale:
    """Document-wide extremes used to bring every dimension into [0, 1]."""

    min_generation: int
    max_generation: int
    min_birth_year: Optional[int]
    max_birth_year: Optional[int]
    max_children: int
    max_lifespan: float
    max_name_length: int
    children_counts: Dict[str, int]

    @classmethod
    def from_document(
        cls, genealogy: GenealogyDocument, graph: RelationshipGraph
    ) -> "DimensionScale":
        individuals = list(genealogy.individuals.values())
        generations = [individual.generation for individual in individuals] or [0]
        birth_years = [
            individual.metadata.birth_year
            for individual in individuals
            if individual.metadata.birth_year is not None
        ]
        lifespans = [
            individual.metadata.lifespan
            for individual in individuals
            if individual.metadata.lifespan is not None
        ]
        children_counts = {
            individual.id: len(graph.children_of(individual.id)) for individual in individuals
        }
        return cls(
            min_generation=min(generations),
            max_generation=max(generations),
            min_birth_year=min(birth_years) if birth_years else None,
            max_birth_year=max(birth_years) if birth_years else None,
            max_children=max(children_counts.values(), default=0),
            max_lifespan=max(lifespans, default=0.0),
            max_name_length=max((len(individual.name) for individual in individuals), default=0),
            children_counts=children_counts,
        )


def dimension_value(dimension: str, individual: Individual, scale: DimensionScale) -> float:
    if dimension == GENERATION:
        relative = individual.metadata.relative_generation_value
        if relative is not None:
            return relative
        span = scale.max_generation - scale.min_generation
        return (individual.generation - scale.min_generation) / span if span else FALLBACK_VALUE
    if dimension == BIRTH_YEAR:
        if scale.min_birth_year is None or scale.max_birth_year is None:
            return FALLBACK_VALUE
        span = scale.max_birth_year - scale.min_birth_year
        year = individual.metadata.birth_year
        if year is None or not span:
            return FALLBACK_VALUE
        return (year - scale.min_birth_year) / span
    if dimension == CHILDREN_COUNT:
        if not scale.max_children:
            return FALLBACK_VALUE
        return scale.children_counts.get(individual.id, 0) / scale.max_children
    if dimension == LIFESPAN:
        if not scale.max_lifespan:
            return FALLBACK_VALUE
        return (individual.metadata.lifespan or 0.0) / scale.max_lifespan
    if dimension == NAME_LENGTH:
        if not scale.max_name_length:
            return FALLBACK_VALUE
        return len(individual.name) / scale.max_name_length
    logger.warning("Unknown dimension %s; using %.1f", dimension, FALLBACK_VALUE)
    return FALLBACK_VALUE


def combined_value(
    individual: Individual,
    scale: DimensionScale,
    primary: Optional[str],
    secondary: Optional[str],
) -> float:
    value = dimension_value(primary, individual, scale) if primary else FALLBACK_VALUE
    if secondary and secondary != primary:
        value = PRIMARY_WEIGHT * value + SECONDARY_WEIGHT * dimension_value(
            secondary, individual, scale
        )
    return value
