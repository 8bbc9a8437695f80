from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

Gender = Literal["M", "F", "U"]
RelationshipType = Literal["parent-child", "spouse", "sibling"]


class IndividualMetadata(BaseModel):
    generation: Optional[int] = None
    relative_generation_value: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    birth_year: Optional[int] = None
    lifespan: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class Individual(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = ""
    gender: Optional[Gender] = None
    parents: List[str] = Field(default_factory=list)
    spouses: List[str] = Field(default_factory=list)
    children: List[str] = Field(default_factory=list)
    siblings: List[str] = Field(default_factory=list)
    metadata: IndividualMetadata = Field(default_factory=IndividualMetadata)

    @field_validator("gender", mode="before")
    @classmethod
    def normalize_gender(cls, value: object) -> Optional[str]:
        if value is None or value == "":
            return None
        return str(value).strip().upper()

    @property
    def generation(self) -> int:
        return self.metadata.generation if self.metadata.generation is not None else 0


class Family(BaseModel):
    id: str = Field(..., min_length=1)
    husband_id: Optional[str] = None
    wife_id: Optional[str] = None
    children_ids: List[str] = Field(default_factory=list)

    def parent_ids(self) -> List[str]:
        return [pid for pid in (self.husband_id, self.wife_id) if pid]


class RelationshipEdge(BaseModel):
    id: str = Field(..., min_length=1)
    source_id: str = Field(..., min_length=1)
    target_id: str = Field(..., min_length=1)
    relationship_type: RelationshipType
    family_id: Optional[str] = None


def _keyed_records(value: Any, label: str) -> Any:
    if isinstance(value, list):
        keyed: Dict[str, Any] = {}
        for item in value:
            record_id = item.get("id") if isinstance(item, dict) else getattr(item, "id", None)
            if not record_id:
                msg = f"{label} record without id"
                raise ValueError(msg)
            if record_id in keyed:
                msg = f"Duplicate {label} id found: {record_id}"
                raise ValueError(msg)
            keyed[record_id] = item
        return keyed
    return value


class GenealogyDocument(BaseModel):
    individuals: Dict[str, Individual] = Field(default_factory=dict)
    families: Dict[str, Family] = Field(default_factory=dict)
    edges: List[RelationshipEdge] = Field(default_factory=list)

    @field_validator("individuals", mode="before")
    @classmethod
    def key_individuals(cls, value: Any) -> Any:
        return _keyed_records(value, "individual")

    @field_validator("families", mode="before")
    @classmethod
    def key_families(cls, value: Any) -> Any:
        return _keyed_records(value, "family")

    @field_validator("edges", mode="after")
    @classmethod
    def ensure_unique_edge_ids(cls, edges: List[RelationshipEdge]) -> List[RelationshipEdge]:
        seen: set[str] = set()
        for edge in edges:
            if edge.id in seen:
                msg = f"Duplicate edge id found: {edge.id}"
                raise ValueError(msg)
            seen.add(edge.id)
        return edges

    @model_validator(mode="after")
    def ensure_keys_match_ids(self) -> "GenealogyDocument":
        for key, individual in self.individuals.items():
            if key != individual.id:
                msg = f"Individual key '{key}' does not match its id '{individual.id}'"
                raise ValueError(msg)
        for key, family in self.families.items():
            if key != family.id:
                msg = f"Family key '{key}' does not match its id '{family.id}'"
                raise ValueError(msg)
        return self

    def generation_counts(self) -> Dict[int, int]:
        return count_generations(self.individuals.values())


def count_generations(individuals: Iterable[Individual]) -> Dict[int, int]:
    """Number of individuals per generation, in first-seen order."""
    counts: Dict[int, int] = {}
    for individual in individuals:
        counts[individual.generation] = counts.get(individual.generation, 0) + 1
    return counts


@dataclass(frozen=True)
class PositionedNode:
    x: float
    y: float
    width: float
    height: float

    @property
    def left(self) -> float:
        return self.x - self.width / 2

    @property
    def right(self) -> float:
        return self.x + self.width / 2

    @property
    def top(self) -> float:
        return self.y - self.height / 2

    @property
    def bottom(self) -> float:
        return self.y + self.height / 2


@dataclass(frozen=True)
class Bounds:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def overlaps(self, other: "Bounds") -> bool:
        return not (
            self.max_x <= other.min_x
            or other.max_x <= self.min_x
            or self.max_y <= other.min_y
            or other.max_y <= self.min_y
        )


def bounds_of(nodes: List[PositionedNode]) -> Optional[Bounds]:
    if not nodes:
        return None
    return Bounds(
        min_x=min(node.left for node in nodes),
        min_y=min(node.top for node in nodes),
        max_x=max(node.right for node in nodes),
        max_y=max(node.bottom for node in nodes),
    )
