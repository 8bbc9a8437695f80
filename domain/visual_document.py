from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

from domain.errors import StageOutputError
from domain.models import GenealogyDocument

logger = logging.getLogger(__name__)

Attrs = Dict[str, Any]
EntityAttrs = Dict[str, Attrs]

GLOBAL_KEY = "global"
ENTITY_GROUPS = ("individuals", "families", "edges")

DEFAULT_CANVAS_WIDTH = 800
DEFAULT_CANVAS_HEIGHT = 600
DEFAULT_NODE_SIZE = 20
DEFAULT_SCALE = 1.0
DEFAULT_COLOR = "#cccccc"
DEFAULT_BACKGROUND_COLOR = "#ffffff"
DEFAULT_STROKE_COLOR = "#000000"
DEFAULT_OPACITY = 0.8
DEFAULT_SHAPE = "circle"
DEFAULT_STROKE_WEIGHT = 1
DEFAULT_STROKE_STYLE = "solid"


@dataclass(frozen=True)
class VisualDocument:
    """Per-entity visual attributes shared by every stage of a run.

    Instances are replaced, never edited: ``merge_visual_document`` returns a
    new document and stages only see deep-copied snapshots.
    """

    individuals: EntityAttrs = field(default_factory=dict)
    families: EntityAttrs = field(default_factory=dict)
    edges: EntityAttrs = field(default_factory=dict)
    tree: Attrs = field(default_factory=dict)
    global_attrs: Attrs = field(default_factory=dict)

    def snapshot(self) -> "VisualDocument":
        return copy.deepcopy(self)

    def entity_group(self, name: str) -> EntityAttrs:
        return getattr(self, name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "individuals": copy.deepcopy(self.individuals),
            "families": copy.deepcopy(self.families),
            "edges": copy.deepcopy(self.edges),
            "tree": copy.deepcopy(self.tree),
            GLOBAL_KEY: copy.deepcopy(self.global_attrs),
        }


@dataclass(frozen=True)
class VisualDocumentPatch:
    """Partial visual document: only the entities and keys a stage changed."""

    individuals: EntityAttrs = field(default_factory=dict)
    families: EntityAttrs = field(default_factory=dict)
    edges: EntityAttrs = field(default_factory=dict)
    tree: Attrs = field(default_factory=dict)
    global_attrs: Attrs = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (
            self.individuals or self.families or self.edges or self.tree or self.global_attrs
        )

    def entity_group(self, name: str) -> EntityAttrs:
        return getattr(self, name)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        for name in ENTITY_GROUPS:
            group = self.entity_group(name)
            if group:
                payload[name] = copy.deepcopy(group)
        if self.tree:
            payload["tree"] = copy.deepcopy(self.tree)
        if self.global_attrs:
            payload[GLOBAL_KEY] = copy.deepcopy(self.global_attrs)
        return payload

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "VisualDocumentPatch":
        if not isinstance(raw, Mapping):
            msg = f"Stage output must be a mapping, got {type(raw).__name__}"
            raise StageOutputError(msg)
        unknown = set(raw) - {*ENTITY_GROUPS, "tree", GLOBAL_KEY}
        if unknown:
            msg = f"Stage output has unknown sections: {', '.join(sorted(unknown))}"
            raise StageOutputError(msg)
        groups = {name: _entity_group(raw.get(name), name) for name in ENTITY_GROUPS}
        return cls(
            **groups,
            tree=_attrs(raw.get("tree"), "tree"),
            global_attrs=_attrs(raw.get(GLOBAL_KEY), GLOBAL_KEY),
        )


def _attrs(value: Any, label: str) -> Attrs:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        msg = f"Attributes for {label} must be a mapping, got {type(value).__name__}"
        raise StageOutputError(msg)
    return dict(value)


def _entity_group(value: Any, label: str) -> EntityAttrs:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        msg = f"Section {label} must be a mapping of entity ids"
        raise StageOutputError(msg)
    return {str(entity_id): _attrs(attrs, f"{label}[{entity_id}]") for entity_id, attrs in value.items()}


@dataclass(frozen=True)
class ChangeSet:
    """Attribute keys one stage declared, per entity."""

    individuals: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    families: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    edges: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    tree: Tuple[str, ...] = ()

    def is_empty(self) -> bool:
        return not (self.individuals or self.families or self.edges or self.tree)


def build_change_set(patch: VisualDocumentPatch) -> ChangeSet:
    def _keys(group: EntityAttrs) -> Dict[str, Tuple[str, ...]]:
        return {entity_id: tuple(attrs) for entity_id, attrs in group.items() if attrs}

    return ChangeSet(
        individuals=_keys(patch.individuals),
        families=_keys(patch.families),
        edges=_keys(patch.edges),
        tree=tuple(patch.tree),
    )


def _overlay(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> Attrs:
    merged: Attrs = dict(base)
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = _overlay(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _overlay_entities(base: EntityAttrs, overlay: EntityAttrs) -> EntityAttrs:
    if not overlay:
        return base
    merged: EntityAttrs = dict(base)
    for entity_id, attrs in overlay.items():
        merged[entity_id] = _overlay(base.get(entity_id, {}), attrs)
    return merged


def merge_visual_document(
    document: VisualDocument, patch: VisualDocumentPatch
) -> VisualDocument:
    """Deep key-wise overlay of ``patch`` onto ``document``.

    Keys absent from the patch are kept. An empty patch returns ``document``
    itself.
    """
    if patch.is_empty():
        return document
    return VisualDocument(
        individuals=_overlay_entities(document.individuals, patch.individuals),
        families=_overlay_entities(document.families, patch.families),
        edges=_overlay_entities(document.edges, patch.edges),
        tree=_overlay(document.tree, patch.tree) if patch.tree else document.tree,
        global_attrs=(
            _overlay(document.global_attrs, patch.global_attrs)
            if patch.global_attrs
            else document.global_attrs
        ),
    )


def _initial_entity_attrs(canvas_width: float, canvas_height: float) -> Attrs:
    return {
        "x": canvas_width / 2,
        "y": canvas_height / 2,
        "size": DEFAULT_NODE_SIZE,
        "scale": DEFAULT_SCALE,
        "color": DEFAULT_COLOR,
        "background_color": DEFAULT_BACKGROUND_COLOR,
        "stroke_color": DEFAULT_STROKE_COLOR,
        "opacity": DEFAULT_OPACITY,
        "alpha": 1.0,
        "shape": DEFAULT_SHAPE,
        "stroke_weight": DEFAULT_STROKE_WEIGHT,
        "stroke_style": DEFAULT_STROKE_STYLE,
        "rotation": 0,
        "group": "default",
        "layer": 0,
        "priority": 0,
        "custom": {},
    }


def create_initial_visual_document(
    genealogy: GenealogyDocument,
    canvas_width: float = DEFAULT_CANVAS_WIDTH,
    canvas_height: float = DEFAULT_CANVAS_HEIGHT,
) -> VisualDocument:
    individuals = {
        individual_id: _initial_entity_attrs(canvas_width, canvas_height)
        for individual_id in genealogy.individuals
    }
    families = {
        family_id: {
            "color": DEFAULT_COLOR,
            "stroke_color": "#666",
            "stroke_weight": DEFAULT_STROKE_WEIGHT,
            "stroke_style": DEFAULT_STROKE_STYLE,
            "opacity": DEFAULT_OPACITY,
            "group": "default",
            "layer": 0,
            "priority": 0,
        }
        for family_id in genealogy.families
    }
    edges: EntityAttrs = {}
    for edge in genealogy.edges:
        missing = [
            endpoint
            for endpoint in (edge.source_id, edge.target_id)
            if endpoint not in genealogy.individuals
        ]
        if missing:
            logger.warning(
                "Skipping edge %s: unknown individual(s) %s", edge.id, ", ".join(missing)
            )
            continue
        edges[edge.id] = {
            "stroke_color": DEFAULT_STROKE_COLOR,
            "stroke_weight": DEFAULT_STROKE_WEIGHT,
            "stroke_style": DEFAULT_STROKE_STYLE,
            "opacity": 0.5,
            "group": "edges",
            "layer": 1,
            "priority": 0,
        }
    return VisualDocument(
        individuals=individuals,
        families=families,
        edges=edges,
        tree={
            "background_color": DEFAULT_BACKGROUND_COLOR,
            "group": "tree",
            "layer": 0,
            "priority": 0,
        },
        global_attrs={
            "canvas_width": canvas_width,
            "canvas_height": canvas_height,
            "background_color": DEFAULT_BACKGROUND_COLOR,
            "default_node_size": DEFAULT_NODE_SIZE,
            "default_edge_weight": DEFAULT_STROKE_WEIGHT,
            "default_node_color": DEFAULT_COLOR,
            "default_edge_color": DEFAULT_STROKE_COLOR,
            "default_node_shape": DEFAULT_SHAPE,
            "default_edge_style": DEFAULT_STROKE_STYLE,
        },
    )
