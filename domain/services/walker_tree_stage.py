from __future__ import annotations

import logging
from typing import Any, Dict

from domain.services.position_normalizer import normalize_positions
from domain.services.walker_positioning import WalkerPositioningEngine
from domain.services.walker_tree_builder import WalkerTreeBuilder
from domain.stages import StageContext
from domain.visual_document import VisualDocumentPatch
from domain.walker import WalkerLayoutConfig

logger = logging.getLogger(__name__)

LAYOUT_NAME = "walker-tree"


def layout_config_from_parameters(visual: Dict[str, Any]) -> WalkerLayoutConfig:
    defaults = WalkerLayoutConfig()
    return WalkerLayoutConfig(
        node_spacing=float(visual.get("node_spacing", defaults.node_spacing)),
        generation_spacing=float(visual.get("generation_spacing", defaults.generation_spacing)),
        spouse_spacing=float(visual.get("spouse_spacing", defaults.spouse_spacing)),
        family_spacing=float(visual.get("family_spacing", defaults.family_spacing)),
        tree_spacing=float(visual.get("tree_spacing", defaults.tree_spacing)),
    )


def walker_tree_transform(context: StageContext) -> VisualDocumentPatch:
    individuals = context.genealogy.individuals
    if not individuals:
        return VisualDocumentPatch()

    config = layout_config_from_parameters(dict(context.visual))
    forest = WalkerTreeBuilder(config).build(individuals, context.graph, context.canvas_width)
    raw_positions = WalkerPositioningEngine(config).position(forest)
    layout = normalize_positions(raw_positions, context.canvas_width, context.canvas_height)
    logger.debug(
        "Walker layout: %d trees, scale %.3f", len(forest.trees), layout.scale
    )

    show_labels = bool(context.visual.get("show_labels", False))
    min_label_size = float(context.visual.get("min_label_size", 12))
    individual_attrs: Dict[str, Dict[str, Any]] = {}
    for individual_id, node in layout.positions.items():
        attrs: Dict[str, Any] = {
            "x": node.x,
            "y": node.y,
            "width": node.width,
            "height": node.height,
            "size": node.width,
        }
        if show_labels:
            label_size = max(min_label_size, node.height * 0.4)
            attrs.update(
                label=individuals[individual_id].name,
                label_size=label_size,
                label_offset_y=node.height / 2 + label_size,
            )
        individual_attrs[individual_id] = attrs

    edge_attrs: Dict[str, Dict[str, Any]] = {}
    for edge in context.genealogy.edges:
        if edge.id not in context.document.edges:
            continue
        source = layout.positions.get(edge.source_id)
        target = layout.positions.get(edge.target_id)
        if source is None or target is None:
            continue
        edge_attrs[edge.id] = {
            "source_x": source.x,
            "source_y": source.y,
            "target_x": target.x,
            "target_y": target.y,
            "edge_type": edge.relationship_type,
        }

    primary = forest.primary_tree
    return VisualDocumentPatch(
        individuals=individual_attrs,
        edges=edge_attrs,
        tree={
            "layout": LAYOUT_NAME,
            "tree_count": len(forest.trees),
            "primary_root": forest.nodes[primary.root].individual_id if primary else None,
            "scale": layout.scale,
        },
    )
