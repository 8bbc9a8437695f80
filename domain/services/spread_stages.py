from __future__ import annotations

from domain.services.dimensions import DimensionScale, combined_value
from domain.stages import StageContext
from domain.visual_document import VisualDocumentPatch

SPACING_MULTIPLIERS = {
    "tight": 0.6,
    "compact": 0.8,
    "normal": 1.0,
    "loose": 1.2,
    "sparse": 1.5,
}


def _spread(context: StageContext, extent: float) -> dict[str, float]:
    padding = float(context.visual.get("padding", 50))
    multiplier = SPACING_MULTIPLIERS[context.visual.get("spacing", "normal")]
    usable = max(extent - 2 * padding, 0.0)
    scale = DimensionScale.from_document(context.genealogy, context.graph)
    positions: dict[str, float] = {}
    for individual_id, individual in context.genealogy.individuals.items():
        value = combined_value(
            individual, scale, context.dimensions.primary, context.dimensions.secondary
        )
        positions[individual_id] = min(max(padding + value * usable * multiplier, 0.0), extent)
    return positions


def horizontal_spread_transform(context: StageContext) -> VisualDocumentPatch:
    """Place individuals along x by their weighted dimension value."""
    positions = _spread(context, context.canvas_width)
    return VisualDocumentPatch(
        individuals={individual_id: {"x": x} for individual_id, x in positions.items()}
    )


def vertical_spread_transform(context: StageContext) -> VisualDocumentPatch:
    """Place individuals along y by their weighted dimension value; x is untouched."""
    positions = _spread(context, context.canvas_height)
    return VisualDocumentPatch(
        individuals={individual_id: {"y": y} for individual_id, y in positions.items()}
    )
