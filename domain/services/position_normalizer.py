from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from domain.models import Bounds, PositionedNode, bounds_of


@dataclass(frozen=True)
class NormalizerConfig:
    min_margin: float = 80.0
    margin_ratio: float = 0.15


@dataclass(frozen=True)
class NormalizedLayout:
    positions: Dict[str, PositionedNode] = field(default_factory=dict)
    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    bounds: Optional[Bounds] = None


def canvas_margins(
    canvas_width: float, canvas_height: float, config: NormalizerConfig | None = None
) -> tuple[float, float]:
    config = config or NormalizerConfig()
    return (
        max(config.min_margin, canvas_width * config.margin_ratio),
        max(config.min_margin, canvas_height * config.margin_ratio),
    )


def normalize_positions(
    positions: Mapping[str, PositionedNode],
    canvas_width: float,
    canvas_height: float,
    config: NormalizerConfig | None = None,
) -> NormalizedLayout:
    """Fit tree-local positions into the canvas.

    The layout is shrunk to fit inside the margins but never enlarged,
    centered horizontally and anchored at the top margin.
    """
    bounds = bounds_of(list(positions.values()))
    if bounds is None:
        return NormalizedLayout()

    margin_x, margin_y = canvas_margins(canvas_width, canvas_height, config)
    available_width = max(canvas_width - 2 * margin_x, 1.0)
    available_height = max(canvas_height - 2 * margin_y, 1.0)
    scale_x = available_width / bounds.width if bounds.width > 0 else 1.0
    scale_y = available_height / bounds.height if bounds.height > 0 else 1.0
    scale = min(scale_x, scale_y, 1.0)

    offset_x = (canvas_width - bounds.width * scale) / 2 - bounds.min_x * scale
    offset_y = margin_y - bounds.min_y * scale
    normalized = {
        individual_id: PositionedNode(
            x=node.x * scale + offset_x,
            y=node.y * scale + offset_y,
            width=node.width * scale,
            height=node.height * scale,
        )
        for individual_id, node in positions.items()
    }
    return NormalizedLayout(
        positions=normalized,
        scale=scale,
        offset_x=offset_x,
        offset_y=offset_y,
        bounds=bounds,
    )
