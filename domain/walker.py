from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class WalkerLayoutConfig:
    node_spacing: float = 60.0
    generation_spacing: float = 150.0
    spouse_spacing: float = 30.0
    family_spacing: float = 80.0
    tree_spacing: float = 200.0
    top_margin: float = 100.0
    min_node_size: float = 20.0
    max_node_size: float = 80.0


@dataclass(eq=False)
class WalkerNode:
    """One arena slot. Every link is an index into ``WalkerForest.nodes``.

    ``children`` holds the children of the whole spouse cluster; the tree
    shape only follows ``layout_children`` (children whose first-registered
    parent is this node, plus spouses spliced in next to them).
    """

    index: int
    individual_id: Optional[str]
    name: str = ""
    gender: Optional[str] = None
    generation: int = 0
    width: float = 0.0
    height: float = 0.0
    parent: Optional[int] = None
    children: List[int] = field(default_factory=list)
    layout_children: List[int] = field(default_factory=list)
    left_sibling: Optional[int] = None
    right_sibling: Optional[int] = None
    number: int = 0
    spouses: List[int] = field(default_factory=list)
    family_id: Optional[int] = None
    spliced: bool = False
    prelim: float = 0.0
    mod: float = 0.0
    shift: float = 0.0
    change: float = 0.0
    thread: Optional[int] = None
    ancestor: int = -1
    x: float = 0.0
    y: float = 0.0

    def __post_init__(self) -> None:
        if self.ancestor < 0:
            self.ancestor = self.index

    @property
    def is_virtual(self) -> bool:
        return self.individual_id is None


@dataclass(frozen=True)
class WalkerTree:
    root: int
    top_level: List[int]
    descendant_count: int


@dataclass
class WalkerForest:
    nodes: List[WalkerNode] = field(default_factory=list)
    index_by_id: Dict[str, int] = field(default_factory=dict)
    trees: List[WalkerTree] = field(default_factory=list)

    @property
    def primary_tree(self) -> Optional[WalkerTree]:
        return self.trees[0] if self.trees else None

    def node(self, individual_id: str) -> WalkerNode:
        return self.nodes[self.index_by_id[individual_id]]
