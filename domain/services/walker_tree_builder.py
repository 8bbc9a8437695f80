from __future__ import annotations

import logging
from collections import deque
from collections.abc import Mapping
from typing import Dict, List, Optional

from domain.errors import ForestStructureError
from domain.models import Individual, count_generations
from domain.ports.relationships import RelationshipGraph
from domain.walker import WalkerForest, WalkerLayoutConfig, WalkerNode, WalkerTree

logger = logging.getLogger(__name__)

_GENDER_RANK = {"M": 0, "U": 1, None: 1, "F": 2}


class WalkerTreeBuilder:
    """Turns a relationship graph into an arena of Walker trees.

    Tree shape policy: a child hangs under the first parent that registers
    it. When that parent is part of a couple, the child moves to the
    partner who owns the couple's children. Spouses without parents of
    their own are spliced into their partner's sibling chain. Every node
    ends up in exactly one tree.
    """

    def __init__(self, config: WalkerLayoutConfig | None = None) -> None:
        self.config = config or WalkerLayoutConfig()

    def build(
        self,
        individuals: Mapping[str, Individual],
        graph: RelationshipGraph,
        canvas_width: float,
    ) -> WalkerForest:
        forest = self._create_nodes(individuals, canvas_width)
        if not forest.nodes:
            return forest
        self._link_children(forest, graph)
        self._link_spouses(forest, graph)
        anchors = self._cluster_spouses(forest)
        roots = self._select_roots(forest, anchors)
        self._assign_layout_children(forest, anchors)
        forest.trees = self._build_trees(forest, roots, anchors)
        validate_forest(forest)
        logger.debug(
            "Built walker forest: %d nodes, %d trees", len(forest.nodes), len(forest.trees)
        )
        return forest

    def _create_nodes(
        self, individuals: Mapping[str, Individual], canvas_width: float
    ) -> WalkerForest:
        forest = WalkerForest()
        if not individuals:
            return forest
        per_generation = count_generations(individuals.values())
        base_size = self._base_node_size(max(per_generation.values()), canvas_width)
        for individual in individuals.values():
            count = per_generation[individual.generation]
            width = base_size * min(1.0, 10 / count)
            index = len(forest.nodes)
            forest.nodes.append(
                WalkerNode(
                    index=index,
                    individual_id=individual.id,
                    name=individual.name,
                    gender=individual.gender,
                    generation=individual.generation,
                    width=width,
                    height=width * 0.67,
                )
            )
            forest.index_by_id[individual.id] = index
        return forest

    def _base_node_size(self, max_per_generation: int, canvas_width: float) -> float:
        fitted = canvas_width * 0.8 / (max_per_generation * 1.2)
        return min(self.config.max_node_size, max(self.config.min_node_size, fitted))

    def _link_children(self, forest: WalkerForest, graph: RelationshipGraph) -> None:
        for node in forest.nodes:
            for child in graph.children_of(node.individual_id):
                child_index = forest.index_by_id.get(child.id)
                if child_index is None:
                    logger.warning(
                        "Skipping unknown child %s of %s", child.id, node.individual_id
                    )
                    continue
                if child_index == node.index or child_index in node.children:
                    continue
                node.children.append(child_index)
                child_node = forest.nodes[child_index]
                if child_node.parent is None:
                    child_node.parent = node.index

    def _link_spouses(self, forest: WalkerForest, graph: RelationshipGraph) -> None:
        for node in forest.nodes:
            for spouse in graph.spouses_of(node.individual_id):
                spouse_index = forest.index_by_id.get(spouse.id)
                if spouse_index is None:
                    logger.warning(
                        "Skipping unknown spouse %s of %s", spouse.id, node.individual_id
                    )
                    continue
                if spouse_index == node.index:
                    continue
                if spouse_index not in node.spouses:
                    node.spouses.append(spouse_index)
                partner = forest.nodes[spouse_index]
                if node.index not in partner.spouses:
                    partner.spouses.append(node.index)

    def _cluster_spouses(self, forest: WalkerForest) -> Dict[int, List[int]]:
        """Group couples and splice parentless spouses next to their partner.

        Returns the cluster-ordered members attached at each anchor node,
        anchor included.
        """
        anchors: Dict[int, List[int]] = {}
        cluster_id = 0
        for node in forest.nodes:
            if node.family_id is not None:
                continue
            members = [node] + [
                forest.nodes[spouse]
                for spouse in node.spouses
                if forest.nodes[spouse].family_id is None
            ]
            members.sort(key=_cluster_order)
            anchor = next((member for member in members if member.parent is not None), members[0])
            owner = anchor if anchor.children else next(
                (member for member in members if member.children), anchor
            )
            merged_children: List[int] = []
            for member in members:
                member.family_id = cluster_id
                for child in member.children:
                    if child not in merged_children:
                        merged_children.append(child)
            for member in members:
                member.children = list(merged_children)
            cluster_id += 1

            # One partner carries the couple's layout children.
            member_indices = {member.index for member in members}
            for child in merged_children:
                child_node = forest.nodes[child]
                if child in member_indices or child_node.parent not in member_indices:
                    continue
                previous = child_node.parent
                for partner in anchors.get(child, [child]):
                    if forest.nodes[partner].parent == previous:
                        forest.nodes[partner].parent = owner.index

            attached = [anchor.index]
            for member in members:
                if member is anchor or member.parent is not None:
                    continue
                member.parent = anchor.parent
                member.spliced = True
                attached.append(member.index)
            if len(attached) > 1:
                anchors[anchor.index] = sorted(
                    attached, key=lambda index: _cluster_order(forest.nodes[index])
                )
        return anchors

    def _select_roots(self, forest: WalkerForest, anchors: Dict[int, List[int]]) -> List[int]:
        roots = [
            node.index for node in forest.nodes if node.parent is None and not node.spliced
        ]
        if not roots:
            earliest = min(node.generation for node in forest.nodes)
            logger.warning(
                "Every individual has a parent; using generation %d as roots", earliest
            )
            for node in forest.nodes:
                if node.generation == earliest and not node.spliced:
                    self._detach(forest, node.index, anchors)
                    roots.append(node.index)

        reached = self._reachable(forest, roots, anchors)
        while len(reached) < len(forest.nodes):
            stranded = min(
                (node for node in forest.nodes if node.index not in reached),
                key=lambda node: (node.generation, node.index),
            )
            logger.warning(
                "Parent cycle around %s; detaching it as an extra root", stranded.individual_id
            )
            self._detach(forest, stranded.index, anchors)
            roots.append(stranded.index)
            reached |= self._reachable(forest, [stranded.index], anchors)
        return roots

    def _detach(self, forest: WalkerForest, index: int, anchors: Dict[int, List[int]]) -> None:
        node = forest.nodes[index]
        node.parent = None
        if node.spliced:
            node.spliced = False
            for attached in anchors.values():
                if index in attached:
                    attached.remove(index)
        for spliced in anchors.get(index, []):
            if spliced != index:
                forest.nodes[spliced].parent = None

    def _reachable(
        self, forest: WalkerForest, starts: List[int], anchors: Dict[int, List[int]]
    ) -> set[int]:
        hanging: Dict[Optional[int], List[int]] = {}
        for node in forest.nodes:
            hanging.setdefault(node.parent, []).append(node.index)
        reached: set[int] = set()
        queue = deque()
        for start in starts:
            queue.append(start)
            queue.extend(index for index in anchors.get(start, []) if index != start)
        while queue:
            index = queue.popleft()
            if index in reached:
                continue
            reached.add(index)
            queue.extend(hanging.get(index, []))
        return reached

    def _assign_layout_children(
        self, forest: WalkerForest, anchors: Dict[int, List[int]]
    ) -> None:
        for node in forest.nodes:
            chain: List[int] = []
            for child in node.children:
                child_node = forest.nodes[child]
                if child_node.parent != node.index or child_node.spliced:
                    continue
                chain.extend(self._attached(forest, child, anchors))
            node.layout_children = _dedupe(chain)
            _link_siblings(forest, node.layout_children)

    def _attached(
        self, forest: WalkerForest, index: int, anchors: Dict[int, List[int]]
    ) -> List[int]:
        parent = forest.nodes[index].parent
        return [
            member
            for member in anchors.get(index, [index])
            if member == index or forest.nodes[member].parent == parent
        ]

    def _build_trees(
        self, forest: WalkerForest, roots: List[int], anchors: Dict[int, List[int]]
    ) -> List[WalkerTree]:
        trees: List[WalkerTree] = []
        for root in roots:
            top_level = self._attached(forest, root, anchors)
            _link_siblings(forest, top_level)
            for index in top_level:
                forest.nodes[index].parent = None
            descendants = sum(_subtree_size(forest, index) - 1 for index in top_level)
            trees.append(WalkerTree(root=root, top_level=top_level, descendant_count=descendants))
        trees.sort(key=lambda tree: -tree.descendant_count)
        return trees


def _cluster_order(node: WalkerNode) -> tuple[int, str, str]:
    return (_GENDER_RANK.get(node.gender, 1), node.name, node.individual_id or "")


def _dedupe(indices: List[int]) -> List[int]:
    return list(dict.fromkeys(indices))


def _link_siblings(forest: WalkerForest, chain: List[int]) -> None:
    for position, index in enumerate(chain):
        node = forest.nodes[index]
        node.number = position + 1
        node.left_sibling = chain[position - 1] if position > 0 else None
        node.right_sibling = chain[position + 1] if position + 1 < len(chain) else None


def _subtree_size(forest: WalkerForest, index: int) -> int:
    size = 0
    stack = [index]
    while stack:
        current = stack.pop()
        size += 1
        stack.extend(forest.nodes[current].layout_children)
    return size


def validate_forest(forest: WalkerForest) -> None:
    """Check that the trees cover every node exactly once.

    Raises ``ForestStructureError`` when a node is shared between subtrees,
    reachable through a cycle, or not reachable at all.
    """
    seen: set[int] = set()
    for tree in forest.trees:
        stack = list(reversed(tree.top_level))
        while stack:
            index = stack.pop()
            if index in seen:
                node = forest.nodes[index]
                msg = f"Individual {node.individual_id} is reachable more than once"
                raise ForestStructureError(msg)
            seen.add(index)
            stack.extend(reversed(forest.nodes[index].layout_children))
    if len(seen) != len(forest.nodes):
        missing = [
            node.individual_id for node in forest.nodes if node.index not in seen
        ]
        msg = f"Individuals not reachable from any root: {', '.join(map(str, missing))}"
        raise ForestStructureError(msg)
