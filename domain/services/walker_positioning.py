from __future__ import annotations

import copy
import logging
from typing import Dict, List, Optional

from domain.models import PositionedNode
from domain.services.walker_tree_builder import validate_forest
from domain.walker import WalkerForest, WalkerLayoutConfig, WalkerNode, WalkerTree

logger = logging.getLogger(__name__)

_EPSILON = 1e-9


class WalkerPositioningEngine:
    """Two-pass tidy tree layout (Walker, with Buchheim's linear apportion).

    Each tree of the forest hangs under a virtual root so its top-level
    chain is spaced like any other sibling chain. Positions are returned in
    tree-local units; trees are placed left to right, ``tree_spacing``
    apart.
    """

    def __init__(self, config: WalkerLayoutConfig | None = None) -> None:
        self.config = config or WalkerLayoutConfig()

    def position(self, forest: WalkerForest) -> Dict[str, PositionedNode]:
        if not forest.nodes:
            return {}
        validate_forest(forest)
        nodes = copy.deepcopy(forest.nodes)
        min_generation = min(node.generation for node in nodes)

        placed: Dict[int, PositionedNode] = {}
        cursor: Optional[float] = None
        for tree in forest.trees:
            tree_nodes = self._position_tree(nodes, tree, min_generation)
            left = min(nodes[index].x - nodes[index].width / 2 for index in tree_nodes)
            right = max(nodes[index].x + nodes[index].width / 2 for index in tree_nodes)
            dx = -left if cursor is None else cursor + self.config.tree_spacing - left
            for index in tree_nodes:
                node = nodes[index]
                placed[index] = PositionedNode(
                    x=node.x + dx, y=node.y, width=node.width, height=node.height
                )
            cursor = right + dx

        return {
            node.individual_id: placed[node.index]
            for node in forest.nodes
            if node.individual_id is not None
        }

    def _position_tree(
        self, nodes: List[WalkerNode], tree: WalkerTree, min_generation: int
    ) -> List[int]:
        virtual = WalkerNode(index=len(nodes), individual_id=None)
        nodes.append(virtual)
        virtual.layout_children = list(tree.top_level)
        for position, index in enumerate(tree.top_level):
            node = nodes[index]
            node.parent = virtual.index
            node.number = position + 1
            node.left_sibling = tree.top_level[position - 1] if position > 0 else None
            node.right_sibling = (
                tree.top_level[position + 1] if position + 1 < len(tree.top_level) else None
            )

        self._first_walk(nodes, virtual.index)
        generation_offset = max(0, nodes[tree.root].generation - min_generation)
        order: List[int] = []
        for index in tree.top_level:
            self._second_walk(nodes, index, virtual.mod, generation_offset, order)
        self._center_parents(nodes, order)
        return order

    def distance(self, left: WalkerNode, right: WalkerNode) -> float:
        """Required center-to-center gap between horizontally adjacent nodes."""
        half_widths = (left.width + right.width) / 2
        if right.index in left.spouses:
            return self.config.spouse_spacing + half_widths
        gap = self.config.node_spacing + half_widths
        if left.family_id != right.family_id and (left.spouses or right.spouses):
            gap += self.config.family_spacing
        return gap

    def _first_walk(self, nodes: List[WalkerNode], index: int) -> None:
        node = nodes[index]
        left = node.left_sibling
        if not node.layout_children:
            node.prelim = (
                nodes[left].prelim + self.distance(nodes[left], node) if left is not None else 0.0
            )
            return

        default_ancestor = node.layout_children[0]
        for child in node.layout_children:
            self._first_walk(nodes, child)
            default_ancestor = self._apportion(nodes, child, default_ancestor)
        self._execute_shifts(nodes, index)

        midpoint = (
            nodes[node.layout_children[0]].prelim + nodes[node.layout_children[-1]].prelim
        ) / 2
        target = midpoint + self._family_offset(nodes, index)
        if left is not None:
            node.prelim = nodes[left].prelim + self.distance(nodes[left], node)
            node.mod = node.prelim - target
        else:
            node.prelim = target

    def _family_offset(self, nodes: List[WalkerNode], index: int) -> float:
        # Offset of the node from the middle of its couple, when it is the
        # only member of the couple carrying children.
        run = self._family_run(nodes, index)
        if len(run) < 2:
            return 0.0
        owners = [member for member in run if nodes[member].layout_children]
        if owners != [index]:
            return 0.0
        offsets = self._run_offsets(nodes, run)
        return offsets[run.index(index)] - offsets[-1] / 2

    def _family_run(self, nodes: List[WalkerNode], index: int) -> List[int]:
        node = nodes[index]
        if node.parent is None or node.family_id is None:
            return [index]
        chain = nodes[node.parent].layout_children
        position = chain.index(index)
        start = position
        while start > 0 and nodes[chain[start - 1]].family_id == node.family_id:
            start -= 1
        end = position
        while end + 1 < len(chain) and nodes[chain[end + 1]].family_id == node.family_id:
            end += 1
        return chain[start : end + 1]

    def _run_offsets(self, nodes: List[WalkerNode], run: List[int]) -> List[float]:
        offsets = [0.0]
        for left, right in zip(run, run[1:]):
            offsets.append(offsets[-1] + self.distance(nodes[left], nodes[right]))
        return offsets

    def _apportion(self, nodes: List[WalkerNode], index: int, default_ancestor: int) -> int:
        node = nodes[index]
        if node.left_sibling is None:
            return default_ancestor

        inner_right = outer_right = index
        inner_left = node.left_sibling
        outer_left = nodes[node.parent].layout_children[0]
        sum_inner_right = nodes[inner_right].mod
        sum_outer_right = nodes[outer_right].mod
        sum_inner_left = nodes[inner_left].mod
        sum_outer_left = nodes[outer_left].mod

        next_inner_left = _next_right(nodes, inner_left)
        next_inner_right = _next_left(nodes, inner_right)
        while next_inner_left is not None and next_inner_right is not None:
            inner_left = next_inner_left
            inner_right = next_inner_right
            outer_left = _next_left(nodes, outer_left)
            outer_right = _next_right(nodes, outer_right)
            nodes[outer_right].ancestor = index
            shift = (
                nodes[inner_left].prelim
                + sum_inner_left
                - (nodes[inner_right].prelim + sum_inner_right)
                + self.distance(nodes[inner_left], nodes[inner_right])
            )
            if shift > 0:
                ancestor = self._ancestor(nodes, inner_left, index, default_ancestor)
                self._move_subtree(nodes, ancestor, index, shift)
                sum_inner_right += shift
                sum_outer_right += shift
            sum_inner_left += nodes[inner_left].mod
            sum_inner_right += nodes[inner_right].mod
            sum_outer_left += nodes[outer_left].mod
            sum_outer_right += nodes[outer_right].mod
            next_inner_left = _next_right(nodes, inner_left)
            next_inner_right = _next_left(nodes, inner_right)

        if next_inner_left is not None and _next_right(nodes, outer_right) is None:
            nodes[outer_right].thread = next_inner_left
            nodes[outer_right].mod += sum_inner_left - sum_outer_right
        if next_inner_right is not None and _next_left(nodes, outer_left) is None:
            nodes[outer_left].thread = next_inner_right
            nodes[outer_left].mod += sum_inner_right - sum_outer_left
            default_ancestor = index
        return default_ancestor

    @staticmethod
    def _ancestor(
        nodes: List[WalkerNode], inner_left: int, index: int, default_ancestor: int
    ) -> int:
        candidate = nodes[inner_left].ancestor
        if nodes[candidate].parent == nodes[index].parent:
            return candidate
        return default_ancestor

    @staticmethod
    def _move_subtree(nodes: List[WalkerNode], left: int, right: int, shift: float) -> None:
        subtrees = max(1, nodes[right].number - nodes[left].number)
        nodes[right].change -= shift / subtrees
        nodes[right].shift += shift
        nodes[left].change += shift / subtrees
        nodes[right].prelim += shift
        nodes[right].mod += shift

    @staticmethod
    def _execute_shifts(nodes: List[WalkerNode], index: int) -> None:
        shift = 0.0
        change = 0.0
        for child in reversed(nodes[index].layout_children):
            node = nodes[child]
            node.prelim += shift
            node.mod += shift
            change += node.change
            shift += node.shift + change

    def _second_walk(
        self,
        nodes: List[WalkerNode],
        root: int,
        modifier: float,
        generation_offset: int,
        order: List[int],
    ) -> None:
        stack = [(root, modifier, 0)]
        while stack:
            index, modsum, depth = stack.pop()
            node = nodes[index]
            node.x = node.prelim + modsum
            node.y = self.config.top_margin + (generation_offset + depth) * (
                self.config.generation_spacing
            )
            order.append(index)
            for child in reversed(node.layout_children):
                stack.append((child, modsum + node.mod, depth + 1))

    def _center_parents(self, nodes: List[WalkerNode], order: List[int]) -> None:
        """Re-center couples over their children after the shifts settled.

        Only childless partners move, and only when the move keeps the
        required gap to every neighbour in the sibling chain.
        """
        for index in order:
            node = nodes[index]
            if not node.layout_children or not node.spouses:
                continue
            run = sorted(self._family_run(nodes, index), key=lambda member: nodes[member].x)
            if len(run) < 2:
                continue
            children = [child for member in run for child in nodes[member].layout_children]
            xs = [nodes[child].x for child in children]
            center = (min(xs) + max(xs)) / 2
            offsets = self._run_offsets(nodes, run)
            start = center - offsets[-1] / 2
            targets = {member: start + offset for member, offset in zip(run, offsets)}
            movers = [
                member for member in run if abs(targets[member] - nodes[member].x) > _EPSILON
            ]
            if not movers:
                continue
            if any(nodes[member].layout_children for member in movers):
                continue
            chain = nodes[node.parent].layout_children
            proposed = {member: nodes[member].x for member in chain}
            proposed.update({member: targets[member] for member in movers})
            if all(
                proposed[right] - proposed[left]
                >= self.distance(nodes[left], nodes[right]) - _EPSILON
                for left, right in zip(chain, chain[1:])
            ):
                for member in movers:
                    nodes[member].x = targets[member]
            else:
                logger.debug("Kept couple around %s off-center", node.individual_id)


def _next_left(nodes: List[WalkerNode], index: int) -> Optional[int]:
    node = nodes[index]
    return node.layout_children[0] if node.layout_children else node.thread


def _next_right(nodes: List[WalkerNode], index: int) -> Optional[int]:
    node = nodes[index]
    return node.layout_children[-1] if node.layout_children else node.thread
