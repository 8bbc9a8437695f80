from __future__ import annotations

import logging
from typing import Dict, Iterable, List

from domain.models import GenealogyDocument, Individual
from domain.ports.relationships import RelationshipGraph

logger = logging.getLogger(__name__)


class _OrderedLinks:
    def __init__(self) -> None:
        self._links: Dict[str, Dict[str, None]] = {}

    def add(self, source_id: str, target_id: str) -> None:
        if source_id == target_id:
            return
        self._links.setdefault(source_id, {})[target_id] = None

    def get(self, source_id: str) -> List[str]:
        return list(self._links.get(source_id, ()))


class DocumentRelationshipGraph(RelationshipGraph):
    """Adjacency lookups built from relation lists, families and edges.

    Links are kept in the order they are first seen. References to unknown
    individuals are logged and dropped.
    """

    def __init__(self, individuals: Dict[str, Individual]) -> None:
        self._individuals = individuals
        self._children = _OrderedLinks()
        self._parents = _OrderedLinks()
        self._spouses = _OrderedLinks()
        self._siblings = _OrderedLinks()

    @classmethod
    def from_document(cls, document: GenealogyDocument) -> "DocumentRelationshipGraph":
        graph = cls(document.individuals)
        for individual in document.individuals.values():
            for child_id in individual.children:
                graph.link_parent_child(individual.id, child_id, source=individual.id)
            for parent_id in individual.parents:
                graph.link_parent_child(parent_id, individual.id, source=individual.id)
            for spouse_id in individual.spouses:
                graph.link_spouses(individual.id, spouse_id, source=individual.id)
            for sibling_id in individual.siblings:
                graph.link_siblings(individual.id, sibling_id, source=individual.id)
        for family in document.families.values():
            parent_ids = family.parent_ids()
            if len(parent_ids) == 2:
                graph.link_spouses(parent_ids[0], parent_ids[1], source=f"family {family.id}")
            for child_id in family.children_ids:
                for parent_id in parent_ids:
                    graph.link_parent_child(parent_id, child_id, source=f"family {family.id}")
            for index, child_id in enumerate(family.children_ids):
                for sibling_id in family.children_ids[index + 1 :]:
                    graph.link_siblings(child_id, sibling_id, source=f"family {family.id}")
        for edge in document.edges:
            source = f"edge {edge.id}"
            if edge.relationship_type == "parent-child":
                graph.link_parent_child(edge.source_id, edge.target_id, source=source)
            elif edge.relationship_type == "spouse":
                graph.link_spouses(edge.source_id, edge.target_id, source=source)
            else:
                graph.link_siblings(edge.source_id, edge.target_id, source=source)
        return graph

    def link_parent_child(self, parent_id: str, child_id: str, *, source: str) -> None:
        if not self._known(source, parent_id, child_id):
            return
        self._children.add(parent_id, child_id)
        self._parents.add(child_id, parent_id)

    def link_spouses(self, first_id: str, second_id: str, *, source: str) -> None:
        if not self._known(source, first_id, second_id):
            return
        self._spouses.add(first_id, second_id)
        self._spouses.add(second_id, first_id)

    def link_siblings(self, first_id: str, second_id: str, *, source: str) -> None:
        if not self._known(source, first_id, second_id):
            return
        self._siblings.add(first_id, second_id)
        self._siblings.add(second_id, first_id)

    def children_of(self, individual_id: str) -> List[Individual]:
        return self._resolve(self._children.get(individual_id))

    def parents_of(self, individual_id: str) -> List[Individual]:
        return self._resolve(self._parents.get(individual_id))

    def spouses_of(self, individual_id: str) -> List[Individual]:
        return self._resolve(self._spouses.get(individual_id))

    def siblings_of(self, individual_id: str) -> List[Individual]:
        return self._resolve(self._siblings.get(individual_id))

    def _known(self, source: str, *individual_ids: str) -> bool:
        missing = [iid for iid in individual_ids if iid not in self._individuals]
        if missing:
            logger.warning(
                "Skipping relationship from %s: unknown individual(s) %s",
                source,
                ", ".join(missing),
            )
            return False
        return True

    def _resolve(self, individual_ids: Iterable[str]) -> List[Individual]:
        return [self._individuals[iid] for iid in individual_ids]
