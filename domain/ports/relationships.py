from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from domain.models import Individual


class RelationshipGraph(Protocol):
    """Read-only adjacency lookups over one genealogy snapshot.

    Unknown ids yield empty sequences; implementations never raise for them.
    """

    def children_of(self, individual_id: str) -> Sequence[Individual]: ...

    def spouses_of(self, individual_id: str) -> Sequence[Individual]: ...

    def parents_of(self, individual_id: str) -> Sequence[Individual]: ...

    def siblings_of(self, individual_id: str) -> Sequence[Individual]: ...
