from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol

from domain.models import GenealogyDocument
from domain.visual_document import VisualDocument


class GenealogyRepository(Protocol):
    def load_raw(self, path: Path) -> dict[str, Any]: ...

    def load(self, path: Path) -> GenealogyDocument: ...


class VisualDocumentRepository(Protocol):
    def save(self, document: VisualDocument, path: Path) -> None: ...
