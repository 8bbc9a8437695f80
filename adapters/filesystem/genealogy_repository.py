from __future__ import annotations

from pathlib import Path
from typing import Any

from adapters.filesystem.json_utils import load_json_object
from domain.models import GenealogyDocument
from domain.ports.repositories import GenealogyRepository


class FileSystemGenealogyRepository(GenealogyRepository):
    def load_raw(self, path: Path) -> dict[str, Any]:
        return load_json_object(path)

    def load(self, path: Path) -> GenealogyDocument:
        return GenealogyDocument.model_validate(self.load_raw(path))
