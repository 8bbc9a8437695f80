from __future__ import annotations

from pathlib import Path

from filelock import FileLock

from adapters.filesystem.json_utils import write_json_atomic
from domain.ports.repositories import VisualDocumentRepository
from domain.visual_document import VisualDocument


class FileSystemVisualDocumentRepository(VisualDocumentRepository):
    def save(self, document: VisualDocument, path: Path) -> None:
        lock_path = path.with_suffix(f"{path.suffix}.lock")
        path.parent.mkdir(parents=True, exist_ok=True)
        with FileLock(str(lock_path)):
            write_json_atomic(path, document.to_dict())
