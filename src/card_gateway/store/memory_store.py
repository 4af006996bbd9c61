import copy
import logging
from typing import Any, Dict, Optional

from .base import DocumentStore, DocumentNotFound, Mutator, deep_merge

logger = logging.getLogger(__name__)


class MemoryDocumentStore(DocumentStore):
    """
    Process-local store for tests and demos.

    None of the methods await between reading and writing, so each call is
    atomic with respect to other coroutines on the same event loop.
    """

    backend = "memory"

    def __init__(self, documents: Optional[Dict[str, Dict[str, Any]]] = None):
        self._documents: Dict[str, Dict[str, Any]] = copy.deepcopy(documents or {})

    async def get(self, path: str) -> Optional[Dict[str, Any]]:
        doc = self._documents.get(path)
        return copy.deepcopy(doc) if doc is not None else None

    async def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None:
        existing = self._documents.get(path)
        if merge and existing is not None:
            self._documents[path] = deep_merge(existing, data)
        else:
            self._documents[path] = copy.deepcopy(data)

    async def update(self, path: str, fields: Dict[str, Any]) -> None:
        existing = self._documents.get(path)
        if existing is None:
            raise DocumentNotFound(path)
        self._documents[path] = deep_merge(existing, fields)

    async def transact(self, path: str, mutator: Mutator) -> Dict[str, Any]:
        existing = self._documents.get(path)
        fields = mutator(copy.deepcopy(existing) if existing is not None else None)
        written = deep_merge(existing or {}, fields)
        self._documents[path] = written
        return copy.deepcopy(written)

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Copy of every stored document keyed by path (for testing)."""
        return copy.deepcopy(self._documents)

    async def health_check(self) -> Dict[str, Any]:
        return {"ok": True, "backend": self.backend, "document_count": len(self._documents)}
