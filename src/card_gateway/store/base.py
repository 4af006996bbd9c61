"""Document store interface shared by all storage backends."""

import copy
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

# Receives the current document (None when it does not exist) and returns the
# fields to merge into it. Raising aborts the transaction without writing.
Mutator = Callable[[Optional[Dict[str, Any]]], Dict[str, Any]]


class StoreError(Exception):
    """Base class for document store failures."""


class DocumentNotFound(StoreError):
    """Raised when an operation requires an existing document."""

    def __init__(self, path: str):
        super().__init__(f"Document '{path}' does not exist")
        self.path = path


class ConcurrentModificationError(StoreError):
    """Raised when a transaction keeps losing to concurrent writers."""

    def __init__(self, path: str, attempts: int):
        super().__init__(f"Document '{path}' changed concurrently {attempts} times")
        self.path = path
        self.attempts = attempts


def deep_merge(existing: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``fields`` into a copy of ``existing``.

    Nested maps are merged key by key, like a Firestore ``set(..., merge=True)``;
    any other value replaces what was there.
    """
    merged = copy.deepcopy(existing)
    for key, value in fields.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class DocumentStore(ABC):
    """
    Minimal document database interface addressed by slash-separated paths
    (``collection/doc/collection/doc``).
    """

    backend = "base"

    @abstractmethod
    async def get(self, path: str) -> Optional[Dict[str, Any]]:
        """Return the document at ``path`` or None if it does not exist."""
        raise NotImplementedError

    @abstractmethod
    async def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None:
        """
        Create or overwrite the document. With ``merge=True`` only the given
        fields are written and the rest of an existing document is kept.
        """
        raise NotImplementedError

    @abstractmethod
    async def update(self, path: str, fields: Dict[str, Any]) -> None:
        """
        Update fields of an existing document.

        Raises:
            DocumentNotFound: If there is no document at ``path``.
        """
        raise NotImplementedError

    @abstractmethod
    async def transact(self, path: str, mutator: Mutator) -> Dict[str, Any]:
        """
        Read the document, apply ``mutator`` and merge its result back as one
        atomic step for this document. Returns the document as written.
        """
        raise NotImplementedError

    async def close(self) -> None:
        return None

    async def health_check(self) -> Dict[str, Any]:
        return {"ok": True, "backend": self.backend}
