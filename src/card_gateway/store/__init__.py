"""Document store backends."""

import logging

from .base import (
    DocumentStore,
    StoreError,
    DocumentNotFound,
    ConcurrentModificationError,
    Mutator,
    deep_merge,
)
from .paths import user_path, card_status_path, document_path
from .memory_store import MemoryDocumentStore
from .models import Base, Document
from .session import DatabaseManager, create_async_engine, get_database_url
from .sql_store import SQLDocumentStore

logger = logging.getLogger(__name__)


async def open_store(config) -> DocumentStore:
    """
    Build and initialize the store selected by ``config.store_backend``.

    The Firestore client library is only imported when that backend is chosen.
    """
    if config.store_backend == "memory":
        logger.warning("Using in-memory document store; data is lost on restart")
        return MemoryDocumentStore()
    if config.store_backend == "firestore":
        from .firestore_store import FirestoreDocumentStore
        return FirestoreDocumentStore(project=config.firestore_project)
    store = SQLDocumentStore(config.database_url)
    await store.initialize()
    return store


__all__ = [
    # Interface
    "DocumentStore",
    "StoreError",
    "DocumentNotFound",
    "ConcurrentModificationError",
    "Mutator",
    "deep_merge",
    # Paths
    "user_path",
    "card_status_path",
    "document_path",
    # Backends
    "MemoryDocumentStore",
    "SQLDocumentStore",
    "open_store",
    # SQL internals
    "Base",
    "Document",
    "DatabaseManager",
    "create_async_engine",
    "get_database_url",
]
