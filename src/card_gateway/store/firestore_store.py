"""Cloud Firestore backend for the document store."""

import logging
from typing import Any, Dict, Optional

from google.api_core.exceptions import NotFound
from google.cloud import firestore
from google.cloud.firestore_v1 import async_transactional

from .base import DocumentStore, DocumentNotFound, Mutator, deep_merge

logger = logging.getLogger(__name__)


class FirestoreDocumentStore(DocumentStore):
    """
    Thin wrapper over ``firestore.AsyncClient``.

    Paths map one-to-one onto Firestore document paths, so the same data is
    readable by client apps using the Firebase SDKs.
    """

    backend = "firestore"

    def __init__(self, project: Optional[str] = None, client: Optional[firestore.AsyncClient] = None):
        self._client = client or firestore.AsyncClient(project=project)

    async def get(self, path: str) -> Optional[Dict[str, Any]]:
        snapshot = await self._client.document(path).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    async def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None:
        await self._client.document(path).set(data, merge=merge)

    async def update(self, path: str, fields: Dict[str, Any]) -> None:
        try:
            await self._client.document(path).update(fields)
        except NotFound as e:
            raise DocumentNotFound(path) from e

    async def transact(self, path: str, mutator: Mutator) -> Dict[str, Any]:
        doc_ref = self._client.document(path)

        @async_transactional
        async def _run(transaction):
            snapshot = await doc_ref.get(transaction=transaction)
            current = (snapshot.to_dict() or {}) if snapshot.exists else None
            fields = mutator(current)
            transaction.set(doc_ref, fields, merge=True)
            return deep_merge(current or {}, fields)

        return await _run(self._client.transaction())
