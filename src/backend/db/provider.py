"""
Document store provider.

Returns the configured store as a process-wide singleton:

    from db.provider import get_document_store

    store = get_document_store()
    session = await store.get("sessions", game_id, game_id)
"""

import logging

from core.config import settings
from db.store import DocumentStore

logger = logging.getLogger(__name__)

_store: DocumentStore | None = None


def is_cosmos_enabled() -> bool:
    """Check if the Cosmos DB adapter is selected."""
    return settings.STORE_BACKEND == "cosmos"


def get_document_store() -> DocumentStore:
    """Get the configured document store, creating it on first use."""
    global _store

    if _store is None:
        if is_cosmos_enabled():
            if not settings.is_cosmos_configured:
                raise ValueError(
                    "STORE_BACKEND=cosmos requires AZURE_COSMOS_ENDPOINT or AZURE_COSMOS_CONNECTION_STRING"
                )
            from db.cosmos_store import CosmosDocumentStore

            _store = CosmosDocumentStore()
            logger.info("Using Cosmos DB document store")
        else:
            from db.memory_store import InMemoryDocumentStore

            _store = InMemoryDocumentStore()
            logger.info("Using in-memory document store")

    return _store


async def close_document_store() -> None:
    """Close the store and forget the singleton."""
    global _store

    if _store is not None:
        await _store.close()
        _store = None
