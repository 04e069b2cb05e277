"""Document store module."""

from db.provider import close_document_store, get_document_store
from db.store import CollectionQuery, DocumentStore, Subscription

__all__ = [
    "CollectionQuery",
    "DocumentStore",
    "Subscription",
    "get_document_store",
    "close_document_store",
]
