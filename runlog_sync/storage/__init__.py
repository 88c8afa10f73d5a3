"""Storage module - local key-value store and hosted document store."""

from .local_store import LocalStore
from .documents import DocumentStore, DocumentStoreProtocol

__all__ = ["LocalStore", "DocumentStore", "DocumentStoreProtocol"]
