"""Persistence for competitions."""

from .base import EntityStore, StoreTransaction
from .firestore_store import FirestoreStore
from .memory_store import MemoryStore

__all__ = ["EntityStore", "FirestoreStore", "MemoryStore", "StoreTransaction"]
