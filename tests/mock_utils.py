"""Mock utilities for Firestore."""

import copy
import unittest.mock
from typing import Any

from mockfirestore import CollectionReference, MockFirestore
from mockfirestore._helpers import get_by_path
from mockfirestore.document import DocumentReference


def write_document(doc_ref: Any, data: dict[str, Any]) -> None:
    """Write a full document without dropping its subcollections.

    mockfirestore stores subcollections inside the parent document's dict, so
    a plain ``set`` on a parent would erase them.
    """
    collection = get_by_path(doc_ref._data, doc_ref._path[:-1])
    document = collection.setdefault(doc_ref._path[-1], {})
    document.update(copy.deepcopy(data))


class MockBatch:
    def __init__(self, db: Any) -> None:
        self.db = db
        self.writes: list[tuple[Any, Any]] = []
        self.commit = unittest.mock.MagicMock(side_effect=self._real_commit)

    def set(self, ref: Any, data: Any, merge: bool = False) -> None:
        self.writes.append((ref, data))

    def _real_commit(self) -> None:
        for ref, data in self.writes:
            write_document(ref, data)
        self.writes = []


class MockTransaction:
    """Mock for firestore.Transaction that applies writes immediately."""

    def __init__(self, db: Any, max_attempts: int = 5) -> None:
        self.db = db
        self._max_attempts = max_attempts
        self.set_calls: list[Any] = []
        self.delete_calls: list[Any] = []

    def set(self, doc_ref: Any, data: dict[str, Any], merge: bool = False) -> None:
        self.set_calls.append(doc_ref)
        write_document(doc_ref, data)

    def delete(self, doc_ref: Any) -> None:
        self.delete_calls.append(doc_ref)
        doc_ref.delete()


class EnhancedMockFirestore(MockFirestore):
    """Mock Firestore with transaction and batch support."""

    def transaction(self, **kwargs: Any) -> MockTransaction:
        return MockTransaction(self, **kwargs)

    def batch(self) -> MockBatch:
        return MockBatch(self)


def patch_mockfirestore() -> None:
    """Let mockfirestore reads accept the transaction and timeout arguments."""
    if not hasattr(DocumentReference, "_orig_get"):
        DocumentReference._orig_get = DocumentReference.get
        DocumentReference.get = lambda self, transaction=None, **kwargs: (
            self._orig_get()
        )

    if not hasattr(CollectionReference, "_orig_stream"):
        CollectionReference._orig_stream = CollectionReference.stream
        CollectionReference.stream = lambda self, transaction=None, **kwargs: (
            self._orig_stream()
        )


def mock_firestore_module(db: Any) -> unittest.mock.MagicMock:
    """A stand-in for ``firebase_admin.firestore`` bound to ``db``."""
    module = unittest.mock.MagicMock()
    module.client.return_value = db
    module.transactional = lambda func: func
    return module
