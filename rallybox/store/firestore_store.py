"""Firestore-backed store.

A competition is one document in ``competitions`` with its participants,
boxes, rounds, matches and bracket slots in subcollections. Every mutating
transaction reads the competition document and rewrites it with a bumped
``revision``, so two concurrent writers on the same competition always
conflict and Firestore retries the loser against the fresh state.
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING, Any, Callable, Optional, TypeVar

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions

from rallybox.core.constants import (
    COMPETITIONS_COLLECTION,
    DEFAULT_FIRESTORE_MAX_ATTEMPTS,
    FIRESTORE_WRITE_LIMIT,
    PARTICIPANTS_COLLECTION,
)
from rallybox.errors import InternalError
from rallybox.models import Competition, CompetitionState, Participant

from .base import SUBCOLLECTIONS, EntityStore, StoreTransaction, build_state

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference
    from google.cloud.firestore_v1.transaction import Transaction

T = TypeVar("T")

logger = logging.getLogger(__name__)


def _call_options(timeout: Optional[float]) -> dict[str, Any]:
    return {"timeout": timeout} if timeout is not None else {}


@contextlib.contextmanager
def _storage_errors(competition_id: str) -> Iterator[None]:
    """Surface Firestore failures as InternalError."""
    try:
        yield
    except (google_exceptions.GoogleAPICallError, google_exceptions.RetryError) as e:
        logger.error("Firestore error on competition %s: %s", competition_id, e)
        raise InternalError(
            "A storage error occurred. No changes were saved; please retry."
        ) from e


class FirestoreTransaction(StoreTransaction):
    """StoreTransaction reading and writing through a Firestore transaction."""

    def __init__(
        self,
        db: Client,
        transaction: Transaction,
        competition_id: str,
        timeout: Optional[float] = None,
    ) -> None:
        super().__init__(competition_id)
        self._db = db
        self._transaction = transaction
        self._timeout = timeout

    def _competition_ref(self) -> DocumentReference:
        return self._db.collection(COMPETITIONS_COLLECTION).document(
            self.competition_id
        )

    def _read_state(self) -> CompetitionState:
        ref = self._competition_ref()
        options = _call_options(self._timeout)
        snapshot = ref.get(transaction=self._transaction, **options)
        if not snapshot.exists:
            raise EntityStore._missing(self.competition_id)
        documents = {
            name: [
                doc.to_dict() or {}
                for doc in ref.collection(name).stream(
                    transaction=self._transaction, **options
                )
            ]
            for name in SUBCOLLECTIONS
        }
        return build_state(snapshot.to_dict() or {}, documents)

    def _apply(
        self,
        competition: Competition,
        writes: list[tuple[str, str, dict[str, Any]]],
        deletes: list[tuple[str, str]],
    ) -> None:
        if len(writes) + len(deletes) + 1 > FIRESTORE_WRITE_LIMIT:
            raise InternalError(
                "Too many changes for a single transaction; nothing was saved."
            )
        ref = self._competition_ref()
        self._transaction.set(ref, competition.to_dict())
        for name, doc_id in deletes:
            self._transaction.delete(ref.collection(name).document(doc_id))
        for name, doc_id, data in writes:
            self._transaction.set(ref.collection(name).document(doc_id), data)


class FirestoreStore(EntityStore):
    """EntityStore on Cloud Firestore via firebase-admin."""

    def __init__(
        self,
        db: Client | None = None,
        timeout: Optional[float] = None,
        max_attempts: int = DEFAULT_FIRESTORE_MAX_ATTEMPTS,
    ) -> None:
        super().__init__(timeout)
        self._db = db
        self.max_attempts = max_attempts

    @property
    def db(self) -> Client:
        if self._db is None:
            self._db = firestore.client()
        return self._db

    def create_competition(
        self, competition: Competition, participants: Iterable[Participant] = ()
    ) -> None:
        ref = self.db.collection(COMPETITIONS_COLLECTION).document(competition.id)
        batch = self.db.batch()
        batch.set(ref, competition.to_dict())
        for participant in participants:
            batch.set(
                ref.collection(PARTICIPANTS_COLLECTION).document(participant.id),
                participant.to_dict(),
            )
        with _storage_errors(competition.id):
            batch.commit()
        logger.info("Created competition %s (%s)", competition.id, competition.mode)

    def load(
        self, competition_id: str, timeout: Optional[float] = None
    ) -> CompetitionState:
        ref = self.db.collection(COMPETITIONS_COLLECTION).document(competition_id)
        options = _call_options(self._timeout(timeout))
        with _storage_errors(competition_id):
            snapshot = ref.get(**options)
            if not snapshot.exists:
                raise self._missing(competition_id)
            documents = {
                name: [doc.to_dict() or {} for doc in ref.collection(name).stream(**options)]
                for name in SUBCOLLECTIONS
            }
        return build_state(snapshot.to_dict() or {}, documents)

    def run_transaction(
        self,
        competition_id: str,
        func: Callable[[StoreTransaction], T],
        timeout: Optional[float] = None,
    ) -> T:
        wait = self._timeout(timeout)
        transaction = self.db.transaction(max_attempts=self.max_attempts)

        @firestore.transactional
        def _run(transaction: Transaction) -> T:
            unit = FirestoreTransaction(self.db, transaction, competition_id, wait)
            result = func(unit)
            unit.commit()
            return result

        with _storage_errors(competition_id):
            return _run(transaction)
