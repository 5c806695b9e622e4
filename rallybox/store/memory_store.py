"""In-process store with per-competition locks."""

from __future__ import annotations

import copy
import logging
import threading
import weakref
from typing import TYPE_CHECKING, Any, Callable, Optional, TypeVar

from rallybox.core.constants import PARTICIPANTS_COLLECTION
from rallybox.errors import InternalError
from rallybox.models import Competition, CompetitionState, Participant

from .base import SUBCOLLECTIONS, EntityStore, StoreTransaction, build_state

if TYPE_CHECKING:
    from collections.abc import Iterable

T = TypeVar("T")

logger = logging.getLogger(__name__)

# competition_id -> {"competition": doc, <subcollection>: {doc_id: doc}}
Snapshot = dict[str, Any]


def _empty_snapshot(competition: Competition) -> Snapshot:
    snapshot: Snapshot = {name: {} for name in SUBCOLLECTIONS}
    snapshot["competition"] = copy.deepcopy(competition.to_dict())
    return snapshot


def _state_from_snapshot(snapshot: Snapshot) -> CompetitionState:
    snapshot = copy.deepcopy(snapshot)
    return build_state(
        snapshot["competition"],
        {name: snapshot[name].values() for name in SUBCOLLECTIONS},
    )


class MemoryTransaction(StoreTransaction):
    """Transaction over a MemoryStore snapshot."""

    def __init__(self, store: MemoryStore, competition_id: str) -> None:
        super().__init__(competition_id)
        self._store = store

    def _read_state(self) -> CompetitionState:
        return _state_from_snapshot(self._store._snapshot(self.competition_id))

    def _apply(
        self,
        competition: Competition,
        writes: list[tuple[str, str, dict[str, Any]]],
        deletes: list[tuple[str, str]],
    ) -> None:
        snapshot = copy.deepcopy(self._store._snapshot(self.competition_id))
        snapshot["competition"] = copy.deepcopy(competition.to_dict())
        for name, doc_id, data in writes:
            snapshot[name][doc_id] = data
        for name, doc_id in deletes:
            snapshot[name].pop(doc_id, None)
        # Readers see either the old snapshot or the new one, never a mix.
        self._store._data[self.competition_id] = snapshot


class MemoryStore(EntityStore):
    """Keeps competitions in a dict; writers hold a lock per competition."""

    def __init__(self, timeout: Optional[float] = None) -> None:
        super().__init__(timeout)
        self._data: dict[str, Snapshot] = {}
        # Entries vanish once no caller holds the lock, so ids never accumulate.
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._guard = threading.Lock()

    def _lock_for(self, competition_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(competition_id, threading.Lock())

    def _snapshot(self, competition_id: str) -> Snapshot:
        snapshot = self._data.get(competition_id)
        if snapshot is None:
            raise self._missing(competition_id)
        return snapshot

    def create_competition(
        self, competition: Competition, participants: Iterable[Participant] = ()
    ) -> None:
        with self._lock_for(competition.id):
            if competition.id in self._data:
                raise InternalError(f"Competition {competition.id} already exists.")
            snapshot = _empty_snapshot(competition)
            for participant in participants:
                snapshot[PARTICIPANTS_COLLECTION][participant.id] = copy.deepcopy(
                    participant.to_dict()
                )
            self._data[competition.id] = snapshot
        logger.info("Created competition %s (%s)", competition.id, competition.mode)

    def load(
        self, competition_id: str, timeout: Optional[float] = None
    ) -> CompetitionState:
        return _state_from_snapshot(self._snapshot(competition_id))

    def run_transaction(
        self,
        competition_id: str,
        func: Callable[[StoreTransaction], T],
        timeout: Optional[float] = None,
    ) -> T:
        self._snapshot(competition_id)
        lock = self._lock_for(competition_id)
        wait = self._timeout(timeout)
        acquired = lock.acquire(timeout=wait) if wait is not None else lock.acquire()
        if not acquired:
            logger.warning("Lock wait timed out for competition %s", competition_id)
            raise InternalError(
                f"Timed out waiting for competition {competition_id}. Please retry."
            )
        try:
            transaction = MemoryTransaction(self, competition_id)
            result = func(transaction)
            transaction.commit()
            return result
        finally:
            lock.release()
