"""Entity Store Interface: what the engine needs from persistence.

Every mutating engine operation runs inside ``EntityStore.run_transaction``,
which serializes writers per competition and applies the staged writes all
at once or not at all. Reads outside a transaction go through
``EntityStore.load`` and always see the latest committed state.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Optional, TypeVar, Union

from rallybox.core.constants import (
    BOXES_COLLECTION,
    BRACKET_SLOTS_COLLECTION,
    MATCHES_COLLECTION,
    PARTICIPANTS_COLLECTION,
    ROUNDS_COLLECTION,
)
from rallybox.errors import NotFoundError
from rallybox.models import (
    BracketSlot,
    Box,
    Competition,
    CompetitionState,
    Match,
    Participant,
    Round,
    utcnow,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

T = TypeVar("T")

Entity = Union[Participant, Box, Round, Match, BracketSlot]

SUBCOLLECTIONS: dict[str, type] = {
    PARTICIPANTS_COLLECTION: Participant,
    BOXES_COLLECTION: Box,
    ROUNDS_COLLECTION: Round,
    MATCHES_COLLECTION: Match,
    BRACKET_SLOTS_COLLECTION: BracketSlot,
}


def collection_for(entity: Entity) -> str:
    """Return the subcollection an entity is stored in."""
    for name, cls in SUBCOLLECTIONS.items():
        if isinstance(entity, cls):
            return name
    raise TypeError(f"Unsupported entity type: {type(entity).__name__}")


def _contains(items: list[Any], entity: Entity) -> bool:
    return any(item is entity for item in items)


def build_state(
    competition_data: dict[str, Any],
    documents: dict[str, Iterable[dict[str, Any]]],
) -> CompetitionState:
    """Assemble a CompetitionState from raw documents keyed by subcollection."""
    entities: dict[str, list[Any]] = {
        name: [cls.from_dict(dict(doc)) for doc in documents.get(name, [])]
        for name, cls in SUBCOLLECTIONS.items()
    }
    return CompetitionState(
        competition=Competition.from_dict(dict(competition_data)),
        participants={p.id: p for p in entities[PARTICIPANTS_COLLECTION]},
        boxes=entities[BOXES_COLLECTION],
        rounds=entities[ROUNDS_COLLECTION],
        matches=entities[MATCHES_COLLECTION],
        slots=entities[BRACKET_SLOTS_COLLECTION],
    )


class StoreTransaction(ABC):
    """A unit of work on a single competition.

    The engine reads the whole competition once with ``load()``, mutates the
    returned entities in place and registers them with ``save()``.
    Nothing reaches storage until ``commit()``.
    """

    def __init__(self, competition_id: str) -> None:
        self.competition_id = competition_id
        self._state: Optional[CompetitionState] = None
        self._writes: dict[tuple[str, str], Entity] = {}
        self._deletes: set[tuple[str, str]] = set()
        self._competition_dirty = False

    @abstractmethod
    def _read_state(self) -> CompetitionState:
        """Read every document of the competition."""

    @abstractmethod
    def _apply(
        self,
        competition: Competition,
        writes: list[tuple[str, str, dict[str, Any]]],
        deletes: list[tuple[str, str]],
    ) -> None:
        """Persist the competition document plus staged writes atomically."""

    def load(self) -> CompetitionState:
        if self._state is None:
            self._state = self._read_state()
        return self._state

    @property
    def competition(self) -> Competition:
        return self.load().competition

    @property
    def has_changes(self) -> bool:
        return bool(self._writes or self._deletes or self._competition_dirty)

    def save_competition(self) -> None:
        self._competition_dirty = True

    def save(self, *entities: Entity) -> None:
        """Stage entities for writing, adding new ones to the working state."""
        state = self.load()
        for entity in entities:
            name = collection_for(entity)
            key = (name, entity.id)
            self._deletes.discard(key)
            self._writes[key] = entity
            if isinstance(entity, Participant):
                state.participants[entity.id] = entity
            elif isinstance(entity, Box) and not _contains(state.boxes, entity):
                state.boxes.append(entity)
                state.boxes.sort(key=lambda b: b.level)
            elif isinstance(entity, Round) and not _contains(state.rounds, entity):
                state.rounds.append(entity)
                state.rounds.sort(key=lambda r: r.number)
            elif isinstance(entity, Match) and not _contains(state.matches, entity):
                state.matches.append(entity)
            elif isinstance(entity, BracketSlot) and not _contains(state.slots, entity):
                state.slots.append(entity)
                state.slots.sort(key=lambda s: (s.bracket_round, s.position))

    def delete_participant(self, participant_id: str) -> None:
        state = self.load()
        state.participants.pop(participant_id, None)
        key = (PARTICIPANTS_COLLECTION, participant_id)
        self._writes.pop(key, None)
        self._deletes.add(key)

    def commit(self) -> None:
        """Write everything staged, bumping the competition revision."""
        if not self.has_changes:
            return
        competition = self.competition
        competition.revision += 1
        competition.updated_at = utcnow()
        writes = [
            (name, doc_id, copy.deepcopy(entity.to_dict()))
            for (name, doc_id), entity in self._writes.items()
        ]
        self._apply(competition, writes, sorted(self._deletes))


class EntityStore(ABC):
    """Transactional persistence for competitions."""

    def __init__(self, timeout: Optional[float] = None) -> None:
        self.timeout = timeout

    @abstractmethod
    def create_competition(
        self, competition: Competition, participants: Iterable[Participant] = ()
    ) -> None:
        """Persist a new competition together with its initial participants."""

    @abstractmethod
    def load(
        self, competition_id: str, timeout: Optional[float] = None
    ) -> CompetitionState:
        """Read the latest committed state. Takes no lock."""

    @abstractmethod
    def run_transaction(
        self,
        competition_id: str,
        func: Callable[[StoreTransaction], T],
        timeout: Optional[float] = None,
    ) -> T:
        """Run ``func`` under the competition's lock and commit its writes.

        If ``func`` raises, nothing it staged is written.
        """

    def _timeout(self, timeout: Optional[float]) -> Optional[float]:
        return self.timeout if timeout is None else timeout

    @staticmethod
    def _missing(competition_id: str) -> NotFoundError:
        return NotFoundError(f"Competition {competition_id} not found.")
