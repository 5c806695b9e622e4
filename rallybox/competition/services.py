"""Service layer for competition progression.

``CompetitionService`` is the round/stage state machine::

    setup -> open -> regular_in_progress -> regular_complete
          -> playoffs_in_progress -> completed

``cancelled`` is reachable from every non-terminal state. Every mutating call
runs inside one store transaction keyed by the competition id, so concurrent
callers are serialized and a failed call leaves nothing behind.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import TYPE_CHECKING, Any, Callable, Optional, TypeVar

from rallybox.bracket import pair_bracket_round, playoff_seed_list, seed_bracket
from rallybox.core.constants import (
    COUNTED_MATCH_STATUSES,
    MATCH_CANCELLED,
    MATCH_COMPLETED,
    MATCH_IN_PROGRESS,
    MATCH_WALKOVER,
    MIN_POOL_SIZE,
    MODE_LEAGUE,
    ROUND_COMPLETE,
    ROUND_IN_PROGRESS,
    ROUND_SCHEDULED,
    STAGE_PLAYOFF,
    STAGE_REGULAR,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_OPEN,
    STATUS_PLAYOFFS_IN_PROGRESS,
    STATUS_REGULAR_COMPLETE,
    STATUS_REGULAR_IN_PROGRESS,
    STATUS_SETUP,
    TERMINAL_STATUSES,
    WITHDRAWAL_WALKOVER,
)
from rallybox.errors import (
    CompetitionClosed,
    CompetitionFull,
    DuplicateParticipant,
    InsufficientParticipants,
    InvalidScore,
    InvalidTransition,
    MatchAlreadyResolved,
    NotFoundError,
    RoundAlreadyExists,
    RoundIncomplete,
    ValidationError,
)
from rallybox.league.boxes import (
    assign_boxes,
    next_season_order,
    plan_promotions,
    seed_order,
)
from rallybox.models import (
    Competition,
    CompetitionSettings,
    Match,
    Participant,
    Round,
    new_id,
    utcnow,
)
from rallybox.pairing.round_robin import cycle_length, generate_box_round
from rallybox.standings import compute_standings

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable

    from rallybox.core.types import BracketRoundView, PromotionMove
    from rallybox.models import BracketSlot, CompetitionState, Standing
    from rallybox.store.base import EntityStore, StoreTransaction

T = TypeVar("T")

logger = logging.getLogger(__name__)

STARTED_STATUSES = frozenset(
    {STATUS_REGULAR_IN_PROGRESS, STATUS_REGULAR_COMPLETE, STATUS_PLAYOFFS_IN_PROGRESS}
)
SEASON_END_STATUSES = frozenset(
    {STATUS_REGULAR_COMPLETE, STATUS_PLAYOFFS_IN_PROGRESS, STATUS_COMPLETED}
)


def _ensure_mutable(competition: Competition) -> None:
    if competition.status in TERMINAL_STATUSES:
        raise CompetitionClosed(
            f"Competition {competition.id} is {competition.status}; "
            "no further changes are allowed."
        )


def _require_status(
    competition: Competition, allowed: Collection[str], action: str
) -> None:
    _ensure_mutable(competition)
    if competition.status not in allowed:
        raise InvalidTransition(
            f"Cannot {action} while the competition is {competition.status}."
        )


def regular_round_count(state: CompetitionState) -> int:
    """Number of regular rounds the competition plays."""
    settings = state.competition.settings
    if settings.regular_rounds is not None:
        return settings.regular_rounds
    return max((cycle_length(len(box.member_ids)) for box in state.boxes), default=0)


def bracket_round_count(state: CompetitionState) -> int:
    """Rounds in the playoff bracket; 0 before playoffs are seeded."""
    if not state.slots:
        return 0
    return max(slot.bracket_round for slot in state.slots) - 1


def box_standings(state: CompetitionState) -> list[list[Standing]]:
    """Standings of every box, in box level order."""
    return [
        compute_standings(box.member_ids, state.matches_in_box(box.id), state.participants)
        for box in state.boxes
    ]


def _withdrawn_ids(state: CompetitionState) -> set[str]:
    return {pid for pid, p in state.participants.items() if p.withdrawn}


def _summary(state: CompetitionState, replayed: bool = False) -> dict[str, Any]:
    latest = state.latest_round
    return {
        "competition_id": state.competition.id,
        "status": state.competition.status,
        "current_round": latest.number if latest else None,
        "stage": latest.stage if latest else None,
        "rounds": [
            {
                "number": rnd.number,
                "stage": rnd.stage,
                "status": rnd.status,
                "bracket_round": rnd.bracket_round,
                "matches": len(state.matches_in_round(rnd.number)),
            }
            for rnd in state.rounds
        ],
        "replayed": replayed,
    }


def _close_round(tx: StoreTransaction, state: CompetitionState, rnd: Round) -> None:
    """Mark a round complete, refusing while any match is still open."""
    pending = [m for m in state.matches_in_round(rnd.number) if not m.is_resolved]
    if pending:
        raise RoundIncomplete(
            f"Round {rnd.number} still has {len(pending)} unresolved match(es)."
        )
    if rnd.status != ROUND_COMPLETE:
        rnd.status = ROUND_COMPLETE
        rnd.completed_at = utcnow()
        tx.save(rnd)


def _mark_round_started(tx: StoreTransaction, state: CompetitionState, number: int) -> None:
    rnd = state.round(number)
    if rnd is not None and rnd.status == ROUND_SCHEDULED:
        rnd.status = ROUND_IN_PROGRESS
        tx.save(rnd)


def _build_regular_round(
    tx: StoreTransaction, state: CompetitionState, number: int
) -> Round:
    """Generate the matches of regular round ``number`` across every box."""
    if state.round(number) is not None:
        raise RoundAlreadyExists(f"Round {number} has already been generated.")

    settings = state.competition.settings
    withdrawn = _withdrawn_ids(state)
    completed = Counter(
        pid
        for match in state.matches
        if match.stage == STAGE_REGULAR and match.status in COUNTED_MATCH_STATUSES
        for pid in match.participant_ids
    )

    rnd = Round(number=number, stage=STAGE_REGULAR)
    matches = []
    for box in state.boxes:
        active = [pid for pid in box.member_ids if pid not in withdrawn]
        if number > 1 and len(active) < MIN_POOL_SIZE:
            logger.info(
                "Skipping %s in round %s: fewer than %s active participants",
                box.name,
                number,
                MIN_POOL_SIZE,
            )
            continue
        pairs = generate_box_round(
            box.member_ids,
            withdrawn,
            number - 1,
            previous_matches=state.matches_in_box(box.id),
            rounds_planned=settings.regular_rounds,
            completed=completed,
        )
        for p1, p2 in pairs:
            matches.append(
                Match(
                    id=new_id(),
                    round_number=number,
                    participant1_id=p1,
                    participant2_id=p2,
                    box_id=box.id,
                )
            )

    if not matches:
        rnd.status = ROUND_COMPLETE
        rnd.completed_at = utcnow()
    tx.save(rnd, *matches)
    logger.info(
        "Generated round %s for competition %s with %s matches",
        number,
        state.competition.id,
        len(matches),
    )
    return rnd


def _build_bracket_round(
    tx: StoreTransaction, state: CompetitionState, number: int, bracket_round: int
) -> Round:
    """Pair the winners of the previous bracket round."""
    if state.round(number) is not None:
        raise RoundAlreadyExists(f"Round {number} has already been generated.")

    matches = pair_bracket_round(
        state.slots, bracket_round, number, withdrawn=_withdrawn_ids(state)
    )
    rnd = Round(number=number, stage=STAGE_PLAYOFF, bracket_round=bracket_round)
    next_slots = [s for s in state.slots if s.bracket_round == bracket_round + 1]
    tx.save(rnd, *matches, *next_slots)
    logger.info(
        "Generated playoff round %s (bracket round %s) for competition %s",
        number,
        bracket_round,
        state.competition.id,
    )
    return rnd


def _advance_winner(tx: StoreTransaction, state: CompetitionState, match: Match) -> None:
    """Move a playoff winner into the slot their match feeds."""
    if match.stage != STAGE_PLAYOFF or not match.slot_id or not match.winner_id:
        return
    slot = state.slot(match.slot_id)
    if slot is None:
        return
    slot.occupant_id = match.winner_id
    for source_id in slot.source_slot_ids:
        source = state.slot(source_id)
        if source is not None and source.occupant_id == match.winner_id:
            slot.seed = source.seed
    tx.save(slot)


def _validate_scores(score1: Any, score2: Any) -> None:
    for score in (score1, score2):
        if isinstance(score, bool) or not isinstance(score, int):
            raise InvalidScore("Scores must be whole numbers.")
        if score < 0:
            raise InvalidScore("Scores cannot be negative.")
    if score1 == score2:
        raise InvalidScore("Scores cannot be the same.")


def _find_match(state: CompetitionState, match_id: str) -> Match:
    match = state.match(match_id)
    if match is None:
        raise NotFoundError(f"Match {match_id} not found.")
    return match


def _find_participant(state: CompetitionState, participant_id: str) -> Participant:
    participant = state.participants.get(participant_id)
    if participant is None:
        raise NotFoundError(f"Participant {participant_id} not found.")
    return participant


def _ensure_open_match(match: Match) -> None:
    if not match.is_open:
        logger.warning("Rejected result for match %s: already %s", match.id, match.status)
        raise MatchAlreadyResolved(f"Match {match.id} is already {match.status}.")


class CompetitionService:
    """Handles progression of tournaments and box leagues."""

    def __init__(self, store: EntityStore, timeout: Optional[float] = None) -> None:
        self.store = store
        self.timeout = timeout

    def _transact(
        self, competition_id: str, func: Callable[[StoreTransaction], T]
    ) -> T:
        return self.store.run_transaction(competition_id, func, timeout=self.timeout)

    def get_state(self, competition_id: str) -> CompetitionState:
        """Read the latest committed state of a competition."""
        return self.store.load(competition_id, timeout=self.timeout)

    # Setup and registration

    def create_competition(
        self,
        name: str,
        mode: str,
        settings: Optional[CompetitionSettings] = None,
        open_registration: bool = True,
        participants: Iterable[Participant] = (),
        previous_competition_id: Optional[str] = None,
    ) -> Competition:
        """Create a competition, open for entries unless told otherwise."""
        if not name or not name.strip():
            raise ValidationError("Competition name is required.")
        settings = settings or CompetitionSettings.for_mode(mode)
        settings.validate()
        entrants = list(participants)
        competition = Competition(
            id=new_id(),
            name=name.strip(),
            mode=mode,
            settings=settings,
            status=STATUS_OPEN if open_registration else STATUS_SETUP,
            participant_count=len(entrants),
            previous_competition_id=previous_competition_id,
        )
        self.store.create_competition(competition, entrants)
        return competition

    def open_registration(self, competition_id: str) -> Competition:
        """Move a competition from setup to open."""

        def _open(tx: StoreTransaction) -> Competition:
            competition = tx.competition
            if competition.status == STATUS_OPEN:
                return competition
            _require_status(competition, {STATUS_SETUP}, "open registration")
            competition.status = STATUS_OPEN
            tx.save_competition()
            logger.info("Competition %s is open for entries", competition_id)
            return competition

        return self._transact(competition_id, _open)

    def update_settings(self, competition_id: str, **changes: Any) -> Competition:
        """Change settings before the competition starts."""

        def _update(tx: StoreTransaction) -> Competition:
            competition = tx.competition
            _require_status(competition, {STATUS_SETUP, STATUS_OPEN}, "change settings")
            data = competition.settings.to_dict()
            unknown = set(changes) - set(data)
            if unknown:
                raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}.")
            data.update(changes)
            settings = CompetitionSettings.from_dict(data)
            settings.validate()
            if settings.max_participants < competition.participant_count:
                raise ValidationError(
                    "Maximum participants cannot be lower than the current entry count."
                )
            competition.settings = settings
            tx.save_competition()
            return competition

        return self._transact(competition_id, _update)

    def join(
        self,
        competition_id: str,
        display_name: str,
        participant_id: Optional[str] = None,
        account_ref: Optional[str] = None,
        members: Optional[list[str]] = None,
        rating: Optional[float] = None,
    ) -> Participant:
        """Enter a participant while the competition is open."""
        if not display_name or not display_name.strip():
            raise ValidationError("Display name is required.")

        def _join(tx: StoreTransaction) -> Participant:
            state = tx.load()
            competition = state.competition
            _require_status(competition, {STATUS_OPEN}, "join")
            pid = participant_id or new_id()
            if pid in state.participants or (
                account_ref
                and any(p.account_ref == account_ref for p in state.participants.values())
            ):
                raise DuplicateParticipant("This participant has already joined.")
            if competition.participant_count >= competition.settings.max_participants:
                raise CompetitionFull(f"Competition {competition.id} is full.")

            participant = Participant(
                id=pid,
                display_name=display_name.strip(),
                account_ref=account_ref,
                members=list(members or []),
                rating=rating,
            )
            competition.participant_count += 1
            tx.save(participant)
            tx.save_competition()
            return participant

        return self._transact(competition_id, _join)

    def withdraw(self, competition_id: str, participant_id: str) -> Participant:
        """Withdraw a participant.

        Before the start the entry is simply removed. Afterwards the
        participant stays on record, is skipped by later rounds, and their
        unplayed matches are cancelled, or awarded to the opponent under the
        walkover policy. Playoff opponents always receive a walkover.
        """

        def _withdraw(tx: StoreTransaction) -> Participant:
            state = tx.load()
            competition = state.competition
            _ensure_mutable(competition)
            participant = _find_participant(state, participant_id)
            if participant.withdrawn:
                return participant

            if competition.status in (STATUS_SETUP, STATUS_OPEN):
                tx.delete_participant(participant_id)
                competition.participant_count = max(0, competition.participant_count - 1)
                tx.save_competition()
                return participant

            participant.withdrawn = True
            tx.save(participant)
            policy = competition.settings.withdrawal_policy
            for match in state.matches:
                if not match.is_open or not match.involves(participant_id):
                    continue
                opponent = match.opponent_of(participant_id)
                opponent_active = opponent and not state.participants[opponent].withdrawn
                awards_walkover = match.stage == STAGE_PLAYOFF or policy == WITHDRAWAL_WALKOVER
                if awards_walkover and opponent_active:
                    match.status = MATCH_WALKOVER
                    match.winner_id = opponent
                    match.score1 = match.score2 = None
                    match.completed_at = utcnow()
                    _advance_winner(tx, state, match)
                else:
                    match.status = MATCH_CANCELLED
                tx.save(match)
            logger.info(
                "Participant %s withdrew from competition %s", participant_id, competition.id
            )
            return participant

        return self._transact(competition_id, _withdraw)

    # Stage transitions

    def start(self, competition_id: str) -> dict[str, Any]:
        """Assign boxes and generate round 1."""

        def _start(tx: StoreTransaction) -> dict[str, Any]:
            state = tx.load()
            competition = state.competition
            _ensure_mutable(competition)
            if competition.status in STARTED_STATUSES:
                return _summary(state, replayed=True)
            _require_status(competition, {STATUS_OPEN}, "start")

            settings = competition.settings
            active = state.active_participants()
            if len(active) < settings.min_participants:
                raise InsufficientParticipants(
                    f"At least {settings.min_participants} participants are needed "
                    f"to start; {len(active)} have joined."
                )
            if len(active) > settings.max_participants:
                raise ValidationError(
                    f"No more than {settings.max_participants} participants may take part."
                )

            ordered = [p.id for p in seed_order(active)]
            boxes = assign_boxes(ordered, settings.box_size)
            for box in boxes:
                for pid in box.member_ids:
                    participant = state.participants[pid]
                    participant.box_id = box.id
                    tx.save(participant)
            tx.save(*boxes)

            competition.status = STATUS_REGULAR_IN_PROGRESS
            tx.save_competition()
            if regular_round_count(state) == 0:
                competition.status = STATUS_REGULAR_COMPLETE
            else:
                _build_regular_round(tx, state, 1)
            logger.info(
                "Started competition %s with %s participants in %s box(es)",
                competition.id,
                len(active),
                len(boxes),
            )
            return _summary(state)

        return self._transact(competition_id, _start)

    def generate_round(
        self, competition_id: str, round_number: Optional[int] = None
    ) -> Round:
        """Generate the next round of the active stage without changing stage.

        Fails with RoundAlreadyExists when the round was generated before, so
        a retried call never produces a second copy.
        """

        def _generate(tx: StoreTransaction) -> Round:
            state = tx.load()
            competition = state.competition
            _ensure_mutable(competition)
            latest = state.latest_round
            target = round_number if round_number is not None else (latest.number + 1 if latest else 1)
            if state.round(target) is not None:
                raise RoundAlreadyExists(f"Round {target} has already been generated.")
            _require_status(
                competition,
                {STATUS_REGULAR_IN_PROGRESS, STATUS_PLAYOFFS_IN_PROGRESS},
                "generate a round",
            )
            expected = latest.number + 1 if latest else 1
            if target != expected:
                raise ValidationError(f"The next round to generate is round {expected}.")
            if latest is not None:
                _close_round(tx, state, latest)

            if competition.status == STATUS_REGULAR_IN_PROGRESS:
                if target > regular_round_count(state):
                    raise InvalidTransition(
                        "All regular rounds have been generated; advance the round instead."
                    )
                return _build_regular_round(tx, state, target)

            next_bracket_round = (latest.bracket_round or 0) + 1 if latest else 1
            if next_bracket_round > bracket_round_count(state):
                raise InvalidTransition("The bracket has no further rounds.")
            return _build_bracket_round(tx, state, target, next_bracket_round)

        return self._transact(competition_id, _generate)

    def advance_round(
        self, competition_id: str, expected_round: Optional[int] = None
    ) -> dict[str, Any]:
        """Close the current round and open the next one, or finish the stage.

        ``expected_round`` is the round the caller believes is current; if it
        has already been advanced past, the current state is returned
        unchanged so retried calls never advance twice. Once the regular
        stage is complete, further calls also return the unchanged state.
        """

        def _advance(tx: StoreTransaction) -> dict[str, Any]:
            state = tx.load()
            competition = state.competition
            _ensure_mutable(competition)
            latest = state.latest_round
            if expected_round is not None and latest is not None:
                if latest.number > expected_round or (
                    latest.number == expected_round
                    and latest.status == ROUND_COMPLETE
                    and competition.status != STATUS_REGULAR_IN_PROGRESS
                ):
                    return _summary(state, replayed=True)
            if competition.status == STATUS_REGULAR_COMPLETE:
                return _summary(state, replayed=True)
            _require_status(
                competition,
                {STATUS_REGULAR_IN_PROGRESS, STATUS_PLAYOFFS_IN_PROGRESS},
                "advance the round",
            )
            if latest is None:
                raise InvalidTransition("No round has been generated yet.")
            _close_round(tx, state, latest)

            if competition.status == STATUS_REGULAR_IN_PROGRESS:
                if latest.number < regular_round_count(state):
                    _build_regular_round(tx, state, latest.number + 1)
                else:
                    competition.status = STATUS_REGULAR_COMPLETE
                    tx.save_competition()
                    logger.info("Regular stage of competition %s is complete", competition.id)
            elif (latest.bracket_round or 0) < bracket_round_count(state):
                _build_bracket_round(
                    tx, state, latest.number + 1, (latest.bracket_round or 0) + 1
                )
            return _summary(state)

        return self._transact(competition_id, _advance)

    def start_playoffs(self, competition_id: str) -> dict[str, Any]:
        """Seed the playoff bracket from the final regular standings."""

        def _start_playoffs(tx: StoreTransaction) -> dict[str, Any]:
            state = tx.load()
            competition = state.competition
            _ensure_mutable(competition)
            if competition.status == STATUS_PLAYOFFS_IN_PROGRESS:
                return _summary(state, replayed=True)
            _require_status(competition, {STATUS_REGULAR_COMPLETE}, "start playoffs")
            settings = competition.settings
            if settings.playoff_qualifiers == 0:
                raise InvalidTransition("Playoffs are disabled for this competition.")

            if regular_round_count(state) == 0:
                # A knockout seeds every active participant in seed order.
                withdrawn = _withdrawn_ids(state)
                seeds = [
                    pid
                    for box in state.boxes
                    for pid in box.member_ids
                    if pid not in withdrawn
                ]
            else:
                seeds = playoff_seed_list(
                    box_standings(state), settings.playoff_qualifiers, settings.playoff_scope
                )
            if len(seeds) < MIN_POOL_SIZE:
                raise InsufficientParticipants(
                    f"Playoffs need at least {MIN_POOL_SIZE} qualifiers; found {len(seeds)}."
                )

            latest = state.latest_round
            number = latest.number + 1 if latest else 1
            bracket = seed_bracket(seeds, number)
            rnd = Round(number=number, stage=STAGE_PLAYOFF, bracket_round=1)
            tx.save(rnd, *bracket.slots, *bracket.matches)
            competition.status = STATUS_PLAYOFFS_IN_PROGRESS
            tx.save_competition()
            logger.info(
                "Seeded %s-round playoff bracket for competition %s with %s qualifiers",
                bracket.rounds,
                competition.id,
                len(seeds),
            )
            return _summary(state)

        return self._transact(competition_id, _start_playoffs)

    def complete(self, competition_id: str) -> Competition:
        """Finish the competition once its final match is decided."""

        def _complete(tx: StoreTransaction) -> Competition:
            state = tx.load()
            competition = state.competition
            if competition.status == STATUS_COMPLETED:
                return competition
            _ensure_mutable(competition)
            if competition.status == STATUS_PLAYOFFS_IN_PROGRESS:
                latest = state.latest_round
                if latest is None or (latest.bracket_round or 0) < bracket_round_count(state):
                    raise RoundIncomplete("The final has not been played yet.")
                _close_round(tx, state, latest)
            elif not (
                competition.status == STATUS_REGULAR_COMPLETE
                and competition.settings.playoff_qualifiers == 0
            ):
                raise InvalidTransition(
                    f"Cannot complete while the competition is {competition.status}."
                )
            competition.status = STATUS_COMPLETED
            tx.save_competition()
            logger.info("Competition %s completed", competition.id)
            return competition

        return self._transact(competition_id, _complete)

    def cancel(self, competition_id: str) -> Competition:
        """Cancel the competition and every match still open."""

        def _cancel(tx: StoreTransaction) -> Competition:
            state = tx.load()
            competition = state.competition
            if competition.status == STATUS_CANCELLED:
                return competition
            _ensure_mutable(competition)
            for match in state.matches:
                if match.is_open:
                    match.status = MATCH_CANCELLED
                    tx.save(match)
            competition.status = STATUS_CANCELLED
            tx.save_competition()
            logger.info("Competition %s cancelled", competition.id)
            return competition

        return self._transact(competition_id, _cancel)

    # Match results

    def start_match(self, competition_id: str, match_id: str) -> Match:
        """Mark a scheduled match as being played."""

        def _start_match(tx: StoreTransaction) -> Match:
            state = tx.load()
            _require_status(
                state.competition,
                {STATUS_REGULAR_IN_PROGRESS, STATUS_PLAYOFFS_IN_PROGRESS},
                "start a match",
            )
            match = _find_match(state, match_id)
            if match.status == MATCH_IN_PROGRESS:
                return match
            _ensure_open_match(match)
            match.status = MATCH_IN_PROGRESS
            tx.save(match)
            _mark_round_started(tx, state, match.round_number)
            return match

        return self._transact(competition_id, _start_match)

    def record_result(
        self, competition_id: str, match_id: str, score1: int, score2: int
    ) -> Match:
        """Record the score of an open match.

        Only the first submission for a match is accepted; later ones fail
        with MatchAlreadyResolved instead of overwriting it.
        """
        _validate_scores(score1, score2)

        def _record(tx: StoreTransaction) -> Match:
            state = tx.load()
            _require_status(
                state.competition,
                {STATUS_REGULAR_IN_PROGRESS, STATUS_PLAYOFFS_IN_PROGRESS},
                "record a result",
            )
            match = _find_match(state, match_id)
            _ensure_open_match(match)
            match.score1 = score1
            match.score2 = score2
            match.winner_id = match.participant1_id if score1 > score2 else match.participant2_id
            match.status = MATCH_COMPLETED
            match.completed_at = utcnow()
            tx.save(match)
            _mark_round_started(tx, state, match.round_number)
            _advance_winner(tx, state, match)
            return match

        return self._transact(competition_id, _record)

    def record_walkover(
        self, competition_id: str, match_id: str, winner_id: str
    ) -> Match:
        """Award an open match to one side without play."""

        def _walkover(tx: StoreTransaction) -> Match:
            state = tx.load()
            _require_status(
                state.competition,
                {STATUS_REGULAR_IN_PROGRESS, STATUS_PLAYOFFS_IN_PROGRESS},
                "record a walkover",
            )
            match = _find_match(state, match_id)
            _ensure_open_match(match)
            if not match.involves(winner_id):
                raise ValidationError(f"Participant {winner_id} is not playing in this match.")
            match.status = MATCH_WALKOVER
            match.winner_id = winner_id
            match.score1 = match.score2 = None
            match.completed_at = utcnow()
            tx.save(match)
            _mark_round_started(tx, state, match.round_number)
            _advance_winner(tx, state, match)
            return match

        return self._transact(competition_id, _walkover)

    # Queries

    def check_round_completion(self, competition_id: str, round_number: int) -> bool:
        """Whether every match of a round is completed, walked over or cancelled."""
        state = self.get_state(competition_id)
        if state.round(round_number) is None:
            raise NotFoundError(f"Round {round_number} not found.")
        return all(m.is_resolved for m in state.matches_in_round(round_number))

    def get_round(self, competition_id: str, round_number: int) -> tuple[Round, list[Match]]:
        state = self.get_state(competition_id)
        rnd = state.round(round_number)
        if rnd is None:
            raise NotFoundError(f"Round {round_number} not found.")
        return rnd, state.matches_in_round(round_number)

    def get_box_structure(self, competition_id: str) -> list[dict[str, Any]]:
        state = self.get_state(competition_id)
        return [
            {
                "id": box.id,
                "level": box.level,
                "name": box.name,
                "members": [
                    {
                        "id": pid,
                        "display_name": state.participants[pid].display_name,
                        "withdrawn": state.participants[pid].withdrawn,
                    }
                    for pid in box.member_ids
                    if pid in state.participants
                ],
            }
            for box in state.boxes
        ]

    def get_box_standings(self, competition_id: str, box_id: str) -> list[Standing]:
        """Ranked standings of one box, recomputed from the latest matches."""
        state = self.get_state(competition_id)
        box = state.box(box_id)
        if box is None:
            raise NotFoundError(f"Box {box_id} not found.")
        return compute_standings(
            box.member_ids, state.matches_in_box(box.id), state.participants
        )

    def get_bracket(self, competition_id: str) -> list[BracketRoundView]:
        state = self.get_state(competition_id)
        rounds: dict[int, list[BracketSlot]] = {}
        for slot in state.slots:
            rounds.setdefault(slot.bracket_round, []).append(slot)
        matches_by_round = {
            rnd.bracket_round: state.matches_in_round(rnd.number)
            for rnd in state.rounds_in_stage(STAGE_PLAYOFF)
        }
        return [
            {
                "bracket_round": bracket_round,
                "slots": [slot.to_dict() for slot in slots],
                "matches": [m.to_dict() for m in matches_by_round.get(bracket_round, [])],
            }
            for bracket_round, slots in sorted(rounds.items())
        ]

    # Seasons

    def plan_promotions(self, competition_id: str) -> list[PromotionMove]:
        """Promotion and relegation moves implied by the final box standings."""
        state = self.get_state(competition_id)
        competition = state.competition
        if competition.mode != MODE_LEAGUE:
            raise ValidationError("Promotion only applies to box leagues.")
        if competition.status not in SEASON_END_STATUSES:
            raise InvalidTransition("Promotion is decided once the regular stage is complete.")
        return plan_promotions(
            state.boxes, box_standings(state), competition.settings.promotion_count
        )

    def create_next_season(
        self, competition_id: str, name: Optional[str] = None
    ) -> Competition:
        """Open a new league seeded from this one's promotions and relegations."""
        state = self.get_state(competition_id)
        competition = state.competition
        moves = self.plan_promotions(competition_id)
        standings = box_standings(state)
        order = next_season_order(state.boxes, standings, moves)
        participants = []
        for seed, pid in enumerate(order, start=1):
            previous = state.participants[pid]
            participants.append(
                Participant(
                    id=previous.id,
                    display_name=previous.display_name,
                    account_ref=previous.account_ref,
                    members=list(previous.members),
                    rating=previous.rating,
                    seed=seed,
                )
            )
        settings = CompetitionSettings.from_dict(competition.settings.to_dict())
        settings.max_participants = max(settings.max_participants, len(participants))
        return self.create_competition(
            name or f"{competition.name} (next season)",
            competition.mode,
            settings=settings,
            participants=participants,
            previous_competition_id=competition.id,
        )
