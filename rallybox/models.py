"""Entity models for competitions, their rounds, matches and brackets."""

from __future__ import annotations

import datetime
import uuid
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Optional

from rallybox.core.constants import (
    COMPETITION_MODES,
    DEFAULT_BOX_SIZE,
    DEFAULT_LEAGUE_PLAYOFF_QUALIFIERS,
    DEFAULT_MAX_PARTICIPANTS,
    DEFAULT_MIN_PARTICIPANTS,
    DEFAULT_PROMOTION_COUNT,
    DEFAULT_TOURNAMENT_PLAYOFF_QUALIFIERS,
    MATCH_SCHEDULED,
    MIN_POOL_SIZE,
    MODE_LEAGUE,
    OPEN_MATCH_STATUSES,
    PLAYOFF_SCOPE_BOX,
    PLAYOFF_SCOPE_OVERALL,
    RESOLVED_MATCH_STATUSES,
    ROUND_SCHEDULED,
    STAGE_PLAYOFF,
    STAGE_REGULAR,
    STATUS_OPEN,
    WITHDRAWAL_CANCEL,
    WITHDRAWAL_WALKOVER,
)
from rallybox.errors import ValidationError


def utcnow() -> datetime.datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


def new_id() -> str:
    """Generate a document identifier."""
    return uuid.uuid4().hex


class _Document:
    """Mixin giving dataclasses a Firestore-friendly dict form."""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)  # type: ignore[call-overload]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Any:
        names = {f.name for f in fields(cls)}  # type: ignore[arg-type]
        return cls(**{k: v for k, v in data.items() if k in names})


@dataclass
class CompetitionSettings(_Document):
    """Organizer-controlled configuration of a competition."""

    min_participants: int = DEFAULT_MIN_PARTICIPANTS
    max_participants: int = DEFAULT_MAX_PARTICIPANTS
    box_size: Optional[int] = None
    regular_rounds: Optional[int] = None
    playoff_qualifiers: int = DEFAULT_TOURNAMENT_PLAYOFF_QUALIFIERS
    playoff_scope: str = PLAYOFF_SCOPE_OVERALL
    withdrawal_policy: str = WITHDRAWAL_CANCEL
    promotion_count: int = DEFAULT_PROMOTION_COUNT

    @classmethod
    def for_mode(cls, mode: str, **overrides: Any) -> CompetitionSettings:
        """Build settings with the defaults of a competition mode."""
        if mode == MODE_LEAGUE:
            defaults: dict[str, Any] = {
                "box_size": DEFAULT_BOX_SIZE,
                "playoff_qualifiers": DEFAULT_LEAGUE_PLAYOFF_QUALIFIERS,
                "playoff_scope": PLAYOFF_SCOPE_BOX,
            }
        else:
            defaults = {}
        defaults.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_dict(defaults)

    def validate(self) -> None:
        """Reject settings that can never produce a playable competition."""
        if self.min_participants < MIN_POOL_SIZE:
            raise ValidationError(
                f"A competition needs at least {MIN_POOL_SIZE} participants."
            )
        if self.max_participants < self.min_participants:
            raise ValidationError(
                "Maximum participants cannot be lower than the minimum."
            )
        if self.box_size is not None and self.box_size < MIN_POOL_SIZE:
            raise ValidationError(f"Box size must be at least {MIN_POOL_SIZE}.")
        if self.regular_rounds is not None and self.regular_rounds < 0:
            raise ValidationError("Regular rounds cannot be negative.")
        if self.playoff_qualifiers < 0:
            raise ValidationError("Playoff qualifiers cannot be negative.")
        if self.playoff_scope not in (PLAYOFF_SCOPE_BOX, PLAYOFF_SCOPE_OVERALL):
            raise ValidationError(f"Unknown playoff scope '{self.playoff_scope}'.")
        if self.withdrawal_policy not in (WITHDRAWAL_CANCEL, WITHDRAWAL_WALKOVER):
            raise ValidationError(
                f"Unknown withdrawal policy '{self.withdrawal_policy}'."
            )
        if self.promotion_count < 0:
            raise ValidationError("Promotion count cannot be negative.")


@dataclass
class Competition(_Document):
    """A tournament or box league."""

    id: str
    name: str
    mode: str
    settings: CompetitionSettings
    status: str = STATUS_OPEN
    participant_count: int = 0
    revision: int = 0
    previous_competition_id: Optional[str] = None
    created_at: Any = field(default_factory=utcnow)
    updated_at: Any = None

    def __post_init__(self) -> None:
        if isinstance(self.settings, dict):
            self.settings = CompetitionSettings.from_dict(self.settings)
        if self.mode not in COMPETITION_MODES:
            raise ValidationError(f"Unknown competition mode '{self.mode}'.")


@dataclass
class Participant(_Document):
    """An entrant: a single player, or a doubles team listing its members."""

    id: str
    display_name: str
    account_ref: Optional[str] = None
    members: list[str] = field(default_factory=list)
    rating: Optional[float] = None
    seed: Optional[int] = None
    enrolled_at: Any = field(default_factory=utcnow)
    withdrawn: bool = False
    box_id: Optional[str] = None


@dataclass
class Box(_Document):
    """A pool of participants playing each other; level 1 is the top box."""

    id: str
    level: int
    member_ids: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return f"Box {self.level}"


@dataclass
class Round(_Document):
    """One synchronized batch of matches."""

    number: int
    stage: str = STAGE_REGULAR
    status: str = ROUND_SCHEDULED
    bracket_round: Optional[int] = None
    created_at: Any = field(default_factory=utcnow)
    completed_at: Any = None

    @property
    def id(self) -> str:
        return f"round-{self.number:03d}"


@dataclass
class Match(_Document):
    """A pairing between two participants within a round."""

    id: str
    round_number: int
    participant1_id: str
    participant2_id: Optional[str]
    stage: str = STAGE_REGULAR
    box_id: Optional[str] = None
    slot_id: Optional[str] = None
    status: str = MATCH_SCHEDULED
    score1: Optional[int] = None
    score2: Optional[int] = None
    winner_id: Optional[str] = None
    scheduled_at: Any = None
    completed_at: Any = None

    @property
    def participant_ids(self) -> list[str]:
        return [p for p in (self.participant1_id, self.participant2_id) if p]

    @property
    def is_bye(self) -> bool:
        return self.participant2_id is None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_MATCH_STATUSES

    @property
    def is_resolved(self) -> bool:
        return self.status in RESOLVED_MATCH_STATUSES

    @property
    def loser_id(self) -> Optional[str]:
        if self.winner_id is None or self.is_bye:
            return None
        if self.winner_id == self.participant1_id:
            return self.participant2_id
        return self.participant1_id

    def involves(self, participant_id: str) -> bool:
        return participant_id in self.participant_ids

    def opponent_of(self, participant_id: str) -> Optional[str]:
        if participant_id == self.participant1_id:
            return self.participant2_id
        if participant_id == self.participant2_id:
            return self.participant1_id
        return None


@dataclass
class BracketSlot(_Document):
    """A position in the elimination tree.

    Round-1 slots hold a seed or a bye; later slots name the two slots whose
    winner fills them until that winner is known.
    """

    id: str
    bracket_round: int
    position: int
    seed: Optional[int] = None
    occupant_id: Optional[str] = None
    is_bye: bool = False
    source_slot_ids: list[str] = field(default_factory=list)

    @staticmethod
    def make_id(bracket_round: int, position: int) -> str:
        return f"R{bracket_round}-P{position}"


@dataclass
class Standing:
    """Derived per-participant record within a box. Never persisted."""

    participant_id: str
    display_name: str = ""
    played: int = 0
    wins: int = 0
    losses: int = 0
    points_for: int = 0
    points_against: int = 0
    head_to_head: dict[str, int] = field(default_factory=dict)
    withdrawn: bool = False
    rank: int = 0

    @property
    def point_diff(self) -> int:
        return self.points_for - self.points_against

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["point_diff"] = self.point_diff
        return data


@dataclass
class CompetitionState:
    """Everything persisted for one competition, as read at one instant."""

    competition: Competition
    participants: dict[str, Participant] = field(default_factory=dict)
    boxes: list[Box] = field(default_factory=list)
    rounds: list[Round] = field(default_factory=list)
    matches: list[Match] = field(default_factory=list)
    slots: list[BracketSlot] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.boxes.sort(key=lambda b: b.level)
        self.rounds.sort(key=lambda r: r.number)
        self.slots.sort(key=lambda s: (s.bracket_round, s.position))

    @property
    def latest_round(self) -> Optional[Round]:
        return self.rounds[-1] if self.rounds else None

    def round(self, number: int) -> Optional[Round]:
        for rnd in self.rounds:
            if rnd.number == number:
                return rnd
        return None

    def rounds_in_stage(self, stage: str) -> list[Round]:
        return [r for r in self.rounds if r.stage == stage]

    def box(self, box_id: str) -> Optional[Box]:
        for box in self.boxes:
            if box.id == box_id:
                return box
        return None

    def match(self, match_id: str) -> Optional[Match]:
        for match in self.matches:
            if match.id == match_id:
                return match
        return None

    def slot(self, slot_id: str) -> Optional[BracketSlot]:
        for slot in self.slots:
            if slot.id == slot_id:
                return slot
        return None

    def matches_in_round(self, number: int) -> list[Match]:
        return [m for m in self.matches if m.round_number == number]

    def matches_in_box(self, box_id: str) -> list[Match]:
        return [m for m in self.matches if m.box_id == box_id]

    def playoff_matches(self) -> list[Match]:
        return [m for m in self.matches if m.stage == STAGE_PLAYOFF]

    def active_participants(self) -> list[Participant]:
        return [p for p in self.participants.values() if not p.withdrawn]
