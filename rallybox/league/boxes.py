"""Box assignment and promotion/relegation for box leagues."""

from __future__ import annotations

import datetime
from typing import TYPE_CHECKING, Any, Optional

from rallybox.core.constants import MIN_POOL_SIZE, PROMOTED, RELEGATED
from rallybox.core.types import PromotionMove
from rallybox.errors import InsufficientParticipants
from rallybox.models import Box

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from rallybox.models import Participant, Standing

_EPOCH = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)


def _as_aware(value: Any) -> datetime.datetime:
    if not isinstance(value, datetime.datetime):
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value


def seed_order(participants: Iterable[Participant]) -> list[Participant]:
    """Rank participants for box assignment.

    Explicit seeds come first (lowest number best), then rating (highest
    best, unrated last), then join order, then id.
    """

    def key(p: Participant) -> tuple[Any, ...]:
        return (
            p.seed is None,
            p.seed if p.seed is not None else 0,
            p.rating is None,
            -(p.rating or 0.0),
            _as_aware(p.enrolled_at),
            p.id,
        )

    return sorted(participants, key=key)


def assign_boxes(ordered_ids: Sequence[str], box_size: Optional[int]) -> list[Box]:
    """Partition ranked participants into boxes of ``box_size``.

    Box 1 receives the top ``box_size``, box 2 the next, and so on. The last
    box may be smaller but never larger. Without a box size everyone shares
    one box.
    """
    if len(ordered_ids) < MIN_POOL_SIZE:
        raise InsufficientParticipants(
            f"At least {MIN_POOL_SIZE} participants are needed to form a box."
        )
    if not box_size or len(ordered_ids) <= box_size:
        return [Box(id="box-1", level=1, member_ids=list(ordered_ids))]

    boxes = []
    for level, start in enumerate(range(0, len(ordered_ids), box_size), start=1):
        boxes.append(
            Box(
                id=f"box-{level}",
                level=level,
                member_ids=list(ordered_ids[start : start + box_size]),
            )
        )
    if len(boxes[-1].member_ids) < MIN_POOL_SIZE:
        raise InsufficientParticipants(
            f"{len(ordered_ids)} participants in boxes of {box_size} would leave "
            f"{boxes[-1].name} with a single participant; change the box size."
        )
    return boxes


def plan_promotions(
    boxes: Sequence[Box], box_standings: Sequence[Sequence[Standing]], count: int
) -> list[PromotionMove]:
    """Move the top ``count`` of each box up a level and the bottom ``count`` down.

    Box 1 has nobody to promote and the last box nobody to relegate.
    Withdrawn participants are not moved. In a small box nobody is both
    promoted and relegated; promotion wins.
    """
    moves: list[PromotionMove] = []
    last = len(boxes) - 1
    for index, (box, standings) in enumerate(zip(boxes, box_standings)):
        eligible = [s.participant_id for s in standings if not s.withdrawn]
        promoted: list[str] = eligible[:count] if index > 0 else []
        if index < last and count:
            remaining = [pid for pid in eligible if pid not in promoted]
            relegated = remaining[-count:]
        else:
            relegated = []
        for pid in promoted:
            moves.append(
                PromotionMove(
                    participant_id=pid,
                    direction=PROMOTED,
                    from_level=box.level,
                    to_level=boxes[index - 1].level,
                )
            )
        for pid in relegated:
            moves.append(
                PromotionMove(
                    participant_id=pid,
                    direction=RELEGATED,
                    from_level=box.level,
                    to_level=boxes[index + 1].level,
                )
            )
    return moves


def next_season_order(
    boxes: Sequence[Box],
    box_standings: Sequence[Sequence[Standing]],
    moves: Sequence[PromotionMove],
) -> list[str]:
    """Seed order for the following season after applying ``moves``.

    Promoted participants enter at the bottom of their new box and relegated
    ones at the top, so boxes of the same size reproduce the moves.
    Withdrawn participants are dropped.
    """
    moved = {move["participant_id"]: move for move in moves}
    levels: dict[int, list[str]] = {box.level: [] for box in boxes}
    for box, standings in zip(boxes, box_standings):
        levels[box.level].extend(
            s.participant_id
            for s in standings
            if not s.withdrawn and s.participant_id not in moved
        )
    for box in boxes:
        relegated_in = [
            m["participant_id"]
            for m in moves
            if m["to_level"] == box.level and m["direction"] == RELEGATED
        ]
        promoted_in = [
            m["participant_id"]
            for m in moves
            if m["to_level"] == box.level and m["direction"] == PROMOTED
        ]
        levels[box.level] = relegated_in + levels[box.level] + promoted_in
    return [pid for box in boxes for pid in levels[box.level]]
