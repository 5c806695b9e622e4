"""Bracket seeding for playoffs."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rallybox.core.constants import (
    MATCH_WALKOVER,
    PLAYOFF_SCOPE_BOX,
    STAGE_PLAYOFF,
)
from rallybox.errors import DuplicateParticipant, EmptySeedList
from rallybox.models import BracketSlot, Match, new_id
from rallybox.pairing.elimination import bracket_rounds, bracket_size, seed_positions
from rallybox.standings import rank_across_boxes

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from rallybox.models import Standing


@dataclass
class SeededBracket:
    """A freshly seeded bracket: its slot tree and first-round matches."""

    root: BracketSlot
    slots: list[BracketSlot]
    matches: list[Match]

    @property
    def rounds(self) -> int:
        return self.root.bracket_round - 1


def playoff_seed_list(
    box_standings: Sequence[Sequence[Standing]], qualifiers: int, scope: str
) -> list[str]:
    """Select playoff qualifiers from ranked boxes, best seed first.

    Withdrawn participants never qualify. With per-box qualification every
    box winner is seeded ahead of every runner-up, higher boxes first within
    the same finishing place.
    """
    eligible = [[s for s in standings if not s.withdrawn] for standings in box_standings]
    if scope == PLAYOFF_SCOPE_BOX:
        per_box = [standings[:qualifiers] for standings in eligible]
        return [
            standings[place].participant_id
            for place in range(qualifiers)
            for standings in per_box
            if len(standings) > place
        ]
    pooled = [s for standings in eligible for s in standings]
    return [s.participant_id for s in rank_across_boxes(pooled)[:qualifiers]]


def pair_bracket_round(
    slots: Sequence[BracketSlot],
    bracket_round: int,
    round_number: int,
    withdrawn: Collection[str] = (),
) -> list[Match]:
    """Create the matches of one bracket round from its filled slots.

    A slot facing a bye (or a withdrawn occupant) produces a walkover
    placeholder and its occupant moves straight into the next slot. Two empty
    slots leave the next slot empty too.
    """
    by_id = {slot.id: slot for slot in slots}
    current = sorted(
        (slot for slot in slots if slot.bracket_round == bracket_round),
        key=lambda slot: slot.position,
    )

    matches = []
    for upper, lower in zip(current[0::2], current[1::2]):
        destination = by_id[BracketSlot.make_id(bracket_round + 1, upper.position // 2)]
        present = [
            slot
            for slot in (upper, lower)
            if not slot.is_bye and slot.occupant_id and slot.occupant_id not in withdrawn
        ]
        if len(present) == 2:
            matches.append(
                Match(
                    id=new_id(),
                    round_number=round_number,
                    participant1_id=upper.occupant_id or "",
                    participant2_id=lower.occupant_id,
                    stage=STAGE_PLAYOFF,
                    slot_id=destination.id,
                )
            )
        elif len(present) == 1:
            advancing = present[0]
            matches.append(
                Match(
                    id=new_id(),
                    round_number=round_number,
                    participant1_id=advancing.occupant_id or "",
                    participant2_id=None,
                    stage=STAGE_PLAYOFF,
                    slot_id=destination.id,
                    status=MATCH_WALKOVER,
                    winner_id=advancing.occupant_id,
                )
            )
            destination.occupant_id = advancing.occupant_id
            destination.seed = advancing.seed
        else:
            destination.is_bye = True
    return matches


def seed_bracket(ordered_ids: Sequence[str], round_number: int) -> SeededBracket:
    """Build the slot tree for ranked participants and pair the first round.

    ``ordered_ids`` must already be ranked, best first. Seeds are placed with
    the standard order (1 v last, 2 v second-last, ...) and the top seeds get
    the byes when the field is not a power of two. The returned root is the
    champion slot.
    """
    if not ordered_ids:
        raise EmptySeedList()
    duplicates = sorted(pid for pid, count in Counter(ordered_ids).items() if count > 1)
    if duplicates:
        raise DuplicateParticipant(
            f"Participant {duplicates[0]} appears more than once in the seed list."
        )

    num_participants = len(ordered_ids)
    size = bracket_size(num_participants)
    total_rounds = bracket_rounds(num_participants)

    slots = []
    for position, seed in enumerate(seed_positions(size)):
        occupant = ordered_ids[seed - 1] if seed <= num_participants else None
        slots.append(
            BracketSlot(
                id=BracketSlot.make_id(1, position),
                bracket_round=1,
                position=position,
                seed=seed if occupant else None,
                occupant_id=occupant,
                is_bye=occupant is None,
            )
        )
    for bracket_round in range(2, total_rounds + 2):
        for position in range(size >> (bracket_round - 1)):
            slots.append(
                BracketSlot(
                    id=BracketSlot.make_id(bracket_round, position),
                    bracket_round=bracket_round,
                    position=position,
                    source_slot_ids=[
                        BracketSlot.make_id(bracket_round - 1, 2 * position),
                        BracketSlot.make_id(bracket_round - 1, 2 * position + 1),
                    ],
                )
            )

    matches = pair_bracket_round(slots, 1, round_number)
    root = slots[-1]
    return SeededBracket(root=root, slots=slots, matches=matches)
