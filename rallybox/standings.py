"""Standings calculation for boxes.

Standings are always derived from the current match set and never stored.
Only completed matches and walkovers count. Ties are broken by wins, then
point differential, then points scored, then the results between the tied
participants, and finally by participant id so that identical input always
yields identical output.
"""

from __future__ import annotations

from itertools import groupby
from typing import TYPE_CHECKING, Optional

from rallybox.core.constants import COUNTED_MATCH_STATUSES
from rallybox.models import Standing

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from rallybox.models import Match, Participant


def _match_winner(match: Match) -> Optional[str]:
    if match.winner_id:
        return match.winner_id
    if match.score1 is None or match.score2 is None or match.score1 == match.score2:
        return None
    return match.participant1_id if match.score1 > match.score2 else match.participant2_id


def aggregate_match_data(
    member_ids: Sequence[str], matches: Iterable[Match]
) -> dict[str, Standing]:
    """Build raw records for every member from the counted matches between members."""
    members = set(member_ids)
    standings = {pid: Standing(participant_id=pid) for pid in member_ids}

    for match in matches:
        if match.status not in COUNTED_MATCH_STATUSES or match.is_bye:
            continue
        id1, id2 = match.participant1_id, match.participant2_id
        if id1 not in members or id2 not in members:
            continue
        winner = _match_winner(match)
        if winner is None:
            continue
        loser = id2 if winner == id1 else id1
        score1 = match.score1 or 0
        score2 = match.score2 or 0

        s1, s2 = standings[id1], standings[id2]
        s1.played += 1
        s2.played += 1
        s1.points_for += score1
        s1.points_against += score2
        s2.points_for += score2
        s2.points_against += score1
        standings[winner].wins += 1
        standings[loser].losses += 1
        standings[winner].head_to_head[loser] = standings[winner].head_to_head.get(loser, 0) + 1
        standings[loser].head_to_head[winner] = standings[loser].head_to_head.get(winner, 0) - 1

    return standings


def _primary_key(standing: Standing) -> tuple[int, int, int]:
    return (-standing.wins, -standing.point_diff, -standing.points_for)


def _break_tie(group: list[Standing]) -> list[Standing]:
    """Order equal records by results among the tied participants, then id."""
    if len(group) == 1:
        return group
    tied = {s.participant_id for s in group}

    def head_to_head(standing: Standing) -> int:
        return sum(net for opp, net in standing.head_to_head.items() if opp in tied)

    return sorted(group, key=lambda s: (-head_to_head(s), s.participant_id))


def sort_standings(standings: Iterable[Standing]) -> list[Standing]:
    """Rank raw standings and assign 1-based ranks."""
    ordered: list[Standing] = []
    for _, group in groupby(sorted(standings, key=_primary_key), key=_primary_key):
        ordered.extend(_break_tie(list(group)))
    for rank, standing in enumerate(ordered, start=1):
        standing.rank = rank
    return ordered


def compute_standings(
    member_ids: Sequence[str],
    matches: Iterable[Match],
    participants: Optional[Mapping[str, Participant]] = None,
) -> list[Standing]:
    """Orchestrate the calculation of standings for one box."""
    raw_standings = aggregate_match_data(member_ids, matches)
    if participants:
        for pid, standing in raw_standings.items():
            participant = participants.get(pid)
            if participant is not None:
                standing.display_name = participant.display_name
                standing.withdrawn = participant.withdrawn
    return sort_standings(raw_standings.values())


def rank_across_boxes(standings: Iterable[Standing]) -> list[Standing]:
    """Order standings from different boxes by record alone, then id.

    Head-to-head does not apply because the participants never shared a box.
    """
    return sorted(standings, key=lambda s: (_primary_key(s), s.participant_id))
