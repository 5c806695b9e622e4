"""Round-robin pairing for boxes."""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING, Optional

from rallybox.core.constants import BYE, MATCH_CANCELLED, MIN_POOL_SIZE
from rallybox.errors import InsufficientParticipants

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Iterable, Mapping, Sequence

    from rallybox.models import Match

Pair = tuple[str, str]


def cycle_length(size: int) -> int:
    """Rounds needed for everyone in a box of ``size`` to meet once."""
    if size < MIN_POOL_SIZE:
        return 0
    return size - 1 if size % 2 == 0 else size


def circle_round(
    participant_ids: Sequence[str],
    round_index: int,
    excluded: Collection[str] = (),
) -> list[Pair]:
    """Pairings for one round of the circle method (``round_index`` is 0-based).

    The first participant stays fixed while the rest rotate one place per
    round. An odd roster gets a BYE slot; ``excluded`` participants keep their
    position in the circle but their opponent gets the round off.
    """
    ids = list(participant_ids)
    if len(ids) < MIN_POOL_SIZE:
        return []
    if len(ids) % 2 != 0:
        ids.append(BYE)

    num_participants = len(ids)
    for _ in range(round_index % (num_participants - 1)):
        # Rotate ids: keep the first element fixed, rotate others
        ids = [ids[0], ids[-1]] + ids[1:-1]

    pairs = []
    for i in range(num_participants // 2):
        p1 = ids[i]
        p2 = ids[num_participants - 1 - i]
        if BYE in (p1, p2) or p1 in excluded or p2 in excluded:
            continue
        pairs.append((p1, p2))
    return pairs


def full_cycle(participant_ids: Sequence[str]) -> list[list[Pair]]:
    """Every round of a single round-robin cycle."""
    return [
        circle_round(participant_ids, index)
        for index in range(cycle_length(len(participant_ids)))
    ]


def count_meetings(matches: Iterable[Match]) -> Counter[frozenset[str]]:
    """How often each unordered pair has been drawn (cancelled draws excluded)."""
    meetings: Counter[frozenset[str]] = Counter()
    for match in matches:
        if match.status == MATCH_CANCELLED or match.participant2_id is None:
            continue
        meetings[frozenset(match.participant_ids)] += 1
    return meetings


PAIRING_SEARCH_LIMIT = 20000


def _least_repeat_matching(
    order: Sequence[str],
    meetings: Mapping[frozenset[str], int],
    preference: Callable[[str, str], tuple[int, ...]],
) -> tuple[int, list[Pair]]:
    """Pair everyone in ``order`` with the fewest total repeat meetings.

    Backtracks over opponents in ``preference`` order and stops at the first
    matching without repeats. The search is capped at
    ``PAIRING_SEARCH_LIMIT`` steps, after which the best matching found so
    far is used.
    """
    best_cost = -1
    best_pairs: list[Pair] = []
    steps = 0

    def search(remaining: list[str], pairs: list[Pair], cost: int) -> None:
        nonlocal best_cost, best_pairs, steps
        steps += 1
        if best_cost != -1 and (cost >= best_cost or steps > PAIRING_SEARCH_LIMIT):
            return
        if len(remaining) < 2:
            best_cost, best_pairs = cost, list(pairs)
            return
        pid, rest = remaining[0], remaining[1:]
        for opponent in sorted(rest, key=lambda q: preference(pid, q)):
            if best_cost == 0:
                return
            pairs.append((pid, opponent))
            search(
                [q for q in rest if q != opponent],
                pairs,
                cost + meetings.get(frozenset((pid, opponent)), 0),
            )
            pairs.pop()

    search(list(order), [], 0)
    return best_cost, best_pairs


def least_met_round(
    participant_ids: Sequence[str],
    meetings: Mapping[frozenset[str], int],
    completed: Mapping[str, int],
) -> list[Pair]:
    """Pair participants so as few pairs as possible have met before.

    Participants with the fewest completed matches choose first, preferring
    unmet opponents with the fewest completed matches. When the roster is odd
    one of the participants with the most matches sits out, keeping counts
    within one.
    """
    position = {pid: index for index, pid in enumerate(participant_ids)}
    order = sorted(participant_ids, key=lambda pid: (completed.get(pid, 0), position[pid]))

    def preference(pid: str, opponent: str) -> tuple[int, ...]:
        return (
            meetings.get(frozenset((pid, opponent)), 0),
            completed.get(opponent, 0),
            position[opponent],
        )

    if len(order) % 2 == 0:
        return _least_repeat_matching(order, meetings, preference)[1]

    most = max(completed.get(pid, 0) for pid in order)
    sitters = [pid for pid in reversed(order) if completed.get(pid, 0) == most]
    best: Optional[tuple[int, list[Pair]]] = None
    for sitter in sitters:
        cost, pairs = _least_repeat_matching(
            [pid for pid in order if pid != sitter], meetings, preference
        )
        if best is None or cost < best[0]:
            best = (cost, pairs)
        if cost == 0:
            break
    return best[1] if best else []


def partial_cycle_round(
    roster: Sequence[str],
    withdrawn: Collection[str],
    round_index: int,
    meetings: Mapping[frozenset[str], int],
    completed: Mapping[str, int],
) -> list[Pair]:
    """Pairings for a box that will not finish a full cycle.

    Follows the circle schedule while it still yields only unmet pairs and
    nobody has withdrawn; otherwise falls back to ``least_met_round``.
    """
    if not any(pid in withdrawn for pid in roster):
        pairs = circle_round(roster, round_index)
        if not any(meetings.get(frozenset(pair), 0) for pair in pairs):
            return pairs
    active = [pid for pid in roster if pid not in withdrawn]
    return least_met_round(active, meetings, completed)


def generate_box_round(
    roster: Sequence[str],
    withdrawn: Collection[str],
    round_index: int,
    previous_matches: Iterable[Match] = (),
    rounds_planned: Optional[int] = None,
    completed: Optional[Mapping[str, int]] = None,
) -> list[Pair]:
    """Pairings for one box in regular round ``round_index`` (0-based).

    Uses the circle method when the league plays at least a full cycle
    (``rounds_planned`` of ``None`` means exactly one cycle, so rounds past
    this box's cycle produce nothing). Shorter schedules use
    ``partial_cycle_round``.
    """
    active = [pid for pid in roster if pid not in withdrawn]
    if len(active) < MIN_POOL_SIZE:
        raise InsufficientParticipants(
            f"A box needs at least {MIN_POOL_SIZE} active participants; "
            f"it has {len(active)}."
        )

    cycle = cycle_length(len(roster))
    if rounds_planned is None:
        if round_index >= cycle:
            return []
        return circle_round(roster, round_index, excluded=withdrawn)
    if rounds_planned >= cycle:
        return circle_round(roster, round_index, excluded=withdrawn)
    return partial_cycle_round(
        roster, withdrawn, round_index, count_meetings(previous_matches), completed or {}
    )
