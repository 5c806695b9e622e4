"""Tests for round-robin pairing."""

from __future__ import annotations

import unittest
from collections import Counter
from itertools import combinations

from rallybox.core.constants import MATCH_CANCELLED, MATCH_COMPLETED
from rallybox.errors import InsufficientParticipants
from rallybox.models import Match
from rallybox.pairing.round_robin import (
    circle_round,
    count_meetings,
    cycle_length,
    full_cycle,
    generate_box_round,
    least_met_round,
)


def _as_sets(pairs):
    return {frozenset(pair) for pair in pairs}


class CircleMethodTestCase(unittest.TestCase):
    """Test case for the circle method."""

    def test_cycle_length(self) -> None:
        """Even boxes need n-1 rounds, odd boxes n."""
        self.assertEqual(cycle_length(1), 0)
        self.assertEqual(cycle_length(2), 1)
        self.assertEqual(cycle_length(4), 3)
        self.assertEqual(cycle_length(5), 5)

    def test_full_cycle_meets_everyone_once(self) -> None:
        """Every unordered pair occurs exactly once over a full cycle."""
        for n in range(3, 10):
            ids = [f"p{i}" for i in range(n)]
            rounds = full_cycle(ids)
            all_pairs = [frozenset(pair) for rnd in rounds for pair in rnd]

            self.assertEqual(len(all_pairs), n * (n - 1) // 2, f"n={n}")
            self.assertEqual(set(all_pairs), {frozenset(c) for c in combinations(ids, 2)})
            self.assertTrue(all(len(pair) == 2 for pair in all_pairs))

            for rnd in rounds:
                counts = Counter(pid for pair in rnd for pid in pair)
                self.assertTrue(all(c == 1 for c in counts.values()), f"n={n}")

    def test_four_player_box_rounds(self) -> None:
        """A box of A-D plays A-D and B-C first, then A-C and D-B."""
        ids = ["A", "B", "C", "D"]
        self.assertEqual(circle_round(ids, 0), [("A", "D"), ("B", "C")])
        self.assertEqual(circle_round(ids, 1), [("A", "C"), ("D", "B")])

    def test_odd_box_gives_one_bye_per_round(self) -> None:
        """With five participants each round leaves exactly one out."""
        ids = ["A", "B", "C", "D", "E"]
        sitting_out = []
        for rnd in full_cycle(ids):
            self.assertEqual(len(rnd), 2)
            playing = {pid for pair in rnd for pid in pair}
            sitting_out.extend(set(ids) - playing)
        self.assertEqual(sorted(sitting_out), ids)

    def test_excluded_participant_keeps_position(self) -> None:
        """A withdrawn participant's opponent gets the round off."""
        ids = ["A", "B", "C", "D"]
        self.assertEqual(circle_round(ids, 0, excluded={"C"}), [("A", "D")])
        self.assertEqual(circle_round(ids, 1, excluded={"C"}), [("D", "B")])

    def test_too_small_roster(self) -> None:
        """A single participant produces no pairs."""
        self.assertEqual(circle_round(["A"], 0), [])
        self.assertEqual(full_cycle(["A"]), [])


class LeastMetPairingTestCase(unittest.TestCase):
    """Test case for partial-cycle pairing."""

    def test_prefers_unmet_opponents(self) -> None:
        """Pairs already drawn are avoided."""
        meetings = {frozenset(("A", "B")): 1, frozenset(("C", "D")): 1}
        pairs = least_met_round(["A", "B", "C", "D"], meetings, {})
        self.assertEqual(pairs, [("A", "C"), ("B", "D")])

    def test_most_played_sits_out(self) -> None:
        """With an odd roster the participant with the most matches rests."""
        pairs = least_met_round(["A", "B", "C"], {}, {"A": 1, "B": 1, "C": 0})
        self.assertEqual(pairs, [("C", "A")])

    def test_looks_ahead_to_avoid_repeats(self) -> None:
        """An early choice is revised when it would force a rematch later."""
        meetings = {frozenset(("C", "D")): 1}
        pairs = least_met_round(["A", "B", "C", "D"], meetings, {})
        self.assertEqual(pairs, [("A", "C"), ("B", "D")])

    def test_count_meetings_skips_cancelled(self) -> None:
        """Cancelled matches are not counted as meetings."""
        matches = [
            Match(id="m1", round_number=1, participant1_id="A", participant2_id="B",
                  status=MATCH_COMPLETED),
            Match(id="m2", round_number=2, participant1_id="A", participant2_id="B",
                  status=MATCH_CANCELLED),
        ]
        self.assertEqual(count_meetings(matches)[frozenset(("A", "B"))], 1)


class GenerateBoxRoundTestCase(unittest.TestCase):
    """Test case for per-box round generation."""

    def test_stops_after_full_cycle(self) -> None:
        """Without a planned round count the box plays one cycle."""
        ids = ["A", "B", "C", "D"]
        self.assertEqual(len(generate_box_round(ids, set(), 2)), 2)
        self.assertEqual(generate_box_round(ids, set(), 3), [])

    def test_repeats_cycle_when_more_rounds_planned(self) -> None:
        """Rounds past the cycle wrap around to the start."""
        ids = ["A", "B", "C", "D"]
        self.assertEqual(
            generate_box_round(ids, set(), 3, rounds_planned=6),
            circle_round(ids, 0),
        )

    def test_short_schedule_pairs_unmet(self) -> None:
        """Fewer rounds than a cycle pair by fewest meetings."""
        ids = ["A", "B", "C", "D"]
        previous = [
            Match(id="m1", round_number=1, participant1_id="A", participant2_id="B",
                  status=MATCH_COMPLETED),
            Match(id="m2", round_number=1, participant1_id="C", participant2_id="D",
                  status=MATCH_COMPLETED),
        ]
        pairs = generate_box_round(
            ids, set(), 1, previous_matches=previous, rounds_planned=2,
            completed={"A": 1, "B": 1, "C": 1, "D": 1},
        )
        self.assertEqual(_as_sets(pairs), {frozenset("AC"), frozenset("BD")})

    def test_insufficient_active_participants(self) -> None:
        """A box with one active participant cannot be paired."""
        with self.assertRaises(InsufficientParticipants):
            generate_box_round(["A", "B"], {"B"}, 0)


def _play_schedule(roster, rounds, rounds_planned, withdrawn_after=None):
    """Generate and complete ``rounds`` rounds, withdrawing players as given.

    ``withdrawn_after`` maps a 0-based round index to the participants who
    withdraw before it.
    """
    matches = []
    completed = Counter()
    withdrawn = set()
    for index in range(rounds):
        withdrawn |= set((withdrawn_after or {}).get(index, ()))
        pairs = generate_box_round(
            roster, withdrawn, index, previous_matches=matches,
            rounds_planned=rounds_planned, completed=completed,
        )
        for p1, p2 in pairs:
            matches.append(
                Match(id=f"m{len(matches)}", round_number=index + 1,
                      participant1_id=p1, participant2_id=p2, status=MATCH_COMPLETED)
            )
            completed[p1] += 1
            completed[p2] += 1
    return matches, completed


class PartialCycleTestCase(unittest.TestCase):
    """Test case for schedules shorter than a full cycle."""

    def test_six_player_box_over_four_rounds(self) -> None:
        """Four of five rounds: nobody meets twice and everyone plays every round."""
        matches, completed = _play_schedule(list("ABCDEF"), 4, rounds_planned=4)
        repeats = {pair: n for pair, n in count_meetings(matches).items() if n > 1}
        self.assertEqual(repeats, {})
        self.assertEqual(set(completed.values()), {4})

    def test_withdrawal_mid_schedule(self) -> None:
        """After a withdrawal the rest still avoid rematches and stay level."""
        matches, completed = _play_schedule(
            list("ABCDEF"), 3, rounds_planned=4, withdrawn_after={1: {"F"}}
        )
        repeats = {pair: n for pair, n in count_meetings(matches).items() if n > 1}
        self.assertEqual(repeats, {})
        self.assertFalse(any(m.involves("F") for m in matches if m.round_number > 1))
        active_counts = [completed[pid] for pid in "ABCDE"]
        self.assertLessEqual(max(active_counts) - min(active_counts), 1)


if __name__ == "__main__":
    unittest.main()
