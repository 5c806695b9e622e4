"""Tests for standings calculation."""

from __future__ import annotations

import unittest

from rallybox.core.constants import (
    MATCH_CANCELLED,
    MATCH_COMPLETED,
    MATCH_SCHEDULED,
    MATCH_WALKOVER,
)
from rallybox.models import Match, Participant, Standing
from rallybox.standings import (
    aggregate_match_data,
    compute_standings,
    rank_across_boxes,
    sort_standings,
)


def _match(match_id, p1, p2, score1=None, score2=None, status=MATCH_COMPLETED, winner=None):
    return Match(
        id=match_id,
        round_number=1,
        participant1_id=p1,
        participant2_id=p2,
        status=status,
        score1=score1,
        score2=score2,
        winner_id=winner,
    )


class StandingsTestCase(unittest.TestCase):
    """Test case for box standings."""

    def setUp(self) -> None:
        self.members = ["A", "B", "C", "D"]
        self.matches = [
            _match("m1", "A", "D", 11, 5),
            _match("m2", "B", "C", 11, 9),
            _match("m3", "A", "C", 11, 7),
            _match("m4", "D", "B", 11, 8),
        ]

    def test_aggregate_match_data(self) -> None:
        """Records accumulate wins, losses and points."""
        raw = aggregate_match_data(self.members, self.matches)
        self.assertEqual(raw["A"].wins, 2)
        self.assertEqual(raw["A"].point_diff, 6 + 4)
        self.assertEqual(raw["B"].points_for, 19)
        self.assertEqual(raw["B"].points_against, 20)
        self.assertEqual(raw["C"].losses, 2)
        self.assertEqual(raw["D"].head_to_head, {"A": -1, "B": 1})

    def test_two_round_box_ranking(self) -> None:
        """A leads on wins, then point differential separates B and D."""
        standings = compute_standings(self.members, self.matches)
        self.assertEqual([s.participant_id for s in standings], ["A", "B", "D", "C"])
        self.assertEqual([s.rank for s in standings], [1, 2, 3, 4])

    def test_idempotent(self) -> None:
        """The same matches always give the same ordered output."""
        first = [s.to_dict() for s in compute_standings(self.members, self.matches)]
        second = [s.to_dict() for s in compute_standings(self.members, list(reversed(self.matches)))]
        self.assertEqual(first, second)

    def test_head_to_head_breaks_ties(self) -> None:
        """Equal records are ordered by results between the tied participants."""
        a = Standing(participant_id="a", wins=1, points_for=10, points_against=10,
                     head_to_head={"b": -1})
        b = Standing(participant_id="b", wins=1, points_for=10, points_against=10,
                     head_to_head={"a": 1})
        self.assertEqual([s.participant_id for s in sort_standings([a, b])], ["b", "a"])

    def test_id_is_last_tie_breaker(self) -> None:
        """Completely equal records fall back to participant id."""
        a = Standing(participant_id="a")
        b = Standing(participant_id="b")
        self.assertEqual([s.participant_id for s in sort_standings([b, a])], ["a", "b"])

    def test_only_counted_statuses(self) -> None:
        """Scheduled and cancelled matches are ignored; walkovers count as wins."""
        matches = [
            _match("m1", "A", "B", 11, 2, status=MATCH_CANCELLED),
            _match("m2", "A", "C", status=MATCH_SCHEDULED),
            _match("m3", "B", "C", status=MATCH_WALKOVER, winner="C"),
            _match("m4", "A", "Z", 11, 0),
        ]
        raw = aggregate_match_data(["A", "B", "C"], matches)
        self.assertEqual(raw["A"].played, 0)
        self.assertEqual(raw["C"].wins, 1)
        self.assertEqual(raw["C"].points_for, 0)
        self.assertEqual(raw["B"].losses, 1)

    def test_participant_details(self) -> None:
        """Display names and withdrawal flags are copied onto standings."""
        participants = {
            "A": Participant(id="A", display_name="Ann"),
            "B": Participant(id="B", display_name="Bob", withdrawn=True),
        }
        standings = compute_standings(["A", "B"], [], participants)
        by_id = {s.participant_id: s for s in standings}
        self.assertEqual(by_id["A"].display_name, "Ann")
        self.assertTrue(by_id["B"].withdrawn)

    def test_rank_across_boxes(self) -> None:
        """Records from different boxes are compared without head-to-head."""
        x = Standing(participant_id="x", wins=2, points_for=20, head_to_head={"y": 5})
        y = Standing(participant_id="y", wins=2, points_for=30)
        self.assertEqual([s.participant_id for s in rank_across_boxes([x, y])], ["y", "x"])


if __name__ == "__main__":
    unittest.main()
