"""Tests for bracket seeding and progression."""

from __future__ import annotations

import unittest

from rallybox.core.constants import MATCH_SCHEDULED, MATCH_WALKOVER, PLAYOFF_SCOPE_BOX
from rallybox.bracket import pair_bracket_round, playoff_seed_list, seed_bracket
from rallybox.errors import DuplicateParticipant, EmptySeedList
from rallybox.models import BracketSlot, Standing
from rallybox.pairing.elimination import (
    bracket_rounds,
    bracket_size,
    bye_count,
    seed_positions,
)


def _advance(slots, matches):
    """Let participant 1 win every real match."""
    by_id = {slot.id: slot for slot in slots}
    for match in matches:
        if match.status == MATCH_SCHEDULED:
            by_id[match.slot_id].occupant_id = match.participant1_id


class EliminationArithmeticTestCase(unittest.TestCase):
    """Test case for bracket sizes and seed order."""

    def test_sizes(self) -> None:
        """Brackets round up to a power of two."""
        self.assertEqual(bracket_size(5), 8)
        self.assertEqual(bracket_size(8), 8)
        self.assertEqual(bye_count(5), 3)
        self.assertEqual(bye_count(8), 0)
        self.assertEqual(bracket_rounds(5), 3)
        self.assertEqual(bracket_rounds(2), 1)

    def test_seed_positions(self) -> None:
        """Seed 1 meets the last seed and the top two are on opposite halves."""
        self.assertEqual(seed_positions(4), [1, 4, 2, 3])
        self.assertEqual(seed_positions(8), [1, 8, 4, 5, 2, 7, 3, 6])


class SeedBracketTestCase(unittest.TestCase):
    """Test case for seed_bracket."""

    def test_five_participants(self) -> None:
        """Five seeds get three byes and a three-round tree."""
        ids = ["p1", "p2", "p3", "p4", "p5"]
        bracket = seed_bracket(ids, 1)

        first_round = [s for s in bracket.slots if s.bracket_round == 1]
        self.assertEqual(len(first_round), 8)
        self.assertEqual(sum(1 for s in first_round if s.is_bye), 3)
        self.assertEqual(bracket.rounds, 3)
        self.assertEqual(bracket.root.id, "R4-P0")
        self.assertEqual(len(bracket.slots), 15)

        real = [m for m in bracket.matches if m.status == MATCH_SCHEDULED]
        walkovers = [m for m in bracket.matches if m.status == MATCH_WALKOVER]
        self.assertEqual(len(real), 1)
        self.assertEqual({real[0].participant1_id, real[0].participant2_id}, {"p4", "p5"})
        # Top three seeds go straight through.
        self.assertEqual(sorted(m.winner_id for m in walkovers), ["p1", "p2", "p3"])
        by_id = {s.id: s for s in bracket.slots}
        self.assertEqual(by_id["R2-P0"].occupant_id, "p1")
        self.assertEqual(by_id["R2-P0"].seed, 1)
        self.assertIsNone(by_id["R2-P1"].occupant_id)

    def test_eight_participants(self) -> None:
        """Eight seeds have no byes and seven matches over three rounds."""
        ids = [f"p{i}" for i in range(1, 9)]
        bracket = seed_bracket(ids, 1)
        slots = bracket.slots

        self.assertFalse(any(s.is_bye for s in slots if s.bracket_round == 1))
        matches = list(bracket.matches)
        self.assertEqual(len(matches), 4)

        _advance(slots, matches)
        second = pair_bracket_round(slots, 2, 2)
        self.assertEqual(len(second), 2)
        _advance(slots, second)
        final = pair_bracket_round(slots, 3, 3)
        self.assertEqual(len(final), 1)
        self.assertEqual({final[0].participant1_id, final[0].participant2_id}, {"p1", "p2"})

        matches += second + final
        self.assertEqual(len(matches), 7)
        self.assertTrue(all(m.status == MATCH_SCHEDULED for m in matches))

    def test_source_slots(self) -> None:
        """Later slots name the two slots that feed them."""
        bracket = seed_bracket(["a", "b", "c", "d"], 1)
        by_id = {s.id: s for s in bracket.slots}
        self.assertEqual(by_id["R2-P1"].source_slot_ids, ["R1-P2", "R1-P3"])
        self.assertEqual(by_id["R3-P0"].source_slot_ids, ["R2-P0", "R2-P1"])

    def test_empty_seed_list(self) -> None:
        """No participants cannot be seeded."""
        with self.assertRaises(EmptySeedList):
            seed_bracket([], 1)

    def test_duplicate_seed(self) -> None:
        """A participant listed twice is rejected."""
        with self.assertRaises(DuplicateParticipant):
            seed_bracket(["a", "b", "a"], 1)

    def test_withdrawn_occupant_gets_walked_over(self) -> None:
        """A withdrawn occupant is treated as absent."""
        bracket = seed_bracket(["a", "b", "c", "d"], 1)
        _advance(bracket.slots, bracket.matches)
        final = pair_bracket_round(bracket.slots, 2, 2, withdrawn={"b"})

        self.assertEqual(len(final), 1)
        self.assertEqual(final[0].status, MATCH_WALKOVER)
        self.assertEqual(final[0].winner_id, "a")
        root = next(s for s in bracket.slots if s.id == BracketSlot.make_id(3, 0))
        self.assertEqual(root.occupant_id, "a")


class PlayoffSeedListTestCase(unittest.TestCase):
    """Test case for playoff qualification."""

    def setUp(self) -> None:
        self.box1 = [
            Standing(participant_id="a1", wins=3, rank=1),
            Standing(participant_id="a2", wins=2, rank=2),
            Standing(participant_id="a3", wins=1, rank=3),
        ]
        self.box2 = [
            Standing(participant_id="b1", wins=2, points_for=30, rank=1),
            Standing(participant_id="b2", wins=2, points_for=20, withdrawn=True, rank=2),
            Standing(participant_id="b3", wins=0, rank=3),
        ]

    def test_box_scope_interleaves_places(self) -> None:
        """Winners come first, higher boxes first; withdrawn never qualify."""
        seeds = playoff_seed_list([self.box1, self.box2], 2, PLAYOFF_SCOPE_BOX)
        self.assertEqual(seeds, ["a1", "b1", "a2", "b3"])

    def test_overall_scope_ranks_records(self) -> None:
        """Overall qualification ranks every record together."""
        seeds = playoff_seed_list([self.box1, self.box2], 3, "overall")
        self.assertEqual(seeds, ["a1", "b1", "a2"])


if __name__ == "__main__":
    unittest.main()
