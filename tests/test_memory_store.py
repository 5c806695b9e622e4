"""Tests for the in-process competition store."""

from __future__ import annotations

import gc
import unittest

from rallybox.errors import InternalError, NotFoundError
from rallybox.models import Box, Competition, CompetitionSettings, Participant
from rallybox.store import MemoryStore


class MemoryStoreTestCase(unittest.TestCase):
    """Test case for MemoryStore."""

    def setUp(self) -> None:
        self.store = MemoryStore(timeout=1)
        self.competition = Competition(
            id="c1", name="Cup", mode="tournament", settings=CompetitionSettings()
        )
        self.store.create_competition(
            self.competition,
            [Participant(id="a", display_name="Ann"), Participant(id="b", display_name="Bob")],
        )

    def test_load(self) -> None:
        """Loading returns the stored competition and participants."""
        state = self.store.load("c1")
        self.assertEqual(state.competition.name, "Cup")
        self.assertEqual(sorted(state.participants), ["a", "b"])

    def test_load_returns_copies(self) -> None:
        """Mutating a loaded state does not touch the store."""
        state = self.store.load("c1")
        state.participants["a"].display_name = "Changed"
        self.assertEqual(self.store.load("c1").participants["a"].display_name, "Ann")

    def test_duplicate_create(self) -> None:
        """A competition id can only be created once."""
        with self.assertRaises(InternalError):
            self.store.create_competition(self.competition)

    def test_missing(self) -> None:
        """Unknown competitions raise NotFoundError."""
        with self.assertRaises(NotFoundError):
            self.store.load("nope")
        with self.assertRaises(NotFoundError):
            self.store.run_transaction("nope", lambda tx: None)

    def test_commit_bumps_revision(self) -> None:
        """Committed writes are visible and bump the revision."""

        def add_box(tx):
            tx.save(Box(id="box-1", level=1, member_ids=["a", "b"]))
            self.assertEqual(len(tx.load().boxes), 1)
            return "done"

        self.assertEqual(self.store.run_transaction("c1", add_box), "done")
        state = self.store.load("c1")
        self.assertEqual(state.boxes[0].member_ids, ["a", "b"])
        self.assertEqual(state.competition.revision, 1)
        self.assertIsNotNone(state.competition.updated_at)

    def test_read_only_transaction_keeps_revision(self) -> None:
        """A transaction that stages nothing writes nothing."""
        self.store.run_transaction("c1", lambda tx: tx.load())
        self.assertEqual(self.store.load("c1").competition.revision, 0)

    def test_failed_transaction_rolls_back(self) -> None:
        """If the work raises, none of its writes are kept."""

        def fail(tx):
            tx.save(Box(id="box-1", level=1, member_ids=["a"]))
            tx.delete_participant("b")
            tx.competition.name = "Renamed"
            tx.save_competition()
            raise ValueError("boom")

        with self.assertRaises(ValueError):
            self.store.run_transaction("c1", fail)
        state = self.store.load("c1")
        self.assertEqual(state.boxes, [])
        self.assertIn("b", state.participants)
        self.assertEqual(state.competition.name, "Cup")

    def test_delete_participant(self) -> None:
        """Deleted participants disappear on commit."""
        self.store.run_transaction("c1", lambda tx: tx.delete_participant("b"))
        self.assertEqual(sorted(self.store.load("c1").participants), ["a"])

    def test_lock_timeout(self) -> None:
        """A writer that cannot get the lock in time fails cleanly."""
        lock = self.store._lock_for("c1")
        lock.acquire()
        try:
            with self.assertRaises(InternalError):
                self.store.run_transaction("c1", lambda tx: None, timeout=0.05)
        finally:
            lock.release()
        self.assertIsNone(self.store.run_transaction("c1", lambda tx: None))

    def test_idle_locks_are_released(self) -> None:
        """Per-competition locks are not kept once no writer holds them."""
        for index in range(5):
            competition = Competition(
                id=f"c{index + 2}", name="Cup", mode="tournament",
                settings=CompetitionSettings(),
            )
            self.store.create_competition(competition)
            self.store.run_transaction(competition.id, lambda tx: None)
        gc.collect()
        self.assertEqual(len(self.store._locks), 0)

        lock = self.store._lock_for("c1")
        self.assertIs(self.store._lock_for("c1"), lock)


if __name__ == "__main__":
    unittest.main()
