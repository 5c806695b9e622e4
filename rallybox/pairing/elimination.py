"""Single-elimination bracket arithmetic."""

from __future__ import annotations

import math


def bracket_size(num_participants: int) -> int:
    """Smallest power of two holding ``num_participants``."""
    if num_participants <= 1:
        return 1
    return 2 ** math.ceil(math.log2(num_participants))


def bye_count(num_participants: int) -> int:
    """Byes needed so the first round fills the bracket."""
    return bracket_size(num_participants) - num_participants


def bracket_rounds(num_participants: int) -> int:
    """Rounds needed to reduce the field to a champion."""
    return int(math.log2(bracket_size(num_participants)))


def seed_positions(size: int) -> list[int]:
    """Seed numbers in bracket order, e.g. ``[1, 8, 4, 5, 2, 7, 3, 6]`` for 8.

    Adjacent positions meet in the first round, so seed 1 plays the last seed,
    seed 2 the second-last, and the top two seeds can only meet in the final.
    """
    order = [1]
    while len(order) < size:
        total = len(order) * 2 + 1
        order = [seed for s in order for seed in (s, total - s)]
    return order

