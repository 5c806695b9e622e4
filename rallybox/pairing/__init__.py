"""Pairing generators for round-robin boxes and elimination brackets."""

from .elimination import (
    bracket_rounds,
    bracket_size,
    bye_count,
    seed_positions,
)
from .round_robin import (
    circle_round,
    count_meetings,
    cycle_length,
    full_cycle,
    generate_box_round,
    least_met_round,
    partial_cycle_round,
)

__all__ = [
    "bracket_rounds",
    "bracket_size",
    "bye_count",
    "circle_round",
    "count_meetings",
    "cycle_length",
    "full_cycle",
    "generate_box_round",
    "least_met_round",
    "partial_cycle_round",
    "seed_positions",
]
