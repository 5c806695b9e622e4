"""Box league structure: box assignment and promotion between boxes."""

from .boxes import assign_boxes, next_season_order, plan_promotions, seed_order

__all__ = ["assign_boxes", "next_season_order", "plan_promotions", "seed_order"]
