"""Core data types for the rallybox application."""

from typing import Any, Dict, List, Optional, TypedDict  # noqa: UP035


class APIResponse(TypedDict):
    """Generic API response structure."""

    success: bool
    message: str
    data: Optional[Dict[str, Any]]  # noqa: UP006


class PromotionMove(TypedDict):
    """A single promotion or relegation between two adjacent boxes."""

    participant_id: str
    direction: str
    from_level: int
    to_level: int


class BracketRoundView(TypedDict):
    """One round of an elimination bracket as returned to callers."""

    bracket_round: int
    slots: List[Dict[str, Any]]  # noqa: UP006
    matches: List[Dict[str, Any]]  # noqa: UP006
