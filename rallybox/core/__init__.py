"""Core package for shared types and constants."""

from .types import APIResponse, BracketRoundView, PromotionMove

__all__ = ["APIResponse", "BracketRoundView", "PromotionMove"]
