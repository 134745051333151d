"""Recency-weighted visit history."""

from .interface import HistoryStore
from .models import History, MinimalContext, Visit, VisitInput, WeightedVisit
from .store import DEFAULT_MAX_HISTORY, STORAGE_KEY, WeightedHistoryStore
from .weighting import (
    DEFAULT_DECAY_RATE,
    aggregate_preferences,
    build_weighted_view,
    calculate_weight,
    format_for_prompt,
)

__all__ = [
    "DEFAULT_DECAY_RATE",
    "DEFAULT_MAX_HISTORY",
    "History",
    "HistoryStore",
    "MinimalContext",
    "STORAGE_KEY",
    "Visit",
    "VisitInput",
    "WeightedHistoryStore",
    "WeightedVisit",
    "aggregate_preferences",
    "build_weighted_view",
    "calculate_weight",
    "format_for_prompt",
]
