"""Exponential recency decay over visit history.

weight = decay_rate ** age_in_days, so with the default rate of 0.9 a
visit from 1 day ago counts 0.9, 7 days ago ~0.478, 30 days ago ~0.042.
"""

from datetime import datetime, timezone
from typing import Optional

from ..context.models import now_ms as _now_ms
from .models import History, WeightedVisit

DEFAULT_DECAY_RATE = 0.9
DEFAULT_MAX_WEIGHTED = 5
MS_PER_DAY = 1000 * 60 * 60 * 24

# Intents that say nothing about variant affinity.
SENTINEL_INTENTS = frozenset({"unknown", "default"})


def calculate_weight(
    timestamp: int,
    decay_rate: float = DEFAULT_DECAY_RATE,
    now_ms: Optional[int] = None,
) -> float:
    """Weight in (0, 1] for a visit at timestamp (epoch ms).

    Age is measured against the current clock; future timestamps count
    as age zero.
    """
    now = _now_ms() if now_ms is None else now_ms
    days_ago = max(0.0, (now - timestamp) / MS_PER_DAY)
    return decay_rate**days_ago


def build_weighted_view(
    history: Optional[History],
    decay_rate: Optional[float] = None,
    max_results: Optional[int] = None,
    now_ms: Optional[int] = None,
) -> list[WeightedVisit]:
    """Weight every visit and return the top ``max_results`` by weight."""
    if history is None or not history.visits:
        return []

    rate = DEFAULT_DECAY_RATE if decay_rate is None else decay_rate
    limit = DEFAULT_MAX_WEIGHTED if max_results is None else max_results
    now = _now_ms() if now_ms is None else now_ms

    weighted = [
        WeightedVisit(
            timestamp=visit.timestamp,
            weight=round(calculate_weight(visit.timestamp, rate, now), 3),
            intent=visit.intent or "unknown",
            selected_variant=visit.selected_variant,
            source=visit.source or "unknown",
            ai_decision=visit.ai_decision,
            context=visit.context.model_dump(exclude_none=True),
        )
        for visit in history.visits
    ]

    # Rounding can tie visits of different age; newer wins.
    weighted.sort(key=lambda v: (v.weight, v.timestamp), reverse=True)
    return weighted[:limit]


def aggregate_preferences(weighted: list[WeightedVisit]) -> dict[str, float]:
    """Sum weights per intent, skipping sentinel intents."""
    scores: dict[str, float] = {}
    for visit in weighted:
        intent = visit.intent
        if not intent or intent in SENTINEL_INTENTS:
            continue
        scores[intent] = scores.get(intent, 0.0) + visit.weight
    return scores


def format_for_prompt(weighted: list[WeightedVisit]) -> str:
    """Render weighted visits as prompt text."""
    if not weighted:
        return "No previous visit history available. This is a new visitor."

    lines = [f"Previous visits ({len(weighted)} recorded, weighted by recency):"]
    for visit in weighted:
        day = datetime.fromtimestamp(visit.timestamp / 1000, tz=timezone.utc)
        line = f"  - [{day.strftime('%Y-%m-%d')}] Intent: {visit.intent}"
        if visit.selected_variant:
            line += f", Variant: {visit.selected_variant}"
        line += f", Source: {visit.source}, Weight: {visit.weight}"
        if visit.utm_source:
            line += f", UTM: {visit.utm_source}"
        lines.append(line)

    return "\n".join(lines)
