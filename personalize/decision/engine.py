"""Deterministic decision engine: custom rules, UTM/referrer intent, random A/B."""

import random
from typing import Mapping, Optional, Sequence

import structlog

from ..context.models import VisitContext
from .models import Decision, DecisionSource, Rule, Template

logger = structlog.get_logger()


def get_template(
    intent: str,
    templates: Mapping[str, Template],
) -> Optional[Template]:
    """Template for intent, else ``default``, else the first declared entry."""
    if intent in templates:
        return templates[intent]
    if "default" in templates:
        return templates["default"]
    first = next(iter(templates.items()), None)
    if first is None:
        return None
    key, template = first
    logger.warning(
        "Intent not in templates, using first available",
        intent=intent,
        template=key,
    )
    return template


def choose_weighted_random(
    names: Sequence[str],
    weights: Sequence[float],
    rng: Optional[random.Random] = None,
) -> str:
    """Pick a name with probability proportional to its weight."""
    if len(names) != len(weights):
        return names[0]
    rng = rng or random.Random()
    point = rng.random() * sum(weights)
    limit = 0.0
    for name, weight in zip(names, weights):
        limit += weight
        if point <= limit:
            return name
    return names[-1]


def match_rule(
    context: VisitContext,
    rules: Optional[Mapping[str, Rule]],
) -> Optional[tuple[str, Rule]]:
    """First rule, in declaration order, whose predicate accepts context."""
    for name, rule in (rules or {}).items():
        if rule.match(context):
            return name, rule
    return None


class DeterministicEngine:
    """Rule-based fallback and the sole path when AI is disabled.

    Priority: first matching custom rule (declaration order), then random
    A/B among catalog keys for direct traffic with no campaign, otherwise
    the context's pre-computed primary intent.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()

    def decide(
        self,
        context: VisitContext,
        templates: Mapping[str, Template],
        rules: Optional[Mapping[str, Rule]] = None,
        random_fallback: bool = True,
    ) -> Decision:
        if not templates:
            logger.warning("No templates provided")
            return Decision(
                template=None,
                intent="default",
                source=DecisionSource.ERROR,
                context=context,
                error="No templates provided",
            )

        intent = context.primary_intent
        if context.has_utm:
            source = DecisionSource.UTM
        elif context.referrer.category != "direct":
            source = DecisionSource.REFERRER
        else:
            source = DecisionSource.DEFAULT

        matched = match_rule(context, rules)
        if matched is not None:
            name, rule = matched
            intent = rule.intent or name
            source = DecisionSource.CUSTOM_RULE

        if (
            intent == "default"
            and source == DecisionSource.DEFAULT
            and random_fallback
        ):
            names = list(templates)
            intent = choose_weighted_random(names, [1.0] * len(names), self._rng)
            source = DecisionSource.RANDOM_AB

        return Decision(
            template=get_template(intent, templates),
            intent=intent,
            source=source,
            context=context,
        )
