"""Prompt templates for the select and generate decision modes.

Both modes require the model to answer with a bare JSON object; the
gateway's parser and the policy's validators depend on that contract.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from ..context.models import VisitContext

SYSTEM_PROMPT_SELECT = """\
You are an expert content personalization engine embedded in a website A/B testing library.
Your sole task is to analyze user context and select the single best content variant from a provided list.

Decision principles:
1. RELEVANCE: Match the user's intent, traffic source, and campaign to the most contextually appropriate variant.
2. RECENCY BIAS: Recent user behavior (higher weight) matters more than older visits, but patterns across visits reveal preference.
3. DEVICE AWARENESS: Consider the user's device type when selecting content (e.g., shorter copy for mobile).
4. CONVERSION FOCUS: Optimize for click-through and engagement. Prefer variants that speak directly to the user's likely motivation.
5. RETURNING USERS: If history shows a returning visitor, favor continuity (similar intent) unless the new context strongly differs.

CRITICAL RULES:
- You MUST respond with ONLY valid JSON. No markdown, no explanation outside JSON.
- You MUST select from the provided variant keys only. Never invent a variant key.
- The "selectedVariant" field MUST exactly match one of the provided variant keys.
- Include a confidence score (0.0 to 1.0) reflecting how well the variant matches the context.
- Keep "reasoning" under 50 words."""

SYSTEM_PROMPT_GENERATE = """\
You are an expert conversion copywriter embedded in a website personalization engine.
Your sole task is to generate personalized website content (headline, subheadline, CTA) based on user context.

Writing principles:
1. RELEVANCE: Tailor the message to the user's traffic source, campaign intent, and browsing history.
2. BREVITY: Headlines should be 3-8 words. Subheadlines should be 8-15 words. CTAs should be 2-4 words.
3. URGENCY: Create a sense of value or urgency appropriate to the user's intent without being pushy.
4. DEVICE AWARENESS: For mobile users, prefer shorter, punchier copy.
5. TONE MATCHING: Match the tone to the traffic source (e.g., casual for social, professional for LinkedIn).
6. CONTINUITY: For returning users, acknowledge familiarity without being overly personal.

CRITICAL RULES:
- You MUST respond with ONLY valid JSON. No markdown, no explanation outside JSON.
- Generate content for ALL required fields: headline, subheadline, ctaLabel.
- Content must be brand-safe, professional, and free of offensive language.
- Keep "reasoning" under 50 words.
- If brand context is provided, align your tone and vocabulary with it."""

# Appended to caller-supplied system prompts; the reply format is not optional.
JSON_ONLY_RULE = "You MUST respond with ONLY valid JSON. No markdown, no explanation outside JSON."

SELECT_RESPONSE_FORMAT = """\
=== RESPOND WITH JSON ONLY ===
{
  "selectedVariant": "<exact_variant_key>",
  "confidence": <0.0_to_1.0>,
  "reasoning": "<brief explanation under 50 words>"
}"""

GENERATE_RESPONSE_FORMAT = """\
=== GENERATE PERSONALIZED CONTENT - RESPOND WITH JSON ONLY ===
{
  "headline": "<3-8 words, attention-grabbing>",
  "subheadline": "<8-15 words, supporting message>",
  "ctaLabel": "<2-4 words, action-oriented>",
  "confidence": <0.0_to_1.0>,
  "reasoning": "<brief explanation under 50 words>"
}"""

NO_HISTORY = "No history available (new visitor)."

_KNOWN_BRAND_FIELDS = {
    "brandVoice": "Brand Voice",
    "targetAudience": "Target Audience",
    "productType": "Product/Service",
    "industry": "Industry",
}


@dataclass
class PromptParams:
    """Inputs for prompt assembly."""

    context: VisitContext
    weighted_history: str = ""
    preferences: dict[str, float] = field(default_factory=dict)
    variants: Mapping[str, Any] = field(default_factory=dict)
    brand_context: Optional[Mapping[str, Any]] = None
    reference_template: Optional[Any] = None


def _field(obj: Any, name: str) -> Optional[str]:
    """Read a content field from a template model or a plain mapping."""
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(name) or obj.get(_camel(name))
    return getattr(obj, name, None)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _context_lines(params: PromptParams) -> list[str]:
    ctx = params.context
    utm = ctx.utm
    lines = [
        "=== CURRENT SESSION CONTEXT ===",
        f"UTM Source: {utm.get('utm_source') or 'none'}",
        f"UTM Medium: {utm.get('utm_medium') or 'none'}",
        f"UTM Campaign: {utm.get('utm_campaign') or 'none'}",
        f"UTM Content: {utm.get('utm_content') or 'none'}",
        f"UTM Term: {utm.get('utm_term') or 'none'}",
        f"Referrer: {ctx.referrer.source or 'direct'} ({ctx.referrer.category or 'direct'})",
        f"Device: {ctx.device.device_class}",
        f"Has UTM Params: {'yes' if ctx.has_utm else 'no'}",
        f"Inferred Intent: {ctx.primary_intent or 'unknown'}",
        "",
        "=== USER HISTORY ===",
        params.weighted_history or NO_HISTORY,
        "",
    ]

    if params.preferences:
        lines.append("=== PREFERENCE SCORES (higher = stronger preference) ===")
        for intent, score in params.preferences.items():
            lines.append(f"  {intent}: {score:.3f}")
        lines.append("")

    return lines


def build_select_prompt(params: PromptParams) -> str:
    """User prompt asking the model to pick one catalog key."""
    lines = _context_lines(params)

    lines.append("=== AVAILABLE VARIANTS ===")
    lines.append("Select EXACTLY ONE of the following variant keys:")
    lines.append("")

    for key, variant in params.variants.items():
        lines.append(f'Key: "{key}"')
        headline = _field(variant, "headline")
        subheadline = _field(variant, "subheadline")
        cta = _field(variant, "cta_label")
        if headline:
            lines.append(f"  Headline: {headline}")
        if subheadline:
            lines.append(f"  Subheadline: {subheadline}")
        if cta:
            lines.append(f"  CTA: {cta}")
        lines.append("")

    lines.append(SELECT_RESPONSE_FORMAT)
    return "\n".join(lines)


def build_generate_prompt(params: PromptParams) -> str:
    """User prompt asking the model to write new headline, subheadline and CTA."""
    lines = _context_lines(params)

    brand = params.brand_context
    if brand:
        lines.append("=== BRAND CONTEXT ===")
        for key, label in _KNOWN_BRAND_FIELDS.items():
            if brand.get(key):
                lines.append(f"{label}: {brand[key]}")
        # Unknown fields are echoed verbatim
        for key, value in brand.items():
            if key not in _KNOWN_BRAND_FIELDS:
                lines.append(f"{key}: {value}")
        lines.append("")

    reference = params.reference_template
    if reference is not None:
        lines.append("=== REFERENCE TEMPLATE (for structure/tone guidance) ===")
        headline = _field(reference, "headline")
        subheadline = _field(reference, "subheadline")
        cta = _field(reference, "cta_label")
        if headline:
            lines.append(f"  Example Headline: {headline}")
        if subheadline:
            lines.append(f"  Example Subheadline: {subheadline}")
        if cta:
            lines.append(f"  Example CTA: {cta}")
        lines.append("")

    lines.append(GENERATE_RESPONSE_FORMAT)
    return "\n".join(lines)


def build_messages(
    mode: str,
    params: PromptParams,
    custom_prompts: Optional[Mapping[str, str]] = None,
) -> list[dict[str, str]]:
    """Assemble the system/user message pair for a chat completion.

    A custom ``system`` prompt replaces the default instructions wholesale;
    the JSON-only rule is appended to it.
    """
    custom_system = (custom_prompts or {}).get("system")

    if mode == "generate":
        system_prompt = SYSTEM_PROMPT_GENERATE
        user_prompt = build_generate_prompt(params)
    else:
        system_prompt = SYSTEM_PROMPT_SELECT
        user_prompt = build_select_prompt(params)

    if custom_system:
        system_prompt = f"{custom_system}\n\n{JSON_ONLY_RULE}"

    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]
