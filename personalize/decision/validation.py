"""Schema checks for model replies."""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

GENERATED_FIELDS = ("headline", "subheadline", "ctaLabel")


@dataclass
class ValidationResult:
    valid: bool
    error: Optional[str] = None


def validate_select_response(
    response: Any,
    variants: Mapping[str, Any],
) -> ValidationResult:
    """A selection must name an existing catalog key; unknown keys are never coerced."""
    if not isinstance(response, Mapping):
        return ValidationResult(False, "Response is not an object")

    selected = response.get("selectedVariant")
    if not selected or not isinstance(selected, str):
        return ValidationResult(False, 'Missing or invalid "selectedVariant" field')

    if selected not in variants:
        return ValidationResult(
            False, f'Selected variant "{selected}" does not exist in templates'
        )

    return ValidationResult(True)


def validate_generate_response(response: Any) -> ValidationResult:
    """Generated content needs a non-empty headline, subheadline and CTA label."""
    if not isinstance(response, Mapping):
        return ValidationResult(False, "Response is not an object")

    for name in GENERATED_FIELDS:
        value = response.get(name)
        if not value or not isinstance(value, str):
            return ValidationResult(False, f'Missing or invalid "{name}" field')

    return ValidationResult(True)


def coerce_confidence(value: Any) -> Optional[float]:
    """Numeric confidence or None; booleans and strings are ignored."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return None
