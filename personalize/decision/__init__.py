"""Decision layer: models, cache, validation, engines and the policy."""

from .cache import CACHE_KEY_PREFIX, DecisionCache, build_cache_key
from .engine import DeterministicEngine, choose_weighted_random, get_template, match_rule
from .models import (
    Decision,
    DecisionRequest,
    DecisionSource,
    ModelResponse,
    Rule,
    Template,
)
from .policy import DecisionPolicy
from .validation import (
    ValidationResult,
    validate_generate_response,
    validate_select_response,
)

__all__ = [
    "CACHE_KEY_PREFIX",
    "Decision",
    "DecisionCache",
    "DecisionPolicy",
    "DecisionRequest",
    "DecisionSource",
    "DeterministicEngine",
    "ModelResponse",
    "Rule",
    "Template",
    "ValidationResult",
    "build_cache_key",
    "choose_weighted_random",
    "get_template",
    "match_rule",
    "validate_generate_response",
    "validate_select_response",
]
