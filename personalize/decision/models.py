"""Decision data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

from ..context.models import VisitContext


class DecisionSource(str, Enum):
    """Which layer produced a decision."""

    AI = "ai"
    AI_CACHED = "ai-cached"
    UTM = "utm"
    REFERRER = "referrer"
    CUSTOM_RULE = "custom-rule"
    RANDOM_AB = "random-ab"
    DEFAULT = "default"
    ERROR = "error"


AI_SOURCES = frozenset({DecisionSource.AI, DecisionSource.AI_CACHED})


class Template(BaseModel):
    """One content variant from the caller's catalog."""

    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
        extra="allow",
    )

    headline: Optional[str] = None
    subheadline: Optional[str] = None
    cta_label: Optional[str] = None
    cta_link: Optional[str] = None
    image: Optional[str] = None


class ModelResponse(BaseModel):
    """Metadata about the model call behind an AI decision."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    confidence: Optional[float] = None
    reasoning: Optional[str] = None
    latency: int = 0  # ms
    model: str
    mode: str
    cached: bool = False


class Decision(BaseModel):
    """Final personalization outcome. Never mutated after construction."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        protected_namespaces=(),
    )

    template: Optional[Template] = None
    intent: str
    source: DecisionSource
    context: VisitContext
    model_response: Optional[ModelResponse] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def _model_response_matches_source(self) -> "Decision":
        has_response = self.model_response is not None
        if (self.source in AI_SOURCES) != has_response:
            raise ValueError(
                "model_response is required for AI decisions and forbidden otherwise"
            )
        return self

    @property
    def is_ai(self) -> bool:
        return self.source in AI_SOURCES


@dataclass
class Rule:
    """Caller-defined override: when ``match(context)`` is true, use ``intent``.

    Without an explicit intent the rule's name is used as the intent.
    """

    match: Callable[[VisitContext], bool]
    intent: Optional[str] = None


@dataclass
class DecisionRequest:
    """Everything a caller passes to personalize one page view."""

    templates: Mapping[str, Any] = field(default_factory=dict)
    ai_config: Optional[Mapping[str, Any]] = None
    enable_ai: bool = False
    context: Optional[VisitContext] = None
    rules: Mapping[str, Any] = field(default_factory=dict)
    random_fallback: bool = True

    def __post_init__(self) -> None:
        self.templates = {
            key: value if isinstance(value, Template) else Template.model_validate(value)
            for key, value in (self.templates or {}).items()
        }
        self.rules = {
            name: rule if isinstance(rule, Rule) else Rule(**rule)
            for name, rule in (self.rules or {}).items()
        }
