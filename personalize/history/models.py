"""Visit history data models."""

from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..context.models import VisitContext

_CAMEL = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class StoredReferrer(BaseModel):
    """Referrer fields kept in history; the full URL is never persisted."""

    model_config = _CAMEL

    source: Optional[str] = None
    category: Optional[str] = None


class MinimalContext(BaseModel):
    """Reduced copy of a VisitContext that is safe and small to persist."""

    model_config = _CAMEL

    utm: Optional[dict[str, str]] = None
    referrer: Optional[StoredReferrer] = None
    device: Optional[str] = None  # mobile, tablet, desktop

    @classmethod
    def from_context(cls, context: Optional[VisitContext]) -> "MinimalContext":
        """Minimize a full context: no user agent, no URLs."""
        if context is None:
            return cls()
        return cls(
            utm=dict(context.utm) if context.utm else None,
            referrer=StoredReferrer(
                source=context.referrer.source,
                category=context.referrer.category,
            ),
            device=context.device.device_class,
        )


class Visit(BaseModel):
    """A recorded page view. Appended once, never mutated."""

    model_config = _CAMEL

    timestamp: int
    context: MinimalContext = Field(default_factory=MinimalContext)
    intent: str = "unknown"
    selected_variant: Optional[str] = None
    source: str = "unknown"
    ai_decision: bool = False


class History(BaseModel):
    """Persisted visitor identity, bounded visit log and preference map."""

    model_config = _CAMEL

    user_id: str
    created_at: int
    visits: list[Visit] = Field(default_factory=list)
    preferences: dict[str, float] = Field(default_factory=dict)


@dataclass
class VisitInput:
    """What the decision layer hands the store when recording a visit."""

    context: Optional[VisitContext] = None
    intent: Optional[str] = None
    selected_variant: Optional[str] = None
    source: Optional[str] = None
    ai_decision: bool = False


@dataclass
class WeightedVisit:
    """A visit paired with its recency weight. Computed on read, never stored."""

    timestamp: int
    weight: float
    intent: str = "unknown"
    selected_variant: Optional[str] = None
    source: str = "unknown"
    ai_decision: bool = False
    context: dict[str, Any] = field(default_factory=dict)

    @property
    def utm_source(self) -> Optional[str]:
        utm = self.context.get("utm") or {}
        return utm.get("utm_source")
