"""Context provider interface and implementations."""

from typing import Optional, Protocol

from .models import VisitContext
from .utm import build_context


class ContextProvider(Protocol):
    """Anything able to produce the current visit's context."""

    def get_context(self) -> VisitContext: ...


def default_context() -> VisitContext:
    """Context for a direct desktop visit with no campaign data."""
    return VisitContext()


class RequestContextProvider:
    """Builds the context from the page URL, referrer and user agent."""

    def __init__(
        self,
        url: Optional[str] = None,
        referrer: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        self.url = url
        self.referrer = referrer
        self.user_agent = user_agent

    def get_context(self) -> VisitContext:
        return build_context(
            url=self.url,
            referrer=self.referrer,
            user_agent=self.user_agent,
        )
