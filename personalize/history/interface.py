"""History store protocol consumed by the decision policy."""

from typing import Optional, Protocol

from .models import History, VisitInput, WeightedVisit


class HistoryStore(Protocol):
    """Visit history capability.

    Implementations must never raise on storage failure; they degrade
    to an empty or in-memory history instead.
    """

    def load(self) -> History:
        """Return the visitor's history, creating it on first read."""
        ...

    def record_visit(
        self,
        visit: VisitInput,
        max_size: int = ...,
        decay_rate: Optional[float] = None,
    ) -> History:
        """Append a visit and return the updated history."""
        ...

    def weighted_view(
        self,
        history: Optional[History] = None,
        decay_rate: Optional[float] = None,
        max_results: Optional[int] = None,
    ) -> list[WeightedVisit]:
        """Return visits weighted by recency, highest weight first."""
        ...

    def clear(self) -> bool:
        """Delete all persisted history."""
        ...
