"""Visit history store backed by a key-value store."""

import json
import uuid
from typing import Callable, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from ..context.models import now_ms
from ..exceptions import StorageError
from ..storage.stores import KeyValueStore, MemoryStore
from .models import History, MinimalContext, Visit, VisitInput, WeightedVisit
from .weighting import (
    DEFAULT_DECAY_RATE,
    DEFAULT_MAX_WEIGHTED,
    aggregate_preferences,
    build_weighted_view,
)

logger = structlog.get_logger()

STORAGE_KEY = "lua_personalize_history"
DEFAULT_MAX_HISTORY = 10


class WeightedHistoryStore:
    """Persists the visit log and derived preferences for one visitor.

    Storage failures never escape: the first ``StorageError`` switches the
    store to an in-memory copy for the rest of its lifetime. Malformed
    persisted data is replaced with a fresh history, not repaired.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        decay_rate: float = DEFAULT_DECAY_RATE,
        max_weighted: int = DEFAULT_MAX_WEIGHTED,
        clock: Optional[Callable[[], int]] = None,
        storage_key: str = STORAGE_KEY,
    ) -> None:
        self._store = store if store is not None else MemoryStore()
        self.decay_rate = decay_rate
        self.max_weighted = max_weighted
        self._clock = clock or now_ms
        self._key = storage_key
        self._ephemeral: Optional[History] = None
        self._degraded = False

    @property
    def degraded(self) -> bool:
        """True once storage has failed and the store runs in memory."""
        return self._degraded

    def _degrade(self, operation: str, exc: StorageError) -> None:
        if not self._degraded:
            logger.warning(
                "History storage unavailable, using in-memory history",
                operation=operation,
                error=str(exc),
            )
        self._degraded = True

    def _read(self) -> Optional[History]:
        if self._degraded:
            return self._ephemeral

        try:
            raw = self._store.get(self._key)
        except StorageError as exc:
            self._degrade("read", exc)
            return self._ephemeral

        if not raw:
            return None

        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding unparseable history")
            return None

        if not isinstance(data, dict) or not isinstance(data.get("visits"), list):
            logger.warning("Discarding malformed history")
            return None

        try:
            return History.model_validate(data)
        except PydanticValidationError as exc:
            logger.warning("Discarding invalid history", error=str(exc))
            return None

    def _write(self, history: History) -> None:
        self._ephemeral = history
        if self._degraded:
            return

        try:
            self._store.set(self._key, history.model_dump_json(by_alias=True))
        except StorageError as exc:
            self._degrade("write", exc)

    def load(self) -> History:
        """Return the persisted history, creating a new identity if absent."""
        history = self._read()
        if history is None:
            history = History(
                user_id=str(uuid.uuid4()),
                created_at=self._clock(),
            )
            self._write(history)
        return history

    def record_visit(
        self,
        visit: VisitInput,
        max_size: int = DEFAULT_MAX_HISTORY,
        decay_rate: Optional[float] = None,
    ) -> History:
        """Append a visit, evict the oldest beyond max_size, recompute preferences.

        A max_size below 1 means the default bound.
        """
        if max_size < 1:
            max_size = DEFAULT_MAX_HISTORY
        history = self.load()

        entry = Visit(
            timestamp=self._clock(),
            context=MinimalContext.from_context(visit.context),
            intent=visit.intent or "unknown",
            selected_variant=visit.selected_variant or None,
            source=visit.source or "unknown",
            ai_decision=bool(visit.ai_decision),
        )

        visits = [*history.visits, entry]
        if len(visits) > max_size:
            visits = visits[-max_size:]

        updated = history.model_copy(update={"visits": visits})
        weighted = self.weighted_view(updated, decay_rate=decay_rate)
        updated = updated.model_copy(
            update={"preferences": aggregate_preferences(weighted)}
        )

        self._write(updated)
        logger.debug(
            "Recorded visit",
            intent=entry.intent,
            source=entry.source,
            visits=len(visits),
        )
        return updated

    def weighted_view(
        self,
        history: Optional[History] = None,
        decay_rate: Optional[float] = None,
        max_results: Optional[int] = None,
    ) -> list[WeightedVisit]:
        """Weighted visits for history (or the stored one), highest first."""
        if history is None:
            history = self.load()
        return build_weighted_view(
            history,
            decay_rate=self.decay_rate if decay_rate is None else decay_rate,
            max_results=self.max_weighted if max_results is None else max_results,
            now_ms=self._clock(),
        )

    def user_id(self) -> str:
        return self.load().user_id

    def is_returning_user(self) -> bool:
        history = self._read()
        return history is not None and len(history.visits) > 0

    def last_visit(self) -> Optional[Visit]:
        history = self._read()
        if history is None or not history.visits:
            return None
        return history.visits[-1]

    def clear(self) -> bool:
        """Delete persisted history. The next load() creates a new identity."""
        self._ephemeral = None
        if self._degraded:
            return False
        try:
            self._store.remove(self._key)
            return True
        except StorageError as exc:
            self._degrade("clear", exc)
            return False
