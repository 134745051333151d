"""TTL cache of AI decisions keyed by a lossy traffic fingerprint."""

import json
from typing import Callable, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from ..context.models import VisitContext, now_ms
from ..exceptions import StorageError
from ..storage.stores import KeyValueStore, MemoryStore, keys_with_prefix
from .models import Decision, DecisionSource

logger = structlog.get_logger()

CACHE_KEY_PREFIX = "lua_ai_cache_"
DEFAULT_CACHE_DURATION_MS = 3_600_000

_DEVICE_CODES = {"mobile": "mob", "tablet": "tab", "desktop": "desk"}


def build_cache_key(context: VisitContext, mode: str) -> str:
    """Fingerprint of the traffic segment.

    Only mode, UTM source/medium/campaign, referrer source and device class
    take part; content, term and timestamp do not.
    """
    parts = [mode]
    utm = context.utm
    if utm.get("utm_source"):
        parts.append(f"s:{utm['utm_source']}")
    if utm.get("utm_medium"):
        parts.append(f"m:{utm['utm_medium']}")
    if utm.get("utm_campaign"):
        parts.append(f"c:{utm['utm_campaign']}")
    parts.append(f"r:{context.referrer.source or 'direct'}")
    parts.append(f"d:{_DEVICE_CODES[context.device.device_class]}")
    return CACHE_KEY_PREFIX + "_".join(parts)


class DecisionCache:
    """Stores successful AI decisions; storage failures read as misses."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self._store = store if store is not None else MemoryStore()
        self._clock = clock or now_ms

    def read(
        self,
        key: str,
        ttl_ms: int = DEFAULT_CACHE_DURATION_MS,
    ) -> Optional[Decision]:
        """Return the cached decision relabelled ``ai-cached``, or None.

        Entries older than ttl_ms are removed.
        """
        try:
            raw = self._store.get(key)
            if not raw:
                return None

            entry = json.loads(raw)
            if not isinstance(entry, dict):
                return None
            timestamp = entry.get("timestamp")
            stored = entry.get("decision")
            if not timestamp or not stored:
                return None

            if self._clock() - timestamp > ttl_ms:
                self._store.remove(key)
                return None

            decision = Decision.model_validate(stored)
        except StorageError as exc:
            logger.debug("Decision cache read failed", key=key, error=str(exc))
            return None
        except (json.JSONDecodeError, TypeError, PydanticValidationError) as exc:
            logger.debug("Ignoring corrupt cache entry", key=key, error=str(exc))
            return None

        return decision.model_copy(update={"source": DecisionSource.AI_CACHED})

    def write(self, key: str, decision: Decision) -> None:
        """Cache an AI decision. Anything else is refused."""
        if decision.source != DecisionSource.AI:
            logger.debug("Refusing to cache non-AI decision", source=decision.source.value)
            return

        entry = {
            "timestamp": self._clock(),
            "decision": decision.model_dump(mode="json", by_alias=True),
        }
        try:
            self._store.set(key, json.dumps(entry))
        except StorageError as exc:
            logger.warning("Failed to write decision cache", key=key, error=str(exc))

    def clear(self) -> int:
        """Remove every cached decision. Returns the number removed."""
        try:
            keys = keys_with_prefix(self._store, CACHE_KEY_PREFIX)
            for key in keys:
                self._store.remove(key)
        except StorageError as exc:
            logger.warning("Failed to clear decision cache", error=str(exc))
            return 0
        return len(keys)
