"""Wire a DecisionPolicy from its collaborators."""

from typing import Any, Optional

from .config.settings import Settings, get_settings
from .context.provider import ContextProvider
from .decision.cache import DecisionCache
from .decision.engine import DeterministicEngine
from .decision.policy import DecisionPolicy
from .history.store import WeightedHistoryStore
from .llm.factory import create_model_gateway
from .storage.stores import KeyValueStore, MemoryStore


def create_decision_policy(
    store: Optional[KeyValueStore] = None,
    settings: Optional[Settings] = None,
    context_provider: Optional[ContextProvider] = None,
    **gateway_kwargs: Any,
) -> DecisionPolicy:
    """Build a policy whose history and cache share one key-value store.

    Args:
        store: Per-visitor persistence; an in-memory store when omitted.
        settings: Engine settings; the cached environment settings by default.
        context_provider: Used when a request carries no context.
        **gateway_kwargs: Forwarded to ``create_model_gateway``.
    """
    settings = settings or get_settings()
    store = store if store is not None else MemoryStore()

    history = WeightedHistoryStore(
        store,
        decay_rate=settings.default_decay_rate,
        max_weighted=settings.default_max_weighted,
    )
    gateway = create_model_gateway(settings=settings, **gateway_kwargs)

    return DecisionPolicy(
        history=history,
        gateway=gateway,
        cache=DecisionCache(store),
        engine=DeterministicEngine(),
        context_provider=context_provider,
        settings=settings,
    )
