"""Normalized AI configuration built from caller input."""

import math
from dataclasses import dataclass
from typing import Any, Callable, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..config.settings import Settings, get_settings
from ..exceptions import ConfigError

Mode = Literal["select", "generate"]


class ModelConfig(BaseModel):
    """Immutable, fully-defaulted AI configuration for one decision request.

    Exactly one connection mode is active: a proxy URL when ``api_url`` is
    given (credentials are injected server-side), otherwise the direct
    provider endpoint with a bearer key.
    """

    model_config = ConfigDict(frozen=True)

    # Connection
    api_key: Optional[str] = None
    api_url: str
    use_direct_api: bool

    # Model
    model: str
    temperature: float
    max_tokens: int

    # Behavior
    mode: Mode = "select"
    timeout_ms: int
    max_retries: int
    fallback_to_standard: bool = True
    retry_client_errors: bool = True

    # Caching
    cache_decisions: bool = True
    cache_duration_ms: int

    # History
    history_enabled: bool = True
    history_decay_rate: float
    max_history_size: int

    # Prompt inputs
    brand_context: Optional[dict[str, Any]] = None
    custom_prompts: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_raw(
        cls,
        raw: Any,
        settings: Optional[Settings] = None,
    ) -> "ModelConfig":
        """Normalize a raw caller mapping (camelCase or snake_case keys).

        Raises:
            ConfigError: raw is not a mapping or carries neither a key nor a URL.
        """
        if not isinstance(raw, Mapping):
            raise ConfigError("AI config must be a mapping")

        settings = settings or get_settings()
        opts = _RawOptions(raw)

        api_key = opts.text("apiKey", "api_key")
        api_url = opts.text("apiUrl", "api_url")
        if not api_key and not api_url:
            raise ConfigError(
                'AI config requires either "apiKey" (for direct OpenAI) '
                'or "apiUrl" (for proxy endpoint)'
            )

        return cls(
            api_key=api_key,
            api_url=api_url or settings.openai_base_url,
            use_direct_api=bool(api_key) and not api_url,
            model=opts.text("model") or settings.default_model,
            temperature=opts.number("temperature", default=settings.default_temperature),
            max_tokens=int(opts.number("maxTokens", "max_tokens", default=settings.default_max_tokens)),
            mode="generate" if opts.get("mode") == "generate" else "select",
            timeout_ms=int(opts.number("timeout", "timeout_ms", default=settings.default_timeout_ms)),
            max_retries=int(opts.number("maxRetries", "max_retries", default=settings.default_max_retries)),
            fallback_to_standard=opts.flag("fallbackToStandard", "fallback_to_standard"),
            retry_client_errors=opts.flag("retryClientErrors", "retry_client_errors"),
            cache_decisions=opts.flag("cacheDecisions", "cache_decisions"),
            cache_duration_ms=int(
                opts.number(
                    "cacheDuration",
                    "cache_duration_ms",
                    default=settings.default_cache_duration_ms,
                )
            ),
            history_enabled=opts.flag("historyEnabled", "history_enabled"),
            history_decay_rate=opts.number(
                "historyDecayRate",
                "history_decay_rate",
                default=settings.default_decay_rate,
                accept=lambda rate: 0 < rate <= 1,
            ),
            max_history_size=int(
                opts.number(
                    "maxHistorySize",
                    "max_history_size",
                    default=settings.default_max_history_size,
                    accept=lambda size: size >= 1,
                )
            ),
            brand_context=opts.mapping("brandContext", "brand_context"),
            custom_prompts=opts.mapping("customPrompts", "custom_prompts") or {},
        )


@dataclass
class Readiness:
    """Whether AI mode can run with a given raw config."""

    ready: bool
    error: Optional[str] = None


def is_ready(raw: Any, settings: Optional[Settings] = None) -> Readiness:
    """Check a raw AI config without raising."""
    try:
        ModelConfig.from_raw(raw, settings)
    except ConfigError as exc:
        return Readiness(ready=False, error=str(exc))
    return Readiness(ready=True)


class _RawOptions:
    """Lookup helper over a raw mapping that accepts several key spellings."""

    def __init__(self, raw: Mapping[str, Any]) -> None:
        self._raw = raw

    def get(self, *names: str) -> Any:
        for name in names:
            if name in self._raw:
                return self._raw[name]
        return None

    def text(self, *names: str) -> Optional[str]:
        value = self.get(*names)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    def number(
        self,
        *names: str,
        default: float,
        accept: Optional[Callable[[float], bool]] = None,
    ) -> float:
        """Numeric option, or default when missing, non-numeric or rejected."""
        value = self.get(*names)
        # bool is an int subclass but never a meaningful number here
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            return default
        if not math.isfinite(value):
            return default
        if accept is not None and not accept(value):
            return default
        return value

    def mapping(self, *names: str) -> Optional[dict[str, Any]]:
        value = self.get(*names)
        if isinstance(value, Mapping) and value:
            return dict(value)
        return None

    def flag(self, *names: str) -> bool:
        """Flags default on; only an explicit False turns them off."""
        return self.get(*names) is not False
