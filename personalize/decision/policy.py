"""Decision policy: cache, history, model call, validation and fallback.

Layers, in order: custom rules, cache lookup, history refresh, prompt
assembly, model invocation with retry, validation, cache write and history
record. Any gateway or validation failure falls through to the
deterministic engine unless the caller disabled ``fallbackToStandard``.
"""

import time
from typing import Any, Optional

import structlog

from ..config.settings import Settings, get_settings
from ..context.models import VisitContext
from ..context.provider import ContextProvider, default_context
from ..exceptions import ModelGatewayError, ValidationError
from ..history.interface import HistoryStore
from ..history.models import VisitInput
from ..history.weighting import aggregate_preferences, format_for_prompt
from ..llm.config import ModelConfig
from ..llm.interface import ModelGateway
from ..llm.prompts import PromptParams, build_messages
from .cache import DecisionCache, build_cache_key
from .engine import DeterministicEngine, match_rule
from .models import Decision, DecisionRequest, DecisionSource, ModelResponse, Template
from .validation import (
    coerce_confidence,
    validate_generate_response,
    validate_select_response,
)

logger = structlog.get_logger()

GENERATED_INTENT = "ai-generated"
DEFAULT_CTA_LINK = "/shop"


class DecisionPolicy:
    """Turns a visit context into a content decision.

    Collaborators are injected; nothing is looked up globally.
    """

    def __init__(
        self,
        history: HistoryStore,
        gateway: ModelGateway,
        cache: Optional[DecisionCache] = None,
        engine: Optional[DeterministicEngine] = None,
        context_provider: Optional[ContextProvider] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._history = history
        self._gateway = gateway
        self._cache = cache or DecisionCache()
        self._engine = engine or DeterministicEngine()
        self._context_provider = context_provider
        self._settings = settings or get_settings()

    async def personalize(self, request: DecisionRequest) -> Decision:
        """Resolve the context and decide. Entry point for callers."""
        context = self._resolve_context(request)

        if not request.templates:
            logger.error("Templates are required")
            return Decision(
                template=None,
                intent="default",
                source=DecisionSource.ERROR,
                context=context,
                error="No templates provided",
            )

        return await self.decide(context, request)

    async def decide(self, context: VisitContext, request: DecisionRequest) -> Decision:
        """Route to the AI path when enabled, falling back on failure.

        Raises:
            ConfigError: AI is enabled but the config has no key or URL.
            ModelGatewayError: AI failed and fallback is disabled.
        """
        if not (request.enable_ai and request.ai_config is not None):
            return self.standard_decide(context, request)

        config = ModelConfig.from_raw(request.ai_config, self._settings)

        # A matching custom rule outranks the model.
        if match_rule(context, request.rules) is not None:
            return self.standard_decide(context, request, config)

        try:
            return await self.ai_decide(context, request, config)
        except ModelGatewayError as exc:
            if not config.fallback_to_standard:
                raise
            logger.warning(
                "AI decision failed, using standard engine",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return self.standard_decide(context, request, config)

    def standard_decide(
        self,
        context: VisitContext,
        request: DecisionRequest,
        config: Optional[ModelConfig] = None,
    ) -> Decision:
        """Deterministic decision, recorded to history.

        With a resolved AI config the visit is bounded and weighted by the
        caller's history options, as on the AI path.
        """
        decision = self._engine.decide(
            context,
            request.templates,
            rules=request.rules,
            random_fallback=request.random_fallback,
        )

        max_size = self._settings.default_max_history_size
        decay_rate = None
        if config is not None:
            max_size, decay_rate = config.max_history_size, config.history_decay_rate

        if decision.source != DecisionSource.ERROR:
            self._history.record_visit(
                VisitInput(
                    context=context,
                    intent=decision.intent,
                    selected_variant=decision.intent,
                    source=decision.source.value,
                    ai_decision=False,
                ),
                max_size=max_size,
                decay_rate=decay_rate,
            )

        return decision

    async def ai_decide(
        self,
        context: VisitContext,
        request: DecisionRequest,
        config: Optional[ModelConfig] = None,
    ) -> Decision:
        """AI path only; raises instead of falling back."""
        config = config or ModelConfig.from_raw(request.ai_config, self._settings)
        templates = request.templates

        if config.mode == "select" and not templates:
            raise ValidationError("Select mode requires at least one template")

        cache_key = build_cache_key(context, config.mode)
        if config.cache_decisions:
            cached = self._cache.read(cache_key, config.cache_duration_ms)
            if cached is not None:
                logger.info("Using cached AI decision", intent=cached.intent)
                return cached

        params = PromptParams(context=context)
        if config.history_enabled:
            history = self._history.load()
            weighted = self._history.weighted_view(
                history,
                decay_rate=config.history_decay_rate,
                max_results=self._settings.default_max_weighted,
            )
            params.preferences = aggregate_preferences(weighted)
            params.weighted_history = format_for_prompt(weighted)

        if config.mode == "select":
            params.variants = templates
        else:
            params.brand_context = config.brand_context
            params.reference_template = _reference_template(templates)

        messages = build_messages(config.mode, params, config.custom_prompts)

        start = time.monotonic()
        try:
            reply = await self._gateway.invoke_with_retry(messages, config)
            latency = int((time.monotonic() - start) * 1000)
            decision = self._build_decision(reply.payload, context, templates, config, latency)
        except ModelGatewayError as exc:
            logger.warning(
                "AI request failed",
                latency_ms=int((time.monotonic() - start) * 1000),
                error=str(exc),
            )
            raise

        if config.cache_decisions:
            self._cache.write(cache_key, decision)

        if config.history_enabled:
            self._history.record_visit(
                VisitInput(
                    context=context,
                    intent=decision.intent,
                    selected_variant=decision.intent,
                    source=DecisionSource.AI.value,
                    ai_decision=True,
                ),
                max_size=config.max_history_size,
                decay_rate=config.history_decay_rate,
            )

        logger.info(
            "AI decision made",
            mode=config.mode,
            intent=decision.intent,
            confidence=decision.model_response.confidence,
            latency_ms=latency,
            model=config.model,
        )
        return decision

    def _build_decision(
        self,
        payload: dict[str, Any],
        context: VisitContext,
        templates: dict[str, Template],
        config: ModelConfig,
        latency: int,
    ) -> Decision:
        response = ModelResponse(
            confidence=coerce_confidence(payload.get("confidence")),
            reasoning=_text(payload.get("reasoning")),
            latency=latency,
            model=config.model,
            mode=config.mode,
            cached=False,
        )

        if config.mode == "select":
            result = validate_select_response(payload, templates)
            if not result.valid:
                raise ValidationError(f"Invalid AI selection: {result.error}")
            selected = payload["selectedVariant"]
            return Decision(
                template=templates[selected],
                intent=selected,
                source=DecisionSource.AI,
                context=context,
                model_response=response,
            )

        result = validate_generate_response(payload)
        if not result.valid:
            raise ValidationError(f"Invalid AI generation: {result.error}")

        default = templates.get("default")
        generated = Template(
            headline=payload["headline"],
            subheadline=payload["subheadline"],
            cta_label=payload["ctaLabel"],
            cta_link=(default.cta_link if default else None) or DEFAULT_CTA_LINK,
            image=default.image if default else None,
        )
        return Decision(
            template=generated,
            intent=GENERATED_INTENT,
            source=DecisionSource.AI,
            context=context,
            model_response=response,
        )

    def _resolve_context(self, request: DecisionRequest) -> VisitContext:
        if request.context is not None:
            return request.context
        if self._context_provider is not None:
            return self._context_provider.get_context()
        return default_context()


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _reference_template(templates: dict[str, Template]) -> Optional[Template]:
    """Tone reference for generate mode: ``default`` or the first entry."""
    if "default" in templates:
        return templates["default"]
    return next(iter(templates.values()), None)
