"""HTTP gateway to an OpenAI-compatible chat completions endpoint.

Direct mode talks to the provider with a bearer key; proxy mode posts
the same body to a caller-owned URL that injects credentials itself.
"""

import asyncio
import json
import re
import time
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urlsplit

import httpx
import structlog

from ..config.settings import Settings, get_settings
from ..exceptions import ModelGatewayError, ProtocolError, TransportError
from .config import ModelConfig
from .interface import ModelReply

logger = structlog.get_logger()

_JSON_OBJECT = re.compile(r"\{.*\}", re.S)


def resolve_endpoint(config: ModelConfig) -> tuple[str, dict[str, str]]:
    """Return the URL and headers for a request under config."""
    headers = {"Content-Type": "application/json"}
    if config.use_direct_api and config.api_key:
        headers["Authorization"] = f"Bearer {config.api_key}"
    return config.api_url, headers


def build_request_body(
    messages: list[dict[str, str]],
    config: ModelConfig,
) -> dict[str, Any]:
    return {
        "model": config.model,
        "messages": messages,
        "temperature": config.temperature,
        "max_tokens": config.max_tokens,
        "response_format": {"type": "json_object"},
    }


def parse_content(content: Any) -> dict[str, Any]:
    """Parse message content as JSON, recovering a ``{...}`` span if wrapped.

    Content that a proxy already decoded into an object is used as is.
    """
    if isinstance(content, dict):
        return content
    if not isinstance(content, str):
        raise ProtocolError(
            f"AI response content is not text: {type(content).__name__}"
        )

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        match = _JSON_OBJECT.search(content)
        if not match:
            raise ProtocolError(
                f"Failed to parse AI response as JSON: {content[:200]}"
            ) from None
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            raise ProtocolError(
                f"Failed to parse AI response as JSON: {content[:200]}"
            ) from None

    if not isinstance(parsed, dict):
        raise ProtocolError("AI response content is not a JSON object")
    return parsed


def extract_payload(data: Any) -> dict[str, Any]:
    """Pull the decision payload out of a response body.

    Accepts either the provider shape ``{choices: [{message: {content}}]}``
    or a body that already is the payload (a proxy that unwraps server-side).
    """
    if isinstance(data, dict):
        choices = data.get("choices")
        if isinstance(choices, list) and choices:
            message = choices[0].get("message") if isinstance(choices[0], dict) else None
            if isinstance(message, dict):
                return parse_content(message.get("content") or "")

        if data.get("selectedVariant") or data.get("headline"):
            return data

    raise ProtocolError("Unexpected API response structure")


class HttpModelGateway:
    """Model gateway over httpx with per-attempt deadlines and backoff."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._settings = settings or get_settings()
        self._sleep = sleep

    async def _post(
        self,
        url: str,
        headers: dict[str, str],
        body: dict[str, Any],
        timeout_s: float,
    ) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, headers=headers, json=body, timeout=timeout_s)
        async with httpx.AsyncClient() as client:
            return await client.post(url, headers=headers, json=body, timeout=timeout_s)

    async def invoke(
        self,
        messages: list[dict[str, str]],
        config: ModelConfig,
    ) -> ModelReply:
        """Issue one request; the attempt is abandoned at the deadline."""
        url, headers = resolve_endpoint(config)
        body = build_request_body(messages, config)
        timeout_s = config.timeout_ms / 1000
        start = time.monotonic()

        try:
            response = await asyncio.wait_for(
                self._post(url, headers, body, timeout_s),
                timeout=timeout_s,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise TransportError(
                f"AI request timed out after {config.timeout_ms}ms",
                timeout_ms=config.timeout_ms,
            ) from None
        except httpx.HTTPError as exc:
            raise TransportError(f"AI request failed: {exc}") from exc

        if response.status_code >= 400:
            preview = response.text[:200]
            raise ProtocolError(
                f"API request failed ({response.status_code}): {preview}",
                status_code=response.status_code,
                body_preview=preview,
            )

        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError):
            raise ProtocolError(
                f"API returned a non-JSON body: {response.text[:200]}",
                status_code=response.status_code,
            ) from None

        payload = extract_payload(data)
        return ModelReply(
            payload=payload,
            latency_ms=int((time.monotonic() - start) * 1000),
            endpoint=urlsplit(url).netloc,
            raw=data if isinstance(data, dict) else {},
        )

    async def invoke_with_retry(
        self,
        messages: list[dict[str, str]],
        config: ModelConfig,
    ) -> ModelReply:
        """Retry with backoff of base, 2*base, 4*base ... between attempts."""
        base_delay = self._settings.retry_base_delay_ms / 1000
        attempt = 0

        while True:
            try:
                reply = await self.invoke(messages, config)
                reply.attempts = attempt + 1
                return reply
            except ModelGatewayError as exc:
                if attempt >= config.max_retries or not self._should_retry(exc, config):
                    raise

                delay = base_delay * (2**attempt)
                logger.warning(
                    "Retrying AI request",
                    attempt=attempt + 1,
                    max_retries=config.max_retries,
                    delay_s=delay,
                    error=str(exc),
                )
                await self._sleep(delay)
                attempt += 1

    @staticmethod
    def _should_retry(exc: ModelGatewayError, config: ModelConfig) -> bool:
        """Every gateway failure is retried unless client errors are opted out."""
        if not config.retry_client_errors and isinstance(exc, ProtocolError):
            return not exc.is_client_error
        return True
