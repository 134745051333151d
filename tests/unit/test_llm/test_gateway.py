"""Tests for the HTTP model gateway."""

import asyncio

import httpx
import pytest

from personalize.exceptions import ProtocolError, TransportError
from personalize.llm.config import ModelConfig
from personalize.llm.gateway import (
    HttpModelGateway,
    extract_payload,
    parse_content,
    resolve_endpoint,
)

MESSAGES = [
    {"role": "system", "content": "sys"},
    {"role": "user", "content": "usr"},
]

SELECTION = {"selectedVariant": "gaming", "confidence": 0.9, "reasoning": "UTM"}


@pytest.fixture
def direct_config(settings):
    return ModelConfig.from_raw({"apiKey": "sk-test", "maxRetries": 2}, settings)


@pytest.fixture
def proxy_config(settings):
    return ModelConfig.from_raw({"apiUrl": "https://proxy.example/ai"}, settings)


@pytest.fixture
def gateway(endpoint, settings, sleep):
    return HttpModelGateway(client=endpoint.client(), settings=settings, sleep=sleep)


class TestResolveEndpoint:
    """Tests for connection mode resolution."""

    def test_direct_sends_bearer(self, direct_config):
        url, headers = resolve_endpoint(direct_config)

        assert url == "https://api.openai.com/v1/chat/completions"
        assert headers["Authorization"] == "Bearer sk-test"

    def test_proxy_sends_no_credentials(self, proxy_config):
        url, headers = resolve_endpoint(proxy_config)

        assert url == "https://proxy.example/ai"
        assert "Authorization" not in headers


class TestParsing:
    """Tests for payload extraction."""

    def test_plain_json(self):
        assert parse_content('{"a": 1}') == {"a": 1}

    def test_json_wrapped_in_prose(self):
        """A JSON object embedded in text is recovered."""
        content = 'Sure! ```json\n{"selectedVariant": "x"}\n``` Hope that helps.'
        assert parse_content(content) == {"selectedVariant": "x"}

    def test_unparseable_content(self):
        with pytest.raises(ProtocolError, match="Failed to parse"):
            parse_content("no json here")

    def test_non_object_json(self):
        with pytest.raises(ProtocolError):
            parse_content("[1, 2]")

    def test_decoded_object_content(self):
        """Content a proxy already decoded is used without parsing."""
        body = {"choices": [{"message": {"content": SELECTION}}]}
        assert extract_payload(body) == SELECTION

    @pytest.mark.parametrize("content", [["gaming"], 42, 0.5, True])
    def test_non_text_content(self, content):
        body = {"choices": [{"message": {"content": content}}]}
        with pytest.raises(ProtocolError, match="not text"):
            extract_payload(body)

    def test_direct_payload_body(self):
        """A proxy may return the decision payload itself."""
        assert extract_payload(SELECTION) == SELECTION
        assert extract_payload({"headline": "Hi"}) == {"headline": "Hi"}

    @pytest.mark.parametrize("body", [{}, {"choices": []}, {"result": "x"}, ["x"]])
    def test_unexpected_structure(self, body):
        with pytest.raises(ProtocolError, match="Unexpected API response structure"):
            extract_payload(body)


class TestInvoke:
    """Tests for a single gateway call."""

    async def test_success(self, gateway, endpoint, direct_config):
        """The payload, endpoint host and request body are as expected."""
        endpoint.reply(SELECTION)

        reply = await gateway.invoke(MESSAGES, direct_config)

        assert reply.payload == SELECTION
        assert reply.endpoint == "api.openai.com"
        assert reply.attempts == 1

        body = endpoint.request_json()
        assert body["model"] == "gpt-4o-mini"
        assert body["messages"] == MESSAGES
        assert body["temperature"] == 0.7
        assert body["max_tokens"] == 500
        assert body["response_format"] == {"type": "json_object"}
        assert endpoint.requests[0].headers["authorization"] == "Bearer sk-test"

    async def test_proxy_request(self, gateway, endpoint, proxy_config):
        """Proxy requests go to the caller URL without a bearer header."""
        endpoint.reply_raw(SELECTION)

        reply = await gateway.invoke(MESSAGES, proxy_config)

        assert reply.payload == SELECTION
        assert str(endpoint.requests[0].url) == "https://proxy.example/ai"
        assert "authorization" not in endpoint.requests[0].headers

    async def test_error_status(self, gateway, endpoint, direct_config):
        """Non-success statuses raise ProtocolError with a body preview."""
        endpoint.reply_raw("x" * 500, status_code=500)

        with pytest.raises(ProtocolError) as exc_info:
            await gateway.invoke(MESSAGES, direct_config)

        assert exc_info.value.status_code == 500
        assert exc_info.value.body_preview == "x" * 200

    async def test_non_json_body(self, gateway, endpoint, direct_config):
        endpoint.reply_raw("<html>oops</html>")

        with pytest.raises(ProtocolError, match="non-JSON"):
            await gateway.invoke(MESSAGES, direct_config)

    async def test_network_error(self, gateway, endpoint, direct_config):
        endpoint.fail(httpx.ConnectError("refused"))

        with pytest.raises(TransportError, match="refused"):
            await gateway.invoke(MESSAGES, direct_config)

    async def test_http_timeout(self, gateway, endpoint, direct_config):
        """httpx timeouts are reported with the configured deadline."""
        endpoint.fail(httpx.ReadTimeout("slow"))

        with pytest.raises(TransportError, match="timed out after 5000ms") as exc_info:
            await gateway.invoke(MESSAGES, direct_config)

        assert exc_info.value.timeout_ms == 5000

    async def test_deadline_abandons_attempt(self, settings):
        """A call that never completes is cut off at the deadline."""

        async def hang(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(10)
            return httpx.Response(200, json=SELECTION)

        client = httpx.AsyncClient(transport=httpx.MockTransport(hang))
        gateway = HttpModelGateway(client=client, settings=settings)
        config = ModelConfig.from_raw({"apiUrl": "https://proxy.example/ai", "timeout": 20}, settings)

        with pytest.raises(TransportError, match="timed out after 20ms"):
            await gateway.invoke(MESSAGES, config)


class TestInvokeWithRetry:
    """Tests for retry and backoff."""

    async def test_retries_then_succeeds(self, gateway, endpoint, direct_config, sleep):
        """Failures are retried with exponential backoff."""
        endpoint.reply_raw("busy", status_code=503)
        endpoint.fail(httpx.ConnectError("reset"))
        endpoint.reply(SELECTION)

        reply = await gateway.invoke_with_retry(MESSAGES, direct_config)

        assert reply.payload == SELECTION
        assert reply.attempts == 3
        assert sleep.delays == [0.5, 1.0]

    async def test_exhausted_retries_reraise_last_error(self, gateway, endpoint, direct_config, sleep):
        """After max_retries + 1 attempts the final failure propagates."""
        endpoint.reply_raw("busy", status_code=503)
        endpoint.reply_raw("busy", status_code=502)
        endpoint.reply_raw("busy", status_code=500)

        with pytest.raises(ProtocolError) as exc_info:
            await gateway.invoke_with_retry(MESSAGES, direct_config)

        assert exc_info.value.status_code == 500
        assert len(endpoint.requests) == 3
        assert len(sleep.delays) == 2

    async def test_zero_retries(self, gateway, endpoint, settings, sleep):
        config = ModelConfig.from_raw({"apiKey": "k", "maxRetries": 0}, settings)
        endpoint.reply_raw("busy", status_code=503)

        with pytest.raises(ProtocolError):
            await gateway.invoke_with_retry(MESSAGES, config)

        assert len(endpoint.requests) == 1
        assert sleep.delays == []

    async def test_client_errors_retried_by_default(self, gateway, endpoint, direct_config):
        """A 401 is retried like any other failure."""
        endpoint.reply_raw("unauthorized", status_code=401)
        endpoint.reply(SELECTION)

        reply = await gateway.invoke_with_retry(MESSAGES, direct_config)
        assert reply.attempts == 2

    async def test_client_errors_not_retried_when_opted_out(self, gateway, endpoint, settings, sleep):
        """With retryClientErrors off, 4xx statuses fail immediately."""
        config = ModelConfig.from_raw(
            {"apiKey": "k", "maxRetries": 3, "retryClientErrors": False}, settings
        )
        endpoint.reply_raw("bad request", status_code=400)

        with pytest.raises(ProtocolError):
            await gateway.invoke_with_retry(MESSAGES, config)

        assert len(endpoint.requests) == 1
        assert sleep.delays == []

    async def test_rate_limit_still_retried_when_opted_out(self, gateway, endpoint, settings):
        """429 is not treated as a client error."""
        config = ModelConfig.from_raw(
            {"apiKey": "k", "maxRetries": 1, "retryClientErrors": False}, settings
        )
        endpoint.reply_raw("slow down", status_code=429)
        endpoint.reply(SELECTION)

        reply = await gateway.invoke_with_retry(MESSAGES, config)
        assert reply.attempts == 2
