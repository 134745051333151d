"""Shared test fixtures for the personalization engine."""

import json
from typing import Any, Callable, Optional

import httpx
import pytest

from personalize.config.settings import Settings
from personalize.context.models import DeviceInfo, ReferrerInfo, VisitContext
from personalize.decision.models import Template
from personalize.storage.stores import MemoryStore

DAY_MS = 24 * 60 * 60 * 1000
START_MS = 1_700_000_000_000


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, now: int = START_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms

    def advance_days(self, days: float) -> None:
        self.now += int(days * DAY_MS)


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def completion_body(payload: Any) -> dict[str, Any]:
    """Provider-shaped response body wrapping payload as message content."""
    content = payload if isinstance(payload, str) else json.dumps(payload)
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class FakeModelEndpoint:
    """httpx.MockTransport handler replaying queued responses."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._responses: list[Callable[[httpx.Request], httpx.Response]] = []

    def reply(self, payload: Any, status_code: int = 200) -> "FakeModelEndpoint":
        self._responses.append(
            lambda request: httpx.Response(status_code, json=completion_body(payload))
        )
        return self

    def reply_raw(self, body: Any, status_code: int = 200) -> "FakeModelEndpoint":
        if isinstance(body, (dict, list)):
            self._responses.append(lambda request: httpx.Response(status_code, json=body))
        else:
            self._responses.append(lambda request: httpx.Response(status_code, text=body))
        return self

    def fail(self, exc: Exception) -> "FakeModelEndpoint":
        def raise_error(request: httpx.Request) -> httpx.Response:
            raise exc

        self._responses.append(raise_error)
        return self

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self._responses:
            raise AssertionError("Unexpected request to model endpoint")
        return self._responses.pop(0)(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))

    def request_json(self, index: int = -1) -> dict[str, Any]:
        return json.loads(self.requests[index].content)


def make_context(
    utm: Optional[dict[str, str]] = None,
    referrer_source: str = "direct",
    referrer_category: str = "direct",
    mobile: bool = False,
    tablet: bool = False,
    primary_intent: str = "default",
    timestamp: int = START_MS,
) -> VisitContext:
    utm = utm or {}
    return VisitContext(
        utm=utm,
        referrer=ReferrerInfo(source=referrer_source, category=referrer_category),
        device=DeviceInfo(
            raw="test-agent",
            is_mobile=mobile,
            is_tablet=tablet,
            is_desktop=not mobile and not tablet,
        ),
        timestamp=timestamp,
        has_utm=bool(utm),
        primary_intent=primary_intent,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def templates() -> dict[str, Template]:
    return {
        "gaming": Template(
            headline="Level Up Your Setup",
            subheadline="Pro gear for serious gamers",
            cta_label="Shop Gaming",
            cta_link="/gaming",
            image="/img/gaming.jpg",
        ),
        "professional": Template(
            headline="Work Smarter",
            subheadline="Tools built for productivity",
            cta_label="Explore",
            cta_link="/work",
        ),
        "default": Template(
            headline="Welcome",
            subheadline="Find something you love",
            cta_label="Browse",
            cta_link="/home",
            image="/img/default.jpg",
        ),
    }


@pytest.fixture
def gaming_context() -> VisitContext:
    return make_context(
        utm={"utm_source": "reddit", "utm_campaign": "gaming_console"},
        primary_intent="gaming",
    )


@pytest.fixture
def endpoint() -> FakeModelEndpoint:
    return FakeModelEndpoint()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()
