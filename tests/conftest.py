# tests/conftest.py
from collections.abc import AsyncGenerator
from typing import Any

import httpx
import pytest
import respx

from core.config import KhularkSettings
from core.utils.events import EventBus
from systems.khulark.core.arbiter import FeedingArbiter
from systems.khulark.core.feed_service import FeedPhotoService
from systems.khulark.core.session import KhularkSession
from systems.khulark.core.stat_store import StatStore
from systems.khulark.core.storage import InMemoryStateStorage

AI_BASE_URL = "https://ai.test/client/v4"
FEED_URL = "http://game.test/feed-photo"


class FakeClock:
    """Deterministic epoch-millisecond clock shared by every component under test."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeRunner:
    """Stands in for WorkersAIClient inside FeedPhotoService."""

    def __init__(
        self,
        detections: Any = None,
        llm_result: Any = None,
        detect_error: Exception | None = None,
        llm_error: Exception | None = None,
    ):
        self.detections = detections if detections is not None else []
        self.llm_result = llm_result
        self.detect_error = detect_error
        self.llm_error = llm_error
        self.calls: list[tuple[str, str, Any]] = []

    async def run_binary(self, model: str, image: bytes) -> Any:
        self.calls.append(("binary", model, image))
        if self.detect_error:
            raise self.detect_error
        return self.detections

    async def run(self, model: str, payload: Any) -> Any:
        self.calls.append(("run", model, payload))
        if self.llm_error:
            raise self.llm_error
        return self.llm_result


@pytest.fixture
def test_settings(tmp_path) -> KhularkSettings:
    return KhularkSettings(
        cloudflare_account_id="acct",
        cloudflare_api_token="tok",
        ai_base_url=AI_BASE_URL,
        detection_model="test/detector",
        language_model="test/llm",
        feed_url=FEED_URL,
        storage_backend="memory",
        save_path=str(tmp_path / "khulark-save.json"),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> InMemoryStateStorage:
    return InMemoryStateStorage()


@pytest.fixture
async def store(storage, clock) -> StatStore:
    s = StatStore(storage, clock=clock)
    await s.load()
    return s


@pytest.fixture
async def http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(timeout=5.0) as client:
        yield client


@pytest.fixture
async def respx_router() -> AsyncGenerator[respx.MockRouter, None]:
    """
    Intercepts outbound httpx traffic (model host, feed endpoint) so tests
    can stub responses and inspect what was sent.
    """
    async with respx.mock(assert_all_called=False) as mock:
        yield mock


@pytest.fixture
def arbiter(store, http_client, clock, test_settings) -> FeedingArbiter:
    return FeedingArbiter(store, http_client=http_client, clock=clock, cfg=test_settings)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def session(store, arbiter, bus, clock) -> KhularkSession:
    return KhularkSession(store, arbiter, bus=bus, clock=clock)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner(
        detections=[
            {"label": "pizza", "score": 0.93, "box": {"xmin": 1, "ymin": 2, "xmax": 30, "ymax": 40}},
            {"label": "dining table", "score": 0.71, "box": {"xmin": 0, "ymin": 0, "xmax": 99, "ymax": 99}},
            {"label": "fork", "score": 0.32, "box": {"xmin": 5, "ymin": 5, "xmax": 9, "ymax": 9}},
        ],
        llm_result={
            "response": {
                "hunger": 20,
                "affection": 10,
                "sanity": 5,
                "speech": "Cheesy! I love it.",
                "alertText": "The khulark devours the pizza slice with delight.",
            },
        },
    )


@pytest.fixture
async def api_client(fake_runner, test_settings) -> AsyncGenerator[httpx.AsyncClient, None]:
    """In-process client against the FastAPI app, with the model host replaced by fake_runner."""
    from api.endpoints.feed.feed_photo import get_feed_service
    from app import app

    app.dependency_overrides[get_feed_service] = lambda: FeedPhotoService(fake_runner, test_settings)
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def runner_factory() -> type[FakeRunner]:
    return FakeRunner
