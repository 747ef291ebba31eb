"""Shared pytest fixtures for sdbridge tests."""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from sdbridge.core.client import StableDiffusionClient
from sdbridge.core.config import SDBridgeConfig
from sdbridge.core.service import SDBridgeService
from sdbridge.core.translation import IdentityTranslator


class FakeWebUI:
    """Scriptable stand-in for the Stable Diffusion WebUI API.

    Responses are queued per ``(method, path)``. Each queued item is either
    a ``(status, json_body)`` tuple, an exception to raise, or a callable
    receiving the request. The last item of a queue keeps answering once
    the queue is drained. Unknown routes answer 404.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[Any]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, *responses: Any) -> "FakeWebUI":
        self.routes.setdefault((method, path), []).extend(responses)
        return self

    def count(self, method: str, path: str) -> int:
        return sum(1 for r in self.requests if (r.method, r.url.path) == (method, path))

    def last_json(self, method: str, path: str) -> Any:
        for request in reversed(self.requests):
            if (request.method, request.url.path) == (method, path):
                return json.loads(request.content) if request.content else None
        return None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"detail": "Not Found"})

        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)

        status, body = item
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


SAMPLE_MODELS = [
    {
        "title": "anythingV5_anime.safetensors [a1b2c3]",
        "model_name": "anythingV5_anime",
        "hash": "a1b2c3",
        "filename": "/models/anythingV5_anime.safetensors",
    },
    {
        "title": "realisticVision.safetensors [d4e5f6]",
        "model_name": "realisticVision",
        "hash": "d4e5f6",
        "filename": "/models/realisticVision.safetensors",
    },
]

SAMPLE_SAMPLERS = [
    {"name": "Euler a", "aliases": ["k_euler_a"], "options": {}},
    {"name": "DPM++ 2M Karras", "aliases": ["k_dpmpp_2m_ka"], "options": {}},
]

SAMPLE_RESULT = {
    "images": ["aW1hZ2UtMQ==", "aW1hZ2UtMg=="],
    "parameters": {"prompt": "a cat", "steps": 20},
    "info": '{"all_seeds": [1234, 1235], "seed": 1234}',
}

SAMPLE_PROGRESS = {
    "progress": 0.4,
    "eta_relative": 3.5,
    "state": {
        "skipped": False,
        "interrupted": False,
        "job": "txt2img",
        "job_count": 1,
        "job_timestamp": "20240101000000",
        "job_no": 0,
        "sampling_step": 8,
        "sampling_steps": 20,
    },
    "current_image": None,
}


@pytest.fixture
def anyio_backend() -> str:
    """Run async tests on asyncio only."""
    return "asyncio"


@pytest.fixture
def test_config(monkeypatch) -> SDBridgeConfig:
    """Create a test configuration with fast retries and polling.

    Returns:
        SDBridgeConfig instance for testing
    """
    for name in ("SDBRIDGE_SD_API_KEY", "SDBRIDGE_TRANSLATION_URL"):
        monkeypatch.delenv(name, raising=False)
    return SDBridgeConfig(
        sd_host="sd.test",
        sd_port=7860,
        sd_timeout=5.0,
        retry_max_retries=3,
        retry_initial_delay=0.5,
        retry_max_delay=1.5,
        retry_factor=2.0,
        progress_poll_interval=0.01,
        _env_file=None,
    )


@pytest.fixture
def webui() -> FakeWebUI:
    """Fake WebUI with empty routes."""
    return FakeWebUI()


@pytest.fixture
def sleeps() -> list[float]:
    """Delays requested by clients built with :func:`make_client`."""
    return []


@pytest.fixture
def make_client(
    test_config: SDBridgeConfig, webui: FakeWebUI, sleeps: list[float]
) -> Callable[..., StableDiffusionClient]:
    """Factory for clients wired to the fake WebUI.

    Retry sleeps are recorded in ``sleeps`` instead of waiting.
    """

    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    def factory(**kwargs: Any) -> StableDiffusionClient:
        config = kwargs.pop("config", test_config)
        return StableDiffusionClient(
            config, transport=webui.transport(), sleep=fake_sleep, **kwargs
        )

    return factory


@pytest.fixture
def service(test_config: SDBridgeConfig, make_client) -> SDBridgeService:
    """Service using the fake WebUI and identity translation."""
    return SDBridgeService(test_config, client=make_client(), translator=IdentityTranslator())


@pytest.fixture
def test_client(monkeypatch, service: SDBridgeService):
    """FastAPI TestClient whose service talks to the fake WebUI."""
    from fastapi.testclient import TestClient

    from sdbridge.api import main

    monkeypatch.setattr(main, "build_service", lambda: service)
    with TestClient(main.app) as client:
        yield client
