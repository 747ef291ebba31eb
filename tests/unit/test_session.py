"""Unit tests for GenerationSession."""

from __future__ import annotations

import asyncio
import logging
import time

import pytest

from sdbridge.core.client import TXT2IMG_PATH, StableDiffusionClient
from sdbridge.core.errors import ServiceError
from sdbridge.core.models import (
    GenerationRequest,
    GenerationResult,
    Img2ImgRequest,
    ProgressSnapshot,
)
from sdbridge.core.session import GenerationSession

pytestmark = pytest.mark.anyio

POLL_INTERVAL = 0.01


class ScriptedClient:
    """Minimal client double whose generation waits on ``release``."""

    def __init__(
        self,
        delay: float | None = 0.05,
        error: Exception | None = None,
        release_on_interrupt: bool = True,
    ) -> None:
        self.delay = delay
        self.error = error
        self.release_on_interrupt = release_on_interrupt
        self.release = asyncio.Event()
        self.calls: list[str] = []
        self.polls = 0
        self.interrupts = 0
        self.cancelled = False

    async def _generate(self, kind: str) -> GenerationResult:
        self.calls.append(kind)
        try:
            if self.delay is None:
                await self.release.wait()
            else:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return GenerationResult(images=["aW1hZ2U="])

    async def txt2img(self, request, retry_policy=None) -> GenerationResult:
        return await self._generate("txt2img")

    async def img2img(self, request, retry_policy=None) -> GenerationResult:
        return await self._generate("img2img")

    async def get_progress(self) -> ProgressSnapshot:
        self.polls += 1
        return ProgressSnapshot(
            current_step=self.polls, total_steps=20, percentage=5.0 * self.polls
        )

    async def interrupt(self) -> bool:
        self.interrupts += 1
        if self.release_on_interrupt:
            self.release.set()
        return True


REQUEST = GenerationRequest(prompt="a cat")


class TestRun:
    """Tests for GenerationSession.run."""

    async def test_progress_reported_while_running(self):
        client = ScriptedClient(delay=0.1)
        snapshots: list[ProgressSnapshot] = []
        session = GenerationSession(client, poll_interval=POLL_INTERVAL)

        result = await session.run(REQUEST, on_progress=snapshots.append)

        assert result.images == ["aW1hZ2U="]
        assert snapshots
        assert session.latest_progress == snapshots[-1]

    async def test_polling_stops_with_call(self):
        client = ScriptedClient(delay=0.05)
        session = GenerationSession(client, poll_interval=POLL_INTERVAL)

        await session.run(REQUEST)
        polls = client.polls
        await asyncio.sleep(POLL_INTERVAL * 5)

        assert client.polls == polls
        assert session.running is False

    async def test_default_callback(self):
        snapshots: list[ProgressSnapshot] = []
        session = GenerationSession(
            ScriptedClient(delay=0.1), poll_interval=POLL_INTERVAL, on_progress=snapshots.append
        )

        await session.run(REQUEST)

        assert snapshots

    async def test_img2img_dispatch(self):
        client = ScriptedClient(delay=0)
        session = GenerationSession(client, poll_interval=POLL_INTERVAL)

        await session.run(Img2ImgRequest(prompt="a cat", init_images=["aGk="]))

        assert client.calls == ["img2img"]

    async def test_second_run_rejected(self):
        client = ScriptedClient(delay=None)
        session = GenerationSession(client, poll_interval=POLL_INTERVAL)
        first = asyncio.create_task(session.run(REQUEST))
        await asyncio.sleep(0)

        with pytest.raises(RuntimeError):
            await session.run(REQUEST)

        client.release.set()
        await first
        assert client.calls == ["txt2img"]

    async def test_timeout(self):
        client = ScriptedClient(delay=None)
        session = GenerationSession(client, poll_interval=POLL_INTERVAL)

        with pytest.raises(TimeoutError):
            await session.run(REQUEST, timeout=0.05)

        assert client.cancelled is True
        assert session.running is False

    async def test_error_propagates(self):
        client = ScriptedClient(delay=0, error=ServiceError("busy", 503))
        session = GenerationSession(client, poll_interval=POLL_INTERVAL)

        with pytest.raises(ServiceError):
            await session.run(REQUEST)

        assert session.running is False

    async def test_failing_callback_logged(self, caplog):
        def explode(snapshot: ProgressSnapshot) -> None:
            raise ValueError("display closed")

        session = GenerationSession(ScriptedClient(delay=0.1), poll_interval=POLL_INTERVAL)

        with caplog.at_level(logging.ERROR, logger="sdbridge.core.session"):
            result = await session.run(REQUEST, on_progress=explode)

        assert result.images
        assert "Progress callback failed" in caplog.text


class TestCancel:
    """Tests for GenerationSession.cancel."""

    async def test_single_interrupt_per_run(self):
        client = ScriptedClient(delay=None)
        session = GenerationSession(client, poll_interval=POLL_INTERVAL)
        run = asyncio.create_task(session.run(REQUEST))
        await asyncio.sleep(0)

        assert await session.cancel() is True
        assert await session.cancel() is True
        await run

        assert client.interrupts == 1

    async def test_cancel_stops_polling(self):
        client = ScriptedClient(delay=None, release_on_interrupt=False)
        session = GenerationSession(client, poll_interval=POLL_INTERVAL)
        run = asyncio.create_task(session.run(REQUEST))
        await asyncio.sleep(POLL_INTERVAL * 3)

        await session.cancel()
        polls = client.polls
        await asyncio.sleep(POLL_INTERVAL * 5)

        assert client.polls == polls
        client.release.set()
        await run

    async def test_cancel_when_idle(self):
        client = ScriptedClient()
        session = GenerationSession(client, poll_interval=POLL_INTERVAL)

        assert await session.cancel() is True
        assert client.interrupts == 1


class TestRunWithClient:
    """Tests for sessions driving a real client against the fake WebUI."""

    async def test_timeout_cancels_pending_retry_sleep(self, test_config, webui):
        """Test that the deadline wins over a long backoff between attempts."""
        webui.add("POST", TXT2IMG_PATH, (503, {"detail": "busy"}))
        config = test_config.model_copy(update={"retry_initial_delay": 5, "retry_max_delay": 5})
        client = StableDiffusionClient(config, transport=webui.transport())
        session = GenerationSession(client, poll_interval=POLL_INTERVAL)

        started = time.monotonic()
        with pytest.raises(TimeoutError):
            await session.run(REQUEST, timeout=0.2)
        elapsed = time.monotonic() - started
        await client.aclose()

        assert elapsed < 1.0
        assert webui.count("POST", TXT2IMG_PATH) == 1
        assert session.running is False
