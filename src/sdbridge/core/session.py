"""Generation session: one in-flight generation with scoped progress polling.

A session runs the generation call and a polling loop side by side. The
polling loop lives exactly as long as the call: it stops as soon as the call
resolves (success or failure), when :meth:`GenerationSession.cancel` is
observed, or when the caller's timeout fires.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Callable

from sdbridge.core.client import StableDiffusionClient
from sdbridge.core.models import (
    GenerationRequest,
    GenerationResult,
    Img2ImgRequest,
    ProgressSnapshot,
)
from sdbridge.core.retry import RetryPolicy

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressSnapshot], None]


class GenerationSession:
    """Runs one generation at a time against a client.

    Args:
        client: Client used for the generation, polls and interrupts
        poll_interval: Seconds between progress polls
        on_progress: Default callback receiving every progress snapshot

    Example:
        >>> session = GenerationSession(client, poll_interval=0.5, on_progress=print)
        >>> result = await session.run(GenerationRequest(prompt="a cat"), timeout=120)
    """

    def __init__(
        self,
        client: StableDiffusionClient,
        *,
        poll_interval: float = 0.5,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.client = client
        self.poll_interval = poll_interval
        self.on_progress = on_progress
        self.latest_progress: ProgressSnapshot | None = None
        self._running = False
        self._cancelled = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._running

    async def run(
        self,
        request: GenerationRequest,
        retry_policy: RetryPolicy | None = None,
        timeout: float | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> GenerationResult:
        """Generate images while polling progress.

        Args:
            request: txt2img request, or an :class:`Img2ImgRequest`
            retry_policy: Overrides the client's retry policy for this call
            timeout: Overall deadline in seconds, retries included
            on_progress: Callback for this run, overriding the session default

        Returns:
            GenerationResult from the service

        Raises:
            RuntimeError: A generation is already in flight on this session
            TimeoutError: The deadline passed; the call and any pending retry
                sleep were cancelled
            SDBridgeError: Propagated from the client
        """
        if self._running:
            raise RuntimeError("A generation is already in flight for this session")

        self._running = True
        self._cancelled = asyncio.Event()
        self.latest_progress = None
        done = asyncio.Event()
        callback = on_progress or self.on_progress
        poller = asyncio.create_task(self._poll(done, callback))

        try:
            call = self._submit(request, retry_policy)
            if timeout is None:
                return await call
            return await asyncio.wait_for(call, timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"Generation timed out after {timeout}s")
            raise TimeoutError(f"Generation did not finish within {timeout} seconds") from e
        finally:
            done.set()
            poller.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await poller
            self._running = False

    async def cancel(self) -> bool:
        """Signal cancellation and ask the service to interrupt the job.

        Returns without waiting for the job to stop. The interrupt request is
        sent at most once per run.
        """
        if self._running and self._cancelled.is_set():
            return True
        self._cancelled.set()
        return await self.client.interrupt()

    def _submit(self, request: GenerationRequest, retry_policy: RetryPolicy | None):
        if isinstance(request, Img2ImgRequest):
            return self.client.img2img(request, retry_policy=retry_policy)
        return self.client.txt2img(request, retry_policy=retry_policy)

    async def _poll(self, done: asyncio.Event, callback: ProgressCallback | None) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            if done.is_set() or self._cancelled.is_set():
                break

            snapshot = await self.client.get_progress()
            self.latest_progress = snapshot
            if callback is None:
                continue
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Progress callback failed")

        logger.debug("Progress polling stopped")
