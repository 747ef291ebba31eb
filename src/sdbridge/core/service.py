"""Core facade exposed to front doors.

:class:`SDBridgeService` owns one client, one translator and one generation
session, and exposes the operations a presentation layer needs:

- ``optimize_prompt`` (async; the pipeline and its blocking translation call
  run in a worker thread so the event loop keeps polling progress)
- ``recommend_parameters`` (synchronous, local)
- ``generate``, ``get_progress`` and ``cancel`` (async, remote)
- ``text_to_image``: the complete describe-then-generate flow
"""

from __future__ import annotations

import functools
import logging
from typing import Any

import anyio.to_thread

from sdbridge.core.client import StableDiffusionClient
from sdbridge.core.config import SDBridgeConfig
from sdbridge.core.errors import REMEDY_UNREACHABLE, SDBridgeError
from sdbridge.core.models import GenerationRequest, GenerationResult, ProgressSnapshot
from sdbridge.core.optimizer import OptimizedPromptResult, optimize_prompt
from sdbridge.core.parameters import get_recommended_parameters
from sdbridge.core.retry import RetryPolicy
from sdbridge.core.session import GenerationSession, ProgressCallback
from sdbridge.core.translation import Translator, build_translator

logger = logging.getLogger(__name__)

NO_MODELS_MESSAGE = "No Stable Diffusion models were found."
NO_IMAGES_MESSAGE = "Image generation returned no images."
CHECK_WEBUI_LOGS = "Check the WebUI logs for details."


class SDBridgeService:
    """Facade over the prompt pipeline and the generation client.

    Args:
        config: Service configuration
        client: Generation client; built from ``config`` when omitted
        translator: Translation capability; built from ``config`` when omitted
    """

    def __init__(
        self,
        config: SDBridgeConfig,
        *,
        client: StableDiffusionClient | None = None,
        translator: Translator | None = None,
    ) -> None:
        self.config = config
        self.client = client or StableDiffusionClient(config)
        self.translator = translator or build_translator(config)
        self.session = GenerationSession(
            self.client, poll_interval=config.progress_poll_interval
        )

    async def aclose(self) -> None:
        """Close the generation client and the translator, if it holds one."""
        await self.client.aclose()
        close = getattr(self.translator, "close", None)
        if close is not None:
            close()

    async def optimize_prompt(
        self,
        raw_text: str,
        model_name: str | None = None,
        max_length: int | None = None,
    ) -> OptimizedPromptResult:
        pipeline = functools.partial(
            optimize_prompt,
            raw_text,
            model_name=model_name or "",
            max_length=max_length or self.config.default_max_length,
            translator=self.translator,
        )
        return await anyio.to_thread.run_sync(pipeline)

    def recommend_parameters(self, prompt: str, model_name: str) -> dict[str, Any]:
        return get_recommended_parameters(prompt, model_name)

    async def generate(
        self,
        request: GenerationRequest,
        retry_policy: RetryPolicy | None = None,
        on_progress: ProgressCallback | None = None,
        timeout: float | None = None,
    ) -> GenerationResult:
        return await self.session.run(
            request, retry_policy=retry_policy, timeout=timeout, on_progress=on_progress
        )

    async def get_progress(self) -> ProgressSnapshot:
        return await self.client.get_progress()

    async def cancel(self) -> bool:
        return await self.session.cancel()

    async def text_to_image(self, text: str) -> dict[str, Any]:
        """Optimise ``text``, pick parameters and generate one image.

        Uses the first model reported by the service. Service failures never raise;
        they are reported as ``{"success": False, "error", "details"}`` built
        from the typed error's message and remedy.
        """
        if not await self.client.test_connection():
            return _failure("Could not connect to the Stable Diffusion WebUI.", REMEDY_UNREACHABLE)

        try:
            models = await self.client.list_models()
            if not models:
                return _failure(NO_MODELS_MESSAGE, CHECK_WEBUI_LOGS)
            model_name = models[0].model_name

            logger.info(f"Optimising prompt for model {model_name}: {text!r}")
            optimized = await self.optimize_prompt(text, model_name=model_name)
            recommended = self.recommend_parameters(optimized.optimized_prompt, model_name)

            request = GenerationRequest(
                prompt=optimized.optimized_prompt,
                negative_prompt=optimized.negative_prompt,
                sampler_name=recommended["sampler"],
                steps=recommended["steps"],
                cfg_scale=recommended["cfg_scale"],
                width=recommended["width"],
                height=recommended["height"],
                seed=-1,
                batch_size=1,
                n_iter=1,
            )
            result = await self.generate(request)
        except SDBridgeError as e:
            logger.error(f"Text to image failed: {e.message}")
            return _failure(e.message, e.remedy)

        if not result.images:
            return _failure(NO_IMAGES_MESSAGE, CHECK_WEBUI_LOGS)

        return {
            "success": True,
            "input": text,
            "optimized_prompt": optimized.optimized_prompt,
            "negative_prompt": optimized.negative_prompt,
            "parameters": request.to_payload(),
            "image_data": result.images[0],
            "model_used": model_name,
            "seeds": result.seeds or [-1],
            "confidence": optimized.confidence,
        }


def _failure(error: str, details: str | None) -> dict[str, Any]:
    return {"success": False, "error": error, "details": details}
