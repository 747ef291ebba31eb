"""Resilient async client for the Stable Diffusion WebUI API.

Provides:
- Request validation before anything is sent
- Automatic retries with capped exponential backoff
- Mapping of transport and HTTP failures to typed errors
- Best-effort progress polling and interruption
- Pydantic response parsing

Retry classification
--------------------
==============================  ==========================  =========
Outcome                         Error                       Retried
==============================  ==========================  =========
No response (connect, timeout)  :class:`TransportError`     yes
5xx, 429, 408                   :class:`ServiceError`       yes
Any other 4xx                   :class:`RejectedRequestError`  no
2xx with unusable body          :class:`DecodeError`        no
==============================  ==========================  =========

Between attempts the client sleeps ``policy.compute_delay(attempt)``
(0-indexed). The sleep is an ordinary awaitable, so cancelling the calling
task aborts a pending retry immediately.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx
from pydantic import ValidationError as PydanticValidationError

from sdbridge.core.config import SDBridgeConfig
from sdbridge.core.errors import (
    DecodeError,
    RejectedRequestError,
    SDBridgeError,
    ServiceError,
    TransportError,
    ValidationError,
)
from sdbridge.core.models import (
    GenerationRequest,
    GenerationResult,
    Img2ImgRequest,
    ProgressSnapshot,
    SDModel,
    SDSampler,
)
from sdbridge.core.retry import RetryPolicy, is_retryable_status
from sdbridge.core.validation import validate_generation_request, validate_img2img_request

logger = logging.getLogger(__name__)

MODELS_PATH = "/sdapi/v1/sd-models"
SAMPLERS_PATH = "/sdapi/v1/samplers"
OPTIONS_PATH = "/sdapi/v1/options"
TXT2IMG_PATH = "/sdapi/v1/txt2img"
IMG2IMG_PATH = "/sdapi/v1/img2img"
PROGRESS_PATH = "/sdapi/v1/progress"
INTERRUPT_PATH = "/sdapi/v1/interrupt"

# Characters of an error body included in log messages.
_BODY_SNIPPET = 200

# Single attempt, used for connection checks.
NO_RETRY = RetryPolicy(max_retries=0)


class StableDiffusionClient:
    """Async client for one Stable Diffusion WebUI instance.

    Args:
        config: Connection settings (host, port, timeout, API key) and the
            default retry policy
        retry_policy: Overrides the policy built from ``config``
        transport: Optional custom transport (useful for testing)
        sleep: Awaitable used between retries (useful for testing)

    Example:
        >>> async with StableDiffusionClient(SDBridgeConfig()) as client:
        ...     if await client.test_connection():
        ...         result = await client.txt2img(GenerationRequest(prompt="a cat"))
    """

    def __init__(
        self,
        config: SDBridgeConfig,
        *,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self.retry_policy = retry_policy or config.retry_policy()
        self._sleep = sleep

        headers = {"Content-Type": "application/json"}
        if config.sd_api_key:
            headers["Authorization"] = f"Bearer {config.sd_api_key}"

        self._client = httpx.AsyncClient(
            base_url=config.sd_base_url,
            headers=headers,
            timeout=config.sd_timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> StableDiffusionClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # -- transport -------------------------------------------------------

    async def _send(self, method: str, path: str, json_body: Any = None) -> Any:
        """Issue one request and classify its outcome."""
        try:
            response = await self._client.request(method, path, json=json_body)
        except httpx.RequestError as e:
            raise TransportError(
                f"No response from {self.config.sd_base_url}{path}: {e.__class__.__name__}"
            ) from e

        status = response.status_code
        if status >= 400:
            message = f"{method} {path} failed with HTTP {status}"
            logger.debug(f"{message}: {response.text[:_BODY_SNIPPET]}")
            if is_retryable_status(status):
                raise ServiceError(message, status)
            raise RejectedRequestError(message, status)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(f"{method} {path} returned a non-JSON body", status) from e

    async def _execute_with_retry(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        retry_policy: RetryPolicy | None = None,
    ) -> Any:
        """Send a request, retrying transient failures under ``retry_policy``.

        Raises:
            TransportError: No response after exhausting retries
            ServiceError: Retryable status after exhausting retries
            RejectedRequestError: Non-retryable 4xx, raised on first sight
            DecodeError: Successful status with an unusable body
        """
        policy = retry_policy or self.retry_policy
        attempt = 0

        while True:
            try:
                return await self._send(method, path, json_body)
            except (TransportError, ServiceError) as e:
                if not policy.should_retry(attempt):
                    if policy.max_retries:
                        logger.error(f"{method} {path} failed after {attempt + 1} attempts")
                    raise
                delay = policy.compute_delay(attempt)
                logger.warning(
                    f"{e.message}; retrying in {delay:.2f}s "
                    f"(retry {attempt + 1}/{policy.max_retries})"
                )
                await self._sleep(delay)
                attempt += 1

    async def call_endpoint(
        self,
        path: str,
        method: str = "GET",
        json_body: Any = None,
        retry_policy: RetryPolicy | None = None,
    ) -> Any:
        """Call an arbitrary WebUI endpoint with the standard retry discipline."""
        return await self._execute_with_retry(
            method.upper(), path, json_body=json_body, retry_policy=retry_policy
        )

    # -- catalogue -------------------------------------------------------

    async def test_connection(self) -> bool:
        """Return True when the service answers the model listing."""
        try:
            await self._execute_with_retry("GET", MODELS_PATH, retry_policy=NO_RETRY)
        except SDBridgeError as e:
            logger.warning(f"Connection test failed: {e.message}")
            return False
        return True

    async def list_models(self) -> list[SDModel]:
        data = await self._execute_with_retry("GET", MODELS_PATH)
        return _parse_list(data, SDModel, MODELS_PATH)

    async def list_samplers(self) -> list[SDSampler]:
        data = await self._execute_with_retry("GET", SAMPLERS_PATH)
        return _parse_list(data, SDSampler, SAMPLERS_PATH)

    async def set_model(self, model_name: str, retry_policy: RetryPolicy | None = None) -> None:
        """Switch the active checkpoint."""
        if not model_name or not model_name.strip():
            raise ValidationError("Model name is required")

        await self._execute_with_retry(
            "POST",
            OPTIONS_PATH,
            json_body={"sd_model_checkpoint": model_name},
            retry_policy=retry_policy,
        )
        logger.info(f"Active model set to {model_name}")

    # -- generation ------------------------------------------------------

    async def txt2img(
        self,
        request: GenerationRequest,
        retry_policy: RetryPolicy | None = None,
    ) -> GenerationResult:
        """Generate images from text.

        Raises:
            ValidationError: Parameters out of range, nothing was sent
            SDBridgeError: Any classified transport or service failure
        """
        validate_generation_request(request)
        data = await self._execute_with_retry(
            "POST", TXT2IMG_PATH, json_body=request.to_payload(), retry_policy=retry_policy
        )
        return _parse_result(data, TXT2IMG_PATH)

    async def img2img(
        self,
        request: Img2ImgRequest,
        retry_policy: RetryPolicy | None = None,
    ) -> GenerationResult:
        """Generate images from source images and a prompt."""
        validate_img2img_request(request)
        data = await self._execute_with_retry(
            "POST", IMG2IMG_PATH, json_body=request.to_payload(), retry_policy=retry_policy
        )
        return _parse_result(data, IMG2IMG_PATH)

    # -- best-effort operations -----------------------------------------

    async def get_progress(self) -> ProgressSnapshot:
        """Poll progress once. Failures are logged and yield a zero snapshot."""
        try:
            data = await self._send("GET", PROGRESS_PATH)
            return ProgressSnapshot.from_raw(data or {})
        except (SDBridgeError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Progress poll failed: {e}")
            return ProgressSnapshot.zero()

    async def interrupt(self) -> bool:
        """Ask the service to stop the current job. Never retried."""
        try:
            await self._send("POST", INTERRUPT_PATH)
        except SDBridgeError as e:
            logger.warning(f"Interrupt request failed: {e.message}")
            return False
        logger.info("Interrupt requested")
        return True


def _parse_list(data: Any, model: type, path: str) -> list:
    if not isinstance(data, list):
        raise DecodeError(f"GET {path} did not return a list")
    try:
        return [model.model_validate(item) for item in data]
    except PydanticValidationError as e:
        raise DecodeError(f"GET {path} returned malformed entries: {e.error_count()} errors") from e


def _parse_result(data: Any, path: str) -> GenerationResult:
    if not isinstance(data, dict):
        raise DecodeError(f"POST {path} did not return a JSON object")
    try:
        return GenerationResult.from_response(data)
    except PydanticValidationError as e:
        raise DecodeError(f"POST {path} returned a malformed result") from e
