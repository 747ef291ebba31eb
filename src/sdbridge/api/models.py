"""Pydantic request models for the sdbridge API.

These models define the JSON schema for the front-door endpoints. FastAPI
uses them for automatic request validation, serialisation, and OpenAPI
documentation generation.

Models
------
OptimizeRequest
    Payload for ``POST /api/prompt/optimize``.
RecommendRequest
    Payload for ``POST /api/parameters/recommend``.
GenerateRequest
    Payload for ``POST /api/generate``: a WebUI txt2img body plus an
    optional per-call timeout. Range checks happen in the core so that the
    caller gets a friendly message and a remedy.
JsonRpcRequest
    Envelope for ``POST /api/mcp``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from sdbridge.core.models import GenerationRequest


class OptimizeRequest(BaseModel):
    """Request body for the ``POST /api/prompt/optimize`` endpoint.

    Attributes:
        text: Free-form description, possibly in Japanese.
        model_name: Target checkpoint name used for model tuning.
        max_length: Character bound for the optimised prompt.
    """

    text: str = Field(..., description="Free-form image description.")
    model_name: str | None = Field(
        default=None,
        description="Target model name (e.g. 'anythingV5_anime').",
    )
    max_length: int | None = Field(
        default=None,
        gt=0,
        description="Maximum length of the optimised prompt.",
    )


class RecommendRequest(BaseModel):
    """Request body for the ``POST /api/parameters/recommend`` endpoint."""

    prompt: str = Field(..., description="Prompt to recommend parameters for.")
    model_name: str = Field(default="", description="Target model name.")


class GenerateRequest(GenerationRequest):
    """Request body for the ``POST /api/generate`` endpoint.

    Attributes:
        timeout: Overall deadline in seconds, retries included. ``None``
            waits for the service.
    """

    timeout: float | None = Field(
        default=None,
        gt=0,
        description="Overall deadline in seconds.",
    )

    def to_generation_request(self) -> GenerationRequest:
        return GenerationRequest(**self.model_dump(exclude={"timeout"}, exclude_none=True))


class JsonRpcRequest(BaseModel):
    """JSON-RPC 2.0 request envelope.

    Every field is optional so that malformed envelopes reach the handler
    and can be answered with a JSON-RPC error instead of an HTTP 422.
    """

    jsonrpc: str | None = None
    method: str | None = None
    params: dict[str, Any] | None = None
    id: int | str | None = None
