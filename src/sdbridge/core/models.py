"""Pydantic models for the Stable Diffusion WebUI wire format.

These models describe the JSON payloads exchanged with the generation
service. They are intentionally permissive: range checks live in
:mod:`sdbridge.core.validation` so that the client can raise a friendly
:class:`~sdbridge.core.errors.ValidationError` instead of a pydantic error,
and unknown fields are kept so callers can pass WebUI options this package
does not model explicitly.

Models
------
GenerationRequest
    Body of ``POST /sdapi/v1/txt2img``.
Img2ImgRequest
    Body of ``POST /sdapi/v1/img2img``.
GenerationResult
    Response of both generation endpoints. Images are opaque base64 strings.
ProgressSnapshot
    Normalised view of ``GET /sdapi/v1/progress``.
SDModel / SDSampler
    Entries of ``GET /sdapi/v1/sd-models`` and ``GET /sdapi/v1/samplers``.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class GenerationRequest(BaseModel):
    """Text-to-image request body."""

    model_config = ConfigDict(extra="allow")

    prompt: str | None = Field(default=None, description="Positive prompt.")
    negative_prompt: str | None = Field(default=None, description="Negative prompt.")
    seed: int | None = Field(default=None, description="Seed, -1 picks a random seed.")
    sampler_name: str | None = Field(default=None, description="Sampler name.")
    steps: int | None = Field(default=None, description="Number of sampling steps.")
    cfg_scale: float | None = Field(default=None, description="Classifier-free guidance.")
    width: int | None = Field(default=None, description="Image width in pixels.")
    height: int | None = Field(default=None, description="Image height in pixels.")
    batch_size: int | None = Field(default=None, description="Images per batch.")
    n_iter: int | None = Field(default=None, description="Number of batches.")
    restore_faces: bool | None = Field(default=None, description="Run face restoration.")
    tiling: bool | None = Field(default=None, description="Generate tileable images.")
    override_settings: dict[str, Any] | None = Field(
        default=None,
        description="WebUI options applied for this request only.",
    )

    def to_payload(self) -> dict[str, Any]:
        """Serialise for the wire, omitting unset fields."""
        return self.model_dump(exclude_none=True)


class Img2ImgRequest(GenerationRequest):
    """Image-to-image request body."""

    init_images: list[str] = Field(
        default_factory=list,
        description="Base64 encoded source images.",
    )
    denoising_strength: float | None = Field(
        default=None,
        description="How much the source image may change (0-1).",
    )
    mask: str | None = Field(default=None, description="Base64 encoded inpainting mask.")
    resize_mode: int | None = Field(default=None, description="WebUI resize mode.")


class GenerationResult(BaseModel):
    """Images and metadata returned by a generation call.

    Attributes:
        images: Base64 encoded images, in service order.
        parameters: Echo of the parameters the service used.
        info: Raw info blob (a JSON document encoded as a string).
        seeds: Per-image seeds when the info blob carries them.
    """

    model_config = ConfigDict(extra="ignore")

    images: list[str] = Field(default_factory=list)
    parameters: dict[str, Any] = Field(default_factory=dict)
    info: str = ""
    seeds: list[int] | None = None

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "GenerationResult":
        """Build a result from a txt2img/img2img response body."""
        result = cls.model_validate(data)
        if result.seeds is None:
            result.seeds = _seeds_from_info(result.info)
        return result

    def parsed_info(self) -> dict[str, Any]:
        """Decode the info blob, returning an empty dict when it is not JSON."""
        try:
            decoded = json.loads(self.info) if self.info else {}
        except ValueError:
            return {}
        return decoded if isinstance(decoded, dict) else {}


def _seeds_from_info(info: str) -> list[int] | None:
    if not info:
        return None
    try:
        decoded = json.loads(info)
    except ValueError:
        logger.debug("Generation info is not JSON, no seeds extracted")
        return None
    if not isinstance(decoded, dict):
        return None
    seeds = decoded.get("all_seeds")
    if isinstance(seeds, list) and all(isinstance(s, int) for s in seeds):
        return seeds
    return None


class ProgressSnapshot(BaseModel):
    """Progress of the current generation job.

    Attributes:
        current_step: Sampling step of the current job.
        total_steps: Total sampling steps of the current job.
        percentage: Completion in percent (0-100).
        eta_seconds: Estimated seconds remaining.
        description: Human readable stage, when the service reports one.
        interrupted: The job was interrupted.
        skipped: The job was skipped.
        current_image: In-progress preview image (base64), when available.
    """

    current_step: int = 0
    total_steps: int = 0
    percentage: float = 0.0
    eta_seconds: float = 0.0
    description: str | None = None
    interrupted: bool = False
    skipped: bool = False
    current_image: str | None = None

    @classmethod
    def zero(cls) -> "ProgressSnapshot":
        return cls()

    @classmethod
    def from_raw(cls, data: dict[str, Any]) -> "ProgressSnapshot":
        """Normalise a ``/sdapi/v1/progress`` response body."""
        state = data.get("state") or {}
        job = state.get("job") or None
        job_count = state.get("job_count") or 0
        job_no = state.get("job_no") or 0
        description = job
        if job and job_count > 1:
            description = f"{job} ({job_no + 1}/{job_count})"

        return cls(
            current_step=state.get("sampling_step") or 0,
            total_steps=state.get("sampling_steps") or 0,
            percentage=round(float(data.get("progress") or 0.0) * 100, 2),
            eta_seconds=float(data.get("eta_relative") or 0.0),
            description=description,
            interrupted=bool(state.get("interrupted", False)),
            skipped=bool(state.get("skipped", False)),
            current_image=data.get("current_image"),
        )


class SDModel(BaseModel):
    """Checkpoint descriptor from ``GET /sdapi/v1/sd-models``."""

    model_config = ConfigDict(extra="ignore", protected_namespaces=())

    title: str
    model_name: str
    hash: str | None = None
    sha256: str | None = None
    filename: str | None = None


class SDSampler(BaseModel):
    """Sampler descriptor from ``GET /sdapi/v1/samplers``."""

    model_config = ConfigDict(extra="ignore")

    name: str
    aliases: list[str] = Field(default_factory=list)
    options: dict[str, Any] = Field(default_factory=dict)
