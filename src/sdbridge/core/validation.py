"""Validation of generation requests before they reach the service."""

import logging

from .errors import ValidationError
from .models import GenerationRequest, Img2ImgRequest

logger = logging.getLogger(__name__)

DIMENSION_RANGE = (64, 2048)
STEPS_RANGE = (1, 150)
CFG_SCALE_RANGE = (1.0, 30.0)
DENOISING_RANGE = (0.0, 1.0)


def _check_range(label: str, value, bounds) -> None:
    low, high = bounds
    if value is not None and not low <= value <= high:
        raise ValidationError(f"{label} must be between {low} and {high} (got {value})")


def validate_generation_request(request: GenerationRequest) -> None:
    """Validate a txt2img request with user-friendly messages.

    Only supplied fields are range checked; the service fills in defaults
    for the rest.

    Args:
        request: Request to validate

    Raises:
        ValidationError: If validation fails with user-friendly message
    """
    if not request.prompt or not request.prompt.strip():
        raise ValidationError("Prompt is required")

    _check_range("Width", request.width, DIMENSION_RANGE)
    _check_range("Height", request.height, DIMENSION_RANGE)
    _check_range("Steps", request.steps, STEPS_RANGE)
    _check_range("CFG scale", request.cfg_scale, CFG_SCALE_RANGE)


def validate_img2img_request(request: Img2ImgRequest) -> None:
    """Validate an img2img request.

    Applies every txt2img rule, then requires at least one source image and
    a denoising strength in [0, 1] when one is given.

    Raises:
        ValidationError: If validation fails with user-friendly message
    """
    validate_generation_request(request)

    if not request.init_images:
        raise ValidationError("At least one source image is required")

    _check_range("Denoising strength", request.denoising_strength, DENOISING_RANGE)
