"""Negative prompt generation.

The negative prompt is assembled from segments in a fixed order:

1. Base list of low-quality and defect terms (always present)
2. Model-family segment (anime, realistic, fantasy, abstract)
3. Anatomy-defect segment when a subject phrase mentions a person
4. Urban-suppression segment when a subject phrase mentions a landscape
"""

from __future__ import annotations

import re

from sdbridge.core.classifier import ModelType
from sdbridge.core.structurer import StructuredPrompt

BASE_NEGATIVE_TERMS: list[str] = [
    "lowres",
    "bad anatomy",
    "bad hands",
    "text",
    "error",
    "missing fingers",
    "extra digit",
    "fewer digits",
    "cropped",
    "worst quality",
    "low quality",
    "normal quality",
    "jpeg artifacts",
    "signature",
    "watermark",
    "username",
    "blurry",
    "deformed",
    "mutated",
    "poorly drawn",
    "out of frame",
]

MODEL_NEGATIVE_SEGMENTS: dict[ModelType, str] = {
    ModelType.ANIME: "photorealistic, 3d render, photography, western style",
    ModelType.REALISTIC: "anime style, cartoon, illustration, disfigured, disproportional",
    ModelType.FANTASY: "modern, contemporary, mundane, ordinary",
    ModelType.ABSTRACT: "realistic, detailed, photographic",
}

PERSON_NEGATIVE_SEGMENT = (
    "missing limbs, extra limbs, deformed hands, extra fingers, missing fingers"
)
LANDSCAPE_NEGATIVE_SEGMENT = "buildings, urban, city"

_PERSON_PATTERN = re.compile(r"person|woman|man|girl|boy", re.IGNORECASE)
_LANDSCAPE_PATTERN = re.compile(r"landscape|scenery|nature", re.IGNORECASE)


def generate_negative_prompt(structured: StructuredPrompt, model_type: ModelType) -> str:
    """Build the negative prompt for a structured prompt and target model.

    Args:
        structured: Structured prompt (only ``subject`` is inspected)
        model_type: Classification of the target model

    Returns:
        Comma separated negative prompt
    """
    segments = [", ".join(BASE_NEGATIVE_TERMS)]

    model_segment = MODEL_NEGATIVE_SEGMENTS.get(model_type)
    if model_segment:
        segments.append(model_segment)

    if any(_PERSON_PATTERN.search(s) for s in structured.subject):
        segments.append(PERSON_NEGATIVE_SEGMENT)

    if any(_LANDSCAPE_PATTERN.search(s) for s in structured.subject):
        segments.append(LANDSCAPE_NEGATIVE_SEGMENT)

    return ", ".join(segments)
