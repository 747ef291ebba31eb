"""Generation parameter recommendation.

Given a prompt and a target model name, this module derives the numeric and
categorical settings sent to the generation service. Everything is a
deterministic function of three signals:

- **Complexity**: ``min(10, words/10 + special_terms + commas/5)``
- **Art style**: :func:`~sdbridge.core.classifier.detect_art_style`
- **Model category**: :func:`~sdbridge.core.classifier.categorize_model`

Recommendations
---------------
Steps
    Base 25/35/50 for complexity below 0.3/below 0.6/otherwise, then anime
    style -5 (floor 20), realistic +10 (ceiling 80), abstract -10 (floor 20).
CFG scale
    Base by style (anime 8, realistic 10, abstract 6, else 7.5) plus
    ``(complexity - 0.5) * 2``, clamped to [3, 15].
Resolution
    512x512 by default, orientation from an explicit hint or prompt
    keywords, scaled by 1.5 (max 1024) for realistic/detailed styles and
    floored to a multiple of 8.
Sampler
    Best entry of :data:`SAMPLER_DATABASE` for the model category.
Batching
    Always four images in total, split by available VRAM.
"""

from __future__ import annotations

import logging
import random
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Mapping

from sdbridge.core.classifier import (
    ModelCategory,
    SamplerCategory,
    categorize_model,
    detect_art_style,
)
from sdbridge.core.models import GenerationRequest

logger = logging.getLogger(__name__)

_SPECIAL_TERMS = re.compile(r"\b(detailed|intricate|complex|elaborate)\b", re.IGNORECASE)

DEFAULT_SAMPLER = "Euler a"
DEFAULT_WIDTH = 512
DEFAULT_HEIGHT = 512
MAX_SCALED_DIMENSION = 1024

MIN_STEPS = 20
MAX_STEPS = 80
MIN_CFG = 3.0
MAX_CFG = 15.0

# Total images requested per recommendation, whatever the batch size.
TOTAL_IMAGES = 4

MAX_SEED = 2**32 - 1


@dataclass(frozen=True)
class SamplerInfo:
    """Static description of a sampler."""

    name: str
    category: SamplerCategory
    speed_rating: int  # 1-10, 10 is fastest
    detail_rating: int  # 1-10, 10 is most detailed
    ideal_for: tuple[ModelCategory, ...]


SAMPLER_DATABASE: list[SamplerInfo] = [
    SamplerInfo(
        "Euler a",
        SamplerCategory.FAST,
        9,
        6,
        (ModelCategory.ANIME, ModelCategory.STYLIZED),
    ),
    SamplerInfo(
        "DPM++ 2M Karras",
        SamplerCategory.DETAILED,
        5,
        9,
        (ModelCategory.REALISTIC, ModelCategory.GENERAL),
    ),
    SamplerInfo(
        "DPM++ SDE Karras",
        SamplerCategory.CREATIVE,
        4,
        8,
        (ModelCategory.ARTISTIC, ModelCategory.STYLIZED),
    ),
    SamplerInfo(
        "DDIM",
        SamplerCategory.FAST,
        8,
        5,
        (ModelCategory.GENERAL, ModelCategory.ANIME),
    ),
    SamplerInfo(
        "LMS",
        SamplerCategory.BALANCED,
        7,
        7,
        (ModelCategory.GENERAL,),
    ),
]

# Aspect ratio hints: (keywords, (width, height)). Japanese keywords are
# accepted because raw user input may be untranslated.
_ASPECT_HINTS: list[tuple[tuple[str, ...], tuple[int, int]]] = [
    (("portrait", "縦長"), (512, 768)),
    (("landscape", "横長"), (768, 512)),
    (("square", "正方形"), (512, 512)),
    (("widescreen", "ワイド"), (896, 512)),
]

_PROMPT_ORIENTATION: list[tuple[tuple[str, ...], tuple[int, int]]] = [
    (("portrait", "face", "person", "ポートレート", "顔", "人物"), (512, 768)),
    (("landscape", "scenery", "wide", "風景", "景色", "ワイド"), (768, 512)),
]


def analyze_prompt_complexity(prompt: str) -> float:
    """Score how demanding a prompt is, between 0 and 10."""
    words = len(prompt.split())
    special_terms = len(_SPECIAL_TERMS.findall(prompt))
    commas = prompt.count(",")
    return min(10.0, words / 10 + special_terms + commas / 5)


def get_optimal_step_count(prompt: str, art_style: str) -> int:
    complexity = analyze_prompt_complexity(prompt)

    if complexity < 0.3:
        base_steps = 25
    elif complexity < 0.6:
        base_steps = 35
    else:
        base_steps = 50

    if art_style == "anime":
        return max(MIN_STEPS, base_steps - 5)
    if art_style == "realistic":
        return min(MAX_STEPS, base_steps + 10)
    if art_style == "abstract":
        return max(MIN_STEPS, base_steps - 10)
    return base_steps


def get_optimal_cfg_scale(prompt: str, art_style: str) -> float:
    complexity = analyze_prompt_complexity(prompt)

    if art_style == "anime":
        base_cfg = 8.0
    elif art_style == "realistic":
        base_cfg = 10.0
    elif art_style == "abstract":
        base_cfg = 6.0
    else:
        base_cfg = 7.5

    adjustment = (complexity - 0.5) * 2
    return max(MIN_CFG, min(MAX_CFG, base_cfg + adjustment))


def _match_dimensions(
    text: str, table: list[tuple[tuple[str, ...], tuple[int, int]]]
) -> tuple[int, int] | None:
    lowered = text.lower()
    for keywords, dimensions in table:
        if any(keyword in lowered for keyword in keywords):
            return dimensions
    return None


def get_optimal_resolution(
    prompt: str,
    art_style: str,
    aspect_ratio_hint: str | None = None,
) -> tuple[int, int]:
    """Recommend ``(width, height)`` for a prompt.

    An explicit ``aspect_ratio_hint`` takes precedence over keywords found
    in the prompt. The result is always a pair of positive multiples of 8.
    """
    if aspect_ratio_hint:
        dimensions = _match_dimensions(aspect_ratio_hint, _ASPECT_HINTS)
    else:
        dimensions = _match_dimensions(prompt, _PROMPT_ORIENTATION)
    width, height = dimensions or (DEFAULT_WIDTH, DEFAULT_HEIGHT)

    if art_style in ("detailed", "realistic"):
        width = min(MAX_SCALED_DIMENSION, int(width * 1.5))
        height = min(MAX_SCALED_DIMENSION, int(height * 1.5))

    return width // 8 * 8, height // 8 * 8


def recommend_sampler(model_name: str, prompt: str) -> str:
    """Pick the best sampler for a model and prompt.

    Samplers suited to the model category are ranked by detail for complex
    prompts, by speed for simple ones and by a 60/40 detail/speed blend
    otherwise.
    """
    category = categorize_model(model_name)
    complexity = analyze_prompt_complexity(prompt)

    candidates = [s for s in SAMPLER_DATABASE if category in s.ideal_for]
    if not candidates:
        return DEFAULT_SAMPLER

    def score(sampler: SamplerInfo) -> float:
        if complexity > 0.7:
            return sampler.detail_rating
        if complexity < 0.3:
            return sampler.speed_rating
        return sampler.detail_rating * 0.6 + sampler.speed_rating * 0.4

    # max() keeps the first of equally scored entries, like a stable sort.
    return max(candidates, key=score).name


@dataclass(frozen=True)
class BatchSettings:
    batch_size: int
    batch_count: int


def optimize_batch_settings(prompt: str, available_vram: float = 8) -> BatchSettings:
    """Split :data:`TOTAL_IMAGES` into batches that fit the available VRAM.

    Args:
        prompt: Prompt text, used for its complexity
        available_vram: Free GPU memory in GB

    Returns:
        BatchSettings whose product is always four images
    """
    complexity = analyze_prompt_complexity(prompt)

    if available_vram >= 12 and complexity < 0.5:
        batch_size = 4
    elif available_vram >= 8 and complexity < 0.7:
        batch_size = 2
    else:
        batch_size = 1

    return BatchSettings(batch_size=batch_size, batch_count=TOTAL_IMAGES // batch_size)


@dataclass(frozen=True)
class ParameterBundle:
    cfg: float
    steps: int
    sampler: str


@dataclass(frozen=True)
class ParameterCorrelation:
    """Qualitative cfg/steps relationship plus alternative bundles.

    ``cfg_step_correlation`` is ``"positive"`` when higher cfg should come
    with more steps, ``"negative"`` when low/low or high/high combinations
    work best, and ``"neutral"`` otherwise.
    """

    cfg_step_correlation: str
    recommended_combinations: tuple[ParameterBundle, ...]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


_CORRELATION_BUNDLES: dict[ModelCategory, tuple[ParameterBundle, ...]] = {
    ModelCategory.ANIME: (
        ParameterBundle(7, 25, "Euler a"),
        ParameterBundle(8, 30, "DPM++ 2M Karras"),
        ParameterBundle(9, 35, "DDIM"),
    ),
    ModelCategory.REALISTIC: (
        ParameterBundle(9, 35, "DPM++ 2M Karras"),
        ParameterBundle(11, 45, "DPM++ SDE Karras"),
        ParameterBundle(12, 55, "LMS"),
    ),
    ModelCategory.ARTISTIC: (
        ParameterBundle(5, 25, "DPM++ SDE Karras"),
        ParameterBundle(7, 30, "Euler a"),
        ParameterBundle(6, 40, "LMS"),
    ),
}

_DEFAULT_BUNDLES: tuple[ParameterBundle, ...] = (
    ParameterBundle(7, 30, "DPM++ 2M Karras"),
    ParameterBundle(8, 35, "Euler a"),
    ParameterBundle(9, 40, "DDIM"),
)


def analyze_parameter_correlation(model_name: str, prompt: str) -> ParameterCorrelation:
    art_style = detect_art_style(prompt)
    complexity = analyze_prompt_complexity(prompt)
    category = categorize_model(model_name)

    if category == ModelCategory.REALISTIC or complexity > 0.7:
        correlation = "positive"
    elif category == ModelCategory.ARTISTIC or art_style == "abstract":
        correlation = "negative"
    else:
        correlation = "neutral"

    return ParameterCorrelation(
        cfg_step_correlation=correlation,
        recommended_combinations=_CORRELATION_BUNDLES.get(category, _DEFAULT_BUNDLES),
    )


def get_recommended_parameters(prompt: str, model_name: str) -> dict[str, Any]:
    """Recommend sampler, steps, cfg scale and resolution.

    Returns:
        Dict with keys ``sampler``, ``steps``, ``cfg_scale``, ``width`` and
        ``height``
    """
    art_style = detect_art_style(prompt)
    width, height = get_optimal_resolution(prompt, art_style)
    return {
        "sampler": recommend_sampler(model_name, prompt),
        "steps": get_optimal_step_count(prompt, art_style),
        "cfg_scale": get_optimal_cfg_scale(prompt, art_style),
        "width": width,
        "height": height,
    }


@dataclass
class GenerationParameters:
    """Full parameter set for one generation.

    ``seed`` of -1 asks the service for a random seed. Width and height are
    floored to a multiple of 8 on construction.
    """

    model: str
    sampler: str
    cfg_scale: float
    steps: int
    width: int
    height: int
    seed: int = -1
    batch_size: int = 1
    batch_count: int = 1
    negative_prompt: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.width = int(self.width) // 8 * 8
        self.height = int(self.height) // 8 * 8

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_request(self, prompt: str) -> GenerationRequest:
        """Convert to a txt2img request body for ``prompt``."""
        payload: dict[str, Any] = {
            "prompt": prompt,
            "negative_prompt": self.negative_prompt or None,
            "sampler_name": self.sampler,
            "steps": self.steps,
            "cfg_scale": self.cfg_scale,
            "width": self.width,
            "height": self.height,
            "seed": self.seed,
            "batch_size": self.batch_size,
            "n_iter": self.batch_count,
        }
        if self.model:
            payload["override_settings"] = {"sd_model_checkpoint": self.model}
        payload.update(self.extra)
        return GenerationRequest(**payload)


def get_optimized_parameters(
    prompt: str,
    available_models: list[str],
    current: Mapping[str, Any] | None = None,
    available_vram: float = 8,
) -> GenerationParameters:
    """Build a complete parameter set, letting caller values win.

    Args:
        prompt: Prompt the parameters are for
        available_models: Model names offered by the service; the first is
            used when the caller does not pick one
        current: Partial caller-supplied values keyed by
            :class:`GenerationParameters` field name. ``None`` values count
            as not supplied.
        available_vram: Free GPU memory in GB, for batch sizing

    Returns:
        GenerationParameters with every field populated
    """
    current = {k: v for k, v in (current or {}).items() if v is not None}
    art_style = detect_art_style(prompt)

    model = current.get("model") or (available_models[0] if available_models else "")

    if "width" in current and "height" in current:
        width, height = current["width"], current["height"]
    else:
        width, height = get_optimal_resolution(prompt, art_style)

    if "batch_size" in current and "batch_count" in current:
        batch_size, batch_count = current["batch_size"], current["batch_count"]
    else:
        batch = optimize_batch_settings(prompt, available_vram)
        batch_size, batch_count = batch.batch_size, batch.batch_count

    params = GenerationParameters(
        model=model,
        sampler=current.get("sampler") or recommend_sampler(model, prompt),
        cfg_scale=current.get("cfg_scale", get_optimal_cfg_scale(prompt, art_style)),
        steps=current.get("steps", get_optimal_step_count(prompt, art_style)),
        width=width,
        height=height,
        seed=current.get("seed", -1),
        batch_size=batch_size,
        batch_count=batch_count,
        negative_prompt=current.get("negative_prompt", ""),
    )
    logger.debug(f"Optimised parameters: {params}")
    return params


def generate_random_seed() -> int:
    return random.randint(0, MAX_SEED)
