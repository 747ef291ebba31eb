"""Keyword classification of model names and prompt art styles.

Two independent classifications exist because they serve different stages:

- :class:`ModelType` drives the prompt pipeline (model tuning and negative
  prompt segments).
- :class:`ModelCategory` drives parameter recommendation (sampler choice and
  cfg/steps correlation).

All checks are case-insensitive substring tests evaluated in a fixed order;
the first hit wins.
"""

from __future__ import annotations

from enum import Enum


class ModelType(str, Enum):
    """Prompt-pipeline classification of a target model."""

    ANIME = "anime"
    REALISTIC = "realistic"
    FANTASY = "fantasy"
    ABSTRACT = "abstract"
    SPECIAL = "special"
    UNKNOWN = "unknown"


class ModelCategory(str, Enum):
    """Recommendation-engine classification of a target model."""

    ANIME = "anime"
    REALISTIC = "realistic"
    GENERAL = "general"
    ARTISTIC = "artistic"
    STYLIZED = "stylized"


class SamplerCategory(str, Enum):
    """Coarse behaviour of a sampler."""

    FAST = "fast"
    DETAILED = "detailed"
    BALANCED = "balanced"
    CREATIVE = "creative"


# Ordered (result, keywords) rules. Order matters: "realistic" also contains
# "real", and "artistic" contains "art".
_MODEL_TYPE_RULES: list[tuple[ModelType, tuple[str, ...]]] = [
    (ModelType.ANIME, ("anime", "manga", "waifu")),
    (ModelType.REALISTIC, ("realistic", "photo", "real")),
    (ModelType.FANTASY, ("fantasy", "dream")),
]

_MODEL_CATEGORY_RULES: list[tuple[ModelCategory, tuple[str, ...]]] = [
    (ModelCategory.ANIME, ("anime", "manga", "waifu")),
    (ModelCategory.REALISTIC, ("realistic", "photo", "real")),
    (ModelCategory.ARTISTIC, ("art", "paint", "artist")),
    (ModelCategory.STYLIZED, ("style", "cartoon")),
]

_ART_STYLE_RULES: list[tuple[str, tuple[str, ...]]] = [
    ("anime", ("anime", "manga", "cartoon")),
    ("realistic", ("photo", "realistic", "photograph")),
    ("artistic", ("painting", "artistic", "oil")),
    ("3d", ("3d", "render", "cg")),
]


def _first_match(text: str, rules, default):
    lowered = text.lower()
    for result, keywords in rules:
        if any(keyword in lowered for keyword in keywords):
            return result
    return default


def classify_model_type(model_name: str) -> ModelType:
    """Classify a model name for prompt tuning.

    Args:
        model_name: Checkpoint name or title as reported by the service

    Returns:
        The matching :class:`ModelType`, ``UNKNOWN`` when nothing matches
    """
    return _first_match(model_name or "", _MODEL_TYPE_RULES, ModelType.UNKNOWN)


def categorize_model(model_name: str) -> ModelCategory:
    """Classify a model name for parameter recommendation.

    Args:
        model_name: Checkpoint name or title as reported by the service

    Returns:
        The matching :class:`ModelCategory`, ``GENERAL`` when nothing matches
    """
    return _first_match(model_name or "", _MODEL_CATEGORY_RULES, ModelCategory.GENERAL)


def detect_art_style(prompt: str) -> str:
    """Detect the dominant art style of a prompt.

    Returns:
        ``"anime"``, ``"realistic"``, ``"artistic"``, ``"3d"`` or ``"general"``
    """
    return _first_match(prompt or "", _ART_STYLE_RULES, "general")
