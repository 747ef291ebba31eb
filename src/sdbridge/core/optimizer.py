"""Prompt optimisation pipeline.

This module wires the pure prompt stages together:

    translate → classify model → structure → tune for model → weight →
    serialise → apply emphasis → truncate → negative prompt → confidence

The pipeline is synchronous and keeps no state between calls, so it can be
invoked concurrently for independent requests. It never raises for empty or
malformed input; the worst case is a prompt made of quality keywords only.

Example:
    >>> result = optimize_prompt("a girl in anime style", model_name="animeMix")
    >>> result.model_type
    <ModelType.ANIME: 'anime'>
    >>> result.negative_prompt.startswith("lowres")
    True
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from sdbridge.core.classifier import ModelType, classify_model_type
from sdbridge.core.negative import generate_negative_prompt
from sdbridge.core.structurer import StructuredPrompt, optimize_for_model, structure_prompt
from sdbridge.core.translation import IdentityTranslator, Translator
from sdbridge.core.weighting import (
    DEFAULT_MAX_LENGTH,
    apply_emphasis,
    serialize_prompt,
    truncate_prompt,
    weight_keywords,
)

logger = logging.getLogger(__name__)

# Confidence reported for a translation whose word-count ratio looks sane.
GOOD_TRANSLATION_CONFIDENCE = 0.9
SUSPECT_TRANSLATION_CONFIDENCE = 0.5

_QUALITY_TERMS = re.compile(r"masterpiece|best quality|detailed", re.IGNORECASE)
_LIGHTING_TERMS = re.compile(r"lighting|sunlight|moonlight|backlight", re.IGNORECASE)
_COMPOSITION_TERMS = re.compile(r"view|shot|angle|perspective", re.IGNORECASE)


@dataclass
class OptimizedPromptResult:
    """Everything produced by one optimisation call."""

    original_text: str
    translated_text: str
    structured_prompt: StructuredPrompt
    optimized_prompt: str
    negative_prompt: str
    keyword_weights: dict[str, float] = field(default_factory=dict)
    confidence: float = GOOD_TRANSLATION_CONFIDENCE
    model_type: ModelType = ModelType.UNKNOWN
    translation_degraded: bool = False

    def to_dict(self) -> dict:
        return {
            "original_text": self.original_text,
            "translated_text": self.translated_text,
            "structured_prompt": self.structured_prompt.to_dict(),
            "optimized_prompt": self.optimized_prompt,
            "negative_prompt": self.negative_prompt,
            "keyword_weights": dict(self.keyword_weights),
            "confidence": self.confidence,
            "model_type": self.model_type.value,
            "translation_degraded": self.translation_degraded,
        }


def check_translation_quality(original: str, translated: str) -> float:
    """Estimate translation quality from the word-count ratio.

    Japanese descriptions usually have fewer whitespace-separated words
    than their English translation, so a ratio below 1 or above 5 is
    treated as suspicious.
    """
    original_words = max(1, len(original.split()))
    translated_words = len(translated.split())
    ratio = translated_words / original_words

    if ratio < 1 or ratio > 5:
        return SUSPECT_TRANSLATION_CONFIDENCE
    return GOOD_TRANSLATION_CONFIDENCE


def calculate_prompt_similarity(prompt1: str, prompt2: str) -> float:
    """Jaccard similarity of the lower-cased whitespace token sets."""
    tokens1 = set(prompt1.lower().split())
    tokens2 = set(prompt2.lower().split())
    union = tokens1 | tokens2
    if not union:
        return 1.0
    return len(tokens1 & tokens2) / len(union)


def expand_prompt(prompt: str, add_details: bool = True) -> str:
    """Add generic quality, lighting and composition terms when missing."""
    if not add_details:
        return prompt

    expanded = prompt
    if not _QUALITY_TERMS.search(expanded):
        expanded = f"masterpiece, best quality, highly detailed, {expanded}"
    if not _LIGHTING_TERMS.search(expanded):
        expanded += ", perfect lighting"
    if not _COMPOSITION_TERMS.search(expanded):
        expanded += ", perfect composition"
    return expanded


def optimize_prompt(
    raw_text: str,
    model_name: str = "",
    max_length: int = DEFAULT_MAX_LENGTH,
    translator: Translator | None = None,
) -> OptimizedPromptResult:
    """Turn a free-form description into a weighted prompt and negative prompt.

    Args:
        raw_text: User description, possibly in Japanese
        model_name: Target checkpoint name, used for model tuning
        max_length: Character bound; longer prompts go through
            :func:`truncate_prompt`
        translator: Translation capability; identity when omitted

    Returns:
        OptimizedPromptResult with the optimised prompt, the negative prompt
        and the intermediate structures
    """
    raw_text = raw_text or ""
    translator = translator or IdentityTranslator()

    translation = translator.translate(raw_text)
    translated = translation.text

    model_type = classify_model_type(model_name)
    structured = optimize_for_model(structure_prompt(translated), model_type)

    weights = weight_keywords(structured)
    prompt = apply_emphasis(serialize_prompt(structured), weights)
    if len(prompt) > max_length:
        prompt = truncate_prompt(prompt, max_length)

    negative = generate_negative_prompt(structured, model_type)

    confidence = check_translation_quality(raw_text, translated)
    if translation.degraded:
        confidence /= 2
        logger.warning("Translation degraded, optimising untranslated text")

    logger.debug(
        f"Optimised prompt for model type {model_type.value}: "
        f"{len(weights)} weighted phrases, {len(prompt)} chars"
    )

    return OptimizedPromptResult(
        original_text=raw_text,
        translated_text=translated,
        structured_prompt=structured,
        optimized_prompt=prompt,
        negative_prompt=negative,
        keyword_weights=weights,
        confidence=confidence,
        model_type=model_type,
        translation_degraded=translation.degraded,
    )
