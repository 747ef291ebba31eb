"""Keyword weighting, emphasis brackets and prompt length control.

Weights are a pure function of category membership. They are rendered into
the ``(phrase:weight)`` emphasis notation understood by the Stable Diffusion
WebUI, quantised to four tags:

======================  ==========
Weight                  Rendering
======================  ==========
``>= 1.4``              ``(phrase:1.4)``
``>= 1.2``              ``(phrase:1.2)``
``>= 1.0``              ``(phrase:1.0)``
``0.7 < w < 1.0``       unchanged
``<= 0.7``              ``(phrase:0.7)``
======================  ==========
"""

from __future__ import annotations

import re

from sdbridge.core.structurer import StructuredPrompt

CATEGORY_WEIGHTS: dict[str, float] = {
    "subject": 1.5,
    "style": 1.3,
    "quality": 1.0,
    "composition": 0.9,
    "lighting": 0.8,
    "colors": 0.8,
    "details": 0.7,
    "additional": 0.6,
}

# Weight assignment and serialisation order. A phrase listed in two
# categories keeps the weight of the later one.
CATEGORY_ORDER: tuple[str, ...] = (
    "subject",
    "style",
    "quality",
    "composition",
    "lighting",
    "colors",
    "details",
    "additional",
)

# Phrases this short are too ambiguous to bracket safely.
MIN_EMPHASIS_LENGTH = 4

DEFAULT_MAX_LENGTH = 500

_NORMALIZE_STRIP = re.compile(r"[():,.0-9]")


def weight_keywords(structured: StructuredPrompt) -> dict[str, float]:
    """Assign a weight to every phrase of ``structured``.

    Returns:
        Mapping phrase → weight whose keys are exactly the union of all
        category lists.
    """
    weights: dict[str, float] = {}
    for category in CATEGORY_ORDER:
        weight = CATEGORY_WEIGHTS[category]
        for phrase in getattr(structured, category):
            weights[phrase] = weight
    return weights


def serialize_prompt(structured: StructuredPrompt) -> str:
    """Join all phrases in serialisation order with ``", "``."""
    return ", ".join(
        phrase for category in CATEGORY_ORDER for phrase in getattr(structured, category)
    )


def emphasis_tag(weight: float) -> str | None:
    """Return the emphasis tag for ``weight`` or None when left unbracketed."""
    if weight >= 1.4:
        return "1.4"
    if weight >= 1.2:
        return "1.2"
    if weight >= 1.0:
        return "1.0"
    if weight <= 0.7:
        return "0.7"
    return None


def apply_emphasis(prompt: str, weights: dict[str, float]) -> str:
    """Wrap weighted phrases of ``prompt`` in emphasis brackets.

    Phrases are processed by descending weight. Only whole-word,
    case-sensitive occurrences are replaced, so ``"cat"`` never rewrites the
    inside of ``"category"``.

    Args:
        prompt: Serialised prompt
        weights: Phrase → weight mapping from :func:`weight_keywords`

    Returns:
        The prompt with emphasis notation applied
    """
    weighted = prompt
    for phrase, weight in sorted(weights.items(), key=lambda item: item[1], reverse=True):
        if len(phrase) < MIN_EMPHASIS_LENGTH:
            continue

        tag = emphasis_tag(weight)
        if tag is None:
            continue

        replacement = f"({phrase}:{tag})"
        pattern = re.compile(rf"\b{re.escape(phrase)}\b")
        weighted = pattern.sub(lambda _m, r=replacement: r, weighted)
    return weighted


def normalize_token(token: str) -> str:
    """Strip brackets, separators and digits and lower-case the token."""
    return _NORMALIZE_STRIP.sub("", token).lower()


def truncate_prompt(prompt: str, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Drop repeated concepts and bound the prompt length.

    Tokens whose normalised form was already emitted are skipped. Tokens are
    appended until the joined string reaches ``max_length``; the length is
    checked after appending, so the result can exceed ``max_length`` by the
    length of the last admitted token.

    Args:
        prompt: Prompt to shorten
        max_length: Character bound

    Returns:
        The shortened prompt
    """
    kept: list[str] = []
    seen: set[str] = set()
    length = -1  # joined length of ``kept``; -1 accounts for no leading space

    for token in prompt.split():
        key = normalize_token(token)
        if key in seen:
            continue

        seen.add(key)
        kept.append(token)
        length += len(token) + 1

        if length >= max_length:
            break

    return " ".join(kept)
