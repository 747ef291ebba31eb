"""Prompt structuring: bucket free text into semantic phrase categories.

The structurer turns (translated) free text into a :class:`StructuredPrompt`
holding eight ordered phrase lists. It is deliberately simple keyword
matching rather than NLP: every token is tested against an ordered list of
``(category, pattern)`` matchers and the first match wins.

Algorithm
---------
1. Split the text into sentences on ASCII and full-width terminal
   punctuation (``. ! ? 。 ！ ？``).
2. Tokenize each sentence on whitespace.
3. For each token, test the matchers in priority order
   style → subject → composition → lighting → colors → details.
4. For a matching token, extract a phrase made of the token plus up to two
   neighbours on each side (clipped to the sentence) and append it to the
   winning category.
5. Inject the first four quality keywords, whatever the content.
6. Deduplicate each list, keeping first occurrences.

Tokens that match nothing are not structured; they remain visible in the
original text of the optimisation result.

Model Tuning
------------
:func:`optimize_for_model` adjusts a structured prompt for the target
model family (adds family-specific quality keywords and drops style phrases
that fight the model).
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Iterator

from sdbridge.core.classifier import ModelType

QUALITY_KEYWORDS: list[str] = [
    "masterpiece",
    "best quality",
    "high quality",
    "highly detailed",
    "detailed",
    "intricate details",
    "ultra detailed",
    "8k",
    "HDR",
    "high resolution",
    "cinematic",
    "professional",
]

# Number of quality keywords always injected.
QUALITY_INJECTION_COUNT = 4

# Phrase window: tokens kept on each side of a matching token.
PHRASE_RADIUS = 2

_SENTENCE_SPLIT = re.compile(r"[.!?。！？]")

# Evaluated in order, first match wins. "portrait" and "landscape" also
# appear in the composition pattern but are always claimed by subject.
CATEGORY_MATCHERS: list[tuple[str, re.Pattern[str]]] = [
    (
        "style",
        re.compile(
            r"style|artwork|painting|illustration|rendered|animation|cartoon|anime|manga"
            r"|realistic|photo|sketch",
            re.IGNORECASE,
        ),
    ),
    (
        "subject",
        re.compile(
            r"person|woman|man|girl|boy|character|portrait|landscape|animal|creature|object",
            re.IGNORECASE,
        ),
    ),
    (
        "composition",
        re.compile(
            r"view|angle|perspective|shot|close-up|wide|portrait|landscape|composition",
            re.IGNORECASE,
        ),
    ),
    (
        "lighting",
        re.compile(
            r"light|lighting|shadow|bright|dark|sunlight|moonlight|backlight|spotlight",
            re.IGNORECASE,
        ),
    ),
    (
        "colors",
        re.compile(
            r"color|colours|red|blue|green|yellow|purple|pink|black|white|vibrant|pastel"
            r"|monochrome",
            re.IGNORECASE,
        ),
    ),
    (
        "details",
        re.compile(r"detailed|texture|intricate|pattern|design|ornate|complex", re.IGNORECASE),
    ),
]


def _unique(items: list[str]) -> list[str]:
    """Remove duplicates while preserving first-seen order."""
    return list(dict.fromkeys(items))


@dataclass
class StructuredPrompt:
    """Eight ordered phrase lists describing one prompt.

    Created fresh for every optimisation call and never shared between
    requests. Within each list phrases are unique (case-sensitive) once
    :meth:`dedupe` has run, which :func:`structure_prompt` always does.
    """

    subject: list[str] = field(default_factory=list)
    style: list[str] = field(default_factory=list)
    composition: list[str] = field(default_factory=list)
    lighting: list[str] = field(default_factory=list)
    quality: list[str] = field(default_factory=list)
    details: list[str] = field(default_factory=list)
    colors: list[str] = field(default_factory=list)
    additional: list[str] = field(default_factory=list)

    def categories(self) -> Iterator[tuple[str, list[str]]]:
        """Iterate ``(category, phrases)`` in declaration order."""
        for f in fields(self):
            yield f.name, getattr(self, f.name)

    def dedupe(self) -> "StructuredPrompt":
        """Deduplicate every list in place and return self."""
        for name, phrases in self.categories():
            setattr(self, name, _unique(phrases))
        return self

    def all_phrases(self) -> list[str]:
        """Return every phrase across all categories (may repeat across lists)."""
        return [phrase for _, phrases in self.categories() for phrase in phrases]

    def is_empty(self) -> bool:
        return not any(phrases for _, phrases in self.categories())

    def to_dict(self) -> dict[str, list[str]]:
        return asdict(self)


def split_sentences(text: str) -> list[str]:
    """Split text on sentence-terminal punctuation, dropping blank pieces."""
    return [s for s in _SENTENCE_SPLIT.split(text) if s.strip()]


def extract_phrase(words: list[str], index: int, radius: int = PHRASE_RADIUS) -> str:
    """Join the word at ``index`` with up to ``radius`` neighbours per side."""
    start = max(0, index - radius)
    end = min(len(words), index + radius + 1)
    return " ".join(words[start:end])


def classify_token(token: str) -> str | None:
    """Return the first category whose pattern matches ``token``, if any."""
    for category, pattern in CATEGORY_MATCHERS:
        if pattern.search(token):
            return category
    return None


def structure_prompt(translated_text: str) -> StructuredPrompt:
    """Bucket phrases of ``translated_text`` into semantic categories.

    Args:
        translated_text: English (or untranslated fallback) description

    Returns:
        A deduplicated :class:`StructuredPrompt`. Empty input yields empty
        lists everywhere except ``quality``; this function never raises.
    """
    structured = StructuredPrompt()

    for sentence in split_sentences(translated_text or ""):
        words = sentence.split()
        for index, word in enumerate(words):
            category = classify_token(word)
            if category is None:
                continue
            getattr(structured, category).append(extract_phrase(words, index))

    structured.quality = QUALITY_KEYWORDS[:QUALITY_INJECTION_COUNT]
    return structured.dedupe()


# ---------------------------------------------------------------------------
# Model-specific tuning.
# ---------------------------------------------------------------------------

_MODEL_QUALITY_ADDITIONS: dict[ModelType, list[str]] = {
    ModelType.ANIME: ["anime style", "high quality anime", "beautiful anime art"],
    ModelType.REALISTIC: ["photorealistic", "hyperrealistic", "highly detailed", "DSLR"],
    ModelType.FANTASY: ["fantasy art", "epic", "dramatic lighting"],
    ModelType.ABSTRACT: ["abstract art", "surreal", "experimental"],
}

_MODEL_STYLE_EXCLUSIONS: dict[ModelType, re.Pattern[str]] = {
    ModelType.ANIME: re.compile(r"realistic|photorealistic|photograph", re.IGNORECASE),
    ModelType.REALISTIC: re.compile(r"anime|manga|cartoon", re.IGNORECASE),
}


def optimize_for_model(structured: StructuredPrompt, model_type: ModelType) -> StructuredPrompt:
    """Return a copy of ``structured`` tuned for ``model_type``.

    Anime and realistic models get family quality keywords and lose style
    phrases from the opposing family; fantasy and abstract models only get
    extra quality keywords; special and unknown models are left unchanged.
    """
    tuned = replace(
        structured,
        **{name: list(phrases) for name, phrases in structured.categories()},
    )

    tuned.quality.extend(_MODEL_QUALITY_ADDITIONS.get(model_type, []))

    exclusion = _MODEL_STYLE_EXCLUSIONS.get(model_type)
    if exclusion is not None:
        tuned.style = [s for s in tuned.style if not exclusion.search(s)]

    return tuned.dedupe()
