"""Unit tests for the prompt optimisation pipeline."""

from __future__ import annotations

import pytest

from sdbridge.core.classifier import ModelType
from sdbridge.core.negative import MODEL_NEGATIVE_SEGMENTS, PERSON_NEGATIVE_SEGMENT
from sdbridge.core.optimizer import (
    calculate_prompt_similarity,
    check_translation_quality,
    expand_prompt,
    optimize_prompt,
)
from sdbridge.core.translation import TranslationResult
from sdbridge.core.weighting import normalize_token


class StaticTranslator:
    """Translator returning a fixed result."""

    def __init__(self, text: str, degraded: bool = False) -> None:
        self.result = TranslationResult(text=text, degraded=degraded)
        self.calls: list[str] = []

    def translate(self, text: str) -> TranslationResult:
        self.calls.append(text)
        return self.result


class TestOptimizePrompt:
    """Tests for optimize_prompt function."""

    def test_subject_emphasised_first(self):
        result = optimize_prompt("a girl standing in a garden", model_name="anythingV5_anime")

        assert result.optimized_prompt.startswith("(a girl standing in:1.4), (masterpiece:1.0)")
        assert result.model_type == ModelType.ANIME

    def test_weights_cover_structured_prompt(self):
        result = optimize_prompt("anime girl under soft moonlight, vibrant colors")

        assert set(result.keyword_weights) == set(result.structured_prompt.all_phrases())

    def test_empty_input(self):
        """Test that empty input yields a quality-only prompt and never raises."""
        result = optimize_prompt("")

        assert result.optimized_prompt == (
            "(masterpiece:1.0), (best quality:1.0), (high quality:1.0), (highly detailed:1.0)"
        )
        assert result.negative_prompt.startswith("lowres")

    def test_none_input(self):
        result = optimize_prompt(None)
        assert result.original_text == ""

    def test_anime_person_negative_prompt(self):
        result = optimize_prompt("a smiling girl in a park", model_name="waifuMix")
        negative = result.negative_prompt

        anime_at = negative.index(MODEL_NEGATIVE_SEGMENTS[ModelType.ANIME])
        person_at = negative.index(PERSON_NEGATIVE_SEGMENT)
        assert negative.index("out of frame") < anime_at < person_at

    def test_long_prompt_truncated_without_duplicates(self):
        text = ". ".join(f"girl number{i} wearing a red dress" for i in range(40))
        result = optimize_prompt(text, max_length=120)

        tokens = result.optimized_prompt.split()
        keys = [normalize_token(t) for t in tokens]
        assert len(keys) == len(set(keys))
        assert len(result.optimized_prompt) <= 120 + max(len(t) for t in tokens) + 1

    def test_translator_used(self):
        translator = StaticTranslator("a girl in the garden")
        result = optimize_prompt("庭にいる女の子", translator=translator)

        assert translator.calls == ["庭にいる女の子"]
        assert result.translated_text == "a girl in the garden"
        assert result.structured_prompt.subject == ["a girl in the"]

    def test_confidence_from_word_ratio(self):
        translator = StaticTranslator("a girl in the garden")
        result = optimize_prompt("庭にいる女の子", translator=translator)

        assert result.confidence == pytest.approx(0.9)

    def test_degraded_translation_halves_confidence(self):
        translator = StaticTranslator("庭にいる女の子", degraded=True)
        result = optimize_prompt("庭にいる女の子", translator=translator)

        assert result.translation_degraded is True
        assert result.confidence == pytest.approx(0.45)

    def test_to_dict(self):
        data = optimize_prompt("anime girl", model_name="realisticVision").to_dict()

        assert data["model_type"] == "realistic"
        assert data["structured_prompt"]["style"] == []
        assert set(data) >= {
            "optimized_prompt",
            "negative_prompt",
            "structured_prompt",
            "keyword_weights",
            "confidence",
        }


class TestCheckTranslationQuality:
    """Tests for check_translation_quality function."""

    @pytest.mark.parametrize(
        "original,translated,expected",
        [
            ("猫", "a cat", 0.9),
            ("猫", "a cat on a mat", 0.9),
            ("猫", "a cat on a red mat", 0.5),
            ("a cat on a mat", "cat", 0.5),
            ("", "", 0.5),
        ],
    )
    def test_ratio(self, original, translated, expected):
        assert check_translation_quality(original, translated) == expected


class TestCalculatePromptSimilarity:
    """Tests for calculate_prompt_similarity function."""

    def test_identical(self):
        assert calculate_prompt_similarity("a cat", "A CAT") == 1.0

    def test_disjoint(self):
        assert calculate_prompt_similarity("a cat", "the dog") == 0.0

    def test_partial(self):
        assert calculate_prompt_similarity("a red cat", "a blue cat") == pytest.approx(0.5)


class TestExpandPrompt:
    """Tests for expand_prompt function."""

    def test_adds_everything_missing(self):
        assert expand_prompt("a cat") == (
            "masterpiece, best quality, highly detailed, a cat, "
            "perfect lighting, perfect composition"
        )

    def test_keeps_existing_terms(self):
        prompt = "detailed cat, moonlight, close shot"
        assert expand_prompt(prompt) == prompt

    def test_disabled(self):
        assert expand_prompt("a cat", add_details=False) == "a cat"
