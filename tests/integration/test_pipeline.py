"""End-to-end tests: description in, generation request out."""

from __future__ import annotations

import httpx
import pytest
from conftest import SAMPLE_MODELS, SAMPLE_RESULT

from sdbridge.core.client import TXT2IMG_PATH
from sdbridge.core.classifier import ModelType
from sdbridge.core.negative import (
    BASE_NEGATIVE_TERMS,
    MODEL_NEGATIVE_SEGMENTS,
    PERSON_NEGATIVE_SEGMENT,
)
from sdbridge.core.optimizer import optimize_prompt
from sdbridge.core.parameters import get_optimized_parameters
from sdbridge.core.translation import HttpTranslator


def japanese_translator() -> HttpTranslator:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"translatedText": "a smiling girl under soft moonlight"})

    return HttpTranslator("http://translate.test", transport=httpx.MockTransport(handler))


class TestPromptPipeline:
    """Tests for the optimisation pipeline as a whole."""

    def test_translated_anime_person(self):
        translator = japanese_translator()
        result = optimize_prompt(
            "月明かりの下で微笑む少女", model_name="anythingV5_anime", translator=translator
        )
        translator.close()

        assert result.translated_text == "a smiling girl under soft moonlight"
        assert result.negative_prompt == ", ".join(
            [
                ", ".join(BASE_NEGATIVE_TERMS),
                MODEL_NEGATIVE_SEGMENTS[ModelType.ANIME],
                PERSON_NEGATIVE_SEGMENT,
            ]
        )
        assert result.structured_prompt.subject == ["a smiling girl under soft"]
        assert result.structured_prompt.lighting == ["under soft moonlight"]
        assert "anime style" in result.structured_prompt.quality
        assert result.translation_degraded is False

    def test_translation_outage(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        translator = HttpTranslator("http://translate.test", transport=httpx.MockTransport(handler))
        result = optimize_prompt("少女", translator=translator)
        translator.close()

        assert result.translation_degraded is True
        assert result.translated_text == "少女"
        assert result.confidence == pytest.approx(0.45)
        assert result.optimized_prompt.startswith("(masterpiece:1.0)")


@pytest.mark.anyio
class TestGenerationFlow:
    """Tests for optimised parameters sent through the client."""

    async def test_optimised_request_sent(self, make_client, webui):
        webui.add("POST", TXT2IMG_PATH, (200, SAMPLE_RESULT))
        optimized = optimize_prompt("a portrait of a woman", model_name="realisticVision")
        params = get_optimized_parameters(
            optimized.optimized_prompt, [m["model_name"] for m in SAMPLE_MODELS]
        )
        params.negative_prompt = optimized.negative_prompt

        async with make_client() as client:
            result = await client.txt2img(params.to_request(optimized.optimized_prompt))

        sent = webui.last_json("POST", TXT2IMG_PATH)
        assert sent["prompt"] == optimized.optimized_prompt
        assert sent["negative_prompt"] == optimized.negative_prompt
        assert sent["override_settings"] == {"sd_model_checkpoint": "anythingV5_anime"}
        assert sent["width"] % 8 == 0 and sent["height"] % 8 == 0
        assert result.seeds == [1234, 1235]
