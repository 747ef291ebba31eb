"""Pluggable translation step of the prompt pipeline.

Translation is an external capability. Two implementations ship:

- :class:`IdentityTranslator` returns its input unchanged. It is the
  documented fallback when no translation service is configured.
- :class:`HttpTranslator` posts the text to a translation endpoint. Any
  failure is logged and absorbed: the original text comes back flagged as
  ``degraded`` so the pipeline can lower its confidence instead of failing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from sdbridge.core.config import SDBridgeConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranslationResult:
    """Outcome of one translation call."""

    text: str
    degraded: bool = False


class Translator(Protocol):
    """Anything that can translate prompt text."""

    def translate(self, text: str) -> TranslationResult: ...


class IdentityTranslator:
    """Translator that returns the input unchanged."""

    def translate(self, text: str) -> TranslationResult:
        return TranslationResult(text=text)


class HttpTranslator:
    """Translator backed by a JSON translation endpoint.

    The endpoint receives ``{"text", "source", "target"}`` and must answer
    with a JSON object containing ``translatedText``.

    Args:
        url: Translation endpoint
        source: Source language code
        target: Target language code
        timeout: Request timeout in seconds
        transport: Optional custom transport (useful for testing)
    """

    def __init__(
        self,
        url: str,
        *,
        source: str = "ja",
        target: str = "en",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = url
        self.source = source
        self.target = target
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def translate(self, text: str) -> TranslationResult:
        if not text or not text.strip():
            return TranslationResult(text=text)

        try:
            response = self._client.post(
                self.url,
                json={"text": text, "source": self.source, "target": self.target},
            )
            response.raise_for_status()
            translated = response.json().get("translatedText")
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning(f"Translation failed, using original text: {e}")
            return TranslationResult(text=text, degraded=True)

        if not isinstance(translated, str) or not translated.strip():
            logger.warning("Translation service returned no text, using original text")
            return TranslationResult(text=text, degraded=True)

        return TranslationResult(text=translated)


def build_translator(config: SDBridgeConfig) -> Translator:
    """Return the translator described by ``config``."""
    if config.translation_url:
        logger.info(f"Using HTTP translator at {config.translation_url}")
        return HttpTranslator(
            config.translation_url,
            source=config.translation_source_lang,
            target=config.translation_target_lang,
            timeout=config.translation_timeout,
        )
    return IdentityTranslator()
