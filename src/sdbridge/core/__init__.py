"""Core functionality for the Stable Diffusion bridge.

This module provides the pieces a front door builds on:

- **Prompt Optimization Pipeline**: turns a free-form description into a
  structured, weighted, length-bounded prompt and a matching negative prompt
- **Resilient Generation Client**: validates parameters, talks to the
  Stable Diffusion WebUI API, retries transient failures, polls progress and
  supports cancellation
- **SDBridgeService**: facade combining both
- **SDBridgeConfig**: configuration management using Pydantic Settings
- **config**: global configuration instance (loads from environment variables)

Architecture Overview
---------------------
1. **Configuration Layer** (config.py):
   - Environment-based configuration using Pydantic Settings
   - All settings prefixed with SDBRIDGE_ in .env files

2. **Prompt Layer** (pure, synchronous):
   - classifier.py: model-name and art-style classification
   - structurer.py: phrase bucketing and model tuning
   - weighting.py: weights, emphasis brackets, truncation
   - negative.py: negative prompt assembly
   - translation.py: pluggable translation with graceful degradation
   - optimizer.py: the pipeline wiring the stages together

3. **Parameter Layer** (parameters.py):
   - steps, cfg scale, sampler, resolution and batch recommendations

4. **Generation Layer** (async):
   - errors.py: typed error taxonomy with remedies
   - retry.py: capped exponential backoff policy
   - validation.py: range checks before submission
   - client.py: httpx based WebUI client
   - session.py: one generation with scoped progress polling

Usage Example
-------------
    from sdbridge.core import SDBridgeService, config

    service = SDBridgeService(config)
    optimized = await service.optimize_prompt("a girl in a garden, anime style")
    result = await service.text_to_image("a girl in a garden, anime style")
    await service.aclose()
"""

from sdbridge.core.client import StableDiffusionClient
from sdbridge.core.config import SDBridgeConfig, config
from sdbridge.core.errors import (
    DecodeError,
    RejectedRequestError,
    SDBridgeError,
    ServiceError,
    TransportError,
    ValidationError,
)
from sdbridge.core.models import (
    GenerationRequest,
    GenerationResult,
    Img2ImgRequest,
    ProgressSnapshot,
)
from sdbridge.core.optimizer import OptimizedPromptResult, optimize_prompt
from sdbridge.core.parameters import GenerationParameters, get_recommended_parameters
from sdbridge.core.retry import RetryPolicy
from sdbridge.core.service import SDBridgeService
from sdbridge.core.session import GenerationSession
from sdbridge.core.structurer import StructuredPrompt

__all__ = [
    "DecodeError",
    "GenerationParameters",
    "GenerationRequest",
    "GenerationResult",
    "GenerationSession",
    "Img2ImgRequest",
    "OptimizedPromptResult",
    "ProgressSnapshot",
    "RejectedRequestError",
    "RetryPolicy",
    "SDBridgeConfig",
    "SDBridgeError",
    "SDBridgeService",
    "ServiceError",
    "StableDiffusionClient",
    "StructuredPrompt",
    "TransportError",
    "ValidationError",
    "config",
    "get_recommended_parameters",
    "optimize_prompt",
]
