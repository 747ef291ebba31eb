"""Configuration management for sdbridge.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the SDBRIDGE_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (SDBRIDGE_* prefix)
2. .env file in the project root
3. Default values defined in SDBridgeConfig

Example .env file:
    SDBRIDGE_SD_HOST=127.0.0.1
    SDBRIDGE_SD_PORT=7860
    SDBRIDGE_SD_TIMEOUT=60
    SDBRIDGE_RETRY_MAX_RETRIES=3
    SDBRIDGE_TRANSLATION_URL=https://translation.example.com/translate

Global Configuration Instance
------------------------------
A global `config` instance is created at module import time for the HTTP
front door (``sdbridge.api.main``). Core classes never reach for it: the
client, translator and service all receive their configuration through their
constructors, so tests and embedding applications can run several
independently configured instances side by side.

Usage Example
-------------
    from sdbridge.core.config import SDBridgeConfig
    from sdbridge.core.client import StableDiffusionClient

    cfg = SDBridgeConfig(sd_host="gpu-box", sd_port=7861)
    async with StableDiffusionClient(cfg) as client:
        models = await client.list_models()

Retry Settings
--------------
The four ``retry_*`` fields feed :class:`~sdbridge.core.retry.RetryPolicy`
through :meth:`SDBridgeConfig.retry_policy`. Delays are expressed in seconds.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from sdbridge.core.retry import RetryPolicy


class SDBridgeConfig(BaseSettings):
    """Main configuration for sdbridge.

    Attributes
    ----------
    Generation Service:
        sd_host : str
            Host of the Stable Diffusion WebUI API
        sd_port : int
            Port of the Stable Diffusion WebUI API
        sd_timeout : float
            Per-request timeout in seconds (generation calls can be slow)
        sd_api_key : str | None
            Optional bearer token sent as ``Authorization`` header

    Retry Policy:
        retry_max_retries : int
            Retries after the first attempt for retryable failures
        retry_initial_delay : float
            Delay before the first retry, in seconds
        retry_max_delay : float
            Upper bound for any single retry delay, in seconds
        retry_factor : float
            Exponential backoff factor

    Progress:
        progress_poll_interval : float
            Seconds between progress polls while a generation is running

    Translation:
        translation_url : str | None
            Endpoint of the external translation service (identity when unset)
        translation_source_lang : str
            Source language code sent to the translation service
        translation_target_lang : str
            Target language code sent to the translation service
        translation_timeout : float
            Timeout for translation requests, in seconds

    Prompt Optimisation:
        default_max_length : int
            Default character bound for optimised prompts
        available_vram_gb : float
            VRAM assumed when recommending batch sizes

    Server:
        server_host : str
            Front door bind address
        server_port : int
            Front door port
        log_level : Literal["DEBUG", "INFO", "WARNING", "ERROR"]
            Root log level applied by the entry point

    Examples
    --------
        >>> cfg = SDBridgeConfig(sd_port=7861, retry_max_retries=5)
        >>> cfg.sd_base_url
        'http://127.0.0.1:7861'
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SDBRIDGE_",
        case_sensitive=False,
    )

    # Generation service connection
    sd_host: str = Field(
        default="127.0.0.1",
        description="Host of the Stable Diffusion WebUI API",
    )
    sd_port: int = Field(
        default=7860,
        description="Port of the Stable Diffusion WebUI API",
        ge=1,
        le=65535,
    )
    sd_timeout: float = Field(
        default=60.0,
        description="Per-request timeout in seconds",
        gt=0,
    )
    sd_api_key: str | None = Field(
        default=None,
        description="Optional bearer token for the generation service",
    )

    # Retry policy
    retry_max_retries: int = Field(default=3, ge=0, le=20)
    retry_initial_delay: float = Field(default=1.0, ge=0.0)
    retry_max_delay: float = Field(default=10.0, ge=0.0)
    retry_factor: float = Field(default=2.0, ge=1.0)

    # Progress polling
    progress_poll_interval: float = Field(
        default=0.5,
        description="Seconds between progress polls",
        gt=0,
    )

    # Translation
    translation_url: str | None = Field(
        default=None,
        description="External translation endpoint (identity translation when unset)",
    )
    translation_source_lang: str = Field(default="ja")
    translation_target_lang: str = Field(default="en")
    translation_timeout: float = Field(default=10.0, gt=0)

    # Prompt optimisation
    default_max_length: int = Field(
        default=500,
        description="Default character bound for optimised prompts",
        ge=1,
    )
    available_vram_gb: float = Field(
        default=8.0,
        description="VRAM assumed when recommending batch sizes",
        ge=0,
    )

    # Front door
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=3003,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    @property
    def sd_base_url(self) -> str:
        """Base URL of the generation service."""
        return f"http://{self.sd_host}:{self.sd_port}"

    def retry_policy(self) -> RetryPolicy:
        """Build the retry policy described by the ``retry_*`` fields."""
        return RetryPolicy(
            max_retries=self.retry_max_retries,
            initial_delay=self.retry_initial_delay,
            max_delay=max(self.retry_max_delay, self.retry_initial_delay),
            factor=self.retry_factor,
        )


# Global configuration instance used by the HTTP front door.
config = SDBridgeConfig()
