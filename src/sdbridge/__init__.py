"""sdbridge - prompt optimisation and resilient generation for Stable Diffusion WebUI."""

__version__ = "0.1.0"

from sdbridge.core import SDBridgeConfig, SDBridgeService, config

__all__ = [
    "SDBridgeConfig",
    "SDBridgeService",
    "config",
]
