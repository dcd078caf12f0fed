"""turnstream provider layer.

The provider layer is the only way models are called. All LLM
interactions go through LiteLLMProvider via the ModelProvider interface.
"""

from turnstream.providers.base import ModelProvider
from turnstream.providers.litellm_provider import LiteLLMProvider
from turnstream.providers.registry import (
    ModelCatalog,
    load_catalog,
    load_server_config,
    load_stream_config,
)

__all__ = [
    "LiteLLMProvider",
    "ModelCatalog",
    "ModelProvider",
    "load_catalog",
    "load_server_config",
    "load_stream_config",
]
