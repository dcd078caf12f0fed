"""Model catalog and TOML configuration loader.

Loads provider and model definitions from models.toml and streaming/server
defaults from defaults.toml. The catalog is a pure lookup: it resolves a
(provider, model) pair to a ready-to-use ModelProvider or refuses.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path

from turnstream.errors import ModelNotAvailableError
from turnstream.providers.base import ModelProvider
from turnstream.providers.litellm_provider import LiteLLMProvider
from turnstream.schemas.config import (
    ModelConfig,
    ProviderConfig,
    ServerConfig,
    StreamConfig,
)

# Default config directory relative to the turnstream package
_CONFIG_DIR = Path(__file__).parent.parent / "config"


def _read_toml(path: Path, what: str) -> dict:
    if not path.exists():
        raise FileNotFoundError(f"{what} not found: {path}")
    with open(path, "rb") as f:
        return tomllib.load(f)


class ModelCatalog:
    """Lookup of the providers and models this deployment serves."""

    def __init__(
        self,
        providers: dict[str, ProviderConfig],
        models: dict[str, ModelConfig],
    ) -> None:
        self._providers = providers
        self._models = models

    @property
    def providers(self) -> dict[str, ProviderConfig]:
        return dict(self._providers)

    @property
    def models(self) -> dict[str, ModelConfig]:
        return dict(self._models)

    def is_provider_id(self, value: str) -> bool:
        return value in self._providers

    def is_model_id(self, value: str) -> bool:
        return value in self._models

    def models_for_provider(self, provider_id: str) -> list[ModelConfig]:
        """Return the catalog entries served by a provider, in file order."""
        return [m for m in self._models.values() if m.provider == provider_id]

    def resolve_model(self, provider_id: str, model_id: str) -> ModelProvider:
        """Resolve a provider/model pair into a streaming provider.

        Raises:
            ModelNotAvailableError: If the model is unknown or does not
                belong to the provider.
        """
        model = self._models.get(model_id)
        provider = self._providers.get(provider_id)
        if model is None or provider is None or model.provider != provider_id:
            raise ModelNotAvailableError(provider_id, model_id)
        return LiteLLMProvider(model, provider)


def load_catalog(config_path: Path | None = None) -> ModelCatalog:
    """Load the model catalog from a TOML file.

    Args:
        config_path: Path to models.toml. Defaults to turnstream/config/models.toml.

    Returns:
        A ModelCatalog with every provider and model entry.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the TOML structure is invalid.
    """
    path = config_path or _CONFIG_DIR / "models.toml"
    raw = _read_toml(path, "Model catalog")

    providers_section = raw.get("providers")
    if not providers_section or not isinstance(providers_section, dict):
        raise ValueError(f"No [providers] section found in {path}")

    models_section = raw.get("models")
    if not models_section or not isinstance(models_section, dict):
        raise ValueError(f"No [models] section found in {path}")

    providers: dict[str, ProviderConfig] = {}
    for key, entry in providers_section.items():
        if isinstance(entry, dict):
            providers[key] = ProviderConfig(id=key, **entry)

    models: dict[str, ModelConfig] = {}
    for key, entry in models_section.items():
        if not isinstance(entry, dict):
            continue
        model = ModelConfig(id=key, **entry)
        if model.provider not in providers:
            raise ValueError(
                f"Model '{key}' references unknown provider '{model.provider}' in {path}"
            )
        models[key] = model

    return ModelCatalog(providers, models)


def load_stream_config(config_path: Path | None = None) -> StreamConfig:
    """Load streaming defaults from the [stream] table of defaults.toml."""
    path = config_path or _CONFIG_DIR / "defaults.toml"
    raw = _read_toml(path, "Defaults config")
    return StreamConfig(**raw.get("stream", {}))


def load_server_config(config_path: Path | None = None) -> ServerConfig:
    """Load server settings from defaults.toml with environment overrides.

    ``TURNSTREAM_DB_PATH``, ``TURNSTREAM_PORT`` and
    ``TURNSTREAM_CORS_ORIGINS`` (comma separated) take precedence over
    the file.
    """
    path = config_path or _CONFIG_DIR / "defaults.toml"
    raw = _read_toml(path, "Defaults config")
    section = dict(raw.get("server", {}))

    if os.environ.get("TURNSTREAM_DB_PATH"):
        section["db_path"] = os.environ["TURNSTREAM_DB_PATH"]
    if os.environ.get("TURNSTREAM_PORT"):
        section["port"] = int(os.environ["TURNSTREAM_PORT"])
    if os.environ.get("TURNSTREAM_CORS_ORIGINS"):
        section["cors_origins"] = [
            origin.strip()
            for origin in os.environ["TURNSTREAM_CORS_ORIGINS"].split(",")
            if origin.strip()
        ]

    return ServerConfig(**section)
