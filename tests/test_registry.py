"""Tests for the model catalog and TOML config loaders."""

from __future__ import annotations

from pathlib import Path

import pytest

from turnstream.errors import ModelNotAvailableError
from turnstream.providers.litellm_provider import LiteLLMProvider
from turnstream.providers.registry import (
    load_catalog,
    load_server_config,
    load_stream_config,
)


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "models.toml"
    path.write_text(text, encoding="utf-8")
    return path


_MINIMAL = """
[providers.openrouter]
display_name = "OpenRouter"
api_key_env = "OPENROUTER_API_KEY"

[models."openai/gpt-4o-mini"]
provider = "openrouter"
model = "openrouter/openai/gpt-4o-mini"
display_name = "GPT-4o mini"
"""


class TestLoadCatalog:
    def test_packaged_catalog_has_default_model(self):
        catalog = load_catalog()
        assert catalog.is_provider_id("openrouter")
        assert catalog.is_model_id("openai/gpt-4o-mini")
        assert all(m.provider == "openrouter" for m in catalog.models_for_provider("openrouter"))

    def test_minimal_file(self, tmp_path):
        catalog = load_catalog(_write(tmp_path, _MINIMAL))

        assert list(catalog.providers) == ["openrouter"]
        model = catalog.models["openai/gpt-4o-mini"]
        assert model.id == "openai/gpt-4o-mini"
        assert model.supports_vision is False

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_catalog(tmp_path / "nope.toml")

    def test_missing_models_section(self, tmp_path):
        path = _write(tmp_path, '[providers.x]\ndisplay_name = "X"\napi_key_env = "X_KEY"\n')
        with pytest.raises(ValueError, match=r"\[models\]"):
            load_catalog(path)

    def test_missing_providers_section(self, tmp_path):
        path = _write(tmp_path, '[models.m]\nprovider = "x"\nmodel = "x/m"\ndisplay_name = "M"\n')
        with pytest.raises(ValueError, match=r"\[providers\]"):
            load_catalog(path)

    def test_model_with_unknown_provider(self, tmp_path):
        text = _MINIMAL + '\n[models.stray]\nprovider = "ghost"\nmodel = "g/m"\ndisplay_name = "S"\n'
        with pytest.raises(ValueError, match="unknown provider 'ghost'"):
            load_catalog(_write(tmp_path, text))


class TestResolveModel:
    def test_resolves_to_litellm_provider(self):
        provider = load_catalog().resolve_model("openrouter", "openai/gpt-4o-mini")

        assert isinstance(provider, LiteLLMProvider)
        assert provider.provider_id == "openrouter"
        assert provider.model_id == "openai/gpt-4o-mini"

    @pytest.mark.parametrize(("provider_id", "model_id"), [
        ("openrouter", "no-such-model"),
        ("no-such-provider", "openai/gpt-4o-mini"),
    ])
    def test_unavailable_pairs(self, provider_id, model_id):
        with pytest.raises(ModelNotAvailableError) as exc_info:
            load_catalog().resolve_model(provider_id, model_id)
        assert exc_info.value.status_code == 400
        assert model_id in str(exc_info.value)


class TestDefaults:
    def test_stream_defaults(self):
        config = load_stream_config()
        assert config.heartbeat_interval == 15.0
        assert config.persist_threshold == 200
        assert config.persist_interval == 0.75
        assert config.context_limit == 20
        assert config.default_provider == "openrouter"
        assert config.default_model == "openai/gpt-4o-mini"

    def test_server_env_overrides(self, monkeypatch):
        monkeypatch.setenv("TURNSTREAM_DB_PATH", "/tmp/other.db")
        monkeypatch.setenv("TURNSTREAM_PORT", "9001")
        monkeypatch.setenv("TURNSTREAM_CORS_ORIGINS", "https://a.example, https://b.example,")

        config = load_server_config()

        assert config.db_path == "/tmp/other.db"
        assert config.port == 9001
        assert config.cors_origins == ["https://a.example", "https://b.example"]

    def test_server_file_values(self, monkeypatch):
        for var in ("TURNSTREAM_DB_PATH", "TURNSTREAM_PORT", "TURNSTREAM_CORS_ORIGINS"):
            monkeypatch.delenv(var, raising=False)

        config = load_server_config()

        assert config.host == "127.0.0.1"
        assert config.port == 8000
        assert config.db_path == "~/.turnstream/chat.db"
