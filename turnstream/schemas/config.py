"""Configuration schemas.

Defines the provider and model catalog entries loaded from models.toml,
and the streaming and server settings loaded from defaults.toml.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ProviderConfig(BaseModel):
    """Configuration for an upstream provider in the catalog."""

    id: str = Field(description="Provider identifier (e.g. 'openrouter')")
    display_name: str = Field(description="Human-friendly provider name")
    api_key_env: str = Field(description="Environment variable name holding the API key")
    api_base: str = Field(default="", description="Custom API base URL (empty = provider default)")
    referer_env: str = Field(
        default="", description="Env var holding the app URL sent as HTTP-Referer",
    )
    title_env: str = Field(
        default="", description="Env var holding the app name sent as X-Title",
    )


class ModelConfig(BaseModel):
    """Configuration for a single model in the catalog.

    Loaded from models.toml. The catalog key is the public model id
    clients send; ``model`` is the LiteLLM routing string.
    """

    id: str = Field(description="Public model identifier (e.g. 'openai/gpt-4o-mini')")
    provider: str = Field(description="Provider identifier serving this model")
    model: str = Field(description="LiteLLM model identifier used for routing")
    display_name: str = Field(description="Human-friendly model name")
    supports_vision: bool = Field(
        default=False, description="Whether the model supports image inputs"
    )


class StreamConfig(BaseModel):
    """Tuning for a single streaming session."""

    heartbeat_interval: float = Field(
        default=15.0, gt=0, description="Seconds between keep-alive comment frames",
    )
    persist_threshold: int = Field(
        default=200, gt=0, description="Pending characters that force a checkpoint",
    )
    persist_interval: float = Field(
        default=0.75, gt=0, description="Seconds between timer-driven checkpoints",
    )
    context_limit: int = Field(
        default=20, gt=0, description="Maximum prior messages sent upstream",
    )
    default_provider: str = Field(default="openrouter", description="Provider when none is given")
    default_model: str = Field(
        default="openai/gpt-4o-mini", description="Model when none is given",
    )
    system_prompt: str = Field(
        default="", description="System prompt prepended to every context (empty = none)",
    )


class ServerConfig(BaseModel):
    """HTTP server settings."""

    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=8000, gt=0, le=65535, description="Bind port")
    db_path: str = Field(
        default="~/.turnstream/chat.db", description="Path to the SQLite database file",
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173"],
        description="Allowed browser origins",
    )
