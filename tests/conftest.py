"""Shared fixtures and fakes for the turnstream test suite."""

from __future__ import annotations

import asyncio

import pytest_asyncio

from turnstream.persistence.database import close_db, init_db
from turnstream.persistence.store import ChatStore
from turnstream.providers.base import ModelProvider
from turnstream.providers.registry import ModelCatalog
from turnstream.schemas.config import ModelConfig, ProviderConfig

PROVIDER = ProviderConfig(
    id="openrouter",
    display_name="OpenRouter",
    api_key_env="OPENROUTER_API_KEY",
    api_base="https://openrouter.ai/api/v1",
)

MODEL = ModelConfig(
    id="openai/gpt-4o-mini",
    provider="openrouter",
    model="openrouter/openai/gpt-4o-mini",
    display_name="GPT-4o mini",
)


class FakeProvider(ModelProvider):
    """Scripted upstream: yields ``deltas``, then fails, hangs or ends.

    ``emitted`` is set once every delta has been consumed. ``closed``
    records that the upstream generator was finalized.
    """

    def __init__(
        self,
        deltas: list[str] | tuple[str, ...] = (),
        *,
        error: Exception | None = None,
        hang: bool = False,
    ) -> None:
        super().__init__(MODEL, PROVIDER)
        self.deltas = list(deltas)
        self.error = error
        self.hang = hang
        self.calls: list[dict] = []
        self.emitted = asyncio.Event()
        self.closed = False

    async def stream_text(self, messages, *, system=""):
        self.calls.append({"messages": messages, "system": system})
        try:
            for delta in self.deltas:
                yield delta
            self.emitted.set()
            if self.error is not None:
                raise self.error
            if self.hang:
                await asyncio.Event().wait()
        finally:
            self.closed = True


class FakeCatalog(ModelCatalog):
    """Catalog that validates like the real one but serves a fake provider."""

    def __init__(self, provider: ModelProvider) -> None:
        super().__init__({PROVIDER.id: PROVIDER}, {MODEL.id: MODEL})
        self.provider = provider

    def resolve_model(self, provider_id, model_id):
        super().resolve_model(provider_id, model_id)
        return self.provider


def parse_events(frames: list[str]) -> list[tuple[str, str]]:
    """Split SSE frames into (event, data) pairs, skipping comments."""
    events = []
    for frame in frames:
        if frame.startswith(":"):
            continue
        kind = ""
        data_lines = []
        for line in frame.rstrip("\n").split("\n"):
            if line.startswith("event: "):
                kind = line[len("event: "):]
            elif line.startswith("data: "):
                data_lines.append(line[len("data: "):])
        events.append((kind, "\n".join(data_lines)))
    return events


async def collect_frames(channel) -> list[str]:
    return [frame async for frame in channel.frames()]


@pytest_asyncio.fixture
async def store():
    db = await init_db(":memory:")
    try:
        yield ChatStore(db)
    finally:
        await close_db(db)
