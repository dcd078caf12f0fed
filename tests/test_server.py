"""Tests for the HTTP surface: auth, request validation and the SSE body."""

from __future__ import annotations

import asyncio
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from turnstream import __version__
from turnstream.auth import COOKIE_NAME, generate_api_key
from turnstream.schemas.chat import MessageRole, Turn, TurnStatus
from turnstream.schemas.config import ServerConfig, StreamConfig
from turnstream.server import create_app

from .conftest import FakeCatalog, FakeProvider, parse_events

_QUIET = StreamConfig(heartbeat_interval=60, persist_interval=60)


def _frames(body: str) -> list[str]:
    return [frame + "\n\n" for frame in body.split("\n\n") if frame]


@pytest_asyncio.fixture
async def harness(store):
    """App wired to the in-memory store and a scripted upstream."""
    provider = FakeProvider(["Hel", "lo"])
    app = create_app(
        store=store,
        catalog=FakeCatalog(provider),
        stream_config=_QUIET,
        server_config=ServerConfig(cors_origins=[]),
    )
    raw_key, key_hash, prefix = generate_api_key()
    await store.create_api_key("user-1", key_hash, prefix)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"Authorization": f"Bearer {raw_key}"},
    ) as client:
        yield client, store, provider, raw_key, app


async def _seed(store, owner="user-1"):
    conversation = await store.create_conversation(owner)
    trigger = await store.add_message(conversation.id, MessageRole.USER, "hi")
    return conversation, trigger


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, harness):
        client, *_ = harness
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": __version__}


class TestAuth:
    @pytest.mark.asyncio
    async def test_missing_key(self, harness):
        _, _, _, _, app = harness
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as anon:
            response = await anon.get("/api/ai/catalog")
        assert response.status_code == 401
        assert response.json()["detail"] == "Missing API key"

    @pytest.mark.asyncio
    async def test_invalid_key(self, harness):
        client, *_ = harness
        response = await client.get(
            "/api/ai/catalog", headers={"Authorization": "Bearer sk_ts_wrong"},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid API key"

    @pytest.mark.asyncio
    async def test_cookie_auth(self, harness):
        _, _, _, raw_key, app = harness
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            cookies={COOKIE_NAME: raw_key},
        ) as browser:
            response = await browser.get("/api/ai/catalog")
        assert response.status_code == 200


class TestCatalog:
    @pytest.mark.asyncio
    async def test_catalog_lists_models_and_defaults(self, harness):
        client, *_ = harness
        body = (await client.get("/api/ai/catalog")).json()

        assert body["providers"] == ["openrouter"]
        assert [m["id"] for m in body["models"]] == ["openai/gpt-4o-mini"]
        assert body["defaults"] == {
            "provider_id": "openrouter", "model_id": "openai/gpt-4o-mini",
        }


class TestStreamValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [
        {},
        {"chatId": "not-a-uuid", "userMessageId": str(uuid.uuid4())},
        {"chatId": str(uuid.uuid4())},
    ])
    async def test_bad_ids(self, harness, params):
        client, *_ = harness
        response = await client.get("/api/ai/stream", params=params)
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid query parameters"

    @pytest.mark.asyncio
    async def test_unknown_provider_id(self, harness):
        client, store, *_ = harness
        conversation, trigger = await _seed(store)
        response = await client.get("/api/ai/stream", params={
            "chatId": conversation.id, "userMessageId": trigger.id, "providerId": "acme",
        })
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid providerId"

    @pytest.mark.asyncio
    async def test_unknown_model_id(self, harness):
        client, store, *_ = harness
        conversation, trigger = await _seed(store)
        response = await client.get("/api/ai/stream", params={
            "chatId": conversation.id, "userMessageId": trigger.id, "modelId": "acme/x",
        })
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid modelId"

    @pytest.mark.asyncio
    async def test_unknown_chat(self, harness):
        client, *_ = harness
        response = await client.get("/api/ai/stream", params={
            "chatId": str(uuid.uuid4()), "userMessageId": str(uuid.uuid4()),
        })
        assert response.status_code == 404
        assert response.json()["detail"] == "Chat not found"

    @pytest.mark.asyncio
    async def test_chat_of_another_user(self, harness):
        client, store, *_ = harness
        conversation, trigger = await _seed(store, owner="user-2")
        response = await client.get("/api/ai/stream", params={
            "chatId": conversation.id, "userMessageId": trigger.id,
        })
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_user_message(self, harness):
        client, store, *_ = harness
        conversation, _ = await _seed(store)
        response = await client.get("/api/ai/stream", params={
            "chatId": conversation.id, "userMessageId": str(uuid.uuid4()),
        })
        assert response.status_code == 404
        assert response.json()["detail"] == "User message not found"


class TestStreamBody:
    @pytest.mark.asyncio
    async def test_streams_turn_to_completion(self, harness):
        client, store, provider, *_ = harness
        conversation, trigger = await _seed(store)

        response = await client.get("/api/ai/stream", params={
            "chatId": conversation.id,
            "userMessageId": trigger.id,
            "providerId": "openrouter",
            "modelId": "openai/gpt-4o-mini",
        })

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache, no-transform"
        assert response.headers["x-accel-buffering"] == "no"

        frames = _frames(response.text)
        assert frames[0] == ": stream started\n\n"
        events = parse_events(frames)
        assert events[:2] == [("delta", "Hel"), ("delta", "lo")]
        assert events[-1][0] == "done"
        done = Turn.model_validate_json(events[-1][1])
        assert done.content == "Hello"

        stored = await store.get_turn(done.id)
        assert stored.status == TurnStatus.COMPLETED
        assert stored.content == "Hello"
        assert provider.calls[0]["messages"] == [{"role": "user", "content": "hi"}]

    @pytest.mark.asyncio
    async def test_client_drop_mid_stream_fails_turn(self, store):
        provider = FakeProvider(["partial"], hang=True)
        app = create_app(
            store=store,
            catalog=FakeCatalog(provider),
            stream_config=_QUIET,
            server_config=ServerConfig(cors_origins=[]),
        )
        raw_key, key_hash, prefix = generate_api_key()
        await store.create_api_key("user-1", key_hash, prefix)
        conversation, trigger = await _seed(store)

        gone = asyncio.Event()
        saw_delta = asyncio.Event()
        requested = False

        async def receive():
            nonlocal requested
            if not requested:
                requested = True
                return {"type": "http.request", "body": b"", "more_body": False}
            await gone.wait()
            return {"type": "http.disconnect"}

        async def send(message):
            if b"event: delta" in message.get("body", b""):
                saw_delta.set()

        scope = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": "GET",
            "scheme": "http",
            "path": "/api/ai/stream",
            "raw_path": b"/api/ai/stream",
            "root_path": "",
            "query_string": (
                f"chatId={conversation.id}&userMessageId={trigger.id}".encode()
            ),
            "headers": [
                (b"host", b"test"),
                (b"authorization", f"Bearer {raw_key}".encode()),
            ],
            "client": ("127.0.0.1", 50000),
            "server": ("test", 80),
        }

        request = asyncio.create_task(app(scope, receive, send))
        await asyncio.wait_for(saw_delta.wait(), timeout=1)
        (stream_task,) = app.state.stream_tasks
        gone.set()
        await asyncio.wait_for(request, timeout=1)
        final = await asyncio.wait_for(stream_task, timeout=1)

        assert provider.closed
        stored = await store.get_turn(final.id)
        assert stored.status == TurnStatus.FAILED
        assert stored.error_message == "Client disconnected"
        assert stored.content == "partial"
