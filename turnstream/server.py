"""FastAPI application exposing the streaming endpoint.

One long-lived ``GET /api/ai/stream`` request per assistant turn. The
request is validated and the placeholder turn created before any bytes
are sent, so precondition failures are ordinary HTTP errors. After
that the turn runs in its own task and the response body simply drains
the session's channel; a client that goes away only flips the channel
to disconnected, it never cancels the turn's teardown.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from turnstream import __version__
from turnstream.auth import verify_api_key
from turnstream.errors import PreconditionError
from turnstream.persistence.database import close_db, init_db
from turnstream.persistence.store import ChatStore
from turnstream.providers.registry import (
    ModelCatalog,
    load_catalog,
    load_server_config,
    load_stream_config,
)
from turnstream.schemas.config import ServerConfig, StreamConfig
from turnstream.streaming.supervisor import SessionSupervisor, TurnRequest
from turnstream.streaming.transport import SSEChannel

logger = logging.getLogger(__name__)

_SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _is_uuid(value: str | None) -> bool:
    if not value:
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def create_app(
    *,
    store: ChatStore | None = None,
    catalog: ModelCatalog | None = None,
    stream_config: StreamConfig | None = None,
    server_config: ServerConfig | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators may be injected (tests do); anything missing is loaded
    from the packaged TOML config, and the SQLite store is opened in the
    application lifespan.
    """
    server_config = server_config or load_server_config()
    catalog = catalog or load_catalog()
    stream_config = stream_config or load_stream_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = None
        if app.state.store is None:
            db = await init_db(server_config.db_path)
            app.state.store = ChatStore(db)
            app.state.supervisor = SessionSupervisor(
                app.state.store, catalog, stream_config,
            )
        try:
            yield
        finally:
            tasks = list(app.state.stream_tasks)
            if tasks:
                logger.info("Finalizing %d in-flight turns before shutdown", len(tasks))
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            if db is not None:
                await close_db(db)

    app = FastAPI(
        title="turnstream",
        description="Streaming response coordinator for LLM chat turns",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=server_config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.store = store
    app.state.catalog = catalog
    app.state.stream_tasks = set()
    app.state.supervisor = (
        SessionSupervisor(store, catalog, stream_config) if store is not None else None
    )

    # ── Streaming ────────────────────────────────────────────────

    @app.get("/api/ai/stream")
    async def stream_assistant_response(
        request: Request,
        chat_id: str | None = Query(default=None, alias="chatId"),
        user_message_id: str | None = Query(default=None, alias="userMessageId"),
        provider_id: str | None = Query(default=None, alias="providerId"),
        model_id: str | None = Query(default=None, alias="modelId"),
        user_id: str = Depends(verify_api_key),
    ) -> StreamingResponse:
        """Stream the assistant reply to one user message as server-sent events."""
        if not _is_uuid(chat_id) or not _is_uuid(user_message_id):
            raise HTTPException(status_code=400, detail="Invalid query parameters")
        if provider_id and not catalog.is_provider_id(provider_id):
            raise HTTPException(status_code=400, detail="Invalid providerId")
        if model_id and not catalog.is_model_id(model_id):
            raise HTTPException(status_code=400, detail="Invalid modelId")

        supervisor: SessionSupervisor = request.app.state.supervisor
        turn_request = TurnRequest(
            conversation_id=chat_id,
            trigger_message_id=user_message_id,
            owner_id=user_id,
            provider_id=provider_id,
            model_id=model_id,
        )
        try:
            prepared = await supervisor.prepare(turn_request)
        except PreconditionError as e:
            raise HTTPException(status_code=e.status_code, detail=str(e)) from e

        channel = SSEChannel()
        task = asyncio.get_running_loop().create_task(
            supervisor.stream(prepared, channel)
        )
        tasks: set[asyncio.Task[Any]] = request.app.state.stream_tasks
        tasks.add(task)
        task.add_done_callback(tasks.discard)

        async def body() -> AsyncIterator[str]:
            try:
                async for frame in channel.frames():
                    yield frame
            finally:
                # No-op after a normal close; otherwise the client went away
                channel.disconnect()

        return StreamingResponse(
            body(), media_type="text/event-stream", headers=_SSE_HEADERS,
        )

    # ── Catalog ──────────────────────────────────────────────────

    @app.get("/api/ai/catalog")
    async def model_catalog(user_id: str = Depends(verify_api_key)) -> dict:
        """Providers, models and defaults a client may choose from."""
        return {
            "providers": list(catalog.providers),
            "models": [m.model_dump() for m in catalog.models.values()],
            "defaults": {
                "provider_id": stream_config.default_provider,
                "model_id": stream_config.default_model,
            },
        }

    # ── Health ───────────────────────────────────────────────────

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    return app
