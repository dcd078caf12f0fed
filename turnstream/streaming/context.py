"""Conversion of stored messages into the upstream message format."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable

from turnstream.schemas.chat import Message, MessageRole

logger = logging.getLogger(__name__)

_ROLE_MAP: dict[MessageRole, str] = {
    MessageRole.USER: "user",
    MessageRole.ASSISTANT: "assistant",
    MessageRole.SYSTEM: "system",
}


def _decode_tool_results(content: str) -> list[dict]:
    """Decode a stored TOOL payload into OpenAI-format tool messages.

    The payload is one tool result object or a list of them. Each needs a
    call id (``tool_call_id`` or ``toolCallId``) and a body (``content``,
    ``output`` or ``result``); non-string bodies are re-serialized as JSON.

    Raises:
        ValueError: If the payload is not valid JSON or has the wrong shape.
    """
    decoded = json.loads(content)
    items = decoded if isinstance(decoded, list) else [decoded]
    if not items:
        raise ValueError("empty tool result payload")

    results: list[dict] = []
    for item in items:
        if not isinstance(item, dict):
            raise ValueError("tool result is not an object")
        call_id = item.get("tool_call_id") or item.get("toolCallId")
        if not call_id:
            raise ValueError("tool result has no call id")
        body = next(
            (item[key] for key in ("content", "output", "result") if key in item),
            "",
        )
        if not isinstance(body, str):
            body = json.dumps(body)
        results.append({"role": "tool", "tool_call_id": str(call_id), "content": body})
    return results


def to_model_messages(messages: Iterable[Message]) -> list[dict]:
    """Map stored messages, oldest first, to the upstream role vocabulary.

    A TOOL message whose payload cannot be decoded is dropped from the
    context instead of failing the turn.
    """
    result: list[dict] = []

    for message in messages:
        if message.role == MessageRole.TOOL:
            try:
                result.extend(_decode_tool_results(message.content))
            except ValueError:
                # json.JSONDecodeError is a ValueError
                logger.warning(
                    "Dropping tool message %s from context: malformed payload",
                    message.id,
                )
            continue

        result.append({"role": _ROLE_MAP[message.role], "content": message.content})

    return result
