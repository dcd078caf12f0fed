"""Typed exceptions for turnstream.

Hierarchy:
    TurnstreamError (base)
    +-- PreconditionError
    |   +-- ConversationNotFoundError
    |   +-- TriggerMessageNotFoundError
    |   +-- ModelNotAvailableError
    +-- InvalidTransitionError

Precondition errors are raised before any Turn record exists, so they
carry no side effects and map directly onto request-level HTTP failures.
"""

from __future__ import annotations


class TurnstreamError(Exception):
    """Base for all turnstream exceptions."""


class PreconditionError(TurnstreamError):
    """A streaming request was rejected before a Turn was created."""

    status_code = 400


class ConversationNotFoundError(PreconditionError):
    """Conversation does not exist, was deleted, or belongs to someone else."""

    status_code = 404

    def __init__(self, conversation_id: str) -> None:
        self.conversation_id = conversation_id
        super().__init__("Chat not found")


class TriggerMessageNotFoundError(PreconditionError):
    """Triggering user message is missing from the conversation."""

    status_code = 404

    def __init__(self, message_id: str) -> None:
        self.message_id = message_id
        super().__init__("User message not found")


class ModelNotAvailableError(PreconditionError):
    """Requested model is unknown or not served by the requested provider."""

    def __init__(self, provider_id: str, model_id: str) -> None:
        self.provider_id = provider_id
        self.model_id = model_id
        super().__init__(
            f'Model "{model_id}" is not available for provider "{provider_id}"'
        )


class InvalidTransitionError(TurnstreamError):
    """Turn lifecycle transition not allowed from the current state."""

    def __init__(self, from_state: str, to_state: str) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid turn transition: {from_state} -> {to_state}")
