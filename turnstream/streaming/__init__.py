"""Streaming response coordinator.

Relays one chat turn's generation to one client over server-sent events
while checkpointing partial output, and always finalizes the turn into a
terminal state.
"""

from turnstream.streaming.gate import PersistenceGate
from turnstream.streaming.heartbeat import Heartbeat
from turnstream.streaming.lifecycle import TurnLifecycle
from turnstream.streaming.protocol import ProtocolWriter, format_comment, format_event
from turnstream.streaming.relay import GenerationRelay, RelayOutcome
from turnstream.streaming.session import StreamSession
from turnstream.streaming.supervisor import PreparedTurn, SessionSupervisor, TurnRequest
from turnstream.streaming.transport import SSEChannel

__all__ = [
    "GenerationRelay",
    "Heartbeat",
    "PersistenceGate",
    "PreparedTurn",
    "ProtocolWriter",
    "RelayOutcome",
    "SSEChannel",
    "SessionSupervisor",
    "StreamSession",
    "TurnLifecycle",
    "TurnRequest",
    "format_comment",
    "format_event",
]
