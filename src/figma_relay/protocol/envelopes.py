"""Wire envelopes exchanged with the relay hub.

Every WebSocket frame is one JSON object with a ``type``:

    join       client -> hub   {"type": "join", "channel": "c1", "id": "..."}
    message    client -> hub   {"type": "message", "channel": "c1", "message": {...}}
    broadcast  hub -> client   {"type": "broadcast", "message": {...}, "sender": "You"|"Remote", "channel": "c1"}
    system     hub -> client   {"type": "system", "message": ..., "channel": "c1"}
    error      hub -> client   {"type": "error", "message": "..."}

The hub never looks inside ``message``. Issuer and executor agree on the
payload shapes carried there: ``CommandRequest`` going out and
``CommandReply`` coming back, correlated by ``id``.
"""

from __future__ import annotations

import json
import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from ..errors import ProtocolError


def new_request_id() -> str:
    """Generate a correlation id (128-bit random)."""
    return str(uuid.uuid4())


class EnvelopeType(str, Enum):
    """Envelope kinds understood by the hub."""

    # Client -> Hub
    JOIN = "join"
    MESSAGE = "message"

    # Hub -> Client
    BROADCAST = "broadcast"
    SYSTEM = "system"
    ERROR = "error"


class Sender(str, Enum):
    """Sender marker on a broadcast, relative to the recipient."""

    SELF = "You"
    REMOTE = "Remote"


class Envelope(BaseModel):
    """Base envelope. Subclasses fix ``type``."""

    type: EnvelopeType

    def to_dict(self) -> dict[str, Any]:
        """Serialize, dropping unset top-level fields but never touching payloads."""
        data = self.model_dump(mode="json")
        return {k: v for k, v in data.items() if v is not None}

    def to_json(self) -> str:
        """Serialize to a JSON text frame."""
        return json.dumps(self.to_dict())


class JoinEnvelope(Envelope):
    """Request to join a channel. ``id`` correlates the hub's acknowledgment."""

    type: EnvelopeType = EnvelopeType.JOIN
    channel: str | None = None
    id: str = Field(default_factory=new_request_id)


class MessageEnvelope(Envelope):
    """Payload to relay to every member of ``channel``."""

    type: EnvelopeType = EnvelopeType.MESSAGE
    channel: str | None = None
    message: Any = None


class BroadcastEnvelope(Envelope):
    """A relayed payload as delivered to one channel member."""

    type: EnvelopeType = EnvelopeType.BROADCAST
    message: Any = None
    sender: Sender
    channel: str


class SystemEnvelope(Envelope):
    """Hub notice: welcome, join acknowledgment, peer joined/left."""

    type: EnvelopeType = EnvelopeType.SYSTEM
    message: Any
    channel: str | None = None


class ErrorEnvelope(Envelope):
    """Hub-local error notice sent only to the offending endpoint."""

    type: EnvelopeType = EnvelopeType.ERROR
    message: Any
    channel: str | None = None


_ENVELOPE_MODELS: dict[EnvelopeType, type[Envelope]] = {
    EnvelopeType.JOIN: JoinEnvelope,
    EnvelopeType.MESSAGE: MessageEnvelope,
    EnvelopeType.BROADCAST: BroadcastEnvelope,
    EnvelopeType.SYSTEM: SystemEnvelope,
    EnvelopeType.ERROR: ErrorEnvelope,
}


def parse_envelope(raw: str | bytes) -> Envelope:
    """Parse a text frame into its envelope model.

    Args:
        raw: JSON text (or UTF-8 bytes) of one frame

    Returns:
        The typed envelope

    Raises:
        ProtocolError: If the frame is not JSON, not an object, has an
            unknown ``type``, or does not match the envelope schema
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ProtocolError("Envelope must be a JSON object")

    try:
        envelope_type = EnvelopeType(data.get("type"))
    except ValueError as e:
        raise ProtocolError(f"Unknown message type: {data.get('type')!r}") from e

    try:
        return _ENVELOPE_MODELS[envelope_type].model_validate(data)
    except ValidationError as e:
        raise ProtocolError(f"Invalid {envelope_type.value} envelope: {e}") from e


class CommandRequest(BaseModel):
    """Request payload carried inside a relay message (issuer -> executor)."""

    id: str = Field(default_factory=new_request_id)
    command: str
    params: dict[str, Any] = Field(default_factory=dict)

    @staticmethod
    def is_request(payload: Any) -> bool:
        """Check whether a relayed payload looks like a command request."""
        return isinstance(payload, dict) and "command" in payload and "id" in payload


class CommandReply(BaseModel):
    """Reply payload carried inside a relay message (executor -> issuer).

    Exactly one of ``result`` / ``error`` is meaningful; a non-empty
    ``error`` wins. A reply carrying neither resolves to ``None``.
    """

    id: str
    result: Any = None
    error: str | None = None

    @property
    def is_error(self) -> bool:
        return bool(self.error)

    @classmethod
    def success(cls, request_id: str, result: Any) -> CommandReply:
        return cls(id=request_id, result=result)

    @classmethod
    def failure(cls, request_id: str, error: str) -> CommandReply:
        return cls(id=request_id, error=error)

    @staticmethod
    def is_reply(payload: Any) -> bool:
        """Check whether a relayed payload looks like a reply.

        Any object with a string ``id`` counts; ``result`` and ``error`` are
        optional. Request echoes carry ``command`` and are never replies.
        """
        return (
            isinstance(payload, dict)
            and isinstance(payload.get("id"), str)
            and "command" not in payload
        )

    def to_payload(self) -> dict[str, Any]:
        """Wire shape: ``{id, error}`` on failure, ``{id, result}`` otherwise."""
        if self.error:
            return {"id": self.id, "error": self.error}
        return {"id": self.id, "result": self.result}
