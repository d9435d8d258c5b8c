"""Wire protocol shared by hub, issuer and executor."""

from .envelopes import (
    BroadcastEnvelope,
    CommandReply,
    CommandRequest,
    Envelope,
    EnvelopeType,
    ErrorEnvelope,
    JoinEnvelope,
    MessageEnvelope,
    Sender,
    SystemEnvelope,
    new_request_id,
    parse_envelope,
)

__all__ = [
    "BroadcastEnvelope",
    "CommandReply",
    "CommandRequest",
    "Envelope",
    "EnvelopeType",
    "ErrorEnvelope",
    "JoinEnvelope",
    "MessageEnvelope",
    "Sender",
    "SystemEnvelope",
    "new_request_id",
    "parse_envelope",
]
