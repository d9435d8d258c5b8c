"""Unit tests for the relay wire envelopes.

Tests:
- Envelope serialization (unset fields dropped, payloads untouched)
- Frame parsing and protocol errors
- Request/reply payload recognition
"""

from __future__ import annotations

import json

import pytest

from figma_relay.errors import ProtocolError
from figma_relay.protocol import (
    BroadcastEnvelope,
    CommandReply,
    CommandRequest,
    ErrorEnvelope,
    JoinEnvelope,
    MessageEnvelope,
    Sender,
    SystemEnvelope,
    new_request_id,
    parse_envelope,
)

# =============================================================================
# Serialization
# =============================================================================


class TestEnvelopeSerialization:
    """Tests for envelope to_dict/to_json."""

    def test_join_has_fresh_id(self) -> None:
        """Each join envelope gets its own correlation id."""
        first = JoinEnvelope(channel="c1")
        second = JoinEnvelope(channel="c1")

        assert first.id != second.id
        assert first.to_dict() == {"type": "join", "channel": "c1", "id": first.id}

    def test_broadcast_wire_shape(self) -> None:
        """Broadcast carries message, sender marker and channel."""
        envelope = BroadcastEnvelope(message={"foo": 1}, sender=Sender.REMOTE, channel="c1")

        assert json.loads(envelope.to_json()) == {
            "type": "broadcast",
            "message": {"foo": 1},
            "sender": "Remote",
            "channel": "c1",
        }

    def test_unset_channel_is_dropped(self) -> None:
        """System notices without a channel omit the key."""
        data = SystemEnvelope(message="Connected. Join a channel to start.").to_dict()

        assert data == {"type": "system", "message": "Connected. Join a channel to start."}

    def test_payload_nulls_are_preserved(self) -> None:
        """Only top-level unset fields are dropped, never payload content."""
        envelope = MessageEnvelope(channel="c1", message={"id": "r1", "result": None})

        assert envelope.to_dict()["message"] == {"id": "r1", "result": None}

    def test_new_request_ids_are_unique(self) -> None:
        ids = {new_request_id() for _ in range(100)}
        assert len(ids) == 100


# =============================================================================
# Parsing
# =============================================================================


class TestParseEnvelope:
    """Tests for parse_envelope."""

    def test_parse_join(self) -> None:
        envelope = parse_envelope('{"type": "join", "channel": "c1", "id": "j1"}')

        assert isinstance(envelope, JoinEnvelope)
        assert envelope.channel == "c1"
        assert envelope.id == "j1"

    def test_parse_join_without_channel(self) -> None:
        """A join without channel parses; the hub rejects it later."""
        envelope = parse_envelope('{"type": "join"}')

        assert isinstance(envelope, JoinEnvelope)
        assert envelope.channel is None

    def test_parse_message_keeps_arbitrary_payload(self) -> None:
        envelope = parse_envelope('{"type": "message", "channel": "c1", "message": [1, "two"]}')

        assert isinstance(envelope, MessageEnvelope)
        assert envelope.message == [1, "two"]

    def test_parse_bytes(self) -> None:
        envelope = parse_envelope(b'{"type": "error", "message": "boom"}')

        assert isinstance(envelope, ErrorEnvelope)
        assert envelope.message == "boom"

    def test_invalid_json(self) -> None:
        with pytest.raises(ProtocolError, match="Invalid JSON"):
            parse_envelope("{not json")

    def test_non_object(self) -> None:
        with pytest.raises(ProtocolError, match="must be a JSON object"):
            parse_envelope("[1, 2, 3]")

    def test_unknown_type(self) -> None:
        with pytest.raises(ProtocolError, match="Unknown message type"):
            parse_envelope('{"type": "subscribe", "channel": "c1"}')

    def test_missing_type(self) -> None:
        with pytest.raises(ProtocolError, match="Unknown message type"):
            parse_envelope('{"channel": "c1"}')

    def test_schema_mismatch(self) -> None:
        """A broadcast without sender does not validate."""
        with pytest.raises(ProtocolError, match="Invalid broadcast envelope"):
            parse_envelope('{"type": "broadcast", "message": 1, "channel": "c1"}')


# =============================================================================
# Request / reply payloads
# =============================================================================


class TestCommandPayloads:
    """Tests for CommandRequest and CommandReply."""

    def test_request_defaults(self) -> None:
        request = CommandRequest(command="get_document_info")

        assert request.params == {}
        assert request.model_dump() == {
            "id": request.id,
            "command": "get_document_info",
            "params": {},
        }

    def test_is_request(self) -> None:
        assert CommandRequest.is_request({"id": "1", "command": "x", "params": {}})
        assert not CommandRequest.is_request({"id": "1", "result": 1})
        assert not CommandRequest.is_request({"command": "x"})
        assert not CommandRequest.is_request("command")

    def test_reply_payload_shapes(self) -> None:
        assert CommandReply.success("r1", {"ok": True}).to_payload() == {
            "id": "r1",
            "result": {"ok": True},
        }
        assert CommandReply.failure("r1", "boom").to_payload() == {"id": "r1", "error": "boom"}

    def test_error_wins_over_result(self) -> None:
        reply = CommandReply(id="r1", result=1, error="boom")

        assert reply.is_error
        assert reply.to_payload() == {"id": "r1", "error": "boom"}

    def test_null_result_is_a_reply(self) -> None:
        assert CommandReply.is_reply({"id": "r1", "result": None})

    def test_bare_id_is_a_reply(self) -> None:
        """A reply with neither result nor error still settles, as None."""
        payload = {"id": "r1"}

        assert CommandReply.is_reply(payload)
        reply = CommandReply.model_validate(payload)
        assert not reply.is_error
        assert reply.result is None

    def test_empty_error_is_success(self) -> None:
        reply = CommandReply(id="r1", result={"ok": True}, error="")

        assert not reply.is_error
        assert reply.to_payload() == {"id": "r1", "result": {"ok": True}}

    @pytest.mark.parametrize(
        "payload",
        [
            {"id": "r1", "command": "x", "params": {}},
            {"id": "r1", "command": "x"},
            {"id": 7, "result": 1},
            {"result": 1},
            "text",
            None,
        ],
    )
    def test_not_a_reply(self, payload: object) -> None:
        """Request echoes and foreign payloads are never treated as replies."""
        assert not CommandReply.is_reply(payload)
