"""Relay hub - store-and-forward over named channels.

The hub has no notion of requests or replies. It understands two client
envelopes (``join`` and ``message``) and forwards message payloads to
every member of the channel, the sender included (tagged ``"You"``).

The hub is transport-agnostic: an endpoint is anything with an async
``send_text(str)`` method. The Starlette route in ``hub.routes`` binds it
to WebSocket connections; tests bind it to in-process loopbacks.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from ..errors import ProtocolError
from ..protocol import (
    BroadcastEnvelope,
    Envelope,
    ErrorEnvelope,
    JoinEnvelope,
    MessageEnvelope,
    Sender,
    SystemEnvelope,
    parse_envelope,
)
from .channels import ChannelRegistry

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = "Connected. Join a channel to start."
PEER_JOINED_MESSAGE = "A new user joined"
PEER_LEFT_MESSAGE = "A user has left the channel"


@runtime_checkable
class Endpoint(Protocol):
    """A connected transport endpoint as seen by the hub."""

    async def send_text(self, data: str) -> None: ...


class RelayHub:
    """Routes envelopes between endpoints joined to the same channel."""

    def __init__(self, registry: ChannelRegistry | None = None) -> None:
        self.channels = registry or ChannelRegistry()

    async def connect(self, endpoint: Endpoint) -> None:
        """Greet a newly connected endpoint."""
        logger.info("Client connected")
        await self._deliver(endpoint, SystemEnvelope(message=WELCOME_MESSAGE))

    async def disconnect(self, endpoint: Endpoint) -> None:
        """Remove an endpoint from all channels and tell the remaining members."""
        logger.info("Client disconnected")
        for channel in self.channels.remove(endpoint):
            await self._broadcast(
                channel,
                SystemEnvelope(message=PEER_LEFT_MESSAGE, channel=channel),
            )

    async def handle_message(self, endpoint: Endpoint, raw: str | bytes) -> None:
        """Handle one inbound frame.

        Protocol violations are answered with an error notice to the sender
        only. They never close the connection or disturb other channels.
        """
        try:
            envelope = parse_envelope(raw)
            await self._dispatch(endpoint, envelope)
        except ProtocolError as e:
            logger.warning(f"Rejected message: {e}")
            await self._deliver(endpoint, ErrorEnvelope(message=str(e)))

    async def _dispatch(self, endpoint: Endpoint, envelope: Envelope) -> None:
        if isinstance(envelope, JoinEnvelope):
            await self.join(endpoint, envelope.channel, envelope.id)
        elif isinstance(envelope, MessageEnvelope):
            await self.send(endpoint, envelope.channel, envelope.message)
        else:
            raise ProtocolError(f"Clients cannot send '{envelope.type.value}' envelopes")

    async def join(self, endpoint: Endpoint, channel: str | None, request_id: str) -> None:
        """Add an endpoint to a channel and acknowledge it.

        Re-joining is harmless: the acknowledgment is simply sent again.
        """
        if not channel:
            raise ProtocolError("channel is required")

        added = self.channels.join(channel, endpoint)

        await self._deliver(
            endpoint, SystemEnvelope(message=f"Joined channel: {channel}", channel=channel)
        )
        await self._deliver(
            endpoint,
            SystemEnvelope(
                message={"id": request_id, "result": f"Connected to channel: {channel}"},
                channel=channel,
            ),
        )
        if added:
            await self._broadcast(
                channel,
                SystemEnvelope(message=PEER_JOINED_MESSAGE, channel=channel),
                exclude=endpoint,
            )
        logger.info(f"Client joined channel: {channel}")

    async def send(self, endpoint: Endpoint, channel: str | None, message: Any) -> None:
        """Relay a payload to every member of a channel the sender has joined."""
        if channel is None or not self.channels.is_member(channel, endpoint):
            raise ProtocolError("Join a channel first")

        logger.debug(f"Broadcasting to channel {channel}: {message}")
        for member in self.channels.members(channel):
            await self._deliver(
                member,
                BroadcastEnvelope(
                    message=message,
                    sender=Sender.SELF if member is endpoint else Sender.REMOTE,
                    channel=channel,
                ),
            )

    async def _broadcast(
        self,
        channel: str,
        envelope: Envelope,
        exclude: Endpoint | None = None,
    ) -> None:
        for member in self.channels.members(channel):
            if member is not exclude:
                await self._deliver(member, envelope)

    async def _deliver(self, endpoint: Any, envelope: Envelope) -> None:
        """Send to one endpoint. A failed delivery never affects the others."""
        try:
            await endpoint.send_text(envelope.to_json())
        except Exception as e:
            logger.warning(f"Delivery of {envelope.type.value} envelope failed: {e}")
