"""Pytest configuration and shared fixtures.

The relay is exercised in-process: ``LoopbackNetwork.connect`` is a
connector for ``CommandIssuer`` / ``ExecutorAgent`` that wires each client
straight into a ``RelayHub`` instead of opening a socket.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from collections.abc import AsyncIterator
from typing import Any

import pytest

from figma_relay.config import RelayConfig
from figma_relay.executor import Document, ExecutorAgent, create_document_executor
from figma_relay.hub import RelayHub

CHANNEL = "test-channel"


class LoopbackEndpoint:
    """Hub-side half of a loopback connection."""

    def __init__(self, connection: LoopbackConnection) -> None:
        self._connection = connection

    async def send_text(self, data: str) -> None:
        if self._connection.closed:
            raise ConnectionError("connection closed")
        self._connection.inbox.put_nowait(data)


class LoopbackConnection:
    """Client-side half: the subset of a websockets connection the relay uses."""

    def __init__(self, hub: RelayHub) -> None:
        self.hub = hub
        self.endpoint = LoopbackEndpoint(self)
        self.inbox: asyncio.Queue[str | None] = asyncio.Queue()
        self.sent: list[dict[str, Any]] = []
        self.closed = False

    async def open(self) -> None:
        await self.hub.connect(self.endpoint)

    async def send(self, data: str) -> None:
        if self.closed:
            raise ConnectionError("connection closed")
        self.sent.append(json.loads(data))
        await self.hub.handle_message(self.endpoint, data)

    async def recv(self) -> str:
        item = await self.inbox.get()
        if item is None:
            self.inbox.put_nowait(None)
            raise ConnectionError("connection closed")
        return item

    async def recv_json(self) -> dict[str, Any]:
        return json.loads(await self.recv())

    def __aiter__(self) -> LoopbackConnection:
        return self

    async def __anext__(self) -> str:
        item = await self.inbox.get()
        if item is None:
            self.inbox.put_nowait(None)
            raise StopAsyncIteration
        return item

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.inbox.put_nowait(None)
        await self.hub.disconnect(self.endpoint)


class LoopbackNetwork:
    """Connector factory bound to one in-process hub."""

    def __init__(self, hub: RelayHub | None = None) -> None:
        self.hub = hub or RelayHub()
        self.connections: list[LoopbackConnection] = []
        self.refuse = False

    async def connect(self, url: str) -> LoopbackConnection:
        if self.refuse:
            raise OSError(f"Connection refused: {url}")
        connection = LoopbackConnection(self.hub)
        self.connections.append(connection)
        await connection.open()
        return connection

    async def join_peer(self, channel: str = CHANNEL) -> LoopbackConnection:
        """Open a raw connection, join ``channel`` and drain the handshake."""
        peer = await self.connect("loopback")
        await peer.send(json.dumps({"type": "join", "channel": channel, "id": "peer-join"}))
        while True:
            frame = await peer.recv_json()
            if isinstance(frame.get("message"), dict) and frame["message"].get("id") == "peer-join":
                return peer


async def next_request(peer: LoopbackConnection) -> dict[str, Any]:
    """Read frames until a command request from the remote side arrives."""
    while True:
        frame = await peer.recv_json()
        if frame["type"] == "broadcast" and frame["sender"] == "Remote":
            message = frame["message"]
            if isinstance(message, dict) and "command" in message:
                return message


async def reply(peer: LoopbackConnection, payload: dict[str, Any], channel: str = CHANNEL) -> None:
    await peer.send(json.dumps({"type": "message", "channel": channel, "message": payload}))


@contextlib.asynccontextmanager
async def running_executor(
    network: LoopbackNetwork,
    document: Document | None = None,
    channel: str = CHANNEL,
) -> AsyncIterator[ExecutorAgent]:
    """An executor agent serving ``document`` on the loopback hub."""
    agent = ExecutorAgent(
        create_document_executor(document),
        RelayConfig(channel=channel, timeout=2.0),
        connector=network.connect,
    )
    await agent.connect()
    serve_task = asyncio.create_task(agent.serve())
    try:
        yield agent
    finally:
        await agent.stop()
        serve_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await serve_task


@pytest.fixture
def network() -> LoopbackNetwork:
    """Fresh in-process hub and connector."""
    return LoopbackNetwork()


@pytest.fixture
def relay_config() -> RelayConfig:
    """Issuer config for the loopback hub with a short deadline."""
    return RelayConfig(channel=CHANNEL, timeout=2.0)
