"""Command issuer - call-and-await over the relay hub.

``CommandIssuer.invoke(command, params)`` turns one call into a correlated
request, relays it through the hub channel, and resolves with the
executor's reply:

1. Connect to the hub and join the channel (first call, or after a drop)
2. Register a PendingRequest under a fresh correlation id
3. Send ``{"type": "message", "channel": ..., "message": {id, command, params}}``
4. A background reader settles the request when a broadcast from the
   remote side carries ``{id, result}`` or ``{id, error}``

Failures surface to the caller: TransportError (connect failed or the
connection dropped), CommandTimeoutError (deadline), RemoteError (executor
reported an error). Failed invocations are never retried automatically.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import websockets
from pydantic import ValidationError

from ..config import RelayConfig
from ..errors import CommandTimeoutError, ProtocolError, TransportError
from ..protocol import (
    BroadcastEnvelope,
    CommandReply,
    CommandRequest,
    Envelope,
    ErrorEnvelope,
    JoinEnvelope,
    MessageEnvelope,
    Sender,
    SystemEnvelope,
    parse_envelope,
)
from .pending import PendingRequestRegistry

logger = logging.getLogger(__name__)

# Opens a connection to the hub URL. The result must support
# ``await send(str)``, ``await close()`` and ``async for frame in conn``.
Connector = Callable[[str], Awaitable[Any]]


async def websocket_connector(url: str) -> Any:
    """Default connector: a websockets client connection."""
    return await websockets.connect(url, ping_interval=30, ping_timeout=10)


class ConnectionState(str, Enum):
    """Issuer connection state."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class CommandIssuer:
    """Issues commands to a remote executor through a hub channel.

    Any number of ``invoke`` calls may be outstanding at once; replies are
    routed by correlation id regardless of arrival order.

    Usage:
        async with CommandIssuer(RelayConfig()) as issuer:
            info = await issuer.invoke("get_document_info")
    """

    def __init__(
        self,
        config: RelayConfig | None = None,
        connector: Connector | None = None,
    ) -> None:
        self.config = config or RelayConfig()
        self._connector = connector or websocket_connector
        self._pending = PendingRequestRegistry()
        self._ws: Any = None
        self._state = ConnectionState.DISCONNECTED
        self._reader_task: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED and self._ws is not None

    @property
    def pending(self) -> PendingRequestRegistry:
        """The correlation table (read-only use outside the issuer)."""
        return self._pending

    async def connect(self) -> None:
        """Connect to the hub and complete the channel join handshake.

        Concurrent callers share a single attempt. No-op when connected.

        Raises:
            TransportError: If the hub is unreachable or the join is not
                acknowledged within the request timeout
        """
        async with self._lock:
            if self.is_connected:
                return

            self._state = ConnectionState.CONNECTING
            url = self.config.url
            try:
                ws = await self._connector(url)
            except Exception as e:
                self._state = ConnectionState.DISCONNECTED
                raise TransportError(f"Cannot connect to relay at {url}: {e}") from e

            self._ws = ws
            self._reader_task = asyncio.create_task(self._read_loop(ws))

            try:
                await self._join()
            except BaseException:
                await self._shutdown("Join handshake failed")
                raise

            self._state = ConnectionState.CONNECTED
            logger.info(f"Connected to relay {url}, channel {self.config.channel}")

    async def _join(self) -> None:
        join = JoinEnvelope(channel=self.config.channel)
        pending = self._pending.register("join", {"channel": self.config.channel}, join.id)
        try:
            await self._send(join)
            await asyncio.wait_for(pending.future, timeout=self.config.timeout)
        except TimeoutError as e:
            raise TransportError(
                f"Relay did not acknowledge join of channel {self.config.channel} "
                f"within {self.config.timeout}s"
            ) from e
        finally:
            self._pending.discard(join.id)

    async def invoke(self, command: str, params: dict[str, Any] | None = None) -> Any:
        """Run a command on the remote executor and return its result.

        Args:
            command: Command name understood by the executor
            params: Command parameters (JSON-serializable)

        Returns:
            The ``result`` value of the executor's reply

        Raises:
            TransportError: Connection unavailable or closed before the reply
            CommandTimeoutError: No reply within ``config.timeout`` of sending
            RemoteError: The executor replied with an error
        """
        await self.connect()

        request = CommandRequest(command=command, params=params or {})
        pending = self._pending.register(command, request.params, request.id)
        try:
            await self._send(
                MessageEnvelope(channel=self.config.channel, message=request.model_dump())
            )
            return await asyncio.wait_for(pending.future, timeout=self.config.timeout)
        except TimeoutError:
            if pending.future.done() and not pending.future.cancelled():
                raise
            logger.warning(f"Timeout waiting for response to {command} ({request.id})")
            raise CommandTimeoutError(command, self.config.timeout, request.id) from None
        finally:
            self._pending.discard(request.id)

    async def close(self) -> None:
        """Close the connection and fail any outstanding requests."""
        async with self._lock:
            await self._shutdown("Issuer closed")

    async def _shutdown(self, reason: str) -> None:
        ws, self._ws = self._ws, None
        self._state = ConnectionState.DISCONNECTED

        if self._reader_task:
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
            self._reader_task = None

        failed = self._pending.fail_all(lambda: TransportError(reason))
        if failed:
            logger.warning(f"{reason}: failed {failed} outstanding request(s)")

        if ws is not None:
            try:
                await ws.close()
            except Exception as e:
                logger.debug(f"Error closing relay connection: {e}")

    async def _send(self, envelope: Envelope) -> None:
        ws = self._ws
        if ws is None:
            raise TransportError("Not connected to relay")
        try:
            await ws.send(envelope.to_json())
        except Exception as e:
            raise TransportError(f"Failed to send to relay: {e}") from e

    async def _read_loop(self, ws: Any) -> None:
        """Background task: route frames from the hub to pending requests."""
        reason = "Connection to relay closed"
        try:
            async for raw in ws:
                self._handle_frame(raw)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            reason = f"Connection to relay failed: {e}"
            logger.warning(reason)
        finally:
            self._connection_lost(ws, reason)

    def _connection_lost(self, ws: Any, reason: str) -> None:
        if self._ws is not ws:
            return
        self._ws = None
        self._state = ConnectionState.DISCONNECTED
        failed = self._pending.fail_all(lambda: TransportError(reason))
        logger.warning(f"{reason} ({failed} outstanding request(s) failed)")

    def _handle_frame(self, raw: str | bytes) -> None:
        try:
            envelope = parse_envelope(raw)
        except ProtocolError as e:
            logger.error(f"Error parsing relay message: {e}")
            return

        if isinstance(envelope, BroadcastEnvelope):
            # Our own requests come back tagged "You"; only the remote side replies
            if envelope.sender == Sender.REMOTE and CommandReply.is_reply(envelope.message):
                self._settle(envelope.message)
        elif isinstance(envelope, SystemEnvelope):
            # Join acknowledgment: {"id": <join id>, "result": "Connected to channel: ..."}
            if CommandReply.is_reply(envelope.message):
                self._settle(envelope.message)
            else:
                logger.debug(f"Relay notice: {envelope.message}")
        elif isinstance(envelope, ErrorEnvelope):
            logger.warning(f"Relay error: {envelope.message}")

    def _settle(self, payload: dict[str, Any]) -> None:
        try:
            reply = CommandReply.model_validate(payload)
        except ValidationError as e:
            logger.error(f"Malformed reply from executor: {e}")
            return

        if not self._pending.settle(reply):
            logger.debug(f"Dropping reply for unknown or expired request {reply.id}")

    async def __aenter__(self) -> CommandIssuer:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
