"""Executor agent - serves command requests arriving on a hub channel.

Flow:
1. Connect to the hub and join the channel (wait for the join ack)
2. Listen for broadcasts from the remote side carrying {id, command, params}
3. Run each request as its own task on the CommandExecutor
4. Send the reply {id, result} / {id, error} back into the channel

Handlers may suspend (font loading, export), so replies can leave in a
different order than requests arrived; each request still gets exactly
one reply. On connection loss the agent reconnects with exponential
backoff.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

from ..config import RelayConfig
from ..errors import ProtocolError, TransportError
from ..issuer.client import Connector, websocket_connector
from ..protocol import (
    BroadcastEnvelope,
    CommandRequest,
    ErrorEnvelope,
    JoinEnvelope,
    MessageEnvelope,
    Sender,
    SystemEnvelope,
    parse_envelope,
)
from .dispatcher import CommandExecutor

logger = logging.getLogger(__name__)


class ExecutorAgent:
    """Attaches a CommandExecutor to a hub channel."""

    def __init__(
        self,
        executor: CommandExecutor,
        config: RelayConfig | None = None,
        connector: Connector | None = None,
    ) -> None:
        self.executor = executor
        self.config = config or RelayConfig()
        self._connector = connector or websocket_connector
        self._ws: Any = None
        self._running = False
        self._reconnect_attempts = 0
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    async def connect(self) -> None:
        """Connect to the hub and join the configured channel.

        Raises:
            TransportError: If the hub is unreachable or the join is not
                acknowledged within the configured timeout
        """
        url = self.config.url
        try:
            ws = await self._connector(url)
        except Exception as e:
            raise TransportError(f"Cannot connect to relay at {url}: {e}") from e

        join = JoinEnvelope(channel=self.config.channel)
        try:
            await ws.send(join.to_json())
            await asyncio.wait_for(self._wait_for_join_ack(ws, join.id), self.config.timeout)
        except Exception as e:
            with contextlib.suppress(Exception):
                await ws.close()
            raise TransportError(f"Failed to join channel {self.config.channel}: {e}") from e

        self._ws = ws
        logger.info(f"Executor joined channel {self.config.channel} on {url}")

    async def _wait_for_join_ack(self, ws: Any, join_id: str) -> None:
        while True:
            try:
                envelope = parse_envelope(await ws.recv())
            except ProtocolError as e:
                logger.warning(f"Ignoring malformed frame during join: {e}")
                continue

            if isinstance(envelope, ErrorEnvelope):
                raise ProtocolError(str(envelope.message))
            if (
                isinstance(envelope, SystemEnvelope)
                and isinstance(envelope.message, dict)
                and envelope.message.get("id") == join_id
            ):
                return

    async def serve(self) -> None:
        """Process requests until the connection closes."""
        ws = self._ws
        if ws is None:
            raise TransportError("Not connected to relay")

        try:
            async for raw in ws:
                self._handle_frame(raw)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Relay connection error: {e}")
        finally:
            if self._ws is ws:
                self._ws = None

    def _handle_frame(self, raw: str | bytes) -> None:
        try:
            envelope = parse_envelope(raw)
        except ProtocolError as e:
            logger.error(f"Error parsing relay message: {e}")
            return

        if isinstance(envelope, BroadcastEnvelope):
            # Our own replies echo back tagged "You"
            if envelope.sender == Sender.REMOTE and CommandRequest.is_request(envelope.message):
                task = asyncio.create_task(self._run_request(envelope.message))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
        elif isinstance(envelope, ErrorEnvelope):
            logger.warning(f"Relay error: {envelope.message}")
        else:
            logger.debug(f"Relay notice: {envelope.message}")

    async def _run_request(self, payload: dict[str, Any]) -> None:
        logger.debug(f"Executing command: {payload.get('command')}")
        reply = await self.executor.execute_payload(payload)
        try:
            await self._send(MessageEnvelope(channel=self.config.channel, message=reply.to_payload()))
        except TransportError as e:
            logger.warning(f"Could not deliver reply for {reply.id}: {e}")

    async def _send(self, envelope: MessageEnvelope) -> None:
        ws = self._ws
        if ws is None:
            raise TransportError("Not connected to relay")
        try:
            await ws.send(envelope.to_json())
        except Exception as e:
            raise TransportError(f"Failed to send to relay: {e}") from e

    async def run(self) -> None:
        """Main loop: connect, serve, reconnect with backoff.

        Raises:
            TransportError: When ``max_reconnect_attempts`` consecutive
                connection attempts have failed
        """
        self._running = True
        delay = self.config.reconnect_delay

        while self._running:
            if not self.is_connected:
                try:
                    await self.connect()
                except TransportError as e:
                    self._reconnect_attempts += 1
                    if self._reconnect_attempts > self.config.max_reconnect_attempts:
                        logger.error("Max reconnection attempts reached")
                        raise
                    logger.warning(f"{e}; retrying in {delay:g}s")
                    await asyncio.sleep(delay)
                    delay = min(delay * self.config.reconnect_backoff, self.config.max_reconnect_delay)
                    continue

                self._reconnect_attempts = 0
                delay = self.config.reconnect_delay

            await self.serve()
            if self._running:
                logger.warning("Connection to relay lost, reconnecting")

    async def stop(self) -> None:
        """Stop serving, cancel in-flight requests and close the connection."""
        self._running = False

        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except Exception as e:
                logger.debug(f"Error closing relay connection: {e}")
        logger.info("Executor stopped")
