"""Command executor - flat dispatch from command name to handler.

Every request yields exactly one reply:
- unknown command   -> {"id": ..., "error": "Unknown command: <name>"}
- handler raised    -> {"id": ..., "error": "<exception message>"}
- handler returned  -> {"id": ..., "result": <value>}

Handlers may be plain functions or coroutines.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from ..protocol import CommandReply, CommandRequest

logger = logging.getLogger(__name__)

# Signature: (params) -> result, or an awaitable of the result
Handler = Callable[[dict[str, Any]], Any]


class CommandExecutor:
    """Runs command requests against a table of handlers."""

    def __init__(self, handlers: dict[str, Handler] | None = None) -> None:
        self._handlers: dict[str, Handler] = dict(handlers or {})

    def register(self, name: str, handler: Handler) -> None:
        if not name:
            raise ValueError("Command name cannot be empty")
        if not callable(handler):
            raise ValueError("Command handler must be callable")
        self._handlers[name] = handler

    @property
    def commands(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    async def execute(self, request: CommandRequest) -> CommandReply:
        """Run one request to completion and build its reply. Never raises."""
        handler = self._handlers.get(request.command)
        if handler is None:
            logger.warning(f"Unknown command: {request.command}")
            return CommandReply.failure(request.id, f"Unknown command: {request.command}")

        try:
            result = handler(request.params)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.info(f"Command {request.command} ({request.id}) failed: {e}")
            return CommandReply.failure(request.id, str(e) or type(e).__name__)

        return CommandReply.success(request.id, result)

    async def execute_payload(self, payload: dict[str, Any]) -> CommandReply:
        """Validate a relayed payload and execute it.

        Payloads that carry an id but are otherwise malformed (e.g. params
        that are not an object) are answered with an error reply.
        """
        try:
            request = CommandRequest.model_validate(payload)
        except ValidationError as e:
            return CommandReply.failure(str(payload.get("id", "")), f"Invalid request: {e}")
        return await self.execute(request)
