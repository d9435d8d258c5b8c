"""Pending request registry.

Tracks in-flight requests by correlation id. Each entry owns one future;
whichever path settles it first (reply, timeout, transport failure) removes
the entry, so a request is settled exactly once and a late reply for a
removed id is simply dropped.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..errors import RemoteError
from ..protocol import CommandReply, new_request_id

logger = logging.getLogger(__name__)


@dataclass
class PendingRequest:
    """One in-flight command awaiting a reply."""

    request_id: str
    command: str
    params: dict[str, Any]
    future: asyncio.Future[Any]
    created_at: float = field(default_factory=lambda: asyncio.get_running_loop().time())

    @property
    def age(self) -> float:
        """Seconds since the request was registered."""
        return asyncio.get_running_loop().time() - self.created_at


class PendingRequestRegistry:
    """Correlation table: request id -> PendingRequest."""

    def __init__(self) -> None:
        self._pending: dict[str, PendingRequest] = {}

    def register(
        self,
        command: str,
        params: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> PendingRequest:
        """Register a new pending request.

        Args:
            command: Command name (for diagnostics and RemoteError)
            params: Request parameters
            request_id: Correlation id; generated if omitted

        Returns:
            The registered request; await ``request.future`` for the outcome

        Raises:
            ValueError: If the id is already outstanding
        """
        request_id = request_id or new_request_id()
        if request_id in self._pending:
            raise ValueError(f"Correlation id already outstanding: {request_id}")

        loop = asyncio.get_running_loop()
        pending = PendingRequest(
            request_id=request_id,
            command=command,
            params=params or {},
            future=loop.create_future(),
        )
        self._pending[request_id] = pending
        return pending

    def settle(self, reply: CommandReply) -> bool:
        """Settle the request matching a reply.

        Returns:
            True if a pending request was settled, False if the id is unknown
            (never registered, already settled, or timed out)
        """
        pending = self._pending.pop(reply.id, None)
        if pending is None:
            return False
        if pending.future.done():
            return False

        if reply.is_error:
            pending.future.set_exception(
                RemoteError(reply.error or "", command=pending.command, request_id=reply.id)
            )
        else:
            pending.future.set_result(reply.result)
        return True

    def discard(self, request_id: str) -> PendingRequest | None:
        """Remove a request without settling it (timeout / caller cancelled)."""
        return self._pending.pop(request_id, None)

    def fail_all(self, make_error: Callable[[], BaseException]) -> int:
        """Fail every outstanding request.

        Args:
            make_error: Factory producing a fresh exception per request

        Returns:
            Number of requests failed
        """
        pending, self._pending = self._pending, {}
        count = 0
        for request in pending.values():
            if not request.future.done():
                request.future.set_exception(make_error())
                count += 1
        return count

    def get_pending_requests(self) -> list[dict[str, Any]]:
        """Summaries of outstanding requests (diagnostics)."""
        return [
            {"request_id": p.request_id, "command": p.command, "age": p.age}
            for p in self._pending.values()
        ]

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    def __len__(self) -> int:
        return len(self._pending)
