"""Error taxonomy for the relay.

Issuer-side errors propagate to the caller of ``CommandIssuer.invoke``:
- TransportError: the connection could not be established, or closed
  while a request was outstanding
- CommandTimeoutError: no reply arrived before the deadline
- RemoteError: the executor replied with an ``error`` field

ProtocolError is hub-local. It is turned into an error notice for the
offending endpoint and never tears down the connection or channel.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for all relay errors."""

    pass


class TransportError(RelayError):
    """Raised when the transport is unavailable or closes mid-request."""

    pass


class CommandTimeoutError(RelayError, TimeoutError):
    """Raised when no reply arrives within the request deadline."""

    def __init__(self, command: str, timeout: float, request_id: str | None = None):
        super().__init__(f"Timeout waiting for response to '{command}' after {timeout}s")
        self.command = command
        self.timeout = timeout
        self.request_id = request_id


class RemoteError(RelayError):
    """Raised when the executor reports a failure for a request.

    The message is the executor's error text, verbatim.
    """

    def __init__(self, message: str, command: str | None = None, request_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.command = command
        self.request_id = request_id


class ProtocolError(RelayError):
    """Raised by the hub for malformed or out-of-order envelopes."""

    pass
