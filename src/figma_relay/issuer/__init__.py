"""Command issuer: correlated request/reply over a hub channel."""

from .client import CommandIssuer, ConnectionState, Connector, websocket_connector
from .pending import PendingRequest, PendingRequestRegistry

__all__ = [
    "CommandIssuer",
    "ConnectionState",
    "Connector",
    "PendingRequest",
    "PendingRequestRegistry",
    "websocket_connector",
]
