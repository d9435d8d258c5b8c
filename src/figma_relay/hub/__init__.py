"""Relay hub: channel registry plus store-and-forward routing."""

from .channels import ChannelRegistry
from .relay import Endpoint, RelayHub
from .routes import hub_routes

__all__ = [
    "ChannelRegistry",
    "Endpoint",
    "RelayHub",
    "hub_routes",
]
