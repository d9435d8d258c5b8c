"""Relay hub application.

Creates the Starlette ASGI application:
- ws://host:port/  - WebSocket relay (join / message envelopes)
- GET /            - plain-text banner
- GET /health      - health check with channel member counts
"""

from __future__ import annotations

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware

from .hub import RelayHub, hub_routes


def create_app(hub: RelayHub | None = None) -> Starlette:
    """Create the relay hub application.

    Args:
        hub: Hub instance to serve; a fresh one is created if omitted

    Returns:
        Configured Starlette application
    """
    # The relay is reached from design-tool plugin UIs with arbitrary origins
    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type"],
        ),
    ]

    app = Starlette(routes=list(hub_routes), middleware=middleware)
    app.state.hub = hub or RelayHub()
    return app
