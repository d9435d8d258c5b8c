"""HTTP and WebSocket routes for the relay hub.

Both the WebSocket relay and the plain-text banner live at ``/``;
Starlette dispatches on the scope type.
"""

from __future__ import annotations

import logging

from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket, WebSocketDisconnect

from .relay import RelayHub

logger = logging.getLogger(__name__)

BANNER = "Figma relay WebSocket server is running."


def _hub(connection: Request | WebSocket) -> RelayHub:
    return connection.app.state.hub


async def index(request: Request) -> PlainTextResponse:
    """Banner for plain HTTP requests to the relay address."""
    return PlainTextResponse(BANNER)


async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint with per-channel member counts."""
    return JSONResponse({"status": "ok", "channels": _hub(request).channels.summary()})


async def relay_endpoint(websocket: WebSocket) -> None:
    """Bind one WebSocket connection to the hub for its whole lifetime."""
    hub = _hub(websocket)
    await websocket.accept()
    await hub.connect(websocket)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            await hub.handle_message(websocket, raw)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.exception(f"WebSocket relay error: {e}")
    finally:
        await hub.disconnect(websocket)


hub_routes = [
    Route("/", index, methods=["GET"]),
    Route("/health", health_check, methods=["GET"]),
    WebSocketRoute("/", relay_endpoint),
]
