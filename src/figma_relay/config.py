"""Relay configuration.

Defaults match a single local hub deployment. Every field can be
overridden from the environment via ``RelayConfig.from_env()``:

    FIGMA_RELAY_HOST     hub host (default: localhost)
    FIGMA_RELAY_PORT     hub port (default: 3055)
    FIGMA_RELAY_CHANNEL  channel shared by issuer and executor (default: figma-mcp)
    FIGMA_RELAY_TIMEOUT  per-request deadline in seconds (default: 30)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 3055
DEFAULT_CHANNEL = "figma-mcp"
DEFAULT_TIMEOUT = 30.0


def _env_number(name: str, default: float, cast: type) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from e


@dataclass
class RelayConfig:
    """Connection settings shared by the hub, issuer and executor agent."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    channel: str = DEFAULT_CHANNEL
    timeout: float = DEFAULT_TIMEOUT

    # Reconnection settings (executor agent only; the issuer never auto-retries)
    reconnect_delay: float = 1.0
    max_reconnect_delay: float = 30.0
    reconnect_backoff: float = 2.0
    max_reconnect_attempts: int = 10

    @property
    def url(self) -> str:
        """WebSocket URL of the hub."""
        return f"ws://{self.host}:{self.port}"

    @property
    def http_url(self) -> str:
        """HTTP URL of the hub (health checks)."""
        return f"http://{self.host}:{self.port}"

    @classmethod
    def from_env(cls) -> RelayConfig:
        """Build a config from ``FIGMA_RELAY_*`` environment variables.

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        return cls(
            host=os.environ.get("FIGMA_RELAY_HOST") or DEFAULT_HOST,
            port=int(_env_number("FIGMA_RELAY_PORT", DEFAULT_PORT, int)),
            channel=os.environ.get("FIGMA_RELAY_CHANNEL") or DEFAULT_CHANNEL,
            timeout=float(_env_number("FIGMA_RELAY_TIMEOUT", DEFAULT_TIMEOUT, float)),
        )

    def with_overrides(self, **overrides: object) -> RelayConfig:
        """Return a copy with the non-None overrides applied (CLI options)."""
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **values)
