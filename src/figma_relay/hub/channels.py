"""Channel registry - named rendezvous sets of connected endpoints.

Membership is endpoint identity. Channels are created on first join and
dropped as soon as their last member leaves.

All mutation happens on the event loop thread, so no locking is needed.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable

logger = logging.getLogger(__name__)


class ChannelRegistry:
    """Maps channel names to the set of endpoints currently joined."""

    def __init__(self) -> None:
        self._channels: dict[str, set[Hashable]] = {}

    def join(self, channel: str, endpoint: Hashable) -> bool:
        """Add an endpoint to a channel, creating the channel if needed.

        Returns:
            True if the endpoint was newly added, False if already a member
        """
        members = self._channels.setdefault(channel, set())
        if endpoint in members:
            return False
        members.add(endpoint)
        return True

    def is_member(self, channel: str | None, endpoint: Hashable) -> bool:
        """Check whether an endpoint has joined the channel."""
        if channel is None:
            return False
        return endpoint in self._channels.get(channel, ())

    def members(self, channel: str) -> list[Hashable]:
        """Snapshot of a channel's members (safe to iterate across awaits)."""
        return list(self._channels.get(channel, ()))

    def remove(self, endpoint: Hashable) -> list[str]:
        """Remove an endpoint from every channel it belongs to.

        Returns:
            Names of the channels the endpoint was removed from
        """
        left: list[str] = []
        for name, members in list(self._channels.items()):
            if endpoint in members:
                members.discard(endpoint)
                left.append(name)
                if not members:
                    del self._channels[name]
                    logger.debug(f"Channel {name} is empty, dropped")
        return left

    def channel_names(self) -> list[str]:
        return sorted(self._channels)

    def summary(self) -> dict[str, int]:
        """Member count per channel (health endpoint)."""
        return {name: len(members) for name, members in sorted(self._channels.items())}

    def __contains__(self, channel: object) -> bool:
        return channel in self._channels

    def __len__(self) -> int:
        return len(self._channels)
