"""
Realtime gateway: room-based fan-out over the channel layer.

One room per conversation. Connections (identified by their channel layer
``channel_name``) subscribe to rooms through join/leave, and every event
published to a room reaches all of its subscribers, the publisher included.

The gateway is the only component that mutates room membership. It keeps
its own table of which connection is in which room so a disconnect can drop
every subscription at once; the table is private and only exposed through
read-only queries.

Usage:
    from chat.realtime import gateway

    # From async code (the consumer)
    await gateway.join(conversation_id, self.channel_name)
    await gateway.publish(conversation_id, EVENTS.LAYER_TYPING, {...})

    # From sync code (services, after commit)
    gateway.publish_sync(conversation_id, EVENTS.LAYER_MESSAGE_NEW, {...})
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING

from asgiref.sync import async_to_sync
from channels.layers import DEFAULT_CHANNEL_LAYER, get_channel_layer

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


class RealtimeGateway:
    """
    Publish/subscribe over channel layer groups, keyed by conversation id.

    Attributes:
        layer_alias: Which CHANNEL_LAYERS entry to use
    """

    def __init__(self, layer_alias: str = DEFAULT_CHANNEL_LAYER):
        self.layer_alias = layer_alias
        self._rooms: dict[int, set[str]] = defaultdict(set)
        self._subscriptions: dict[str, set[int]] = defaultdict(set)

    @staticmethod
    def room_name(conversation_id: int) -> str:
        """Channel layer group name for a conversation."""
        return f"chat_{conversation_id}"

    @property
    def channel_layer(self):
        return get_channel_layer(self.layer_alias)

    # -------------------------------------------------------------------------
    # Membership
    # -------------------------------------------------------------------------

    async def join(self, conversation_id: int, channel_name: str) -> None:
        """Subscribe a connection to a conversation's room (idempotent)."""
        await self.channel_layer.group_add(self.room_name(conversation_id), channel_name)
        self._rooms[conversation_id].add(channel_name)
        self._subscriptions[channel_name].add(conversation_id)
        logger.debug(f"{channel_name} joined room {conversation_id}")

    async def leave(self, conversation_id: int, channel_name: str) -> None:
        """Unsubscribe a connection from a room; leaving an unjoined room is a no-op."""
        await self.channel_layer.group_discard(
            self.room_name(conversation_id), channel_name
        )
        self._forget(conversation_id, channel_name)
        logger.debug(f"{channel_name} left room {conversation_id}")

    async def disconnect(self, channel_name: str) -> None:
        """Drop every room subscription held by a closing connection."""
        conversation_ids = self._subscriptions.pop(channel_name, set())
        for conversation_id in conversation_ids:
            await self.channel_layer.group_discard(
                self.room_name(conversation_id), channel_name
            )
            self._forget(conversation_id, channel_name)
        if conversation_ids:
            logger.debug(f"{channel_name} dropped {len(conversation_ids)} room(s)")

    def _forget(self, conversation_id: int, channel_name: str) -> None:
        members = self._rooms.get(conversation_id)
        if members is not None:
            members.discard(channel_name)
            if not members:
                del self._rooms[conversation_id]
        joined = self._subscriptions.get(channel_name)
        if joined is not None:
            joined.discard(conversation_id)
            if not joined:
                del self._subscriptions[channel_name]

    # -------------------------------------------------------------------------
    # Read-only queries
    # -------------------------------------------------------------------------

    def is_subscribed(self, conversation_id: int, channel_name: str) -> bool:
        return channel_name in self._rooms.get(conversation_id, ())

    def subscriber_count(self, conversation_id: int) -> int:
        """Connections of this process subscribed to the room."""
        return len(self._rooms.get(conversation_id, ()))

    def rooms_for(self, channel_name: str) -> frozenset[int]:
        return frozenset(self._subscriptions.get(channel_name, ()))

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    async def publish(
        self, conversation_id: int, event_type: str, payload: dict[str, Any]
    ) -> None:
        """
        Send an event to every connection in the room.

        ``event_type`` is the channel-layer handler type (e.g. "chat.typing");
        the consumer method with the matching name renders it for clients.
        """
        channel_layer = self.channel_layer
        if channel_layer is None:
            logger.warning(
                f"No channel layer configured; dropped {event_type} for room {conversation_id}"
            )
            return
        await channel_layer.group_send(
            self.room_name(conversation_id),
            {"type": event_type, "conversation_id": conversation_id, **payload},
        )

    def publish_sync(
        self, conversation_id: int, event_type: str, payload: dict[str, Any]
    ) -> None:
        """Synchronous publish for service code running outside the event loop."""
        async_to_sync(self.publish)(conversation_id, event_type, payload)


# Process-wide gateway used by the consumer and the services
gateway = RealtimeGateway()
