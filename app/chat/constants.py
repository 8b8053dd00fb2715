"""
Constants and configuration for the chat module.

This module centralizes configuration values for:
- Message operations (text clipping, history page sizes)
- Attachment uploads (size cap, storage key prefix)
- Moderation (admin queue size)
- Realtime event names exchanged over the WebSocket

Defaults mirror settings.CHAT. Code that runs per request reads
``chat_setting()`` so deployments can override values through the
environment; the class attributes are the fallbacks.

Import example:
    from chat.constants import MESSAGE_CONFIG, EVENTS, chat_setting
"""

from typing import Final

from django.conf import settings


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    # Longer text is clipped silently, never rejected
    MAX_TEXT_LENGTH: Final[int] = 5000

    # History pagination
    DEFAULT_PAGE_SIZE: Final[int] = 50
    MAX_PAGE_SIZE: Final[int] = 200


# =============================================================================
# Attachment Configuration
# =============================================================================


class ATTACHMENT_CONFIG:
    """Configuration for attachment uploads."""

    MAX_UPLOAD_BYTES: Final[int] = 10 * 1024 * 1024  # 10 MiB
    DEFAULT_MIME_TYPE: Final[str] = "application/octet-stream"

    # Storage keys look like chat/2024-05-01/<hex>.<ext>
    KEY_PREFIX: Final[str] = "chat"


# =============================================================================
# Moderation Configuration
# =============================================================================


class MODERATION_CONFIG:
    """Configuration for the report moderation queue."""

    ADMIN_REPORT_LIMIT: Final[int] = 500


# =============================================================================
# Realtime Events
# =============================================================================


class EVENTS:
    """
    Event names on the WebSocket.

    Client -> server events are dispatched by ChatConsumer.receive_json.
    Server -> client events are sent by the channel-layer handlers.
    """

    # client -> server
    JOIN: Final[str] = "chat:join"
    LEAVE: Final[str] = "chat:leave"
    TYPING: Final[str] = "chat:typing"
    MESSAGE: Final[str] = "chat:message"
    READ: Final[str] = "chat:read"

    # server -> client
    MESSAGE_NEW: Final[str] = "chat:message:new"

    # channel-layer handler types (dots map to underscores on the consumer)
    LAYER_MESSAGE_NEW: Final[str] = "chat.message.new"
    LAYER_TYPING: Final[str] = "chat.typing"
    LAYER_READ: Final[str] = "chat.read"


_DEFAULTS: Final[dict] = {
    "MAX_TEXT_LENGTH": MESSAGE_CONFIG.MAX_TEXT_LENGTH,
    "DEFAULT_PAGE_SIZE": MESSAGE_CONFIG.DEFAULT_PAGE_SIZE,
    "MAX_PAGE_SIZE": MESSAGE_CONFIG.MAX_PAGE_SIZE,
    "MAX_UPLOAD_BYTES": ATTACHMENT_CONFIG.MAX_UPLOAD_BYTES,
    "ADMIN_REPORT_LIMIT": MODERATION_CONFIG.ADMIN_REPORT_LIMIT,
    "ATTACHMENT_STORE": "chat.storage.default_store",
    "ATTACHMENT_PREFIX": ATTACHMENT_CONFIG.KEY_PREFIX,
}


def chat_setting(name: str):
    """Read a value from settings.CHAT, falling back to the module default."""
    return getattr(settings, "CHAT", {}).get(name, _DEFAULTS[name])
