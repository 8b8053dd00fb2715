"""
Attachment storage for chat uploads.

The chat core only ever calls a ``store(data, mime_type, original_name)``
callable and keeps what it returns ({url, mime, size, name}) as message
attachment metadata. The default implementation writes through Django's
``default_storage``, which is S3 (django-storages) when a bucket is
configured and the local filesystem otherwise.

Swap the implementation with settings.CHAT["ATTACHMENT_STORE"]:
    CHAT = {"ATTACHMENT_STORE": "myproject.storage.virus_scanned_store"}
"""

from __future__ import annotations

import os
import re
import secrets
from typing import TYPE_CHECKING

from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.utils import timezone
from django.utils.module_loading import import_string

from chat.constants import ATTACHMENT_CONFIG, chat_setting

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

_EXTENSION_RE = re.compile(r"^[A-Za-z0-9]{1,10}$")


def build_storage_key(original_name: str | None) -> str:
    """
    Build a collision-free storage key for an upload.

    Format: ``<prefix>/<YYYY-MM-DD>/<32 hex chars>.<ext>``. The extension is
    taken from the original file name when it looks sane, ``bin`` otherwise.
    """
    ext = os.path.splitext(original_name or "")[1].lstrip(".")
    if not _EXTENSION_RE.match(ext):
        ext = "bin"
    day = timezone.now().date().isoformat()
    prefix = chat_setting("ATTACHMENT_PREFIX")
    return f"{prefix}/{day}/{secrets.token_hex(16)}.{ext.lower()}"


def default_store(data: bytes, mime_type: str, original_name: str) -> dict[str, Any]:
    """
    Save bytes through default_storage and describe the stored object.

    Returns:
        {"url": str, "mime": str, "size": int, "name": str}
    """
    key = build_storage_key(original_name)
    content = ContentFile(data, name=original_name or key)
    # S3Storage picks ContentType up from the file object
    content.content_type = mime_type
    saved_key = default_storage.save(key, content)
    return {
        "url": default_storage.url(saved_key),
        "mime": mime_type or ATTACHMENT_CONFIG.DEFAULT_MIME_TYPE,
        "size": len(data),
        "name": original_name or os.path.basename(saved_key),
    }


def get_attachment_store() -> Callable[[bytes, str, str], dict[str, Any]]:
    """Resolve the configured store callable."""
    return import_string(chat_setting("ATTACHMENT_STORE"))
