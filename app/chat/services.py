"""
Chat system service layer.

This module provides the business logic for the chat system. The REST views
and the WebSocket consumer both call these methods, so membership, blocking
and clipping rules exist exactly once.

Services:
    ConversationService: Create/list/get conversations, blocks, mutes
    MessageService: Send, history, read receipts, per-viewer hiding, notices
    ReportService: Abuse reports and the moderation queue
    AttachmentService: Upload bytes to the configured attachment store

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return ServiceResult.failure() with an error code
      from core.exceptions (INVALID_PAYLOAD, FORBIDDEN, BLOCKED, NOT_FOUND,
      INVALID_STATUS, UPLOAD_TOO_LARGE, STORAGE_UNAVAILABLE)
    - Unexpected failures raise exceptions
    - Realtime events are published only after the write commits

Usage:
    from chat.services import ConversationService, MessageService

    result = ConversationService.create(
        requester=user,
        type="transport",
        participant_ids=[carrier.id],
        transport_id="job-42",
    )

    result = MessageService.send_message(
        conversation_id=result.data.id,
        sender=user,
        text="Hello!",
    )
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone as dt_timezone
from functools import partial
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Count, Q, Value
from django.db.models.functions import Greatest
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from core.services import BaseService, ServiceResult

from chat.constants import ATTACHMENT_CONFIG, EVENTS, chat_setting
from chat.models import (
    BlockedPair,
    Conversation,
    ConversationType,
    Message,
    Participant,
    ParticipantRole,
    Report,
    ReportStatus,
)
from chat.realtime import gateway
from chat.serializers import message_view
from chat.storage import get_attachment_store

if TYPE_CHECKING:
    from typing import Any

    from django.core.files.uploadedfile import UploadedFile
    from django.db.models import QuerySet

    from authentication.models import User

logger = logging.getLogger(__name__)


# =============================================================================
# Input coercion helpers
# =============================================================================


def coerce_id(value) -> int | None:
    """
    Turn a client-supplied identifier into a primary key.

    Accepts ints and digit strings; anything else (including bools) is None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip()) or None
    return None


def coerce_datetime(value) -> datetime | None:
    """
    Parse an ISO 8601 timestamp (or pass a datetime through).

    Naive values are taken as UTC. Returns None for None/empty input.

    Raises:
        ValueError: If the value is not a recognizable timestamp
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = parse_datetime(value.strip())
        if parsed is None:
            raise ValueError(f"Not an ISO 8601 timestamp: {value!r}")
    else:
        raise ValueError(f"Not an ISO 8601 timestamp: {value!r}")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, dt_timezone.utc)
    return parsed


def _on_commit_publish(conversation_id: int, event_type: str, payload: dict) -> None:
    """Publish to the room once the surrounding transaction commits."""
    transaction.on_commit(
        partial(gateway.publish_sync, conversation_id, event_type, payload),
        robust=True,
    )


# =============================================================================
# ConversationService
# =============================================================================


class ConversationService(BaseService):
    """
    Service for conversation lifecycle operations.

    Methods:
        create: Create a conversation (transport conversations are deduplicated)
        open_for_transport: Create/reuse the receiver-carrier conversation for a job
        list_for_user: Conversations the user participates in
        get: Load a conversation for one of its participants
        is_participant: Membership check used by the realtime join
        set_block / clear_block: Directional blocks inside a conversation
        set_mute: Mute notifications for the caller until a timestamp
    """

    @classmethod
    def create(
        cls,
        requester: User,
        type: str | None,
        participant_ids: list | None,
        transport_id: str | None = None,
        roles: dict[int, str] | None = None,
    ) -> ServiceResult[Conversation]:
        """
        Create a conversation containing the requester and participant_ids.

        For ``transport`` conversations with a transport_id, an existing
        conversation for the same job whose participants include everyone
        requested is returned instead of creating a duplicate. Direct
        conversations are never deduplicated.

        Args:
            requester: User creating the conversation (becomes created_by)
            type: "direct" or "transport"
            participant_ids: Other users' ids (requester is added implicitly)
            transport_id: Transport job reference
            roles: Optional user id -> ParticipantRole (default "other")

        Returns:
            ServiceResult with Conversation (existing or new)

        Error codes:
            INVALID_PAYLOAD: Missing/unknown type, empty or malformed ids,
                unknown users, or fewer than two distinct participants
        """
        result = cls.create_or_reuse(requester, type, participant_ids, transport_id, roles)
        if not result.success:
            return result
        conversation, _ = result.data
        return ServiceResult.success(conversation)

    @classmethod
    def create_or_reuse(
        cls,
        requester: User,
        type: str | None,
        participant_ids: list | None,
        transport_id: str | None = None,
        roles: dict[int, str] | None = None,
    ) -> ServiceResult[tuple[Conversation, bool]]:
        """
        Same as create, but also says whether a new conversation was written.

        Returns:
            ServiceResult with (conversation, created)
        """
        if type not in ConversationType.values:
            return ServiceResult.failure(
                "type must be one of: " + ", ".join(ConversationType.values),
                error_code="INVALID_PAYLOAD",
                errors={"type": ["Invalid or missing conversation type."]},
            )
        if not isinstance(participant_ids, (list, tuple)) or not participant_ids:
            return ServiceResult.failure(
                "participantIds must be a non-empty list",
                error_code="INVALID_PAYLOAD",
                errors={"participantIds": ["Must be a non-empty list of user ids."]},
            )

        coerced = [coerce_id(value) for value in participant_ids]
        if None in coerced:
            return ServiceResult.failure(
                "participantIds contains malformed ids",
                error_code="INVALID_PAYLOAD",
                errors={"participantIds": ["Every entry must be a user id."]},
            )

        # Requester first, then the order given, without duplicates
        user_ids = list(dict.fromkeys([requester.id, *coerced]))
        if len(user_ids) < 2:
            return ServiceResult.failure(
                "A conversation needs at least two distinct participants",
                error_code="INVALID_PAYLOAD",
                errors={"participantIds": ["Must include someone besides you."]},
            )

        User = get_user_model()
        known = set(User.objects.filter(id__in=user_ids).values_list("id", flat=True))
        unknown = [user_id for user_id in user_ids if user_id not in known]
        if unknown:
            return ServiceResult.failure(
                f"Unknown users: {unknown}",
                error_code="INVALID_PAYLOAD",
                errors={"participantIds": [f"Unknown user id {user_id}." for user_id in unknown]},
            )

        transport_id = (transport_id or "").strip()
        roles = roles or {}

        with cls.atomic():
            if type == ConversationType.TRANSPORT and transport_id:
                existing = cls._find_transport_conversation(transport_id, user_ids)
                if existing is not None:
                    cls.get_logger().debug(
                        f"Reusing transport conversation {existing.id} "
                        f"for job {transport_id}"
                    )
                    return ServiceResult.success((existing, False))

            conversation = Conversation.objects.create(
                type=type,
                transport_id=transport_id,
                created_by=requester,
                last_message_at=timezone.now(),
            )
            Participant.objects.bulk_create(
                [
                    Participant(
                        conversation=conversation,
                        user_id=user_id,
                        role=roles.get(user_id, ParticipantRole.OTHER),
                    )
                    for user_id in user_ids
                ]
            )

        cls.get_logger().info(
            f"User {requester.id} created {type} conversation {conversation.id} "
            f"with {len(user_ids)} participants"
        )
        return ServiceResult.success((conversation, True))

    @classmethod
    def _find_transport_conversation(
        cls, transport_id: str, user_ids: list[int]
    ) -> Conversation | None:
        """Oldest transport conversation for the job containing all user_ids."""
        return (
            Conversation.objects.filter(
                type=ConversationType.TRANSPORT,
                transport_id=transport_id,
            )
            .annotate(
                matched=Count(
                    "participants",
                    filter=Q(participants__user_id__in=user_ids),
                )
            )
            .filter(matched=len(user_ids))
            .order_by("created_at", "id")
            .first()
        )

    @classmethod
    def open_for_transport(
        cls,
        transport_id: str,
        receiver_id: int,
        carrier_id: int,
        notice: str | None = None,
    ) -> ServiceResult[Conversation]:
        """
        Open the conversation for an accepted transport job.

        Called by the marketplace when an offer is accepted. The receiver is
        recorded as creator; roles are receiver and carrier. A system notice
        is posted the first time the conversation is created.

        Error codes:
            INVALID_PAYLOAD: Missing transport id or unknown users
        """
        if not transport_id:
            return ServiceResult.failure(
                "transport_id is required", error_code="INVALID_PAYLOAD"
            )

        User = get_user_model()
        receiver = User.objects.filter(id=coerce_id(receiver_id)).first()
        if receiver is None:
            return ServiceResult.failure(
                f"Unknown receiver {receiver_id}", error_code="INVALID_PAYLOAD"
            )

        # The notice commits together with the conversation it announces
        with cls.atomic():
            result = cls.create_or_reuse(
                requester=receiver,
                type=ConversationType.TRANSPORT,
                participant_ids=[carrier_id],
                transport_id=transport_id,
                roles={
                    receiver.id: ParticipantRole.RECEIVER,
                    coerce_id(carrier_id): ParticipantRole.CARRIER,
                },
            )
            if not result.success:
                return result

            conversation, created = result.data
            if created:
                MessageService.post_system_message(
                    conversation.id,
                    notice or "Transport accepted. You can now chat about the delivery.",
                )
        return ServiceResult.success(conversation)

    @classmethod
    def list_for_user(
        cls, user: User, transport_id: str | None = None
    ) -> QuerySet[Conversation]:
        """
        Conversations the user participates in, newest activity first.

        Args:
            user: Participant to list for
            transport_id: Optional filter on the transport job
        """
        queryset = Conversation.objects.filter(participants__user=user)
        if transport_id:
            queryset = queryset.filter(transport_id=transport_id)
        return (
            queryset.prefetch_related("participants", "blocked_pairs")
            .order_by("-last_message_at", "-id")
            .distinct()
        )

    @classmethod
    def get(cls, conversation_id, user: User) -> ServiceResult[Conversation]:
        """
        Load a conversation for one of its participants.

        Error codes:
            NOT_FOUND: No conversation with that id
            FORBIDDEN: User is not a participant
        """
        pk = coerce_id(conversation_id)
        conversation = (
            Conversation.objects.filter(id=pk)
            .prefetch_related("participants", "blocked_pairs")
            .first()
            if pk is not None
            else None
        )
        if conversation is None:
            return ServiceResult.failure(
                f"Conversation {conversation_id} not found", error_code="NOT_FOUND"
            )
        if not any(p.user_id == user.id for p in conversation.participants.all()):
            return ServiceResult.failure(
                f"User {user.id} is not a participant of conversation {pk}",
                error_code="FORBIDDEN",
            )
        return ServiceResult.success(conversation)

    @classmethod
    def is_participant(cls, conversation_id, user_id) -> bool:
        """Check membership without loading the conversation."""
        pk = coerce_id(conversation_id)
        if pk is None:
            return False
        return Participant.objects.filter(conversation_id=pk, user_id=user_id).exists()

    @classmethod
    def set_block(
        cls, conversation_id, blocker: User, blocked_user_id
    ) -> ServiceResult[BlockedPair]:
        """
        Stop blocked_user_id from sending into the conversation.

        Idempotent: blocking the same user twice keeps a single pair.

        Error codes:
            NOT_FOUND: No conversation with that id
            FORBIDDEN: Blocker is not a participant
            INVALID_PAYLOAD: Malformed/unknown user id, or blocking yourself
        """
        result = cls.get(conversation_id, blocker)
        if not result.success:
            return result
        conversation = result.data

        blocked_id = coerce_id(blocked_user_id)
        if blocked_id is None or not get_user_model().objects.filter(id=blocked_id).exists():
            return ServiceResult.failure(
                f"Unknown user {blocked_user_id!r}",
                error_code="INVALID_PAYLOAD",
                errors={"blockedUserId": ["Unknown user id."]},
            )
        if blocked_id == blocker.id:
            return ServiceResult.failure(
                "Cannot block yourself",
                error_code="INVALID_PAYLOAD",
                errors={"blockedUserId": ["Cannot block yourself."]},
            )

        try:
            with cls.atomic():
                pair, created = BlockedPair.objects.get_or_create(
                    conversation=conversation,
                    blocker=blocker,
                    blocked_id=blocked_id,
                )
        except IntegrityError:
            # Lost a race with an identical block; the pair exists either way
            pair = BlockedPair.objects.get(
                conversation=conversation, blocker=blocker, blocked_id=blocked_id
            )
            created = False

        if created:
            cls.get_logger().info(
                f"User {blocker.id} blocked {blocked_id} in conversation {conversation.id}"
            )
        return ServiceResult.success(pair)

    @classmethod
    def clear_block(
        cls, conversation_id, blocker: User, blocked_user_id
    ) -> ServiceResult[int]:
        """
        Remove the blocker's block on blocked_user_id; no-op when absent.

        Returns:
            ServiceResult with the number of pairs removed (0 or 1)

        Error codes:
            NOT_FOUND: No conversation with that id
            FORBIDDEN: Caller is not a participant
            INVALID_PAYLOAD: Malformed user id
        """
        result = cls.get(conversation_id, blocker)
        if not result.success:
            return result

        blocked_id = coerce_id(blocked_user_id)
        if blocked_id is None:
            return ServiceResult.failure(
                f"Malformed user id {blocked_user_id!r}",
                error_code="INVALID_PAYLOAD",
                errors={"blockedUserId": ["Must be a user id."]},
            )

        removed, _ = BlockedPair.objects.filter(
            conversation=result.data, blocker=blocker, blocked_id=blocked_id
        ).delete()
        if removed:
            cls.get_logger().info(
                f"User {blocker.id} unblocked {blocked_id} in conversation {result.data.id}"
            )
        return ServiceResult.success(removed)

    @classmethod
    def set_mute(
        cls, conversation_id, user: User, until=None
    ) -> ServiceResult[datetime | None]:
        """
        Mute the conversation for the user until a timestamp (None unmutes).

        Error codes:
            INVALID_PAYLOAD: until is not a timestamp
            NOT_FOUND: Conversation missing or user not a participant
        """
        try:
            muted_until = coerce_datetime(until)
        except ValueError as exc:
            return ServiceResult.failure(
                str(exc), error_code="INVALID_PAYLOAD", errors={"until": [str(exc)]}
            )

        updated = Participant.objects.filter(
            conversation_id=coerce_id(conversation_id), user=user
        ).update(muted_until=muted_until, updated_at=timezone.now())
        if not updated:
            return ServiceResult.failure(
                f"User {user.id} has no membership in conversation {conversation_id}",
                error_code="NOT_FOUND",
            )
        return ServiceResult.success(muted_until)


# =============================================================================
# MessageService
# =============================================================================


class MessageService(BaseService):
    """
    Service for message operations.

    Methods:
        send_message: Persist a participant's message and broadcast it
        post_system_message: Persist and broadcast a system notice
        list_messages: Cursor-paginated history in ascending order
        mark_read: Update the caller's read marker and broadcast it
        hide_message: Delete a message from the caller's own view
    """

    @classmethod
    def send_message(
        cls,
        conversation_id,
        sender: User,
        text: Any = "",
        attachments: Any = None,
        temp_id: Any = None,
    ) -> ServiceResult[Message]:
        """
        Send a message to a conversation.

        Text longer than MAX_TEXT_LENGTH is clipped silently; empty text is
        allowed (attachment-only messages). After the write commits, a
        ``chat:message:new`` event carrying ``{tempId, message}`` goes to the
        conversation's room. This is the only broadcast for both the REST and
        the realtime path.

        Args:
            conversation_id: Target conversation
            sender: User sending the message
            text: Message text
            attachments: List of {url, mime?, size?, name?}
            temp_id: Client-side id echoed back for optimistic-send reconciliation

        Returns:
            ServiceResult with new Message

        Error codes:
            NOT_FOUND: Conversation does not exist
            FORBIDDEN: Sender is not a participant
            BLOCKED: Someone blocked the sender in this conversation
            INVALID_PAYLOAD: Text or attachments are malformed
        """
        pk = coerce_id(conversation_id)
        conversation = Conversation.objects.filter(id=pk).first() if pk else None
        if conversation is None:
            return ServiceResult.failure(
                f"Conversation {conversation_id} not found", error_code="NOT_FOUND"
            )
        if not conversation.has_participant(sender.id):
            return ServiceResult.failure(
                f"User {sender.id} is not a participant of conversation {pk}",
                error_code="FORBIDDEN",
            )
        if conversation.is_blocked(sender.id):
            return ServiceResult.failure(
                f"User {sender.id} is blocked in conversation {pk}",
                error_code="BLOCKED",
            )

        if text is None:
            text = ""
        elif isinstance(text, (int, float)) and not isinstance(text, bool):
            text = str(text)
        elif not isinstance(text, str):
            return ServiceResult.failure(
                "text must be a string",
                error_code="INVALID_PAYLOAD",
                errors={"text": ["Must be a string."]},
            )
        if "\x00" in text:
            return ServiceResult.failure(
                "text contains a null character",
                error_code="INVALID_PAYLOAD",
                errors={"text": ["Null characters are not allowed."]},
            )

        try:
            normalized = normalize_attachments(attachments)
        except ValueError as exc:
            return ServiceResult.failure(
                str(exc),
                error_code="INVALID_PAYLOAD",
                errors={"attachments": [str(exc)]},
            )

        with cls.atomic():
            message = Message.objects.create(
                conversation=conversation,
                sender=sender,
                text=text[: chat_setting("MAX_TEXT_LENGTH")],
                attachments=normalized,
            )
            cls._touch_conversation(conversation.id, message.created_at)
            cls._broadcast_new_message(message, temp_id)

        cls.get_logger().debug(
            f"User {sender.id} sent message {message.id} to conversation {conversation.id}"
        )
        return ServiceResult.success(message)

    @classmethod
    def post_system_message(cls, conversation_id, text: str) -> ServiceResult[Message]:
        """
        Persist a system notice (no sender) and broadcast it like any message.

        Used by other subsystems through chat.tasks.post_system_notice, e.g. to
        announce that a payment hold was released.

        Error codes:
            NOT_FOUND: Conversation does not exist
        """
        pk = coerce_id(conversation_id)
        conversation = Conversation.objects.filter(id=pk).first() if pk else None
        if conversation is None:
            return ServiceResult.failure(
                f"Conversation {conversation_id} not found", error_code="NOT_FOUND"
            )

        with cls.atomic():
            message = Message.objects.create(
                conversation=conversation,
                sender=None,
                text=str(text or "")[: chat_setting("MAX_TEXT_LENGTH")],
                system=True,
            )
            cls._touch_conversation(conversation.id, message.created_at)
            cls._broadcast_new_message(message, None)

        cls.get_logger().info(
            f"Posted system message {message.id} to conversation {conversation.id}"
        )
        return ServiceResult.success(message)

    @classmethod
    def _touch_conversation(cls, conversation_id: int, at: datetime) -> None:
        """
        Advance last_message_at.

        Greatest() keeps the value from moving backwards when concurrent
        senders commit out of order.
        """
        Conversation.objects.filter(id=conversation_id).update(
            last_message_at=Greatest("last_message_at", Value(at)),
            updated_at=timezone.now(),
        )

    @classmethod
    def _broadcast_new_message(cls, message: Message, temp_id) -> None:
        payload: dict[str, Any] = {"message": message_view(message)}
        if temp_id is not None:
            payload["tempId"] = temp_id
        _on_commit_publish(message.conversation_id, EVENTS.LAYER_MESSAGE_NEW, payload)

    @classmethod
    def list_messages(
        cls,
        conversation_id,
        user: User,
        before=None,
        after=None,
        limit=None,
    ) -> ServiceResult[list[Message]]:
        """
        Page through a conversation's history.

        ``before`` wins when both cursors are given. A ``before`` page holds the
        most recent ``limit`` messages older than the cursor; an ``after`` page
        the oldest ``limit`` messages newer than it; no cursor returns the
        latest page. Results are always in ascending created_at order, and
        messages the user hid are left out.

        Args:
            conversation_id: Conversation to read
            user: Requesting participant
            before: Exclusive upper bound on created_at (datetime or ISO string)
            after: Exclusive lower bound on created_at (datetime or ISO string)
            limit: Page size, clamped to 1..MAX_PAGE_SIZE (default 50)

        Error codes:
            NOT_FOUND: Conversation does not exist
            FORBIDDEN: User is not a participant
            INVALID_PAYLOAD: Malformed cursor or limit
        """
        result = ConversationService.get(conversation_id, user)
        if not result.success:
            return result

        try:
            before_at = coerce_datetime(before)
            after_at = None if before_at is not None else coerce_datetime(after)
        except ValueError as exc:
            return ServiceResult.failure(str(exc), error_code="INVALID_PAYLOAD")

        try:
            page_size = int(limit) if limit not in (None, "") else chat_setting(
                "DEFAULT_PAGE_SIZE"
            )
        except (TypeError, ValueError):
            return ServiceResult.failure(
                f"limit must be an integer, got {limit!r}", error_code="INVALID_PAYLOAD"
            )
        page_size = max(1, min(page_size, chat_setting("MAX_PAGE_SIZE")))

        queryset = (
            Message.objects.filter(conversation=result.data)
            .exclude(deleted_for=user)
        )

        if after_at is not None:
            page = list(
                queryset.filter(created_at__gt=after_at).order_by("created_at", "id")[
                    :page_size
                ]
            )
        else:
            if before_at is not None:
                queryset = queryset.filter(created_at__lt=before_at)
            page = list(queryset.order_by("-created_at", "-id")[:page_size])
            page.reverse()

        return ServiceResult.success(page)

    @classmethod
    def mark_read(cls, conversation_id, user: User, at=None) -> ServiceResult[datetime]:
        """
        Set the user's read marker and broadcast a ``chat:read`` event.

        Args:
            conversation_id: Conversation being read
            user: Participant marking as read
            at: Read timestamp (defaults to now)

        Returns:
            ServiceResult with the stored timestamp

        Error codes:
            INVALID_PAYLOAD: at is not a timestamp
            NOT_FOUND: No membership matched (missing conversation or non-participant)
        """
        try:
            read_at = coerce_datetime(at) or timezone.now()
        except ValueError as exc:
            return ServiceResult.failure(
                str(exc), error_code="INVALID_PAYLOAD", errors={"at": [str(exc)]}
            )

        pk = coerce_id(conversation_id)
        with cls.atomic():
            updated = Participant.objects.filter(conversation_id=pk, user=user).update(
                last_read_at=read_at, updated_at=timezone.now()
            )
            if not updated:
                return ServiceResult.failure(
                    f"User {user.id} has no membership in conversation {conversation_id}",
                    error_code="NOT_FOUND",
                )
            _on_commit_publish(
                pk,
                EVENTS.LAYER_READ,
                {"userId": user.id, "at": read_at.isoformat()},
            )

        cls.get_logger().debug(f"User {user.id} read conversation {pk} up to {read_at}")
        return ServiceResult.success(read_at)

    @classmethod
    def hide_message(cls, conversation_id, message_id, user: User) -> ServiceResult[Message]:
        """
        Delete a message from the user's own view (others still see it).

        Idempotent; hiding an already hidden message succeeds.

        Error codes:
            NOT_FOUND: Conversation or message missing
            FORBIDDEN: User is not a participant
        """
        result = ConversationService.get(conversation_id, user)
        if not result.success:
            return result

        message_pk = coerce_id(message_id)
        message = (
            Message.objects.filter(id=message_pk, conversation=result.data).first()
            if message_pk
            else None
        )
        if message is None:
            return ServiceResult.failure(
                f"Message {message_id} not found in conversation {result.data.id}",
                error_code="NOT_FOUND",
            )

        message.deleted_for.add(user)
        cls.get_logger().debug(f"User {user.id} hid message {message.id}")
        return ServiceResult.success(message)


def normalize_attachments(attachments) -> list[dict[str, Any]]:
    """
    Validate attachment metadata and reduce it to {url, mime, size, name}.

    The list length and order are preserved; unknown keys are dropped. Sizes
    may arrive as integral numbers or digit strings ("12", 12.0).

    Raises:
        ValueError: If attachments is not a list, an entry lacks a url, a size
            is not a non-negative whole number, or a string holds a NUL byte
    """
    if attachments is None:
        return []
    if not isinstance(attachments, (list, tuple)):
        raise ValueError("attachments must be a list")

    normalized = []
    for index, item in enumerate(attachments):
        if not isinstance(item, dict):
            raise ValueError(f"attachment {index} must be an object")
        url = item.get("url")
        if not isinstance(url, str) or not url.strip():
            raise ValueError(f"attachment {index} needs a url")
        size = _coerce_size(item.get("size"))
        if size is None:
            raise ValueError(f"attachment {index} has an invalid size")
        entry = {
            "url": url.strip(),
            "mime": str(item.get("mime") or ATTACHMENT_CONFIG.DEFAULT_MIME_TYPE),
            "size": size,
            "name": str(item.get("name") or ""),
        }
        if any("\x00" in entry[key] for key in ("url", "mime", "name")):
            raise ValueError(f"attachment {index} contains a null character")
        normalized.append(entry)
    return normalized


_SIZE_RE = re.compile(r"^\s*(\d+)(?:\.0*)?\s*$")


def _coerce_size(value) -> int | None:
    """Whole non-negative size, 0 when absent, None when malformed."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        return int(value) if value.is_integer() and value >= 0 else None
    if isinstance(value, str):
        match = _SIZE_RE.match(value)
        return int(match.group(1)) if match else None
    return None


# =============================================================================
# ReportService
# =============================================================================


class ReportService(BaseService):
    """
    Service for abuse reports and moderation.

    Methods:
        report: File a report against a message and/or conversation
        list_reports: Moderation queue (admins only)
        set_status: Move a report forward in its lifecycle (admins only)
    """

    @classmethod
    def report(
        cls,
        reporter: User,
        reason: str | None = "",
        conversation_id=None,
        message_id=None,
    ) -> ServiceResult[Report]:
        """
        File a report. Any authenticated user may report; no membership check.

        Error codes:
            INVALID_PAYLOAD: Neither reference given, or a reference is malformed
            NOT_FOUND: A referenced conversation/message does not exist
        """
        if conversation_id in (None, "") and message_id in (None, ""):
            return ServiceResult.failure(
                "A report needs a conversationId or a messageId",
                error_code="INVALID_PAYLOAD",
            )

        conversation = message = None
        if conversation_id not in (None, ""):
            pk = coerce_id(conversation_id)
            if pk is None:
                return ServiceResult.failure(
                    f"Malformed conversationId {conversation_id!r}",
                    error_code="INVALID_PAYLOAD",
                )
            conversation = Conversation.objects.filter(id=pk).first()
            if conversation is None:
                return ServiceResult.failure(
                    f"Conversation {pk} not found", error_code="NOT_FOUND"
                )
        if message_id not in (None, ""):
            pk = coerce_id(message_id)
            if pk is None:
                return ServiceResult.failure(
                    f"Malformed messageId {message_id!r}", error_code="INVALID_PAYLOAD"
                )
            message = Message.objects.filter(id=pk).first()
            if message is None:
                return ServiceResult.failure(
                    f"Message {pk} not found", error_code="NOT_FOUND"
                )

        report = Report.objects.create(
            reporter=reporter,
            conversation=conversation,
            message=message,
            reason=reason or "",
        )
        cls.get_logger().info(
            f"User {reporter.id} filed report {report.id} "
            f"(conversation={report.conversation_id}, message={report.message_id})"
        )
        return ServiceResult.success(report)

    @classmethod
    def list_reports(
        cls, actor: User, status: str | None = None
    ) -> ServiceResult[list[Report]]:
        """
        Newest reports first, capped at ADMIN_REPORT_LIMIT.

        Error codes:
            FORBIDDEN: Actor is not an admin
            INVALID_STATUS: Unknown status filter
        """
        if not actor.is_admin:
            return ServiceResult.failure(
                f"User {actor.id} may not moderate reports", error_code="FORBIDDEN"
            )
        queryset = Report.objects.all()
        if status:
            if status not in ReportStatus.values:
                return ServiceResult.failure(
                    f"Unknown report status {status!r}", error_code="INVALID_STATUS"
                )
            queryset = queryset.filter(status=status)
        limit = chat_setting("ADMIN_REPORT_LIMIT")
        return ServiceResult.success(list(queryset.order_by("-created_at", "-id")[:limit]))

    @classmethod
    def set_status(cls, report_id, status: str, actor: User) -> ServiceResult[Report]:
        """
        Change a report's status.

        Status only moves forward (open -> reviewing -> closed, or
        open -> closed). Setting the current status again is a no-op.

        Error codes:
            FORBIDDEN: Actor is not an admin
            INVALID_STATUS: Unknown status or a move backwards
            NOT_FOUND: No report with that id
        """
        if not actor.is_admin:
            return ServiceResult.failure(
                f"User {actor.id} may not moderate reports", error_code="FORBIDDEN"
            )
        if status not in ReportStatus.values:
            return ServiceResult.failure(
                f"Unknown report status {status!r}", error_code="INVALID_STATUS"
            )

        pk = coerce_id(report_id)
        with cls.atomic():
            report = (
                Report.objects.select_for_update().filter(id=pk).first() if pk else None
            )
            if report is None:
                return ServiceResult.failure(
                    f"Report {report_id} not found", error_code="NOT_FOUND"
                )
            if report.status == status:
                return ServiceResult.success(report)
            if ReportStatus.rank(status) < ReportStatus.rank(report.status):
                return ServiceResult.failure(
                    f"Report {pk} cannot move from {report.status} back to {status}",
                    error_code="INVALID_STATUS",
                )
            previous = report.status
            report.status = status
            report.save(update_fields=["status", "updated_at"])

        cls.get_logger().info(
            f"Admin {actor.id} moved report {report.id} from {previous} to {status}"
        )
        return ServiceResult.success(report)


# =============================================================================
# AttachmentService
# =============================================================================


class AttachmentService(BaseService):
    """Service for attachment uploads."""

    @classmethod
    def upload(cls, uploaded_file: UploadedFile | None, user: User) -> ServiceResult[dict]:
        """
        Store an uploaded file and return its attachment metadata.

        Returns:
            ServiceResult with {url, mime, size, name}

        Error codes:
            INVALID_PAYLOAD: No file in the request
            UPLOAD_TOO_LARGE: File exceeds MAX_UPLOAD_BYTES
            STORAGE_UNAVAILABLE: The store raised
        """
        if uploaded_file is None:
            return ServiceResult.failure(
                "A file is required", error_code="INVALID_PAYLOAD",
                errors={"file": ["No file was submitted."]},
            )

        max_bytes = chat_setting("MAX_UPLOAD_BYTES")
        if uploaded_file.size > max_bytes:
            return ServiceResult.failure(
                f"File is {uploaded_file.size} bytes; limit is {max_bytes}",
                error_code="UPLOAD_TOO_LARGE",
            )

        mime_type = uploaded_file.content_type or ATTACHMENT_CONFIG.DEFAULT_MIME_TYPE
        store = get_attachment_store()
        try:
            meta = store(uploaded_file.read(), mime_type, uploaded_file.name or "")
        except Exception as exc:  # noqa: BLE001 - pluggable store, any backend error
            return cls.handle_exception(exc, "attachment upload", "STORAGE_UNAVAILABLE")

        cls.get_logger().info(
            f"User {user.id} uploaded {meta.get('size')} bytes ({mime_type})"
        )
        return ServiceResult.success(meta)
