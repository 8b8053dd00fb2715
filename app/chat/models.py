"""
Chat system models.

This module defines the data models for the chat system supporting:
- Direct conversations between users
- Transport conversations tied to one transport job (receiver + carrier)

Models:
    Conversation: Container for messages between participants
    Participant: User participation in a conversation with role and read state
    BlockedPair: Directional block inside one conversation
    Message: Individual message within a conversation
    Report: Abuse report referencing a message and/or conversation

Design Decisions:
    - Membership is fixed at creation; there is no join/leave of participants
    - Blocks are directional; mutual blocking is two rows
    - Messages are immutable apart from per-viewer hiding (deleted_for)
    - Report status only moves forward: open -> reviewing -> closed
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from core.models import BaseModel


class ConversationType(models.TextChoices):
    """
    Type of conversation.

    DIRECT: Free-standing conversation; every create call makes a new one
    TRANSPORT: Scoped to a transport job; creation is deduplicated per job
    """

    DIRECT = "direct", "Direct"
    TRANSPORT = "transport", "Transport"


class ParticipantRole(models.TextChoices):
    """Role of a participant in relation to the transport job."""

    RECEIVER = "receiver", "Receiver"
    CARRIER = "carrier", "Carrier"
    OTHER = "other", "Other"


class ReportStatus(models.TextChoices):
    """
    Moderation lifecycle of a report.

    Transitions: open -> reviewing -> closed, or open -> closed.
    """

    OPEN = "open", "Open"
    REVIEWING = "reviewing", "Reviewing"
    CLOSED = "closed", "Closed"

    @classmethod
    def rank(cls, value: str) -> int:
        """Position in the lifecycle; a status may only move to a higher rank."""
        return [choice.value for choice in cls].index(value)


class Conversation(BaseModel):
    """
    A conversation between two or more users.

    Fields:
        type: direct or transport
        transport_id: Opaque id of the transport job (transport conversations)
        created_by: User who created the conversation (null for system-created)
        last_message_at: Timestamp of most recent message (for sorting)

    Relationships:
        participants: Participant records, in creation order
        blocked_pairs: BlockedPair records
        messages: Message records
    """

    type = models.CharField(
        max_length=10,
        choices=ConversationType.choices,
        default=ConversationType.DIRECT,
        help_text="Type of conversation (direct or transport)",
    )

    transport_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        db_index=True,
        help_text="Transport job this conversation belongs to (empty for direct)",
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_conversations",
        help_text="User who created this conversation (null for system-created)",
    )

    last_message_at = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        help_text="Timestamp of most recent message (for sorting conversation lists)",
    )

    class Meta:
        db_table = "chat_conversation"
        ordering = ["-last_message_at", "-id"]
        indexes = [
            # Transport dedup lookup
            models.Index(
                fields=["type", "transport_id"],
                name="chat_conv_type_transport_idx",
            ),
        ]

    def __str__(self) -> str:
        """Return human-readable representation."""
        if self.type == ConversationType.TRANSPORT:
            return f"Transport {self.transport_id} ({self.pk})"
        return f"Direct({self.pk})"

    @property
    def is_transport(self) -> bool:
        """Check if this conversation is scoped to a transport job."""
        return self.type == ConversationType.TRANSPORT

    def has_participant(self, user_id) -> bool:
        """Check whether the user id belongs to this conversation."""
        return self.participants.filter(user_id=user_id).exists()

    def is_blocked(self, user_id) -> bool:
        """Check whether anyone blocked this user in this conversation."""
        return self.blocked_pairs.filter(blocked_id=user_id).exists()


class Participant(BaseModel):
    """
    Tracks a user's membership and read state in one conversation.

    Fields:
        conversation: Conversation this participation belongs to
        user: User participating in the conversation
        role: receiver, carrier or other
        last_read_at: Last time user marked the conversation as read
        muted_until: Notifications muted until this time (null = not muted)

    Constraints:
        - UniqueConstraint(conversation, user): no duplicate user ids
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="participants",
        help_text="Conversation this participation belongs to",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="conversation_participations",
        help_text="User participating in the conversation",
    )

    role = models.CharField(
        max_length=10,
        choices=ParticipantRole.choices,
        default=ParticipantRole.OTHER,
        help_text="Role in relation to the transport job",
    )

    last_read_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last time user marked conversation as read",
    )

    muted_until = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Notifications are muted until this time",
    )

    class Meta:
        db_table = "chat_participant"
        ordering = ["id"]
        indexes = [
            # User's conversations
            models.Index(
                fields=["user", "conversation"],
                name="chat_part_user_conv_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user"],
                name="unique_conversation_participant",
            ),
        ]

    def __str__(self) -> str:
        """Return human-readable representation."""
        return f"Participant: {self.user_id} in {self.conversation_id} ({self.role})"

    @property
    def is_muted(self) -> bool:
        """Check whether notifications are currently muted."""
        return self.muted_until is not None and self.muted_until > timezone.now()


class BlockedPair(BaseModel):
    """
    A directional block inside one conversation.

    A row (blocker=A, blocked=B) stops B from sending into the conversation.
    It does not stop A; callers wanting a mutual block insert both rows.

    Constraints:
        - UniqueConstraint(conversation, blocker, blocked): one row per ordered pair
        - CheckConstraint(blocker != blocked): nobody blocks themselves
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="blocked_pairs",
        help_text="Conversation the block applies to",
    )

    blocker = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User who created the block",
    )

    blocked = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User who may no longer send in this conversation",
    )

    class Meta:
        db_table = "chat_blocked_pair"
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "blocker", "blocked"],
                name="unique_conversation_block_pair",
            ),
            models.CheckConstraint(
                condition=~Q(blocker=F("blocked")),
                name="block_pair_distinct_users",
            ),
        ]

    def __str__(self) -> str:
        """Return human-readable representation."""
        return f"Block: {self.blocker_id} -> {self.blocked_id} in {self.conversation_id}"


class Message(BaseModel):
    """
    A message within a conversation.

    Fields:
        conversation: Conversation this message belongs to
        sender: User who sent the message (null for system notices)
        text: Message text, clipped to MESSAGE_CONFIG.MAX_TEXT_LENGTH
        attachments: List of {url, mime, size, name} dicts
        system: True for system-generated notices
        deleted_for: Users who hid this message from their own view

    Ordering:
        created_at, ties broken by id (insertion order)
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="messages",
        help_text="Conversation this message belongs to",
    )

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sent_messages",
        help_text="User who sent this message (null for system notices)",
    )

    text = models.TextField(
        blank=True,
        default="",
        help_text="Message text (clipped, never rejected, when too long)",
    )

    attachments = models.JSONField(
        default=list,
        blank=True,
        help_text="Attachment metadata: list of {url, mime, size, name}",
    )

    system = models.BooleanField(
        default=False,
        help_text="True for system-generated notices",
    )

    deleted_for = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="hidden_messages",
        help_text="Users who deleted this message from their own view",
    )

    class Meta:
        db_table = "chat_message"
        ordering = ["created_at", "id"]
        indexes = [
            # Messages in a conversation (cursor pagination)
            models.Index(
                fields=["conversation", "created_at", "id"],
                name="chat_msg_conv_cursor_idx",
            ),
        ]

    def __str__(self) -> str:
        """Return human-readable representation."""
        sender_str = f"User {self.sender_id}" if self.sender_id else "System"
        preview = self.text[:50] + "..." if len(self.text) > 50 else self.text
        return f"{sender_str}: {preview}"


class Report(BaseModel):
    """
    An abuse report filed against a message and/or conversation.

    Any authenticated user may file one; only admins change its status.

    Fields:
        reporter: User who filed the report
        message: Reported message (optional)
        conversation: Reported conversation (optional)
        reason: Free-text reason
        status: open, reviewing or closed
    """

    reporter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="filed_reports",
        help_text="User who filed this report",
    )

    message = models.ForeignKey(
        Message,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reports",
        help_text="Reported message",
    )

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reports",
        help_text="Reported conversation",
    )

    reason = models.TextField(
        blank=True,
        default="",
        help_text="Why the reporter flagged this content",
    )

    status = models.CharField(
        max_length=10,
        choices=ReportStatus.choices,
        default=ReportStatus.OPEN,
        help_text="Moderation status",
    )

    class Meta:
        db_table = "chat_report"
        ordering = ["-created_at", "-id"]
        indexes = [
            # Moderation queue filtered by status, newest first
            models.Index(
                fields=["status", "-created_at"],
                name="chat_report_status_idx",
            ),
        ]

    def __str__(self) -> str:
        """Return human-readable representation."""
        return f"Report {self.pk} by {self.reporter_id} [{self.status}]"
