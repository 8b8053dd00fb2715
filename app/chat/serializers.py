"""
Serializers for chat API.

Field names on the wire are camelCase (transportId, participantIds, ...);
model attributes stay snake_case and are mapped with ``source=``.

Serializer Hierarchy:
    ConversationSerializer: Conversation with participants and blocked pairs
    ConversationCreateSerializer: Create request body
    ConversationListQuerySerializer: ?transportId filter

    MessageSerializer: Message view (REST responses and realtime broadcasts)
    MessageCreateSerializer: Send request body
    MessageListQuerySerializer: ?before / ?after / ?limit

    ReadSerializer, MuteSerializer, BlockSerializer: Small action bodies

    AttachmentUploadSerializer / AttachmentSerializer: Upload request/response

    ReportCreateSerializer / ReportSerializer / ReportStatusSerializer:
        Abuse reports and moderation

Design Decisions:
    - Read and write serializers are separate for clarity
    - Write serializers check shape only; membership, blocking and clipping
      rules live in chat.services
"""

from __future__ import annotations

from typing import Any

from rest_framework import serializers

from chat.models import (
    BlockedPair,
    Conversation,
    ConversationType,
    Message,
    Participant,
    Report,
)


# =============================================================================
# Conversation Serializers
# =============================================================================


class ParticipantSerializer(serializers.ModelSerializer):
    """Participant entry inside a conversation."""

    userId = serializers.IntegerField(source="user_id", read_only=True)
    lastReadAt = serializers.DateTimeField(source="last_read_at", read_only=True)
    mutedUntil = serializers.DateTimeField(source="muted_until", read_only=True)

    class Meta:
        model = Participant
        fields = ["userId", "role", "lastReadAt", "mutedUntil"]
        read_only_fields = fields


class BlockedPairSerializer(serializers.ModelSerializer):
    """Directional block: ``blocked`` may not send."""

    blocker = serializers.IntegerField(source="blocker_id", read_only=True)
    blocked = serializers.IntegerField(source="blocked_id", read_only=True)

    class Meta:
        model = BlockedPair
        fields = ["blocker", "blocked"]
        read_only_fields = fields


class ConversationSerializer(serializers.ModelSerializer):
    """
    Full conversation view.

    Used for list, detail and create responses.
    """

    transportId = serializers.CharField(source="transport_id", read_only=True)
    participants = ParticipantSerializer(many=True, read_only=True)
    blockedPairs = BlockedPairSerializer(
        source="blocked_pairs", many=True, read_only=True
    )
    createdBy = serializers.IntegerField(source="created_by_id", read_only=True)
    lastMessageAt = serializers.DateTimeField(source="last_message_at", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Conversation
        fields = [
            "id",
            "type",
            "transportId",
            "participants",
            "blockedPairs",
            "createdBy",
            "lastMessageAt",
            "createdAt",
            "updatedAt",
        ]
        read_only_fields = fields


class ConversationCreateSerializer(serializers.Serializer):
    """
    Body for creating a conversation.

    The requester is always a participant and need not appear in
    participantIds.
    """

    type = serializers.ChoiceField(
        choices=ConversationType.choices,
        help_text="direct or transport",
    )
    participantIds = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        allow_empty=False,
        help_text="Other participants' user ids",
    )
    transportId = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=64,
        help_text="Transport job id (transport conversations are reused per job)",
    )


class ConversationListQuerySerializer(serializers.Serializer):
    """Query parameters for listing conversations."""

    transportId = serializers.CharField(required=False, allow_blank=True, max_length=64)


# =============================================================================
# Message Serializers
# =============================================================================


class MessageSerializer(serializers.ModelSerializer):
    """
    Message view.

    The same shape is sent in REST responses and in ``chat:message:new``
    events, so it must stay JSON/msgpack friendly.
    """

    conversationId = serializers.IntegerField(source="conversation_id", read_only=True)
    senderId = serializers.IntegerField(source="sender_id", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = Message
        fields = [
            "id",
            "conversationId",
            "senderId",
            "text",
            "attachments",
            "system",
            "createdAt",
        ]
        read_only_fields = fields


def message_view(message: Message) -> dict[str, Any]:
    """Serialize a message into a plain dict for the channel layer."""
    return dict(MessageSerializer(message).data)


class AttachmentSerializer(serializers.Serializer):
    """Attachment metadata as stored on a message and returned by upload."""

    url = serializers.CharField()
    mime = serializers.CharField(required=False, allow_blank=True)
    size = serializers.IntegerField(required=False, min_value=0)
    name = serializers.CharField(required=False, allow_blank=True)


class MessageCreateSerializer(serializers.Serializer):
    """
    Body for sending a message.

    Text is not length-checked here; the service clips it.
    """

    text = serializers.CharField(
        required=False,
        allow_blank=True,
        allow_null=True,
        trim_whitespace=False,
        default="",
    )
    attachments = serializers.ListField(
        child=AttachmentSerializer(),
        required=False,
        default=list,
    )


class MessageListQuerySerializer(serializers.Serializer):
    """Cursor and page size for message history."""

    before = serializers.DateTimeField(required=False)
    after = serializers.DateTimeField(required=False)
    limit = serializers.IntegerField(required=False)


class ReadSerializer(serializers.Serializer):
    """Body for marking a conversation read."""

    at = serializers.DateTimeField(required=False, allow_null=True)


class ReadResponseSerializer(serializers.Serializer):
    ok = serializers.BooleanField()
    at = serializers.DateTimeField()


class MuteSerializer(serializers.Serializer):
    """Body for muting a conversation; null or missing ``until`` unmutes."""

    until = serializers.DateTimeField(required=False, allow_null=True)


class BlockSerializer(serializers.Serializer):
    """Body for block/unblock."""

    conversationId = serializers.IntegerField(min_value=1)
    blockedUserId = serializers.IntegerField(min_value=1)


# =============================================================================
# Attachment Serializers
# =============================================================================


class AttachmentUploadSerializer(serializers.Serializer):
    """Multipart upload body."""

    file = serializers.FileField(help_text="File to store")


# =============================================================================
# Report Serializers
# =============================================================================


class ReportCreateSerializer(serializers.Serializer):
    """Body for filing a report; at least one reference is required."""

    conversationId = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    messageId = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    reason = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, default=""
    )

    def validate(self, attrs):
        if attrs.get("conversationId") is None and attrs.get("messageId") is None:
            raise serializers.ValidationError(
                "Provide a conversationId or a messageId."
            )
        return attrs


class ReportSerializer(serializers.ModelSerializer):
    """Report view for reporters and the moderation queue."""

    reporterId = serializers.IntegerField(source="reporter_id", read_only=True)
    conversationId = serializers.IntegerField(source="conversation_id", read_only=True)
    messageId = serializers.IntegerField(source="message_id", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Report
        fields = [
            "id",
            "reporterId",
            "conversationId",
            "messageId",
            "reason",
            "status",
            "createdAt",
            "updatedAt",
        ]
        read_only_fields = fields


class ReportStatusSerializer(serializers.Serializer):
    """
    Body for a status change.

    Deliberately a free CharField: unknown values are rejected by the service
    with invalid_status rather than invalid_payload.
    """

    status = serializers.CharField()


class ReportListQuerySerializer(serializers.Serializer):
    status = serializers.CharField(required=False, allow_blank=True)


class OkSerializer(serializers.Serializer):
    ok = serializers.BooleanField()
