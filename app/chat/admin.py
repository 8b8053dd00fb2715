"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Conversation management (participants and blocks inline)
- Message moderation
- Report triage
"""

from django.contrib import admin

from chat.models import BlockedPair, Conversation, Message, Participant, Report


class ParticipantInline(admin.TabularInline):
    """Inline display of participants in conversation admin."""

    model = Participant
    extra = 0
    readonly_fields = ["last_read_at", "muted_until", "created_at"]
    raw_id_fields = ["user"]


class BlockedPairInline(admin.TabularInline):
    model = BlockedPair
    extra = 0
    raw_id_fields = ["blocker", "blocked"]


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    """Admin interface for Conversation model."""

    list_display = ["id", "type", "transport_id", "created_by", "last_message_at"]
    list_filter = ["type", "created_at"]
    search_fields = ["transport_id", "id"]
    readonly_fields = ["created_at", "updated_at", "last_message_at"]
    raw_id_fields = ["created_by"]
    inlines = [ParticipantInline, BlockedPairInline]
    ordering = ["-last_message_at"]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = ["id", "conversation", "sender", "system", "text_preview", "created_at"]
    list_filter = ["system", "created_at"]
    search_fields = ["text", "sender__email"]
    readonly_fields = ["created_at", "updated_at"]
    raw_id_fields = ["conversation", "sender", "deleted_for"]
    ordering = ["-created_at"]

    @admin.display(description="Text")
    def text_preview(self, obj: Message) -> str:
        """Return truncated text for list display."""
        max_length = 50
        if len(obj.text) > max_length:
            return obj.text[:max_length] + "..."
        return obj.text


@admin.register(Report)
class ReportAdmin(admin.ModelAdmin):
    """
    Admin interface for Report model.

    Status edits here bypass ReportService; use the moderation API when the
    forward-only rule matters.
    """

    list_display = ["id", "reporter", "conversation", "message", "status", "created_at"]
    list_filter = ["status", "created_at"]
    search_fields = ["reason", "reporter__email"]
    readonly_fields = ["created_at", "updated_at"]
    raw_id_fields = ["reporter", "conversation", "message"]
    ordering = ["-created_at"]
