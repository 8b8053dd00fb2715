"""
Views for chat API.

This module provides REST API endpoints for the chat system:
- ConversationViewSet: Create/list/get conversations, read receipts, mute
- MessageViewSet: History, send, hide (nested under conversation)
- AttachmentUploadView, ReportView, BlockView, UnblockView
- AdminReportListView, AdminReportStatusView: Moderation queue

URL Structure:
    /api/v1/chat/conversations/                          GET, POST
    /api/v1/chat/conversations/{id}/                     GET
    /api/v1/chat/conversations/{id}/read/                POST
    /api/v1/chat/conversations/{id}/mute/                POST
    /api/v1/chat/conversations/{id}/messages/            GET, POST
    /api/v1/chat/conversations/{id}/messages/{mid}/      DELETE
    /api/v1/chat/upload/                                 POST (multipart)
    /api/v1/chat/report/                                 POST
    /api/v1/chat/block/                                  POST
    /api/v1/chat/unblock/                                POST
    /api/v1/chat/admin/reports/                          GET
    /api/v1/chat/admin/reports/{id}/                     POST

Design Decisions:
    - Views validate request shape with serializers and delegate everything
      else to chat.services
    - Message sends and read receipts hand the raw body to the service, the
      same validator the WebSocket consumer uses
    - Failed ServiceResults are raised as core.exceptions errors and rendered
      as {"error": "<slug>"} by the project exception handler
"""

from __future__ import annotations

from collections.abc import Mapping

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
    inline_serializer,
)
from rest_framework import serializers, status, viewsets
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import ValidationError, exception_for_result

from chat.serializers import (
    AttachmentSerializer,
    AttachmentUploadSerializer,
    BlockSerializer,
    ConversationCreateSerializer,
    ConversationListQuerySerializer,
    ConversationSerializer,
    MessageCreateSerializer,
    MessageListQuerySerializer,
    MessageSerializer,
    MuteSerializer,
    OkSerializer,
    ReadResponseSerializer,
    ReadSerializer,
    ReportCreateSerializer,
    ReportListQuerySerializer,
    ReportSerializer,
    ReportStatusSerializer,
)
from chat.services import (
    AttachmentService,
    ConversationService,
    MessageService,
    ReportService,
)


def _unwrap(result):
    """Return result.data, raising the matching API error on failure."""
    if not result.success:
        raise exception_for_result(result)
    return result.data


# =============================================================================
# Conversations
# =============================================================================


@extend_schema_view(
    list=extend_schema(
        operation_id="list_conversations",
        summary="List conversations",
        parameters=[
            OpenApiParameter(
                "transportId", OpenApiTypes.STR, description="Filter by transport job"
            )
        ],
        responses={200: ConversationSerializer(many=True)},
        tags=["Chat - Conversations"],
    ),
    create=extend_schema(
        operation_id="create_conversation",
        summary="Create conversation",
        description=(
            "Creates a conversation with the caller and participantIds. For "
            "transport conversations the existing conversation of the same job "
            "and participants is returned instead of a duplicate."
        ),
        request=ConversationCreateSerializer,
        responses={200: ConversationSerializer},
        tags=["Chat - Conversations"],
    ),
    retrieve=extend_schema(
        operation_id="get_conversation",
        summary="Get conversation",
        responses={
            200: ConversationSerializer,
            403: OpenApiResponse(description="Not a participant in this conversation"),
            404: OpenApiResponse(description="Conversation not found"),
        },
        tags=["Chat - Conversations"],
    ),
)
class ConversationViewSet(viewsets.ViewSet):
    """
    ViewSet for conversation operations.

    list:
        Conversations the caller participates in, newest activity first.
        Returns a plain array; optional ?transportId filter.

    create:
        Create a direct or transport conversation.

    retrieve:
        Conversation details for a participant.

    read:
        Set the caller's read marker and broadcast chat:read.

    mute:
        Mute the conversation for the caller until a timestamp.
    """

    permission_classes = [IsAuthenticated]

    def list(self, request):
        query = ConversationListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        conversations = ConversationService.list_for_user(
            request.user, transport_id=query.validated_data.get("transportId")
        )
        return Response(ConversationSerializer(conversations, many=True).data)

    def create(self, request):
        serializer = ConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        conversation = _unwrap(
            ConversationService.create(
                requester=request.user,
                type=data["type"],
                participant_ids=data["participantIds"],
                transport_id=data.get("transportId"),
            )
        )
        # Reload with participants and blocks prefetched
        conversation = _unwrap(ConversationService.get(conversation.id, request.user))
        return Response(ConversationSerializer(conversation).data)

    def retrieve(self, request, pk=None):
        conversation = _unwrap(ConversationService.get(pk, request.user))
        return Response(ConversationSerializer(conversation).data)

    @extend_schema(
        operation_id="mark_conversation_read",
        summary="Mark conversation as read",
        request=ReadSerializer,
        responses={
            200: ReadResponseSerializer,
            404: OpenApiResponse(description="No membership in this conversation"),
        },
        tags=["Chat - Conversations"],
    )
    def read(self, request, pk=None):
        payload = request.data
        if not isinstance(payload, Mapping):
            raise ValidationError("Read body must be an object")

        read_at = _unwrap(MessageService.mark_read(pk, request.user, at=payload.get("at")))
        return Response({"ok": True, "at": read_at.isoformat()})

    @extend_schema(
        operation_id="mute_conversation",
        summary="Mute conversation",
        request=MuteSerializer,
        responses={
            200: inline_serializer(
                "MuteResponse",
                fields={
                    "ok": serializers.BooleanField(),
                    "mutedUntil": serializers.DateTimeField(allow_null=True),
                },
            ),
            404: OpenApiResponse(description="No membership in this conversation"),
        },
        tags=["Chat - Conversations"],
    )
    def mute(self, request, pk=None):
        serializer = MuteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        muted_until = _unwrap(
            ConversationService.set_mute(
                pk, request.user, until=serializer.validated_data.get("until")
            )
        )
        return Response(
            {
                "ok": True,
                "mutedUntil": muted_until.isoformat() if muted_until else None,
            }
        )


# =============================================================================
# Messages
# =============================================================================


@extend_schema_view(
    list=extend_schema(
        operation_id="list_messages",
        summary="List messages",
        description=(
            "History in ascending order. `before` returns the page immediately "
            "older than the cursor, `after` the page immediately newer; "
            "`before` wins when both are given."
        ),
        parameters=[
            OpenApiParameter("before", OpenApiTypes.DATETIME),
            OpenApiParameter("after", OpenApiTypes.DATETIME),
            OpenApiParameter("limit", OpenApiTypes.INT, description="1..200, default 50"),
        ],
        responses={200: MessageSerializer(many=True)},
        tags=["Chat - Messages"],
    ),
    create=extend_schema(
        operation_id="send_message",
        summary="Send message",
        request=MessageCreateSerializer,
        responses={
            201: inline_serializer(
                "SendMessageResponse", fields={"message": MessageSerializer()}
            ),
            403: OpenApiResponse(description="Not a participant, or blocked"),
            404: OpenApiResponse(description="Conversation not found"),
        },
        tags=["Chat - Messages"],
    ),
    destroy=extend_schema(
        operation_id="hide_message",
        summary="Delete message for me",
        responses={200: OkSerializer},
        tags=["Chat - Messages"],
    ),
)
class MessageViewSet(viewsets.ViewSet):
    """
    ViewSet for message operations, nested under a conversation.

    list:
        Cursor-paginated history.

    create:
        Send a message; it is also broadcast to the conversation's room.

    destroy:
        Hide a message from the caller's own history.
    """

    permission_classes = [IsAuthenticated]

    def list(self, request, conversation_pk=None):
        query = MessageListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        messages = _unwrap(
            MessageService.list_messages(
                conversation_pk,
                request.user,
                before=params.get("before"),
                after=params.get("after"),
                limit=params.get("limit"),
            )
        )
        return Response(MessageSerializer(messages, many=True).data)

    def create(self, request, conversation_pk=None):
        # MessageCreateSerializer documents the body; the service validates it
        # so REST and the socket accept exactly the same payloads.
        payload = request.data
        if not isinstance(payload, Mapping):
            raise ValidationError("Message body must be an object")

        message = _unwrap(
            MessageService.send_message(
                conversation_id=conversation_pk,
                sender=request.user,
                text=payload.get("text", ""),
                attachments=payload.get("attachments"),
            )
        )
        return Response(
            {"message": MessageSerializer(message).data},
            status=status.HTTP_201_CREATED,
        )

    def destroy(self, request, conversation_pk=None, pk=None):
        _unwrap(MessageService.hide_message(conversation_pk, pk, request.user))
        return Response({"ok": True})


# =============================================================================
# Attachments, reports, blocks
# =============================================================================


class AttachmentUploadView(APIView):
    """Store an uploaded file and return the metadata to attach to a message."""

    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]

    @extend_schema(
        operation_id="upload_attachment",
        summary="Upload attachment",
        request={"multipart/form-data": AttachmentUploadSerializer},
        responses={
            200: AttachmentSerializer,
            400: OpenApiResponse(description="No file submitted"),
            413: OpenApiResponse(description="File exceeds the upload limit"),
        },
        tags=["Chat - Attachments"],
    )
    def post(self, request):
        serializer = AttachmentUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        meta = _unwrap(
            AttachmentService.upload(serializer.validated_data["file"], request.user)
        )
        return Response(meta)


class ReportView(APIView):
    """File an abuse report against a message and/or conversation."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_report",
        summary="Report abuse",
        request=ReportCreateSerializer,
        responses={200: ReportSerializer},
        tags=["Chat - Moderation"],
    )
    def post(self, request):
        serializer = ReportCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        report = _unwrap(
            ReportService.report(
                reporter=request.user,
                reason=data.get("reason"),
                conversation_id=data.get("conversationId"),
                message_id=data.get("messageId"),
            )
        )
        return Response(ReportSerializer(report).data)


class BlockView(APIView):
    """Block a user from sending into a conversation."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="block_user",
        summary="Block user in conversation",
        request=BlockSerializer,
        responses={200: OkSerializer},
        tags=["Chat - Conversations"],
    )
    def post(self, request):
        serializer = BlockSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        _unwrap(
            ConversationService.set_block(
                serializer.validated_data["conversationId"],
                request.user,
                serializer.validated_data["blockedUserId"],
            )
        )
        return Response({"ok": True})


class UnblockView(APIView):
    """Remove the caller's block on a user."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="unblock_user",
        summary="Unblock user in conversation",
        request=BlockSerializer,
        responses={200: OkSerializer},
        tags=["Chat - Conversations"],
    )
    def post(self, request):
        serializer = BlockSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        _unwrap(
            ConversationService.clear_block(
                serializer.validated_data["conversationId"],
                request.user,
                serializer.validated_data["blockedUserId"],
            )
        )
        return Response({"ok": True})


# =============================================================================
# Moderation
# =============================================================================


class AdminReportListView(APIView):
    """Moderation queue. Admin check happens in ReportService."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_reports",
        summary="List reports",
        parameters=[
            OpenApiParameter("status", OpenApiTypes.STR, enum=["open", "reviewing", "closed"])
        ],
        responses={
            200: ReportSerializer(many=True),
            403: OpenApiResponse(description="Caller is not an admin"),
        },
        tags=["Chat - Moderation"],
    )
    def get(self, request):
        query = ReportListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        reports = _unwrap(
            ReportService.list_reports(
                request.user, status=query.validated_data.get("status") or None
            )
        )
        return Response(ReportSerializer(reports, many=True).data)


class AdminReportStatusView(APIView):
    """Move a report forward in its lifecycle."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="set_report_status",
        summary="Set report status",
        request=ReportStatusSerializer,
        responses={
            200: ReportSerializer,
            400: OpenApiResponse(description="Unknown status or a move backwards"),
            403: OpenApiResponse(description="Caller is not an admin"),
            404: OpenApiResponse(description="Report not found"),
        },
        tags=["Chat - Moderation"],
    )
    def post(self, request, pk):
        serializer = ReportStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        report = _unwrap(
            ReportService.set_status(pk, serializer.validated_data["status"], request.user)
        )
        return Response(ReportSerializer(report).data)
