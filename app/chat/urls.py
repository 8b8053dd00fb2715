"""
URL configuration for chat API.

URL Structure:
    Conversations:
        /conversations/                       GET, POST
        /conversations/{id}/                  GET
        /conversations/{id}/read/             POST
        /conversations/{id}/mute/             POST

    Messages:
        /conversations/{id}/messages/         GET, POST
        /conversations/{id}/messages/{mid}/   DELETE (for the caller only)

    Attachments and moderation:
        /upload/                              POST (multipart, field "file")
        /report/                              POST
        /block/                               POST
        /unblock/                             POST
        /admin/reports/                       GET
        /admin/reports/{id}/                  POST

All URLs are prefixed with /api/v1/chat/ in the main URL configuration.
"""

from django.urls import path

from chat.views import (
    AdminReportListView,
    AdminReportStatusView,
    AttachmentUploadView,
    BlockView,
    ConversationViewSet,
    MessageViewSet,
    ReportView,
    UnblockView,
)

app_name = "chat"

urlpatterns = [
    path(
        "conversations/",
        ConversationViewSet.as_view({"get": "list", "post": "create"}),
        name="conversation-list",
    ),
    path(
        "conversations/<int:pk>/",
        ConversationViewSet.as_view({"get": "retrieve"}),
        name="conversation-detail",
    ),
    path(
        "conversations/<int:pk>/read/",
        ConversationViewSet.as_view({"post": "read"}),
        name="conversation-read",
    ),
    path(
        "conversations/<int:pk>/mute/",
        ConversationViewSet.as_view({"post": "mute"}),
        name="conversation-mute",
    ),
    # Nested routes for messages
    path(
        "conversations/<int:conversation_pk>/messages/",
        MessageViewSet.as_view({"get": "list", "post": "create"}),
        name="conversation-message-list",
    ),
    path(
        "conversations/<int:conversation_pk>/messages/<int:pk>/",
        MessageViewSet.as_view({"delete": "destroy"}),
        name="conversation-message-detail",
    ),
    path("upload/", AttachmentUploadView.as_view(), name="upload"),
    path("report/", ReportView.as_view(), name="report"),
    path("block/", BlockView.as_view(), name="block"),
    path("unblock/", UnblockView.as_view(), name="unblock"),
    path("admin/reports/", AdminReportListView.as_view(), name="admin-report-list"),
    path(
        "admin/reports/<int:pk>/",
        AdminReportStatusView.as_view(),
        name="admin-report-status",
    ),
]
