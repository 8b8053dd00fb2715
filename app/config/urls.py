"""
URL configuration for the chat service.

URL Structure:
    /                                       - ReDoc API documentation
    /admin/                                 - Django admin interface
    /health/                                - Health check endpoint (load balancers, Docker)
    /schema/                                - OpenAPI schema (YAML)
    /api/v1/chat/                           - Chat endpoints
        conversations/                      - List own conversations / create
        conversations/{id}/                 - Conversation detail
        conversations/{id}/messages/        - Message list/send
        conversations/{id}/messages/{mid}/  - Hide a message for the caller
        conversations/{id}/read/            - Mark conversation as read
        conversations/{id}/mute/            - Mute notifications until a time
        block/, unblock/                    - Block/unblock a participant
        report/                             - File an abuse report
        upload/                             - Upload an attachment (multipart)
        admin/reports/                      - Moderation queue (staff only)
        admin/reports/{id}/                 - Update report status (staff only)

WebSocket:
    /ws/chat/                               - Realtime events (see chat.routing)

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    path("chat/", include("chat.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Chat Admin"
admin.site.site_title = "Chat Admin Portal"
admin.site.index_title = "Conversations and moderation"
