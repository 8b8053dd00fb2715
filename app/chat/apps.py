"""
Chat application configuration.

This app provides the chat system with:
- Direct and transport-scoped conversations
- Directional blocks and abuse reports
- Read tracking and typing indicators over WebSockets
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    """Configuration for the chat application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"
