"""
Tests for chat app.

This package contains test modules for:
- test_models.py: Constraints and model helpers
- test_services.py: Conversation, message, report and attachment services
- test_views.py: REST API endpoint tests
- test_consumers.py: WebSocket consumer tests
- test_middleware.py: Handshake token authentication
- test_realtime.py: Room gateway over the channel layer
- test_storage.py, test_tasks.py: Attachment store and Celery tasks

Usage:
    pytest chat/tests/
    pytest chat/tests/test_consumers.py
"""
