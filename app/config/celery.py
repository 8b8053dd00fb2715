"""
Celery configuration for the chat service.

Background work that other services hand to chat (opening a conversation
when a transport job is accepted, posting system notices into it) runs as
Celery tasks. Redis is both the broker and the result backend.

Usage:
    from chat.tasks import open_transport_conversation

    open_transport_conversation.delay("job-42", receiver_id, carrier_id)

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Picks up chat.tasks
app.autodiscover_tasks()
