"""Tests for chat Celery tasks, run eagerly by calling the task directly."""

import pytest

from chat.models import Conversation, Message, Participant, ParticipantRole
from chat.tasks import open_transport_conversation, post_system_notice

pytestmark = pytest.mark.django_db


class TestOpenTransportConversation:
    def test_creates_conversation_with_roles_and_notice(self, alice, bob):
        conversation_id = open_transport_conversation("job-42", alice.id, bob.id)

        conversation = Conversation.objects.get(id=conversation_id)
        assert conversation.transport_id == "job-42"
        roles = dict(
            Participant.objects.filter(conversation=conversation).values_list("user_id", "role")
        )
        assert roles == {alice.id: ParticipantRole.RECEIVER, bob.id: ParticipantRole.CARRIER}
        notice = Message.objects.get(conversation=conversation)
        assert notice.system is True
        assert notice.sender is None

    def test_second_call_reuses_conversation_without_new_notice(self, alice, bob):
        first = open_transport_conversation("job-42", alice.id, bob.id)
        second = open_transport_conversation("job-42", alice.id, bob.id)

        assert first == second
        assert Message.objects.filter(conversation_id=first).count() == 1

    def test_unknown_carrier_returns_none(self, alice):
        assert open_transport_conversation("job-42", alice.id, 999999) is None
        assert not Conversation.objects.exists()

    def test_same_user_on_both_sides_returns_none(self, alice):
        assert open_transport_conversation("job-42", alice.id, alice.id) is None


class TestPostSystemNotice:
    def test_posts_system_message(self, conversation):
        message_id = post_system_notice(conversation.id, "Payment released")

        message = Message.objects.get(id=message_id)
        assert message.system is True
        assert message.text == "Payment released"
        conversation.refresh_from_db()
        assert conversation.last_message_at == message.created_at

    def test_missing_conversation_returns_none(self):
        assert post_system_notice(999999, "hello") is None
