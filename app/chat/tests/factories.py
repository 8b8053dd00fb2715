"""
Factory Boy factories for chat models.

Provides realistic test data generation for:
- Conversation: Direct and transport conversations
- Participant: User participation in conversations
- BlockedPair: Directional blocks
- Message: Text and system messages
- Report: Abuse reports

Usage:
    from chat.tests.factories import (
        ConversationFactory,
        TransportConversationFactory,
        ParticipantFactory,
        MessageFactory,
    )

    # Conversation with two participants
    conversation = ConversationFactory(members=[alice, bob])

    # Create a message in a conversation
    message = MessageFactory(conversation=conversation, sender=alice)
"""

import factory

from authentication.tests.factories import UserFactory
from chat.models import (
    BlockedPair,
    Conversation,
    ConversationType,
    Message,
    Participant,
    ParticipantRole,
    Report,
    ReportStatus,
)


class ConversationFactory(factory.django.DjangoModelFactory):
    """
    Factory for Conversation model.

    Creates a direct conversation by default. Pass ``members`` to add
    participants in one go.

    Examples:
        conversation = ConversationFactory(members=[alice, bob])
        conversation = ConversationFactory(created_by=alice)
    """

    class Meta:
        model = Conversation
        skip_postgeneration_save = True

    type = ConversationType.DIRECT
    transport_id = ""
    created_by = None

    @factory.post_generation
    def members(self, create, extracted, **kwargs):
        """Add participants after creation."""
        if not create or not extracted:
            return
        for user in extracted:
            Participant.objects.create(conversation=self, user=user)


class TransportConversationFactory(ConversationFactory):
    """Factory for conversations scoped to a transport job."""

    type = ConversationType.TRANSPORT
    transport_id = factory.Sequence(lambda n: f"job-{n}")


class ParticipantFactory(factory.django.DjangoModelFactory):
    """Factory for Participant model."""

    class Meta:
        model = Participant

    conversation = factory.SubFactory(ConversationFactory)
    user = factory.SubFactory(UserFactory)
    role = ParticipantRole.OTHER


class BlockedPairFactory(factory.django.DjangoModelFactory):
    """Factory for BlockedPair model."""

    class Meta:
        model = BlockedPair

    conversation = factory.SubFactory(ConversationFactory)
    blocker = factory.SubFactory(UserFactory)
    blocked = factory.SubFactory(UserFactory)


class MessageFactory(factory.django.DjangoModelFactory):
    """
    Factory for Message model.

    Examples:
        message = MessageFactory(conversation=conversation, sender=alice)
        notice = SystemMessageFactory(conversation=conversation)
    """

    class Meta:
        model = Message

    conversation = factory.SubFactory(ConversationFactory)
    sender = factory.SubFactory(UserFactory)
    text = factory.Faker("sentence")
    attachments = factory.LazyFunction(list)
    system = False


class SystemMessageFactory(MessageFactory):
    """Factory for system notices (no sender)."""

    sender = None
    text = "Transport accepted."
    system = True


class ReportFactory(factory.django.DjangoModelFactory):
    """Factory for Report model."""

    class Meta:
        model = Report

    reporter = factory.SubFactory(UserFactory)
    conversation = factory.SubFactory(ConversationFactory)
    message = None
    reason = factory.Faker("sentence")
    status = ReportStatus.OPEN
