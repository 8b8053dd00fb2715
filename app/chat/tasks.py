"""
Celery tasks for chat app.

Entry points other subsystems use without importing chat internals:
- Opening the conversation for an accepted transport job
- Posting system notices (e.g. payment hold released)

Related files:
    - services.py: ConversationService, MessageService

Usage:
    from chat.tasks import open_transport_conversation

    open_transport_conversation.delay("job-42", receiver.id, carrier.id)
"""

import logging

from celery import shared_task

from chat.services import ConversationService, MessageService

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def open_transport_conversation(
    self, transport_id: str, receiver_id: int, carrier_id: int
) -> int | None:
    """
    Open (or reuse) the conversation for an accepted transport job.

    Args:
        transport_id: Transport job id
        receiver_id: User receiving the goods
        carrier_id: User carrying them

    Returns:
        Conversation id, or None if the request was rejected
    """
    result = ConversationService.open_for_transport(transport_id, receiver_id, carrier_id)
    if not result.success:
        logger.warning(
            f"Could not open conversation for transport {transport_id}: "
            f"[{result.error_code}] {result.error}"
        )
        return None
    return result.data.id


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def post_system_notice(self, conversation_id: int, text: str) -> int | None:
    """
    Post a system message into a conversation.

    Returns:
        Message id, or None if the conversation does not exist
    """
    result = MessageService.post_system_message(conversation_id, text)
    if not result.success:
        logger.warning(
            f"Could not post notice to conversation {conversation_id}: {result.error}"
        )
        return None
    return result.data.id
