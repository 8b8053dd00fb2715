"""
Chat app for real-time messaging in the transport marketplace.

This app handles:
- Conversations (direct, or scoped to a transport job)
- Message sending and history
- WebSocket real-time updates
- Read receipts and typing indicators
- Blocking, abuse reports and moderation

Related apps:
    - authentication: User model for participants

WebSocket Support:
    Uses Django Channels for real-time communication.
    See consumers.py for WebSocket handlers.
    See realtime.py for room membership and publishing.

Usage:
    from chat.services import ConversationService, MessageService

    # Create conversation
    result = ConversationService.create(
        requester=user,
        type="direct",
        participant_ids=[other_user.id],
    )

    # Send message
    result = MessageService.send_message(
        conversation_id=result.data.id,
        sender=user,
        text="Hello!",
    )
"""
