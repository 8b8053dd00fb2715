"""
WebSocket consumer for the chat application.

One connection per client. The client joins the rooms of the conversations it
has open and receives every event published to those rooms.

Consumers:
    ChatConsumer: Handles the chat WebSocket at ws/chat/

Authentication:
    JWTAuthMiddleware attaches the user to self.scope["user"]. Anonymous
    connections are closed with code 4001 before accept.

Message Types (from client), as {"type": ..., ...fields}:
    - chat:join     {conversationId}
    - chat:leave    {conversationId}
    - chat:typing   {conversationId, isTyping}
    - chat:message  {conversationId, text, attachments?, tempId}
    - chat:read     {conversationId, at?}

Message Types (to client):
    - chat:message:new  {conversationId, tempId?, message}
    - chat:typing       {conversationId, userId, isTyping}
    - chat:read         {conversationId, userId, at}

Failures (unknown conversation, not a participant, blocked, malformed
payload) are logged and dropped; no error event is sent back, so a
non-participant cannot learn which conversations exist. Database errors
raised while handling an event are logged with a traceback and dropped the
same way; the connection stays open.
"""

from __future__ import annotations

import json
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.db import DatabaseError

from chat.constants import EVENTS
from chat.realtime import gateway
from chat.services import ConversationService, MessageService, coerce_id

logger = logging.getLogger(__name__)

# Close code for a handshake without valid credentials
CLOSE_UNAUTHORIZED = 4001


class ChatConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for real-time chat functionality.

    Handles:
        - Connection authentication
        - Joining/leaving conversation rooms (through the realtime gateway)
        - Sending messages and read receipts (through the service layer)
        - Typing indicators (broadcast only, never persisted)
    """

    async def connect(self):
        """Accept authenticated connections; close anonymous ones with 4001."""
        user = self.scope.get("user")

        if user is None or not user.is_authenticated:
            logger.info("Rejected unauthenticated chat connection")
            await self.close(code=CLOSE_UNAUTHORIZED)
            return

        # Echo the subprotocol the token arrived in, or browsers drop the socket
        if "jwt" in (self.scope.get("subprotocols") or []):
            await self.accept(subprotocol="jwt")
        else:
            await self.accept()
        logger.info(f"User {user.id} connected to chat")

    async def disconnect(self, close_code):
        """Drop every room subscription held by this connection."""
        await gateway.disconnect(self.channel_name)
        user = self.scope.get("user")
        if user is not None and user.is_authenticated:
            logger.info(f"User {user.id} disconnected from chat ({close_code})")

    async def receive(self, text_data=None, bytes_data=None, **kwargs):
        """Parse text frames as JSON; binary and malformed frames are ignored."""
        if text_data is None:
            logger.debug("Ignored binary chat frame")
            return
        try:
            content = json.loads(text_data)
        except ValueError:
            logger.debug("Ignored malformed chat frame")
            return
        await self.receive_json(content, **kwargs)

    async def receive_json(self, content, **kwargs):
        """
        Dispatch a client event by its ``type``.

        Expected message format:
            {"type": "chat:join", "conversationId": 12}
            {"type": "chat:message", "conversationId": 12, "text": "Hi", "tempId": "t1"}
        """
        if not isinstance(content, dict):
            return

        handlers = {
            EVENTS.JOIN: self._handle_join,
            EVENTS.LEAVE: self._handle_leave,
            EVENTS.TYPING: self._handle_typing,
            EVENTS.MESSAGE: self._handle_message,
            EVENTS.READ: self._handle_read,
        }
        handler = handlers.get(content.get("type"))
        if handler is None:
            logger.debug(f"Ignored unknown chat event {content.get('type')!r}")
            return

        conversation_id = coerce_id(content.get("conversationId"))
        if conversation_id is None:
            logger.debug(f"Ignored {content.get('type')} without a valid conversationId")
            return

        try:
            await handler(conversation_id, content)
        except (DatabaseError, ValueError):
            # Realtime failures are never reported to the client; keep the socket
            logger.exception(
                f"Dropped {content.get('type')} from user {self.scope['user'].id} "
                f"for conversation {conversation_id}"
            )

    # -------------------------------------------------------------------------
    # Client events
    # -------------------------------------------------------------------------

    async def _handle_join(self, conversation_id: int, content: dict):
        """Subscribe to the room if the user is a participant; silent otherwise."""
        user = self.scope["user"]
        if not await self._is_participant(conversation_id, user.id):
            logger.info(f"User {user.id} denied join to conversation {conversation_id}")
            return
        await gateway.join(conversation_id, self.channel_name)

    async def _handle_leave(self, conversation_id: int, content: dict):
        await gateway.leave(conversation_id, self.channel_name)

    async def _handle_typing(self, conversation_id: int, content: dict):
        """
        Handle typing indicator.

        Broadcasts to the whole room, including the sender's own connections.
        """
        await gateway.publish(
            conversation_id,
            EVENTS.LAYER_TYPING,
            {
                "userId": self.scope["user"].id,
                "isTyping": bool(content.get("isTyping")),
            },
        )

    async def _handle_message(self, conversation_id: int, content: dict):
        """
        Handle incoming chat message.

        The service persists the message and publishes chat:message:new after
        commit; nothing is sent from here.
        """
        result = await self._send_message(conversation_id, content)
        if not result.success:
            logger.info(
                f"Dropped chat message from user {self.scope['user'].id}: "
                f"[{result.error_code}] {result.error}"
            )

    async def _handle_read(self, conversation_id: int, content: dict):
        result = await self._mark_read(conversation_id, content.get("at"))
        if not result.success:
            logger.info(
                f"Dropped read receipt from user {self.scope['user'].id}: "
                f"[{result.error_code}] {result.error}"
            )

    # -------------------------------------------------------------------------
    # Channel layer events
    # -------------------------------------------------------------------------

    async def chat_message_new(self, event):
        """Handle chat.message.new events from the channel layer."""
        payload = {
            "type": EVENTS.MESSAGE_NEW,
            "conversationId": event["conversation_id"],
            "message": event["message"],
        }
        if event.get("tempId") is not None:
            payload["tempId"] = event["tempId"]
        await self.send_json(payload)

    async def chat_typing(self, event):
        """Handle chat.typing events from the channel layer."""
        await self.send_json(
            {
                "type": EVENTS.TYPING,
                "conversationId": event["conversation_id"],
                "userId": event["userId"],
                "isTyping": event["isTyping"],
            }
        )

    async def chat_read(self, event):
        """Handle chat.read events from the channel layer."""
        await self.send_json(
            {
                "type": EVENTS.READ,
                "conversationId": event["conversation_id"],
                "userId": event["userId"],
                "at": event["at"],
            }
        )

    # -------------------------------------------------------------------------
    # Database access
    # -------------------------------------------------------------------------

    @database_sync_to_async
    def _is_participant(self, conversation_id: int, user_id) -> bool:
        return ConversationService.is_participant(conversation_id, user_id)

    @database_sync_to_async
    def _send_message(self, conversation_id: int, content: dict):
        return MessageService.send_message(
            conversation_id=conversation_id,
            sender=self.scope["user"],
            text=content.get("text", ""),
            attachments=content.get("attachments"),
            temp_id=content.get("tempId"),
        )

    @database_sync_to_async
    def _mark_read(self, conversation_id: int, at):
        return MessageService.mark_read(conversation_id, self.scope["user"], at=at)
