"""
WebSocket authentication middleware.

Provides JWT authentication for WebSocket connections using the same
simplejwt access tokens as the REST API.

Related files:
    - routing.py: WebSocket URL patterns
    - consumers.py: WebSocket handlers
    - config/asgi.py: ASGI configuration

Token Passing Methods (in order of precedence):
    1. Query string: ws://host/ws/chat/?token=<jwt_token>
    2. Subprotocol: Sec-WebSocket-Protocol: jwt, <jwt_token>
    3. Header: Authorization: Bearer <jwt_token> (non-browser clients)

Usage in config/asgi.py:
    from chat.middleware import JWTAuthMiddleware

    application = ProtocolTypeRouter({
        "websocket": JWTAuthMiddleware(
            URLRouter(websocket_urlpatterns)
        ),
    })
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import AccessToken

logger = logging.getLogger(__name__)


class JWTAuthMiddleware(BaseMiddleware):
    """
    JWT authentication middleware for WebSocket connections.

    Extracts the JWT from the handshake, validates it, and attaches the user
    to ``scope["user"]``. Missing or invalid tokens leave an AnonymousUser;
    rejecting the connection is up to the consumer.
    """

    async def __call__(self, scope, receive, send):
        """Authenticate the handshake and pass through to the inner app."""
        scope = dict(scope)
        token = (
            self._get_token_from_query(scope)
            or self._get_token_from_subprotocol(scope)
            or self._get_token_from_header(scope)
        )

        if token:
            scope["user"] = await self._get_user_from_token(token)
        else:
            scope["user"] = AnonymousUser()

        return await super().__call__(scope, receive, send)

    def _get_token_from_query(self, scope) -> str | None:
        """Extract token from query string."""
        query_string = scope.get("query_string", b"").decode()
        token_list = parse_qs(query_string).get("token", [])
        return token_list[0] if token_list else None

    def _get_token_from_subprotocol(self, scope) -> str | None:
        """
        Extract token from WebSocket subprotocol.

        Expects: Sec-WebSocket-Protocol: jwt, <token>
        """
        subprotocols = scope.get("subprotocols") or []
        if len(subprotocols) >= 2 and subprotocols[0] == "jwt":
            return subprotocols[1]
        return None

    def _get_token_from_header(self, scope) -> str | None:
        """Extract token from an ``Authorization: Bearer`` header."""
        for name, value in scope.get("headers", []):
            if name.lower() == b"authorization":
                parts = value.decode("latin1").split()
                if len(parts) == 2 and parts[0].lower() == "bearer":
                    return parts[1]
        return None

    @database_sync_to_async
    def _get_user_from_token(self, token: str):
        """
        Validate JWT token and get user.

        Args:
            token: JWT access token

        Returns:
            User instance if valid, AnonymousUser otherwise
        """
        User = get_user_model()

        try:
            access_token = AccessToken(token)
            user_id = access_token[api_settings.USER_ID_CLAIM]
            user = User.objects.get(id=user_id)
        except TokenError as e:
            logger.info(f"Rejected WebSocket token: {e}")
            return AnonymousUser()
        except KeyError:
            logger.info("WebSocket token has no user claim")
            return AnonymousUser()
        except User.DoesNotExist:
            logger.info("User not found for WebSocket token")
            return AnonymousUser()

        if not user.is_active:
            logger.warning(f"Inactive user attempted WebSocket connection: {user.id}")
            return AnonymousUser()

        return user
