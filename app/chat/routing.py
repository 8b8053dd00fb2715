"""
WebSocket URL routing for the chat application.

URL Patterns:
    ws/chat/ - One connection per client; rooms are joined with chat:join

Authentication:
    JWT token passed as ?token=, as the "jwt" subprotocol, or as an
    Authorization header. JWTAuthMiddleware attaches the user to the scope.
"""

from django.urls import path

from chat import consumers

websocket_urlpatterns = [
    path("ws/chat/", consumers.ChatConsumer.as_asgi()),
]
