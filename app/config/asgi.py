"""
ASGI config for the chat service.

This configuration serves:
- HTTP requests via Django (REST API, admin, docs)
- WebSocket connections via Django Channels (realtime chat events)

Uvicorn uses this entry point:
    uvicorn config.asgi:application --host 0.0.0.0 --port 8000

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/asgi/
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# Initialize Django before importing anything that touches models
django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.security.websocket import AllowedHostsOriginValidator  # noqa: E402

from chat.middleware import JWTAuthMiddleware  # noqa: E402
from chat.routing import websocket_urlpatterns  # noqa: E402

# WebSocket connections pass through:
# 1. AllowedHostsOriginValidator - origin must match ALLOWED_HOSTS
# 2. JWTAuthMiddleware - resolves scope["user"] from the bearer token
# 3. URLRouter - routes to the chat consumer
application = ProtocolTypeRouter(
    {
        "http": django_asgi_app,
        "websocket": AllowedHostsOriginValidator(
            JWTAuthMiddleware(URLRouter(websocket_urlpatterns))
        ),
    }
)
