"""
Tests for JWTAuthMiddleware.

Covers where the token is read from (query, subprotocol, header), their
precedence, and every way a handshake ends up anonymous.
"""

from datetime import timedelta

import pytest
from channels.db import database_sync_to_async
from rest_framework_simplejwt.tokens import AccessToken

from chat.middleware import JWTAuthMiddleware

pytestmark = pytest.mark.django_db(transaction=True)


@pytest.fixture
def captured():
    return {}


@pytest.fixture
def middleware(captured):
    async def inner(scope, receive, send):
        captured["user"] = scope["user"]
        captured["scope"] = scope

    return JWTAuthMiddleware(inner)


async def run(middleware, **scope):
    base = {"type": "websocket", "path": "/ws/chat/", "query_string": b"", "headers": []}
    base.update(scope)
    await middleware(base, None, None)
    return base


class TestTokenSources:
    async def test_query_string_token(self, middleware, captured, alice, make_token):
        await run(middleware, query_string=f"token={make_token(alice)}".encode())

        assert captured["user"].id == alice.id

    async def test_subprotocol_token(self, middleware, captured, alice, make_token):
        await run(middleware, subprotocols=["jwt", make_token(alice)])

        assert captured["user"].id == alice.id

    async def test_authorization_header_token(self, middleware, captured, alice, make_token):
        header = f"Bearer {make_token(alice)}".encode()

        await run(middleware, headers=[(b"authorization", header)])

        assert captured["user"].id == alice.id

    async def test_query_wins_over_header(self, middleware, captured, alice, bob, make_token):
        await run(
            middleware,
            query_string=f"token={make_token(alice)}".encode(),
            headers=[(b"authorization", f"Bearer {make_token(bob)}".encode())],
        )

        assert captured["user"].id == alice.id

    async def test_subprotocol_needs_jwt_marker(self, middleware, captured, alice, make_token):
        await run(middleware, subprotocols=["chat", make_token(alice)])

        assert captured["user"].is_anonymous

    async def test_original_scope_is_not_mutated(self, middleware, captured, alice, make_token):
        scope = await run(middleware, query_string=f"token={make_token(alice)}".encode())

        assert "user" not in scope
        assert captured["scope"] is not scope


class TestAnonymous:
    async def test_no_token(self, middleware, captured):
        await run(middleware)

        assert captured["user"].is_anonymous

    async def test_garbage_token(self, middleware, captured):
        await run(middleware, query_string=b"token=not-a-jwt")

        assert captured["user"].is_anonymous

    async def test_expired_token(self, middleware, captured, alice):
        token = AccessToken.for_user(alice)
        token.set_exp(lifetime=-timedelta(minutes=1))

        await run(middleware, query_string=f"token={token}".encode())

        assert captured["user"].is_anonymous

    async def test_deleted_user(self, middleware, captured, alice, make_token):
        token = make_token(alice)
        await database_sync_to_async(alice.delete)()

        await run(middleware, query_string=f"token={token}".encode())

        assert captured["user"].is_anonymous

    async def test_inactive_user(self, middleware, captured, alice, make_token):
        alice.is_active = False
        await database_sync_to_async(alice.save)()

        await run(middleware, query_string=f"token={make_token(alice)}".encode())

        assert captured["user"].is_anonymous
