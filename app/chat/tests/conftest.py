"""
Test configuration and fixtures for chat tests.

This module provides:
- Users: alice and bob (participants), carol (outsider), moderator (staff)
- A direct conversation between alice and bob
- API client helpers for authenticated requests
- A mock for room broadcasts

Usage:
    def test_example(conversation, alice_client):
        response = alice_client.get(f"/api/v1/chat/conversations/{conversation.id}/")
        assert response.status_code == 200
"""

from unittest import mock

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from authentication.tests.factories import UserFactory
from chat.tests.factories import ConversationFactory


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def alice(db):
    """Participant who usually sends."""
    return UserFactory(display_name="Alice")


@pytest.fixture
def bob(db):
    """Second participant."""
    return UserFactory(display_name="Bob")


@pytest.fixture
def carol(db):
    """User who is not a participant in any test conversation."""
    return UserFactory(display_name="Carol")


@pytest.fixture
def moderator(db):
    """Staff user allowed to moderate reports."""
    return UserFactory(display_name="Moderator", is_staff=True)


# =============================================================================
# Conversation Fixtures
# =============================================================================


@pytest.fixture
def conversation(db, alice, bob):
    """Direct conversation between alice and bob, created by alice."""
    return ConversationFactory(created_by=alice, members=[alice, bob])


# =============================================================================
# Realtime Fixtures
# =============================================================================


@pytest.fixture
def mock_publish():
    """
    Capture room broadcasts made by the services.

    Broadcasts are deferred with transaction.on_commit, so combine this with
    django_capture_on_commit_callbacks(execute=True) to observe them.
    """
    with mock.patch("chat.services.gateway.publish_sync") as publish:
        yield publish


def token_for(user) -> str:
    """Mint an access token the REST and WebSocket layers both accept."""
    return str(AccessToken.for_user(user))


@pytest.fixture
def make_token():
    """Fixture form of token_for for WebSocket handshakes."""
    return token_for


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def authenticated_client_factory(db):
    """
    Factory to create authenticated clients for any user.

    Usage:
        def test_example(authenticated_client_factory, some_user):
            client = authenticated_client_factory(some_user)
            response = client.get('/api/v1/chat/conversations/')
    """

    def _make_client(user):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {token_for(user)}")
        return client

    return _make_client


@pytest.fixture
def alice_client(authenticated_client_factory, alice):
    return authenticated_client_factory(alice)


@pytest.fixture
def bob_client(authenticated_client_factory, bob):
    return authenticated_client_factory(bob)


@pytest.fixture
def carol_client(authenticated_client_factory, carol):
    return authenticated_client_factory(carol)


@pytest.fixture
def moderator_client(authenticated_client_factory, moderator):
    return authenticated_client_factory(moderator)
