"""
Tests for chat API views.

This module tests the HTTP surface of the chat system:
- Conversations: create, list, retrieve, read, mute
- Messages: history, send, hide
- Upload, report, block/unblock
- Admin moderation endpoints
- Error body shape ({"error": "<slug>"}) and status codes

Testing Philosophy:
    Tests focus on observable HTTP behavior:
    - Response status codes
    - Response body structure (camelCase keys)
    - Database state changes
    - Authentication/permission enforcement
"""

from datetime import timedelta

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from freezegun import freeze_time
from rest_framework import status

from chat.constants import EVENTS
from chat.models import BlockedPair, Message, Participant, Report, ReportStatus
from chat.tests.factories import (
    BlockedPairFactory,
    ConversationFactory,
    MessageFactory,
    ReportFactory,
    TransportConversationFactory,
)


# =============================================================================
# URL Constants
# =============================================================================


CHAT_URL = "/api/v1/chat/"
CONVERSATIONS_URL = f"{CHAT_URL}conversations/"


def conversation_url(conversation_id):
    return f"{CONVERSATIONS_URL}{conversation_id}/"


def messages_url(conversation_id):
    return f"{CONVERSATIONS_URL}{conversation_id}/messages/"


# =============================================================================
# Conversations
# =============================================================================


class TestCreateConversation:
    """Tests for POST /api/v1/chat/conversations/."""

    def test_creates_conversation(self, alice_client, alice, bob):
        response = alice_client.post(
            CONVERSATIONS_URL,
            {"type": "transport", "participantIds": [bob.id], "transportId": "T1"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["type"] == "transport"
        assert body["transportId"] == "T1"
        assert body["createdBy"] == alice.id
        assert {p["userId"] for p in body["participants"]} == {alice.id, bob.id}
        assert body["blockedPairs"] == []

    def test_transport_create_is_idempotent(self, alice_client, bob_client, alice, bob):
        payload = {"type": "transport", "participantIds": [bob.id], "transportId": "T1"}
        first = alice_client.post(CONVERSATIONS_URL, payload, format="json")
        second = bob_client.post(
            CONVERSATIONS_URL,
            {"type": "transport", "participantIds": [alice.id], "transportId": "T1"},
            format="json",
        )

        assert first.json()["id"] == second.json()["id"]

    @pytest.mark.parametrize(
        "payload",
        [
            {"participantIds": [1]},
            {"type": "direct"},
            {"type": "direct", "participantIds": []},
            {"type": "direct", "participantIds": "1"},
            {"type": "group", "participantIds": [1]},
        ],
    )
    def test_invalid_payload(self, alice_client, payload):
        response = alice_client.post(CONVERSATIONS_URL, payload, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "invalid_payload"

    def test_unknown_participant(self, alice_client):
        response = alice_client.post(
            CONVERSATIONS_URL, {"type": "direct", "participantIds": [999999]}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "invalid_payload"

    def test_requires_authentication(self, api_client, bob):
        response = api_client.post(
            CONVERSATIONS_URL, {"type": "direct", "participantIds": [bob.id]}, format="json"
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {"error": "unauthorized"}

    def test_rejects_bad_token(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION="Bearer not-a-jwt")

        response = api_client.get(CONVERSATIONS_URL)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"] == "unauthorized"


class TestListConversations:
    """Tests for GET /api/v1/chat/conversations/."""

    def test_returns_plain_array_latest_first(self, alice_client, alice, bob, carol):
        now = timezone.now()
        older = ConversationFactory(members=[alice, bob], last_message_at=now - timedelta(hours=1))
        newer = ConversationFactory(members=[alice, carol], last_message_at=now)
        ConversationFactory(members=[bob, carol])

        response = alice_client.get(CONVERSATIONS_URL)

        assert response.status_code == status.HTTP_200_OK
        assert [c["id"] for c in response.json()] == [newer.id, older.id]

    def test_filters_by_transport_id(self, alice_client, alice, bob):
        match = TransportConversationFactory(transport_id="T1", members=[alice, bob])
        TransportConversationFactory(transport_id="T2", members=[alice, bob])

        response = alice_client.get(CONVERSATIONS_URL, {"transportId": "T1"})

        assert [c["id"] for c in response.json()] == [match.id]


class TestRetrieveConversation:
    def test_participant_sees_conversation(self, alice_client, conversation):
        response = alice_client.get(conversation_url(conversation.id))

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["id"] == conversation.id

    def test_outsider_forbidden(self, carol_client, conversation):
        response = carol_client.get(conversation_url(conversation.id))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json() == {"error": "forbidden"}

    def test_missing_conversation(self, alice_client):
        response = alice_client.get(conversation_url(999999))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"error": "not_found"}


class TestReadConversation:
    """Tests for POST /conversations/{id}/read/."""

    def test_marks_read(
        self, alice_client, alice, conversation, mock_publish, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            response = alice_client.post(f"{conversation_url(conversation.id)}read/")

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["ok"] is True
        participant = Participant.objects.get(conversation=conversation, user=alice)
        assert parse_datetime(body["at"]) == participant.last_read_at
        assert mock_publish.call_args.args[1] == EVENTS.LAYER_READ
        assert mock_publish.call_args.args[2] == {"userId": alice.id, "at": body["at"]}

    def test_marks_read_at_given_time(self, alice_client, alice, conversation):
        response = alice_client.post(
            f"{conversation_url(conversation.id)}read/",
            {"at": "2024-05-01T10:00:00Z"},
            format="json",
        )

        assert response.json() == {"ok": True, "at": "2024-05-01T10:00:00+00:00"}

    def test_outsider_not_found(self, carol_client, conversation):
        response = carol_client.post(f"{conversation_url(conversation.id)}read/")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "not_found"


class TestMuteConversation:
    def test_mutes_until_timestamp(self, alice_client, alice, conversation):
        response = alice_client.post(
            f"{conversation_url(conversation.id)}mute/",
            {"until": "2099-01-01T00:00:00Z"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["ok"] is True
        participant = Participant.objects.get(conversation=conversation, user=alice)
        assert participant.muted_until.year == 2099

    def test_unmute(self, alice_client, conversation):
        response = alice_client.post(
            f"{conversation_url(conversation.id)}mute/", {"until": None}, format="json"
        )

        assert response.json() == {"ok": True, "mutedUntil": None}


# =============================================================================
# Messages
# =============================================================================


class TestSendMessage:
    """Tests for POST /conversations/{id}/messages/."""

    def test_sends_and_broadcasts(
        self, bob_client, bob, conversation, mock_publish, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            response = bob_client.post(
                messages_url(conversation.id), {"text": "hello"}, format="json"
            )

        assert response.status_code == status.HTTP_201_CREATED
        message = response.json()["message"]
        assert message["text"] == "hello"
        assert message["senderId"] == bob.id
        assert message["conversationId"] == conversation.id
        assert message["system"] is False
        assert set(message) == {
            "id",
            "conversationId",
            "senderId",
            "text",
            "attachments",
            "system",
            "createdAt",
        }
        mock_publish.assert_called_once()
        assert mock_publish.call_args.args[2]["message"]["id"] == message["id"]

    def test_long_text_is_clipped(self, alice_client, conversation):
        response = alice_client.post(
            messages_url(conversation.id), {"text": "x" * 5001}, format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert len(response.json()["message"]["text"]) == 5000

    def test_attachments_are_kept(self, alice_client, conversation):
        attachments = [{"url": "/media/a.png", "mime": "image/png", "size": 3, "name": "a.png"}]

        response = alice_client.post(
            messages_url(conversation.id),
            {"text": "", "attachments": attachments},
            format="json",
        )

        assert response.json()["message"]["attachments"] == attachments

    def test_attachment_without_url_rejected(self, alice_client, conversation):
        response = alice_client.post(
            messages_url(conversation.id),
            {"attachments": [{"name": "a.png"}]},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "invalid_payload"

    def test_non_object_body_rejected(self, alice_client, conversation):
        response = alice_client.post(messages_url(conversation.id), ["hi"], format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "invalid_payload"

    def test_blocked_sender(
        self, bob_client, alice, bob, conversation, mock_publish, django_capture_on_commit_callbacks
    ):
        BlockedPairFactory(conversation=conversation, blocker=alice, blocked=bob)

        with django_capture_on_commit_callbacks(execute=True):
            response = bob_client.post(
                messages_url(conversation.id), {"text": "hi"}, format="json"
            )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json() == {"error": "blocked"}
        assert Message.objects.count() == 0
        mock_publish.assert_not_called()

    def test_outsider_forbidden(self, carol_client, conversation):
        response = carol_client.post(messages_url(conversation.id), {"text": "hi"}, format="json")

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json() == {"error": "forbidden"}

    def test_missing_conversation(self, alice_client):
        response = alice_client.post(messages_url(999999), {"text": "hi"}, format="json")

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestListMessages:
    """Tests for GET /conversations/{id}/messages/."""

    @pytest.fixture
    def history(self, conversation, alice):
        start = timezone.now() - timedelta(hours=1)
        messages = []
        for index in range(5):
            with freeze_time(start + timedelta(minutes=index)):
                messages.append(
                    MessageFactory(conversation=conversation, sender=alice, text=f"m{index}")
                )
        return messages

    def test_returns_ascending_history(self, alice_client, conversation, history):
        response = alice_client.get(messages_url(conversation.id))

        assert response.status_code == status.HTTP_200_OK
        assert [m["text"] for m in response.json()] == ["m0", "m1", "m2", "m3", "m4"]

    def test_before_cursor(self, alice_client, conversation, history):
        response = alice_client.get(
            messages_url(conversation.id),
            {"before": history[3].created_at.isoformat(), "limit": 2},
        )

        assert [m["text"] for m in response.json()] == ["m1", "m2"]

    def test_after_cursor(self, alice_client, conversation, history):
        response = alice_client.get(
            messages_url(conversation.id),
            {"after": history[1].created_at.isoformat(), "limit": 2},
        )

        assert [m["text"] for m in response.json()] == ["m2", "m3"]

    def test_invalid_limit(self, alice_client, conversation):
        response = alice_client.get(messages_url(conversation.id), {"limit": "lots"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "invalid_payload"

    def test_outsider_forbidden(self, carol_client, conversation):
        response = carol_client.get(messages_url(conversation.id))

        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestHideMessage:
    def test_hides_for_caller_only(self, alice_client, bob_client, conversation, bob):
        message = MessageFactory(conversation=conversation, sender=bob)

        response = alice_client.delete(f"{messages_url(conversation.id)}{message.id}/")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"ok": True}
        assert alice_client.get(messages_url(conversation.id)).json() == []
        assert len(bob_client.get(messages_url(conversation.id)).json()) == 1

    def test_unknown_message(self, alice_client, conversation):
        response = alice_client.delete(f"{messages_url(conversation.id)}999999/")

        assert response.status_code == status.HTTP_404_NOT_FOUND


# =============================================================================
# Upload, report, block
# =============================================================================


class TestUpload:
    """Tests for POST /api/v1/chat/upload/."""

    def test_uploads_file(self, alice_client):
        upload = SimpleUploadedFile("notes.txt", b"hello", content_type="text/plain")

        response = alice_client.post(f"{CHAT_URL}upload/", {"file": upload}, format="multipart")

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["mime"] == "text/plain"
        assert body["size"] == 5
        assert body["name"] == "notes.txt"
        assert "/chat/" in body["url"]

    def test_missing_file(self, alice_client):
        response = alice_client.post(f"{CHAT_URL}upload/", {}, format="multipart")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "invalid_payload"

    def test_too_large(self, alice_client, settings):
        settings.CHAT = {**settings.CHAT, "MAX_UPLOAD_BYTES": 3}
        upload = SimpleUploadedFile("big.bin", b"12345")

        response = alice_client.post(f"{CHAT_URL}upload/", {"file": upload}, format="multipart")

        assert response.status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
        assert response.json() == {"error": "upload_too_large"}

    def test_requires_authentication(self, api_client):
        response = api_client.post(f"{CHAT_URL}upload/", {}, format="multipart")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestReport:
    """Tests for POST /api/v1/chat/report/."""

    def test_files_report(self, carol_client, carol, conversation):
        response = carol_client.post(
            f"{CHAT_URL}report/",
            {"conversationId": conversation.id, "reason": "scam"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["reporterId"] == carol.id
        assert body["status"] == "open"
        assert body["messageId"] is None

    def test_requires_reference(self, alice_client):
        response = alice_client.post(f"{CHAT_URL}report/", {"reason": "?"}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "invalid_payload"
        assert Report.objects.count() == 0

    def test_unknown_message(self, alice_client):
        response = alice_client.post(
            f"{CHAT_URL}report/", {"messageId": 999999}, format="json"
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestBlock:
    """Tests for POST /api/v1/chat/block/ and /unblock/."""

    def test_block_then_unblock(self, alice_client, alice, bob, conversation):
        payload = {"conversationId": conversation.id, "blockedUserId": bob.id}

        blocked = alice_client.post(f"{CHAT_URL}block/", payload, format="json")
        again = alice_client.post(f"{CHAT_URL}block/", payload, format="json")

        assert blocked.json() == {"ok": True}
        assert again.status_code == status.HTTP_200_OK
        assert BlockedPair.objects.filter(blocker=alice, blocked=bob).count() == 1

        unblocked = alice_client.post(f"{CHAT_URL}unblock/", payload, format="json")

        assert unblocked.json() == {"ok": True}
        assert not BlockedPair.objects.exists()

    def test_outsider_forbidden(self, carol_client, bob, conversation):
        response = carol_client.post(
            f"{CHAT_URL}block/",
            {"conversationId": conversation.id, "blockedUserId": bob.id},
            format="json",
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_missing_conversation(self, alice_client, bob):
        response = alice_client.post(
            f"{CHAT_URL}block/", {"conversationId": 999999, "blockedUserId": bob.id}, format="json"
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_missing_fields(self, alice_client):
        response = alice_client.post(f"{CHAT_URL}block/", {}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "invalid_payload"


# =============================================================================
# Moderation
# =============================================================================


class TestAdminReports:
    """Tests for /api/v1/chat/admin/reports/."""

    def test_lists_reports_for_admin(self, moderator_client):
        older = ReportFactory()
        newer = ReportFactory(status=ReportStatus.REVIEWING)

        response = moderator_client.get(f"{CHAT_URL}admin/reports/")

        assert response.status_code == status.HTTP_200_OK
        assert [r["id"] for r in response.json()] == [newer.id, older.id]

    def test_status_filter(self, moderator_client):
        ReportFactory()
        reviewing = ReportFactory(status=ReportStatus.REVIEWING)

        response = moderator_client.get(f"{CHAT_URL}admin/reports/", {"status": "reviewing"})

        assert [r["id"] for r in response.json()] == [reviewing.id]

    def test_non_admin_forbidden(self, alice_client):
        response = alice_client.get(f"{CHAT_URL}admin/reports/")

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json() == {"error": "forbidden"}

    def test_unauthenticated(self, api_client):
        response = api_client.get(f"{CHAT_URL}admin/reports/")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_sets_status(self, moderator_client):
        report = ReportFactory()

        response = moderator_client.post(
            f"{CHAT_URL}admin/reports/{report.id}/", {"status": "closed"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "closed"

    def test_bad_status(self, moderator_client):
        report = ReportFactory()

        response = moderator_client.post(
            f"{CHAT_URL}admin/reports/{report.id}/", {"status": "deleted"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "invalid_status"}

    def test_cannot_reopen(self, moderator_client):
        report = ReportFactory(status=ReportStatus.CLOSED)

        response = moderator_client.post(
            f"{CHAT_URL}admin/reports/{report.id}/", {"status": "open"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "invalid_status"}

    def test_unknown_report(self, moderator_client):
        response = moderator_client.post(
            f"{CHAT_URL}admin/reports/999999/", {"status": "closed"}, format="json"
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_non_admin_cannot_set_status(self, alice_client):
        report = ReportFactory()

        response = alice_client.post(
            f"{CHAT_URL}admin/reports/{report.id}/", {"status": "closed"}, format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        report.refresh_from_db()
        assert report.status == ReportStatus.OPEN


class TestHealth:
    def test_health_check(self, api_client, db):
        response = api_client.get("/health/")

        assert response.status_code == status.HTTP_200_OK

    def test_plain_http_is_served_without_https_redirect(self, alice_client, conversation):
        response = alice_client.get(CONVERSATIONS_URL)

        assert response.status_code == status.HTTP_200_OK
        assert "Location" not in response
