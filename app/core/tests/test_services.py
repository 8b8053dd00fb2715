"""Tests for ServiceResult and BaseService helpers."""

import logging

import pytest
from django.db import transaction

from core.services import BaseService, ServiceResult


class ExampleService(BaseService):
    pass


class TestServiceResult:
    def test_success_is_truthy(self):
        result = ServiceResult.success({"id": 1})

        assert result
        assert result.data == {"id": 1}
        assert result.error is None

    def test_failure_is_falsy(self):
        result = ServiceResult.failure("nope", error_code="FORBIDDEN")

        assert not result
        assert result.data is None
        assert result.error_code == "FORBIDDEN"

    def test_from_exception_defaults_code_to_class_name(self):
        result = ServiceResult.from_exception(KeyError("missing"))

        assert result.error_code == "KEYERROR"


class TestBaseService:
    def test_logger_is_named_after_service(self):
        assert ExampleService.get_logger().name == f"{__name__}.ExampleService"

    def test_handle_exception_logs_and_converts(self, caplog):
        with caplog.at_level(logging.ERROR):
            result = ExampleService.handle_exception(
                OSError("disk full"), "attachment upload", "STORAGE_UNAVAILABLE"
            )

        assert result.error_code == "STORAGE_UNAVAILABLE"
        assert "attachment upload: disk full" in caplog.text

    @pytest.mark.django_db
    def test_atomic_defers_on_commit(self, django_capture_on_commit_callbacks):
        calls = []

        with django_capture_on_commit_callbacks(execute=True):
            with ExampleService.atomic():
                transaction.on_commit(lambda: calls.append("committed"))
                assert calls == []

        assert calls == ["committed"]
