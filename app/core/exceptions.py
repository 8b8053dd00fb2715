"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error responses across the REST API
- Machine-readable error slugs for client handling
- One mapping from service error codes to HTTP status codes

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Malformed or missing input (400 invalid_payload)
    ├── PermissionDeniedError - Caller is not allowed (403 forbidden)
    ├── BlockedError - Sender is blocked in the conversation (403 blocked)
    ├── NotFoundError - Resource not found (404 not_found)
    ├── InvalidStatusError - Unknown or backwards report status (400 invalid_status)
    ├── PayloadTooLargeError - Upload over the size limit (413 upload_too_large)
    └── ExternalServiceError - Attachment storage failures (502 storage_unavailable)

Every error reaching a client has the body ``{"error": "<slug>"}``, optionally
with ``details`` for field-level validation problems.

Usage:
    from core.exceptions import NotFoundError, exception_for_result

    # Raise directly
    raise NotFoundError("Conversation 12 does not exist")

    # Convert a failed ServiceResult at the view boundary
    result = MessageService.send_message(...)
    if not result.success:
        raise exception_for_result(result)

Note:
    Services return ServiceResult for expected failures; views turn them into
    these exceptions, and api_exception_handler renders them.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response

if TYPE_CHECKING:
    from typing import Any

    from core.services import ServiceResult

logger = logging.getLogger(__name__)


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description (logged, never sent)
        error_code: Service error code (e.g. "NOT_FOUND")
        details: Additional error context (field errors, metadata, etc.)

    Class attributes:
        slug: The value sent to clients in the ``error`` key
        status_code: HTTP status used by api_exception_handler
    """

    default_error_code: str = "APPLICATION_ERROR"
    slug: str = "internal_error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str = "",
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.slug
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to the client-facing error body.

        Example:
            {"error": "invalid_payload", "details": {"text": ["Not a string"]}}
        """
        result: dict[str, Any] = {"error": self.slug}
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input is missing or malformed.

    Example:
        raise ValidationError(
            "participantIds must be a non-empty list",
            details={"participantIds": ["This field is required."]},
        )
    """

    default_error_code: str = "INVALID_PAYLOAD"
    slug: str = "invalid_payload"
    status_code: int = status.HTTP_400_BAD_REQUEST


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the caller may not act on the resource.

    Use for non-participants touching a conversation and non-admins touching
    the moderation queue. Missing or invalid credentials are a 401 and handled
    by DRF's authentication layer instead.
    """

    default_error_code: str = "FORBIDDEN"
    slug: str = "forbidden"
    status_code: int = status.HTTP_403_FORBIDDEN


class BlockedError(BaseApplicationError):
    """Raised when a participant blocked in a conversation tries to send."""

    default_error_code: str = "BLOCKED"
    slug: str = "blocked"
    status_code: int = status.HTTP_403_FORBIDDEN


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Example:
        raise NotFoundError(
            f"Conversation {conversation_id} not found",
            details={"conversation_id": conversation_id},
        )
    """

    default_error_code: str = "NOT_FOUND"
    slug: str = "not_found"
    status_code: int = status.HTTP_404_NOT_FOUND


class InvalidStatusError(BaseApplicationError):
    """Raised for an unknown report status or a move back to an earlier one."""

    default_error_code: str = "INVALID_STATUS"
    slug: str = "invalid_status"
    status_code: int = status.HTTP_400_BAD_REQUEST


class PayloadTooLargeError(BaseApplicationError):
    """Raised when an uploaded file exceeds CHAT["MAX_UPLOAD_BYTES"]."""

    default_error_code: str = "UPLOAD_TOO_LARGE"
    slug: str = "upload_too_large"
    status_code: int = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE


class ExternalServiceError(BaseApplicationError):
    """
    Raised when the attachment store (S3 or local disk) fails.

    Log the original error for debugging but don't expose internal details to
    clients.
    """

    default_error_code: str = "STORAGE_UNAVAILABLE"
    slug: str = "storage_unavailable"
    status_code: int = status.HTTP_502_BAD_GATEWAY


# Service error code -> exception class raised at the view boundary
ERROR_CODE_EXCEPTIONS: dict[str, type[BaseApplicationError]] = {
    cls.default_error_code: cls
    for cls in (
        ValidationError,
        PermissionDeniedError,
        BlockedError,
        NotFoundError,
        InvalidStatusError,
        PayloadTooLargeError,
        ExternalServiceError,
    )
}


def exception_for_result(result: ServiceResult) -> BaseApplicationError:
    """
    Build the exception matching a failed ServiceResult.

    Unknown error codes map to BaseApplicationError (500), which surfaces
    programming mistakes rather than hiding them behind a 400.
    """
    exc_class = ERROR_CODE_EXCEPTIONS.get(result.error_code or "", BaseApplicationError)
    return exc_class(
        result.error or "",
        error_code=result.error_code,
        details=result.errors,
    )


# DRF exception class -> (slug, status) for the error body
_DRF_SLUGS: list[tuple[type[Exception], str, int]] = [
    (drf_exceptions.NotAuthenticated, "unauthorized", status.HTTP_401_UNAUTHORIZED),
    (drf_exceptions.AuthenticationFailed, "unauthorized", status.HTTP_401_UNAUTHORIZED),
    (drf_exceptions.PermissionDenied, "forbidden", status.HTTP_403_FORBIDDEN),
    (drf_exceptions.NotFound, "not_found", status.HTTP_404_NOT_FOUND),
    (drf_exceptions.ValidationError, "invalid_payload", status.HTTP_400_BAD_REQUEST),
    (drf_exceptions.ParseError, "invalid_payload", status.HTTP_400_BAD_REQUEST),
    (
        drf_exceptions.UnsupportedMediaType,
        "invalid_payload",
        status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    ),
    (
        drf_exceptions.MethodNotAllowed,
        "method_not_allowed",
        status.HTTP_405_METHOD_NOT_ALLOWED,
    ),
    (drf_exceptions.Throttled, "rate_limited", status.HTTP_429_TOO_MANY_REQUESTS),
]


def api_exception_handler(exc: Exception, context: dict[str, Any]) -> Response | None:
    """
    DRF EXCEPTION_HANDLER producing ``{"error": "<slug>"}`` bodies.

    Handles application errors, DRF's own API exceptions, and Django's Http404
    and PermissionDenied. Anything else returns None so DRF re-raises it and
    Django's 500 handling (and logging) takes over.
    """
    view = context.get("view")
    view_name = view.__class__.__name__ if view is not None else "unknown"

    if isinstance(exc, BaseApplicationError):
        log_level = logging.ERROR if exc.status_code >= 500 else logging.INFO
        logger.log(log_level, f"{view_name}: {exc}")
        return Response(exc.to_dict(), status=exc.status_code)

    if isinstance(exc, Http404):
        exc = drf_exceptions.NotFound()
    elif isinstance(exc, DjangoPermissionDenied):
        exc = drf_exceptions.PermissionDenied()

    if not isinstance(exc, drf_exceptions.APIException):
        return None

    slug, status_code = "invalid_payload", exc.status_code
    if status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE:
        slug = PayloadTooLargeError.slug
    for exc_class, mapped_slug, mapped_status in _DRF_SLUGS:
        if isinstance(exc, exc_class):
            slug, status_code = mapped_slug, mapped_status
            break

    body: dict[str, Any] = {"error": slug}
    if isinstance(exc, drf_exceptions.ValidationError):
        body["details"] = exc.detail

    headers = {}
    if getattr(exc, "auth_header", None):
        headers["WWW-Authenticate"] = exc.auth_header
    if getattr(exc, "wait", None):
        headers["Retry-After"] = str(int(exc.wait))

    logger.debug(f"{view_name}: {exc.__class__.__name__} -> {slug}")
    return Response(body, status=status_code, headers=headers or None)
