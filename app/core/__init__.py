"""
Core Application - Infrastructure & Base Classes

Generic, reusable building blocks shared by the domain apps.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception carrying an error slug and status
    - ValidationError, PermissionDeniedError, BlockedError, NotFoundError,
      InvalidStatusError, PayloadTooLargeError, ExternalServiceError
    - exception_for_result: ServiceResult failure -> exception
    - api_exception_handler: DRF EXCEPTION_HANDLER

Views (import from core.views):
    - health_check: Liveness/readiness endpoint
"""
