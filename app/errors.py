"""Service error taxonomy.

Every failure that crosses a component boundary is one of these classes, so
callers branch on type instead of matching message strings. The API layer
renders them as ``{"error": code, "message": message}``.
"""

from typing import Any, Dict, Optional


class ServiceError(Exception):
    code = "internal_error"
    status_code = 500

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message}


class ValidationFailed(ServiceError):
    code = "validation_failed"
    status_code = 400


class AuthenticationFailed(ServiceError):
    code = "unauthorized"
    status_code = 401


class NotFound(ServiceError):
    code = "not_found"
    status_code = 404


class ResourceFetchError(ServiceError):
    """The remote resource behind a download URL could not be retrieved."""

    code = "fetch_failed"
    status_code = 502

    def __init__(self, message: str, status: Optional[int] = None, **context: Any):
        super().__init__(message, **context)
        self.status = status


class UpstreamAuthError(ServiceError):
    code = "upstream_auth_error"
    status_code = 502


class UpstreamDatabaseError(ServiceError):
    code = "upstream_database_error"
    status_code = 500


class UpstreamStorageError(ServiceError):
    code = "upstream_storage_error"
    status_code = 500


class UpstreamInferenceError(ServiceError):
    code = "upstream_inference_error"
    status_code = 500


class GenerationFailed(ServiceError):
    """An image generation job ended in the failed state."""

    code = "generation_failed"
    status_code = 500

    def __init__(self, message: str, generation_id: Optional[str] = None, **context: Any):
        super().__init__(message, **context)
        self.generation_id = generation_id
