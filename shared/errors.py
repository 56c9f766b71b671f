"""
Shared error handling for the Unified ERP backend.

Every service renders failures through ``ErrorResponse`` so clients see one
shape regardless of which service produced the error.
"""

from datetime import datetime, timezone
from typing import Dict, Any, Optional

from pydantic import BaseModel, Field

from shared.logging import get_request_id


class ErrorResponse(BaseModel):
    """Standard error response format."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: int
    error: str
    message: str
    path: Optional[str] = None
    trace_id: Optional[str] = None
    validation_errors: Optional[Dict[str, str]] = None

    def to_content(self) -> Dict[str, Any]:
        """JSON-safe payload with unset optional fields dropped."""
        return self.model_dump(mode="json", exclude_none=True)


class ErpException(Exception):
    """Base exception for ERP services."""

    status_code: int = 500

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self, path: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            status=self.status_code,
            error=self.code,
            message=self.message,
            path=path,
            trace_id=get_request_id(),
        )


class BusinessError(ErpException):
    """Business rule violation; 400 unless the caller picks another status."""

    status_code = 400

    def __init__(self, message: str, status_code: int = 400, details: Optional[Dict[str, Any]] = None):
        super().__init__("BUSINESS_ERROR", message, details, status_code)


class ResourceNotFoundError(ErpException):
    """Requested resource does not exist."""

    status_code = 404

    def __init__(
        self,
        resource_name: str,
        field_name: Optional[str] = None,
        field_value: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        if field_name is None:
            message = resource_name
        else:
            message = f"{resource_name} not found with {field_name}: '{field_value}'"
        super().__init__("RESOURCE_NOT_FOUND", message, details)


class ValidationError(ErpException):
    """Validation-related errors."""

    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        validation_errors: Optional[Dict[str, str]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.validation_errors = validation_errors or {}
        super().__init__("VALIDATION_ERROR", message, details)

    def to_response(self, path: Optional[str] = None) -> ErrorResponse:
        response = super().to_response(path)
        if self.validation_errors:
            response.validation_errors = dict(self.validation_errors)
        return response


class RouteNotFoundError(ErpException):
    """No downstream service is mapped to the requested path."""

    status_code = 404

    def __init__(self, path: str):
        super().__init__("ROUTE_NOT_FOUND", f"No route configured for path: {path}", {"path": path})


class ExternalServiceError(ErpException):
    """External service errors."""

    status_code = 502

    def __init__(self, service: str, message: str = "External service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("EXTERNAL_SERVICE_ERROR", f"{service}: {message}", details)

