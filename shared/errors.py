"""
Shared error handling for the Backrest repository services.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class AccessLayerException(Exception):
    """Base exception for repository services."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class CacheError(AccessLayerException):
    """Base class for response cache failures."""

    status_code = 503

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code, message, details)


class CacheConfigurationError(CacheError):
    """Malformed cache policy setting."""

    def __init__(self, message: str = "Invalid cache policy", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_CONFIGURATION_ERROR", message, details)


class CacheBackendError(CacheError):
    """Cache store unreachable or a store command failed."""

    def __init__(self, backend: str, message: str = "Cache backend error", details: Optional[Dict[str, Any]] = None):
        self.backend = backend
        super().__init__("CACHE_BACKEND_ERROR", f"{backend}: {message}", details)
