"""Custom exceptions for the Dear23 backend."""

from typing import Any, Dict, Optional


class Dear23Exception(Exception):
    """Base exception for the Dear23 application."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Initialize Dear23Exception.

        Args:
            message: Human-readable error message.
            status_code: HTTP status code.
            error_code: Machine-readable error code.
            details: Additional error details.
        """
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(Dear23Exception):
    """Raised when authentication fails."""

    def __init__(
        self,
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize AuthenticationError."""
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTHENTICATION_ERROR",
            details=details,
        )


class AuthorizationError(Dear23Exception):
    """Raised when user is not authorized to access a resource."""

    def __init__(
        self,
        message: str = "Insufficient permissions",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize AuthorizationError."""
        super().__init__(
            message=message,
            status_code=403,
            error_code="AUTHORIZATION_ERROR",
            details=details,
        )


class NotFoundError(Dear23Exception):
    """Raised when a resource is not found."""

    def __init__(
        self,
        message: str = "Resource not found",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize NotFoundError."""
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND",
            details=details,
        )


class ValidationError(Dear23Exception):
    """Raised when validation fails."""

    def __init__(
        self,
        message: str = "Validation failed",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize ValidationError."""
        super().__init__(
            message=message,
            status_code=422,
            error_code="VALIDATION_ERROR",
            details=details,
        )


class ConflictError(Dear23Exception):
    """Raised when a write would violate a uniqueness or pairing rule."""

    def __init__(
        self,
        message: str = "Conflict",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize ConflictError."""
        super().__init__(
            message=message,
            status_code=409,
            error_code="CONFLICT",
            details=details,
        )


class CoupleRequiredError(Dear23Exception):
    """Raised when an operation needs a connected couple and there is none."""

    def __init__(
        self,
        message: str = "Connect with your partner first",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize CoupleRequiredError."""
        super().__init__(
            message=message,
            status_code=409,
            error_code="COUPLE_REQUIRED",
            details=details,
        )


class PasscodeError(Dear23Exception):
    """Raised when a passcode check fails."""

    def __init__(
        self,
        message: str = "Incorrect passcode",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize PasscodeError."""
        super().__init__(
            message=message,
            status_code=403,
            error_code="PASSCODE_ERROR",
            details=details,
        )


class ExternalServiceError(Dear23Exception):
    """Raised when an upstream service (Notion, FCM, Storage) fails."""

    def __init__(
        self,
        message: str = "Upstream service failed",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize ExternalServiceError."""
        super().__init__(
            message=message,
            status_code=502,
            error_code="EXTERNAL_SERVICE_ERROR",
            details=details,
        )


class UploadError(Dear23Exception):
    """Raised when an uploaded file is rejected."""

    def __init__(
        self,
        message: str = "Upload rejected",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize UploadError."""
        super().__init__(
            message=message,
            status_code=400,
            error_code="UPLOAD_ERROR",
            details=details,
        )
