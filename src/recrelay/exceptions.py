"""
Custom exception classes with error codes
"""

from typing import Any


class RecrelayError(Exception):
    """Base exception for recrelay errors"""

    def __init__(self, message: str, code: str, details: str = ""):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output"""
        return {"code": self.code, "message": self.message, "details": self.details}


class ConfigurationError(RecrelayError):
    """Missing or invalid configuration"""

    def __init__(self, message: str, details: str = ""):
        super().__init__(message, "INVALID_CONFIG", details)


class ConflictError(RecrelayError):
    """Request conflicts with the current recording state"""

    def __init__(self, message: str, details: str = ""):
        super().__init__(message, "CONFLICT", details)


class VendorCallError(RecrelayError):
    """Recording vendor API returned a non-success response"""

    def __init__(
        self,
        message: str,
        operation: str,
        status_code: int | None = None,
        body: Any = None,
        details: str = "",
    ):
        super().__init__(message, "VENDOR_CALL_FAILED", details)
        self.operation = operation
        self.status_code = status_code
        self.body = body

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            {"operation": self.operation, "status_code": self.status_code, "body": self.body}
        )
        return data


class LocatorError(RecrelayError):
    """No downloadable media file could be resolved for a session"""

    def __init__(self, message: str, details: str = ""):
        super().__init__(message, "FILE_NOT_LOCATED", details)


class RelayError(RecrelayError):
    """Download or upload failed while relaying a recording"""

    def __init__(self, message: str, details: str = ""):
        super().__init__(message, "RELAY_FAILED", details)


class SignatureError(RecrelayError):
    """Webhook delivery signature missing or invalid"""

    def __init__(self, message: str, details: str = ""):
        super().__init__(message, "INVALID_SIGNATURE", details)
