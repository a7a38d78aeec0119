"""
Application exception hierarchy.

Every error the API can return derives from CRMException and carries a
stable machine-readable code, a human-readable message and an HTTP status.
The FastAPI exception handlers in main.py render them uniformly.
"""

from typing import Any


class CRMException(Exception):
    """Base exception for all application errors"""

    status_code: int = 500
    default_code: str = "INTERNAL_SERVER_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": False,
            "message": self.message,
            "code": self.error_code,
            "details": self.details,
        }


class ValidationError(CRMException):
    """Malformed input, raised before any persistence attempt"""

    status_code = 400
    default_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        merged = dict(details or {})
        if field:
            merged["field"] = field
        super().__init__(message, details=merged)


class BadRequestError(CRMException):
    """Well-formed but semantically invalid request"""

    status_code = 400
    default_code = "BAD_REQUEST"


class UnauthorizedError(CRMException):
    """Missing, invalid or expired credential"""

    status_code = 401
    default_code = "UNAUTHORIZED"

    def __init__(self, message: str = "Authentication required", details: dict[str, Any] | None = None):
        super().__init__(message, details=details)


class ForbiddenError(CRMException):
    """Authenticated but not allowed, or the target is protected"""

    status_code = 403
    default_code = "FORBIDDEN"


class NotFoundError(CRMException):
    """
    Entity absent or outside the caller's organization.

    Both cases produce the same error so cross-tenant existence never leaks.
    """

    status_code = 404
    default_code = "NOT_FOUND"

    def __init__(self, resource_type: str, resource_id: str | None = None):
        message = f"{resource_type} not found"
        details = {"resource_type": resource_type}
        if resource_id is not None:
            details["resource_id"] = resource_id
        super().__init__(message, details=details)


class ConflictError(CRMException):
    """Uniqueness violation"""

    status_code = 409
    default_code = "CONFLICT"


class PayloadTooLargeError(CRMException):
    status_code = 413
    default_code = "PAYLOAD_TOO_LARGE"


class TooManyRequestsError(CRMException):
    status_code = 429
    default_code = "TOO_MANY_REQUESTS"

    def __init__(self, message: str = "Too many requests, please try again later", retry_after: int | None = None):
        self.retry_after = retry_after
        details = {"retry_after": retry_after} if retry_after is not None else None
        super().__init__(message, details=details)


class PermissionDeniedError(ForbiddenError):
    """User lacks the permission(s) a route requires"""

    def __init__(self, required: list[str], mode: str = "any"):
        super().__init__(
            "Insufficient permissions",
            details={"required": required, "mode": mode},
        )


# Storage Exceptions
class StorageException(CRMException):
    """Base exception for storage operations"""


class StorageNotFoundError(StorageException):
    """File not found in storage"""

    status_code = 404
    default_code = "FILE_NOT_FOUND"

    def __init__(self, storage_ref: str):
        super().__init__(f"File not found: {storage_ref}", details={"storage_ref": storage_ref})


class StorageUploadError(StorageException):
    default_code = "STORAGE_UPLOAD_FAILED"

    def __init__(self, storage_ref: str, reason: str):
        super().__init__(f"Upload failed for {storage_ref}: {reason}", details={"storage_ref": storage_ref})


class StorageDownloadError(StorageException):
    default_code = "STORAGE_DOWNLOAD_FAILED"

    def __init__(self, storage_ref: str, reason: str):
        super().__init__(f"Download failed for {storage_ref}: {reason}", details={"storage_ref": storage_ref})


class StorageDeleteError(StorageException):
    default_code = "STORAGE_DELETE_FAILED"

    def __init__(self, storage_ref: str, reason: str):
        super().__init__(f"Delete failed for {storage_ref}: {reason}", details={"storage_ref": storage_ref})


class StorageChecksumMismatchError(StorageException):
    """Checksum validation failed - file corrupted in transit"""

    default_code = "STORAGE_CHECKSUM_MISMATCH"

    def __init__(self, storage_ref: str, expected: str, actual: str):
        super().__init__(
            f"Checksum mismatch for {storage_ref}",
            details={"storage_ref": storage_ref, "expected": expected, "actual": actual},
        )


class StorageAlreadyExistsError(StorageException):
    """Storage reference is already taken"""

    default_code = "STORAGE_ALREADY_EXISTS"

    def __init__(self, storage_ref: str):
        super().__init__(f"File already exists: {storage_ref}", details={"storage_ref": storage_ref})


class StoragePermissionError(StorageException):
    """Path escapes the storage root"""

    default_code = "STORAGE_INVALID_PATH"

    def __init__(self, storage_ref: str, operation: str):
        super().__init__(
            f"Invalid storage path for {operation}: {storage_ref}",
            details={"storage_ref": storage_ref, "operation": operation},
        )
