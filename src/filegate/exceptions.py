"""Custom exception hierarchy for the filegate access layer."""


class FileGateError(Exception):
    """Base exception for all filegate errors."""

    code = "error"


class NotFoundError(FileGateError):
    """Raised when a resource, grant, or share link does not exist.

    Also raised when the caller cannot see the resource at all, so that
    existence is not leaked to principals without access.
    """

    code = "not_found"


class ForbiddenError(FileGateError):
    """Raised when the caller can see a resource but lacks the required level."""

    code = "forbidden"


class ValidationError(FileGateError):
    """Raised on malformed input (bad name, unknown level, circular move)."""

    code = "validation"


class ConflictError(FileGateError):
    """Raised when a write collides with an existing row (sibling name, grant)."""

    code = "conflict"


class ExpiredError(FileGateError):
    """Raised when a share link is past its expiry."""

    code = "expired"


class StorageFailureError(FileGateError):
    """Raised when the object store fails an upload or download."""

    code = "storage_failure"


class AuthenticationRequiredError(FileGateError):
    """Raised when an operation needs a principal and none was supplied."""

    code = "authentication_required"


class AuditWriteError(FileGateError):
    """Raised inside audit sinks. Never propagates past the recorder."""

    code = "audit_failure"
