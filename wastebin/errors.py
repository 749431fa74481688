"""
Error taxonomy for Wastebin.

Every error carries a stable machine-readable ``code`` and the HTTP
``status`` the route layer answers with. ``public_message`` is the only
text shown to clients.
"""
from typing import Optional


class WastebinError(Exception):
    """Base class for all Wastebin errors."""

    code = "INTERNAL_ERROR"
    status = 500
    public_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)


class ConfigError(WastebinError):
    """Invalid configuration. Fatal at startup."""

    code = "INVALID_CONFIG"
    public_message = "Invalid configuration"


# Input validation

class InvalidInput(WastebinError):
    code = "INVALID_INPUT"
    status = 400
    public_message = "Invalid input"


class EmptyContent(InvalidInput):
    code = "EMPTY_CONTENT"
    public_message = "Content cannot be empty"


class ContentTooLarge(InvalidInput):
    code = "CONTENT_TOO_LARGE"
    status = 413
    public_message = "Content exceeds maximum size"


class InvalidEncoding(InvalidInput):
    code = "INVALID_ENCODING"
    public_message = "Content contains invalid UTF-8 encoding"


class InvalidLanguage(InvalidInput):
    code = "INVALID_LANGUAGE"
    public_message = "Invalid or unsupported language"


class InvalidExpiry(InvalidInput):
    code = "INVALID_EXPIRY"
    public_message = "Invalid expiry time"


class ExpiryInPast(InvalidExpiry):
    code = "EXPIRY_IN_PAST"
    public_message = "Expiry time cannot be in the past"


class ExpiryTooFar(InvalidExpiry):
    code = "EXPIRY_TOO_FAR"
    public_message = "Expiry time cannot be more than one year in the future"


# Lookup

class InvalidID(WastebinError):
    code = "INVALID_ID"
    status = 400
    public_message = "Invalid UUID format"


class NotFound(WastebinError):
    code = "NOT_FOUND"
    status = 404
    public_message = "Paste not found"


class Gone(WastebinError):
    code = "GONE"
    status = 410
    public_message = "Paste has expired or been burned"


# Storage

class StorageFailure(WastebinError):
    code = "STORAGE_FAILURE"
    status = 500
    public_message = "Storage operation failed"


class CloseTimeout(StorageFailure):
    code = "CLOSE_TIMEOUT"
    public_message = "Database connection close timed out"


class ConnectionFailure(WastebinError):
    """Could not establish the database connection. Fatal at startup."""

    code = "CONNECTION_FAILURE"
    status = 503
    public_message = "Database unavailable"


class HealthCheckFailure(WastebinError):
    """Runtime health check failed. Reported, never fatal."""

    code = "DB_UNHEALTHY"
    status = 503
    public_message = "Database health check failed"

    NOT_INITIALIZED = "not_initialized"
    PING_FAILED = "ping_failed"
    QUERY_FAILED = "query_failed"
    TIMEOUT = "timeout"

    def __init__(self, reason: str, message: Optional[str] = None):
        super().__init__(message)
        self.reason = reason
