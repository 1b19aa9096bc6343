"""
Custom exceptions for account sync.

Storage substrates and remote store backends raise these exceptions.
The sync layer catches them at its public boundary and logs them,
so none of them reach application code through SyncEngine.
"""


class AccountSyncError(Exception):
    """Base exception for all account sync errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StorageIOError(AccountSyncError):
    """Raised when a local storage I/O operation fails."""

    def __init__(self, operation: str, path: str | None = None, cause: Exception | None = None):
        details = {"operation": operation}
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
        message = f"Storage I/O error during {operation}"
        if path:
            message += f": {path}"
        super().__init__(message, details)
        self.operation = operation
        self.path = path
        self.cause = cause


class SerializationError(AccountSyncError):
    """Raised when a preference value cannot be encoded or decoded."""

    def __init__(self, key: str, cause: Exception | None = None):
        details = {"key": key}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Could not serialize value for key {key}", details)
        self.key = key
        self.cause = cause


class RemoteStoreError(AccountSyncError):
    """Raised when a remote account store operation fails."""

    def __init__(self, operation: str, cause: Exception | None = None):
        details = {"operation": operation}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Remote store error during {operation}", details)
        self.operation = operation
        self.cause = cause


class StorageConnectionError(AccountSyncError):
    """Raised when connection to the remote store fails.

    Note: Named StorageConnectionError to avoid shadowing the builtin ConnectionError.
    """

    def __init__(self, endpoint: str, cause: Exception | None = None):
        details = {"endpoint": endpoint}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Connection failed to {endpoint}", details)
        self.endpoint = endpoint
        self.cause = cause


class AuthenticationError(AccountSyncError):
    """Raised when authentication to the remote store fails."""

    def __init__(self, endpoint: str, reason: str | None = None):
        details = {"endpoint": endpoint}
        if reason:
            details["reason"] = reason
        super().__init__(f"Authentication failed for {endpoint}", details)
        self.endpoint = endpoint
        self.reason = reason


class ConfigurationError(AccountSyncError):
    """Raised when a configuration value is invalid."""

    def __init__(self, field: str, reason: str, value: str | None = None):
        details = {"field": field, "reason": reason}
        if value is not None:
            details["value"] = value
        super().__init__(f"Invalid configuration for {field}: {reason}", details)
        self.field = field
        self.reason = reason
        self.value = value
