"""Error types raised by the service registry.

Absence of a record is not an error here: lookups and mutations return
``None`` for an unknown id so callers can branch on it directly.
"""


class PersistenceError(Exception):
    """Raised when the key-value substrate rejects or fails a write."""

    def __init__(self, message: str, key: str | None = None, original_error: Exception | None = None):
        super().__init__(message)
        self.key = key
        self.original_error = original_error


class StorageQuotaExceededError(PersistenceError):
    """Raised when a value is larger than the store's quota."""

    def __init__(self, key: str, size: int, quota: int):
        super().__init__(
            f"Value for '{key}' is {size} bytes, exceeding the {quota} byte quota",
            key=key,
        )
        self.size = size
        self.quota = quota


class ServiceValidationError(Exception):
    """Raised when a service's connection details are incomplete or malformed."""

    def __init__(self, message: str, service_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.service_id = service_id
