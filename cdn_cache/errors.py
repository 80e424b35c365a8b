"""Error taxonomy for CDN Cache.

Every error the package raises derives from CDNCacheError so callers
can catch the whole family in one place.
"""


class CDNCacheError(Exception):
    """Base class for all CDN Cache errors."""
    pass


class ConfigError(CDNCacheError):
    """Raised when configuration is invalid or missing."""
    pass


class NoInputError(CDNCacheError):
    """Raised when no images were selected or provided."""
    pass


class ReadError(CDNCacheError):
    """Raised when a local image file cannot be read."""

    def __init__(self, path, cause: Exception | None = None):
        self.path = path
        message = f"Cannot read {path}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class UploadError(CDNCacheError):
    """Raised when the remote upload call fails."""
    pass


class DeleteError(CDNCacheError):
    """Raised when a remote delete is not confirmed by the service."""
    pass


class CacheCorruptionError(CDNCacheError):
    """Raised when a stored record cannot be deserialized."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Corrupt record for {key}: {reason}")


class RecordNotFoundError(CDNCacheError):
    """Raised when a hash prefix matches no record, or more than one."""
    pass


class GatewayError(CDNCacheError):
    """Raised when a gateway cannot be built or reached."""
    pass
