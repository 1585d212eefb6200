"""
Exception hierarchy shared across the backend.
"""


class SwstarterError(Exception):
    """Base class for application errors."""


class ConfigurationError(SwstarterError):
    """Raised when settings cannot produce a working component."""


class StoreUnavailableError(SwstarterError):
    """Raised when the Redis store cannot be reached during initialization."""


class JobHandlerNotFoundError(SwstarterError):
    """Raised when a queued job has no registered handler."""

    def __init__(self, kind: str):
        super().__init__(f"No handler registered for job kind '{kind}'")
        self.kind = kind


class UpstreamError(SwstarterError):
    """Custom exception for SWAPI errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ResourceNotFoundError(UpstreamError):
    """Upstream reported that the requested resource does not exist."""

    def __init__(self, category: str, resource_id: str):
        super().__init__(f"{category} with ID {resource_id} not found", status_code=404)
        self.category = category
        self.resource_id = resource_id
