from __future__ import annotations

from typing import Optional


class ElevationServiceError(Exception):
    """Base class for failures raised by the elevation cache pipeline."""


class NotInitializedError(ElevationServiceError):
    def __init__(self, message: str = "ElevationService not initialized. Call initialize() first.") -> None:
        super().__init__(message)


class InitializationError(ElevationServiceError):
    """Credential loading, authentication, or provider handshake failed."""


class ProviderQueryError(ElevationServiceError):
    """A render or statistics call to the provider failed."""


class DownloadError(ElevationServiceError):
    def __init__(self, message: str, *, url: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class PersistenceError(ElevationServiceError):
    """Writing the metadata index failed. Logged by the store, never surfaced."""
