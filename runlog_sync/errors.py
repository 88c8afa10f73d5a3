"""Error taxonomy shared by the sync, auth and migration modules."""

from typing import Optional

__all__ = [
    "RunLogSyncError",
    "FormatError",
    "ConfigError",
    "AuthError",
    "RemoteServiceError",
    "NotFoundError",
    "PreconditionError",
    "DocumentStoreError",
]


class RunLogSyncError(Exception):
    """Base class for all RunLog Sync errors."""

    pass


class FormatError(RunLogSyncError):
    """Malformed or unrecognized backup payload."""

    pass


class ConfigError(RunLogSyncError):
    """Required configuration (e.g. the Google client ID) is missing."""

    pass


class AuthError(RunLogSyncError):
    """Missing, expired or rejected bearer token."""

    pass


class RemoteServiceError(RunLogSyncError):
    """Non-success response from the remote file service."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(RemoteServiceError):
    """The expected remote file does not exist."""

    def __init__(self, message: str = "File not found"):
        super().__init__(message, status_code=404)


class PreconditionError(RunLogSyncError):
    """Migration declined because hosted data already exists."""

    pass


class DocumentStoreError(RunLogSyncError):
    """Hosted document store failure."""

    pass
