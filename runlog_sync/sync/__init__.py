"""Sync module - backup codec, merge, Google Drive client and auto-sync."""

from .merge import MergeResult, merge
from .envelope import BackupPayload, decode, encode
from .backup import BackupService, ImportMode, ImportResult
from .drive_client import DownloadResult, DriveSyncClient
from .http_client import DriveHttpClient
from .retry import RetryConfig, retry_with_backoff
from .scheduler import AutoSyncScheduler, SyncOutcome
from .protocols import DriveClientProtocol

__all__ = [
    "merge",
    "MergeResult",
    "BackupPayload",
    "decode",
    "encode",
    "BackupService",
    "ImportMode",
    "ImportResult",
    "DriveSyncClient",
    "DownloadResult",
    "DriveHttpClient",
    "RetryConfig",
    "retry_with_backoff",
    "AutoSyncScheduler",
    "SyncOutcome",
    "DriveClientProtocol",
]
