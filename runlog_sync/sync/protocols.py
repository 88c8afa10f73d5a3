"""Protocol types for the sync collaborators.

Defines the interfaces the scheduler and the app coordinator require,
enabling easier testing and looser coupling.
"""

from typing import Optional, Protocol, runtime_checkable

from .drive_client import DownloadResult


@runtime_checkable
class DriveClientProtocol(Protocol):
    """Interface for pushing/pulling the Drive backup file."""

    @property
    def upload_in_progress(self) -> bool: ...

    def find_file(self) -> Optional[str]: ...

    def upsert(self, data: dict) -> str: ...

    def upload(self, wait: bool = True) -> bool: ...

    def download(self) -> DownloadResult: ...
