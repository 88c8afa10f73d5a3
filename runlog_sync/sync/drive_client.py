"""Google Drive sync client - mirrors local data to a single backup file."""

import json
import logging
import secrets
import threading
from dataclasses import dataclass
from typing import Optional

from ..auth.session import OAuthSessionManager
from ..config import DriveSettings
from ..errors import AuthError, FormatError, NotFoundError
from ..storage.local_store import LocalStore, TRAINING_PLANS_KEY, WORKOUTS_KEY
from .envelope import build_envelope, decode
from .http_client import DriveHttpClient
from .merge import merge
from .retry import RetryConfig

__all__ = ["DriveSyncClient", "DownloadResult"]

logger = logging.getLogger(__name__)

JSON_MIME_TYPE = "application/json"


@dataclass
class DownloadResult:
    """Records added locally by a download."""

    workouts_added: int = 0
    plans_added: int = 0


class DriveSyncClient:
    """Find-or-create, upload and download of the Drive backup file.

    Uploads are last-writer-wins: the remote file is overwritten with the
    local collections. Merging only happens on download. At most one
    upload is in flight at a time.
    """

    def __init__(
        self,
        session_manager: OAuthSessionManager,
        store: LocalStore,
        http: Optional[DriveHttpClient] = None,
        settings: Optional[DriveSettings] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.session_manager = session_manager
        self.store = store
        self.settings = settings or session_manager.settings
        self.http = http or DriveHttpClient(
            token_provider=lambda: session_manager.access_token,
            on_unauthorized=session_manager.clear_auth,
            timeout=self.settings.timeout,
            retry_config=retry_config,
        )
        self._upload_lock = threading.Lock()

    @property
    def file_id(self) -> Optional[str]:
        return self.session_manager.session.file_id

    def _url(self, path: str) -> str:
        return f"{self.settings.api_base_url.rstrip('/')}/{path.lstrip('/')}"

    def _require_auth(self) -> None:
        if not self.session_manager.is_authenticated:
            raise AuthError("Not authenticated with Google Drive")

    @property
    def upload_in_progress(self) -> bool:
        return self._upload_lock.locked()

    def find_file(self) -> Optional[str]:
        """Look up the backup file by exact name, ignoring trashed files.

        Returns:
            The first match's ID (cached and persisted), or None
        """
        self._require_auth()
        name = self.settings.file_name.replace("\\", "\\\\").replace("'", "\\'")
        response = self.http.request(
            "GET",
            self._url("drive/v3/files"),
            params={
                "q": f"name='{name}' and trashed=false",
                "spaces": "drive",
                "fields": "files(id, name, modifiedTime)",
            },
        )
        files = response.json().get("files", [])
        if not files:
            logger.info("No backup file found on Google Drive")
            return None

        file_id = files[0]["id"]
        self.session_manager.remember_file_id(file_id)
        logger.debug(f"Found backup file {file_id}")
        return file_id

    def create_file(self, data: dict) -> str:
        """Create the backup file with a multipart upload."""
        self._require_auth()
        boundary = f"runlog-{secrets.token_hex(16)}"
        metadata = {"name": self.settings.file_name, "mimeType": JSON_MIME_TYPE}
        body = (
            f"--{boundary}\r\n"
            f"Content-Type: {JSON_MIME_TYPE}; charset=UTF-8\r\n\r\n"
            f"{json.dumps(metadata)}\r\n"
            f"--{boundary}\r\n"
            f"Content-Type: {JSON_MIME_TYPE}\r\n\r\n"
            f"{json.dumps(data, indent=2, ensure_ascii=False)}\r\n"
            f"--{boundary}--\r\n"
        ).encode("utf-8")

        response = self.http.request(
            "POST",
            self._url("upload/drive/v3/files"),
            params={"uploadType": "multipart"},
            data=body,
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
        )
        file_id = response.json()["id"]
        self.session_manager.remember_file_id(file_id)
        logger.info(f"Created backup file on Google Drive ({file_id})")
        return file_id

    def update_file(self, data: dict) -> str:
        """Overwrite the cached file's content.

        A 404 means the file was deleted remotely; the cached ID is dropped
        and a new file is created instead.
        """
        self._require_auth()
        file_id = self.file_id
        if not file_id:
            return self.create_file(data)

        try:
            self.http.request(
                "PATCH",
                self._url(f"upload/drive/v3/files/{file_id}"),
                params={"uploadType": "media"},
                data=json.dumps(data, indent=2, ensure_ascii=False).encode("utf-8"),
                headers={"Content-Type": JSON_MIME_TYPE},
            )
        except NotFoundError:
            logger.warning(f"Backup file {file_id} no longer exists, creating a new one")
            self.session_manager.forget_file_id()
            return self.create_file(data)

        logger.debug(f"Updated backup file {file_id}")
        return file_id

    def upsert(self, data: dict) -> str:
        """Find-or-create the backup file, then write ``data`` to it."""
        if not self.file_id:
            self.find_file()
        if not self.file_id:
            return self.create_file(data)
        return self.update_file(data)

    def upload(self, wait: bool = True) -> bool:
        """Push both local collections to Drive.

        Args:
            wait: Queue behind an in-flight upload; when False, return
                immediately if one is running

        Returns:
            True if uploaded, False if skipped because another upload
            was in flight

        Raises:
            AuthError, RemoteServiceError
        """
        self._require_auth()
        if not self._upload_lock.acquire(blocking=wait):
            logger.debug("Upload already in progress, skipping")
            return False

        try:
            data = build_envelope(
                self.store.get_collection(WORKOUTS_KEY),
                self.store.get_collection(TRAINING_PLANS_KEY),
            )
            self.upsert(data)
            logger.info(
                f"Uploaded {len(data['workouts'])} workouts and "
                f"{len(data['trainingPlans'])} plans to Google Drive"
            )
            return True
        finally:
            self._upload_lock.release()

    def download(self) -> DownloadResult:
        """Fetch the backup file and merge it into the local collections.

        Raises:
            NotFoundError: If there is no backup file on Drive
            FormatError: If the remote content is not a valid backup
            AuthError, RemoteServiceError
        """
        self._require_auth()
        file_id = self.file_id or self.find_file()
        if not file_id:
            raise NotFoundError("Backup file not found on Google Drive")

        try:
            response = self.http.request(
                "GET",
                self._url(f"drive/v3/files/{file_id}"),
                params={"alt": "media"},
            )
        except NotFoundError as e:
            self.session_manager.forget_file_id()
            raise NotFoundError("Backup file not found on Google Drive") from e

        try:
            raw = response.content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FormatError(f"Backup file on Google Drive is not UTF-8 text: {e}") from e
        payload = decode(raw)

        workouts = merge(self.store.get_collection(WORKOUTS_KEY), payload.workouts)
        plans = merge(self.store.get_collection(TRAINING_PLANS_KEY), payload.training_plans)
        self.store.set_collection(WORKOUTS_KEY, workouts.merged)
        self.store.set_collection(TRAINING_PLANS_KEY, plans.merged)

        result = DownloadResult(
            workouts_added=workouts.added_count,
            plans_added=plans.added_count,
        )
        logger.info(
            f"Downloaded backup: +{result.workouts_added} workouts, "
            f"+{result.plans_added} plans"
        )
        return result

    def close(self) -> None:
        self.http.close()
