"""RunLog Sync - application wiring and command line entry point."""

import argparse
import logging
import signal
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import __version__
from .auth import KeychainManager, OAuthSessionManager
from .config import Config, setup_logging
from .errors import ConfigError, FormatError, RunLogSyncError
from .migration import MigrationResult, MigrationRunner
from .storage import DocumentStore, LocalStore
from .storage.local_store import DRIVE_AUTO_SYNC_KEY, DRIVE_CLIENT_ID_KEY
from .sync import AutoSyncScheduler, BackupService, DriveSyncClient, ImportMode, SyncOutcome
from .sync.retry import RetryConfig

logger = logging.getLogger(__name__)


@dataclass
class ActionResult:
    """Outcome of a user-facing action."""

    success: bool
    message: str


class RunLogSyncApp:
    """Owns one instance of every component and wires them together.

    Nothing is shared through module globals; each app instance has its
    own store, session and scheduler.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        store: Optional[LocalStore] = None,
        documents: Optional[DocumentStore] = None,
        keychain: Optional[KeychainManager] = None,
        session_manager: Optional[OAuthSessionManager] = None,
        drive: Optional[DriveSyncClient] = None,
        auto_sync: Optional[AutoSyncScheduler] = None,
    ):
        self.config = config or Config.load()
        data_dir = self.config.resolved_data_dir

        self.store = store or LocalStore(data_dir / "local_store.db")
        self._documents = documents
        self._data_dir = data_dir
        self.session_manager = session_manager or OAuthSessionManager(
            self.store,
            keychain=keychain or KeychainManager(),
            settings=self.config.drive,
        )
        self.drive = drive or DriveSyncClient(
            self.session_manager,
            self.store,
            retry_config=RetryConfig(max_retries=self.config.sync.max_retries),
        )
        self.auto_sync = auto_sync or AutoSyncScheduler(self.drive)
        self.backup = BackupService(self.store, on_data_changed=self._on_data_changed)
        self.last_outcome: Optional[SyncOutcome] = None

        self.session_manager.add_auth_cleared_listener(self._on_auth_cleared)

    @property
    def documents(self) -> DocumentStore:
        if self._documents is None:
            self._documents = DocumentStore(self._data_dir / "documents.db")
        return self._documents

    # -- lifecycle ----------------------------------------------------------

    def start(self) -> Optional[ActionResult]:
        """Restore the Drive session and re-arm auto-sync if enabled.

        Returns:
            The result of a pending authorization, if one was waiting
        """
        client_id = self.store.get(DRIVE_CLIENT_ID_KEY)
        self.session_manager.initialize(client_id)

        pending: Optional[ActionResult] = None
        auth_result = self.session_manager.check_pending_auth()
        if auth_result is not None:
            if auth_result.success:
                pending = ActionResult(True, "Authenticated with Google Drive")
            else:
                pending = ActionResult(False, auth_result.error or "Authorization failed")

        if self.store.get_bool(DRIVE_AUTO_SYNC_KEY) and self.session_manager.is_authenticated:
            self.start_auto_sync()
        return pending

    def close(self) -> None:
        self.auto_sync.shutdown()
        self.drive.close()
        self.store.close()
        if self._documents is not None:
            self._documents.close()

    def __enter__(self) -> "RunLogSyncApp":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # -- Drive actions ------------------------------------------------------

    def set_client_id(self, client_id: str) -> ActionResult:
        client_id = client_id.strip()
        if not client_id:
            return ActionResult(False, "Please enter a Google client ID")
        self.store.set(DRIVE_CLIENT_ID_KEY, client_id)
        self.session_manager.initialize(client_id)
        return ActionResult(True, "Client ID saved")

    def login(self) -> ActionResult:
        try:
            result = self.session_manager.authenticate()
        except ConfigError as e:
            return ActionResult(False, str(e))
        if result.success:
            return ActionResult(True, "Authenticated with Google Drive")
        return ActionResult(False, result.error or "Authorization failed")

    def logout(self) -> ActionResult:
        self.session_manager.clear_auth()
        self.store.remove(DRIVE_AUTO_SYNC_KEY)
        return ActionResult(True, "Disconnected from Google Drive")

    def sync_upload(self) -> ActionResult:
        try:
            self.drive.upload()
        except RunLogSyncError as e:
            return ActionResult(False, str(e))
        return ActionResult(True, "Data synced to Google Drive")

    def sync_download(self) -> ActionResult:
        try:
            result = self.drive.download()
        except RunLogSyncError as e:
            return ActionResult(False, str(e))
        self._on_data_changed()
        return ActionResult(
            True,
            f"Downloaded: {result.workouts_added} workouts and "
            f"{result.plans_added} plans added",
        )

    def set_auto_sync(self, enabled: bool) -> ActionResult:
        if enabled and not self.session_manager.is_authenticated:
            return ActionResult(False, "Connect Google Drive before enabling auto-sync")
        self.store.set_bool(DRIVE_AUTO_SYNC_KEY, enabled)
        if enabled:
            self.start_auto_sync()
            return ActionResult(
                True, f"Auto-sync enabled (every {self.config.sync.interval_minutes} min)"
            )
        self.auto_sync.stop()
        return ActionResult(True, "Auto-sync disabled")

    # -- backup / migration -------------------------------------------------

    def import_backup(self, path: Path, mode: ImportMode = ImportMode.MERGE) -> ActionResult:
        try:
            result = self.backup.import_file(path, mode)
        except FormatError as e:
            return ActionResult(False, f"Import failed: {e}")
        except OSError as e:
            return ActionResult(False, f"Cannot read {path}: {e}")

        if mode == ImportMode.REPLACE:
            return ActionResult(
                True,
                f"Imported {result.total_workouts} workouts and "
                f"{result.total_plans} plans (previous data replaced)",
            )
        return ActionResult(
            True,
            f"Merged: {result.workouts_added} workouts and {result.plans_added} plans "
            f"added ({result.total_workouts} workouts, {result.total_plans} plans total)",
        )

    def migrate(self, user_id: str) -> MigrationResult:
        return MigrationRunner(self.store, self.documents).migrate(user_id)

    def start_auto_sync(self) -> None:
        self.auto_sync.start(self.config.sync.interval_minutes, self._on_auto_sync_result)

    # -- internal -----------------------------------------------------------

    def _on_auto_sync_result(self, outcome: SyncOutcome) -> None:
        self.last_outcome = outcome
        if outcome.success and not outcome.skipped:
            logger.info("Automatic sync completed")
        elif not outcome.success:
            logger.warning(f"Automatic sync failed: {outcome.error}")

    def _on_auth_cleared(self) -> None:
        if self.auto_sync.is_running:
            logger.info("Session cleared, stopping auto-sync")
            self.auto_sync.stop()

    def _on_data_changed(self) -> None:
        logger.debug("Local data changed")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="runlog-sync",
        description="Backup, Google Drive sync and migration for your running log.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    parser.add_argument("--data-dir", help="Override the data directory")
    subparsers = parser.add_subparsers(dest="command", required=True)

    export_parser = subparsers.add_parser("export", help="Write a backup file")
    export_parser.add_argument("--output-dir", default=".")

    import_parser = subparsers.add_parser("import", help="Import a backup file")
    import_parser.add_argument("path")
    import_parser.add_argument(
        "--replace", action="store_true", help="Replace local data instead of merging"
    )

    subparsers.add_parser("stats", help="Show local record counts")

    clear_parser = subparsers.add_parser("clear", help="Delete all local data")
    clear_parser.add_argument("--yes", action="store_true", help="Skip confirmation")

    client_parser = subparsers.add_parser("set-client-id", help="Save the Google client ID")
    client_parser.add_argument("client_id")

    subparsers.add_parser("login", help="Connect Google Drive")
    subparsers.add_parser("logout", help="Disconnect Google Drive")
    subparsers.add_parser("upload", help="Upload local data to Google Drive")
    subparsers.add_parser("download", help="Merge Google Drive data into local data")

    auto_parser = subparsers.add_parser("auto-sync", help="Configure or run auto-sync")
    auto_parser.add_argument("action", choices=["on", "off", "run"])
    auto_parser.add_argument("--interval", type=int, help="Minutes between uploads")

    migrate_parser = subparsers.add_parser("migrate", help="Migrate local data to the hosted store")
    migrate_parser.add_argument("user_id")

    return parser


def _report(result: ActionResult) -> int:
    print(result.message)
    return 0 if result.success else 1


def _run_auto_sync(app: RunLogSyncApp) -> int:
    """Keep auto-sync running in the foreground until interrupted."""
    if not app.session_manager.is_authenticated:
        print("Not authenticated with Google Drive. Run 'runlog-sync login' first.")
        return 1

    stop_event = threading.Event()

    def handle_signal(signum, frame):
        stop_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    app.start_auto_sync()
    print(f"Auto-sync running every {app.config.sync.interval_minutes} min. Ctrl+C to stop.")
    stop_event.wait()
    app.auto_sync.stop()
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = _build_parser().parse_args(argv)

    config = Config.load()
    if args.debug:
        config.debug_mode = True
    if args.data_dir:
        config.data_dir = args.data_dir
    if getattr(args, "interval", None):
        config.sync.interval_minutes = args.interval
    setup_logging(config.debug_mode)

    with RunLogSyncApp(config) as app:
        pending = app.start()
        if pending is not None:
            print(pending.message)

        if args.command == "export":
            path = app.backup.export_to_file(Path(args.output_dir))
            stats = app.backup.stats()
            print(f"Backup written to {path} ({stats.workouts} workouts, {stats.plans} plans)")
            return 0

        if args.command == "import":
            mode = ImportMode.REPLACE if args.replace else ImportMode.MERGE
            return _report(app.import_backup(Path(args.path), mode))

        if args.command == "stats":
            stats = app.backup.stats()
            print(f"Workouts: {stats.workouts}\nPlans: {stats.plans}")
            return 0

        if args.command == "clear":
            if not args.yes:
                answer = input("This deletes ALL workouts and plans. Type 'yes' to confirm: ")
                if answer.strip().lower() != "yes":
                    print("Aborted")
                    return 1
            app.backup.clear_all()
            print("All data deleted")
            return 0

        if args.command == "set-client-id":
            return _report(app.set_client_id(args.client_id))
        if args.command == "login":
            return _report(app.login())
        if args.command == "logout":
            return _report(app.logout())
        if args.command == "upload":
            return _report(app.sync_upload())
        if args.command == "download":
            return _report(app.sync_download())

        if args.command == "auto-sync":
            if args.action == "run":
                return _run_auto_sync(app)
            return _report(app.set_auto_sync(args.action == "on"))

        if args.command == "migrate":
            result = app.migrate(args.user_id)
            print(result.message)
            return 0 if result.success else 1

    return 1


if __name__ == "__main__":
    sys.exit(main())
