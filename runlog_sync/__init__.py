"""RunLog Sync - backup, Google Drive sync and migration for a running log."""

__version__ = "1.0.0"
