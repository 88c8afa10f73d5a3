"""Durable bearer-token storage in the system keychain."""

import logging
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

__all__ = ["KeychainManager"]

logger = logging.getLogger(__name__)

SERVICE_NAME = "RunLog Sync"
ACCOUNT_NAME = "google_drive_token"


class KeychainManager:
    """Stores the Google Drive access token.

    Keychain failures are logged and reported through return values; the
    token is treated as absent when it cannot be read.
    """

    def __init__(self, service_name: str = SERVICE_NAME):
        self.service_name = service_name

    def store_token(self, token: str) -> bool:
        """Store the access token.

        Returns:
            True if stored successfully
        """
        try:
            keyring.set_password(self.service_name, ACCOUNT_NAME, token)
            logger.info("Access token stored in keychain")
            return True
        except KeyringError as e:
            logger.error(f"Failed to store access token: {e}")
            return False

    def load_token(self) -> Optional[str]:
        """Load the access token, or None if absent/unreadable."""
        try:
            return keyring.get_password(self.service_name, ACCOUNT_NAME) or None
        except KeyringError as e:
            logger.error(f"Failed to load access token: {e}")
            return None

    def delete_token(self) -> bool:
        """Delete the access token.

        Returns:
            True if deleted (or didn't exist)
        """
        try:
            keyring.delete_password(self.service_name, ACCOUNT_NAME)
            logger.info("Access token deleted")
            return True
        except PasswordDeleteError:
            return True
        except KeyringError as e:
            logger.error(f"Failed to delete access token: {e}")
            return False

    def has_token(self) -> bool:
        return self.load_token() is not None
