"""Google Drive OAuth session management.

State machine::

    UNAUTHENTICATED -> PENDING_REDIRECT -> AUTHENTICATED
           ^                                   |
           +------ token rejected / logout ----+

The token has no locally-known expiry. It is trusted optimistically on
start-up and only dropped when a remote call answers 401.
"""

import logging
import secrets
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional
from urllib.parse import parse_qs, urlencode

from ..config import DriveSettings
from ..errors import ConfigError
from ..storage.local_store import DRIVE_FILE_ID_KEY, LocalStore
from .browser_auth import ImplicitGrantFlow
from .keychain import KeychainManager

__all__ = [
    "OAuthSessionManager",
    "PendingAuthStore",
    "DriveSession",
    "SessionState",
    "AuthResult",
]

logger = logging.getLogger(__name__)

PENDING_KEY = "googleAuthPending"
STATE_KEY = "googleAuthState"
TOKEN_KEY = "googleAuthToken"
ERROR_KEY = "googleAuthError"


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    PENDING_REDIRECT = "pending_redirect"
    AUTHENTICATED = "authenticated"


@dataclass
class DriveSession:
    """Current Google Drive session."""

    client_id: Optional[str] = None
    access_token: Optional[str] = None
    file_id: Optional[str] = None
    state: SessionState = SessionState.UNAUTHENTICATED

    @property
    def is_authenticated(self) -> bool:
        return self.state == SessionState.AUTHENTICATED


@dataclass
class AuthResult:
    """Result of a completed authorization round trip."""

    success: bool
    token: Optional[str] = None
    error: Optional[str] = None


class PendingAuthStore:
    """Process-scoped storage bridging the authorization round trip.

    Lives only as long as the process, like browser session storage lives
    only as long as the tab.
    """

    def __init__(self):
        self._values: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._values.clear()


FlowFactory = Callable[..., ImplicitGrantFlow]


class OAuthSessionManager:
    """Owns the Drive session: token lifecycle and cached file ID."""

    def __init__(
        self,
        store: LocalStore,
        keychain: Optional[KeychainManager] = None,
        settings: Optional[DriveSettings] = None,
        pending: Optional[PendingAuthStore] = None,
        flow_factory: FlowFactory = ImplicitGrantFlow,
    ):
        """Initialize session manager.

        Args:
            store: Local store (holds the cached Drive file ID)
            keychain: Keychain manager for the token (creates default if None)
            settings: Drive/OAuth endpoint settings
            pending: Storage surviving the authorization round trip
            flow_factory: Builds the browser flow (injectable for tests)
        """
        self.store = store
        self.keychain = keychain or KeychainManager()
        self.settings = settings or DriveSettings()
        self.pending = pending or PendingAuthStore()
        self._flow_factory = flow_factory
        self._session = DriveSession()
        self._on_auth_cleared: list[Callable[[], None]] = []

    @property
    def session(self) -> DriveSession:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session.is_authenticated

    @property
    def access_token(self) -> Optional[str]:
        return self._session.access_token

    def add_auth_cleared_listener(self, callback: Callable[[], None]) -> None:
        """Register a callback fired whenever the session is cleared."""
        self._on_auth_cleared.append(callback)

    def initialize(self, client_id: Optional[str]) -> DriveSession:
        """Load any persisted token and file ID.

        A stored token makes the session authenticated without checking
        it against Google.
        """
        self._session.client_id = client_id or None

        token = self.keychain.load_token()
        if token:
            self._session.access_token = token
            self._session.state = SessionState.AUTHENTICATED
            logger.info("Restored Google Drive session from keychain")

        file_id = self.store.get(DRIVE_FILE_ID_KEY)
        if file_id:
            self._session.file_id = file_id

        return self._session

    def build_authorize_url(self, redirect_uri: str, state: str) -> str:
        params = {
            "client_id": self._session.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "token",
            "scope": self.settings.scope,
            "include_granted_scopes": "true",
            "state": state,
        }
        return f"{self.settings.auth_url}?{urlencode(params)}"

    def authenticate(self) -> AuthResult:
        """Run the browser authorization flow and promote the result.

        Raises:
            ConfigError: If no client ID is configured
        """
        if not self._session.client_id:
            raise ConfigError("Google client ID is not configured")

        state = secrets.token_urlsafe(32)
        self.pending.set(PENDING_KEY, "true")
        self.pending.set(STATE_KEY, state)
        previous_state = self._session.state
        self._session.state = SessionState.PENDING_REDIRECT

        flow = self._flow_factory(
            self.build_authorize_url,
            self.process_callback,
            host=self.settings.callback_host,
            port=self.settings.callback_port,
            timeout=self.settings.auth_timeout_seconds,
        )
        logger.info("Starting Google authorization (implicit grant)...")
        if not flow.start(state):
            self.pending.remove(PENDING_KEY)
            self.pending.remove(STATE_KEY)
            self.pending.set(ERROR_KEY, "timeout")

        result = self.check_pending_auth()
        if result is None:
            result = AuthResult(success=False, error="invalid_callback")

        if not result.success:
            # A failed re-login keeps a previously stored token usable.
            if previous_state == SessionState.AUTHENTICATED and self._session.access_token:
                self._session.state = SessionState.AUTHENTICATED
            else:
                self._session.state = SessionState.UNAUTHENTICATED
        return result

    def process_callback(self, fragment: str) -> bool:
        """Parse the redirect fragment and stash the token or error.

        Only the fragment is consulted. Exactly one of token/error is
        stored for pickup by ``check_pending_auth``.

        Returns:
            True if an access token was received
        """
        params = parse_qs(fragment.lstrip("#"))
        access_token = params.get("access_token", [None])[0]
        error = params.get("error", [None])[0]
        returned_state = params.get("state", [None])[0]
        expected_state = self.pending.get(STATE_KEY)

        self.pending.remove(PENDING_KEY)
        self.pending.remove(STATE_KEY)

        if expected_state and returned_state != expected_state:
            logger.warning("State parameter mismatch - possible CSRF attempt")
            self.pending.set(ERROR_KEY, "state_mismatch")
            return False

        if access_token:
            self.pending.set(TOKEN_KEY, access_token)
            return True

        self.pending.set(ERROR_KEY, error or "invalid_callback")
        logger.warning(f"Authorization failed: {error or 'no token returned'}")
        return False

    def check_pending_auth(self) -> Optional[AuthResult]:
        """Promote a pending token to durable storage.

        Returns:
            AuthResult on a pending token or error, None if nothing is pending
        """
        token = self.pending.get(TOKEN_KEY)
        error = self.pending.get(ERROR_KEY)

        if token:
            self._save_token(token)
            self.pending.remove(TOKEN_KEY)
            logger.info("Google Drive authorization successful")
            return AuthResult(success=True, token=token)

        if error:
            self.pending.remove(ERROR_KEY)
            return AuthResult(success=False, error=error)

        return None

    def _save_token(self, token: str) -> None:
        self._session.access_token = token
        self._session.state = SessionState.AUTHENTICATED
        if not self.keychain.store_token(token):
            logger.warning("Failed to store access token in keychain")

    def remember_file_id(self, file_id: str) -> None:
        self._session.file_id = file_id
        self.store.set(DRIVE_FILE_ID_KEY, file_id)

    def forget_file_id(self) -> None:
        self._session.file_id = None
        self.store.remove(DRIVE_FILE_ID_KEY)

    def clear_auth(self) -> None:
        """Drop token and file ID; the session becomes unauthenticated."""
        self._session.access_token = None
        self._session.state = SessionState.UNAUTHENTICATED
        self.keychain.delete_token()
        self.forget_file_id()
        logger.info("Google Drive session cleared")

        for callback in list(self._on_auth_cleared):
            try:
                callback()
            except Exception as e:
                logger.warning(f"Auth-cleared listener failed: {e}")
