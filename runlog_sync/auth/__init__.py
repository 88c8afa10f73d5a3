"""Auth module - Google OAuth session and secure token storage."""

from .browser_auth import ImplicitGrantFlow
from .keychain import KeychainManager
from .session import AuthResult, DriveSession, OAuthSessionManager, SessionState

__all__ = [
    "ImplicitGrantFlow",
    "KeychainManager",
    "OAuthSessionManager",
    "DriveSession",
    "SessionState",
    "AuthResult",
]
