"""Bearer-token HTTP client for the Google Drive REST API."""

import logging
from typing import Callable, Optional

import requests

from .. import __version__
from ..errors import AuthError, NotFoundError, RemoteServiceError
from .retry import RetryConfig, RetryExhausted, retry_with_backoff

__all__ = ["DriveHttpClient"]

logger = logging.getLogger(__name__)


class _TransientError(Exception):
    """Internal: Marks a transport failure as retryable."""

    pass


class DriveHttpClient:
    """HTTP client that attaches the bearer token and classifies failures.

    Handles:
    - Authorization header from the current session token
    - 401 -> session cleared, then AuthError
    - 404 -> NotFoundError
    - other non-2xx -> RemoteServiceError with the status code
    - connection errors and timeouts retried with exponential backoff

    HTTP error statuses are never retried.
    """

    DEFAULT_RETRY_CONFIG = RetryConfig(
        max_retries=3,
        base_delay=1.0,
        max_delay=30.0,
        exponential_base=2.0,
        jitter=True,
    )

    USER_AGENT = f"RunLog-Sync/{__version__}"

    def __init__(
        self,
        token_provider: Callable[[], Optional[str]],
        on_unauthorized: Optional[Callable[[], None]] = None,
        timeout: int = 30,
        retry_config: Optional[RetryConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the client.

        Args:
            token_provider: Returns the current bearer token (None if absent)
            on_unauthorized: Called before raising AuthError on a 401
            timeout: Request timeout in seconds
            retry_config: Backoff settings for transport failures
            session: Optional requests session (for dependency injection/testing)
        """
        self._token_provider = token_provider
        self._on_unauthorized = on_unauthorized
        self.timeout = timeout
        self.retry_config = retry_config or self.DEFAULT_RETRY_CONFIG
        self._session = session or requests.Session()
        self._owns_session = session is None

    def _get_headers(self, extra: Optional[dict] = None) -> dict:
        token = self._token_provider()
        if not token:
            raise AuthError("Not authenticated")

        headers = {
            "Authorization": f"Bearer {token}",
            "User-Agent": self.USER_AGENT,
        }
        if extra:
            headers.update(extra)
        return headers

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return ""
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict):
                return error.get("message", "")
            if isinstance(error, str):
                return body.get("error_description", error)
        return ""

    def request(
        self,
        method: str,
        url: str,
        params: Optional[dict] = None,
        data: Optional[bytes] = None,
        headers: Optional[dict] = None,
        retry: bool = True,
    ) -> requests.Response:
        """Send an authenticated request.

        Returns:
            The successful response

        Raises:
            AuthError: No token, or the token was rejected (session cleared)
            NotFoundError: 404
            RemoteServiceError: Any other non-success status, or transport
                failure after retries
        """
        request_headers = self._get_headers(headers)

        def do_request() -> requests.Response:
            try:
                response = self._session.request(
                    method,
                    url,
                    params=params,
                    data=data,
                    headers=request_headers,
                    timeout=self.timeout,
                )
            except requests.exceptions.ConnectionError:
                raise _TransientError("Cannot connect to Google Drive")
            except requests.exceptions.Timeout:
                raise _TransientError("Request timed out")

            logger.debug(f"{method} {url} -> {response.status_code}")

            if response.status_code == 401:
                logger.warning("Bearer token rejected, clearing session")
                if self._on_unauthorized:
                    self._on_unauthorized()
                raise AuthError("Token expired. Please authenticate again.")
            if response.status_code == 404:
                raise NotFoundError(self._error_message(response) or "File not found")
            if not response.ok:
                detail = self._error_message(response)
                raise RemoteServiceError(
                    f"Drive API error ({response.status_code}): "
                    f"{detail or response.reason}",
                    status_code=response.status_code,
                )
            return response

        if not retry:
            try:
                return do_request()
            except _TransientError as e:
                raise RemoteServiceError(str(e)) from e

        try:
            return retry_with_backoff(
                do_request,
                config=self.retry_config,
                retryable_exceptions=(_TransientError,),
            )
        except RetryExhausted as e:
            if e.last_error:
                raise RemoteServiceError(str(e.last_error)) from e.last_error
            raise RemoteServiceError("Request failed after retries") from e

    def close(self) -> None:
        """Close the session if we own it."""
        if self._owns_session and self._session is not None:
            self._session.close()
            self._session = None

    def __enter__(self) -> "DriveHttpClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
