"""Browser-based OAuth implicit-grant flow.

Opens the user's browser to the Google authorization page. Google redirects
back to a loopback HTTP server with the access token in the URL fragment.
Fragments never reach the server, so the ``/callback`` page is a tiny relay
that forwards ``location.hash`` to ``/relay`` as a query string.
"""

import logging
import threading
import webbrowser
from http.server import HTTPServer, BaseHTTPRequestHandler
from typing import Callable, Optional
from urllib.parse import urlparse

__all__ = ["ImplicitGrantFlow"]

logger = logging.getLogger(__name__)

_PAGE_STYLE = """\
        body { font-family: -apple-system, BlinkMacSystemFont, sans-serif; display: flex; justify-content: center; align-items: center; min-height: 100vh; margin: 0; background: #f3f4f6; }
        .card { background: white; border-radius: 12px; padding: 40px; text-align: center; box-shadow: 0 4px 12px rgba(0,0,0,.1); max-width: 400px; }
        h1 { font-size: 22px; color: #111827; margin: 0 0 8px; }
        p { color: #6b7280; margin: 0; }
"""

_RELAY_HTML = f"""\
<!DOCTYPE html>
<html>
<head>
    <title>RunLog Sync - Connecting</title>
    <style>
{_PAGE_STYLE}    </style>
</head>
<body>
    <div class="card"><h1>Connecting to Google Drive...</h1></div>
    <script>
        var fragment = window.location.hash.substring(1);
        window.location.replace("/relay?" + (fragment || "error=invalid_callback"));
    </script>
</body>
</html>
"""

_SUCCESS_HTML = f"""\
<!DOCTYPE html>
<html>
<head>
    <title>RunLog Sync - Authorized</title>
    <style>
{_PAGE_STYLE}    </style>
</head>
<body>
    <div class="card">
        <h1>Google Drive Connected</h1>
        <p>You can close this tab and return to RunLog Sync.</p>
    </div>
</body>
</html>
"""

_ERROR_HTML = f"""\
<!DOCTYPE html>
<html>
<head>
    <title>RunLog Sync - Error</title>
    <style>
{_PAGE_STYLE}    </style>
</head>
<body>
    <div class="card">
        <h1>Authorization Failed</h1>
        <p>Something went wrong. Please try again from the app.</p>
    </div>
</body>
</html>
"""


class _CallbackHandler(BaseHTTPRequestHandler):
    """Serves the relay page and captures the relayed fragment."""

    def _send_html(self, status: int, html: str) -> None:
        self.send_response(status)
        self.send_header("Content-Type", "text/html")
        self.send_header("Cache-Control", "no-store")
        self.end_headers()
        self.wfile.write(html.encode())

    def do_GET(self):  # noqa: N802 - required by BaseHTTPRequestHandler
        parsed = urlparse(self.path)

        if parsed.path == "/callback":
            self._send_html(200, _RELAY_HTML)
            return

        if parsed.path != "/relay":
            self.send_response(404)
            self.end_headers()
            return

        # Only process the first relay; ignore subsequent requests.
        with self.server.lock:
            if self.server.callback_received.is_set():
                self._send_html(200, _SUCCESS_HTML)
                return

            success = self.server.on_fragment(parsed.query)
            self.server.handled = True
            self._send_html(200 if success else 400, _SUCCESS_HTML if success else _ERROR_HTML)
            self.server.callback_received.set()

    def log_message(self, format, *args):
        """Route HTTP server logs to debug (URLs may carry the token)."""
        logger.debug("Callback server request handled")


class ImplicitGrantFlow:
    """Runs one implicit-grant round trip through the user's browser.

    Flow:
    1. Start a local HTTP server (random port unless configured)
    2. Open the browser to the authorization URL with the loopback redirect
    3. Google redirects to /callback#access_token=...
    4. The relay page forwards the fragment to /relay
    5. ``on_fragment`` parses and stores the token or error
    """

    TIMEOUT_SECONDS = 300  # 5 minutes

    def __init__(
        self,
        build_authorize_url: Callable[[str, str], str],
        on_fragment: Callable[[str], bool],
        host: str = "127.0.0.1",
        port: int = 0,
        timeout: Optional[float] = None,
    ):
        """Initialize the flow.

        Args:
            build_authorize_url: (redirect_uri, state) -> authorization URL
            on_fragment: Receives the raw fragment; returns True on token
            host: Loopback interface for the callback server
            port: Callback port, 0 for a random free port
            timeout: Seconds to wait for the callback
        """
        self._build_authorize_url = build_authorize_url
        self._on_fragment = on_fragment
        self._host = host
        self._port = port
        self._timeout = timeout if timeout is not None else self.TIMEOUT_SECONDS
        self._server: Optional[HTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    def cancel(self) -> None:
        """Cancel a running flow, unblocking start() immediately."""
        if self._server is not None:
            self._server.callback_received.set()

    def start(self, state: str) -> bool:
        """Run the flow.

        Returns:
            True if the callback arrived (token or error), False on
            timeout or cancel
        """
        self._server = HTTPServer((self._host, self._port), _CallbackHandler)
        self._server.lock = threading.Lock()
        self._server.on_fragment = self._on_fragment
        self._server.callback_received = threading.Event()
        self._server.handled = False

        port = self._server.server_address[1]
        redirect_uri = f"http://{self._host}:{port}/callback"
        logger.info(f"Callback server listening on port {port}")

        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

        try:
            logger.info("Opening browser for Google authorization")
            webbrowser.open(self._build_authorize_url(redirect_uri, state))

            got_response = self._server.callback_received.wait(timeout=self._timeout)
            if not got_response:
                logger.warning("Authorization timed out (no callback received)")
                return False

            # cancel() also sets the event without a fragment being handled
            return self._server.handled
        finally:
            self._server.shutdown()
            self._server.server_close()
            if self._thread is not None:
                self._thread.join(timeout=2.0)
