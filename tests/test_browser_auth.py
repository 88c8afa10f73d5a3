"""Tests for the browser implicit-grant flow."""

import threading
import time
from unittest.mock import MagicMock, Mock, patch

import requests

from runlog_sync.auth.browser_auth import ImplicitGrantFlow, _CallbackHandler


def _make_handler(path, server):
    handler = _CallbackHandler.__new__(_CallbackHandler)
    handler.server = server
    handler.path = path
    handler.requestline = f"GET {path} HTTP/1.1"
    handler.client_address = ("127.0.0.1", 12345)
    handler.request_version = "HTTP/1.1"
    handler.headers = {}
    handler.send_response = Mock()
    handler.send_header = Mock()
    handler.end_headers = Mock()
    handler.wfile = MagicMock()
    return handler


def _make_server(on_fragment):
    server = MagicMock()
    server.lock = threading.Lock()
    server.on_fragment = on_fragment
    server.callback_received = threading.Event()
    server.handled = False
    return server


class TestCallbackHandler:
    """Tests for the HTTP callback handler."""

    def test_callback_serves_relay_page(self):
        on_fragment = Mock()
        server = _make_server(on_fragment)
        handler = _make_handler("/callback", server)

        handler.do_GET()

        handler.send_response.assert_called_once_with(200)
        body = handler.wfile.write.call_args[0][0].decode()
        assert "window.location.hash" in body
        assert "/relay?" in body
        on_fragment.assert_not_called()
        assert not server.callback_received.is_set()

    def test_relay_passes_fragment_to_callback(self):
        on_fragment = Mock(return_value=True)
        server = _make_server(on_fragment)
        handler = _make_handler("/relay?access_token=tok-1&state=abc", server)

        handler.do_GET()

        on_fragment.assert_called_once_with("access_token=tok-1&state=abc")
        handler.send_response.assert_called_once_with(200)
        assert server.handled is True
        assert server.callback_received.is_set()

    def test_relay_error_returns_400(self):
        on_fragment = Mock(return_value=False)
        server = _make_server(on_fragment)
        handler = _make_handler("/relay?error=access_denied", server)

        handler.do_GET()

        handler.send_response.assert_called_once_with(400)
        assert server.callback_received.is_set()

    def test_second_relay_is_ignored(self):
        on_fragment = Mock(return_value=True)
        server = _make_server(on_fragment)
        server.callback_received.set()
        handler = _make_handler("/relay?access_token=other", server)

        handler.do_GET()

        on_fragment.assert_not_called()
        handler.send_response.assert_called_once_with(200)

    def test_unknown_path_returns_404(self):
        server = _make_server(Mock())
        handler = _make_handler("/favicon.ico", server)

        handler.do_GET()

        handler.send_response.assert_called_once_with(404)
        assert not server.callback_received.is_set()


class TestImplicitGrantFlow:
    """Tests for ImplicitGrantFlow."""

    @patch("webbrowser.open")
    def test_start_opens_browser_with_loopback_redirect(self, mock_browser):
        build_url = Mock(return_value="https://accounts.example/auth")
        flow = ImplicitGrantFlow(build_url, Mock(), timeout=0.1)

        flow.start("state-1")

        redirect_uri, state = build_url.call_args[0]
        assert redirect_uri.startswith("http://127.0.0.1:")
        assert redirect_uri.endswith("/callback")
        assert state == "state-1"
        mock_browser.assert_called_once_with("https://accounts.example/auth")

    @patch("webbrowser.open")
    def test_start_timeout_returns_false(self, mock_browser):
        on_fragment = Mock()
        flow = ImplicitGrantFlow(Mock(return_value="https://x"), on_fragment, timeout=0.1)

        assert flow.start("state-1") is False
        on_fragment.assert_not_called()

    @patch("webbrowser.open")
    def test_start_delivers_relayed_fragment(self, mock_browser):
        captured = {}

        def build_url(redirect_uri, state):
            captured["redirect_uri"] = redirect_uri
            return "https://accounts.example/auth"

        on_fragment = Mock(return_value=True)
        flow = ImplicitGrantFlow(build_url, on_fragment, timeout=2)

        def simulate_relay():
            time.sleep(0.1)
            base = captured["redirect_uri"].rsplit("/", 1)[0]
            try:
                requests.get(f"{base}/relay?access_token=tok-9&state=s", timeout=1)
            except requests.RequestException:
                pass

        threading.Thread(target=simulate_relay, daemon=True).start()

        assert flow.start("s") is True
        on_fragment.assert_called_once_with("access_token=tok-9&state=s")

    @patch("webbrowser.open")
    def test_cancel_unblocks_start(self, mock_browser):
        flow = ImplicitGrantFlow(Mock(return_value="https://x"), Mock(), timeout=5)

        def cancel_soon():
            time.sleep(0.1)
            flow.cancel()

        threading.Thread(target=cancel_soon, daemon=True).start()

        started = time.monotonic()
        assert flow.start("s") is False
        assert time.monotonic() - started < 4
