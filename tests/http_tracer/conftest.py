"""Shared fixtures for the HTTP tracer suite.

Provides a local threaded echo server and clears tracer environment
overrides between tests.
"""

from __future__ import annotations

import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Iterator
from urllib.parse import parse_qs

import pytest


class _EchoHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    def do_POST(self) -> None:  # noqa: N802
        length = int(self.headers.get("Content-Length", "0") or 0)
        form = parse_qs(self.rfile.read(length).decode("utf-8"))
        username = (form.get("username") or [""])[0].strip()
        if not username:
            self._reply(400, b"")
            return
        self._reply(200, f"Hello, {username}".encode("utf-8"))

    def do_GET(self) -> None:  # noqa: N802
        self._reply(200, b"pong")

    def _reply(self, status: int, body: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        return


@pytest.fixture
def echo_server() -> Iterator[str]:
    """Run the echo server on an ephemeral port and yield its base URL."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), _EchoHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    try:
        yield f"http://{host}:{port}"
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)


@pytest.fixture(autouse=True)
def _clear_tracer_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "HTTPTRACER_CAPTURE_BODIES",
        "HTTPTRACER_SPLIT_LINES",
        "HTTPTRACER_CALLBACK_REQUIRES_SINK_WRITE",
        # proxy mounts would bypass the transport under test
        "HTTP_PROXY",
        "HTTPS_PROXY",
        "ALL_PROXY",
        "http_proxy",
        "https_proxy",
        "all_proxy",
    ):
        monkeypatch.delenv(name, raising=False)
