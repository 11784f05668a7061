"""Scripted HTTPX transport replaying ``httpcore`` trace events.

Lets tracer tests drive lifecycle timing deterministically without real
network I/O.
"""

from __future__ import annotations

import time
from typing import Callable, List, Optional, Sequence

import httpx

HTTP_EVENTS = (
    "dns.resolve.started",
    "dns.resolve.complete",
    "connection.connect_tcp.started",
    "connection.connect_tcp.complete",
    "http11.send_request_headers.started",
    "http11.send_request_headers.complete",
    "http11.send_request_body.started",
    "http11.send_request_body.complete",
    "http11.receive_response_headers.started",
    "http11.receive_response_headers.complete",
)

HTTPS_EVENTS = (
    "dns.resolve.started",
    "dns.resolve.complete",
    "connection.connect_tcp.started",
    "connection.connect_tcp.complete",
    "connection.start_tls.started",
    "connection.start_tls.complete",
    "http11.send_request_headers.started",
    "http11.send_request_headers.complete",
    "http11.receive_response_headers.started",
    "http11.receive_response_headers.complete",
)


class ScriptedTransport(httpx.BaseTransport):
    """Transport replaying trace events before answering.

    Args:
        events: Event names fed to the request's ``trace`` extension, in order.
        delay: Seconds slept before each event.
        error: Exception raised after the events instead of responding.
        pause_after: Event name after which ``hook`` is invoked.
        hook: Callable run once ``pause_after`` has been emitted.
    """

    def __init__(
        self,
        events: Sequence[str] = HTTP_EVENTS,
        *,
        delay: float = 0.002,
        error: Optional[Exception] = None,
        body: bytes = b"ok",
        pause_after: Optional[str] = None,
        hook: Optional[Callable[[], None]] = None,
    ) -> None:
        self.events = list(events)
        self.delay = delay
        self.error = error
        self.body = body
        self.pause_after = pause_after
        self.hook = hook
        self.seen_callbacks: List[object] = []

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        trace = request.extensions.get("trace")
        self.seen_callbacks.append(trace)
        for name in self.events:
            if self.delay:
                time.sleep(self.delay)
            info = {"exception": self.error} if name.endswith(".failed") else {}
            if trace is not None:
                trace(name, info)
            if name == self.pause_after and self.hook is not None:
                self.hook()
        if self.error is not None:
            raise self.error
        return httpx.Response(
            200,
            headers={"Content-Type": "text/plain; charset=utf-8"},
            content=self.body,
        )

