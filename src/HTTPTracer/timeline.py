# === NAVMAP v1 ===
# {
#   "module": "HTTPTracer.timeline",
#   "purpose": "Per-round-trip lifecycle instants and httpcore trace adapters.",
#   "sections": [
#     {
#       "id": "slot",
#       "name": "Slot",
#       "anchor": "class-slot",
#       "kind": "class"
#     },
#     {
#       "id": "eventtimeline",
#       "name": "EventTimeline",
#       "anchor": "class-eventtimeline",
#       "kind": "class"
#     },
#     {
#       "id": "trace-callback",
#       "name": "trace_callback",
#       "anchor": "function-trace-callback",
#       "kind": "function"
#     },
#     {
#       "id": "async-trace-callback",
#       "name": "async_trace_callback",
#       "anchor": "function-async-trace-callback",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Lifecycle timeline for a single HTTP round trip.

Responsibilities
----------------
- Hold the eight lifecycle instants of one round trip (DNS, connect, TLS,
  connection obtained, first response byte, end of request) as monotonic
  nanosecond timestamps.
- Record each instant at most once; later reports of the same event are
  ignored so retries inside the transport cannot rewrite history.
- Translate ``httpcore`` trace extension events into timeline recordings via
  :func:`trace_callback` (sync) and :func:`async_trace_callback` (async).

Design Notes
------------
- A timeline is created per ``handle_request`` call and passed explicitly to
  the callback factories. It is never stored on the tracer, so concurrent
  requests sharing one client cannot corrupt each other's timestamps.
- Recording never raises and never blocks; the only side effect is the slot
  assignment.
"""

from __future__ import annotations

import time
from enum import IntEnum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

TraceFunc = Callable[[str, Mapping[str, Any]], None]
AsyncTraceFunc = Callable[[str, Mapping[str, Any]], Awaitable[None]]


# ============================================================================
# Timeline slots
# ============================================================================


class Slot(IntEnum):
    """Index of each lifecycle instant within a timeline."""

    DNS_START = 0
    DNS_DONE = 1  # doubles as connect start when no DNS lookup ran
    CONNECT_DONE = 2
    GOT_CONN = 3
    GOT_FIRST_RESPONSE_BYTE = 4
    TLS_START = 5
    TLS_DONE = 6
    REQUEST_END = 7


class EventTimeline:
    """Ordered set of lifecycle instants for one round trip.

    Args:
        clock: Zero-argument callable returning a monotonic timestamp in
            nanoseconds. Defaults to :func:`time.perf_counter_ns`.

    Attributes:
        error: Last connection-phase error (failed connect or TLS handshake)
            reported through the hook, or ``None``.
    """

    __slots__ = ("_clock", "_instants", "_dial_placeholder", "error")

    def __init__(self, clock: Optional[Callable[[], int]] = None) -> None:
        self._clock = clock or time.perf_counter_ns
        self._instants: List[Optional[int]] = [None] * len(Slot)
        self._dial_placeholder = False
        self.error: Optional[BaseException] = None

    def __getitem__(self, slot: Slot) -> Optional[int]:
        return self._instants[slot]

    def __repr__(self) -> str:
        recorded = {slot.name.lower(): self._instants[slot] for slot in Slot}
        return f"EventTimeline({recorded!r})"

    def is_set(self, slot: Slot) -> bool:
        return self._instants[slot] is not None

    def as_dict(self) -> Dict[str, Optional[int]]:
        """Return the raw instants keyed by lower-case slot name."""
        return {slot.name.lower(): self._instants[slot] for slot in Slot}

    def _record(self, slot: Slot) -> None:
        if self._instants[slot] is None:
            self._instants[slot] = self._clock()

    # ------------------------------------------------------------------
    # Lifecycle events
    # ------------------------------------------------------------------

    def dns_start(self) -> None:
        self._record(Slot.DNS_START)

    def dns_done(self) -> None:
        """Record the end of name resolution.

        Replaces a connect-start placeholder: resolving backends look the name
        up inside the dial, after the dial has already been reported.
        """
        if self._dial_placeholder:
            self._instants[Slot.DNS_DONE] = None
            self._dial_placeholder = False
        self._record(Slot.DNS_DONE)

    def connect_start(self) -> None:
        """Fill the DNS-done slot, but only when no DNS lookup was observed."""
        if self._instants[Slot.DNS_DONE] is None:
            self._dial_placeholder = True
        self._record(Slot.DNS_DONE)

    def connect_done(self, error: Optional[BaseException] = None) -> None:
        if error is None:
            self._record(Slot.CONNECT_DONE)
            return
        self.error = error

    def got_conn(self) -> None:
        self._record(Slot.GOT_CONN)

    def got_first_response_byte(self) -> None:
        self._record(Slot.GOT_FIRST_RESPONSE_BYTE)

    def tls_handshake_start(self) -> None:
        self._record(Slot.TLS_START)

    def tls_handshake_done(self, error: Optional[BaseException] = None) -> None:
        self._record(Slot.TLS_DONE)
        if error is not None:
            self.error = error

    def finish(self) -> None:
        """Record the terminal instant. Must be the last recording."""
        self._record(Slot.REQUEST_END)

    def apply_backfill(self) -> None:
        """Fill skipped leading instants so durations degrade to zero.

        A reused pooled connection reports no dial at all, so the DNS-done
        slot takes the connection-obtained instant; a dial without a DNS
        lookup (literal IP, or no resolving backend) leaves ``dns_start``
        unset, which then takes the DNS-done instant.
        """
        instants = self._instants
        if instants[Slot.DNS_DONE] is None:
            instants[Slot.DNS_DONE] = instants[Slot.GOT_CONN]
        if instants[Slot.DNS_START] is None:
            instants[Slot.DNS_START] = instants[Slot.DNS_DONE]


# ============================================================================
# httpcore trace extension adapters
# ============================================================================


def _dispatch(timeline: EventTimeline, name: str, info: Mapping[str, Any]) -> None:
    prefix, _, step = name.rpartition(".")
    if prefix == "dns.resolve":
        if step == "started":
            timeline.dns_start()
        else:
            timeline.dns_done()
    elif prefix in ("connection.connect_tcp", "connection.connect_unix_socket"):
        if step == "started":
            timeline.connect_start()
        elif step == "complete":
            timeline.connect_done()
        elif step == "failed":
            timeline.connect_done(info.get("exception"))
    elif prefix == "connection.start_tls":
        if step == "started":
            timeline.tls_handshake_start()
        elif step == "complete":
            timeline.tls_handshake_done()
        elif step == "failed":
            timeline.tls_handshake_done(info.get("exception"))
    elif prefix in ("http11.send_request_headers", "http2.send_request_headers"):
        if step == "started":
            timeline.got_conn()
    elif prefix in ("http11.receive_response_headers", "http2.receive_response_headers"):
        if step == "complete":
            timeline.got_first_response_byte()


def trace_callback(timeline: EventTimeline, chained: Optional[TraceFunc] = None) -> TraceFunc:
    """Build a sync ``httpcore`` trace extension recording into ``timeline``.

    Args:
        timeline: Timeline owned by the current round trip.
        chained: Trace extension already present on the request; it keeps
            receiving every event after the timeline has recorded it.
    """

    def trace(name: str, info: Mapping[str, Any]) -> None:
        _dispatch(timeline, name, info)
        if chained is not None:
            chained(name, info)

    return trace


def async_trace_callback(
    timeline: EventTimeline, chained: Optional[AsyncTraceFunc] = None
) -> AsyncTraceFunc:
    """Async counterpart of :func:`trace_callback` for async transports."""

    async def trace(name: str, info: Mapping[str, Any]) -> None:
        _dispatch(timeline, name, info)
        if chained is not None:
            await chained(name, info)

    return trace
