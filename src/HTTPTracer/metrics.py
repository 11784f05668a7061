"""Phase duration metrics derived from an :class:`EventTimeline`.

Two formula sets exist. Plain HTTP has no handshake, so the TCP phase runs
until the connection is handed to the request; HTTPS ends the TCP phase at
connect completion and reports the handshake and pre-transfer separately.
Any scheme other than ``"https"`` uses the HTTP set.

All durations are integer nanoseconds. A duration whose endpoints were never
recorded is ``0``; out-of-order instants yield negative values rather than
errors, since metrics are best-effort for aborted round trips.

The calculators only read the timeline. Leading instants skipped by a reused
connection or a dial without lookup must be filled beforehand with
:meth:`EventTimeline.apply_backfill`; the tracer does so once the round trip
has finished.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Optional

from HTTPTracer.timeline import EventTimeline, Slot

METRIC_FIELDS = (
    ("dns_lookup", "dns-lookup"),
    ("tcp_connection", "tcp-connection"),
    ("tls_handshake", "tls-handshake"),
    ("server_processing", "server-processing"),
    ("content_transfer", "content-transfer"),
    ("name_lookup", "name-lookup"),
    ("connect", "connect"),
    ("pre_transfer", "pre-transfer"),
    ("start_transfer", "start-transfer"),
    ("total", "total"),
)


@dataclass(frozen=True)
class PhaseMetrics:
    """Request phase durations in nanoseconds."""

    dns_lookup: int = 0
    tcp_connection: int = 0
    tls_handshake: int = 0
    server_processing: int = 0
    content_transfer: int = 0
    name_lookup: int = 0
    connect: int = 0
    pre_transfer: int = 0
    start_transfer: int = 0
    total: int = 0

    def to_dict(self) -> Dict[str, int]:
        """Serialize using the hyphenated wire names (``dns-lookup`` ...)."""
        values = asdict(self)
        return {wire: values[attr] for attr, wire in METRIC_FIELDS}


def _between(start: Optional[int], end: Optional[int]) -> int:
    if start is None or end is None:
        return 0
    return end - start


def http_metrics(timeline: EventTimeline) -> PhaseMetrics:
    """Compute metrics for a plain HTTP round trip (no TLS)."""
    t = timeline
    start = t[Slot.DNS_START]
    dns_done = t[Slot.DNS_DONE]
    got_conn = t[Slot.GOT_CONN]
    first_byte = t[Slot.GOT_FIRST_RESPONSE_BYTE]
    end = t[Slot.REQUEST_END]
    return PhaseMetrics(
        dns_lookup=_between(start, dns_done),
        tcp_connection=_between(dns_done, got_conn),
        server_processing=_between(got_conn, first_byte),
        content_transfer=_between(first_byte, end),
        name_lookup=_between(start, dns_done),
        connect=_between(start, got_conn),
        start_transfer=_between(start, first_byte),
        total=_between(start, end),
    )


def https_metrics(timeline: EventTimeline) -> PhaseMetrics:
    """Compute metrics for an HTTPS round trip."""
    t = timeline
    start = t[Slot.DNS_START]
    dns_done = t[Slot.DNS_DONE]
    connect_done = t[Slot.CONNECT_DONE]
    got_conn = t[Slot.GOT_CONN]
    first_byte = t[Slot.GOT_FIRST_RESPONSE_BYTE]
    end = t[Slot.REQUEST_END]
    return PhaseMetrics(
        dns_lookup=_between(start, dns_done),
        tcp_connection=_between(dns_done, connect_done),
        tls_handshake=_between(t[Slot.TLS_START], t[Slot.TLS_DONE]),
        server_processing=_between(got_conn, first_byte),
        content_transfer=_between(first_byte, end),
        name_lookup=_between(start, dns_done),
        connect=_between(start, connect_done),
        pre_transfer=_between(start, got_conn),
        start_transfer=_between(start, first_byte),
        total=_between(start, end),
    )


def compute_metrics(timeline: EventTimeline, scheme: str) -> PhaseMetrics:
    """Compute metrics for ``scheme`` without modifying ``timeline``."""
    if scheme == "https":
        return https_metrics(timeline)
    return http_metrics(timeline)
