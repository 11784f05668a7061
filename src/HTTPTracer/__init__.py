"""
HTTP round-trip tracing for HTTPX clients.

Wraps an HTTPX transport and emits one structured trace entry per request:
request/response dumps, per-phase timing (DNS, TCP, TLS, server processing,
content transfer) and the transport error, if any.

Architecture:
- TracingTransport / AsyncTracingTransport decorate any HTTPX transport
- EventTimeline records lifecycle instants from the httpcore trace extension
- compute_metrics() derives phase durations (HTTP and HTTPS formula sets)
- ResolvingBackend adds DNS timing to the default HTTPX transport
- Sinks persist serialized entries (stream, JSONL file, logging)
"""

from .config import TracerOptions, resolve_options
from .dump import dump_lines, dump_request, dump_response
from .entry import TraceEntry
from .errors import ConfigurationError, HTTPTracerError, SinkWriteError
from .metrics import PhaseMetrics, compute_metrics, http_metrics, https_metrics
from .resolver import (
    AsyncResolvingBackend,
    ResolvingBackend,
    build_async_transport,
    build_transport,
    install_resolver,
)
from .sinks import JsonlFileSink, LoggingSink, StreamSink
from .timeline import EventTimeline, Slot, async_trace_callback, trace_callback
from .transport import AsyncTracingTransport, TracingTransport, trace_client

__all__ = [
    # Transports
    "TracingTransport",
    "AsyncTracingTransport",
    "trace_client",
    "build_transport",
    "build_async_transport",
    "install_resolver",
    "ResolvingBackend",
    "AsyncResolvingBackend",
    # Timeline & metrics
    "EventTimeline",
    "Slot",
    "trace_callback",
    "async_trace_callback",
    "PhaseMetrics",
    "compute_metrics",
    "http_metrics",
    "https_metrics",
    # Entries & dumps
    "TraceEntry",
    "dump_request",
    "dump_response",
    "dump_lines",
    # Delivery
    "StreamSink",
    "JsonlFileSink",
    "LoggingSink",
    # Configuration & errors
    "TracerOptions",
    "resolve_options",
    "HTTPTracerError",
    "ConfigurationError",
    "SinkWriteError",
]
