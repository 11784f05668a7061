# === NAVMAP v1 ===
# {
#   "module": "HTTPTracer.transport",
#   "purpose": "Tracing transports wrapping httpx transports.",
#   "sections": [
#     {
#       "id": "tracingtransport",
#       "name": "TracingTransport",
#       "anchor": "class-tracingtransport",
#       "kind": "class"
#     },
#     {
#       "id": "asynctracingtransport",
#       "name": "AsyncTracingTransport",
#       "anchor": "class-asynctracingtransport",
#       "kind": "class"
#     },
#     {
#       "id": "trace-client",
#       "name": "trace_client",
#       "anchor": "function-trace-client",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Tracing transports for HTTPX clients.

Responsibilities
----------------
- Wrap any :class:`httpx.BaseTransport` (or async transport) and remain a
  drop-in transport itself, so a traced client behaves exactly like the
  untraced one.
- Per round trip: dump the request, time the lifecycle through the
  ``httpcore`` ``trace`` extension, dump the response, derive phase metrics
  and deliver a :class:`TraceEntry` to the configured sink and callback.
- Hand the wrapped transport's response back unchanged, or re-raise its
  exception unchanged.

Design Notes
------------
- Every ``handle_request`` call allocates its own :class:`EventTimeline`;
  the transport itself holds only immutable options, so one traced client can
  be shared across threads or tasks without locking.
- Delivery runs synchronously on the caller's path once the round trip has
  completed. Sink and callback failures are logged and never reach the
  caller.
- With body capture enabled the response body is buffered so it can be
  dumped; the caller receives an equivalent response over the buffered
  bytes.
"""

from __future__ import annotations

import inspect
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple, Union

import httpx

from HTTPTracer.config import TracerOptions, resolve_options
from HTTPTracer.dump import dump_request, dump_response, format_dump
from HTTPTracer.entry import TraceEntry
from HTTPTracer.errors import ConfigurationError
from HTTPTracer.metrics import compute_metrics
from HTTPTracer.resolver import (
    active_trace,
    build_async_transport,
    build_transport,
    install_resolver,
)
from HTTPTracer.timeline import EventTimeline, async_trace_callback, trace_callback

LOGGER = logging.getLogger(__name__)

_TRACE_KEY = "trace"


def _restore_trace(request: httpx.Request, chained: Any) -> None:
    if chained is None:
        request.extensions.pop(_TRACE_KEY, None)
    else:
        request.extensions[_TRACE_KEY] = chained


def _rebuild(response: httpx.Response, raw: bytes) -> httpx.Response:
    return httpx.Response(
        status_code=response.status_code,
        headers=response.headers,
        stream=httpx.ByteStream(raw),
        extensions=response.extensions,
    )


class _TracerBase:
    """Entry assembly and delivery shared by the sync and async transports."""

    options: TracerOptions

    def _build_entry(
        self,
        started: datetime,
        request: httpx.Request,
        request_dump: str,
        timeline: EventTimeline,
        response: Optional[httpx.Response] = None,
        body: Optional[bytes] = None,
        error: Optional[BaseException] = None,
    ) -> TraceEntry:
        opts = self.options
        response_dump = ""
        if error is None and response is not None:
            response_dump = dump_response(response, opts.capture_bodies, body)
        if timeline.error is not None and error is None:
            LOGGER.debug(
                "connect-attempt-failed",
                extra={"url": str(request.url), "error": str(timeline.error)},
            )
        timeline.apply_backfill()
        metrics = compute_metrics(timeline, request.url.scheme)
        entry = TraceEntry(
            time=started,
            request=format_dump(request_dump, opts.split_lines),
            response=format_dump(response_dump, opts.split_lines),
            metrics=metrics,
            error=error,
        )
        LOGGER.debug(
            "trace-entry",
            extra={
                "method": request.method,
                "url": str(request.url),
                "status": response.status_code if response is not None and error is None else None,
                "total_ms": metrics.total / 1e6,
                "error": str(error) if error is not None else None,
            },
        )
        return entry

    def _write_entry(self, entry: TraceEntry) -> bool:
        sink = self.options.sink
        if sink is None:
            return True
        try:
            sink.write(entry.to_json().encode("utf-8") + b"\n")
        except Exception as exc:
            LOGGER.warning(
                "trace-sink-write-failed", extra={"sink": repr(sink), "error": str(exc)}
            )
            return False
        return True

    def _should_notify(self, written: bool) -> bool:
        if self.options.on_entry is None:
            return False
        return written or not self.options.callback_requires_sink_write

    def _deliver(self, entry: TraceEntry) -> None:
        written = self._write_entry(entry)
        if not self._should_notify(written):
            return
        try:
            self.options.on_entry(entry)
        except Exception:
            LOGGER.error("trace-callback-failed", exc_info=True)


# ============================================================================
# Sync transport
# ============================================================================


class TracingTransport(_TracerBase, httpx.BaseTransport):
    """HTTPX transport decorator emitting one :class:`TraceEntry` per request.

    Args:
        transport: Transport to wrap. Defaults to an
            :class:`httpx.HTTPTransport` with DNS timing enabled.
        options: Base :class:`TracerOptions`.
        **kwargs: Individual option overrides (``sink``, ``on_entry``,
            ``capture_bodies``, ``split_lines``,
            ``callback_requires_sink_write``).

    Example:
        >>> transport = TracingTransport(sink=open("trace.jsonl", "ab"))
        >>> client = httpx.Client(transport=transport)
    """

    def __init__(
        self,
        transport: Optional[httpx.BaseTransport] = None,
        options: Optional[TracerOptions] = None,
        **kwargs: Any,
    ) -> None:
        self._inner = transport if transport is not None else build_transport()
        self.options = resolve_options(options, **kwargs)
        if inspect.iscoroutinefunction(self.options.on_entry):
            raise ConfigurationError(
                "on_entry is a coroutine function; use AsyncTracingTransport to await it"
            )

    @property
    def inner(self) -> httpx.BaseTransport:
        return self._inner

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        timeline = EventTimeline()
        started = datetime.now(timezone.utc)
        request_dump = dump_request(request, self.options.capture_bodies)

        chained = request.extensions.get(_TRACE_KEY)
        callback = trace_callback(timeline, chained)
        request.extensions[_TRACE_KEY] = callback
        try:
            with active_trace(callback):
                response = self._inner.handle_request(request)
        except BaseException as exc:
            timeline.finish()
            self._deliver(self._build_entry(started, request, request_dump, timeline, error=exc))
            raise
        finally:
            _restore_trace(request, chained)
        timeline.finish()

        body = None
        if self.options.capture_bodies:
            try:
                body, response = self._buffer(response)
            except BaseException as exc:
                self._deliver(
                    self._build_entry(started, request, request_dump, timeline, error=exc)
                )
                raise

        self._deliver(
            self._build_entry(started, request, request_dump, timeline, response, body)
        )
        return response

    @staticmethod
    def _buffer(response: httpx.Response) -> Tuple[bytes, httpx.Response]:
        if response.is_stream_consumed:
            # in-memory response, already loaded
            return response.content, response
        try:
            raw = b"".join(response.iter_raw())
        finally:
            response.close()
        return raw, _rebuild(response, raw)

    def close(self) -> None:
        self._inner.close()


# ============================================================================
# Async transport
# ============================================================================


class AsyncTracingTransport(_TracerBase, httpx.AsyncBaseTransport):
    """Async counterpart of :class:`TracingTransport`.

    ``on_entry`` may be a coroutine function; it is awaited on the request
    path like the sync callback is called.
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        options: Optional[TracerOptions] = None,
        **kwargs: Any,
    ) -> None:
        self._inner = transport if transport is not None else build_async_transport()
        self.options = resolve_options(options, **kwargs)

    @property
    def inner(self) -> httpx.AsyncBaseTransport:
        return self._inner

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        timeline = EventTimeline()
        started = datetime.now(timezone.utc)
        if self.options.capture_bodies:
            try:
                await request.aread()
            except Exception as exc:
                LOGGER.debug("request-body-read-failed", extra={"error": str(exc)})
        request_dump = dump_request(request, self.options.capture_bodies)

        chained = request.extensions.get(_TRACE_KEY)
        callback = async_trace_callback(timeline, chained)
        request.extensions[_TRACE_KEY] = callback
        try:
            with active_trace(callback):
                response = await self._inner.handle_async_request(request)
        except BaseException as exc:
            timeline.finish()
            await self._adeliver(
                self._build_entry(started, request, request_dump, timeline, error=exc)
            )
            raise
        finally:
            _restore_trace(request, chained)
        timeline.finish()

        body = None
        if self.options.capture_bodies:
            try:
                body, response = await self._abuffer(response)
            except BaseException as exc:
                await self._adeliver(
                    self._build_entry(started, request, request_dump, timeline, error=exc)
                )
                raise

        await self._adeliver(
            self._build_entry(started, request, request_dump, timeline, response, body)
        )
        return response

    async def _adeliver(self, entry: TraceEntry) -> None:
        written = self._write_entry(entry)
        if not self._should_notify(written):
            return
        try:
            result = self.options.on_entry(entry)
            if inspect.isawaitable(result):
                await result
        except Exception:
            LOGGER.error("trace-callback-failed", exc_info=True)

    @staticmethod
    async def _abuffer(response: httpx.Response) -> Tuple[bytes, httpx.Response]:
        if response.is_stream_consumed:
            return response.content, response
        chunks: List[bytes] = []
        try:
            async for chunk in response.aiter_raw():
                chunks.append(chunk)
        finally:
            await response.aclose()
        raw = b"".join(chunks)
        return raw, _rebuild(response, raw)

    async def aclose(self) -> None:
        await self._inner.aclose()


# ============================================================================
# Client helper
# ============================================================================


def trace_client(
    client: Union[httpx.Client, httpx.AsyncClient],
    options: Optional[TracerOptions] = None,
    **kwargs: Any,
) -> Union[httpx.Client, httpx.AsyncClient]:
    """Wrap the transports of an existing client in place and return it.

    The default transport and every mounted transport are wrapped, so proxied
    and non-proxied requests are traced alike. Stock HTTPX transports also get
    the DNS-timing backend installed, so the lookup phase is reported instead
    of being counted as TCP connection time.
    """
    effective = resolve_options(options, **kwargs)
    wrapper = AsyncTracingTransport if isinstance(client, httpx.AsyncClient) else TracingTransport

    def wrap(transport: Any) -> Any:
        return wrapper(install_resolver(transport), effective)

    client._transport = wrap(client._transport)
    client._mounts = {
        pattern: (wrap(mounted) if mounted is not None else None)
        for pattern, mounted in client._mounts.items()
    }
    return client
