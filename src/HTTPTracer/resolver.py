"""DNS-timing network backends for ``httpcore``.

``httpcore`` resolves host names inside ``connect_tcp``, so its trace
extension never reports a separate DNS phase. The backends here resolve the
name up front with ``getaddrinfo``, report ``dns.resolve.started`` /
``dns.resolve.complete`` / ``dns.resolve.failed`` to the trace callback of the
round trip in flight, and then dial the resolved addresses in order through
the wrapped backend.

Responsibilities
----------------
- Keep literal IP hosts untouched: no lookup, no DNS events.
- Surface resolution failures as :class:`httpcore.ConnectError`, which
  ``httpx`` maps to :class:`httpx.ConnectError`.
- Install into an ``httpx`` transport via :func:`install_resolver`,
  :func:`build_transport` or :func:`build_async_transport`.

Design Notes
------------
- Backends are shared by every connection of a pool, so the active trace
  callback is looked up from a :class:`contextvars.ContextVar` that the
  tracer sets only for the duration of one delegated call. Each thread and
  each asyncio task sees its own value, so concurrent round trips never
  report into each other's timeline.
"""

from __future__ import annotations

import contextlib
import contextvars
import ipaddress
import logging
import socket
from typing import Any, Iterable, Iterator, List, Optional, Tuple

import anyio
import httpcore
import httpx

from HTTPTracer.timeline import AsyncTraceFunc, TraceFunc

logger = logging.getLogger(__name__)

_ACTIVE_TRACE: contextvars.ContextVar[Optional[Any]] = contextvars.ContextVar(
    "httptracer_active_trace", default=None
)

SocketOption = Any


@contextlib.contextmanager
def active_trace(callback: Any) -> Iterator[None]:
    """Expose ``callback`` to resolving backends for the enclosed call only."""
    token = _ACTIVE_TRACE.set(callback)
    try:
        yield
    finally:
        _ACTIVE_TRACE.reset(token)


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        return False
    return True


def _unique_hosts(infos: Iterable[Tuple[Any, ...]]) -> List[str]:
    hosts: List[str] = []
    for _family, _type, _proto, _canonname, sockaddr in infos:
        address = str(sockaddr[0])
        if address not in hosts:
            hosts.append(address)
    return hosts


# ============================================================================
# Sync backend
# ============================================================================


class ResolvingBackend(httpcore.NetworkBackend):
    """Sync backend timing name resolution before delegating the dial."""

    def __init__(self, inner: Optional[httpcore.NetworkBackend] = None) -> None:
        self._inner = inner or httpcore.SyncBackend()

    def _emit(self, name: str, info: dict) -> None:
        trace: Optional[TraceFunc] = _ACTIVE_TRACE.get()
        if trace is not None:
            trace(name, info)

    def resolve(self, host: str, port: int) -> List[str]:
        self._emit("dns.resolve.started", {"host": host, "port": port})
        try:
            infos = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
        except OSError as exc:
            self._emit("dns.resolve.failed", {"exception": exc})
            logger.debug("dns-resolve-failed", extra={"host": host, "error": str(exc)})
            raise httpcore.ConnectError(str(exc)) from exc
        addresses = _unique_hosts(infos)
        self._emit("dns.resolve.complete", {"return_value": addresses})
        return addresses

    def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None,
        local_address: Optional[str] = None,
        socket_options: Optional[Iterable[SocketOption]] = None,
    ) -> httpcore.NetworkStream:
        if _is_ip_literal(host):
            addresses = [host]
        else:
            addresses = self.resolve(host, port)

        options = list(socket_options) if socket_options is not None else None
        last_error: Optional[Exception] = None
        for address in addresses:
            try:
                return self._inner.connect_tcp(
                    address,
                    port,
                    timeout=timeout,
                    local_address=local_address,
                    socket_options=options,
                )
            except (httpcore.ConnectError, httpcore.ConnectTimeout) as exc:
                last_error = exc
        assert last_error is not None
        raise last_error

    def connect_unix_socket(
        self,
        path: str,
        timeout: Optional[float] = None,
        socket_options: Optional[Iterable[SocketOption]] = None,
    ) -> httpcore.NetworkStream:
        return self._inner.connect_unix_socket(path, timeout=timeout, socket_options=socket_options)

    def sleep(self, seconds: float) -> None:
        self._inner.sleep(seconds)


# ============================================================================
# Async backend
# ============================================================================


class AsyncResolvingBackend(httpcore.AsyncNetworkBackend):
    """Async counterpart of :class:`ResolvingBackend`."""

    def __init__(self, inner: Optional[httpcore.AsyncNetworkBackend] = None) -> None:
        self._inner = inner or httpcore.AnyIOBackend()

    async def _emit(self, name: str, info: dict) -> None:
        trace: Optional[AsyncTraceFunc] = _ACTIVE_TRACE.get()
        if trace is not None:
            await trace(name, info)

    async def resolve(self, host: str, port: int) -> List[str]:
        await self._emit("dns.resolve.started", {"host": host, "port": port})
        try:
            infos = await anyio.getaddrinfo(host, port, type=socket.SOCK_STREAM)
        except OSError as exc:
            await self._emit("dns.resolve.failed", {"exception": exc})
            logger.debug("dns-resolve-failed", extra={"host": host, "error": str(exc)})
            raise httpcore.ConnectError(str(exc)) from exc
        addresses = _unique_hosts(infos)
        await self._emit("dns.resolve.complete", {"return_value": addresses})
        return addresses

    async def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None,
        local_address: Optional[str] = None,
        socket_options: Optional[Iterable[SocketOption]] = None,
    ) -> httpcore.AsyncNetworkStream:
        if _is_ip_literal(host):
            addresses = [host]
        else:
            addresses = await self.resolve(host, port)

        options = list(socket_options) if socket_options is not None else None
        last_error: Optional[Exception] = None
        for address in addresses:
            try:
                return await self._inner.connect_tcp(
                    address,
                    port,
                    timeout=timeout,
                    local_address=local_address,
                    socket_options=options,
                )
            except (httpcore.ConnectError, httpcore.ConnectTimeout) as exc:
                last_error = exc
        assert last_error is not None
        raise last_error

    async def connect_unix_socket(
        self,
        path: str,
        timeout: Optional[float] = None,
        socket_options: Optional[Iterable[SocketOption]] = None,
    ) -> httpcore.AsyncNetworkStream:
        return await self._inner.connect_unix_socket(
            path, timeout=timeout, socket_options=socket_options
        )

    async def sleep(self, seconds: float) -> None:
        await self._inner.sleep(seconds)


# ============================================================================
# Transport factories
# ============================================================================


def install_resolver(transport: Any) -> Any:
    """Install the DNS-timing backend into a stock HTTPX transport in place.

    Only :class:`httpx.HTTPTransport` and :class:`httpx.AsyncHTTPTransport`
    are patched; any other transport, or one already patched, is returned
    unchanged.
    """
    if isinstance(transport, httpx.HTTPTransport):
        pool = transport._pool
        if not isinstance(pool._network_backend, ResolvingBackend):
            pool._network_backend = ResolvingBackend(pool._network_backend)
    elif isinstance(transport, httpx.AsyncHTTPTransport):
        pool = transport._pool
        if not isinstance(pool._network_backend, AsyncResolvingBackend):
            pool._network_backend = AsyncResolvingBackend(pool._network_backend)
    return transport


def build_transport(resolve_dns: bool = True, **kwargs: Any) -> httpx.HTTPTransport:
    """Create an :class:`httpx.HTTPTransport`, timing DNS when ``resolve_dns``.

    Keyword arguments are passed to :class:`httpx.HTTPTransport` unchanged.
    """
    transport = httpx.HTTPTransport(**kwargs)
    if resolve_dns:
        install_resolver(transport)
    return transport


def build_async_transport(resolve_dns: bool = True, **kwargs: Any) -> httpx.AsyncHTTPTransport:
    """Async counterpart of :func:`build_transport`."""
    transport = httpx.AsyncHTTPTransport(**kwargs)
    if resolve_dns:
        install_resolver(transport)
    return transport
