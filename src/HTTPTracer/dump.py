"""Wire-style text dumps of ``httpx`` requests and responses.

The dump mirrors what an HTTP/1.1 client would put on the wire: a start line,
one ``Name: value`` line per header, a blank line and, when body capture is
enabled, the body decoded with the message charset (undecodable bytes are
replaced). Dumping is diagnostic only: any failure is logged and yields an
empty dump so it can never abort the traced round trip.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Union

import httpx

logger = logging.getLogger(__name__)

Dump = Union[List[str], str]

_CRLF = "\r\n"


def _header_lines(headers: httpx.Headers) -> List[str]:
    return [
        f"{name.decode('latin-1')}: {value.decode('latin-1')}" for name, value in headers.raw
    ]


def _decode_body(body: bytes, charset: Optional[str]) -> str:
    try:
        return body.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


def _assemble(start_line: str, headers: httpx.Headers, body: Optional[str]) -> str:
    head = _CRLF.join([start_line, *_header_lines(headers)])
    return f"{head}{_CRLF}{_CRLF}{body or ''}"


def _request_target(request: httpx.Request) -> str:
    target = request.url.raw_path.decode("ascii")
    return target or "/"


def dump_lines(text: str) -> List[str]:
    """Split a dump into lines, dropping line terminators."""
    if not text:
        return []
    return text.splitlines()


def dump_request(request: httpx.Request, capture_bodies: bool = False) -> str:
    """Return the wire-style dump of ``request``.

    With ``capture_bodies`` the request body is read (buffering a streaming
    body in place so it can still be sent) and appended after the headers.
    """
    try:
        body = None
        if capture_bodies:
            body = _decode_body(request.read(), _charset(request.headers))
        start_line = f"{request.method} {_request_target(request)} HTTP/1.1"
        return _assemble(start_line, request.headers, body)
    except Exception as exc:
        logger.debug("request-dump-failed", extra={"url": str(request.url), "error": str(exc)})
        return ""


def dump_response(
    response: httpx.Response, capture_bodies: bool = False, body: Optional[bytes] = None
) -> str:
    """Return the wire-style dump of ``response``.

    Args:
        response: Response returned by the transport.
        capture_bodies: Whether to include the body.
        body: Raw body bytes already buffered by the caller. Required for the
            body to appear; the response stream itself is never consumed here.
    """
    try:
        text = None
        if capture_bodies and body is not None:
            text = _decode_body(body, response.charset_encoding)
        reason = response.reason_phrase
        start_line = f"{response.http_version} {response.status_code}"
        if reason:
            start_line = f"{start_line} {reason}"
        return _assemble(start_line, response.headers, text)
    except Exception as exc:
        logger.debug(
            "response-dump-failed",
            extra={"status": getattr(response, "status_code", None), "error": str(exc)},
        )
        return ""


def format_dump(text: str, split_lines: bool = True) -> Dump:
    """Return ``text`` as a list of lines or unchanged, per ``split_lines``."""
    if split_lines:
        return dump_lines(text)
    return text


def _charset(headers: httpx.Headers) -> Optional[str]:
    content_type = headers.get("content-type", "")
    for param in content_type.split(";")[1:]:
        key, _, value = param.strip().partition("=")
        if key.lower() == "charset" and value:
            return value.strip("'\"")
    return None
