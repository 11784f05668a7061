"""Request/response dump formatting."""

from __future__ import annotations

import httpx

from HTTPTracer.dump import dump_lines, dump_request, dump_response, format_dump


def _form_request() -> httpx.Request:
    return httpx.Request(
        "POST",
        "http://example.org/echo?lang=en",
        headers={"Content-Type": "application/x-www-form-urlencoded;charset=utf-8"},
        content=b"username=John+Doe",
    )


def test_request_dump_without_bodies_omits_body() -> None:
    lines = dump_lines(dump_request(_form_request(), capture_bodies=False))

    assert lines[0] == "POST /echo?lang=en HTTP/1.1"
    assert "Host: example.org" in lines
    assert "Content-Type: application/x-www-form-urlencoded;charset=utf-8" in lines
    assert lines[-1] == ""
    assert not any("John" in line for line in lines)


def test_request_dump_with_bodies_includes_body_verbatim() -> None:
    lines = dump_lines(dump_request(_form_request(), capture_bodies=True))

    assert lines[-1] == "username=John+Doe"


def test_streaming_request_body_stays_sendable_after_dump() -> None:
    request = httpx.Request("PUT", "http://example.org/upload", content=iter([b"a", b"b"]))

    text = dump_request(request, capture_bodies=True)

    assert text.endswith("ab")
    assert request.read() == b"ab"


def test_response_dump_status_line_and_headers() -> None:
    response = httpx.Response(200, headers={"X-Trace": "1"}, content=b"secret body")

    lines = dump_lines(dump_response(response, capture_bodies=False))

    assert lines[0] == "HTTP/1.1 200 OK"
    assert "X-Trace: 1" in lines
    assert not any("secret" in line for line in lines)


def test_response_dump_with_buffered_body() -> None:
    response = httpx.Response(404, headers={"Content-Type": "text/plain; charset=utf-8"})

    lines = dump_lines(dump_response(response, capture_bodies=True, body=b"not here\nat all"))

    assert lines[0] == "HTTP/1.1 404 Not Found"
    assert lines[-2:] == ["not here", "at all"]


def test_response_dump_failure_degrades_to_empty() -> None:
    class Broken:
        status_code = 500

        @property
        def http_version(self):
            raise ValueError("malformed")

    assert dump_response(Broken(), capture_bodies=False) == ""  # type: ignore[arg-type]


def test_request_dump_failure_degrades_to_empty() -> None:
    class Exploding:
        def __iter__(self):
            raise RuntimeError("stream gone")

    request = httpx.Request("POST", "http://example.org/", content=Exploding())

    assert dump_request(request, capture_bodies=True) == ""


def test_format_dump_modes() -> None:
    text = "GET / HTTP/1.1\r\nHost: a\r\n\r\n"

    assert format_dump(text, split_lines=True) == ["GET / HTTP/1.1", "Host: a", ""]
    assert format_dump(text, split_lines=False) == text
    assert dump_lines("") == []
