"""Tests for trace entry serialization."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx

from HTTPTracer.entry import TraceEntry, describe_error
from HTTPTracer.metrics import PhaseMetrics

STARTED = datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone.utc)


def test_successful_entry_omits_error() -> None:
    entry = TraceEntry(
        time=STARTED,
        request=["GET / HTTP/1.1", "Host: example.com", ""],
        response=["HTTP/1.1 200 OK", ""],
        metrics=PhaseMetrics(dns_lookup=5, total=42),
    )

    payload = json.loads(entry.to_json())

    assert not entry.failed
    assert set(payload) == {"time", "request", "response", "metrics"}
    assert payload["time"] == "2024-05-01T12:30:00+00:00"
    assert payload["request"][0] == "GET / HTTP/1.1"
    assert payload["metrics"]["dns-lookup"] == 5
    assert payload["metrics"]["total"] == 42


def test_failed_entry_serializes_error() -> None:
    entry = TraceEntry(time=STARTED, error=httpx.ConnectError("connection refused"))

    payload = entry.to_dict()

    assert entry.failed
    assert payload["error"] == "ConnectError: connection refused"
    assert payload["response"] == []
    assert all(value == 0 for value in payload["metrics"].values())


def test_raw_dumps_are_strings() -> None:
    entry = TraceEntry(time=STARTED, request="GET / HTTP/1.1\r\n\r\n", response="")

    payload = json.loads(entry.to_json())

    assert payload["request"] == "GET / HTTP/1.1\r\n\r\n"
    assert payload["response"] == ""


def test_non_ascii_is_kept() -> None:
    entry = TraceEntry(time=STARTED, response=["Hello, Zoë"])

    assert "Zoë" in entry.to_json()


def test_describe_error_without_message() -> None:
    assert describe_error(TimeoutError()) == "TimeoutError"
    assert describe_error(ValueError("bad")) == "ValueError: bad"
