"""Tests for tracer option resolution."""

from __future__ import annotations

import io
import logging

import pytest

from HTTPTracer.config import EnvironmentOverrides, TracerOptions, resolve_options
from HTTPTracer.errors import ConfigurationError


def test_defaults() -> None:
    options = resolve_options()

    assert options.sink is None
    assert options.on_entry is None
    assert options.capture_bodies is False
    assert options.split_lines is True
    assert options.callback_requires_sink_write is False


def test_environment_overrides_defaults(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    monkeypatch.setenv("HTTPTRACER_CAPTURE_BODIES", "true")
    monkeypatch.setenv("HTTPTRACER_SPLIT_LINES", "0")

    with caplog.at_level(logging.INFO, logger="HTTPTracer.config"):
        options = resolve_options()

    assert options.capture_bodies is True
    assert options.split_lines is False
    messages = [r.getMessage() for r in caplog.records]
    assert "Config overridden: capture_bodies=True" in messages
    assert all(getattr(r, "stage", None) == "config" for r in caplog.records)


def test_explicit_options_win_over_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HTTPTRACER_CAPTURE_BODIES", "true")
    monkeypatch.setenv("HTTPTRACER_SPLIT_LINES", "false")

    options = resolve_options(TracerOptions(capture_bodies=False))

    assert options.capture_bodies is False
    # not set explicitly, so the environment still applies
    assert options.split_lines is False


def test_keyword_arguments_win_over_options() -> None:
    stream = io.BytesIO()
    base = TracerOptions(sink=stream, split_lines=False)

    options = resolve_options(base, split_lines=True, capture_bodies=True)

    assert options.sink is stream
    assert options.split_lines is True
    assert options.capture_bodies is True


def test_options_are_frozen() -> None:
    options = TracerOptions()

    with pytest.raises(Exception):
        options.capture_bodies = True  # type: ignore[misc]


def test_sink_without_write_is_rejected() -> None:
    with pytest.raises(ConfigurationError, match="write"):
        resolve_options(sink=object())


def test_unknown_option_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        resolve_options(verbose=True)


def test_environment_model_reads_prefix(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HTTPTRACER_CALLBACK_REQUIRES_SINK_WRITE", "yes")

    env = EnvironmentOverrides()

    assert env.callback_requires_sink_write is True
    assert env.capture_bodies is None
