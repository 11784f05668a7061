"""Destinations for serialized trace entries.

The tracer writes one newline-terminated JSON object per round trip to any
object exposing ``write(bytes)``; a binary file or :class:`io.BytesIO` works
as-is. The sinks here add thread safety and common destinations:

- StreamSink: lock-guarded writes to a binary stream, flushed per entry
- JsonlFileSink: append-only JSONL file with size/line-count rotation
- LoggingSink: one log record per entry

Sinks raise :class:`SinkWriteError` when a write fails; the tracer logs the
failure and carries on with the round trip.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Optional, Union

from HTTPTracer.errors import SinkWriteError

logger = logging.getLogger(__name__)


# ============================================================================
# Stream Sink
# ============================================================================


class StreamSink:
    """Write payloads to a binary stream, one flush per entry."""

    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream
        self.lock = threading.Lock()

    def write(self, data: bytes) -> int:
        try:
            with self.lock:
                written = self.stream.write(data)
                self.stream.flush()
        except (OSError, ValueError) as exc:
            raise SinkWriteError(
                f"Error writing trace entry: {exc}", destination=repr(self.stream)
            ) from exc
        return written if written is not None else len(data)


# ============================================================================
# File JSONL Sink
# ============================================================================


class JsonlFileSink:
    """Append-only JSONL file with optional rotation.

    Args:
        filepath: Path to output file; parent directories are created.
        max_size_bytes: Rotate when file exceeds this size (None = 100 MB)
        max_lines: Rotate when file exceeds this line count (None = 100K)
    """

    def __init__(
        self,
        filepath: Union[str, Path],
        max_size_bytes: Optional[int] = None,
        max_lines: Optional[int] = None,
    ) -> None:
        self.filepath = Path(filepath)
        self.max_size_bytes = max_size_bytes or 100 * 1024 * 1024
        self.max_lines = max_lines or 100000
        self.line_count = 0
        self.lock = threading.Lock()

        self.filepath.parent.mkdir(parents=True, exist_ok=True)

        if self.filepath.exists():
            try:
                with open(self.filepath, "rb") as f:
                    self.line_count = sum(1 for _ in f)
            except OSError as e:
                logger.warning(f"Could not count existing lines: {e}")

    def write(self, data: bytes) -> int:
        """Append ``data`` (one JSON line) to the file."""
        try:
            with self.lock:
                if self._should_rotate():
                    self._rotate()

                with open(self.filepath, "ab") as f:
                    f.write(data)
                    f.flush()

                self.line_count += data.count(b"\n") or 1
        except OSError as exc:
            raise SinkWriteError(
                f"Error writing trace entry: {exc}", destination=str(self.filepath)
            ) from exc
        return len(data)

    def _should_rotate(self) -> bool:
        if self.line_count >= self.max_lines:
            return True
        if self.filepath.exists() and self.filepath.stat().st_size >= self.max_size_bytes:
            return True
        return False

    def _rotate(self) -> None:
        if not self.filepath.exists():
            return

        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S-%f")
        backup_path = self.filepath.parent / f"{self.filepath.stem}.{timestamp}.jsonl"

        self.filepath.rename(backup_path)
        logger.info(f"Rotated trace file to {backup_path}")
        self.line_count = 0


# ============================================================================
# Logging Sink
# ============================================================================


class LoggingSink:
    """Emit each serialized entry as a log record."""

    def __init__(self, logger_: Optional[logging.Logger] = None, level: int = logging.INFO) -> None:
        self.logger = logger_ or logging.getLogger("HTTPTracer.trace")
        self.level = level

    def write(self, data: bytes) -> int:
        self.logger.log(self.level, data.decode("utf-8", errors="replace").rstrip("\n"))
        return len(data)
