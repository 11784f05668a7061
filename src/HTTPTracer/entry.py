"""Trace entry record produced once per traced round trip."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from HTTPTracer.dump import Dump
from HTTPTracer.metrics import PhaseMetrics


def describe_error(error: BaseException) -> str:
    """Render an exception as ``"TypeName: message"`` for serialization."""
    message = str(error)
    name = type(error).__name__
    return f"{name}: {message}" if message else name


@dataclass(frozen=True)
class TraceEntry:
    """Immutable summary of one round trip.

    Attributes:
        time: Wall-clock instant (UTC) at which the request started.
        request: Request dump, as lines or raw text.
        response: Response dump; empty when the round trip failed.
        metrics: Phase durations in nanoseconds.
        error: Transport error raised by the wrapped transport, if any.
    """

    time: datetime
    request: Dump = field(default_factory=list)
    response: Dump = field(default_factory=list)
    metrics: PhaseMetrics = field(default_factory=PhaseMetrics)
    error: Optional[BaseException] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary; ``error`` is omitted when absent."""
        payload: Dict[str, Any] = {
            "time": self.time.isoformat(),
            "request": self.request,
            "response": self.response,
            "metrics": self.metrics.to_dict(),
        }
        if self.error is not None:
            payload["error"] = describe_error(self.error)
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)
