"""
Statistics for generation sessions.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any


@dataclass
class SessionStats:
    """Statistics for a single generation session.

    Attributes:
        session_id: Client-generated session ID for tracking
        wire_format: Wire encoding used
        streaming: False when the non-streaming fallback was used
        chunks_received: Number of body chunks received
        bytes_received: Number of body bytes received
        records_emitted: Cards delivered to the accumulator
        sink_failures: Number of non-fatal sink failures
        latency_ms: Total latency in milliseconds
        time_to_first_record_ms: Time until the first card was emitted
        outcome: "completed", or the name of the terminal error
    """

    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    wire_format: str | None = None
    streaming: bool = True
    chunks_received: int = 0
    bytes_received: int = 0
    records_emitted: int = 0
    sink_failures: int = 0
    latency_ms: float = 0.0
    time_to_first_record_ms: float | None = None
    outcome: str | None = None

    # Internal timing
    _start_time: float = field(default_factory=time.monotonic, repr=False)
    _first_record_time: float | None = field(default=None, repr=False)

    def record_start(self) -> None:
        """Record the start time."""
        self._start_time = time.monotonic()

    def record_first_record(self) -> None:
        """Record time of the first emitted card."""
        if self._first_record_time is None:
            self._first_record_time = time.monotonic()
            self.time_to_first_record_ms = (self._first_record_time - self._start_time) * 1000

    def record_end(self, outcome: str) -> None:
        """Record the end time and outcome."""
        self.latency_ms = (time.monotonic() - self._start_time) * 1000
        self.outcome = outcome

    def to_dict(self) -> dict[str, Any]:
        """Public fields as a dictionary, for structured logging."""
        return {
            "session_id": self.session_id,
            "wire_format": self.wire_format,
            "streaming": self.streaming,
            "chunks_received": self.chunks_received,
            "bytes_received": self.bytes_received,
            "records_emitted": self.records_emitted,
            "sink_failures": self.sink_failures,
            "latency_ms": round(self.latency_ms, 1),
            "time_to_first_record_ms": (
                round(self.time_to_first_record_ms, 1)
                if self.time_to_first_record_ms is not None
                else None
            ),
            "outcome": self.outcome,
        }
