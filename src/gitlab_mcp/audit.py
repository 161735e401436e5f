"""Structured audit logging.

One JSON line per tool invocation, written to stderr and optionally to a rotating file.
Events never include the access token or argument values.
"""

from __future__ import annotations

import json
import logging
import sys
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any


def new_correlation_id() -> str:
    """Generate a random correlation id for traceability."""
    return uuid.uuid4().hex


def _now_rfc3339() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class AuditEvent:
    """A single audit event."""

    timestamp: str
    correlation_id: str
    operation: str
    target: str
    outcome: str
    reason: str | None
    duration_ms: int | None

    def to_json(self) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.timestamp,
            "correlation_id": self.correlation_id,
            "operation": self.operation,
            "target": self.target,
            "outcome": self.outcome,
        }
        if self.reason is not None:
            payload["reason"] = self.reason
        if self.duration_ms is not None:
            payload["duration_ms"] = self.duration_ms
        return json.dumps(payload, sort_keys=True, separators=(",", ":"))


class AuditLogger:
    """Writes audit events as JSONL to stderr and optionally to a rotating file."""

    def __init__(
        self,
        *,
        sink_path: Path | None,
        max_bytes: int = 5 * 1024 * 1024,
        max_backups: int = 2,
    ) -> None:
        self._file_handler: RotatingFileHandler | None = None
        if sink_path is not None:
            sink_path.parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(
                sink_path,
                maxBytes=max_bytes,
                backupCount=max_backups,
                encoding="utf-8",
                delay=True,
            )
            handler.setFormatter(logging.Formatter("%(message)s"))
            self._file_handler = handler

    def write_event(self, event: AuditEvent) -> None:
        """Write an audit event to stderr and, when configured, to the audit file."""
        line = event.to_json()
        print(line, file=sys.stderr)
        if self._file_handler is not None:
            # RotatingFileHandler reports its own I/O failures via handleError.
            self._file_handler.handle(logging.makeLogRecord({"msg": line, "levelno": logging.INFO}))

    def close(self) -> None:
        if self._file_handler is not None:
            self._file_handler.close()

    def measure_start(self) -> float:
        """Return a monotonic start timestamp for duration measurement."""
        return time.monotonic()

    def measure_duration_ms(self, start: float) -> int:
        """Convert a monotonic start timestamp into elapsed milliseconds."""
        return int((time.monotonic() - start) * 1000)


def build_event(
    *,
    correlation_id: str,
    operation: str,
    target: str,
    outcome: str,
    reason: str | None = None,
    duration_ms: int | None = None,
) -> AuditEvent:
    """Construct an audit event."""
    return AuditEvent(
        timestamp=_now_rfc3339(),
        correlation_id=correlation_id,
        operation=operation,
        target=target,
        outcome=outcome,
        reason=reason,
        duration_ms=duration_ms,
    )
