"""
Append-only ledger sinks.

A sink receives the per-venue debug trace (every request/response pair and
stage change) and the single ``ExecutionResult`` of each attempt. Sinks
must never break an execution: write failures are logged and dropped.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from venue_exec.config import LedgerConfig, get_ledger_config
from venue_exec.contracts import ExecutionResult

logger = logging.getLogger(__name__)

_SENSITIVE_KEYS = re.compile(
    r"(api_?key|api_?secret|secret|private_?key|password|credentials|x-bapi-api-key)",
    re.IGNORECASE,
)

REDACTED = "***REDACTED***"


def scrub_payload(payload: Any) -> Any:
    """Recursively redact credential-like keys in dicts and lists."""
    if isinstance(payload, dict):
        scrubbed: Dict[str, Any] = {}
        for key, value in payload.items():
            if isinstance(key, str) and _SENSITIVE_KEYS.search(key):
                scrubbed[key] = REDACTED
            else:
                scrubbed[key] = scrub_payload(value)
        return scrubbed
    if isinstance(payload, (list, tuple)):
        return [scrub_payload(item) for item in payload]
    return payload


class LedgerSink(Protocol):
    def trace(self, venue: str, event: str, payload: Dict[str, Any]) -> None:
        ...

    def record(self, result: ExecutionResult) -> None:
        ...


@dataclass(frozen=True)
class TraceEntry:
    venue: str
    event: str
    payload: Dict[str, Any]
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_json(self) -> str:
        data = {
            "timestamp": self.timestamp,
            "venue": self.venue,
            "event": self.event,
            "payload": scrub_payload(self.payload),
        }
        return json.dumps(data, separators=(",", ":"), default=str)


def result_to_json(result: ExecutionResult) -> str:
    data = scrub_payload(result.model_dump(mode="json"))
    return json.dumps(data, separators=(",", ":"), default=str)


class InMemoryLedgerSink:
    """Buffers traces and results; used by tests and when the ledger is disabled."""

    def __init__(self) -> None:
        self._traces: List[TraceEntry] = []
        self._results: List[ExecutionResult] = []

    def trace(self, venue: str, event: str, payload: Dict[str, Any]) -> None:
        self._traces.append(TraceEntry(venue=venue, event=event, payload=scrub_payload(payload)))

    def record(self, result: ExecutionResult) -> None:
        self._results.append(result)

    def get_traces(self, event: Optional[str] = None) -> List[TraceEntry]:
        return [t for t in self._traces if event is None or t.event == event]

    def get_results(self) -> List[ExecutionResult]:
        return list(self._results)

    def clear(self) -> None:
        self._traces.clear()
        self._results.clear()


class FileLedgerSink:
    """
    ``<trace_dir>/<venue>_debug.log`` for traces, one JSON object per line,
    and ``ledger_path`` for results, one ``ExecutionResult`` per line.
    """

    def __init__(self, trace_dir: str | Path, ledger_path: str | Path) -> None:
        self._trace_dir = Path(trace_dir)
        self._ledger_path = Path(ledger_path)
        self._lock = threading.Lock()

    @property
    def ledger_path(self) -> Path:
        return self._ledger_path

    def trace_path(self, venue: str) -> Path:
        return self._trace_dir / f"{venue}_debug.log"

    def trace(self, venue: str, event: str, payload: Dict[str, Any]) -> None:
        self._append(self.trace_path(venue), TraceEntry(venue=venue, event=event, payload=payload).to_json())

    def record(self, result: ExecutionResult) -> None:
        line = result_to_json(result)
        self._append(self._ledger_path, line)
        self._append(self.trace_path(result.venue.value), TraceEntry(
            venue=result.venue.value, event="result", payload=json.loads(line)
        ).to_json())

    def _append(self, path: Path, line: str) -> None:
        # Executions running on worker threads share one sink.
        try:
            with self._lock:
                path.parent.mkdir(parents=True, exist_ok=True)
                with path.open("a", encoding="utf-8") as handle:
                    handle.write(line + "\n")
        except OSError as exc:
            logger.warning("Ledger append to %s failed: %s", path, exc)


def build_default_sink(config: Optional[LedgerConfig] = None) -> LedgerSink:
    cfg = config or get_ledger_config()
    if not cfg.enabled:
        return InMemoryLedgerSink()
    return FileLedgerSink(cfg.trace_dir, cfg.ledger_path)
