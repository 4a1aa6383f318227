from venue_exec.execution.coordinator import ExecutionCoordinator
from venue_exec.execution.ledger import (
    FileLedgerSink,
    InMemoryLedgerSink,
    LedgerSink,
    build_default_sink,
    scrub_payload,
)

__all__ = [
    "ExecutionCoordinator",
    "FileLedgerSink",
    "InMemoryLedgerSink",
    "LedgerSink",
    "build_default_sink",
    "scrub_payload",
]
