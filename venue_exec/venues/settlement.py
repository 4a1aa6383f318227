"""Lifecycle of an on-chain submission."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional

logger = logging.getLogger(__name__)


class SettlementState(str, Enum):
    BUILT = "built"
    SIGNED = "signed"
    BROADCAST = "broadcast"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


TERMINAL_STATES: FrozenSet[SettlementState] = frozenset(
    {SettlementState.CONFIRMED, SettlementState.FAILED, SettlementState.TIMED_OUT}
)

_TRANSITIONS: Dict[Optional[SettlementState], FrozenSet[SettlementState]] = {
    None: frozenset({SettlementState.BUILT}),
    SettlementState.BUILT: frozenset({SettlementState.SIGNED}),
    SettlementState.SIGNED: frozenset({SettlementState.BROADCAST}),
    SettlementState.BROADCAST: frozenset({SettlementState.PENDING}),
    SettlementState.PENDING: TERMINAL_STATES,
}


class IllegalTransitionError(RuntimeError):
    pass


class SettlementTracker:
    """Enforces Built → Signed → Broadcast → Pending → one terminal state."""

    def __init__(self, on_change: Optional[Callable[[SettlementState], None]] = None) -> None:
        self._state: Optional[SettlementState] = None
        self._history: List[Dict[str, str]] = []
        self._on_change = on_change

    @property
    def state(self) -> Optional[SettlementState]:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def history(self) -> List[Dict[str, str]]:
        return list(self._history)

    def advance(self, new_state: SettlementState) -> None:
        allowed = _TRANSITIONS.get(self._state, frozenset())
        if new_state not in allowed:
            current = self._state.value if self._state else "none"
            raise IllegalTransitionError(f"illegal settlement transition {current} -> {new_state.value}")
        self._state = new_state
        self._history.append(
            {"state": new_state.value, "at": datetime.now(timezone.utc).isoformat()}
        )
        logger.debug("Settlement -> %s", new_state.value)
        if self._on_change is not None:
            self._on_change(new_state)
