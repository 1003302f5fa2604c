"""
Session state machine — tagged session states, events, and a pure
table-driven transition function.

``transition(state, event)`` never raises and never mutates its inputs.
An event that is not legal for the state comes back as the unchanged state
plus an :class:`~edit_session.errors.InvalidTransitionError`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from .errors import (
    CommitFailureError,
    EditSessionError,
    ErrorKind,
    InvalidTransitionError,
    ValidationFailureError,
)
from .models import ProposedEdit
from .transaction import EditTransaction, TransactionSnapshot


class SessionPhase(Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    PARSING = "parsing"
    PROPOSED = "proposed"
    TRANSACTION_READY = "transaction_ready"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    REJECTED = "rejected"
    ERROR = "error"


_TERMINAL = frozenset({
    SessionPhase.COMMITTED,
    SessionPhase.ROLLED_BACK,
    SessionPhase.REJECTED,
    SessionPhase.ERROR,
})


# ══════════════════════════════════════════════════════════════════
#  States
# ══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SessionState:
    phase = SessionPhase.IDLE

    @property
    def is_terminal(self) -> bool:
        return self.phase in _TERMINAL

    @property
    def proposed_edits(self) -> tuple[ProposedEdit, ...] | None:
        return None


@dataclass(frozen=True)
class Idle(SessionState):
    phase = SessionPhase.IDLE


@dataclass(frozen=True)
class Streaming(SessionState):
    phase = SessionPhase.STREAMING
    buffer: str = ""


@dataclass(frozen=True)
class Parsing(SessionState):
    phase = SessionPhase.PARSING


@dataclass(frozen=True)
class Proposed(SessionState):
    phase = SessionPhase.PROPOSED
    edits: tuple[ProposedEdit, ...] = ()

    @property
    def proposed_edits(self) -> tuple[ProposedEdit, ...]:
        return self.edits


@dataclass(frozen=True)
class TransactionReady(SessionState):
    phase = SessionPhase.TRANSACTION_READY
    transaction: EditTransaction | None = None

    @property
    def proposed_edits(self) -> tuple[ProposedEdit, ...]:
        return self.transaction.edits if self.transaction else ()


@dataclass(frozen=True)
class Committed(SessionState):
    phase = SessionPhase.COMMITTED
    transaction: EditTransaction | None = None
    snapshot: TransactionSnapshot | None = None


@dataclass(frozen=True)
class RolledBack(SessionState):
    phase = SessionPhase.ROLLED_BACK
    transaction: EditTransaction | None = None


@dataclass(frozen=True)
class Rejected(SessionState):
    phase = SessionPhase.REJECTED
    edits: tuple[ProposedEdit, ...] = ()


@dataclass(frozen=True)
class Error(SessionState):
    phase = SessionPhase.ERROR
    kind: ErrorKind = ErrorKind.PARSE_FAILURE
    reason: str = ""


# ══════════════════════════════════════════════════════════════════
#  Events
# ══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Event:
    pass


@dataclass(frozen=True)
class Start(Event):
    pass


@dataclass(frozen=True)
class AppendText(Event):
    chunk: str = ""


@dataclass(frozen=True)
class BeginParse(Event):
    pass


@dataclass(frozen=True)
class ParseFinished(Event):
    edits: tuple[ProposedEdit, ...] = ()
    errors: tuple[EditSessionError, ...] = ()


@dataclass(frozen=True)
class PrepareTransaction(Event):
    transaction: EditTransaction | None = None


@dataclass(frozen=True)
class Commit(Event):
    snapshot: TransactionSnapshot | None = None


@dataclass(frozen=True)
class Rollback(Event):
    pass


@dataclass(frozen=True)
class Reject(Event):
    edit_ids: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class RejectAll(Event):
    pass


@dataclass(frozen=True)
class Reset(Event):
    pass


@dataclass(frozen=True)
class Transition:
    """Outcome of applying an event.

    ``state`` is the new state (the old one when ``error`` is set).
    ``output`` carries event-specific data, e.g. the buffer handed to the
    parser or the edits removed by a reject.
    """
    state: SessionState
    output: Any = None
    error: EditSessionError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ══════════════════════════════════════════════════════════════════
#  Transition table
# ══════════════════════════════════════════════════════════════════

def _start(state: Idle, event: Start) -> Transition:
    return Transition(Streaming(buffer=""))


def _append(state: Streaming, event: AppendText) -> Transition:
    return Transition(Streaming(buffer=state.buffer + event.chunk))


def _begin_parse(state: Streaming, event: BeginParse) -> Transition:
    return Transition(Parsing(), output=state.buffer)


def _parse_finished(state: Parsing, event: ParseFinished) -> Transition:
    if not event.edits:
        reasons = "; ".join(str(err) for err in event.errors[:5])
        reason = "No valid edits found in stream"
        if reasons:
            reason = f"{reason} ({reasons})"
        return Transition(Error(kind=ErrorKind.PARSE_FAILURE, reason=reason))
    return Transition(Proposed(edits=tuple(event.edits)))


def _prepare(state: Proposed, event: PrepareTransaction) -> Transition:
    txn = event.transaction
    if txn is None:
        return Transition(state, error=ValidationFailureError("No transaction supplied"))
    known = {edit.id for edit in state.edits}
    stray = [edit.id for edit in txn.edits if edit.id not in known]
    if stray:
        return Transition(state, error=ValidationFailureError(
            "Transaction contains edits that are not proposed",
            details={"edit_ids": stray},
        ))
    return Transition(TransactionReady(transaction=txn))


def _reject(state: Proposed, event: Reject) -> Transition:
    rejected = tuple(e for e in state.edits if e.id in event.edit_ids)
    if not rejected:
        return Transition(state, error=ValidationFailureError(
            "No proposed edits match the given ids",
            details={"edit_ids": sorted(event.edit_ids)},
        ))
    remaining = tuple(e for e in state.edits if e.id not in event.edit_ids)
    if remaining:
        return Transition(Proposed(edits=remaining), output=rejected)
    return Transition(Rejected(edits=rejected), output=rejected)


def _reject_all(state: Proposed, event: RejectAll) -> Transition:
    return Transition(Rejected(edits=state.edits), output=state.edits)


def _commit(state: TransactionReady, event: Commit) -> Transition:
    snapshot = event.snapshot
    txn = state.transaction
    if snapshot is None or txn is None or snapshot.transaction_id != txn.id:
        return Transition(state, error=CommitFailureError(
            "Snapshot does not belong to the pending transaction",
        ))
    return Transition(Committed(transaction=txn, snapshot=snapshot), output=snapshot)


def _rollback(state: TransactionReady, event: Rollback) -> Transition:
    return Transition(RolledBack(transaction=state.transaction), output=state.transaction)


def _reset(state: SessionState, event: Reset) -> Transition:
    return Transition(Idle())


_Handler = Callable[[Any, Any], Transition]

TRANSITIONS: dict[tuple[type[SessionState], type[Event]], _Handler] = {
    (Idle, Start): _start,
    (Streaming, AppendText): _append,
    (Streaming, BeginParse): _begin_parse,
    (Parsing, ParseFinished): _parse_finished,
    (Proposed, PrepareTransaction): _prepare,
    (Proposed, Reject): _reject,
    (Proposed, RejectAll): _reject_all,
    (TransactionReady, Commit): _commit,
    (TransactionReady, Rollback): _rollback,
    (Streaming, Reset): _reset,
    (Committed, Reset): _reset,
    (RolledBack, Reset): _reset,
    (Rejected, Reset): _reset,
    (Error, Reset): _reset,
}


def is_allowed(state: SessionState, event: Event | type[Event]) -> bool:
    event_type = event if isinstance(event, type) else type(event)
    return (type(state), event_type) in TRANSITIONS


def transition(state: SessionState, event: Event) -> Transition:
    """Apply *event* to *state* and return the outcome."""
    handler = TRANSITIONS.get((type(state), type(event)))
    if handler is None:
        return Transition(state, error=InvalidTransitionError(
            f"{type(event).__name__} is not allowed while {state.phase.value}",
            details={"phase": state.phase.value, "event": type(event).__name__},
        ))
    return handler(state, event)
