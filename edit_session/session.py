"""
Edit session — the single entry point that takes one instruction from
streamed AI text to committed, undoable file edits.

Every public method checks the current state first.  A call that is not
legal for that state does nothing and reports failure (``False`` /
``None``); the reason is kept on :attr:`EditSession.last_error`.  Nothing
raises across this boundary.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Callable, Iterable, Mapping

from .editing.diff_engine import DEFAULT_CONTEXT_LINES, DiffEngine
from .editing.stream_parser import DEFAULT_MAX_EDIT_LINES, ParseResult, StreamParser
from .errors import (
    CommitFailureError,
    EditSessionError,
    EmptyTransactionError,
    InvalidTransitionError,
    ParseFailureError,
    ValidationFailureError,
)
from .history import DEFAULT_MAX_HISTORY, TransactionHistory
from .models import EditInstruction, FileChange, FileSnapshot, ProposedEdit, new_id
from .state import (
    AppendText,
    BeginParse,
    Commit,
    Error,
    Event,
    Idle,
    ParseFinished,
    PrepareTransaction,
    Reject,
    RejectAll,
    Reset,
    Rollback,
    SessionPhase,
    SessionState,
    Start,
    Streaming,
    Transition,
    TransactionReady,
    is_allowed,
    transition,
)
from .transaction import EditTransaction, TransactionSnapshot

if TYPE_CHECKING:
    from .config import Config

logger = logging.getLogger(__name__)

StateListener = Callable[[SessionState], None]


class EditSession:
    """Coordinate one instruction-to-edits workflow.

    Parameters
    ----------
    instruction:
        The user request, as text or an :class:`EditInstruction`.
    file_snapshots:
        The files the AI may edit.  Captured once; the session never
        re-reads them.
    on_state_change:
        Optional callback fired once per transition with the new state.
    config:
        Optional :class:`~edit_session.config.Config` supplying diff
        context, history depth and parser limits.
    """

    def __init__(
        self,
        instruction: str | EditInstruction,
        file_snapshots: Iterable[FileSnapshot],
        on_state_change: StateListener | None = None,
        *,
        config: "Config | None" = None,
        session_id: str | None = None,
    ) -> None:
        if isinstance(instruction, str):
            instruction = EditInstruction(text=instruction)
        self.id = session_id or new_id()
        self.instruction = instruction

        snapshots: dict[str, FileSnapshot] = {}
        for snap in file_snapshots:
            if snap.path in snapshots:
                logger.warning(
                    "[EditSession] Duplicate snapshot for %s, keeping the last one",
                    snap.path,
                )
            snapshots[snap.path] = snap
        self._snapshots = snapshots

        context_lines = config.CONTEXT_LINES if config else DEFAULT_CONTEXT_LINES
        max_history = config.MAX_HISTORY if config else DEFAULT_MAX_HISTORY
        max_edit_lines = config.MAX_EDIT_LINES if config else DEFAULT_MAX_EDIT_LINES

        self._diff_engine = DiffEngine(context_lines)
        self._parser = StreamParser(max_edit_lines=max_edit_lines)
        self._history = TransactionHistory(max_history)
        self._state: SessionState = Idle()
        self._listeners: list[StateListener] = []
        if on_state_change is not None:
            self._listeners.append(on_state_change)

        self.last_error: EditSessionError | None = None
        self.parse_errors: list[EditSessionError] = []

        logger.info(
            "[EditSession] %s created with %d file(s): %s",
            self.id, len(snapshots), instruction.text[:80],
        )

    @classmethod
    def create(
        cls,
        instruction: str | EditInstruction,
        file_snapshots: Iterable[FileSnapshot],
        on_state_change: StateListener | None = None,
        config: "Config | None" = None,
    ) -> "EditSession":
        return cls(instruction, file_snapshots, on_state_change, config=config)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def phase(self) -> SessionPhase:
        return self._state.phase

    @property
    def file_snapshots(self) -> Mapping[str, FileSnapshot]:
        return MappingProxyType(dict(self._snapshots))

    @property
    def proposed_edits(self) -> tuple[ProposedEdit, ...]:
        return self._state.proposed_edits or ()

    @property
    def pending_transaction(self) -> EditTransaction | None:
        if isinstance(self._state, TransactionReady):
            return self._state.transaction
        return None

    @property
    def buffer(self) -> str:
        return self._state.buffer if isinstance(self._state, Streaming) else ""

    @property
    def history(self) -> TransactionHistory:
        return self._history

    @property
    def diff_engine(self) -> DiffEngine:
        return self._diff_engine

    def can_undo(self) -> bool:
        return self._history.can_undo()

    def can_redo(self) -> bool:
        return self._history.can_redo()

    def on_state_change(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    def start(self) -> bool:
        return self._dispatch(Start()).ok

    def append_streaming_text(self, chunk: str) -> bool:
        if not isinstance(chunk, str):
            return self._reject_call(ValidationFailureError(
                f"Streaming chunk must be str, got {type(chunk).__name__}",
            ))
        return self._dispatch(AppendText(chunk)).ok

    def complete_streaming(self) -> bool:
        """Parse the buffer and move to ``proposed`` or ``error``.

        Returns ``True`` when at least one edit was proposed.
        """
        began = self._dispatch(BeginParse())
        if not began.ok:
            return False
        text: str = began.output

        try:
            result = self._parser.parse(text, self._snapshots)
            edits = tuple(self._to_proposed(result))
        except Exception as exc:
            logger.exception("[EditSession] Parsing failed unexpectedly")
            result = ParseResult(errors=[ParseFailureError(f"Parser error: {exc}")])
            edits = ()

        self.parse_errors = list(result.errors)
        finished = self._dispatch(ParseFinished(edits=edits, errors=tuple(result.errors)))
        if isinstance(finished.state, Error):
            self.last_error = ParseFailureError(finished.state.reason)
            logger.warning("[EditSession] %s", finished.state.reason)
            return False
        logger.info(
            "[EditSession] %d edit(s) proposed, %d dropped",
            len(edits), len(result.errors),
        )
        return True

    def _to_proposed(self, result: ParseResult) -> Iterable[ProposedEdit]:
        for parsed in result.edits:
            yield ProposedEdit.create(
                parsed.file_path,
                parsed.original_content,
                parsed.proposed_content,
                engine=self._diff_engine,
                source_format=parsed.source_format,
            )

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def prepare_transaction(
        self,
        edit_ids: Iterable[str] | None = None,
        description: str | None = None,
    ) -> bool:
        """Group the chosen proposals (default: all) into a transaction."""
        if not is_allowed(self._state, PrepareTransaction):
            return self._reject_call(self._invalid("prepare_transaction"))

        proposals = self._state.proposed_edits or ()
        if edit_ids is None:
            selected = list(proposals)
        else:
            wanted = self._collect_ids(edit_ids)
            if wanted is None:
                return False
            known = {edit.id for edit in proposals}
            unknown = wanted - known
            if unknown:
                return self._reject_call(ValidationFailureError(
                    "Unknown edit ids", details={"edit_ids": sorted(unknown)},
                ))
            selected = [edit for edit in proposals if edit.id in wanted]

        try:
            txn = EditTransaction.build(
                selected, self._snapshots,
                description if description is not None else self.instruction.text,
            )
        except EditSessionError as exc:
            return self._reject_call(exc)

        return self._dispatch(PrepareTransaction(txn)).ok

    def commit_transaction(self) -> TransactionSnapshot | None:
        """Apply the pending transaction to the session's snapshots.

        Either every affected snapshot is replaced and one history entry
        is recorded, or nothing changes and ``None`` is returned.
        """
        if not isinstance(self._state, TransactionReady) or self._state.transaction is None:
            self._reject_call(self._invalid("commit_transaction"))
            return None
        txn = self._state.transaction

        try:
            snapshot, staged = self._stage_commit(txn)
        except EditSessionError as exc:
            logger.error("[EditSession] Commit of %s aborted: %s", txn.id, exc)
            self._reject_call(exc)
            return None

        outcome = transition(self._state, Commit(snapshot))
        if not outcome.ok:
            self._reject_call(outcome.error)
            return None

        self._snapshots = staged
        self._history.record(txn, snapshot)
        self._set_state(outcome.state)
        logger.info(
            "[EditSession] Committed %s (%d file(s))", txn.id, len(txn.edits),
        )
        return snapshot

    def _stage_commit(
        self, txn: EditTransaction,
    ) -> tuple[TransactionSnapshot, dict[str, FileSnapshot]]:
        staged = dict(self._snapshots)
        for edit in txn.edits:
            current = self._snapshots.get(edit.file_path)
            if current is None:
                raise CommitFailureError(
                    f"{edit.file_path!r} is no longer tracked", edit.file_path,
                )
            if current.content != edit.original_content:
                raise CommitFailureError(
                    f"{edit.file_path!r} changed since the edit was proposed",
                    edit.file_path,
                )
            staged[edit.file_path] = current.with_content(edit.proposed_content)
        return TransactionSnapshot.capture(txn, self._snapshots), staged

    def rollback_transaction(self) -> bool:
        return self._dispatch(Rollback()).ok

    def accept_all(self) -> list[FileChange] | None:
        """Prepare and commit every proposal; return the content to write."""
        return self._accept(None)

    def accept(self, edit_ids: Iterable[str]) -> list[FileChange] | None:
        if not is_allowed(self._state, PrepareTransaction):
            self._reject_call(self._invalid("accept"))
            return None
        wanted = self._collect_ids(edit_ids)
        if wanted is None:
            return None
        return self._accept(list(wanted))

    def _accept(self, edit_ids: list[str] | None) -> list[FileChange] | None:
        if edit_ids is not None and not edit_ids:
            self._reject_call(EmptyTransactionError("No edits selected"))
            return None
        if not self.prepare_transaction(edit_ids):
            return None
        txn = self.pending_transaction
        if self.commit_transaction() is None or txn is None:
            return None
        return txn.changes()

    def reject_all(self) -> bool:
        return self._dispatch(RejectAll()).ok

    def reject(self, edit_ids: Iterable[str]) -> bool:
        if not is_allowed(self._state, Reject):
            return self._reject_call(self._invalid("reject"))
        wanted = self._collect_ids(edit_ids)
        if wanted is None:
            return False
        return self._dispatch(Reject(wanted)).ok

    def reset(self) -> bool:
        """Return to ``idle``, discarding buffer, proposals and transaction.

        File snapshots and undo history are kept.
        """
        ok = self._dispatch(Reset()).ok
        if ok:
            self.parse_errors = []
        return ok

    # ------------------------------------------------------------------
    # Undo / redo
    # ------------------------------------------------------------------

    def undo(self) -> dict[str, str] | None:
        """Revert the most recent committed transaction.

        Returns the restored content per path, for the caller to write to
        its real files, or ``None`` when there is nothing to undo.
        """
        entry = self._history.peek_undo()
        if entry is None:
            return None
        restored = dict(self._snapshots)
        restored.update(entry.snapshot.pre_state)
        self._history.pop_undo()
        self._snapshots = restored
        logger.info("[EditSession] Undid %s", entry.transaction.id)
        return entry.snapshot.contents()

    def redo(self) -> dict[str, str] | None:
        """Re-apply the most recently undone transaction."""
        entry = self._history.peek_redo()
        if entry is None:
            return None
        reapplied = dict(self._snapshots)
        contents: dict[str, str] = {}
        for edit in entry.transaction.edits:
            base = reapplied.get(edit.file_path) or entry.snapshot.pre_state[edit.file_path]
            reapplied[edit.file_path] = base.with_content(edit.proposed_content)
            contents[edit.file_path] = edit.proposed_content
        self._history.pop_redo()
        self._snapshots = reapplied
        logger.info("[EditSession] Redid %s", entry.transaction.id)
        return contents

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _dispatch(self, event: Event) -> Transition:
        outcome = transition(self._state, event)
        if outcome.ok:
            self._set_state(outcome.state)
        else:
            self._reject_call(outcome.error)
        return outcome

    def _set_state(self, state: SessionState) -> None:
        previous = self._state
        self._state = state
        if previous.phase is not state.phase:
            logger.debug(
                "[EditSession] %s -> %s", previous.phase.value, state.phase.value,
            )
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("[EditSession] State listener failed")

    def _collect_ids(self, edit_ids: object) -> frozenset[str] | None:
        # A bare str is iterable but is never a list of ids.
        if isinstance(edit_ids, (str, bytes)) or not isinstance(edit_ids, Iterable):
            self._reject_call(ValidationFailureError(
                f"Edit ids must be an iterable of str, got {type(edit_ids).__name__}",
            ))
            return None
        ids = tuple(edit_ids)
        if not all(isinstance(edit_id, str) for edit_id in ids):
            self._reject_call(ValidationFailureError("Edit ids must be str"))
            return None
        return frozenset(ids)

    def _invalid(self, operation: str) -> InvalidTransitionError:
        return InvalidTransitionError(
            f"{operation} is not allowed while {self._state.phase.value}",
            details={"phase": self._state.phase.value, "operation": operation},
        )

    def _reject_call(self, error: EditSessionError | None) -> bool:
        self.last_error = error
        if error is not None:
            logger.debug("[EditSession] Rejected call: %s", error)
        return False
