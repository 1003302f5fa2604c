"""
Transaction history — linear undo/redo stacks owned by one session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .transaction import EditTransaction, TransactionSnapshot

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY = 100


@dataclass(frozen=True)
class HistoryEntry:
    transaction: EditTransaction
    snapshot: TransactionSnapshot


class TransactionHistory:
    """Undo and redo stacks of committed transactions.

    Recording a new transaction clears the redo stack.  When
    *max_history* is positive the oldest undo entries are dropped beyond
    that depth; ``0`` keeps everything.
    """

    def __init__(self, max_history: int = DEFAULT_MAX_HISTORY) -> None:
        if max_history < 0:
            raise ValueError("max_history must be >= 0")
        self._max_history = max_history
        self._undo: list[HistoryEntry] = []
        self._redo: list[HistoryEntry] = []

    @property
    def max_history(self) -> int:
        return self._max_history

    def record(self, transaction: EditTransaction, snapshot: TransactionSnapshot) -> None:
        self._undo.append(HistoryEntry(transaction, snapshot))
        if self._redo:
            logger.debug("[History] Discarding %d redo entr(ies)", len(self._redo))
        self._redo.clear()
        if self._max_history and len(self._undo) > self._max_history:
            dropped = self._undo.pop(0)
            logger.debug(
                "[History] Depth limit %d reached, dropped %s",
                self._max_history, dropped.transaction.id,
            )

    def pop_undo(self) -> HistoryEntry | None:
        """Move the most recent entry to the redo stack and return it."""
        if not self._undo:
            return None
        entry = self._undo.pop()
        self._redo.append(entry)
        return entry

    def pop_redo(self) -> HistoryEntry | None:
        """Move the most recently undone entry back to the undo stack."""
        if not self._redo:
            return None
        entry = self._redo.pop()
        self._undo.append(entry)
        return entry

    def peek_undo(self) -> HistoryEntry | None:
        return self._undo[-1] if self._undo else None

    def peek_redo(self) -> HistoryEntry | None:
        return self._redo[-1] if self._redo else None

    def can_undo(self) -> bool:
        return bool(self._undo)

    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    def applied_ids(self) -> list[str]:
        return [entry.transaction.id for entry in self._undo]
