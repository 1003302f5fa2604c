"""Tests for transactions, snapshots and the undo/redo history."""

import pytest

from edit_session.errors import EmptyTransactionError, ValidationFailureError
from edit_session.history import TransactionHistory
from edit_session.models import FileChange, FileSnapshot, ProposedEdit
from edit_session.transaction import EditTransaction, TransactionSnapshot


SNAPSHOTS = {
    "a.py": FileSnapshot("a.py", "a = 1\n"),
    "b.py": FileSnapshot("b.py", "b = 1\n"),
}


def _edit(path, new):
    return ProposedEdit.create(path, SNAPSHOTS[path].content, new)


def _txn(*pairs):
    edits = [_edit(path, new) for path, new in pairs]
    txn = EditTransaction.build(edits, SNAPSHOTS)
    return txn, TransactionSnapshot.capture(txn, SNAPSHOTS)


class TestBuild:
    def test_groups_edits(self):
        txn = EditTransaction.build(
            [_edit("a.py", "a = 2\n"), _edit("b.py", "b = 2\n")], SNAPSHOTS,
            description="bump",
        )
        assert txn.affected_files == frozenset({"a.py", "b.py"})
        assert txn.description == "bump"
        assert txn.source == "ai"

    def test_empty(self):
        with pytest.raises(EmptyTransactionError):
            EditTransaction.build([], SNAPSHOTS)

    def test_unknown_file(self):
        edit = ProposedEdit.create("c.py", "", "x")
        with pytest.raises(ValidationFailureError):
            EditTransaction.build([edit], SNAPSHOTS)

    def test_duplicate_file(self):
        with pytest.raises(ValidationFailureError):
            EditTransaction.build(
                [_edit("a.py", "a = 2\n"), _edit("a.py", "a = 3\n")], SNAPSHOTS,
            )

    def test_noop_edit(self):
        with pytest.raises(ValidationFailureError):
            EditTransaction.build([_edit("a.py", "a = 1\n")], SNAPSHOTS)

    def test_changes(self):
        txn = EditTransaction.build([_edit("a.py", "a = 2\n")], SNAPSHOTS)
        assert txn.changes() == [FileChange("a.py", "a = 2\n", "a = 1\n")]
        assert txn.changes()[0].to_dict() == {"filePath": "a.py", "newContent": "a = 2\n"}


class TestSnapshot:
    def test_captures_only_affected_files(self):
        txn, snap = _txn(("a.py", "a = 2\n"))
        assert set(snap.pre_state) == {"a.py"}
        assert snap.transaction_id == txn.id
        assert snap.contents() == {"a.py": "a = 1\n"}

    def test_pre_state_is_read_only(self):
        _, snap = _txn(("a.py", "a = 2\n"))
        with pytest.raises(TypeError):
            snap.pre_state["a.py"] = FileSnapshot("a.py", "hacked")


class TestHistory:
    def test_undo_then_redo(self):
        history = TransactionHistory()
        txn, snap = _txn(("a.py", "a = 2\n"))
        history.record(txn, snap)
        assert history.can_undo() and not history.can_redo()

        entry = history.pop_undo()
        assert entry.transaction is txn
        assert history.can_redo() and not history.can_undo()

        assert history.pop_redo().transaction is txn
        assert history.applied_ids() == [txn.id]

    def test_record_clears_redo(self):
        history = TransactionHistory()
        t1, s1 = _txn(("a.py", "a = 2\n"))
        t2, s2 = _txn(("b.py", "b = 2\n"))
        history.record(t1, s1)
        history.pop_undo()
        history.record(t2, s2)
        assert history.redo_depth == 0
        assert history.applied_ids() == [t2.id]

    def test_depth_limit_drops_oldest(self):
        history = TransactionHistory(max_history=2)
        txns = [_txn(("a.py", f"a = {i}\n")) for i in range(2, 5)]
        for txn, snap in txns:
            history.record(txn, snap)
        assert history.undo_depth == 2
        assert history.applied_ids() == [txns[1][0].id, txns[2][0].id]

    def test_zero_means_unbounded(self):
        history = TransactionHistory(max_history=0)
        for i in range(2, 150):
            history.record(*_txn(("a.py", f"a = {i}\n")))
        assert history.undo_depth == 148

    def test_empty_pops(self):
        history = TransactionHistory()
        assert history.pop_undo() is None
        assert history.pop_redo() is None

    def test_negative_limit_rejected(self):
        with pytest.raises(ValueError):
            TransactionHistory(max_history=-1)

    def test_histories_are_independent(self):
        first, second = TransactionHistory(), TransactionHistory()
        first.record(*_txn(("a.py", "a = 2\n")))
        assert not second.can_undo()
