"""
Editor integration — a coordinator that owns at most one active session,
and a handle that mirrors session state into a UI-facing model.

The host only deals in paths, content and :class:`FileChange` lists; it
never sees states, transactions or the history.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterable

from .editing.diff_engine import DiffLineKind
from .models import FileChange, FileSnapshot, ProposedEdit
from .session import EditSession
from .state import (
    Committed,
    Error,
    Idle,
    Parsing,
    Proposed,
    Rejected,
    RolledBack,
    SessionState,
    Streaming,
    TransactionReady,
)

if TYPE_CHECKING:
    from .config import Config

logger = logging.getLogger(__name__)


class EditSessionStatus(Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    READY = "ready"
    APPLIED = "applied"
    REJECTED = "rejected"
    ERROR = "error"


@dataclass(frozen=True)
class FileState:
    """Editor-side view of one open file."""
    path: str
    content: str
    language: str | None = None


@dataclass(frozen=True)
class DiffLinePreview:
    kind: DiffLineKind
    content: str
    line_number: int


@dataclass(frozen=True)
class DiffHunkPreview:
    old_start_line: int
    new_start_line: int
    lines: tuple[DiffLinePreview, ...]


@dataclass(frozen=True)
class EditStatistics:
    added_lines: int
    removed_lines: int

    @property
    def net_change(self) -> int:
        return self.added_lines - self.removed_lines


@dataclass(frozen=True)
class EditPreview:
    added_lines: int
    removed_lines: int
    diff_hunks: tuple[DiffHunkPreview, ...]


@dataclass(frozen=True)
class EditProposal:
    """A proposed edit as a review panel would show it."""
    id: str
    file_path: str
    file_name: str
    preview: EditPreview
    statistics: EditStatistics

    @classmethod
    def from_edit(cls, edit: ProposedEdit) -> "EditProposal":
        diff = edit.diff
        hunks = tuple(
            DiffHunkPreview(
                old_start_line=hunk.old_start,
                new_start_line=hunk.new_start,
                lines=tuple(
                    DiffLinePreview(line.kind, line.content, line.line_number)
                    for line in hunk.lines
                ),
            )
            for hunk in diff.hunks
        )
        return cls(
            id=edit.id,
            file_path=edit.file_path,
            file_name=os.path.basename(edit.file_path),
            preview=EditPreview(diff.added_lines, diff.removed_lines, hunks),
            statistics=EditStatistics(diff.added_lines, diff.removed_lines),
        )


@dataclass
class EditSessionModel:
    """Mutable UI state, refreshed on every session transition."""
    status: EditSessionStatus = EditSessionStatus.IDLE
    streaming_text: str = ""
    proposals: list[EditProposal] = field(default_factory=list)
    error_message: str | None = None


class EditSessionHandle:
    """Host-facing wrapper around one :class:`EditSession`.

    Creating a handle starts its session.  Accept and undo calls return
    the :class:`FileChange` list the host should write; an empty list
    means nothing was applied.
    """

    def __init__(self, coordinator: "EditSessionCoordinator", session: EditSession) -> None:
        self._coordinator = coordinator
        self.session = session
        self.model = EditSessionModel()
        session.on_state_change(self._update_model)
        session.start()

    @property
    def id(self) -> str:
        return self.session.id

    @property
    def can_undo(self) -> bool:
        return self.session.can_undo()

    @property
    def can_redo(self) -> bool:
        return self.session.can_redo()

    def append_streaming_text(self, text: str) -> None:
        if self.session.append_streaming_text(text):
            self.model.streaming_text += text

    def complete_streaming(self) -> None:
        self.session.complete_streaming()

    def accept_all(self) -> list[FileChange]:
        return self._finish(self.session.accept_all())

    def accept(self, edit_ids: Iterable[str]) -> list[FileChange]:
        return self._finish(self.session.accept(edit_ids))

    def reject_all(self) -> None:
        if self.session.reject_all():
            self._coordinator._session_completed(self)

    def reject(self, edit_ids: Iterable[str]) -> None:
        self.session.reject(edit_ids)
        if isinstance(self.session.state, Rejected):
            self._coordinator._session_completed(self)

    def undo(self) -> list[FileChange] | None:
        """Revert the last accepted edits; changes restore prior content."""
        entry = self.session.history.peek_undo()
        restored = self.session.undo()
        if entry is None or restored is None:
            return None
        return [
            FileChange(
                file_path=edit.file_path,
                new_content=restored[edit.file_path],
                original_content=edit.proposed_content,
            )
            for edit in entry.transaction.edits
        ]

    def redo(self) -> list[FileChange] | None:
        entry = self.session.history.peek_redo()
        if entry is None or self.session.redo() is None:
            return None
        return entry.transaction.changes()

    def _finish(self, changes: list[FileChange] | None) -> list[FileChange]:
        if changes is None:
            return []
        self._coordinator._session_completed(self)
        return changes

    def _update_model(self, state: SessionState) -> None:
        model = self.model
        if isinstance(state, Idle):
            model.status = EditSessionStatus.IDLE
            model.streaming_text = ""
            model.proposals = []
            model.error_message = None
        elif isinstance(state, (Streaming, Parsing)):
            model.status = EditSessionStatus.STREAMING
        elif isinstance(state, Proposed):
            model.status = EditSessionStatus.READY
            model.proposals = [EditProposal.from_edit(e) for e in state.edits]
        elif isinstance(state, (TransactionReady, RolledBack)):
            model.status = EditSessionStatus.READY
        elif isinstance(state, Committed):
            model.status = EditSessionStatus.APPLIED
            model.proposals = []
        elif isinstance(state, Rejected):
            model.status = EditSessionStatus.REJECTED
            model.proposals = []
        elif isinstance(state, Error):
            model.status = EditSessionStatus.ERROR
            model.error_message = state.reason


class EditSessionCoordinator:
    """Starts edit sessions and tracks the active one.

    Starting a new session replaces any active one.  A session stops
    being active once its edits are applied or all of them are rejected.
    """

    def __init__(self, config: "Config | None" = None) -> None:
        self._config = config
        self._active: EditSessionHandle | None = None

    @property
    def active_session(self) -> EditSessionHandle | None:
        return self._active

    def start_edit_session(
        self, instruction: str, files: Iterable[FileState],
    ) -> EditSessionHandle:
        snapshots = [
            FileSnapshot(path=f.path, content=f.content, language=f.language)
            for f in files
        ]
        if self._active is not None:
            logger.info(
                "[Coordinator] Replacing active session %s", self._active.id,
            )
        session = EditSession.create(instruction, snapshots, config=self._config)
        handle = EditSessionHandle(self, session)
        self._active = handle
        return handle

    def _session_completed(self, handle: EditSessionHandle) -> None:
        if self._active is handle:
            self._active = None
