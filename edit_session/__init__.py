"""
edit_session — streaming AI edit sessions with diff review, atomic
transactions and undo/redo.

Public API for library usage::

    from edit_session import EditSession, FileSnapshot

    session = EditSession.create("Rename foo", [FileSnapshot("a.py", source)])
    session.start()
    session.append_streaming_text(chunk)
    session.complete_streaming()
    changes = session.accept_all()
"""

from .config import Config
from .coordinator import (
    EditProposal,
    EditSessionCoordinator,
    EditSessionHandle,
    EditSessionModel,
    EditSessionStatus,
    FileState,
)
from .editing.diff_engine import Diff, DiffEngine, DiffHunk, DiffLine, DiffLineKind
from .errors import EditSessionError, ErrorKind
from .models import (
    EditInstruction,
    EditMetadata,
    EditType,
    FileChange,
    FileSnapshot,
    ProposedEdit,
)
from .session import EditSession
from .state import SessionPhase
from .transaction import EditTransaction, TransactionSnapshot

__all__ = [
    "Config",
    "Diff", "DiffEngine", "DiffHunk", "DiffLine", "DiffLineKind",
    "EditInstruction", "EditMetadata", "EditProposal", "EditSession",
    "EditSessionCoordinator", "EditSessionError", "EditSessionHandle",
    "EditSessionModel", "EditSessionStatus", "EditTransaction", "EditType",
    "ErrorKind", "FileChange", "FileSnapshot", "FileState", "ProposedEdit",
    "SessionPhase", "TransactionSnapshot",
]
