"""
Error kinds — structured failures reported by the edit session engine.

Engine operations never let these escape to the caller. They are raised and
caught internally, then surfaced as ``False``/``None`` return values with the
error kept on ``EditSession.last_error``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(Enum):
    INVALID_TRANSITION = "invalid_transition"
    PARSE_FAILURE = "parse_failure"
    EDIT_OUT_OF_BOUNDS = "edit_out_of_bounds"
    VALIDATION_FAILURE = "validation_failure"
    EMPTY_TRANSACTION = "empty_transaction"
    UNKNOWN_FILE = "unknown_file"
    MALFORMED_EDIT = "malformed_edit"
    COMMIT_FAILURE = "commit_failure"


class EditSessionError(Exception):
    """Base class for engine errors.

    Parameters
    ----------
    message:
        Human-readable reason.
    file_path:
        The file the failure relates to, if any.
    details:
        Optional extra context (line ranges, edit ids, ...).
    """

    kind: ErrorKind = ErrorKind.VALIDATION_FAILURE

    def __init__(
        self,
        message: str,
        file_path: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.file_path = file_path
        self.details = details or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, file_path={self.file_path!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EditSessionError):
            return NotImplemented
        return (
            self.kind == other.kind
            and self.message == other.message
            and self.file_path == other.file_path
        )

    def __hash__(self) -> int:
        return hash((self.kind, self.message, self.file_path))


class InvalidTransitionError(EditSessionError):
    """Operation is not legal in the current session state."""
    kind = ErrorKind.INVALID_TRANSITION


class ParseFailureError(EditSessionError):
    """No edits could be extracted from a completed stream."""
    kind = ErrorKind.PARSE_FAILURE


class EditOutOfBoundsError(EditSessionError):
    """A structured edit references lines outside the file."""
    kind = ErrorKind.EDIT_OUT_OF_BOUNDS


class ValidationFailureError(EditSessionError):
    """A transaction references an unknown or duplicated file, or a no-op edit."""
    kind = ErrorKind.VALIDATION_FAILURE


class EmptyTransactionError(EditSessionError):
    """A transaction would contain no edits."""
    kind = ErrorKind.EMPTY_TRANSACTION


class UnknownFileError(EditSessionError):
    """An edit names a file that is not among the session's snapshots."""
    kind = ErrorKind.UNKNOWN_FILE


class MalformedEditError(EditSessionError):
    """An edit entry or block could not be interpreted."""
    kind = ErrorKind.MALFORMED_EDIT


class CommitFailureError(EditSessionError):
    """Commit staging found the session inconsistent with the transaction."""
    kind = ErrorKind.COMMIT_FAILURE
