"""
Value types shared across the engine: file snapshots, instructions and
proposed edits.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .editing.diff_engine import Diff, DiffEngine


def _now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class FileSnapshot:
    """Immutable captured state of one file.  Identity is ``path``."""
    path: str
    content: str
    language: str | None = None
    timestamp: datetime = field(default_factory=_now, compare=False)

    def with_content(self, content: str) -> "FileSnapshot":
        """Return a fresh snapshot of the same file holding *content*."""
        return FileSnapshot(path=self.path, content=content, language=self.language)


@dataclass(frozen=True)
class EditInstruction:
    """The user request a session was created for."""
    text: str
    context: dict[str, str] | None = None


class EditType(Enum):
    CREATION = "creation"
    MODIFICATION = "modification"
    DELETION = "deletion"

    @classmethod
    def classify(cls, original: str, proposed: str) -> "EditType":
        if not original and proposed:
            return cls.CREATION
        if original and not proposed:
            return cls.DELETION
        return cls.MODIFICATION


@dataclass(frozen=True)
class EditMetadata:
    edit_type: EditType = EditType.MODIFICATION
    confidence: float = 1.0
    source: str = "ai"
    source_format: str = "structured"
    timestamp: datetime = field(default_factory=_now, compare=False)


@dataclass(frozen=True)
class ProposedEdit:
    """A whole-file proposal for one file, with its computed diff.

    Build instances with :meth:`create` so ``diff`` always matches the
    content pair.
    """
    id: str
    file_path: str
    original_content: str
    proposed_content: str
    diff: Diff
    metadata: EditMetadata = field(default_factory=EditMetadata)

    @classmethod
    def create(
        cls,
        file_path: str,
        original_content: str,
        proposed_content: str,
        *,
        engine: DiffEngine | None = None,
        source_format: str = "structured",
        confidence: float = 1.0,
        edit_id: str | None = None,
    ) -> "ProposedEdit":
        engine = engine or DiffEngine()
        return cls(
            id=edit_id or new_id(),
            file_path=file_path,
            original_content=original_content,
            proposed_content=proposed_content,
            diff=engine.compute(original_content, proposed_content),
            metadata=EditMetadata(
                edit_type=EditType.classify(original_content, proposed_content),
                confidence=confidence,
                source_format=source_format,
            ),
        )

    @property
    def is_noop(self) -> bool:
        return self.original_content == self.proposed_content


@dataclass(frozen=True)
class FileChange:
    """Content the caller should write to one real file."""
    file_path: str
    new_content: str
    original_content: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"filePath": self.file_path, "newContent": self.new_content}
