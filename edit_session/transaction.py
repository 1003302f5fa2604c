"""
Transactions — atomic groups of proposed edits, and the pre-commit
snapshots that make them reversible.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Iterable, Mapping

from .errors import EmptyTransactionError, ValidationFailureError
from .models import FileChange, FileSnapshot, ProposedEdit, new_id


@dataclass(frozen=True)
class EditTransaction:
    """An all-or-nothing group of edits, at most one per file."""
    edits: tuple[ProposedEdit, ...]
    id: str = field(default_factory=new_id)
    description: str = ""
    source: str = "ai"
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), compare=False,
    )

    @property
    def affected_files(self) -> frozenset[str]:
        return frozenset(edit.file_path for edit in self.edits)

    @classmethod
    def build(
        cls,
        edits: Iterable[ProposedEdit],
        snapshots: Mapping[str, FileSnapshot],
        description: str = "",
    ) -> "EditTransaction":
        """Validate *edits* against *snapshots* and group them.

        Raises
        ------
        EmptyTransactionError
            No edits were selected.
        ValidationFailureError
            An edit targets an unknown file, two edits target the same
            file, or an edit would not change its file.
        """
        edits = tuple(edits)
        if not edits:
            raise EmptyTransactionError("Transaction has no edits")

        seen: set[str] = set()
        for edit in edits:
            if edit.file_path not in snapshots:
                raise ValidationFailureError(
                    f"Edit targets unknown file {edit.file_path!r}", edit.file_path,
                )
            if edit.file_path in seen:
                raise ValidationFailureError(
                    f"More than one edit for {edit.file_path!r}", edit.file_path,
                )
            if edit.is_noop:
                raise ValidationFailureError(
                    f"Edit for {edit.file_path!r} changes nothing", edit.file_path,
                )
            seen.add(edit.file_path)

        return cls(edits=edits, description=description)

    def changes(self) -> list[FileChange]:
        """The post-commit content of every affected file."""
        return [
            FileChange(
                file_path=edit.file_path,
                new_content=edit.proposed_content,
                original_content=edit.original_content,
            )
            for edit in self.edits
        ]


@dataclass(frozen=True)
class TransactionSnapshot:
    """Pre-commit state of the files a transaction touches."""
    transaction_id: str
    pre_state: Mapping[str, FileSnapshot]
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), compare=False,
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "pre_state", MappingProxyType(dict(self.pre_state)))

    @classmethod
    def capture(
        cls,
        transaction: EditTransaction,
        snapshots: Mapping[str, FileSnapshot],
    ) -> "TransactionSnapshot":
        """Capture *snapshots* for exactly the transaction's affected files."""
        return cls(
            transaction_id=transaction.id,
            pre_state={path: snapshots[path] for path in transaction.affected_files},
        )

    def contents(self) -> dict[str, str]:
        return {path: snap.content for path, snap in self.pre_state.items()}
