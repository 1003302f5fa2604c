"""
Disk executor — writes a committed change-set into a workspace directory
with atomic per-file writes and whole-set rollback.

This is the only place the package writes files.  The session engine
hands over :class:`FileChange` lists; this module makes them real.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from typing import Callable, Iterable

from .models import FileChange

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class DiskWriteError(Exception):
    """Raised when a change-set could not be written.

    By the time it is raised every file already written has been restored.
    """

    def __init__(self, message: str, file_path: str | None = None,
                 restore_failures: list[str] | None = None) -> None:
        super().__init__(message)
        self.file_path = file_path
        self.restore_failures = restore_failures or []


def resolve_path(workspace: str, rel_path: str) -> str:
    """Absolute path of *rel_path* inside *workspace*.

    Raises :class:`DiskWriteError` for paths that leave the workspace.
    """
    root = os.path.realpath(workspace)
    target = os.path.realpath(os.path.join(root, rel_path))
    if os.path.commonpath([root, target]) != root or target == root:
        raise DiskWriteError(f"Path escapes workspace: {rel_path}", rel_path)
    return target


def read_text(path: str) -> str:
    """Read a file exactly as stored, line endings untouched."""
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.read()


def safe_write(path: str, content: str) -> None:
    """Write *content* to *path* atomically via temp file + rename."""
    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(
        dir=directory, prefix=".edit_session_", suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        os.replace(tmp_path, path)
    except Exception:
        # Clean up temp file on failure
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


@dataclass
class WorkspaceSnapshot:
    """Prior on-disk content of the files a change-set will touch.

    ``None`` marks a file that did not exist; restoring removes it.
    """
    workspace: str
    contents: dict[str, str | None] = field(default_factory=dict)

    @classmethod
    def capture(cls, workspace: str, paths: Iterable[str]) -> "WorkspaceSnapshot":
        snapshot = cls(workspace)
        for rel_path in paths:
            abs_path = resolve_path(workspace, rel_path)
            snapshot.contents[rel_path] = (
                read_text(abs_path) if os.path.isfile(abs_path) else None
            )
        return snapshot

    def restore(self, paths: Iterable[str] | None = None) -> list[str]:
        """Put the captured content back; returns paths that failed."""
        failures: list[str] = []
        for rel_path in (paths if paths is not None else self.contents):
            previous = self.contents[rel_path]
            abs_path = resolve_path(self.workspace, rel_path)
            try:
                if previous is None:
                    if os.path.exists(abs_path):
                        os.unlink(abs_path)
                else:
                    safe_write(abs_path, previous)
            except OSError as exc:
                logger.error("[Disk] Rollback failed for %s: %s", rel_path, exc)
                failures.append(rel_path)
        return failures


def execute_to_disk(
    changes: list[FileChange],
    workspace: str,
    on_progress: ProgressCallback | None = None,
) -> list[str]:
    """Write every change under *workspace*, all or nothing.

    Parameters
    ----------
    changes:
        Output of :meth:`EditSession.accept_all` or an undo/redo.
    workspace:
        Directory the change paths are relative to.
    on_progress:
        Called as ``on_progress(done, total)`` before each file is written.

    Returns
    -------
    list[str]
        Absolute paths written, in change order.

    Raises
    ------
    DiskWriteError
        A path is outside the workspace, or a write failed.  Files written
        before the failure are restored to their captured content.
    """
    snapshot = WorkspaceSnapshot.capture(workspace, [c.file_path for c in changes])
    written: list[str] = []
    total = len(changes)

    for index, change in enumerate(changes, 1):
        if on_progress is not None:
            on_progress(index, total)
        abs_path = resolve_path(workspace, change.file_path)
        try:
            safe_write(abs_path, change.new_content)
        except OSError as exc:
            logger.error(
                "[Disk] Write failed for %s, rolling back %d file(s): %s",
                change.file_path, len(written), exc,
            )
            failures = snapshot.restore(
                [c.file_path for c in changes[:index - 1]]
            )
            raise DiskWriteError(
                f"Write failed for {change.file_path}: {exc}",
                change.file_path, failures,
            ) from exc
        written.append(abs_path)
        logger.debug("[Disk] Wrote %s", change.file_path)

    logger.info("[Disk] Wrote %d file(s) to %s", len(written), workspace)
    return written
