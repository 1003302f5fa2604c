"""
Line operations — replace / insert / delete on 1-indexed inclusive line
ranges, applied virtually to a file's original content.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from ..errors import EditOutOfBoundsError, MalformedEditError

_NEWLINE_RE = re.compile(r"\r\n|\r|\n")


class LineOp(Enum):
    REPLACE = "replace"
    INSERT = "insert"
    DELETE = "delete"


@dataclass(frozen=True)
class LineOperation:
    """A single structured edit against one file.

    ``start_line``/``end_line`` are 1-indexed and inclusive.  When both are
    ``None`` the operation covers the whole file: ``replace`` swaps all
    content, ``insert`` appends, ``delete`` empties the file.
    """
    op: LineOp
    start_line: int | None = None
    end_line: int | None = None
    lines: tuple[str, ...] = ()
    order: int = 0

    @property
    def has_range(self) -> bool:
        return self.start_line is not None

    @property
    def is_whole_file(self) -> bool:
        return not self.has_range and self.op is not LineOp.INSERT

    def span(self, line_count: int) -> tuple[int, int]:
        """0-indexed half-open ``[start, end)`` of the lines this op touches.

        Inserts have zero width at their insertion index.
        """
        if not self.has_range:
            if self.op is LineOp.INSERT:
                return line_count, line_count
            return 0, line_count
        start = self.start_line - 1  # type: ignore[operator]
        if self.op is LineOp.INSERT:
            return start, start
        return start, self.end_line  # type: ignore[return-value]

    def conflicts_with(self, other: "LineOperation", line_count: int) -> bool:
        # Two whole-file rewrites always clash, even on an empty file.
        if self.is_whole_file and other.is_whole_file:
            return True
        a_start, a_end = self.span(line_count)
        b_start, b_end = other.span(line_count)
        a_point = a_start == a_end
        b_point = b_start == b_end
        if a_point and b_point:
            return False
        if a_point:
            return b_start < a_start < b_end
        if b_point:
            return a_start < b_start < a_end
        return a_start < b_end and b_start < a_end


@dataclass(frozen=True)
class SplitContent:
    """File content broken into terminator-free lines plus its line style."""
    lines: tuple[str, ...]
    newline: str = "\n"
    trailing_newline: bool = False

    def join(self, lines: list[str]) -> str:
        if not lines:
            return ""
        text = self.newline.join(lines)
        if self.trailing_newline:
            text += self.newline
        return text


def split_content(content: str) -> SplitContent:
    """Split *content* into lines, remembering its newline style.

    An empty string has no lines; a trailing terminator does not start a
    new (empty) line.
    """
    if not content:
        return SplitContent(lines=())
    match = _NEWLINE_RE.search(content)
    newline = match.group(0) if match else "\n"
    trailing = content.endswith(("\n", "\r"))
    body = content
    if trailing:
        body = content[:-2] if content.endswith("\r\n") else content[:-1]
    return SplitContent(
        lines=tuple(_NEWLINE_RE.split(body)),
        newline=newline,
        trailing_newline=trailing,
    )


def normalize_content_lines(items: list[str] | tuple[str, ...]) -> tuple[str, ...]:
    """Flatten content entries, splitting any that carry embedded newlines."""
    lines: list[str] = []
    for item in items:
        lines.extend(_NEWLINE_RE.split(item))
    return tuple(lines)


def parse_line_op(name: str) -> LineOp:
    try:
        return LineOp(str(name).strip().lower())
    except ValueError:
        raise MalformedEditError(f"Unknown operation {name!r}") from None


def check_bounds(op: LineOperation, line_count: int, file_path: str | None = None) -> None:
    """Validate *op* against a file of *line_count* lines.

    Raises
    ------
    MalformedEditError
        Range is half-specified or inverted.
    EditOutOfBoundsError
        Range falls outside the file.
    """
    if not op.has_range:
        return
    start, end = op.start_line, op.end_line
    if start is None or end is None:
        raise MalformedEditError("Range needs both startLine and endLine", file_path)
    details = {"start_line": start, "end_line": end, "line_count": line_count}
    if op.op is LineOp.INSERT:
        if not 1 <= start <= line_count + 1:
            raise EditOutOfBoundsError(
                f"Insert position {start} outside 1..{line_count + 1}",
                file_path, details,
            )
        return
    if end < start:
        raise MalformedEditError(
            f"Inverted range {start}..{end}", file_path, details,
        )
    if start < 1 or end > line_count:
        raise EditOutOfBoundsError(
            f"Range {start}..{end} outside 1..{line_count}", file_path, details,
        )


def apply_operations(content: str, ops: list[LineOperation]) -> str:
    """Apply *ops* (all in original-content coordinates) to *content*.

    Operations are applied bottom-up so earlier line numbers stay valid.
    At the same position a range edit is applied before an insert, and
    inserts keep their document order.  Callers must reject conflicting
    operations first (see :meth:`LineOperation.conflicts_with`).
    """
    split = split_content(content)
    lines = list(split.lines)
    line_count = len(lines)

    def sort_key(op: LineOperation) -> tuple[int, int, int]:
        start, _ = op.span(line_count)
        return start, 0 if op.op is LineOp.INSERT else 1, op.order

    for op in sorted(ops, key=sort_key, reverse=True):
        start, end = op.span(line_count)
        if op.op is LineOp.DELETE:
            del lines[start:end]
        else:
            lines[start:end] = list(op.lines)

    return split.join(lines)
