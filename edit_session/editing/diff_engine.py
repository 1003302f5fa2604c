"""
Diff engine — line-based shortest-edit-script diffs grouped into hunks.

``DiffEngine.compute`` is pure and deterministic: it performs no I/O and equal
inputs always give equal output.  Lines keep their original terminators, so
re-applying the hunks of ``compute(old, new)`` to ``old`` reproduces ``new``
byte for byte (see :func:`apply_hunks`).
"""

from __future__ import annotations

import difflib
import logging
import re
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_LINES = 3

# A line is any run of non-terminator characters followed by \r\n, \r or \n,
# or a final unterminated run.  Never matches the empty string.
_LINE_RE = re.compile(r"[^\r\n]*(?:\r\n|\r|\n)|[^\r\n]+")
_TERMINATOR_RE = re.compile(r"(?:\r\n|\r|\n)$")


class DiffApplyError(Exception):
    """Raised when hunks do not match the content they are applied to."""


class DiffLineKind(Enum):
    ADDED = "added"
    REMOVED = "removed"
    UNCHANGED = "unchanged"


_PREFIX = {
    DiffLineKind.ADDED: "+",
    DiffLineKind.REMOVED: "-",
    DiffLineKind.UNCHANGED: " ",
}


@dataclass(frozen=True)
class DiffLine:
    """One line of a hunk.

    ``text`` is the line exactly as it appears in the source, terminator
    included.  Added lines carry only ``new_line_no``, removed lines only
    ``old_line_no``, unchanged lines both.
    """
    kind: DiffLineKind
    text: str
    old_line_no: int | None = None
    new_line_no: int | None = None

    @classmethod
    def added(cls, text: str, new_line_no: int) -> "DiffLine":
        return cls(DiffLineKind.ADDED, text, None, new_line_no)

    @classmethod
    def removed(cls, text: str, old_line_no: int) -> "DiffLine":
        return cls(DiffLineKind.REMOVED, text, old_line_no, None)

    @classmethod
    def unchanged(cls, text: str, old_line_no: int, new_line_no: int) -> "DiffLine":
        return cls(DiffLineKind.UNCHANGED, text, old_line_no, new_line_no)

    @property
    def line_number(self) -> int:
        """The number shown next to the line in a one-column preview."""
        if self.kind is DiffLineKind.ADDED:
            return self.new_line_no  # type: ignore[return-value]
        return self.old_line_no  # type: ignore[return-value]

    @property
    def content(self) -> str:
        """Line text without its terminator."""
        return _TERMINATOR_RE.sub("", self.text)


@dataclass(frozen=True)
class DiffHunk:
    """A contiguous change region with surrounding context.

    ``old_start``/``new_start`` are the 1-indexed positions of the first
    line the hunk covers on each side, even when the count on that side is 0.
    """
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: tuple[DiffLine, ...] = ()

    @property
    def header(self) -> str:
        # Unified-diff convention: an empty side points at the line before it.
        old_start = self.old_start if self.old_count else self.old_start - 1
        new_start = self.new_start if self.new_count else self.new_start - 1
        return f"@@ -{old_start},{self.old_count} +{new_start},{self.new_count} @@"


@dataclass(frozen=True)
class Diff:
    """Structured result of :meth:`DiffEngine.compute`."""
    hunks: tuple[DiffHunk, ...] = field(default_factory=tuple)
    added_lines: int = 0
    removed_lines: int = 0
    unchanged_lines: int = 0

    @property
    def has_changes(self) -> bool:
        return self.added_lines > 0 or self.removed_lines > 0


def split_lines(text: str) -> list[str]:
    """Split *text* into lines, keeping each line's terminator.

    ``"".join(split_lines(text)) == text`` for every string.
    """
    return _LINE_RE.findall(text)


def _middle_snake(
    a: list[str], a_lo: int, a_hi: int,
    b: list[str], b_lo: int, b_hi: int,
) -> tuple[int, int, int, int]:
    """Find the middle snake of the shortest edit path over the two ranges.

    Forward and backward Myers searches run from opposite corners until
    their furthest-reaching paths overlap.  Returns the snake as
    ``(x0, y0, x1, y1)`` offsets from ``(a_lo, b_lo)``.  Uses O(N) space.
    """
    n, m = a_hi - a_lo, b_hi - b_lo
    delta = n - m
    odd = delta % 2 == 1
    max_d = (n + m + 1) // 2
    offset = max_d + 1
    vf = [0] * (2 * max_d + 3)
    vb = [0] * (2 * max_d + 3)

    for d in range(max_d + 1):
        for k in range(-d, d + 1, 2):
            if k == -d or (k != d and vf[offset + k - 1] < vf[offset + k + 1]):
                x = vf[offset + k + 1]
            else:
                x = vf[offset + k - 1] + 1
            y = x - k
            x0, y0 = x, y
            while x < n and y < m and a[a_lo + x] == b[b_lo + y]:
                x += 1
                y += 1
            vf[offset + k] = x
            c = delta - k
            if odd and -(d - 1) <= c <= d - 1 and x + vb[offset + c] >= n:
                return x0, y0, x, y

        # Backward search in reversed coordinates; diagonal c maps to delta - c.
        for c in range(-d, d + 1, 2):
            if c == -d or (c != d and vb[offset + c - 1] < vb[offset + c + 1]):
                x = vb[offset + c + 1]
            else:
                x = vb[offset + c - 1] + 1
            y = x - c
            x0, y0 = x, y
            while x < n and y < m and a[a_hi - 1 - x] == b[b_hi - 1 - y]:
                x += 1
                y += 1
            vb[offset + c] = x
            k = delta - c
            if not odd and -d <= k <= d and x + vf[offset + k] >= n:
                return n - x, m - y, n - x0, m - y0

    raise AssertionError("no middle snake found")  # unreachable for finite input


def _common_pairs(
    a: list[str], a_lo: int, a_hi: int,
    b: list[str], b_lo: int, b_hi: int,
    out: list[tuple[int, int]],
) -> None:
    """Append the matched ``(i, j)`` index pairs of an LCS, in order."""
    while a_lo < a_hi and b_lo < b_hi and a[a_lo] == b[b_lo]:
        out.append((a_lo, b_lo))
        a_lo += 1
        b_lo += 1
    suffix = 0
    while (
        a_lo < a_hi - suffix and b_lo < b_hi - suffix
        and a[a_hi - 1 - suffix] == b[b_hi - 1 - suffix]
    ):
        suffix += 1
    a_hi -= suffix
    b_hi -= suffix

    if a_lo < a_hi and b_lo < b_hi:
        x0, y0, x1, y1 = _middle_snake(a, a_lo, a_hi, b, b_lo, b_hi)
        _common_pairs(a, a_lo, a_lo + x0, b, b_lo, b_lo + y0, out)
        out.extend((a_lo + x0 + i, b_lo + y0 + i) for i in range(x1 - x0))
        _common_pairs(a, a_lo + x1, a_hi, b, b_lo + y1, b_hi, out)

    out.extend((a_hi + i, b_hi + i) for i in range(suffix))


def _shortest_edit_script(a: list[str], b: list[str]) -> list[tuple[str, int, int]]:
    """Myers O(ND) diff of two line lists, in linear space.

    Returns ``(op, i, j)`` triples where *op* is ``"="``, ``"-"`` or ``"+"``
    and *i*/*j* index into *a*/*b* (``-1`` when the side does not apply).
    Within a change region all removals come before the additions.
    """
    n, m = len(a), len(b)

    # A line found on only one side can never be matched, so the search
    # runs over the shared lines only.  A full rewrite costs O(N).
    in_a, in_b = set(a), set(b)
    a_idx = [i for i, line in enumerate(a) if line in in_b]
    b_idx = [j for j, line in enumerate(b) if line in in_a]
    shared_a = [a[i] for i in a_idx]
    shared_b = [b[j] for j in b_idx]

    pairs: list[tuple[int, int]] = []
    _common_pairs(shared_a, 0, len(shared_a), shared_b, 0, len(shared_b), pairs)

    script: list[tuple[str, int, int]] = []
    i = j = 0
    for pi, pj in [(a_idx[x], b_idx[y]) for x, y in pairs] + [(n, m)]:
        script.extend(("-", x, -1) for x in range(i, pi))
        script.extend(("+", -1, y) for y in range(j, pj))
        if pi < n:
            script.append(("=", pi, pj))
        i, j = pi + 1, pj + 1
    return script


class DiffEngine:
    """Compute line diffs and group them into context hunks."""

    def __init__(self, context_lines: int = DEFAULT_CONTEXT_LINES) -> None:
        if context_lines < 0:
            raise ValueError("context_lines must be >= 0")
        self._context = context_lines

    @property
    def context_lines(self) -> int:
        return self._context

    def compute(self, old: str, new: str) -> Diff:
        """Return the structured diff from *old* to *new*."""
        old_lines = split_lines(old)
        new_lines = split_lines(new)

        # Common prefix / suffix never take part in the edit search.
        prefix = 0
        limit = min(len(old_lines), len(new_lines))
        while prefix < limit and old_lines[prefix] == new_lines[prefix]:
            prefix += 1
        suffix = 0
        while (
            suffix < limit - prefix
            and old_lines[-1 - suffix] == new_lines[-1 - suffix]
        ):
            suffix += 1

        middle = _shortest_edit_script(
            old_lines[prefix:len(old_lines) - suffix],
            new_lines[prefix:len(new_lines) - suffix],
        )

        lines: list[DiffLine] = []
        old_no = new_no = 1
        for i in range(prefix):
            lines.append(DiffLine.unchanged(old_lines[i], old_no, new_no))
            old_no += 1
            new_no += 1
        for op, i, j in middle:
            if op == "=":
                lines.append(DiffLine.unchanged(old_lines[prefix + i], old_no, new_no))
                old_no += 1
                new_no += 1
            elif op == "-":
                lines.append(DiffLine.removed(old_lines[prefix + i], old_no))
                old_no += 1
            else:
                lines.append(DiffLine.added(new_lines[prefix + j], new_no))
                new_no += 1
        for i in range(len(old_lines) - suffix, len(old_lines)):
            lines.append(DiffLine.unchanged(old_lines[i], old_no, new_no))
            old_no += 1
            new_no += 1

        added = sum(1 for ln in lines if ln.kind is DiffLineKind.ADDED)
        removed = sum(1 for ln in lines if ln.kind is DiffLineKind.REMOVED)
        diff = Diff(
            hunks=tuple(self._group_hunks(lines)),
            added_lines=added,
            removed_lines=removed,
            unchanged_lines=len(lines) - added - removed,
        )
        logger.debug(
            "[DiffEngine] %d hunk(s), +%d -%d =%d",
            len(diff.hunks), diff.added_lines, diff.removed_lines,
            diff.unchanged_lines,
        )
        return diff

    def _group_hunks(self, lines: list[DiffLine]) -> list[DiffHunk]:
        changed = [
            idx for idx, ln in enumerate(lines)
            if ln.kind is not DiffLineKind.UNCHANGED
        ]
        if not changed:
            return []

        # Collect [start, end) windows; merge when the unchanged gap between
        # two changes is covered by their combined context.
        windows: list[list[int]] = []
        for idx in changed:
            start = max(0, idx - self._context)
            end = min(len(lines), idx + 1 + self._context)
            if windows and start <= windows[-1][1]:
                windows[-1][1] = max(windows[-1][1], end)
            else:
                windows.append([start, end])

        hunks: list[DiffHunk] = []
        for start, end in windows:
            body = lines[start:end]
            old_start, new_start = self._positions_before(lines, start)
            hunks.append(DiffHunk(
                old_start=old_start,
                old_count=sum(1 for ln in body if ln.kind is not DiffLineKind.ADDED),
                new_start=new_start,
                new_count=sum(1 for ln in body if ln.kind is not DiffLineKind.REMOVED),
                lines=tuple(body),
            ))
        return hunks

    @staticmethod
    def _positions_before(lines: list[DiffLine], index: int) -> tuple[int, int]:
        """1-indexed old/new positions of the first line at or after *index*."""
        old_pos = sum(1 for ln in lines[:index] if ln.kind is not DiffLineKind.ADDED)
        new_pos = sum(1 for ln in lines[:index] if ln.kind is not DiffLineKind.REMOVED)
        return old_pos + 1, new_pos + 1

    @staticmethod
    def unified(diff: Diff, path: str) -> str:
        """Render *diff* as git-style unified diff text for display."""
        if not diff.hunks:
            return ""
        out = [f"--- a/{path}", f"+++ b/{path}"]
        for hunk in diff.hunks:
            out.append(hunk.header)
            for line in hunk.lines:
                out.append(_PREFIX[line.kind] + line.content)
                if not _TERMINATOR_RE.search(line.text):
                    out.append("\\ No newline at end of file")
        return "\n".join(out)


def compute_diff(old: str, new: str, context_lines: int = DEFAULT_CONTEXT_LINES) -> Diff:
    """Shorthand for ``DiffEngine(context_lines).compute(old, new)``."""
    return DiffEngine(context_lines).compute(old, new)


def apply_hunks(old: str, hunks: tuple[DiffHunk, ...] | list[DiffHunk]) -> str:
    """Apply *hunks* to *old* and return the resulting text.

    Raises
    ------
    DiffApplyError
        If hunks overlap, run past the end, or their removed/context lines
        do not match *old*.
    """
    old_lines = split_lines(old)
    result: list[str] = []
    pos = 0

    for hunk in hunks:
        start = hunk.old_start - 1
        if start < pos:
            raise DiffApplyError(
                f"Hunk at old line {hunk.old_start} overlaps the previous hunk"
            )
        if start > len(old_lines):
            raise DiffApplyError(
                f"Hunk at old line {hunk.old_start} starts past end of content"
            )
        result.extend(old_lines[pos:start])
        pos = start

        for line in hunk.lines:
            if line.kind is DiffLineKind.ADDED:
                result.append(line.text)
                continue
            if pos >= len(old_lines) or old_lines[pos] != line.text:
                raise DiffApplyError(
                    f"Line {pos + 1} does not match hunk content {line.content!r}"
                )
            if line.kind is DiffLineKind.UNCHANGED:
                result.append(line.text)
            pos += 1

    result.extend(old_lines[pos:])
    return "".join(result)


def char_diff(old_line: str, new_line: str) -> list[tuple[str, str]]:
    """Intraline spans between two versions of a line, for display only.

    Returns ``(tag, text)`` pairs with *tag* one of ``"equal"``,
    ``"delete"`` or ``"insert"``.
    """
    matcher = difflib.SequenceMatcher(None, old_line, new_line, autojunk=False)
    spans: list[tuple[str, str]] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            spans.append(("equal", old_line[i1:i2]))
            continue
        if tag in ("delete", "replace"):
            spans.append(("delete", old_line[i1:i2]))
        if tag in ("insert", "replace"):
            spans.append(("insert", new_line[j1:j2]))
    return spans
