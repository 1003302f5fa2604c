"""
Stream parser — extracts file edit intents from completed AI output.

Two formats are recognised, scanned in document order:

1. Structured: a fenced ``json`` block holding
   ``{"edits": [{"file", "operation", "range": {"startLine", "endLine"},
   "content": [...]}]}``.  Entries are applied to the file's original
   content.
2. Fallback: a line naming a file, immediately followed by a fenced code
   block whose body is the file's full replacement.

Problems with a single block or entry are recorded on the result and
skipped; they never stop the scan.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping

from ..errors import (
    EditSessionError,
    MalformedEditError,
    UnknownFileError,
    ValidationFailureError,
)
from .line_ops import (
    LineOp,
    LineOperation,
    apply_operations,
    check_bounds,
    normalize_content_lines,
    parse_line_op,
    split_content,
)

if TYPE_CHECKING:
    from ..models import FileSnapshot

logger = logging.getLogger(__name__)

STRUCTURED = "structured"
FALLBACK = "fallback"

DEFAULT_MAX_EDIT_LINES = 500
DEFAULT_STRUCTURED_TAGS = ("json",)

_FENCE_RE = re.compile(r"^[ \t]*(?P<fence>`{3,}|~{3,})[ \t]*(?P<info>[^\n]*?)[ \t]*$")

# `path`, **path**, ### path, #### [FILE]: path, File: path, path:, or a bare path.
_MARKER_RE = re.compile(
    r"^(?:#{1,6}[ \t]*)?"
    r"(?:(?:\[file\]|file|path)[ \t]*:[ \t]*)?"
    r"(?:`(?P<tick>[^`\s]+)`|\*\*(?P<bold>[^*\s]+)\*\*|(?P<bare>[^\s`*]+?))"
    r"[ \t]*:?[ \t]*$",
    re.IGNORECASE,
)
_PATHLIKE_RE = re.compile(r"^[\w.\-/\\]+$")


@dataclass(frozen=True)
class FencedBlock:
    """A fenced code block found in the buffer."""
    info: str
    body: str
    position: int
    marker: str | None = None
    closed: bool = True

    @property
    def tag(self) -> str:
        return self.info.split()[0].lower() if self.info.split() else ""


@dataclass(frozen=True)
class ParsedEdit:
    """One file's proposed full content, extracted from the stream."""
    file_path: str
    original_content: str
    proposed_content: str
    source_format: str
    operations: int = 1


@dataclass
class ParseResult:
    edits: list[ParsedEdit] = field(default_factory=list)
    errors: list[EditSessionError] = field(default_factory=list)
    superseded: list[tuple[str, str]] = field(default_factory=list)

    @property
    def parse_successful(self) -> bool:
        return len(self.edits) > 0


def _marker_path(line: str, known: Mapping[str, FileSnapshot]) -> str | None:
    """Return the file path a marker line names, or ``None``."""
    match = _MARKER_RE.match(line.strip())
    if not match:
        return None
    path = match.group("tick") or match.group("bold") or match.group("bare")
    if not path:
        return None
    if path in known:
        return path
    if match.group("bare") and not (
        _PATHLIKE_RE.match(path) and ("." in path or "/" in path)
    ):
        return None
    return path


def iter_fenced_blocks(text: str, known: Mapping[str, FileSnapshot] | None = None) -> list[FencedBlock]:
    """Find fenced blocks in *text* along with their preceding path marker.

    A marker must be the last non-blank line before the opening fence.
    An opening fence without a closing one yields a block with
    ``closed=False``.
    """
    known = known or {}
    blocks: list[FencedBlock] = []
    lines = text.splitlines(keepends=True)
    offsets: list[int] = []
    pos = 0
    for line in lines:
        offsets.append(pos)
        pos += len(line)

    i = 0
    last_text_line: str | None = None
    while i < len(lines):
        raw = lines[i].rstrip("\r\n")
        opening = _FENCE_RE.match(raw)
        if not opening:
            if raw.strip():
                last_text_line = raw
            i += 1
            continue

        fence = opening.group("fence")
        marker = _marker_path(last_text_line, known) if last_text_line else None
        body_start = i + 1
        j = body_start
        closed = False
        while j < len(lines):
            candidate = lines[j].rstrip("\r\n").strip()
            if (
                candidate
                and candidate[0] == fence[0]
                and len(candidate) >= len(fence)
                and candidate == candidate[0] * len(candidate)
            ):
                closed = True
                break
            j += 1

        body = "".join(lines[body_start:j])
        # The terminator before the closing fence belongs to the fence.
        if body.endswith("\r\n"):
            body = body[:-2]
        elif body.endswith(("\n", "\r")):
            body = body[:-1]

        blocks.append(FencedBlock(
            info=opening.group("info"),
            body=body,
            position=offsets[i],
            marker=marker,
            closed=closed,
        ))
        last_text_line = None
        i = j + 1

    return blocks


class StreamParser:
    """Extract edit intents from a completed stream buffer.

    Parameters
    ----------
    max_edit_lines:
        Structured entries with more content lines than this are dropped.
    structured_tags:
        Fence tags whose blocks are tried as structured edit documents.
    """

    def __init__(
        self,
        max_edit_lines: int = DEFAULT_MAX_EDIT_LINES,
        structured_tags: tuple[str, ...] = DEFAULT_STRUCTURED_TAGS,
    ) -> None:
        self._max_edit_lines = max_edit_lines
        self._structured_tags = tuple(t.lower() for t in structured_tags)

    def parse(self, text: str, snapshots: Mapping[str, FileSnapshot]) -> ParseResult:
        """Parse *text* against the session's file *snapshots*.

        Returns a :class:`ParseResult` with at most one edit per file, in
        order of first appearance.  Per-edit failures end up in
        ``result.errors``.
        """
        result = ParseResult()
        structured_ops: dict[str, list[LineOperation]] = {}
        fallback_bodies: dict[str, str] = {}
        first_seen: dict[str, int] = {}
        order = 0

        for block in iter_fenced_blocks(text, snapshots):
            if not block.closed:
                if block.marker or block.tag in self._structured_tags:
                    result.errors.append(MalformedEditError(
                        "Unterminated code block", block.marker,
                        {"position": block.position},
                    ))
                continue

            document = None
            if block.tag in self._structured_tags:
                try:
                    document = self._load_edits_document(block.body)
                except MalformedEditError as exc:
                    exc.file_path = block.marker
                    exc.details["position"] = block.position
                    result.errors.append(exc)
                    logger.warning(
                        "[StreamParser] Malformed structured block at offset %d: %s",
                        block.position, exc,
                    )
                    continue

            if document is not None:
                for entry in document:
                    try:
                        path, op = self._build_operation(entry, snapshots, order)
                        line_count = len(split_content(snapshots[path].content).lines)
                        for accepted in structured_ops.get(path, []):
                            if op.conflicts_with(accepted, line_count):
                                raise MalformedEditError(
                                    "Edit overlaps an earlier edit for the same file",
                                    path,
                                )
                    except EditSessionError as exc:
                        logger.warning("[StreamParser] Dropped structured edit: %s", exc)
                        result.errors.append(exc)
                        continue
                    structured_ops.setdefault(path, []).append(op)
                    first_seen.setdefault(path, block.position)
                    order += 1
                continue

            if block.marker is None:
                if block.tag in self._structured_tags:
                    result.errors.append(MalformedEditError(
                        "Malformed structured edit block",
                        details={"position": block.position},
                    ))
                    logger.warning(
                        "[StreamParser] Malformed structured block at offset %d",
                        block.position,
                    )
                else:
                    logger.debug(
                        "[StreamParser] Ignoring unlabelled %s block at offset %d",
                        block.tag or "plain", block.position,
                    )
                continue

            path = block.marker
            if path not in snapshots:
                result.errors.append(UnknownFileError(
                    f"Unknown file {path!r}", path,
                ))
                logger.warning("[StreamParser] Fallback block names unknown file %s", path)
                continue
            if path in fallback_bodies:
                result.superseded.append((path, FALLBACK))
                logger.debug("[StreamParser] Later block for %s supersedes earlier one", path)
            fallback_bodies[path] = block.body
            first_seen.setdefault(path, block.position)

        for path in sorted(first_seen, key=first_seen.__getitem__):
            original = snapshots[path].content
            if path in structured_ops:
                if path in fallback_bodies:
                    result.superseded.append((path, FALLBACK))
                    logger.info(
                        "[StreamParser] Structured edits for %s take precedence "
                        "over a whole-file block", path,
                    )
                ops = structured_ops[path]
                proposed = apply_operations(original, ops)
                source, count = STRUCTURED, len(ops)
            else:
                proposed = fallback_bodies[path]
                source, count = FALLBACK, 1

            if proposed == original:
                result.errors.append(ValidationFailureError(
                    "Edit leaves the file unchanged", path,
                ))
                continue
            result.edits.append(ParsedEdit(
                file_path=path,
                original_content=original,
                proposed_content=proposed,
                source_format=source,
                operations=count,
            ))

        logger.info(
            "[StreamParser] %d edit(s), %d error(s) from %d chars",
            len(result.edits), len(result.errors), len(text),
        )
        return result

    # ------------------------------------------------------------------
    # Structured format
    # ------------------------------------------------------------------

    @staticmethod
    def _load_edits_document(body: str) -> list[Any] | None:
        """Return the entries of an edits document.

        ``None`` means the body is valid JSON of some other shape (a real
        ``package.json``, say).  A body that does not decode, or whose
        ``edits`` key is not a list, raises :class:`MalformedEditError`.
        """
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, ValueError) as exc:
            raise MalformedEditError(f"Structured edit block is not valid JSON: {exc}")
        if not isinstance(data, dict) or "edits" not in data:
            return None
        if not isinstance(data["edits"], list):
            raise MalformedEditError("\"edits\" must be a list")
        return data["edits"]

    def _build_operation(
        self,
        entry: Any,
        snapshots: Mapping[str, FileSnapshot],
        order: int,
    ) -> tuple[str, LineOperation]:
        if not isinstance(entry, dict):
            raise MalformedEditError("Edit entry is not an object")

        path = entry.get("file")
        if not isinstance(path, str) or not path.strip():
            raise MalformedEditError("Edit entry has no file")
        path = path.strip()
        if path not in snapshots:
            raise UnknownFileError(f"Unknown file {path!r}", path)

        op = parse_line_op(entry.get("operation", ""))

        content = entry.get("content", [])
        if content is None:
            content = []
        elif isinstance(content, str):
            content = [content]
        if not isinstance(content, list) or not all(isinstance(c, str) for c in content):
            raise MalformedEditError("content must be a list of strings", path)
        lines = normalize_content_lines(content) if op is not LineOp.DELETE else ()
        if len(lines) > self._max_edit_lines:
            raise MalformedEditError(
                f"Edit content has {len(lines)} lines (max {self._max_edit_lines})",
                path,
            )

        start, end = self._read_range(entry.get("range"), path)
        operation = LineOperation(
            op=op, start_line=start, end_line=end, lines=lines, order=order,
        )
        line_count = len(split_content(snapshots[path].content).lines)
        check_bounds(operation, line_count, path)
        return path, operation

    @staticmethod
    def _read_range(raw: Any, path: str) -> tuple[int | None, int | None]:
        if raw is None:
            return None, None
        if not isinstance(raw, dict):
            raise MalformedEditError("range must be an object", path)

        def as_int(key: str) -> int | None:
            value = raw.get(key)
            if value is None:
                return None
            if isinstance(value, bool) or not isinstance(value, int):
                raise MalformedEditError(f"{key} must be an integer", path)
            return value

        start = as_int("startLine")
        end = as_int("endLine")
        if start is None:
            raise MalformedEditError("range is missing startLine", path)
        return start, end if end is not None else start
