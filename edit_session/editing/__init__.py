"""Text-level editing machinery: diffs, line operations, stream parsing."""

from .diff_engine import (
    Diff, DiffApplyError, DiffEngine, DiffHunk, DiffLine, DiffLineKind,
    apply_hunks, char_diff, compute_diff, split_lines,
)
from .line_ops import LineOp, LineOperation, apply_operations, split_content
from .stream_parser import ParsedEdit, ParseResult, StreamParser
from .metrics import log_edit_metric, read_edit_stats

__all__ = [
    "Diff", "DiffApplyError", "DiffEngine", "DiffHunk", "DiffLine", "DiffLineKind",
    "apply_hunks", "char_diff", "compute_diff", "split_lines",
    "LineOp", "LineOperation", "apply_operations", "split_content",
    "ParsedEdit", "ParseResult", "StreamParser",
    "log_edit_metric", "read_edit_stats",
]
