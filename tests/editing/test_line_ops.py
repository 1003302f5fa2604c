"""Tests for line-range operations."""

import pytest

from edit_session.editing.line_ops import (
    LineOp,
    LineOperation,
    apply_operations,
    check_bounds,
    normalize_content_lines,
    parse_line_op,
    split_content,
)
from edit_session.errors import EditOutOfBoundsError, MalformedEditError


def _op(kind, start=None, end=None, lines=(), order=0):
    return LineOperation(LineOp(kind), start, end, tuple(lines), order)


class TestSplitContent:
    def test_empty_has_no_lines(self):
        assert split_content("").lines == ()

    def test_trailing_newline_is_not_a_line(self):
        split = split_content("a\nb\n")
        assert split.lines == ("a", "b")
        assert split.trailing_newline is True

    def test_crlf_style_is_kept(self):
        split = split_content("a\r\nb\r\n")
        assert split.newline == "\r\n"
        assert split.join(["x", "y"]) == "x\r\ny\r\n"

    def test_join_empty(self):
        assert split_content("a\n").join([]) == ""


class TestApplyOperations:
    def test_replace_single_line(self):
        assert apply_operations("line1\nline2", [_op("replace", 1, 1, ["hi"])]) == "hi\nline2"

    def test_replace_range_with_more_lines(self):
        result = apply_operations("a\nb\nc\n", [_op("replace", 2, 3, ["x", "y", "z"])])
        assert result == "a\nx\ny\nz\n"

    def test_insert_before_line(self):
        assert apply_operations("a\nb\n", [_op("insert", 2, 2, ["new"])]) == "a\nnew\nb\n"

    def test_insert_after_last_line(self):
        assert apply_operations("a\nb\n", [_op("insert", 3, 3, ["c"])]) == "a\nb\nc\n"

    def test_delete_range(self):
        assert apply_operations("a\nb\nc\nd\n", [_op("delete", 2, 3)]) == "a\nd\n"

    def test_whole_file_replace(self):
        assert apply_operations("old\n", [_op("replace", lines=["new"])]) == "new\n"

    def test_whole_file_insert_appends(self):
        assert apply_operations("a", [_op("insert", lines=["b"])]) == "a\nb"

    def test_whole_file_delete_empties(self):
        assert apply_operations("a\nb\n", [_op("delete")]) == ""

    def test_insert_into_empty_file(self):
        assert apply_operations("", [_op("insert", 1, 1, ["first"])]) == "first"

    def test_multiple_ops_use_original_coordinates(self):
        ops = [
            _op("replace", 1, 1, ["A"], order=0),
            _op("delete", 3, 3, order=1),
            _op("insert", 5, 5, ["E"], order=2),
        ]
        assert apply_operations("a\nb\nc\nd\n", ops) == "A\nb\nd\nE\n"

    def test_inserts_at_same_point_keep_order(self):
        ops = [_op("insert", 2, 2, ["x"], order=0), _op("insert", 2, 2, ["y"], order=1)]
        assert apply_operations("a\nb\n", ops) == "a\nx\ny\nb\n"


class TestConflicts:
    def test_overlapping_ranges(self):
        assert _op("replace", 1, 3).conflicts_with(_op("delete", 3, 4), 5)

    def test_adjacent_ranges(self):
        assert not _op("replace", 1, 2).conflicts_with(_op("delete", 3, 4), 5)

    def test_insert_at_range_boundary(self):
        assert not _op("insert", 3, 3).conflicts_with(_op("replace", 3, 4), 5)

    def test_insert_inside_range(self):
        assert _op("insert", 3, 3).conflicts_with(_op("replace", 2, 4), 5)

    def test_whole_file_replace_conflicts_with_range(self):
        assert _op("replace").conflicts_with(_op("delete", 2, 2), 3)

    @pytest.mark.parametrize("first,second", [
        ("replace", "replace"),
        ("replace", "delete"),
        ("delete", "delete"),
    ])
    def test_whole_file_ops_clash_on_empty_file(self, first, second):
        assert _op(first).conflicts_with(_op(second), 0)
        assert _op(second).conflicts_with(_op(first), 0)

    def test_appends_do_not_clash(self):
        assert not _op("insert", lines=["a"]).conflicts_with(_op("insert", lines=["b"]), 0)


class TestCheckBounds:
    def test_in_range(self):
        check_bounds(_op("replace", 1, 2), 2)

    def test_end_past_file(self):
        with pytest.raises(EditOutOfBoundsError):
            check_bounds(_op("replace", 1, 5), 2, "a.txt")

    def test_zero_start(self):
        with pytest.raises(EditOutOfBoundsError):
            check_bounds(_op("delete", 0, 1), 2)

    def test_inverted_range(self):
        with pytest.raises(MalformedEditError):
            check_bounds(_op("replace", 3, 2), 5)

    def test_insert_may_target_one_past_end(self):
        check_bounds(_op("insert", 3, 3), 2)
        with pytest.raises(EditOutOfBoundsError):
            check_bounds(_op("insert", 4, 4), 2)

    def test_error_carries_file_and_range(self):
        with pytest.raises(EditOutOfBoundsError) as exc_info:
            check_bounds(_op("replace", 2, 9), 3, "a.txt")
        assert exc_info.value.file_path == "a.txt"
        assert exc_info.value.details["end_line"] == 9


class TestParsing:
    def test_operation_names(self):
        assert parse_line_op("Replace") is LineOp.REPLACE
        assert parse_line_op(" delete ") is LineOp.DELETE

    def test_unknown_operation(self):
        with pytest.raises(MalformedEditError):
            parse_line_op("move")

    def test_content_with_embedded_newlines(self):
        assert normalize_content_lines(["a\nb", "c"]) == ("a", "b", "c")
