"""Tests for the line diff engine."""

import time

import pytest

from edit_session.editing.diff_engine import (
    DiffApplyError,
    DiffEngine,
    DiffHunk,
    DiffLine,
    DiffLineKind,
    apply_hunks,
    char_diff,
    compute_diff,
    split_lines,
)


def _numbered(n: int) -> str:
    return "".join(f"line{i}\n" for i in range(1, n + 1))


def _lcs_length(a, b):
    prev = [0] * (len(b) + 1)
    for x in a:
        cur = [0]
        for j, y in enumerate(b):
            cur.append(prev[j] + 1 if x == y else max(prev[j + 1], cur[j]))
        prev = cur
    return prev[-1]


class TestSplitLines:
    def test_keeps_terminators(self):
        assert split_lines("a\nb\n") == ["a\n", "b\n"]

    def test_last_line_without_terminator(self):
        assert split_lines("a\nb") == ["a\n", "b"]

    def test_mixed_endings(self):
        assert split_lines("a\r\nb\rc") == ["a\r\n", "b\r", "c"]

    def test_empty(self):
        assert split_lines("") == []

    def test_blank_lines(self):
        assert split_lines("\n\n") == ["\n", "\n"]


class TestCompute:
    def test_identical_has_no_changes(self):
        diff = compute_diff("x\ny\n", "x\ny\n")
        assert diff.added_lines == 0
        assert diff.removed_lines == 0
        assert diff.hunks == ()
        assert diff.has_changes is False

    def test_both_empty(self):
        diff = compute_diff("", "")
        assert diff.hunks == ()
        assert diff.unchanged_lines == 0

    def test_single_line_replacement(self):
        diff = compute_diff("print(1)", "print(2)")
        assert diff.added_lines == 1
        assert diff.removed_lines == 1
        assert len(diff.hunks) == 1

    def test_creation_from_empty(self):
        diff = compute_diff("", "a\nb\n")
        assert diff.added_lines == 2
        hunk = diff.hunks[0]
        assert (hunk.old_start, hunk.old_count) == (1, 0)
        assert (hunk.new_start, hunk.new_count) == (1, 2)
        assert hunk.header == "@@ -0,0 +1,2 @@"

    def test_deletion_to_empty(self):
        diff = compute_diff("a\nb\n", "")
        assert diff.removed_lines == 2
        assert diff.added_lines == 0
        assert diff.hunks[0].header == "@@ -1,2 +0,0 @@"

    def test_line_numbers(self):
        diff = compute_diff("a\nb\nc\n", "a\nB\nc\n")
        lines = diff.hunks[0].lines
        assert lines[0] == DiffLine.unchanged("a\n", 1, 1)
        assert lines[1] == DiffLine.removed("b\n", 2)
        assert lines[2] == DiffLine.added("B\n", 2)
        assert lines[3] == DiffLine.unchanged("c\n", 3, 3)

    def test_trailing_newline_change_is_a_change(self):
        diff = compute_diff("a\n", "a")
        assert diff.has_changes
        assert diff.added_lines == 1
        assert diff.removed_lines == 1

    def test_minimal_script(self):
        diff = compute_diff("a\nb\nc\nd\n", "a\nc\nd\ne\n")
        assert diff.removed_lines == 1
        assert diff.added_lines == 1

    def test_classic_myers_example(self):
        old = "".join(f"{c}\n" for c in "abcabba")
        new = "".join(f"{c}\n" for c in "cbabac")
        diff = compute_diff(old, new)
        assert diff.removed_lines + diff.added_lines == 5
        assert diff.unchanged_lines == 4
        assert apply_hunks(old, diff.hunks) == new

    def test_script_is_minimal_with_repeated_lines(self):
        old_lines = [f"{i % 7}\n" for i in range(60)]
        new_lines = [f"{i % 5}\n" for i in range(60)]
        diff = compute_diff("".join(old_lines), "".join(new_lines))
        assert diff.unchanged_lines == _lcs_length(old_lines, new_lines)
        assert apply_hunks("".join(old_lines), diff.hunks) == "".join(new_lines)

    def test_removals_come_before_additions(self):
        diff = compute_diff("keep\nold1\nold2\nkeep2\n", "keep\nnew1\nnew2\nkeep2\n")
        kinds = [ln.kind for ln in diff.hunks[0].lines if ln.kind is not DiffLineKind.UNCHANGED]
        assert kinds == [DiffLineKind.REMOVED] * 2 + [DiffLineKind.ADDED] * 2

    def test_full_rewrite_of_large_file_is_fast(self):
        old = "".join(f"old line {i}\n" for i in range(2000))
        new = "".join(f"new line {i}\n" for i in range(2000))
        started = time.perf_counter()
        diff = compute_diff(old, new)
        assert time.perf_counter() - started < 1.0
        assert diff.removed_lines == 2000
        assert diff.added_lines == 2000

    def test_large_rewrite_with_shared_lines(self):
        old = "".join(f"{i}\n" if i % 4 else "\n" for i in range(2000))
        new = "".join(f"v{i}\n" if i % 4 else "\n" for i in range(2000))
        started = time.perf_counter()
        diff = compute_diff(old, new)
        assert time.perf_counter() - started < 2.0
        assert diff.unchanged_lines == 500
        assert apply_hunks(old, diff.hunks) == new

    def test_unchanged_count(self):
        diff = compute_diff(_numbered(10), _numbered(10).replace("line5", "five"))
        assert diff.unchanged_lines == 9


class TestHunkGrouping:
    def test_distant_changes_make_two_hunks(self):
        old = _numbered(20)
        new = old.replace("line2\n", "two\n").replace("line18\n", "eighteen\n")
        diff = DiffEngine(context_lines=3).compute(old, new)
        assert len(diff.hunks) == 2
        first, second = diff.hunks
        assert first.old_start == 1
        assert first.old_count == 5
        assert second.old_start == 15
        assert second.old_count == 6

    def test_close_changes_merge(self):
        old = _numbered(20)
        new = old.replace("line5\n", "five\n").replace("line10\n", "ten\n")
        diff = DiffEngine(context_lines=3).compute(old, new)
        assert len(diff.hunks) == 1

    def test_gap_of_exactly_twice_context_merges(self):
        old = _numbered(20)
        # Unchanged gap of 6 lines (line6..line11) with context 3.
        new = old.replace("line5\n", "five\n").replace("line12\n", "twelve\n")
        assert len(DiffEngine(3).compute(old, new).hunks) == 1

    def test_gap_wider_than_twice_context_splits(self):
        old = _numbered(20)
        new = old.replace("line5\n", "five\n").replace("line13\n", "thirteen\n")
        assert len(DiffEngine(3).compute(old, new).hunks) == 2

    def test_zero_context(self):
        old = _numbered(5)
        new = old.replace("line3\n", "three\n")
        hunk = DiffEngine(context_lines=0).compute(old, new).hunks[0]
        assert [ln.kind for ln in hunk.lines] == [DiffLineKind.REMOVED, DiffLineKind.ADDED]
        assert hunk.old_start == 3

    def test_negative_context_rejected(self):
        with pytest.raises(ValueError):
            DiffEngine(context_lines=-1)


class TestApplyHunks:
    @pytest.mark.parametrize("old,new", [
        ("", ""),
        ("", "hello"),
        ("hello", ""),
        ("a\nb\nc\n", "a\nc\n"),
        ("a\nb", "a\nb\n"),
        ("x\r\ny\r\n", "x\r\nz\r\n"),
        (_numbered(30), _numbered(30).replace("line3\n", "").replace("line25\n", "new\nlines\n")),
    ])
    def test_round_trip(self, old, new):
        diff = compute_diff(old, new)
        assert apply_hunks(old, diff.hunks) == new

    def test_round_trip_with_zero_context(self):
        old = _numbered(12)
        new = old.replace("line1\n", "").replace("line12\n", "end\n")
        diff = DiffEngine(0).compute(old, new)
        assert apply_hunks(old, diff.hunks) == new

    def test_mismatched_context_raises(self):
        diff = compute_diff("a\nb\nc\n", "a\nB\nc\n")
        with pytest.raises(DiffApplyError):
            apply_hunks("a\nX\nc\n", diff.hunks)

    def test_hunk_past_end_raises(self):
        hunk = DiffHunk(10, 0, 10, 1, (DiffLine.added("z\n", 10),))
        with pytest.raises(DiffApplyError):
            apply_hunks("a\n", [hunk])


class TestUnified:
    def test_headers_and_prefixes(self):
        diff = compute_diff("a\nb\n", "a\nc\n")
        text = DiffEngine.unified(diff, "f.txt")
        assert text.splitlines() == [
            "--- a/f.txt",
            "+++ b/f.txt",
            "@@ -1,2 +1,2 @@",
            " a",
            "-b",
            "+c",
        ]

    def test_missing_final_newline_marker(self):
        text = DiffEngine.unified(compute_diff("print(1)", "print(2)"), "main.py")
        assert "\\ No newline at end of file" in text

    def test_no_changes_renders_empty(self):
        assert DiffEngine.unified(compute_diff("a", "a"), "a") == ""


class TestDiffLine:
    def test_content_strips_terminator(self):
        assert DiffLine.added("foo\r\n", 1).content == "foo"

    def test_line_number_by_side(self):
        assert DiffLine.added("x\n", 4).line_number == 4
        assert DiffLine.removed("x\n", 7).line_number == 7
        assert DiffLine.unchanged("x\n", 2, 3).line_number == 2


class TestCharDiff:
    def test_changed_suffix(self):
        assert char_diff("foo bar", "foo baz") == [
            ("equal", "foo ba"), ("delete", "r"), ("insert", "z"),
        ]

    def test_identical(self):
        assert char_diff("same", "same") == [("equal", "same")]
