"""
Diff display — render proposed edits as colored unified diffs and ask the
user which of them to apply.

Includes a Textual-based interactive diff viewer that pauses execution so
the user can review each file and approve or reject it before anything is
committed.
"""

from __future__ import annotations

import logging
import sys
from typing import Iterable

from .editing.diff_engine import DiffEngine, DiffHunk, DiffLineKind, char_diff
from .models import ProposedEdit

logger = logging.getLogger(__name__)


def unified_text(edit: ProposedEdit) -> str:
    """Unified diff text of one proposed edit."""
    return DiffEngine.unified(edit.diff, edit.file_path)


def format_colored_diff(diff_text: str) -> str:
    """Add ANSI colors to a unified diff string.

    Green for additions (+), red for deletions (-), cyan for @@ hunks.
    """
    lines = diff_text.splitlines()
    colored: list[str] = []
    for line in lines:
        if line.startswith("+++") or line.startswith("---"):
            colored.append(f"\033[1m{line}\033[0m")  # bold
        elif line.startswith("@@"):
            colored.append(f"\033[36m{line}\033[0m")  # cyan
        elif line.startswith("+"):
            colored.append(f"\033[32m{line}\033[0m")  # green
        elif line.startswith("-"):
            colored.append(f"\033[31m{line}\033[0m")  # red
        else:
            colored.append(line)
    return "\n".join(colored)


def show_diffs(edits: Iterable[ProposedEdit], log_only: bool = False) -> list[str]:
    """Display the diff of every edit.

    When *log_only* is True, diffs are logged but not printed (for --auto
    mode).  Returns the uncolored diff strings.
    """
    diff_strings: list[str] = []
    for edit in edits:
        diff_text = unified_text(edit)
        diff_strings.append(diff_text)
        if log_only:
            logger.info("Diff for %s:\n%s", edit.file_path, diff_text)
        else:
            print(f"\n{'─' * 60}")
            print(format_colored_diff(diff_text))
    return diff_strings


# ══════════════════════════════════════════════════════════════════
#  Rich markup (Textual)
# ══════════════════════════════════════════════════════════════════

def _escape(text: str) -> str:
    return text.replace("[", "\\[")


def _markup_pair(removed: str, added: str) -> tuple[str, str]:
    """Markup for a one-line replacement with the changed spans emphasized."""
    old_parts: list[str] = []
    new_parts: list[str] = []
    for tag, text in char_diff(removed, added):
        escaped = _escape(text)
        if tag == "equal":
            old_parts.append(escaped)
            new_parts.append(escaped)
        elif tag == "delete":
            old_parts.append(f"[reverse]{escaped}[/reverse]")
        else:
            new_parts.append(f"[reverse]{escaped}[/reverse]")
    return (
        f"[red]-{''.join(old_parts)}[/red]",
        f"[green]+{''.join(new_parts)}[/green]",
    )


def _format_rich_hunk(hunk: DiffHunk) -> list[str]:
    out = [f"[cyan]{_escape(hunk.header)}[/cyan]"]
    lines = list(hunk.lines)
    i = 0
    while i < len(lines):
        line = lines[i]
        if line.kind is DiffLineKind.UNCHANGED:
            out.append(" " + _escape(line.content))
            i += 1
            continue
        # Collect the run of removals followed by additions
        removed = []
        while i < len(lines) and lines[i].kind is DiffLineKind.REMOVED:
            removed.append(lines[i].content)
            i += 1
        added = []
        while i < len(lines) and lines[i].kind is DiffLineKind.ADDED:
            added.append(lines[i].content)
            i += 1
        if len(removed) == 1 and len(added) == 1:
            out.extend(_markup_pair(removed[0], added[0]))
            continue
        out.extend(f"[red]-{_escape(text)}[/red]" for text in removed)
        out.extend(f"[green]+{_escape(text)}[/green]" for text in added)
    return out


def format_rich_diff(edit: ProposedEdit) -> str:
    """Convert an edit's hunks to Rich markup for Textual display."""
    markup: list[str] = []
    for hunk in edit.diff.hunks:
        markup.extend(_format_rich_hunk(hunk))
    return "\n".join(markup)


# ══════════════════════════════════════════════════════════════════
#  Interactive diff approval (Textual TUI)
# ══════════════════════════════════════════════════════════════════

def prompt_edit_approval(edits: list[ProposedEdit], auto: bool = False) -> set[str]:
    """Show diffs and wait for the user to choose which edits to apply.

    Returns the ids of the approved edits; an empty set means everything
    was rejected.  In auto mode every edit is approved without asking.
    """
    if not edits:
        return set()

    if auto:
        for edit in edits:
            logger.info("[auto] Diff for %s:\n%s", edit.file_path, unified_text(edit))
        return {edit.id for edit in edits}

    if sys.stdin.isatty() and sys.stdout.isatty():
        try:
            return _textual_edit_approval(edits)
        except Exception as e:
            logger.warning("Textual diff viewer failed: %s", e)

    # Fallback: console-based approval
    return _console_edit_approval(edits)


def _textual_edit_approval(edits: list[ProposedEdit]) -> set[str]:
    """Launch a Textual app to display diffs and collect approvals."""
    from textual.app import App, ComposeResult
    from textual.binding import Binding
    from textual.containers import Horizontal, VerticalScroll
    from textual.widgets import Button, Checkbox, Footer, Static

    class DiffApprovalApp(App):
        """Interactive diff viewer with per-file approve/reject."""

        CSS = """
        Screen {
            background: $surface;
        }
        #title-bar {
            dock: top;
            height: 3;
            background: #1a1a2e;
            color: #e94560;
            text-align: center;
            padding: 1;
            text-style: bold;
        }
        #diff-scroll {
            height: 1fr;
            margin: 1 2;
            border: round #444;
            padding: 1;
        }
        .file-header {
            color: #e9c46a;
            text-style: bold;
            margin: 1 0 0 0;
        }
        .diff-content {
            margin: 0 0 1 0;
        }
        #action-buttons {
            dock: bottom;
            height: 3;
            align: center middle;
            padding: 0 2;
        }
        #action-buttons Button {
            margin: 0 2;
            min-width: 20;
        }
        #summary {
            dock: bottom;
            height: 1;
            text-align: center;
            color: #888;
        }
        """

        BINDINGS = [
            Binding("a", "approve", "Apply selected"),
            Binding("ctrl+s", "approve", "Apply selected"),
            Binding("escape", "reject", "Reject all"),
            Binding("r", "reject", "Reject all"),
        ]

        def __init__(self, edits: list[ProposedEdit]) -> None:
            super().__init__()
            self._edits = edits
            self._approved: set[str] = set()

        def compose(self) -> ComposeResult:
            yield Static(
                f" ━━  Diff Review — {len(self._edits)} file(s) changed  ━━ ",
                id="title-bar",
            )
            with VerticalScroll(id="diff-scroll"):
                for index, edit in enumerate(self._edits):
                    yield Checkbox(
                        f"{edit.file_path}  (+{edit.diff.added_lines} "
                        f"-{edit.diff.removed_lines})",
                        value=True,
                        id=f"edit-{index}",
                        classes="file-header",
                    )
                    yield Static(format_rich_diff(edit), classes="diff-content")
            added = sum(e.diff.added_lines for e in self._edits)
            removed = sum(e.diff.removed_lines for e in self._edits)
            yield Static(
                f"  +{added} -{removed}  —  "
                f"Press [bold]A[/bold] to apply checked files, "
                f"[bold]R[/bold] or Esc to reject all",
                id="summary",
            )
            with Horizontal(id="action-buttons"):
                yield Button("✔ Apply", id="approve-btn", variant="success")
                yield Button("✕ Reject", id="reject-btn", variant="error")
            yield Footer()

        def on_button_pressed(self, event: Button.Pressed) -> None:
            if event.button.id == "approve-btn":
                self.action_approve()
            elif event.button.id == "reject-btn":
                self.action_reject()

        def action_approve(self) -> None:
            self._approved = {
                edit.id
                for index, edit in enumerate(self._edits)
                if self.query_one(f"#edit-{index}", Checkbox).value
            }
            self.exit()

        def action_reject(self) -> None:
            self._approved = set()
            self.exit()

    app = DiffApprovalApp(edits)
    app.run()
    return app._approved


def _parse_selection(choice: str, count: int) -> list[int] | None:
    """Parse ``"1,3"`` into zero-based indexes, ``None`` if invalid."""
    indexes: list[int] = []
    for part in choice.replace(" ", "").split(","):
        if not part.isdigit() or not 1 <= int(part) <= count:
            return None
        indexes.append(int(part) - 1)
    return indexes


def _console_edit_approval(edits: list[ProposedEdit]) -> set[str]:
    """Console diff approval for non-interactive terminals."""
    print("\n" + "=" * 60)
    print("  DIFF REVIEW")
    print("=" * 60)

    for index, edit in enumerate(edits, 1):
        print(f"\n{'─' * 60}")
        print(f"  [{index}] {edit.file_path}")
        print(format_colored_diff(unified_text(edit)))

    print("\n" + "=" * 60)
    print("  [A]pprove all  |  [R]eject all  |  numbers (e.g. 1,3) to pick files")
    print()

    while True:
        try:
            choice = input("  Your choice: ").strip().lower()
        except (EOFError, KeyboardInterrupt):
            return set()
        if choice in ("a", "approve"):
            return {edit.id for edit in edits}
        if choice in ("r", "reject"):
            return set()
        picked = _parse_selection(choice, len(edits)) if choice else None
        if picked is not None:
            return {edits[i].id for i in picked}
        print("  Invalid choice. Use A, R or file numbers.")
