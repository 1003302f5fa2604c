"""
`edit-session` command line tool.

Runs one edit session end to end against files on disk: the AI response
is streamed into a session, the proposed edits are shown for review, and
the approved ones are committed and written back.

Usage
-----
edit-session FILE... --response reply.md               -- review, then write
edit-session FILE... --response - --auto               -- read stdin, apply all
edit-session FILE... --response reply.md --dry-run     -- show diffs only
edit-session --stats [--last-n 20]                     -- edit metrics summary
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional

from tqdm import tqdm

from .cli_display import CLIDisplay, setup_logger
from .config import Config
from .diff_display import prompt_edit_approval, show_diffs
from .disk import DiskWriteError, execute_to_disk, read_text, resolve_path
from .editing.metrics import log_edit_metric, read_edit_stats
from .models import FileSnapshot
from .session import EditSession

logger = logging.getLogger(__name__)

_DEFAULT_INSTRUCTION = "Apply the edits in the AI response"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_snapshots(paths: list[str], workspace: str) -> list[FileSnapshot]:
    """Snapshot each file; a missing file is captured as empty (new file)."""
    snapshots = []
    for rel_path in paths:
        abs_path = resolve_path(workspace, rel_path)
        content = read_text(abs_path) if os.path.isfile(abs_path) else ""
        snapshots.append(FileSnapshot(path=rel_path, content=content))
    return snapshots


def _read_response(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    with open(source, "r", encoding="utf-8", newline="") as f:
        return f.read()


def _stream(session: EditSession, text: str, chunk_size: int) -> None:
    """Feed *text* to the session the way a provider would stream it."""
    for start in range(0, len(text), chunk_size):
        session.append_streaming_text(text[start:start + chunk_size])


def _print_stats(last_n: int, workspace: str, config: Config) -> None:
    stats = read_edit_stats(
        last_n=last_n, project_root=workspace, metrics_dir=config.METRICS_DIR,
    )
    print(
        f"Edit sessions (last {last_n}):\n"
        f"  Sessions          : {stats['total_sessions']}\n"
        f"  Files changed     : {stats['total_files']}\n"
        f"  Avg lines added   : {stats['avg_added_lines']:.1f}\n"
        f"  Avg lines removed : {stats['avg_removed_lines']:.1f}\n"
        f"  Parse error rate  : {stats['parse_error_rate']:.1f}%"
    )
    for fmt, share in stats["source_formats"].items():
        print(f"  {fmt:<18}: {share:.1f}%")


# ---------------------------------------------------------------------------
# Session run
# ---------------------------------------------------------------------------

def run(args: argparse.Namespace, config: Config,
        display: CLIDisplay | None = None) -> int:
    """Run one session for parsed *args*; returns the process exit code."""
    display = display or CLIDisplay()
    workspace = os.path.abspath(args.workspace)

    try:
        snapshots = _load_snapshots(args.files, workspace)
        response = _read_response(args.response)
    except (OSError, DiskWriteError) as exc:
        display.error(f"Cannot read input: {exc}")
        return 1

    session = EditSession.create(
        args.instruction or _DEFAULT_INSTRUCTION, snapshots, config=config,
    )
    session.start()
    _stream(session, response, config.CHUNK_SIZE)

    if not session.complete_streaming():
        display.error(f"No edits proposed: {session.last_error}")
        for err in session.parse_errors:
            display.status(f"skipped: {err}")
        _record(args, config, session, [], "parse_failed")
        return 1

    edits = list(session.proposed_edits)
    display.status(f"{len(edits)} edit(s) proposed")
    display.summary(edits)
    for err in session.parse_errors:
        display.status(f"skipped: {err}")

    if args.dry_run:
        show_diffs(edits)
        return 0

    approved = prompt_edit_approval(edits, auto=args.auto or config.AUTO_APPROVE)
    if not approved:
        session.reject_all()
        display.status("All edits rejected, nothing written")
        _record(args, config, session, [], "rejected")
        return 0

    changes = session.accept([e.id for e in edits if e.id in approved])
    if changes is None:
        display.error(f"Commit failed: {session.last_error}")
        return 1

    pbar = tqdm(total=len(changes), unit="file", desc="Writing")
    try:
        execute_to_disk(changes, workspace, on_progress=lambda done, total: pbar.update(1))
    except DiskWriteError as exc:
        display.error(str(exc))
        session.undo()
        _record(args, config, session, [], "write_failed")
        return 1
    finally:
        pbar.close()

    display.success(f"Wrote {len(changes)} file(s)")
    _record(args, config, session, [e for e in edits if e.id in approved], "committed")
    return 0


def _record(args: argparse.Namespace, config: Config, session: EditSession,
            applied: list, status: str) -> None:
    if args.no_metrics:
        return
    log_edit_metric(
        {
            "session_id": session.id,
            "status": status,
            "files": [e.file_path for e in applied],
            "added_lines": sum(e.diff.added_lines for e in applied),
            "removed_lines": sum(e.diff.removed_lines for e in applied),
            "source_formats": [e.metadata.source_format for e in applied],
            "parse_errors": len(session.parse_errors),
        },
        project_root=os.path.abspath(args.workspace),
        metrics_dir=config.METRICS_DIR,
    )


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="edit-session",
        description="Turn an AI response into reviewed, committed file edits",
    )
    parser.add_argument("files", nargs="*", metavar="FILE",
                        help="Files the response may edit (relative to --workspace)")
    parser.add_argument("--response", "-r",
                        help="File holding the AI response, or - for stdin")
    parser.add_argument("--instruction", "-i",
                        help="The instruction the response answers")
    parser.add_argument("--workspace", "-w", default=".",
                        help="Directory file paths are relative to (default: .)")
    parser.add_argument("--auto", action="store_true",
                        help="Apply every proposed edit without asking")
    parser.add_argument("--dry-run", dest="dry_run", action="store_true",
                        help="Show the diffs and exit without writing")
    parser.add_argument("--config", help="Path to a .edit_session.yaml file")
    parser.add_argument("--no-metrics", dest="no_metrics", action="store_true",
                        help="Do not append to the edit metrics log")
    parser.add_argument("--stats", action="store_true",
                        help="Print edit metrics statistics and exit")
    parser.add_argument("--last-n", dest="last_n", type=int, default=50,
                        help="Entries included by --stats (default: 50)")
    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = Config.load(args.config)
    except ValueError as exc:
        parser.error(f"invalid configuration: {exc}")

    setup_logger(config.LOG_DIR)

    if args.stats:
        _print_stats(args.last_n, os.path.abspath(args.workspace), config)
        return 0
    if not args.files or not args.response:
        parser.error("FILE and --response are required unless --stats is given")

    return run(args, config)


if __name__ == "__main__":
    sys.exit(main())
