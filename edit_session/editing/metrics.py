"""
Edit metrics — records committed edit sessions in a JSONL log file.
"""

from __future__ import annotations

import json
import logging
import os
from collections import Counter
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

_METRICS_DIR = ".edit_session"
_METRICS_FILE = "edit_metrics.jsonl"


def _metrics_path(project_root: str | None = None, metrics_dir: str = _METRICS_DIR) -> str:
    """Return the absolute path to the metrics file."""
    base = project_root or os.getcwd()
    return os.path.join(base, metrics_dir, _METRICS_FILE)


def log_edit_metric(
    data: dict,
    project_root: str | None = None,
    metrics_dir: str = _METRICS_DIR,
) -> None:
    """Append a single edit metric entry to the JSONL log.

    Parameters
    ----------
    data:
        Metric fields to log (files, added_lines, removed_lines,
        source_formats, parse_errors, ...).
    project_root:
        Optional project root directory. Defaults to CWD.
    metrics_dir:
        Directory under *project_root* that holds the log.
    """
    path = _metrics_path(project_root, metrics_dir)
    os.makedirs(os.path.dirname(path), exist_ok=True)

    entry = {"timestamp": datetime.now(timezone.utc).isoformat()}
    entry.update(data)

    try:
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry) + "\n")
    except OSError as exc:
        logger.warning("[Metrics] Failed to write metrics: %s", exc)


def read_edit_stats(
    last_n: int = 50,
    project_root: str | None = None,
    metrics_dir: str = _METRICS_DIR,
) -> dict:
    """Compute rolling statistics from the metrics log.

    Parameters
    ----------
    last_n:
        Number of most-recent entries to include.  Zero or less includes none.
    project_root:
        Optional project root directory.

    Returns
    -------
    dict
        Statistics including total_sessions, total_files, avg_added_lines,
        avg_removed_lines, parse_error_rate and source_formats (percentage
        share of each edit format across all files).
    """
    path = _metrics_path(project_root, metrics_dir)

    entries: list[dict] = []
    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line:
                        try:
                            entries.append(json.loads(line))
                        except json.JSONDecodeError:
                            continue
        except OSError as exc:
            logger.warning("[Metrics] Failed to read metrics: %s", exc)

    entries = entries[-last_n:] if last_n > 0 else []

    if not entries:
        return {
            "total_sessions": 0,
            "total_files": 0,
            "avg_added_lines": 0.0,
            "avg_removed_lines": 0.0,
            "parse_error_rate": 0.0,
            "source_formats": {},
        }

    total = len(entries)
    with_errors = sum(1 for e in entries if e.get("parse_errors", 0) > 0)
    formats: Counter = Counter()
    for e in entries:
        formats.update(e.get("source_formats", []))
    format_total = sum(formats.values())

    return {
        "total_sessions": total,
        "total_files": sum(len(e.get("files", [])) for e in entries),
        "avg_added_lines": sum(e.get("added_lines", 0) for e in entries) / total,
        "avg_removed_lines": sum(e.get("removed_lines", 0) for e in entries) / total,
        "parse_error_rate": with_errors / total * 100,
        "source_formats": {
            fmt: count / format_total * 100
            for fmt, count in formats.most_common()
        },
    }
