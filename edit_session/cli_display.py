import logging
import os
import sys
from datetime import datetime

from .models import ProposedEdit


def setup_logger(log_dir: str = ".edit_session/logs") -> logging.Logger:
    """Creates a file logger. All verbose output goes here."""
    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"session_{timestamp}.log")

    logger = logging.getLogger("edit_session")
    logger.setLevel(logging.DEBUG)

    # File handler: everything
    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S"
    ))
    logger.addHandler(fh)

    return logger


log = logging.getLogger("edit_session")


class CLIDisplay:
    """Terminal status lines for one CLI run."""

    def __init__(self, stream=None):
        self._stream = stream or sys.stdout

    def _write(self, text: str) -> None:
        self._stream.write(text + "\n")
        self._stream.flush()

    def status(self, message: str) -> None:
        self._write(f"  \033[36m●\033[0m {message}")
        log.info(message)

    def success(self, message: str) -> None:
        self._write(f"  \033[32m✔\033[0m {message}")
        log.info(message)

    def error(self, message: str) -> None:
        self._write(f"  \033[31m✕\033[0m {message}")
        log.error(message)

    def summary(self, edits: tuple[ProposedEdit, ...] | list[ProposedEdit]) -> None:
        """One line per proposed edit: path, kind, +added/-removed."""
        for edit in edits:
            self._write(
                f"    {edit.file_path}  [{edit.metadata.edit_type.value}]  "
                f"\033[32m+{edit.diff.added_lines}\033[0m "
                f"\033[31m-{edit.diff.removed_lines}\033[0m"
            )
