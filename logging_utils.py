"""Logging setup: rich console output plus a full debug trace in ``run.log``."""
import logging
import sys
import tempfile
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
FALLBACK_LOG_NAME = "takahashi.run.log"
QUIET_LOGGERS = ("urllib3", "PIL")


def _file_handler(path: Path) -> logging.FileHandler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


def setup_logging(
    verbose: bool = False,
    log_path: Optional[Path] = None,
    console: Optional[Console] = None,
) -> Optional[Path]:
    """Route app logs to the terminal and, when given, to ``log_path``.

    The terminal shows INFO and up (DEBUG with ``verbose``). The log file
    always records DEBUG so a failed run can be inspected afterwards. When
    ``log_path`` cannot be opened, a file in the temp dir is used instead.

    Returns:
        Optional[Path]: the file actually written, or ``None``
    """
    console_handler = RichHandler(
        console=console or Console(stderr=True),
        level=logging.DEBUG if verbose else logging.INFO,
        show_path=False,
        markup=False,
        rich_tracebacks=verbose,
    )
    handlers = [console_handler]

    written: Optional[Path] = None
    if log_path is not None:
        log_path = Path(log_path)
        try:
            handlers.append(_file_handler(log_path))
            written = log_path
        except OSError as exc:
            fallback = Path(tempfile.gettempdir()) / FALLBACK_LOG_NAME
            try:
                handlers.append(_file_handler(fallback))
                written = fallback
                print(f"[WARN] Cannot write log file {log_path} ({exc}); using {fallback}.", file=sys.stderr)
            except OSError:
                print(f"[WARN] Cannot write log file {log_path} ({exc}); file logging disabled.", file=sys.stderr)

    logging.basicConfig(level=logging.DEBUG, format="%(message)s", handlers=handlers, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return written
