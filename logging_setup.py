"""
Process-wide logging for the UniMart API.

Records go to a Rich console handler. When ``LOG_FILE`` is set they are also
appended to that file with timestamps, so request failures can be read back
after the console has scrolled.
"""

import logging
from pathlib import Path
from typing import Union

from rich.logging import RichHandler

import config

FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# Driver heartbeats and per-request access lines drown out the app's own logs
QUIET_LOGGERS = ("pymongo", "uvicorn.access")


def _resolve_level(level: Union[int, str, None]) -> int:
    if level is None:
        level = config.LOG_LEVEL
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _console_handler(level: int) -> logging.Handler:
    handler = RichHandler(level=level, show_time=False, show_path=False, rich_tracebacks=True, markup=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


def setup_logging(level: Union[int, str, None] = None, log_file: Union[str, Path, None] = None) -> logging.Logger:
    """Replace the root handlers; unset arguments fall back to ``LOG_LEVEL``/``LOG_FILE``."""
    level = _resolve_level(level)
    log_file = log_file or config.LOG_FILE

    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    root.addHandler(_console_handler(level))
    if log_file:
        root.addHandler(_file_handler(Path(log_file)))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    return root
