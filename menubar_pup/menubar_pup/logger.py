"""
Pup log policy: INFO and above to stderr, everything to ``pup.log``.

The file lives under ``$MENUBAR_PUP_HOME/logs`` (``~/.menubar_pup`` by
default) and rolls over at 10 MB, keeping five old files. Set
``MENUBAR_PUP_LOG_LEVEL`` to change what reaches the console.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger as _logger

APP_HOME = Path(os.environ.get("MENUBAR_PUP_HOME", str(Path.home() / ".menubar_pup")))
LOG_DIR = APP_HOME / "logs"
DEFAULT_LOG_PATH = LOG_DIR / "pup.log"
CONSOLE_LEVEL = os.environ.get("MENUBAR_PUP_LOG_LEVEL", "INFO").upper()
FILE_ROTATION = "10 MB"
FILE_RETENTION = 5

_configured_path: Optional[Path] = None


def configure(log_path: Optional[Path] = None, *, console_level: str = CONSOLE_LEVEL) -> Path:
    """Install the pup's sinks on first call and return the log file path."""
    global _configured_path
    if _configured_path is not None:
        return _configured_path

    target = log_path or DEFAULT_LOG_PATH
    target.parent.mkdir(parents=True, exist_ok=True)
    _logger.remove()
    # pythonw / frozen builds have no stderr
    if sys.stderr is not None:
        _logger.add(sys.stderr, level=console_level, enqueue=True)
    # Tracebacks are kept but local variables are not, since event titles
    # may be private.
    _logger.add(
        target,
        level="DEBUG",
        rotation=FILE_ROTATION,
        retention=FILE_RETENTION,
        encoding="utf-8",
        enqueue=True,
        backtrace=True,
        diagnose=False,
    )
    _configured_path = target
    return target


def get_logger():
    configure()
    return _logger
