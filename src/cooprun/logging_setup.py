# src/cooprun/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

from .config import get_settings


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the console readable:
    - allow all cooprun logs
    - asyncio only at WARNING+ (it reports "Task exception was never retrieved" there)
    - Python warnings (captured as 'py.warnings') and other libraries only at ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name == "cooprun" or name.startswith("cooprun."):
            return True

        if name == "asyncio" or name.startswith("asyncio."):
            return record.levelno >= logging.WARNING

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    console_level: int | str | None = None,
    log_dir: str | Path | None = None,
    log_to_file: bool | None = None,
    file_level: int = logging.DEBUG,
) -> None:
    """
    Configure logging with:
    - Console handler: filtered to cooprun records (+ loud third-party ones)
    - File handler (optional): everything, for debugging

    Arguments left as None are taken from settings. Call this once, early.
    """
    settings = get_settings()

    if console_level is None:
        console_level = settings.log_level
    if isinstance(console_level, str):
        console_level = getattr(logging, console_level.upper(), logging.INFO)
    if log_to_file is None:
        log_to_file = settings.log_to_file

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    if log_to_file:
        log_dir = Path(log_dir if log_dir is not None else settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(log_dir / "cooprun.log"), encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(fmt)
        root.addHandler(fh)

    # Route warnings.warn(...) into logging as 'py.warnings'
    logging.captureWarnings(True)
