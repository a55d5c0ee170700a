# src/retask/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "retask.log"

# Minimum level shown on the console, by logger-name prefix. Longest prefix wins.
CONSOLE_THRESHOLDS: dict[str, int] = {
    "retask.": logging.NOTSET,
    "retask.alarms.": logging.WARNING,
}
CONSOLE_DEFAULT_THRESHOLD = logging.ERROR

_FILE_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
_CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def level_from_name(name: str | None, default: int = logging.INFO) -> int:
    """'debug' / 'INFO' / '20' -> logging level; unknown names give `default`."""
    raw = str(name or "").strip()
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw.upper())
    return level if isinstance(level, int) else default


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console stays quiet while the user types commands: reminder and window
    logs pass, per-alarm bookkeeping and third-party chatter (nio, aiohttp,
    py.warnings) only when serious.
    """

    def __init__(self, thresholds: dict[str, int] | None = None) -> None:
        super().__init__()
        items = (thresholds or CONSOLE_THRESHOLDS).items()
        self._thresholds = sorted(items, key=lambda kv: len(kv[0]), reverse=True)

    def filter(self, record: logging.LogRecord) -> bool:
        for prefix, threshold in self._thresholds:
            if record.name.startswith(prefix):
                return record.levelno >= threshold
        return record.levelno >= CONSOLE_DEFAULT_THRESHOLD


def setup_logging(
    *,
    log_dir: str | Path = ".local/retask",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Console handler (filtered, short format) on stderr plus a full DEBUG file
    log in `log_dir`. Replaces any handlers already on the root logger.

    Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file
