"""Shop Ledger: inventory, sales and sales-staff bookkeeping.

Importing the package configures the shared ``shop_ledger`` logger used by
every layer (persistence, ledger store, reports, access control and CLI).
Log files go to ``.logs/`` beside the project, or to the directory named by
the ``SHOP_LEDGER_LOG_DIR`` environment variable.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Mapping, Optional


__version__ = "0.1.0"

LOG_DIR_ENV = "SHOP_LEDGER_LOG_DIR"
PROJECT_ROOT = Path(__file__).resolve().parents[2]
LOG_FILE_NAME = "shop_ledger.log"


def resolve_log_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Return the directory the rotating log file is written to."""

    environ = os.environ if environ is None else environ
    override = environ.get(LOG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return PROJECT_ROOT / ".logs"


LOG_DIR = resolve_log_dir()
LOG_FILE = LOG_DIR / LOG_FILE_NAME


def _configure_logging() -> logging.Logger:
    logger = logging.getLogger(__name__)
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=1_000_000,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError as exc:
        print(f"Warning: unable to open log file '{LOG_FILE}': {exc}", file=sys.stderr)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.set_name("console")
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


def set_console_level(level: int) -> None:
    """Change how much of the ledger's logging reaches stderr.

    The rotating file keeps recording at INFO regardless.
    """

    for handler in log.handlers:
        if handler.get_name() == "console":
            handler.setLevel(level)


log = _configure_logging()
log.info("Shop Ledger %s logging to '%s'", __version__, LOG_FILE)
