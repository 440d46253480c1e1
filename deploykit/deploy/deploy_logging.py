"""Console + log-file logging for deploy runs."""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path


LOGGER_NAME = "deploykit"
LOG_PREFIX = "[deploykit]"

logger = logging.getLogger(LOGGER_NAME)


def build_log_path(log_dir: Path, *, now: datetime | None = None) -> Path:
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return log_dir / f"deploy_{stamp}.log"


def setup_logging(log_dir: Path = Path("logs")) -> Path:
    """Send `deploykit` log records to stdout and to a timestamped file.

    Returns the log file path so fatal messages can point at it. Handlers from
    a previous call are replaced, which keeps repeated runs (and tests) from
    duplicating output.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = build_log_path(log_dir)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter("%(message)s"))

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))

    logger.addHandler(console)
    logger.addHandler(file_handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return log_path


class StepLogger:
    """Numbered step headers, e.g. `[deploykit] Step 3: Preparing remote host`."""

    def __init__(self) -> None:
        self.step_number = 0

    def step(self, message: str) -> None:
        self.step_number += 1
        logger.info("%s Step %d: %s", LOG_PREFIX, self.step_number, message)

    def info(self, message: str) -> None:
        logger.info("%s %s", LOG_PREFIX, message)

    def ok(self, message: str) -> None:
        logger.info("%s [OK] %s", LOG_PREFIX, message)

    def warning(self, message: str) -> None:
        logger.warning("%s [WARN] %s", LOG_PREFIX, message)

    def error(self, message: str) -> None:
        logger.error("%s [ERROR] %s", LOG_PREFIX, message)
