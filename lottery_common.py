"""
Shared infrastructure for the lottery scheduler test harness.

Used by lotterytest.py (CLI) and the lottery_* modules (config, workers,
sampler, analysis, report, metrics).
"""

import logging
import os
import platform
import sys
from datetime import datetime
from importlib import metadata
from pathlib import Path


# CONFIGURATION

PACKAGE_NAME = "lotterytest"
LOG_DIR = Path("/tmp/lotterytest")

MAX_WORKERS = 32
DEFAULT_TICKETS = (30, 20, 10)
DEFAULT_DURATION_SECS = 15.0
DEFAULT_SAMPLES = 10
DEFAULT_SETTLE_SECS = 1.0
DEFAULT_CPU = 0

# The harness itself holds a single ticket so it barely registers
# in the measured distribution.
ORCHESTRATOR_TICKETS = 1


def get_version() -> str:
    """Read the installed distribution version."""
    try:
        return metadata.version(PACKAGE_NAME)
    except metadata.PackageNotFoundError:
        return "?.?.?"


def get_kernel() -> str:
    return platform.release() or "unknown"


def timestamp() -> str:
    return datetime.now().strftime("%Y%m%d-%H%M%S")


# =============================================================================
# ERRORS
# =============================================================================

class LotteryTestError(Exception):
    """Base class for every error the harness reports."""


class ConfigError(LotteryTestError):
    """Invalid test configuration. Nothing has been spawned yet."""


class TooManyWorkers(ConfigError):
    def __init__(self, count: int, limit: int = MAX_WORKERS):
        super().__init__(f"Too many processes (max {limit}, got {count})")
        self.count = count
        self.limit = limit


class InvalidTicketCount(ConfigError):
    def __init__(self, value: str):
        super().__init__(f"Invalid ticket count: {value}")
        self.value = value


class SpawnError(LotteryTestError):
    """A worker could not be created or weighted. The pool has been unwound."""


class SchedulerError(LotteryTestError):
    """A scheduler primitive (weight assignment or statistics query) failed."""


# =============================================================================
# LOGGING
# =============================================================================

log: logging.Logger = logging.getLogger(PACKAGE_NAME)


class _ConsoleFormatter(logging.Formatter):
    LEVELS = {"WARNING": "WARN", "CRITICAL": "FATAL"}

    def format(self, record: logging.LogRecord) -> str:
        level = self.LEVELS.get(record.levelname, record.levelname)
        stamp = datetime.fromtimestamp(record.created).strftime("[%H:%M:%S]")
        return f"{stamp} {'[' + level + ']':<8} {record.getMessage()}"


def setup_logging(verbose: bool = False,
                  log_file: Path | None = None) -> Path | None:
    """Configure console logging, plus a detailed file log when requested.

    Safe to call more than once; handlers from a previous call are replaced.
    """
    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()
    log.setLevel(logging.DEBUG)
    log.propagate = False

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(_ConsoleFormatter())
    log.addHandler(console_handler)

    if log_file is None:
        return None

    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))
    log.addHandler(file_handler)
    return log_file


def default_log_file() -> Path:
    return LOG_DIR / f"lotterytest-{timestamp()}-{os.getpid()}.log"


def log_debug(msg: str) -> None:
    log.debug(msg)


def log_info(msg: str) -> None:
    log.info(msg)


def log_warn(msg: str) -> None:
    log.warning(msg)


def log_error(msg: str) -> None:
    log.error(msg)
