"""
histClean Logging Configuration Module
======================================

Package logging in three modes (quiet, normal, verbose), with an optional
rotating log file and timing / memory helpers used around the filtering step.

The default mode is read from the environment when logging is configured:

* ``HISTCLEAN_LOG_LEVEL``: level name used in normal mode (default ``INFO``)
* ``HISTCLEAN_LOG_FILE``: path of a rotating log file
* ``HISTCLEAN_VERBOSE`` / ``HISTCLEAN_QUIET``: ``true``, ``1`` or ``yes``
"""

import logging
import logging.handlers
import os
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Optional, Union

import psutil
import xarray as xr
from dask.base import is_dask_collection

ROOT_LOGGER_NAME = "histClean"

_MODE_LEVELS = {
    "quiet": logging.WARNING,
    "normal": logging.INFO,
    "verbose": logging.DEBUG,
}

_MODE_FORMATS = {
    "quiet": "%(levelname)s - %(message)s",
    "normal": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    "verbose": "%(asctime)s - %(name)s - %(levelname)s - [PID:%(process)d] - %(funcName)s:%(lineno)d - %(message)s",
}

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_MAX_BYTES = 50 * 1024 * 1024
LOG_FILE_BACKUPS = 3

_configured = False
_mode = "normal"


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "false").lower() in ("true", "1", "yes")


def _resolve_mode(verbose: Optional[bool], quiet: Optional[bool]) -> str:
    """Quiet wins over verbose; unset flags fall back to the environment."""
    if quiet is None:
        quiet = _env_flag("HISTCLEAN_QUIET")
    if verbose is None:
        verbose = _env_flag("HISTCLEAN_VERBOSE")

    if quiet:
        return "quiet"
    return "verbose" if verbose else "normal"


def _build_handlers(log_file: Optional[Path], console_output: bool) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if console_output:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                log_file, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS, encoding="utf-8"
            )
        )
    return handlers


def configure_logging(
    level: Optional[Union[int, str]] = None,
    log_file: Optional[Union[str, Path]] = None,
    console_output: bool = True,
    verbose: Optional[bool] = None,
    quiet: Optional[bool] = None,
) -> None:
    """
    Configure the ``histClean`` logger.

    Args:
        level: Explicit level, overriding the one implied by the mode
        log_file: Path of a rotating log file (falls back to ``HISTCLEAN_LOG_FILE``)
        console_output: Whether to log to stdout
        verbose: DEBUG level with function and line information
        quiet: WARNING level with a minimal format; takes precedence over verbose
    """
    global _configured, _mode

    _mode = _resolve_mode(verbose, quiet)

    if level is None:
        level = _MODE_LEVELS[_mode]
        if _mode == "normal":
            level = os.environ.get("HISTCLEAN_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    if log_file is None and os.environ.get("HISTCLEAN_LOG_FILE"):
        log_file = os.environ["HISTCLEAN_LOG_FILE"]

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(_MODE_FORMATS[_mode], datefmt=DATE_FORMAT)
    for handler in _build_handlers(Path(log_file) if log_file is not None else None, console_output):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    root_logger.setLevel(level)
    root_logger.propagate = False
    _configured = True

    root_logger.debug(f"Logging configured - Level: {logging.getLevelName(level)}, Mode: {_mode}")
    if log_file is not None:
        root_logger.debug(f"Logging to file: {log_file}")


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Get a logger below the ``histClean`` namespace, configuring it on first use."""
    if not _configured and name.split(".")[0] == ROOT_LOGGER_NAME:
        configure_logging()
    return logging.getLogger(name)


def get_verbosity_level() -> str:
    """Current mode: 'quiet', 'normal' or 'verbose'."""
    return _mode


def log_memory_usage(logger: logging.Logger, message: str = "", level: int = logging.DEBUG) -> Dict[str, float]:
    """
    Log resident and available memory of the current process.

    Returns:
        The logged figures in MB (``rss_mb``, ``available_mb``) and the
        process share of system memory (``percent``)
    """
    process = psutil.Process()
    memory = {
        "rss_mb": process.memory_info().rss / 1024**2,
        "available_mb": psutil.virtual_memory().available / 1024**2,
        "percent": process.memory_percent(),
    }

    log_msg = f"Memory - RSS: {memory['rss_mb']:.1f}MB ({memory['percent']:.1f}%), Available: {memory['available_mb']:.1f}MB"
    logger.log(level, f"{message} - {log_msg}" if message else log_msg)
    return memory


@contextmanager
def log_timing(logger: logging.Logger, operation: str, level: int = logging.INFO, log_memory: bool = False):
    """
    Log the duration of the enclosed block, and memory before and after it.

    Example:
        >>> with log_timing(logger, "History filtering", log_memory=True):
        ...     cleaned = engine(cube, predicate)
    """
    if log_memory:
        log_memory_usage(logger, f"Before {operation}")
    logger.log(level, f"Starting {operation}")
    start = time.perf_counter()

    try:
        yield
    except Exception as e:
        logger.error(f"Failed {operation} after {time.perf_counter() - start:.2f}s: {e}")
        raise

    logger.log(level, f"Completed {operation} in {time.perf_counter() - start:.2f}s")
    if log_memory:
        log_memory_usage(logger, f"After {operation}")


def log_dask_info(logger: logging.Logger, da: xr.DataArray, message: str = "") -> None:
    """Log shape, chunking and (for Dask arrays) task graph size at DEBUG level."""
    if not logger.isEnabledFor(logging.DEBUG):
        return

    chunks = str(da.chunks)
    if len(chunks) > 100:
        chunks = chunks[:100] + "..."

    log_msg = f"Shape: {dict(da.sizes)}, Chunks: {chunks}, Size: {da.nbytes}"
    logger.debug(f"{message} - {log_msg}" if message else log_msg)

    if is_dask_collection(da):
        logger.debug(f"Dask graph size: {len(da.__dask_graph__())} tasks")
