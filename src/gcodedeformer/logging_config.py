"""
Logging Configuration
=====================
Attaches console/file output to the `gcodedeformer` logger tree.

Why is this file needed?
------------------------
1. Noise control: The rotation solve reports its convergence for every pair
   on every drag. That chatter is only useful when tuning the solver, so it
   has its own switch instead of riding on a global DEBUG level.
2. Session logs: A log file can be placed next to the opened program, so a
   report about a bad export comes with the matching load/solve/export log.
"""
import logging
import os
import sys
from typing import Optional

PACKAGE_LOGGER = "gcodedeformer"
SOLVER_LOGGER = "gcodedeformer.deform.rotation"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

# `part.gcode` -> `part.deformer.log`
LOG_SUFFIX = ".deformer.log"
FALLBACK_LOG_NAME = "gcodedeformer.log"


def default_log_path(gcode_path: Optional[str] = None) -> str:
    """Log file next to the given program, or in the working directory."""
    if not gcode_path:
        return os.path.abspath(FALLBACK_LOG_NAME)
    root, _ = os.path.splitext(gcode_path)
    return root + LOG_SUFFIX


def setup_logging(debug_solver: bool = False, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the application loggers. Safe to call again; old handlers are
    closed and replaced.

    Args:
        debug_solver: Let per-pair rotation convergence (DEBUG) through.
            Everything else stays at INFO.
        log_file: Also write the log to this path (overwritten on start).

    Returns:
        The package logger.
    """
    package = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package.handlers):
        package.removeHandler(handler)
        handler.close()
    package.setLevel(logging.INFO)

    # NOTSET falls back to the package level
    logging.getLogger(SOLVER_LOGGER).setLevel(logging.DEBUG if debug_solver else logging.NOTSET)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    targets: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        targets.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))
    for handler in targets:
        handler.setFormatter(formatter)
        package.addHandler(handler)

    package.info(
        f"Logging to console{f' and {log_file}' if log_file else ''}"
        f" (solver debug {'on' if debug_solver else 'off'})."
    )
    return package
