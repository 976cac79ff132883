"""
logging_utils
=============

Centralized logging utilities for SHIELD AI.

The interactive console belongs to the user, so only warnings reach
stderr by default; the full record of a session goes to a log file
tagged with the session's run id.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime, timezone
import uuid


# ----------------------------------------------------------------------
# Logger creation
# ----------------------------------------------------------------------

def create_logger(
    name: str = "shield_ai",
    log_dir: Optional[str | Path] = None,
    level: int = logging.DEBUG,
    console_level: Optional[int] = logging.WARNING,
    run_id: Optional[str] = None,
) -> logging.Logger:
    """
    Create or retrieve a configured logger.

    Logger creation is idempotent:
    repeated calls with the same name will return the same logger
    without duplicating handlers. A console_level of None disables
    the stderr handler.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if getattr(logger, "_shield_ai_initialized", False):
        return logger

    run_id = run_id or generate_run_id()
    formatter = _create_formatter(run_id)

    if console_level is not None:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(console_level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        log_file = log_dir / f"{name}_{run_id}.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False

    logger.run_id = run_id  # type: ignore[attr-defined]
    logger._shield_ai_initialized = True  # type: ignore[attr-defined]

    logger.info(f"Logger initialized | run_id={run_id}")

    return logger


def _create_formatter(run_id: str) -> logging.Formatter:
    return logging.Formatter(
        fmt=(
            "%(asctime)s | "
            "%(levelname)-8s | "
            "%(name)s | "
            f"run={run_id} | "
            "%(message)s"
        ),
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def generate_run_id() -> str:
    """
    Generate a globally unique, time-sortable run identifier.
    """
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    short_uuid = uuid.uuid4().hex[:8]
    return f"{timestamp}-{short_uuid}"


# ----------------------------------------------------------------------
# Command helpers
# ----------------------------------------------------------------------

def log_command(
    logger: logging.Logger,
    *,
    command: str,
    target: Optional[str] = None,
    message: str,
) -> None:
    """
    Log a structured command-level message.
    """
    prefix = f"[command={command}]"
    if target:
        prefix += f"[target={target}]"
    logger.info(f"{prefix} {message}")


def log_exception(
    logger: logging.Logger,
    exc: BaseException,
    *,
    command: Optional[str] = None,
    context: Optional[str] = None,
) -> None:
    """
    Log an exception with its command context and traceback.
    """
    parts = []
    if command:
        parts.append(f"command={command}")
    if context:
        parts.append(context)

    prefix = " | ".join(parts)
    if prefix:
        logger.error(f"{prefix} | {exc}", exc_info=exc)
    else:
        logger.error(str(exc), exc_info=exc)
