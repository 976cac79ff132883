"""
io_utils
========

Command history records for SHIELD AI.

Every command the assistant runs leaves one JSON line in the history
file, whether it succeeded or failed.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, Iterator, Optional


# ----------------------------------------------------------------------
# JSONL
# ----------------------------------------------------------------------

def append_jsonl(
    path: str | Path,
    record: Dict[str, Any],
) -> None:
    """
    Append a single JSON object as one line to a JSONL file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(record, ensure_ascii=False))
        f.write("\n")


def read_jsonl(path: str | Path) -> Iterator[Dict[str, Any]]:
    """
    Lazily read a JSONL file. A missing file yields nothing.

    Raises
    ------
    ValueError
        If a line is not valid JSON.
    """
    path = Path(path)

    if not path.exists():
        return

    with path.open("r", encoding="utf-8") as f:
        for line_num, raw_line in enumerate(f, start=1):
            line = raw_line.strip()
            if not line:
                continue

            try:
                yield json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(
                    f"Invalid JSON on line {line_num} in {path}"
                ) from e


# ----------------------------------------------------------------------
# Structured history helpers
# ----------------------------------------------------------------------

def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def write_command_record(
    path: str | Path,
    *,
    command: str,
    outcome: str,
    target: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    run_id: Optional[str] = None,
) -> None:
    """
    Write one history entry for a completed command.
    """
    record: Dict[str, Any] = {
        "time": _timestamp(),
        "command": command,
        "target": target,
        "outcome": outcome,
    }

    if details:
        record["details"] = details
    if run_id is not None:
        record["run_id"] = run_id

    append_jsonl(path, record)


def write_error(
    path: str | Path,
    *,
    command: str,
    error: BaseException,
    target: Optional[str] = None,
    run_id: Optional[str] = None,
) -> None:
    """
    Write one history entry for a failed command.
    """
    record: Dict[str, Any] = {
        "time": _timestamp(),
        "command": command,
        "target": target,
        "outcome": "error",
        "error": {
            "type": type(error).__name__,
            "message": str(error),
        },
    }

    if run_id is not None:
        record["run_id"] = run_id

    append_jsonl(path, record)
