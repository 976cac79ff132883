"""
line_editor
===========

Line-range file editing for SHIELD AI.

Files are addressed by 1-based, inclusive line ranges. Every operation
loads the file fresh, works on the full list of lines in memory and
writes the whole file back.

Design principles:
- Split on "\\n" only, never normalize other line terminators
- Reject ranges that fall outside the file instead of guessing
- Write the backup BEFORE the destructive write
- Replace files atomically (temp sibling + os.replace)
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


BACKUP_SUFFIX = ".backup"
ENCODING = "utf-8"


# ----------------------------------------------------------------------
# Exceptions
# ----------------------------------------------------------------------

class EditorError(RuntimeError):
    """Base class for line editor errors."""


class FileReadError(EditorError):
    """Raised when a file cannot be opened or decoded."""


class FileWriteError(EditorError):
    """Raised when a file cannot be written."""


class LineRangeError(EditorError):
    """Raised when a line range does not address lines of the file."""


# ----------------------------------------------------------------------
# Data model
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class LineRange:
    """
    A 1-based, inclusive pair of line numbers.
    """
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def validate(self, line_count: int) -> None:
        if not 1 <= self.start <= self.end <= line_count:
            raise LineRangeError(
                f"Invalid line range {self.start}-{self.end} "
                f"(file has {line_count} lines)"
            )

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


@dataclass(frozen=True)
class BackupRecord:
    """
    Original lines of the most recently replaced region of a file.
    """
    source_name: str
    line_range: LineRange
    lines: List[str]

    def header(self) -> str:
        return (
            f"From line {self.line_range.start} - {self.line_range.end} "
            f"in {self.source_name}"
        )

    def render(self) -> str:
        return self.header() + "\n" + "\n".join(self.lines)


@dataclass
class EditResult:
    path: Path
    line_range: LineRange
    lines: List[str]
    replaced: List[str] = field(default_factory=list)
    backup: Optional[BackupRecord] = None
    backup_path: Optional[Path] = None


# ----------------------------------------------------------------------
# Low-level I/O
# ----------------------------------------------------------------------

def read_lines(path: str | Path) -> List[str]:
    """
    Read a text file and split it on newline characters.

    Raises
    ------
    FileReadError
        If the file cannot be opened or is not valid UTF-8.
    """
    return _read_text(path).split("\n")


def _read_text(path: str | Path) -> str:
    try:
        # newline="" keeps "\r" inside the line it belongs to
        with open(path, "r", encoding=ENCODING, newline="") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise FileReadError(f"Error reading file: {e}") from e


def write_text_atomic(path: str | Path, text: str) -> None:
    """
    Overwrite a file so that readers see either the old or the new content.
    """
    path = Path(path)
    tmp_name = None
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.",
            suffix=".tmp",
            dir=path.parent,
        )
        with os.fdopen(fd, "w", encoding=ENCODING, newline="") as f:
            f.write(text)
        if path.exists():
            os.chmod(tmp_name, path.stat().st_mode & 0o7777)
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise FileWriteError(f"Error modifying file: {e}") from e


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def extract(
    path: str | Path,
    start_line: Optional[int] = None,
    end_line: Optional[int] = None,
) -> str:
    """
    Return the addressed lines of a file, or the whole file.

    When both ``start_line`` and ``end_line`` are given, the inclusive
    slice is returned joined by newlines. When either is omitted the file
    content is returned unchanged.
    """
    content = _read_text(path)

    if start_line is None or end_line is None:
        return content

    lines = content.split("\n")
    LineRange(start_line, end_line).validate(len(lines))
    return "\n".join(lines[start_line - 1:end_line])


def splice_lines(
    lines: List[str],
    line_range: LineRange,
    new_content: str,
) -> List[str]:
    """
    Return a copy of ``lines`` with the range replaced by ``new_content``.
    """
    line_range.validate(len(lines))
    start = line_range.start - 1
    return lines[:start] + new_content.split("\n") + lines[start + line_range.length:]


def replace(
    path: str | Path,
    start_line: int,
    end_line: int,
    new_content: str,
) -> bool:
    """
    Replace an inclusive line range of a file with ``new_content``.

    Exactly ``end_line - start_line + 1`` lines are removed and the lines
    of ``new_content`` are inserted in their place.

    Raises
    ------
    FileReadError, FileWriteError
        If the file cannot be accessed.
    LineRangeError
        If the range does not lie inside the file. The file is untouched.
    """
    lines = read_lines(path)
    new_lines = splice_lines(lines, LineRange(start_line, end_line), new_content)
    write_text_atomic(path, "\n".join(new_lines))
    return True


def backup_path_for(path: str | Path) -> Path:
    path = Path(path)
    return path.with_name(path.name + BACKUP_SUFFIX)


def write_backup(path: str | Path, record: BackupRecord) -> Path:
    """
    Write a backup record next to ``path``, discarding any previous one.
    """
    target = backup_path_for(path)
    try:
        with open(target, "w", encoding=ENCODING, newline="") as f:
            f.write(record.render())
    except OSError as e:
        raise FileWriteError(f"Error writing backup: {e}") from e
    return target


def apply_edit(
    path: str | Path,
    line_range: Optional[LineRange],
    new_content: str,
    *,
    backup: bool = True,
) -> EditResult:
    """
    Replace a line range and optionally keep a backup of the original lines.

    A missing ``line_range`` addresses the whole file. The backup is
    written before the file itself is rewritten.
    """
    path = Path(path)
    lines = read_lines(path)

    if line_range is None:
        line_range = LineRange(1, len(lines))

    new_lines = splice_lines(lines, line_range, new_content)
    original = lines[line_range.start - 1:line_range.end]

    result = EditResult(
        path=path,
        line_range=line_range,
        lines=new_lines,
        replaced=original,
    )

    if backup:
        record = BackupRecord(
            source_name=path.name,
            line_range=line_range,
            lines=original,
        )
        result.backup = record
        result.backup_path = write_backup(path, record)

    write_text_atomic(path, "\n".join(new_lines))
    return result
