"""
code_utils
==========

Size control for code that is sent to the model.

Code is never reformatted here: the model must see the exact lines it
may be asked to replace.
"""

from __future__ import annotations

from typing import Optional


TRUNCATION_MARKER = "[TRUNCATED]"

# Max lines of code sent per scan level (None = unlimited)
SCAN_LEVEL_MAX_LINES = {
    "basic": 200,
    "standard": 600,
    "thorough": None,
}


def truncate_text(
    text: str,
    *,
    max_lines: Optional[int] = None,
    marker: str = TRUNCATION_MARKER,
) -> str:
    """
    Truncate text to a number of lines.

    A marker line is appended when anything was cut.
    """
    if not text:
        return ""

    lines = text.split("\n")
    if max_lines is None or len(lines) <= max_lines:
        return text

    return "\n".join(lines[:max_lines]) + f"\n\n{marker}"


def prepare_code_for_scan(text: str, scan_level: str) -> str:
    return truncate_text(text, max_lines=SCAN_LEVEL_MAX_LINES.get(scan_level))


def exceeds_scan_limit(text: str, scan_level: str) -> bool:
    """
    True when ``prepare_code_for_scan`` would cut part of ``text``.
    """
    max_lines = SCAN_LEVEL_MAX_LINES.get(scan_level)
    if max_lines is None or not text:
        return False
    return len(text.split("\n")) > max_lines


def format_line_range(start: Optional[int], end: Optional[int]) -> str:
    if start is None or end is None:
        return "whole file"
    if start == end:
        return f"line {start}"
    return f"lines {start}-{end}"
