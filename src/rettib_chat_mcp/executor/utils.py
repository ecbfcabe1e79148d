"""Utility functions for executor module."""

import re
from typing import Any, Iterable

from .models import PermissionDenialFact

# OSC sequences (e.g. iTerm's "ESC ] 1337;SetProfile=...") run until BEL or ST,
# or to the end of the line when the terminator was never written.
_ANSI_PATTERN = re.compile(
    r"\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)?"
    r"|\x1b\[[0-9;?]*[A-Za-z]"
    r"|\x1b[^\[\]]?"
)

_NO_DETAILS = "(no input details)"


def strip_ansi(text: str) -> str:
    """Remove ANSI escape codes from text.

    This removes color codes, cursor movement, OSC commands and other
    terminal control sequences.

    Args:
        text: Text potentially containing ANSI escape codes.

    Returns:
        Clean text without ANSI codes.
    """
    return _ANSI_PATTERN.sub("", text)


def clean_stderr_line(line: str) -> str:
    """Trim a stderr line and drop terminal control sequences.

    Returns an empty string when nothing but control codes was written.
    """
    return strip_ansi(line).strip()


def summarize_permission_input(tool_input: Any) -> str:
    """Short human-readable description of what a denied tool wanted to do."""
    if isinstance(tool_input, str):
        return tool_input.strip() or _NO_DETAILS

    if not isinstance(tool_input, dict):
        return _NO_DETAILS

    for key in ("command", "description"):
        value = tool_input.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()

    keys = list(tool_input.keys())
    return "{" + ", ".join(keys[:3]) + "}" if keys else _NO_DETAILS


def build_permission_summary(denials: Iterable[PermissionDenialFact]) -> str:
    """Render permission denials as a block the user can read in the chat."""
    lines = []
    for denial in denials:
        tool_name = (denial.tool_name or "").strip() or "Tool"
        lines.append(f"- {tool_name}: {summarize_permission_input(denial.tool_input)}")

    if not lines:
        return "Claude requested approval for one or more operations."

    return "Claude requested approval for the following operations:\n" + "\n".join(lines)
