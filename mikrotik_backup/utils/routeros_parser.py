"""Utilities for reading RouterOS CLI output."""

from __future__ import annotations

import re


# ---------------------------------------------------------------------------
# Error detection
# ---------------------------------------------------------------------------

ROUTEROS_ERROR_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"^\s*bad command name\b", re.IGNORECASE),
    re.compile(r"^\s*syntax error\b", re.IGNORECASE),
    re.compile(r"^\s*expected end of command\b", re.IGNORECASE),
    re.compile(r"^\s*input does not match any value\b", re.IGNORECASE),
    re.compile(r"^\s*no such item\b", re.IGNORECASE),
    re.compile(r"^\s*failure:", re.IGNORECASE),
    re.compile(r"^\s*not enough permissions\b", re.IGNORECASE),
]


def detect_routeros_error(output: str) -> str | None:
    """Return the first RouterOS error line found, or None.

    Long values in an export wrap onto lines after a trailing backslash;
    those continuation lines are quoted data and are not checked.
    """
    continued = False
    for line in output.splitlines():
        if not continued:
            for pat in ROUTEROS_ERROR_PATTERNS:
                if pat.search(line):
                    return line.strip()
        continued = line.rstrip().endswith("\\")
    return None


# ---------------------------------------------------------------------------
# Prompt / login helpers
# ---------------------------------------------------------------------------

# ``[admin@MikroTik] >`` or ``[admin@MikroTik] /ip address>``
ROUTEROS_PROMPT_PATTERN = r"^\[[^\]\r\n]+\]\s*(?:/[^>\r\n]*)?>\s*$"


def login_name(username: str, suffix: str) -> str:
    """Append console options to *username* unless it already carries some."""
    if not suffix or "+" in username:
        return username
    if not suffix.startswith("+"):
        suffix = f"+{suffix}"
    return f"{username}{suffix}"
