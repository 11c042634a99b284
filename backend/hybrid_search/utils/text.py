"""Text processing helpers."""

from __future__ import annotations

import re
from pathlib import Path

WHITESPACE_RE = re.compile(r"\s+")
HEADING_RE = re.compile(r"^\s{0,3}#{1,6}\s+(.+?)\s*#*\s*$", re.MULTILINE)


def normalize(text: str) -> str:
    """Collapse whitespace and strip."""
    return WHITESPACE_RE.sub(" ", text).strip()


def extract_title(content: str, path: Path) -> str:
    """First Markdown heading, else the file stem."""
    match = HEADING_RE.search(content)
    if match:
        return normalize(match.group(1))
    return path.stem


def preview(text: str, width: int = 160) -> str:
    """Whitespace-collapsed prefix of ``text`` no longer than ``width``."""
    flat = normalize(text)
    return flat if len(flat) <= width else flat[: width - 3].rstrip() + "..."
