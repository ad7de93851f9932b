"""
Header line detection.

Recognises the header shapes common in extracted PDF text: ALL CAPS
short lines, "Chapter/Section/Part N", roman numerals and numbered
titles such as "2. Scope" or "3.1 Definitions".

Dependencies: re (stdlib)
System role: Section boundary detection for the section-aware strategy
"""

import re
from dataclasses import dataclass

MAX_HEADER_LENGTH = 100
MAX_CAPS_HEADER_LENGTH = 80

_KEYWORD_HEADER = re.compile(r"^(chapter|section|part)\s+(\d+|[ivxlcdm]+)\b", re.IGNORECASE)
_NUMBERED_HEADER = re.compile(r"^(\d+(?:\.\d+)*)\.?\s+[A-Z]")
_ROMAN_HEADER = re.compile(r"^[IVXLCDM]+\.\s+[A-Z]")
_HAS_UPPER = re.compile(r"[A-Z]")


@dataclass(frozen=True)
class HeaderInfo:
    """Detected header text and its nesting level (1 = top)."""

    text: str
    level: int


def detect_header(line: str) -> HeaderInfo | None:
    """
    Classify a single line as a header.

    Args:
        line: One line of document text

    Returns:
        HeaderInfo | None: Header text and level, or None for body text
    """
    stripped = line.strip()
    if not stripped or len(stripped) > MAX_HEADER_LENGTH:
        return None

    if _KEYWORD_HEADER.match(stripped):
        return HeaderInfo(stripped, 1)

    numbered = _NUMBERED_HEADER.match(stripped)
    if numbered and not stripped.endswith((".", "!", "?", ",", ";")):
        depth = numbered.group(1).count(".") + 1
        return HeaderInfo(stripped, min(depth, 3))

    if _ROMAN_HEADER.match(stripped):
        return HeaderInfo(stripped, 1)

    if (
        len(stripped) > 3
        and len(stripped) <= MAX_CAPS_HEADER_LENGTH
        and stripped == stripped.upper()
        and _HAS_UPPER.search(stripped)
    ):
        return HeaderInfo(stripped, 2)

    return None
