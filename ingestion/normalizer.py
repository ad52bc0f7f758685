"""
Text normalization for extracted documents
Runs after decoding, before the minimum-length check.

Removes PDF/Office artifacts and exotic whitespace but keeps paragraph breaks,
since the generation prompt reads better with the document's structure intact.
"""

import re
import unicodedata
from typing import Iterable, Optional

# PDF encoding errors like "(cid:123)"
_CID_ARTIFACT = re.compile(r"\(cid:\d+\)")
# Private Use Area (custom PDF symbols/bullets): U+E000..U+F8FF
_PRIVATE_USE = re.compile(r"[\uE000-\uF8FF]")
# Control characters except \t and \n, zero-width spaces, BOM
_CONTROL = re.compile(r"[\u0000-\u0008\u000B-\u001F\u007F-\u009F\u200B-\u200D\uFEFF]")
# Tabs and the different unicode spaces
_SPACES = re.compile(r"[ \t\u00A0\u2000-\u200A\u202F\u205F]+")
_DASHES = re.compile(r"[\u2010-\u2015\u2212]")
_LEADING_BULLET = re.compile(r"^[\u2022\u25A0\u25A1\u25C6\u25E6\u2023\u2043\u00B7\u2219]+\s*")
_BLANK_LINES = re.compile(r"\n{3,}")


def normalize_line(line: str) -> str:
    line = _LEADING_BULLET.sub("", line)
    line = _SPACES.sub(" ", line)
    # "word ." -> "word."
    line = re.sub(r" +([.,;:!?)\]])", r"\1", line)
    return line.strip()


def normalize_text(text: Optional[str]) -> str:
    """
    Normalize decoded document text.

    - CID artifacts, private-use glyphs, control and zero-width characters removed
    - Unicode NFKC; smart quotes and dashes mapped to ASCII
    - Spaces collapsed per line, at most one blank line between paragraphs
    """
    if not text:
        return ""

    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _CID_ARTIFACT.sub("", text)
    text = _PRIVATE_USE.sub("", text)
    text = _CONTROL.sub("", text)
    text = unicodedata.normalize("NFKC", text)
    text = _DASHES.sub("-", text)
    text = re.sub(r"[\u201C\u201D]", '"', text)
    text = re.sub(r"[\u2018\u2019]", "'", text)

    lines = [normalize_line(line) for line in text.split("\n")]
    text = "\n".join(lines)
    text = _BLANK_LINES.sub("\n\n", text)
    return text.strip()


def join_elements(texts: Iterable[Optional[str]]) -> str:
    """Join element texts in document order, one paragraph each, skipping empties"""
    return "\n\n".join(t.strip() for t in texts if t and t.strip())
