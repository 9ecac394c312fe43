"""
Field normalization for roster ingestion.

Every function here is total: malformed input is coerced to a safe default
instead of raising, so a bad cell never aborts an import.

Rules:
- group: uppercase A/B/C, anything else becomes A
- grade/class/number: leading integer if positive, else 1
- name: cleaned text, or a placeholder when empty
- byte blobs: UTF-8 (with or without BOM), else charset-normalizer's best guess
"""

from __future__ import annotations

import re
from typing import Any, Optional

from charset_normalizer import from_bytes

from .rules import DEFAULT_GROUP, DEFAULT_NUMBER, GROUPS, NAME_PLACEHOLDER, QUOTE

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_BOM = b"\xef\xbb\xbf"


def to_text(token: Any) -> str:
    if token is None:
        return ""
    return str(token)


def to_group(token: Any) -> str:
    value = to_text(token).strip().upper()
    return value if value in GROUPS else DEFAULT_GROUP


def to_positive_int(token: Any) -> int:
    """
    Parse a leading integer the way spreadsheet exports tend to need it:
    "12", " 12", "12abc" and "12.9" all give 12. Zero, negatives and
    non-numeric input give the default.
    """
    match = _LEADING_INT.match(to_text(token))
    if match is None:
        return DEFAULT_NUMBER
    value = int(match.group(1))
    return value if value > 0 else DEFAULT_NUMBER


def to_non_empty_name(token: Any) -> str:
    name = to_text(token).strip()
    return name or NAME_PLACEHOLDER


def clean_quoted(token: Optional[str]) -> str:
    """
    Strip one pair of wrapping quotes, collapse doubled quotes, trim.
    """
    value = (token or "").strip()
    if len(value) >= 2 and value.startswith(QUOTE) and value.endswith(QUOTE):
        value = value[1:-1]
    return value.replace(QUOTE * 2, QUOTE).strip()


def decode_csv_bytes(raw: bytes) -> Optional[str]:
    """
    Decode an uploaded CSV blob to text.

    - UTF-8 is tried first; a leading BOM is dropped.
    - Otherwise charset-normalizer picks the most plausible encoding
      (Excel on Korean Windows saves CP949 by default).
    - Returns None when the blob is empty or nothing decodes it.
    """
    if not raw:
        return None

    try:
        return raw.decode("utf-8-sig" if raw.startswith(_BOM) else "utf-8")
    except UnicodeDecodeError:
        pass

    match = from_bytes(raw).best()
    if match is None:
        return None
    return str(match)
