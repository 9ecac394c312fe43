"""
CSV roster export.

Output is deterministic for a given roster: rows sorted by group, grade,
class and number; remarks always quoted; UTF-8 with BOM so spreadsheet
tools pick the right encoding.
"""

from __future__ import annotations

import hashlib
from datetime import date
from typing import Iterable, List, Optional, Sequence

from .models import RosterExport, Student
from .rules import ALL_SCOPE, DELIMITER, EXPORT_EMPTY_MESSAGE, EXPORT_HEADER, QUOTE, TARGET_ENCODING
from .utils.logging import get_logger

log = get_logger(__name__)

_NEEDS_QUOTES = (DELIMITER, QUOTE, "\r", "\n")


def _sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def quote(value: str) -> str:
    return QUOTE + value.replace(QUOTE, QUOTE * 2) + QUOTE


def render_field(value: object) -> str:
    text = str(value)
    if any(ch in text for ch in _NEEDS_QUOTES):
        return quote(text)
    return text


def sort_students(students: Iterable[Student]) -> List[Student]:
    return sorted(students, key=lambda s: (s.group, s.grade, s.school_class, s.number))


def render_roster_csv(students: Iterable[Student]) -> str:
    lines = [DELIMITER.join(EXPORT_HEADER)]
    for s in sort_students(students):
        cells = [
            render_field(s.grade),
            render_field(s.school_class),
            render_field(s.number),
            render_field(s.group),
            render_field(s.name),
            render_field(s.phone),
            quote(s.remarks or ""),
        ]
        lines.append(DELIMITER.join(cells))
    return "\n".join(lines)


def export_label(scope: str) -> str:
    if scope == ALL_SCOPE:
        return "전체_학생_명단"
    return f"방과후컴퓨터_{scope}반_명단"


def export_filename(label: str, today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"{label}_{today.isoformat()}.csv"


def export_roster(
    students: Sequence[Student],
    label: str,
    today: Optional[date] = None,
) -> RosterExport:
    """
    Serialize an already filtered roster.

    An empty roster is refused up front; nothing is rendered and the result
    carries the refusal message. The label only shapes the filename.
    """
    if not students:
        log.info("Export refused: no students for %s", label)
        return RosterExport(ok=False, message=EXPORT_EMPTY_MESSAGE)

    content = render_roster_csv(students).encode(TARGET_ENCODING)
    filename = export_filename(label, today)
    log.info("Exported %d students to %s", len(students), filename, extra={"rows": len(students)})
    return RosterExport(
        ok=True,
        filename=filename,
        encoding=TARGET_ENCODING,
        sha256=_sha256_hex(content),
        rows=len(students),
        content=content,
    )
