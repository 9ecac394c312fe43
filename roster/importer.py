"""
CSV roster import.

The first line is a header and is skipped without inspection. Every other
non-blank line is a row in the fixed column order
grade, class, number, group, name, phone, remarks.

Rows without a name are dropped. Every other malformed value is coerced by
the normalizer, so a bad row never aborts the import.
"""

from __future__ import annotations

from typing import List, Optional, Union

from .models import ImportReport, StudentInput
from .normalize import (
    clean_quoted,
    decode_csv_bytes,
    to_group,
    to_non_empty_name,
    to_positive_int,
)
from .rules import COLUMNS, IMPORT_FAILURE_MESSAGE, IMPORT_SUCCESS_MESSAGE
from .store import RosterStore
from .tokenizer import split_lines, tokenize_line
from .utils.logging import get_logger

log = get_logger(__name__)


def parse_row(line: str) -> Optional[StudentInput]:
    tokens = tokenize_line(line)
    cells = [clean_quoted(tokens[i]) if i < len(tokens) else "" for i in range(len(COLUMNS))]
    grade, school_class, number, group, name, phone, remarks = cells

    if not name:
        return None

    return StudentInput(
        grade=to_positive_int(grade),
        school_class=to_positive_int(school_class),
        number=to_positive_int(number),
        group=to_group(group),
        name=to_non_empty_name(name),
        phone=phone,
        remarks=remarks,
    )


def parse_roster_text(text: str) -> List[StudentInput]:
    lines = split_lines(text)
    rows: List[StudentInput] = []
    for lineno, line in enumerate(lines[1:], start=2):
        if not line.strip():
            continue
        row = parse_row(line)
        if row is None:
            log.debug("Skipping line %d: no name", lineno)
            continue
        rows.append(row)
    return rows


def import_roster(store: RosterStore, blob: Union[bytes, str]) -> ImportReport:
    """
    Parse `blob` and append every usable row to `store`.

    Existing students are never replaced. The report is `ok=False` with
    reason "unreadable" for an empty or undecodable blob and "no_rows" when
    the text parsed but produced nothing.
    """
    text = decode_csv_bytes(blob) if isinstance(blob, bytes) else blob
    if not text or not text.strip():
        log.warning("Import rejected: empty or unreadable input")
        return ImportReport(ok=False, reason="unreadable", message=IMPORT_FAILURE_MESSAGE)

    rows = parse_roster_text(text)
    if not rows:
        log.warning("Import produced no students")
        return ImportReport(ok=False, reason="no_rows", message=IMPORT_FAILURE_MESSAGE)

    created = store.add_many(rows)
    log.info("Imported %d students", len(created), extra={"imported": len(created)})
    return ImportReport(
        ok=True,
        imported=len(created),
        message=IMPORT_SUCCESS_MESSAGE.format(count=len(created)),
    )
