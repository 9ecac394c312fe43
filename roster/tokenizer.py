"""
Line tokenizer for roster CSV text.

A small state machine walks each character. Commas split fields unless they
sit inside a double-quoted field; a doubled quote inside a quoted field is a
literal quote. Tokens come back raw (quotes and padding intact) and are
cleaned by `normalize.clean_quoted`.

Lines the grammar cannot match fall back to a plain comma split instead of
failing.
"""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

from .rules import DELIMITER, QUOTE
from .utils.logging import get_logger

log = get_logger(__name__)

UNQUOTED = "unquoted"
QUOTED = "quoted"
QUOTED_PENDING_ESCAPE = "quoted_pending_escape"
CLOSED = "closed"  # quoted field finished, only padding allowed before the comma

_LINE_BREAK = re.compile(r"\r\n|\n|\r")


def scan_line(line: str) -> Optional[List[str]]:
    """
    Strictly tokenize one logical line. Returns None when quoting is malformed:
    a quote in the middle of an unquoted field, text after a closing quote,
    or a quoted field that never closes.
    """
    tokens: List[str] = []
    field_start = 0
    state = UNQUOTED

    for i, ch in enumerate(line):
        if state == UNQUOTED:
            if ch == DELIMITER:
                tokens.append(line[field_start:i])
                field_start = i + 1
            elif ch == QUOTE:
                if line[field_start:i].strip():
                    return None
                state = QUOTED
        elif state == QUOTED:
            if ch == QUOTE:
                state = QUOTED_PENDING_ESCAPE
        elif state == QUOTED_PENDING_ESCAPE:
            if ch == QUOTE:
                state = QUOTED
            elif ch == DELIMITER:
                tokens.append(line[field_start:i])
                field_start = i + 1
                state = UNQUOTED
            elif ch.isspace():
                state = CLOSED
            else:
                return None
        else:  # CLOSED
            if ch == DELIMITER:
                tokens.append(line[field_start:i])
                field_start = i + 1
                state = UNQUOTED
            elif not ch.isspace():
                return None

    if state == QUOTED:
        return None
    tokens.append(line[field_start:])
    return tokens


def naive_split(line: str) -> List[str]:
    return line.split(DELIMITER)


def tokenize_line(line: str) -> List[str]:
    tokens = scan_line(line)
    if tokens is None:
        log.debug("Malformed quoting, falling back to plain split: %r", line)
        return naive_split(line)
    return tokens


def _scan_record(text: str, start: int) -> Tuple[int, int, bool, bool]:
    """
    Find the end of the logical line starting at `start`.

    Returns (end, next_start, spans_break, closed): `spans_break` is set when
    a quoted field swallowed a line break, `closed` is False when a quote was
    still open at the end of the text.
    """
    n = len(text)
    in_quotes = False
    field_blank = True
    spans_break = False
    i = start

    while i < n:
        ch = text[i]
        if in_quotes:
            if ch == QUOTE:
                if i + 1 < n and text[i + 1] == QUOTE:
                    i += 2
                    continue
                in_quotes = False
                field_blank = False
            elif ch == "\r" or ch == "\n":
                spans_break = True
        elif ch == QUOTE and field_blank:
            in_quotes = True
        elif ch == DELIMITER:
            field_blank = True
        elif ch == "\r" or ch == "\n":
            next_start = i + 2 if ch == "\r" and i + 1 < n and text[i + 1] == "\n" else i + 1
            return i, next_start, spans_break, True
        elif not ch.isspace():
            field_blank = False
        i += 1

    return n, n, spans_break, not in_quotes


def split_lines(text: str) -> List[str]:
    """
    Split a blob into logical lines on CRLF, LF or CR.

    A line break inside a quoted field belongs to that field, but only when
    the joined record scans cleanly. Otherwise the record is cut at its first
    physical line break and scanning restarts on the next line, so a stray
    quote never pulls the following rows into a malformed one.
    """
    lines: List[str] = []
    pos = 0
    n = len(text)

    while pos < n:
        end, next_pos, spans_break, closed = _scan_record(text, pos)
        record = text[pos:end]
        if spans_break and (not closed or scan_line(record) is None):
            brk = _LINE_BREAK.search(text, pos)
            lines.append(text[pos:brk.start()])
            pos = brk.end()
            continue
        lines.append(record)
        pos = next_pos
    return lines
