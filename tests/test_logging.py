from __future__ import annotations

import json
import logging

from roster.utils.logging import JsonFormatter, _json_formatter


def _record(msg: str = "hello") -> logging.LogRecord:
    return logging.LogRecord(
        name="roster.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_json_formatter_promotes_extra_fields() -> None:
    record = _record()
    record.imported = 3
    record.scope = "A"

    payload = json.loads(_json_formatter(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "roster.test"
    assert payload["message"] == "hello"
    assert payload["imported"] == 3
    assert payload["scope"] == "A"
    assert "lineno" not in payload


def test_json_formatter_keeps_korean_readable() -> None:
    out = JsonFormatter().format(_record("1명의 학생이 성공적으로 등록되었습니다."))
    assert "학생" in out
