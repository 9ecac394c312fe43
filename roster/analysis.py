"""
Roster analysis.

An analyzer is any async callable taking the filtered students and a scope
label and returning free text. The Gemini client is used when an API key is
configured; otherwise an offline summary is produced.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx

from .config import Settings
from .models import Student
from .rules import ALL_SCOPE, GROUPS
from .utils.logging import get_logger

log = get_logger(__name__)

Analyzer = Callable[[Sequence[Student], str], Awaitable[str]]

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models"


def scope_label(scope: str) -> str:
    return "전체" if scope == ALL_SCOPE else f"{scope}반"


async def summarize_roster(students: Sequence[Student], label: str) -> str:
    if not students:
        return ""
    by_group = Counter(s.group for s in students)
    by_grade = Counter(s.grade for s in students)

    lines = [f"[{label}] 학생 수: {len(students)}명"]
    groups = ", ".join(f"{g}반 {by_group[g]}명" for g in GROUPS if by_group[g])
    lines.append(f"방과후 그룹: {groups}")
    grades = ", ".join(f"{grade}학년 {count}명" for grade, count in sorted(by_grade.items()))
    lines.append(f"학년 분포: {grades}")
    with_remarks = sum(1 for s in students if s.remarks.strip())
    if with_remarks:
        lines.append(f"비고가 있는 학생: {with_remarks}명")
    return "\n".join(lines)


def build_prompt(students: Sequence[Student], label: str) -> str:
    rows = "\n".join(
        f"- {s.grade}학년 {s.school_class}반 {s.number}번 {s.name} ({s.group}반)"
        + (f": {s.remarks}" if s.remarks else "")
        for s in students
    )
    return (
        f"다음은 방과후 컴퓨터 수업 {label} 학생 명단입니다.\n"
        f"{rows}\n\n"
        "학년 분포와 비고 내용을 바탕으로 수업 운영에 도움이 될 분석과 "
        "지도 제안을 3~4문장의 한국어로 작성해 주세요."
    )


def _extract_text(data: Dict[str, Any]) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    texts: List[str] = [p["text"] for p in parts if isinstance(p.get("text"), str)]
    return "".join(texts).strip()


class GeminiAnalyzer:
    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.transport = transport

    @property
    def url(self) -> str:
        return f"{GEMINI_API_URL}/{self.model}:generateContent"

    async def __call__(self, students: Sequence[Student], label: str) -> str:
        payload = {"contents": [{"parts": [{"text": build_prompt(students, label)}]}]}
        headers = {"Content-Type": "application/json", "x-goog-api-key": self.api_key}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(self.url, headers=headers, json=payload)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError):
            log.exception("Gemini analysis failed for %s", label)
            return ""

        if not isinstance(data, dict):
            return ""
        return _extract_text(data)


def build_analyzer(settings: Settings) -> Analyzer:
    if settings.gemini_api_key:
        return GeminiAnalyzer(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            timeout=settings.analysis_timeout,
        )
    return summarize_roster
