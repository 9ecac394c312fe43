from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .normalize import to_group, to_positive_int, to_text

Group = Literal["A", "B", "C"]
Scope = Literal["ALL", "A", "B", "C"]


class StudentInput(BaseModel):
    """
    Editable student fields. Values are coerced on the way in: groups outside
    A/B/C become A and non-positive or non-numeric numbers become 1.
    """

    model_config = ConfigDict(populate_by_name=True)

    grade: int = 1
    school_class: int = Field(default=1, alias="schoolClass")
    number: int = 1
    group: Group = "A"
    name: str
    phone: str = ""
    remarks: str = ""

    @field_validator("grade", "school_class", "number", mode="before")
    @classmethod
    def _positive_int(cls, value: Any) -> int:
        return to_positive_int(value)

    @field_validator("group", mode="before")
    @classmethod
    def _group(cls, value: Any) -> str:
        return to_group(value)

    @field_validator("name", "phone", "remarks", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return to_text(value)


class Student(StudentInput):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    created_at: int = Field(alias="createdAt")

    def to_input(self) -> StudentInput:
        return StudentInput(**self.model_dump(exclude={"id", "created_at"}))


class ImportReport(BaseModel):
    ok: bool
    imported: int = 0
    reason: Optional[Literal["unreadable", "no_rows"]] = None
    message: str


class RosterExport(BaseModel):
    ok: bool
    message: str = ""
    filename: Optional[str] = None
    encoding: str = Field(default="utf-8-sig")
    sha256: Optional[str] = None
    rows: int = 0
    content: bytes = b""


class RosterCounts(BaseModel):
    counts: Dict[str, int]
    total: int


class AnalysisResponse(BaseModel):
    scope: Scope
    label: str
    text: str


class HealthResponse(BaseModel):
    ok: bool = True
    persisted: bool = True
