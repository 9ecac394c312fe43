"""
The in-memory roster.

RosterStore is the single source of truth for the session. It reads one
snapshot when constructed and writes a full snapshot after every change.
Identifiers, timestamps and delete confirmation are injected so callers
(and tests) decide where they come from.
"""

from __future__ import annotations

import json
import time
import uuid
from typing import Callable, Dict, Iterable, List, Optional, Set

from pydantic import TypeAdapter, ValidationError

from .models import Student, StudentInput
from .rules import ALL_SCOPE, GROUPS, STORAGE_KEY
from .storage import SnapshotStore
from .utils.logging import get_logger

log = get_logger(__name__)

IdFactory = Callable[[], str]
Clock = Callable[[], int]
Confirm = Callable[[Student], bool]

_SNAPSHOT = TypeAdapter(List[Student])


def new_id() -> str:
    return str(uuid.uuid4())


def now_ms() -> int:
    return int(time.time() * 1000)


def always_confirm(student: Student) -> bool:
    return True


class RosterStore:
    def __init__(
        self,
        snapshots: SnapshotStore,
        *,
        key: str = STORAGE_KEY,
        id_factory: IdFactory = new_id,
        clock: Clock = now_ms,
        confirm: Confirm = always_confirm,
    ) -> None:
        self._snapshots = snapshots
        self._key = key
        self._id_factory = id_factory
        self._clock = clock
        self._confirm = confirm
        self.persisted = True
        self._students: List[Student] = self._load()
        self._issued: Set[str] = {s.id for s in self._students}

    # -------- snapshot sync --------

    def _load(self) -> List[Student]:
        raw = self._snapshots.get(self._key)
        if raw is None:
            log.info("No roster snapshot under %r, starting empty", self._key)
            return []
        try:
            students = _SNAPSHOT.validate_json(raw)
        except ValidationError as exc:
            log.warning(
                "Roster snapshot %r is unreadable, starting empty: %s",
                self._key,
                exc.errors(include_url=False)[:3],
            )
            return []

        unique: List[Student] = []
        seen: Set[str] = set()
        for student in students:
            if student.id in seen:
                log.warning("Dropping duplicate id %s from snapshot", student.id)
                continue
            seen.add(student.id)
            unique.append(student)
        log.info("Loaded %d students from snapshot", len(unique), extra={"students": len(unique)})
        return unique

    def _save(self) -> None:
        """Write the full roster. On failure the change stays in memory and `persisted` drops to False."""
        payload = [s.model_dump(by_alias=True) for s in self._students]
        try:
            self._snapshots.set(self._key, json.dumps(payload, ensure_ascii=False))
        except OSError:
            log.exception("Could not write roster snapshot %r", self._key)
            self.persisted = False
        else:
            self.persisted = True

    def _next_id(self) -> str:
        student_id = self._id_factory()
        while student_id in self._issued:
            student_id = self._id_factory()
        self._issued.add(student_id)
        return student_id

    def _create(self, data: StudentInput) -> Student:
        return Student(id=self._next_id(), created_at=self._clock(), **data.model_dump())

    # -------- mutations --------

    def add(self, data: StudentInput) -> Student:
        student = self._create(data)
        self._students.append(student)
        self._save()
        return student

    def add_many(self, items: Iterable[StudentInput]) -> List[Student]:
        created = [self._create(data) for data in items]
        if created:
            self._students.extend(created)
            self._save()
        return created

    def update(self, student_id: str, data: StudentInput) -> bool:
        for i, current in enumerate(self._students):
            if current.id == student_id:
                self._students[i] = Student(
                    id=current.id,
                    created_at=current.created_at,
                    **data.model_dump(),
                )
                self._save()
                return True
        return False

    def delete(self, student_id: str) -> bool:
        student = self.get(student_id)
        if student is None:
            return False
        if not self._confirm(student):
            log.info("Delete of %s cancelled", student_id)
            return False
        self._students = [s for s in self._students if s.id != student_id]
        self._save()
        return True

    # -------- reads --------

    def get(self, student_id: str) -> Optional[Student]:
        for student in self._students:
            if student.id == student_id:
                return student
        return None

    def list(self, scope: str = ALL_SCOPE) -> List[Student]:
        if scope == ALL_SCOPE:
            return list(self._students)
        return [s for s in self._students if s.group == scope]

    def counts(self) -> Dict[str, int]:
        counts = {ALL_SCOPE: len(self._students)}
        for group in GROUPS:
            counts[group] = sum(1 for s in self._students if s.group == group)
        return counts

    def __len__(self) -> int:
        return len(self._students)
