from contextlib import asynccontextmanager
from functools import lru_cache
from typing import List
from urllib.parse import quote

from fastapi import Depends, FastAPI, File, HTTPException, Query, Response, UploadFile

from .analysis import Analyzer, build_analyzer, scope_label
from .config import get_settings
from .exporter import export_label, export_roster
from .importer import import_roster
from .models import (
    AnalysisResponse,
    HealthResponse,
    ImportReport,
    RosterCounts,
    Scope,
    Student,
    StudentInput,
)
from .rules import ALL_SCOPE, ANALYSIS_EMPTY_MESSAGE
from .storage import JsonFileSnapshotStore
from .store import RosterStore
from .utils.logging import configure_logging


@asynccontextmanager
async def lifespan(_: FastAPI):
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.json_logs)
    yield


app = FastAPI(
    title="edu-track-roster",
    description="After-school class roster with CSV import and export",
    version="0.1.0",
    lifespan=lifespan,
)


@lru_cache(maxsize=1)
def get_store() -> RosterStore:
    settings = get_settings()
    return RosterStore(JsonFileSnapshotStore(settings.data_dir), key=settings.storage_key)


def get_analyzer() -> Analyzer:
    return build_analyzer(get_settings())


def _require_name(data: StudentInput) -> None:
    if not data.name.strip():
        raise HTTPException(status_code=422, detail="Student name must not be empty")


@app.get("/health", response_model=HealthResponse)
def health(store: RosterStore = Depends(get_store)):
    return {"ok": True, "persisted": store.persisted}


@app.get("/students", response_model=List[Student])
async def list_students(group: Scope = Query(ALL_SCOPE), store: RosterStore = Depends(get_store)):
    return store.list(group)


@app.get("/students/stats", response_model=RosterCounts)
async def student_stats(store: RosterStore = Depends(get_store)):
    counts = store.counts()
    return {"counts": counts, "total": counts[ALL_SCOPE]}


@app.post("/students", response_model=Student, status_code=201)
async def add_student(data: StudentInput, store: RosterStore = Depends(get_store)):
    _require_name(data)
    return store.add(data)


@app.put("/students/{student_id}", response_model=Student)
async def update_student(student_id: str, data: StudentInput, store: RosterStore = Depends(get_store)):
    _require_name(data)
    if not store.update(student_id, data):
        raise HTTPException(status_code=404, detail="Student not found")
    return store.get(student_id)


@app.delete("/students/{student_id}", status_code=204)
async def delete_student(student_id: str, store: RosterStore = Depends(get_store)):
    if not store.delete(student_id):
        raise HTTPException(status_code=404, detail="Student not found")
    return Response(status_code=204)


@app.post("/students/import", response_model=ImportReport)
async def import_students(file: UploadFile = File(...), store: RosterStore = Depends(get_store)):
    if not (file.filename or "").lower().endswith(".csv"):
        raise HTTPException(status_code=422, detail="Only CSV files are supported")

    raw = await file.read()
    return import_roster(store, raw)


@app.get("/students/export")
async def export_students(group: Scope = Query(ALL_SCOPE), store: RosterStore = Depends(get_store)):
    result = export_roster(store.list(group), export_label(group))
    if not result.ok:
        raise HTTPException(status_code=409, detail=result.message)

    headers = {
        "Content-Disposition": f"attachment; filename*=UTF-8''{quote(result.filename)}",
        "X-Content-SHA256": result.sha256,
    }
    return Response(content=result.content, media_type="text/csv; charset=utf-8", headers=headers)


@app.post("/students/analysis", response_model=AnalysisResponse)
async def analyze_students(
    group: Scope = Query(ALL_SCOPE),
    store: RosterStore = Depends(get_store),
    analyzer: Analyzer = Depends(get_analyzer),
):
    students = store.list(group)
    if not students:
        raise HTTPException(status_code=409, detail=ANALYSIS_EMPTY_MESSAGE)

    label = scope_label(group)
    text = await analyzer(students, label)
    return {"scope": group, "label": label, "text": text}
