from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Optional

import typer

from .analysis import build_analyzer, scope_label
from .config import get_settings
from .exporter import export_label, export_roster
from .importer import import_roster
from .models import Student, StudentInput
from .rules import ALL_SCOPE, ANALYSIS_EMPTY_MESSAGE, DELETE_PROMPT, SCOPES
from .storage import JsonFileSnapshotStore
from .store import RosterStore, always_confirm
from .utils.logging import configure_logging

app = typer.Typer(help="After-school roster manager.")


def _check_scope(value: str) -> str:
    scope = value.upper()
    if scope not in SCOPES:
        raise typer.BadParameter(f"must be one of {', '.join(SCOPES)}")
    return scope


def _prompt_confirm(student: Student) -> bool:
    return typer.confirm(f"{student.name} ({student.group}반) - {DELETE_PROMPT}")


def _open_store(assume_yes: bool = False) -> RosterStore:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.json_logs)
    return RosterStore(
        JsonFileSnapshotStore(settings.data_dir),
        key=settings.storage_key,
        confirm=always_confirm if assume_yes else _prompt_confirm,
    )


def _row(s: Student) -> str:
    return f"{s.id}  {s.group}  {s.grade}-{s.school_class}-{s.number}  {s.name}  {s.phone}  {s.remarks}"


def _require_saved(store: RosterStore) -> None:
    if not store.persisted:
        typer.echo("Could not write the roster snapshot; the change was not saved.", err=True)
        raise typer.Exit(code=1)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"data_dir={settings.data_dir} key={settings.storage_key} "
        f"analysis={'gemini:' + settings.gemini_model if settings.gemini_api_key else 'offline'}"
    )


@app.command("list")
def list_students(
    group: str = typer.Option(ALL_SCOPE, "--group", "-g", callback=_check_scope, help="ALL, A, B or C."),
) -> None:
    store = _open_store()
    students = store.list(group)
    for s in students:
        typer.echo(_row(s))
    typer.echo(f"{len(students)}명")


@app.command()
def add(
    name: str = typer.Option(..., "--name", "-n"),
    grade: int = typer.Option(1, "--grade"),
    school_class: int = typer.Option(1, "--class"),
    number: int = typer.Option(1, "--number"),
    group: str = typer.Option("A", "--group", "-g"),
    phone: str = typer.Option("", "--phone"),
    remarks: str = typer.Option("", "--remarks"),
) -> None:
    if not name.strip():
        raise typer.BadParameter("name must not be empty", param_hint="--name")
    store = _open_store()
    student = store.add(
        StudentInput(
            name=name,
            grade=grade,
            school_class=school_class,
            number=number,
            group=group,
            phone=phone,
            remarks=remarks,
        )
    )
    _require_saved(store)
    typer.echo(_row(student))


@app.command()
def edit(
    student_id: str = typer.Argument(...),
    name: Optional[str] = typer.Option(None, "--name", "-n"),
    grade: Optional[int] = typer.Option(None, "--grade"),
    school_class: Optional[int] = typer.Option(None, "--class"),
    number: Optional[int] = typer.Option(None, "--number"),
    group: Optional[str] = typer.Option(None, "--group", "-g"),
    phone: Optional[str] = typer.Option(None, "--phone"),
    remarks: Optional[str] = typer.Option(None, "--remarks"),
) -> None:
    """
    Change the given fields of one student; the rest are kept.
    """
    if name is not None and not name.strip():
        raise typer.BadParameter("name must not be empty", param_hint="--name")
    store = _open_store()
    current = store.get(student_id)
    if current is None:
        typer.echo(f"No student with id {student_id}", err=True)
        raise typer.Exit(code=1)

    changes = {
        "name": name,
        "grade": grade,
        "school_class": school_class,
        "number": number,
        "group": group,
        "phone": phone,
        "remarks": remarks,
    }
    fields = current.to_input().model_dump()
    fields.update({k: v for k, v in changes.items() if v is not None})
    store.update(student_id, StudentInput(**fields))
    _require_saved(store)
    typer.echo(_row(store.get(student_id)))


@app.command()
def delete(
    student_id: str = typer.Argument(...),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    store = _open_store(assume_yes=yes)
    if store.get(student_id) is None:
        typer.echo(f"No student with id {student_id}", err=True)
        raise typer.Exit(code=1)
    if store.delete(student_id):
        _require_saved(store)
        typer.echo(f"Deleted {student_id}")
    else:
        typer.echo("Cancelled.")


@app.command("import")
def import_csv(path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True)) -> None:
    store = _open_store()
    report = import_roster(store, path.read_bytes())
    typer.echo(report.message)
    if not report.ok:
        raise typer.Exit(code=1)
    _require_saved(store)


@app.command()
def export(
    group: str = typer.Option(ALL_SCOPE, "--group", "-g", callback=_check_scope, help="ALL, A, B or C."),
    out: Path = typer.Option(Path("."), "--out", "-o", file_okay=False, help="Output directory."),
) -> None:
    store = _open_store()
    result = export_roster(store.list(group), export_label(group))
    if not result.ok:
        typer.echo(result.message, err=True)
        raise typer.Exit(code=1)
    out.mkdir(parents=True, exist_ok=True)
    target = out / result.filename
    target.write_bytes(result.content)
    typer.echo(f"{result.rows} rows -> {target}")


@app.command()
def analyze(
    group: str = typer.Option(ALL_SCOPE, "--group", "-g", callback=_check_scope, help="ALL, A, B or C."),
) -> None:
    store = _open_store()
    students = store.list(group)
    if not students:
        typer.echo(ANALYSIS_EMPTY_MESSAGE, err=True)
        raise typer.Exit(code=1)
    analyzer = build_analyzer(get_settings())
    typer.echo(asyncio.run(analyzer(students, scope_label(group))))


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
