import json
import logging

import pytest

from roster.models import StudentInput
from roster.storage import InMemorySnapshotStore, JsonFileSnapshotStore
from roster.store import RosterStore

from conftest import FIXED_NOW, CountingSnapshotStore, FailingSnapshotStore

KEY = "edu_track_students"


def _saved(snapshots):
    return json.loads(snapshots.get(KEY))


def test_add_assigns_id_and_timestamp(store, snapshots, make_input):
    student = store.add(make_input("Kim", group="b", grade=2))

    assert student.id == "s1"
    assert student.created_at == FIXED_NOW
    assert student.group == "B"
    assert snapshots.writes == 1
    assert _saved(snapshots) == [
        {
            "grade": 2,
            "schoolClass": 1,
            "number": 1,
            "group": "B",
            "name": "Kim",
            "phone": "",
            "remarks": "",
            "id": "s1",
            "createdAt": FIXED_NOW,
        }
    ]


def test_update_replaces_fields_but_keeps_identity(snapshots, make_input):
    times = iter([100, 200])
    store = RosterStore(snapshots, id_factory=lambda: "only", clock=lambda: next(times))
    store.add(make_input("Kim", remarks="old"))

    assert store.update("only", make_input("Kim Minjun", group="C", remarks="new")) is True

    student = store.get("only")
    assert student.created_at == 100
    assert (student.name, student.group, student.remarks) == ("Kim Minjun", "C", "new")
    assert snapshots.writes == 2


def test_update_unknown_id_is_silent(store, snapshots, make_input):
    store.add(make_input())
    assert store.update("missing", make_input("Nobody")) is False
    assert snapshots.writes == 1


def test_delete_removes_after_confirmation(store, snapshots, make_input):
    student = store.add(make_input())

    assert store.delete(student.id) is True
    assert len(store) == 0
    assert _saved(snapshots) == []


def test_delete_declined_keeps_record(snapshots, id_factory, make_input):
    asked = []

    def decline(student):
        asked.append(student.id)
        return False

    store = RosterStore(snapshots, id_factory=id_factory, confirm=decline)
    student = store.add(make_input())

    assert store.delete(student.id) is False
    assert asked == [student.id]
    assert store.get(student.id) == student
    assert snapshots.writes == 1


def test_delete_unknown_id_is_silent(store, snapshots):
    assert store.delete("missing") is False
    assert snapshots.writes == 0


def test_list_keeps_insertion_order_and_filters(store, make_input):
    store.add(make_input("C-kid", group="C", grade=1))
    store.add(make_input("A-kid", group="A", grade=6))
    store.add(make_input("C-kid-2", group="C", grade=2))

    assert [s.name for s in store.list()] == ["C-kid", "A-kid", "C-kid-2"]
    assert [s.name for s in store.list("C")] == ["C-kid", "C-kid-2"]
    assert store.list("B") == []
    assert store.counts() == {"ALL": 3, "A": 1, "B": 0, "C": 2}


def test_list_returns_a_copy(store, make_input):
    store.add(make_input())
    store.list().clear()
    assert len(store) == 1


def test_ids_are_never_reused(snapshots, make_input):
    ids = iter(["a", "a", "b"])
    store = RosterStore(snapshots, id_factory=lambda: next(ids))

    first = store.add(make_input())
    store.delete(first.id)
    second = store.add(make_input())

    assert first.id == "a"
    assert second.id == "b"


def test_snapshot_ids_are_reserved(make_input):
    snapshot = json.dumps([{"id": "x", "createdAt": 1, "name": "Kim", "group": "A"}])
    ids = iter(["x", "y"])
    store = RosterStore(InMemorySnapshotStore({KEY: snapshot}), id_factory=lambda: next(ids))

    assert store.add(make_input("Lee")).id == "y"


def test_loads_snapshot_and_coerces_values():
    snapshot = json.dumps(
        [
            {"id": "1", "createdAt": 5, "grade": 0, "schoolClass": "3", "number": 2, "group": "z", "name": "Kim"},
            {"id": "2", "createdAt": 6, "grade": 4, "schoolClass": 1, "number": 1, "group": "b", "name": "Lee",
             "phone": "010", "remarks": "r"},
        ]
    )

    store = RosterStore(InMemorySnapshotStore({KEY: snapshot}))

    kim, lee = store.list()
    assert (kim.grade, kim.school_class, kim.group) == (1, 3, "A")
    assert (lee.group, lee.phone, lee.remarks) == ("B", "010", "r")


def test_corrupt_snapshot_starts_empty(caplog):
    with caplog.at_level(logging.WARNING, logger="roster.store"):
        store = RosterStore(InMemorySnapshotStore({KEY: "not json at all"}))

    assert len(store) == 0
    assert "unreadable" in caplog.text


def test_wrong_shape_snapshot_starts_empty():
    for raw in ("{}", '[{"name": "no id"}]', ""):
        assert len(RosterStore(InMemorySnapshotStore({KEY: raw}))) == 0


def test_missing_snapshot_starts_empty():
    snapshots = CountingSnapshotStore()
    assert len(RosterStore(snapshots)) == 0
    assert snapshots.writes == 0


def test_duplicate_ids_in_snapshot_keep_first():
    snapshot = json.dumps([
        {"id": "1", "createdAt": 1, "name": "Kim"},
        {"id": "1", "createdAt": 2, "name": "Lee"},
    ])
    store = RosterStore(InMemorySnapshotStore({KEY: snapshot}))
    assert [s.name for s in store.list()] == ["Kim"]


def test_json_file_snapshot_round_trip(tmp_path):
    snapshots = JsonFileSnapshotStore(tmp_path / "data")
    store = RosterStore(snapshots)
    store.add(StudentInput(name="Kim", group="C", remarks='say "hi", ok'))

    assert (tmp_path / "data" / f"{KEY}.json").exists()
    assert list((tmp_path / "data").glob("*.tmp")) == []

    reloaded = RosterStore(JsonFileSnapshotStore(tmp_path / "data"))
    assert reloaded.list() == store.list()


def test_json_file_snapshot_missing_file(tmp_path):
    assert JsonFileSnapshotStore(tmp_path / "nowhere").get(KEY) is None


def test_json_file_snapshot_write_error_propagates(tmp_path):
    blocker = tmp_path / "data"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(OSError):
        JsonFileSnapshotStore(blocker).set(KEY, "[]")


def test_failed_write_keeps_change_and_clears_persisted(make_input, caplog):
    snapshots = FailingSnapshotStore()
    store = RosterStore(snapshots, id_factory=lambda: "s1", clock=lambda: FIXED_NOW)
    assert store.persisted is True

    with caplog.at_level(logging.ERROR, logger="roster.store"):
        student = store.add(make_input("Kim"))

    assert store.persisted is False
    assert store.get("s1") == student
    assert snapshots.get(KEY) is None
    assert "Could not write roster snapshot" in caplog.text

    snapshots.failing = False
    store.update("s1", make_input("Kim", remarks="saved"))

    assert store.persisted is True
    assert [s["remarks"] for s in _saved(snapshots)] == ["saved"]
