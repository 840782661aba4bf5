import pytest

from app.core.errors import StorageFailure
from app.core.events import ChangeBus
from app.core.store import DuckDBRecordStore, MemoryRecordStore
from app.core.telemetry import TelemetryStore


def test_get_unknown_collection_is_empty(store):
    assert store.get("appointments") == []
    assert store.get("never_written", {"status": "Agendado"}) == []


def test_save_merges_fields_of_existing_record(store):
    store.save("appointments", {"id": "a1", "status": "Agendado", "reason": "dor"})
    saved = store.save("appointments", {"id": "a1", "status": "Aguardando Atendimento"})

    assert saved == [{"id": "a1", "status": "Aguardando Atendimento", "reason": "dor"}]
    assert store.get("appointments") == saved


def test_save_skips_records_without_id(store):
    saved = store.save(
        "patients",
        [{"name": "sem id"}, {"id": "", "name": "vazio"}, {"id": "p1", "name": "Maria"}],
    )

    assert saved == [{"id": "p1", "name": "Maria"}]
    assert store.get("patients") == [{"id": "p1", "name": "Maria"}]


def test_save_without_valid_records_writes_nothing(store, bus):
    events = []
    bus.subscribe(events.append)

    assert store.save("patients", [{"name": "sem id"}]) == []
    assert events == []


def test_get_filters_by_exact_match(store):
    store.save(
        "appointments",
        [
            {"id": "a1", "patient_id": "p1", "status": "Agendado"},
            {"id": "a2", "patient_id": "p2", "status": "Agendado"},
            {"id": "a3", "patient_id": "p1", "status": "Realizado"},
            {"id": "a4", "status": "Agendado"},
        ],
    )

    result = store.get("appointments", {"patient_id": "p1", "status": "Agendado"})
    assert [record["id"] for record in result] == ["a1"]
    # Records lacking the filtered field never match.
    assert [r["id"] for r in store.get("appointments", {"patient_id": None})] == []


def test_get_returns_copies(store):
    store.save("patients", {"id": "p1", "name": "Maria"})
    first = store.get("patients")
    first[0]["name"] = "alterado"

    assert store.get("patients") == [{"id": "p1", "name": "Maria"}]


def test_delete_removes_record_and_ignores_absent_id(store):
    store.save("labTests", [{"id": "t1"}, {"id": "t2"}])
    store.delete("labTests", "t1")
    store.delete("labTests", "missing")

    assert store.get("labTests") == [{"id": "t2"}]


def test_save_publishes_change_event(store, bus):
    events = []
    bus.subscribe(events.append)

    store.save("vaccines", [{"id": "v1"}, {"id": "v2"}])
    store.delete("vaccines", "v1")

    assert [(event.collection, event.action, event.ids) for event in events] == [
        ("vaccines", "save", ("v1", "v2")),
        ("vaccines", "delete", ("v1",)),
    ]


def test_failing_subscriber_does_not_block_others(store, bus):
    received = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(broken)
    bus.subscribe(received.append)
    store.save("patients", {"id": "p1"})

    assert len(received) == 1


def test_unsubscribe_stops_delivery(store, bus):
    received = []
    unsubscribe = bus.subscribe(received.append)
    unsubscribe()
    store.save("patients", {"id": "p1"})

    assert received == []


def test_quota_failure_leaves_collection_unchanged():
    store = MemoryRecordStore(ChangeBus(), quota_bytes=120)
    store.save("patients", {"id": "p1", "name": "Maria"})

    with pytest.raises(StorageFailure) as exc_info:
        store.save("patients", {"id": "p2", "name": "x" * 200})

    assert exc_info.value.code == "STORE_WRITE_001"
    assert store.get("patients") == [{"id": "p1", "name": "Maria"}]
    rows = TelemetryStore().query_logs("event = ?", ["storage_failed"])
    assert rows
    assert rows[-1][6] == "STORE_WRITE_001"


def test_snapshot_restore_and_clear(store):
    store.save("patients", {"id": "p1", "name": "Maria"})
    backup = store.snapshot()

    assert backup["patients"] == [{"id": "p1", "name": "Maria"}]
    assert backup["appointments"] == []

    store.clear()
    assert store.get("patients") == []

    store.restore(backup)
    assert store.get("patients") == [{"id": "p1", "name": "Maria"}]


def test_restore_rejects_records_without_id(store):
    store.save("patients", {"id": "p1"})

    with pytest.raises(StorageFailure):
        store.restore({"patients": [{"name": "sem id"}]})

    assert store.get("patients") == [{"id": "p1"}]


def test_duckdb_store_persists_across_reopen(tmp_path):
    path = str(tmp_path / "records.duckdb")
    store = DuckDBRecordStore(path)
    store.save("appointments", {"id": "a1", "status": "Agendado"})
    store.save("appointments", {"id": "a1", "status": "Cancelado"})
    store.save("appointments", {"id": "a2", "status": "Agendado"})
    store.close()

    reopened = DuckDBRecordStore(path)
    assert reopened.get("appointments") == [
        {"id": "a1", "status": "Cancelado"},
        {"id": "a2", "status": "Agendado"},
    ]
    reopened.close()


def test_duckdb_store_quota_rejects_write(tmp_path):
    store = DuckDBRecordStore(str(tmp_path / "records.duckdb"), quota_bytes=60)
    store.save("patients", {"id": "p1"})

    with pytest.raises(StorageFailure):
        store.save("patients", {"id": "p2", "notes": "y" * 100})

    assert store.get("patients") == [{"id": "p1"}]
    store.close()
