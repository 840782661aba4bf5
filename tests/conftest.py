import pytest

from app.core.config import get_settings, load_app_config
from app.core.events import ChangeBus
from app.core.scheduler import stop_scheduler
from app.core.store import MemoryRecordStore
from app.core.telemetry import TelemetryStore
from app.models.clinical import Actor, Role


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("CONFIG_PATH", str(tmp_path / "clinic.yaml"))
    monkeypatch.setenv("STORE_PATH", str(tmp_path / "records.duckdb"))
    monkeypatch.setenv("TELEMETRY_PATH", str(tmp_path / "telemetry.duckdb"))
    monkeypatch.setenv("EXPORT_DIR", str(tmp_path / "exports"))
    monkeypatch.setenv("SCHEDULER_ENABLED", "false")
    get_settings.cache_clear()
    load_app_config.cache_clear()
    TelemetryStore.reset()
    yield
    stop_scheduler()
    TelemetryStore.reset()
    get_settings.cache_clear()
    load_app_config.cache_clear()


@pytest.fixture
def bus() -> ChangeBus:
    return ChangeBus()


@pytest.fixture
def store(bus) -> MemoryRecordStore:
    return MemoryRecordStore(bus)


@pytest.fixture
def actors() -> dict[str, Actor]:
    return {
        "admin": Actor(id="u-admin", name="Ana Admin", role=Role.ADMIN),
        "reception": Actor(id="u-rec", name="Rita Recepção", role=Role.RECEPTION),
        "nurse": Actor(id="u-nurse", name="Nair Enfermeira", role=Role.NURSING),
        "doctor": Actor(id="u-doc", name="Dr. Paulo", role=Role.PHYSICIAN),
        "other_doctor": Actor(id="u-doc2", name="Dra. Lia", role=Role.PHYSICIAN),
        "lab": Actor(id="u-lab", name="Lucas Lab", role=Role.LAB),
        "patient": Actor(id="u-pat", name="Maria Silva", role=Role.PATIENT, patient_id="p1"),
    }


@pytest.fixture
def seeded_store(store, actors) -> MemoryRecordStore:
    store.save(
        "users",
        [{**actor.model_dump(), "role": actor.role.value} for actor in actors.values()],
    )
    store.save(
        "patients",
        [
            {"id": "p1", "name": "Maria Silva"},
            {"id": "p2", "name": "João Souza"},
        ],
    )
    return store
