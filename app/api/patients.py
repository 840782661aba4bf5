from fastapi import APIRouter, BackgroundTasks, Depends

from app.api.deps import get_store
from app.core.auth import require_actor
from app.core.config import get_settings
from app.core.errors import NotFoundError
from app.core.logger import log_event
from app.core.projections import patient_history
from app.core.store import RecordStore
from app.core.vaccination import register_vaccination
from app.models.clinical import Actor
from app.models.requests import VaccinationSubmit
from app.transforms.export import export_filename, to_export_document, write_export

router = APIRouter()


def _load_patient(store: RecordStore, patient_id: str) -> dict:
    patient = store.get_one("patients", patient_id)
    if patient is None:
        raise NotFoundError("patients", patient_id)
    return patient


def _write_export_task(document: dict, directory: str, filename: str, actor: str) -> None:
    """Write the export file and log the outcome"""
    patient_id = document["patient"].get("id")
    try:
        path = write_export(document, directory, filename)
    except OSError as exc:
        log_event(
            "export_failed",
            "ERROR",
            patient_id,
            "export",
            f"Falha ao exportar prontuário: {exc}",
            actor=actor,
        )
        return
    log_event(
        "export_completed",
        "INFO",
        patient_id,
        "export",
        f"Prontuário exportado em {path}",
        actor=actor,
        record_count=len(document["history"]),
    )


@router.get("/patients/{patient_id}/history")
def read_history(
    patient_id: str,
    actor: Actor = Depends(require_actor),
    store: RecordStore = Depends(get_store),
) -> list[dict]:
    """Combined health history of one patient, most recent first"""
    history = patient_history(store, actor, patient_id)
    _load_patient(store, patient_id)
    return history


@router.post("/patients/{patient_id}/export", status_code=202)
def export_record(
    patient_id: str,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(require_actor),
    store: RecordStore = Depends(get_store),
) -> dict:
    """Export the patient record as a JSON document

    The document is assembled now and written in the background; the
    outcome is recorded in the audit log.

    Args:
        patient_id: patient id
        background_tasks: FastAPI background tasks
        actor: current actor
        store: record store

    Returns:
        Scheduled file name
    """
    history = patient_history(store, actor, patient_id)
    patient = _load_patient(store, patient_id)
    document = to_export_document(patient, history)
    filename = export_filename(patient)
    background_tasks.add_task(
        _write_export_task, document, get_settings().export_dir, filename, actor.name
    )
    return {"status": "agendado", "filename": filename}


@router.post("/patients/{patient_id}/vaccinations", status_code=201)
def add_vaccination(
    patient_id: str,
    payload: VaccinationSubmit,
    actor: Actor = Depends(require_actor),
    store: RecordStore = Depends(get_store),
) -> dict:
    """Register an administered dose against a stock item"""
    _load_patient(store, patient_id)
    return register_vaccination(store, actor, patient_id, payload.model_dump())
