from __future__ import annotations

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
import yaml

from app.api.deps import get_registry, get_store
from app.core.auth import require_admin
from app.core.config import get_settings, load_app_config, reload_app_config
from app.core.errors import ValidationError
from app.core.logger import log_event
from app.core.scheduler import start_scheduler
from app.core.store import RecordStore
from app.core.telemetry import TelemetryStore
from app.core.views import ViewRegistry
from app.utils.parsing import utc_timestamp

router = APIRouter()


def _validate_clinic(clinic: dict) -> list[str]:
    """Validate the clinic settings

    Args:
        clinic: clinic settings

    Returns:
        Error list
    """
    errors: list[str] = []
    clinic_id = str(clinic.get("clinic_id", "")).strip()
    refresh_seconds = clinic.get("roster_refresh_seconds")
    threshold = clinic.get("low_stock_threshold")

    if not clinic_id:
        errors.append("clinic_id obrigatório")
    if not str(clinic.get("name", "")).strip():
        errors.append("name obrigatório")
    if not isinstance(clinic.get("enabled"), bool):
        errors.append("enabled deve ser booleano")
    if (
        isinstance(refresh_seconds, bool)
        or not isinstance(refresh_seconds, int)
        or refresh_seconds <= 0
    ):
        errors.append("roster_refresh_seconds deve ser positivo")
    if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 0:
        errors.append("low_stock_threshold não pode ser negativo")
    return errors


def _log_rows(rows: list[tuple]) -> list[dict]:
    return [
        {
            "timestamp": str(row[0]) if row[0] is not None else None,
            "level": row[1],
            "event": row[2],
            "subject_id": row[3],
            "stage": row[4],
            "actor": row[5],
            "error_code": row[6],
            "message": row[7],
            "record_count": row[8],
        }
        for row in rows
    ]


@router.get("/logs")
def admin_logs(
    event: str | None = None,
    error_code: str | None = None,
    admin: None = Depends(require_admin),
) -> list[dict]:
    """Audit log entries

    Args:
        event: event name filter (optional)
        error_code: error code filter (optional)
        admin: admin authentication dependency

    Returns:
        Log entries, oldest first
    """
    clauses: list[str] = []
    params: list = []
    if event:
        clauses.append("event = ?")
        params.append(event)
    if error_code:
        clauses.append("error_code = ?")
        params.append(error_code)
    rows = TelemetryStore().query_logs(" AND ".join(clauses), params)
    return _log_rows(rows)


@router.get("/status")
def admin_status(admin: None = Depends(require_admin)) -> list[dict]:
    """Refresh status of every live view

    Args:
        admin: admin authentication dependency

    Returns:
        Status entries
    """
    rows = TelemetryStore().query_status()
    return [
        {
            "view_id": row[0],
            "last_refresh_at": str(row[1]) if row[1] is not None else None,
            "last_success_at": str(row[2]) if row[2] is not None else None,
            "last_status": row[3],
            "last_error_code": row[4],
            "record_count": row[5],
        }
        for row in rows
    ]


@router.get("/config")
def admin_config(admin: None = Depends(require_admin)) -> dict:
    """Current clinic configuration"""
    return load_app_config().model_dump()


@router.post("/config")
def save_config(
    payload: dict = Body(default={}),
    admin: None = Depends(require_admin),
    registry: ViewRegistry = Depends(get_registry),
):
    """Save the clinic configuration

    Submitted clinic keys are merged over the current values, validated,
    written to the YAML file, and the reconciliation scheduler is
    restarted with the new interval.

    Args:
        payload: ``{"clinic": {...}}`` partial settings
        admin: admin authentication dependency
        registry: live view registry

    Returns:
        Saved configuration, or the validation errors with HTTP 422
    """
    settings = get_settings()
    config = load_app_config().model_dump()
    clinic = config.get("clinic", {})
    clinic.update(payload.get("clinic") or {})
    config["clinic"] = clinic

    errors = _validate_clinic(clinic)
    if errors:
        return JSONResponse(
            status_code=422,
            content={"saved": False, "errors": errors, "config": config},
        )

    with open(settings.config_path, "w", encoding="utf-8") as handle:
        yaml.safe_dump(config, handle, allow_unicode=True, sort_keys=False)

    if get_settings().scheduler_enabled:
        start_scheduler(reload_app_config(), registry)
    else:
        reload_app_config()

    return {"saved": True, "errors": [], "config": config}


@router.get("/backup")
def backup(
    admin: None = Depends(require_admin),
    store: RecordStore = Depends(get_store),
) -> dict:
    """Export every collection as one document"""
    return {"exported_at": utc_timestamp(), "collections": store.snapshot()}


@router.post("/restore")
def restore(
    payload: dict = Body(...),
    admin: None = Depends(require_admin),
    store: RecordStore = Depends(get_store),
) -> dict:
    """Replace collections from a backup document

    Args:
        payload: backup document, or its bare ``collections`` mapping
        admin: admin authentication dependency
        store: record store

    Returns:
        Restored collection names
    """
    collections = payload.get("collections", payload)
    if not isinstance(collections, dict):
        raise ValidationError("collections", "backup inválido")
    store.restore(collections)
    log_event(
        "store_restored",
        "WARNING",
        "store",
        "admin",
        f"Backup restaurado: {', '.join(sorted(collections))}",
        actor="admin",
        record_count=sum(len(records) for records in collections.values()),
    )
    return {"restored": sorted(collections)}


@router.post("/reset")
def reset(
    admin: None = Depends(require_admin),
    store: RecordStore = Depends(get_store),
) -> dict:
    """Empty every collection"""
    store.clear()
    log_event("store_cleared", "WARNING", "store", "admin", "Base de dados apagada", actor="admin")
    return {"status": "apagado"}
