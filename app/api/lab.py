from fastapi import APIRouter, Depends

from app.api.deps import get_store
from app.core import lab
from app.core.auth import require_actor
from app.core.errors import AccessDeniedError
from app.core.projections import lab_queue
from app.core.store import RecordStore
from app.models.clinical import Actor, Role
from app.models.requests import LabOpinion, LabResult, LabStatusChange, LabTestRequest

router = APIRouter()


@router.get("/lab-tests")
def list_lab_tests(
    search: str = "",
    status: str | None = None,
    actor: Actor = Depends(require_actor),
    store: RecordStore = Depends(get_store),
) -> list[dict]:
    """Lab queue

    Args:
        search: patient or test name fragment
        status: status filter, or "Todos"
        actor: current actor
        store: record store

    Returns:
        Lab orders, most recent first
    """
    if actor.role == Role.RECEPTION:
        raise AccessDeniedError(actor.role.value, "visualizar exames")
    return lab_queue(actor, store.get(lab.COLLECTION), search, status)


@router.post("/lab-tests", status_code=201)
def request_lab_test(
    payload: LabTestRequest,
    actor: Actor = Depends(require_actor),
    store: RecordStore = Depends(get_store),
) -> dict:
    return lab.request_test(store, actor, payload.model_dump())


@router.post("/lab-tests/{test_id}/result")
def attach_lab_result(
    test_id: str,
    payload: LabResult,
    actor: Actor = Depends(require_actor),
    store: RecordStore = Depends(get_store),
) -> dict:
    """Attach the result and mark the order completed"""
    return lab.attach_result(store, actor, test_id, payload.file)


@router.post("/lab-tests/{test_id}/status")
def update_lab_status(
    test_id: str,
    payload: LabStatusChange,
    actor: Actor = Depends(require_actor),
    store: RecordStore = Depends(get_store),
) -> dict:
    return lab.update_status(store, actor, test_id, payload.status)


@router.post("/lab-tests/{test_id}/opinion")
def save_lab_opinion(
    test_id: str,
    payload: LabOpinion,
    actor: Actor = Depends(require_actor),
    store: RecordStore = Depends(get_store),
) -> dict:
    """Save the physician's opinion on a completed exam"""
    return lab.add_opinion(store, actor, test_id, payload.opinion)


@router.delete("/lab-tests/{test_id}")
def delete_lab_test(
    test_id: str,
    actor: Actor = Depends(require_actor),
    store: RecordStore = Depends(get_store),
) -> dict:
    lab.delete_test(store, actor, test_id)
    return {"status": "removido", "id": test_id}
