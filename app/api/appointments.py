from fastapi import APIRouter, Depends

from app.api.deps import get_store, get_workflow
from app.core.auth import require_actor
from app.core.errors import NotFoundError
from app.core.lab import request_test
from app.core.projections import reception_queue, visible_appointments
from app.core.store import RecordStore
from app.core.workflow import AppointmentWorkflow
from app.models.clinical import Actor
from app.models.requests import (
    AppointmentCreate,
    EncounterSubmit,
    LabTestRequest,
    StatusChange,
    TriageSubmit,
    TypeChange,
)

router = APIRouter()


def _visible(actor: Actor, workflow: AppointmentWorkflow, appointment_id: str) -> dict:
    record = workflow.get(appointment_id)
    if not visible_appointments(actor, [record]):
        raise NotFoundError(workflow.collection, appointment_id)
    return record


@router.post("/appointments", status_code=201)
def create_appointment(
    payload: AppointmentCreate,
    actor: Actor = Depends(require_actor),
    workflow: AppointmentWorkflow = Depends(get_workflow),
) -> dict:
    """Schedule a new appointment

    Args:
        payload: appointment form
        actor: current actor
        workflow: appointment workflow

    Returns:
        Stored appointment
    """
    return workflow.create(actor, payload.model_dump())


@router.get("/appointments")
def list_queue(
    search: str = "",
    status: str | None = None,
    actor: Actor = Depends(require_actor),
    store: RecordStore = Depends(get_store),
) -> list[dict]:
    """Reception queue of open appointments

    Args:
        search: patient-name fragment
        status: status filter, or "all"
        actor: current actor
        store: record store

    Returns:
        Open appointments, most recent first
    """
    return reception_queue(actor, store.get("appointments"), search, status)


@router.get("/appointments/{appointment_id}")
def read_appointment(
    appointment_id: str,
    actor: Actor = Depends(require_actor),
    workflow: AppointmentWorkflow = Depends(get_workflow),
) -> dict:
    return _visible(actor, workflow, appointment_id)


@router.get("/appointments/{appointment_id}/transitions")
def list_transitions(
    appointment_id: str,
    actor: Actor = Depends(require_actor),
    workflow: AppointmentWorkflow = Depends(get_workflow),
) -> list[dict]:
    """Status changes the actor may request on this appointment"""
    _visible(actor, workflow, appointment_id)
    return workflow.available(actor, appointment_id)


@router.post("/appointments/{appointment_id}/status")
def change_status(
    appointment_id: str,
    payload: StatusChange,
    actor: Actor = Depends(require_actor),
    workflow: AppointmentWorkflow = Depends(get_workflow),
) -> dict:
    _visible(actor, workflow, appointment_id)
    return workflow.change_status(actor, appointment_id, payload.status)


@router.post("/appointments/{appointment_id}/triage")
def save_triage(
    appointment_id: str,
    payload: TriageSubmit,
    actor: Actor = Depends(require_actor),
    workflow: AppointmentWorkflow = Depends(get_workflow),
) -> dict:
    """Save triage and send the patient to the physician queue"""
    _visible(actor, workflow, appointment_id)
    return workflow.save_triage(actor, appointment_id, payload.model_dump())


@router.post("/appointments/{appointment_id}/begin")
def begin_encounter(
    appointment_id: str,
    actor: Actor = Depends(require_actor),
    workflow: AppointmentWorkflow = Depends(get_workflow),
) -> dict:
    _visible(actor, workflow, appointment_id)
    return workflow.begin_encounter(actor, appointment_id)


@router.post("/appointments/{appointment_id}/finalize")
def finalize_encounter(
    appointment_id: str,
    payload: EncounterSubmit,
    actor: Actor = Depends(require_actor),
    workflow: AppointmentWorkflow = Depends(get_workflow),
) -> dict:
    """Record the clinical encounter and complete the appointment"""
    _visible(actor, workflow, appointment_id)
    return workflow.finalize_encounter(actor, appointment_id, payload.model_dump())


@router.post("/appointments/{appointment_id}/type")
def change_type(
    appointment_id: str,
    payload: TypeChange,
    actor: Actor = Depends(require_actor),
    workflow: AppointmentWorkflow = Depends(get_workflow),
) -> dict:
    _visible(actor, workflow, appointment_id)
    return workflow.change_type(actor, appointment_id, payload.type)


@router.post("/appointments/{appointment_id}/lab-tests", status_code=201)
def request_exam(
    appointment_id: str,
    payload: LabTestRequest,
    actor: Actor = Depends(require_actor),
    workflow: AppointmentWorkflow = Depends(get_workflow),
) -> dict:
    """Request a new exam for the appointment's patient

    Args:
        appointment_id: appointment id
        payload: exam order; its patient_id is replaced by the appointment's
        actor: current actor
        workflow: appointment workflow

    Returns:
        Stored lab order
    """
    record = _visible(actor, workflow, appointment_id)
    form = payload.model_dump()
    form["patient_id"] = record.get("patient_id")
    return request_test(workflow.store, actor, form)
