from __future__ import annotations

import uuid
from datetime import date

from app.core.errors import AccessDeniedError, NotFoundError, ValidationError
from app.core.logger import log_event
from app.core.store import RecordStore
from app.models.clinical import Actor, LabTestStatus, Role
from app.utils.parsing import DATE_PATTERN, clean_text, require_text, utc_timestamp

COLLECTION = "labTests"

REQUEST_ROLES = (Role.ADMIN, Role.PHYSICIAN, Role.NURSING)
PERFORM_ROLES = (Role.ADMIN, Role.LAB)
OPINION_ROLES = (Role.ADMIN, Role.PHYSICIAN)


def _require_role(actor: Actor, roles: tuple[Role, ...], action: str) -> None:
    if actor.role not in roles:
        raise AccessDeniedError(actor.role.value, action)


def _load(store: RecordStore, test_id: str) -> dict:
    record = store.get_one(COLLECTION, test_id)
    if record is None:
        raise NotFoundError(COLLECTION, test_id)
    return record


def request_test(store: RecordStore, actor: Actor, form: dict) -> dict:
    """Create a lab order for a patient

    Args:
        store: record store
        actor: requesting actor (admin, physician or nursing)
        form: patient_id, testName, optional date, notes and urgent flag

    Returns:
        Stored order

    Raises:
        AccessDeniedError: when the role may not request exams
        ValidationError: when patient or test name is missing
    """
    _require_role(actor, REQUEST_ROLES, "solicitar exames")
    patient_id = require_text(form.get("patient_id"), "patient_id")
    test_name = require_text(form.get("testName"), "testName")
    order_date = clean_text(form.get("date")) or date.today().isoformat()
    if not DATE_PATTERN.match(order_date):
        raise ValidationError("date", f"A data deve estar no formato YYYY-MM-DD: {order_date}")
    patient = store.get_one("patients", patient_id) or {}
    now = utc_timestamp()
    record = {
        "id": uuid.uuid4().hex,
        "patient_id": patient_id,
        "patientName": patient.get("name") or "Desconhecido",
        "testName": test_name,
        "date": order_date,
        "notes": clean_text(form.get("notes")) or None,
        "status": (
            LabTestStatus.URGENT.value if form.get("urgent") else LabTestStatus.PENDING.value
        ),
        "requested_by": actor.name,
        "created_at": now,
        "updated_at": now,
    }
    saved = store.save(COLLECTION, record)[0]
    log_event(
        "lab_requested",
        "INFO",
        saved["id"],
        "lab",
        f"Exame {test_name} solicitado",
        actor=actor.name,
    )
    return saved


def attach_result(store: RecordStore, actor: Actor, test_id: str, file: str) -> dict:
    """Attach the result file and mark the order completed

    Raises:
        AccessDeniedError: when the role may not perform exams
        NotFoundError: when the order is absent
        ValidationError: when no file is given
    """
    _require_role(actor, PERFORM_ROLES, "anexar resultados")
    record = _load(store, test_id)
    attachment = require_text(file, "file")
    saved = store.save(
        COLLECTION,
        {
            "id": record["id"],
            "file": attachment,
            "status": LabTestStatus.COMPLETED.value,
            "performed_by": actor.name,
            "updated_at": utc_timestamp(),
        },
    )[0]
    log_event(
        "lab_result_attached",
        "INFO",
        record["id"],
        "lab",
        "Resultado anexado",
        actor=actor.name,
    )
    return saved


def update_status(store: RecordStore, actor: Actor, test_id: str, status: str) -> dict:
    """Change the order status

    Raises:
        AccessDeniedError: when the role may not perform exams
        NotFoundError: when the order is absent
        ValidationError: when the status is unknown, or completion is
            requested before a result is attached
    """
    _require_role(actor, PERFORM_ROLES, "alterar o status de exames")
    record = _load(store, test_id)
    try:
        target = LabTestStatus(status)
    except ValueError as exc:
        raise ValidationError("status", f"status de exame desconhecido: {status}") from exc
    if target == LabTestStatus.COMPLETED and not record.get("file"):
        raise ValidationError("file", "Anexe o arquivo de resultado antes de concluir.")
    saved = store.save(
        COLLECTION,
        {
            "id": record["id"],
            "status": target.value,
            "performed_by": actor.name,
            "updated_at": utc_timestamp(),
        },
    )[0]
    log_event(
        "lab_status_changed",
        "INFO",
        record["id"],
        "lab",
        f'{record.get("status")} -> {target.value}',
        actor=actor.name,
    )
    return saved


def add_opinion(store: RecordStore, actor: Actor, test_id: str, opinion: str) -> dict:
    """Record the physician's opinion on a completed exam

    Raises:
        AccessDeniedError: when the role may not write opinions
        NotFoundError: when the order is absent
        ValidationError: when the exam is not completed or the text is empty
    """
    _require_role(actor, OPINION_ROLES, "registrar laudos")
    record = _load(store, test_id)
    if record.get("status") != LabTestStatus.COMPLETED.value:
        raise ValidationError("status", "O laudo só pode ser registrado em exames concluídos.")
    text = require_text(opinion, "opinion")
    saved = store.save(
        COLLECTION,
        {
            "id": record["id"],
            "opinion": text,
            "opinion_by": actor.name,
            "opinion_at": utc_timestamp(),
        },
    )[0]
    log_event("lab_opinion_saved", "INFO", record["id"], "lab", "Laudo salvo", actor=actor.name)
    return saved


def delete_test(store: RecordStore, actor: Actor, test_id: str) -> None:
    """Remove a lab order (admin only)

    Raises:
        AccessDeniedError: when the actor is not an admin
        NotFoundError: when the order is absent
    """
    _require_role(actor, (Role.ADMIN,), "excluir exames")
    record = _load(store, test_id)
    store.delete(COLLECTION, record["id"])
    log_event("lab_deleted", "INFO", record["id"], "lab", "Pedido de exame removido", actor=actor.name)
