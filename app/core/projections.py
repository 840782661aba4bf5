from __future__ import annotations

from datetime import date, datetime

from app.core.errors import AccessDeniedError
from app.core.store import RecordStore
from app.models.clinical import (
    ACTIONABLE_STATUSES,
    MEDICAL_TYPES,
    TERMINAL_STATUSES,
    Actor,
    Role,
)
from app.utils.parsing import clean_text, normalize_date, parse_event_datetime, same_day

ACTIONABLE = {status.value for status in ACTIONABLE_STATUSES}
TERMINAL = {status.value for status in TERMINAL_STATUSES}
PHYSICIAN_NARRATIVE = ("description", "diagnosis", "prescription")


def _sort_key(record: dict, field: str = "date") -> datetime:
    return parse_event_datetime(record.get(field)) or datetime.min


def _matches_text(value: object, term: str) -> bool:
    return term.lower() in clean_text(value).lower()


def visible_appointments(actor: Actor, appointments: list[dict]) -> list[dict]:
    """Apply the per-role ownership scope

    Physicians see their own and unassigned appointments, patients only
    their own, reception and nursing everything, lab nothing.
    """
    if actor.role in (Role.ADMIN, Role.RECEPTION, Role.NURSING):
        return list(appointments)
    if actor.role == Role.PHYSICIAN:
        return [
            apt
            for apt in appointments
            if not apt.get("doctor_id") or apt.get("doctor_id") == actor.id
        ]
    if actor.role == Role.PATIENT and actor.patient_id:
        return [apt for apt in appointments if apt.get("patient_id") == actor.patient_id]
    return []


def reception_queue(
    actor: Actor,
    appointments: list[dict],
    search: str = "",
    status: str | None = None,
) -> list[dict]:
    """Open appointments filtered by patient name and status

    Args:
        actor: current actor
        appointments: appointments collection
        search: case-insensitive patient-name fragment
        status: exact status, or None/"all" for every open status

    Returns:
        Appointments sorted by date, most recent first
    """
    items = [
        apt
        for apt in visible_appointments(actor, appointments)
        if apt.get("status") not in TERMINAL
        and _matches_text(apt.get("patientName"), search)
        and (not status or status == "all" or apt.get("status") == status)
    ]
    return sorted(items, key=_sort_key, reverse=True)


def physician_roster(
    actor: Actor,
    appointments: list[dict],
    today: date | str | None = None,
    search: str = "",
) -> list[dict]:
    """Today's actionable appointments for one physician

    Only the calendar-date part of each appointment is compared with the
    viewer's local date.

    Returns:
        Appointments sorted by time of day, earliest first
    """
    viewer_day = normalize_date(today or date.today())
    items = [
        apt
        for apt in visible_appointments(actor, appointments)
        if same_day(apt.get("date"), viewer_day)
        and apt.get("status") in ACTIONABLE
        and _matches_text(apt.get("patientName"), search)
    ]
    return sorted(items, key=_sort_key)


def lab_queue(
    actor: Actor,
    lab_tests: list[dict],
    search: str = "",
    status: str | None = None,
) -> list[dict]:
    """Lab orders filtered by patient or test name and status

    Patient-role viewers only see their own orders.

    Returns:
        Orders sorted by date, most recent first
    """
    items = lab_tests
    if actor.role == Role.PATIENT:
        items = [test for test in items if test.get("patient_id") == actor.patient_id]
    items = [
        test
        for test in items
        if (
            _matches_text(test.get("patientName"), search)
            or _matches_text(test.get("testName"), search)
        )
        and (not status or status == "Todos" or test.get("status") == status)
    ]
    return sorted(items, key=_sort_key, reverse=True)


def patient_history(store: RecordStore, actor: Actor, patient_id: str) -> list[dict]:
    """Combined appointment, vaccination and lab history of one patient

    Args:
        store: record store
        actor: current actor; decides which entries and fields are shown
        patient_id: patient id

    Returns:
        History entries tagged with ``record_type`` and ``event_date``,
        sorted by event date-time, most recent first

    Raises:
        AccessDeniedError: for reception, or a patient viewing someone else
    """
    role = actor.role
    if role == Role.RECEPTION or (role == Role.PATIENT and actor.patient_id != patient_id):
        raise AccessDeniedError(role.value, "visualizar o histórico de saúde do paciente")

    entries: list[dict] = []
    if role != Role.LAB:
        for apt in store.get("appointments", {"patient_id": patient_id}):
            if role == Role.NURSING and apt.get("type") in MEDICAL_TYPES:
                for field in PHYSICIAN_NARRATIVE:
                    apt.pop(field, None)
            entries.append({**apt, "record_type": "Atendimento", "event_date": apt.get("date")})

        stock = {item.get("id"): item for item in store.get("vaccine_stock")}
        for dose in store.get("vaccines", {"patient_id": patient_id}):
            stock_item = stock.get(dose.get("vaccine_stock_id")) or {}
            entries.append(
                {
                    **dose,
                    "vaccine_name": stock_item.get("name") or "Vacina desconhecida",
                    "record_type": "Vacina",
                    "event_date": dose.get("vaccination_date"),
                }
            )

    for test in store.get("labTests", {"patient_id": patient_id}):
        entries.append({**test, "record_type": "Exame Laboratorial", "event_date": test.get("date")})

    return sorted(entries, key=lambda entry: _sort_key(entry, "event_date"), reverse=True)
