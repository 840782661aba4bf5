from __future__ import annotations

import uuid
from typing import Callable

from app.core.errors import AccessDeniedError, NotFoundError, TransitionError, ValidationError
from app.core.logger import log_event
from app.core.store import RecordStore
from app.core.transitions import available_transitions, find_edge, is_allowed, parse_status
from app.models.clinical import Actor, AppointmentStatus, AppointmentType, Role
from app.transforms.capture import to_encounter_record, to_triage_record
from app.utils.parsing import clean_text, parse_local_datetime, require_text, utc_timestamp

S = AppointmentStatus

APPOINTMENT_TYPES = [item.value for item in AppointmentType]

# States that carry a triage record.
TRIAGED_STATUSES = frozenset({S.AWAITING_PHYSICIAN, S.IN_PROGRESS, S.COMPLETED})

COMMAND_LABELS = {
    "triage": "salvar a triagem",
    "begin": "iniciar o atendimento",
    "finalize": "finalizar o atendimento",
}


class AppointmentWorkflow:
    """Appointment state machine over the appointments collection

    Every command reads the current record, checks the capability table,
    and writes back only the fields it changes. Rejections raise before
    any write and leave the record untouched.
    """

    collection = "appointments"

    def __init__(
        self, store: RecordStore, clock: Callable[[], str] = utc_timestamp
    ) -> None:
        self.store = store
        self._now = clock

    def create(self, actor: Actor, form: dict) -> dict:
        """Schedule a new appointment

        Args:
            actor: current actor (reception or admin)
            form: patient_id, doctor_id, date (YYYY-MM-DD), time (HH:MM),
                type and reason

        Returns:
            Stored appointment

        Raises:
            AccessDeniedError: when the role may not schedule
            ValidationError: when patient, date or time is missing or malformed
        """
        if actor.role not in (Role.RECEPTION, Role.ADMIN):
            raise AccessDeniedError(actor.role.value, "criar agendamentos")
        patient_id = require_text(form.get("patient_id"), "patient_id")
        local_date = parse_local_datetime(form.get("date"), form.get("time"))
        appointment_type = clean_text(form.get("type")) or AppointmentType.CONSULTATION.value
        if appointment_type not in APPOINTMENT_TYPES:
            raise ValidationError("type", f"tipo de atendimento inválido: {appointment_type}")

        patient = self.store.get_one("patients", patient_id)
        doctor_id = clean_text(form.get("doctor_id")) or None
        doctor = None
        if doctor_id:
            doctor = next(
                (
                    user
                    for user in self.store.get("users", {"role": Role.PHYSICIAN.value})
                    if user.get("id") == doctor_id
                ),
                None,
            )

        record = {
            "id": uuid.uuid4().hex,
            "patient_id": patient_id,
            "doctor_id": doctor_id,
            "date": local_date,
            "type": appointment_type,
            "reason": clean_text(form.get("reason")) or None,
            "patientName": (patient or {}).get("name") or "Desconhecido",
            "doctorName": (doctor or {}).get("name") or "Não atribuído",
            "status": S.SCHEDULED.value,
            "created_at": self._now(),
        }
        saved = self.store.save(self.collection, record)[0]
        log_event(
            "appointment_created",
            "INFO",
            saved["id"],
            "schedule",
            f"Agendamento criado para {saved['date']}",
            actor=actor.name,
        )
        return saved

    def get(self, appointment_id: str) -> dict:
        """Read one appointment

        Raises:
            NotFoundError: when the id is absent
        """
        record = self.store.get_one(self.collection, appointment_id)
        if record is None:
            raise NotFoundError(self.collection, appointment_id)
        return record

    def available(self, actor: Actor, appointment_id: str) -> list[dict]:
        """List the status changes the actor may request now

        Returns:
            ``{"status", "command"}`` entries; the command names the
            operation that performs the change
        """
        record = self.get(appointment_id)
        current = parse_status(record.get("status"))
        if current is None:
            return []
        return [
            {"status": edge.target.value, "command": edge.command}
            for edge in available_transitions(actor.role, current)
        ]

    def change_status(self, actor: Actor, appointment_id: str, status: str) -> dict:
        """Plain status change (arrival, cancellation, admin override)

        Raises:
            NotFoundError: when the id is absent
            ValidationError: when the target status is unknown, the target
                is past "Aguardando Atendimento" without a triage record, or
                the target is "Realizado" without evolution and diagnosis
            TransitionError: when the change is not permitted
        """
        record = self.get(appointment_id)
        target = parse_status(status)
        if target is None:
            raise ValidationError("status", f"status desconhecido: {status}")
        current = self._current(actor, record, target, "status")
        self._authorize(actor, record, current, target, "status")
        self._require_triage(record, target)
        if target == S.COMPLETED and not (
            clean_text(record.get("description")) and clean_text(record.get("diagnosis"))
        ):
            raise ValidationError(
                "diagnosis",
                "É necessário preencher a Evolução e o Diagnóstico para finalizar.",
            )
        return self._commit(actor, record, {"status": target.value}, "status")

    def save_triage(self, actor: Actor, appointment_id: str, form: dict) -> dict:
        """Attach the triage record and move the patient to the physician queue

        Raises:
            NotFoundError: when the id is absent
            ValidationError: when the chief complaint is missing
            TransitionError: when the appointment is not awaiting care
                (non-admin) or the role may not triage
        """
        record = self.get(appointment_id)
        at = self._now()
        triage = to_triage_record(form, actor.name, at)
        target = S.AWAITING_PHYSICIAN
        current = self._current(actor, record, target, "triage")
        if current != S.AWAITING_CARE and not actor.is_admin:
            self._reject(
                actor,
                record,
                target,
                "triage",
                f'Paciente deve estar "{S.AWAITING_CARE.value}" para realizar triagem.',
            )
        if current != target:
            self._authorize(actor, record, current, target, "triage")
        changes = {
            "triage": triage.model_dump(mode="json"),
            "triage_by": actor.name,
            "triage_at": at,
            "status": target.value,
        }
        return self._commit(actor, record, changes, "triage")

    def begin_encounter(self, actor: Actor, appointment_id: str) -> dict:
        """Start (or resume) physician attendance

        An appointment already "Em Atendimento" is returned as-is to
        physicians and admins, so an encounter closed without saving can be
        reopened.

        Raises:
            NotFoundError: when the id is absent
            ValidationError: when no triage record is attached
            TransitionError: when the patient is not awaiting the physician
                or the role may not attend
        """
        record = self.get(appointment_id)
        target = S.IN_PROGRESS
        current = self._current(actor, record, target, "begin")
        if current == target and actor.role in (Role.PHYSICIAN, Role.ADMIN):
            log_event(
                "encounter_resumed",
                "INFO",
                record["id"],
                "begin",
                "Atendimento retomado",
                actor=actor.name,
            )
            return record
        if current != S.AWAITING_PHYSICIAN and not actor.is_admin:
            self._reject(
                actor,
                record,
                target,
                "begin",
                "O paciente deve estar aguardando médico (após triagem) "
                "para iniciar o atendimento.",
            )
        self._authorize(actor, record, current, target, "begin")
        self._require_triage(record, target)
        changes = {
            "status": target.value,
            "started_at": self._now(),
            "started_by": actor.name,
        }
        return self._commit(actor, record, changes, "begin")

    def finalize_encounter(self, actor: Actor, appointment_id: str, form: dict) -> dict:
        """Attach the clinical encounter and complete the appointment

        Raises:
            NotFoundError: when the id is absent
            ValidationError: when evolution or diagnosis is empty, or no
                triage record is attached
            TransitionError: when the appointment is not in attendance or the
                role may not finalize
        """
        record = self.get(appointment_id)
        at = self._now()
        encounter = to_encounter_record(form, actor.name, at)
        target = S.COMPLETED
        current = self._current(actor, record, target, "finalize")
        self._authorize(actor, record, current, target, "finalize")
        self._require_triage(record, target)
        changes = {
            "description": encounter.evolution,
            "diagnosis": encounter.diagnosis,
            "prescription": encounter.prescription,
            "attended_by": encounter.attended_by,
            "attended_at": encounter.attended_at,
            "status": target.value,
        }
        return self._commit(actor, record, changes, "finalize")

    def change_type(self, actor: Actor, appointment_id: str, appointment_type: str) -> dict:
        """Reclassify the encounter type of an open appointment

        Raises:
            AccessDeniedError: when the role may not reclassify
            NotFoundError: when the id is absent
            ValidationError: when the type is unknown or the appointment is closed
        """
        if actor.role not in (Role.PHYSICIAN, Role.RECEPTION, Role.ADMIN):
            raise AccessDeniedError(actor.role.value, "alterar o tipo de atendimento")
        record = self.get(appointment_id)
        if appointment_type not in APPOINTMENT_TYPES:
            raise ValidationError("type", f"tipo de atendimento inválido: {appointment_type}")
        current = parse_status(record.get("status"))
        if current is None or current.is_terminal:
            raise ValidationError("type", f'atendimento "{record.get("status")}" encerrado')
        saved = self.store.save(
            self.collection,
            {"id": record["id"], "type": appointment_type, "updated_at": self._now()},
        )[0]
        log_event(
            "appointment_retyped",
            "INFO",
            record["id"],
            "type",
            f"Tipo alterado para {appointment_type}",
            actor=actor.name,
        )
        return saved

    def _require_triage(self, record: dict, target: AppointmentStatus) -> None:
        if target in TRIAGED_STATUSES and not record.get("triage"):
            raise ValidationError(
                "triage",
                f'"{target.value}" exige triagem registrada; '
                f'use o comando de triagem a partir de "{S.AWAITING_CARE.value}".',
            )

    def _current(
        self, actor: Actor, record: dict, target: AppointmentStatus, stage: str
    ) -> AppointmentStatus:
        current = parse_status(record.get("status"))
        if current is None:
            self._reject(actor, record, target, stage)
        return current

    def _authorize(
        self,
        actor: Actor,
        record: dict,
        current: AppointmentStatus,
        target: AppointmentStatus,
        command: str,
    ) -> None:
        if is_allowed(actor.role, current, target, command):
            return
        edge = find_edge(current, target)
        message = None
        if current.is_terminal:
            message = (
                f'Atendimento "{current.value}" é final; '
                f'não é possível alterar para "{target.value}".'
            )
        elif edge is not None and actor.role not in edge.roles:
            message = (
                f'Perfil {actor.role.value} não pode alterar de '
                f'"{current.value}" para "{target.value}".'
            )
        elif edge is not None and edge.command != command:
            message = (
                f'A mudança de "{current.value}" para "{target.value}" '
                f"exige {COMMAND_LABELS[edge.command]}."
            )
        self._reject(actor, record, target, command, message)

    def _reject(
        self,
        actor: Actor,
        record: dict,
        target: AppointmentStatus,
        stage: str,
        message: str | None = None,
    ) -> None:
        error = TransitionError(str(record.get("status")), target.value, message)
        log_event(
            "transition_rejected",
            "WARNING",
            record["id"],
            stage,
            error.message,
            actor=actor.name,
            error_code=error.code,
        )
        raise error

    def _commit(self, actor: Actor, record: dict, changes: dict, stage: str) -> dict:
        saved = self.store.save(
            self.collection,
            {"id": record["id"], **changes, "updated_at": self._now()},
        )[0]
        log_event(
            "appointment_transition",
            "INFO",
            record["id"],
            stage,
            f'{record.get("status")} -> {saved.get("status")}',
            actor=actor.name,
        )
        return saved
