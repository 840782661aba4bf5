from __future__ import annotations

from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Actor roles"""

    ADMIN = "administrador"
    RECEPTION = "recepcionista"
    NURSING = "enfermeira"
    PHYSICIAN = "medico"
    LAB = "laboratorio"
    PATIENT = "paciente"


class AppointmentStatus(str, Enum):
    """Appointment lifecycle states"""

    SCHEDULED = "Agendado"
    AWAITING_CARE = "Aguardando Atendimento"
    AWAITING_PHYSICIAN = "Aguardando Médico"
    IN_PROGRESS = "Em Atendimento"
    COMPLETED = "Realizado"
    CANCELLED = "Cancelado"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED})

ACTIONABLE_STATUSES = (
    AppointmentStatus.SCHEDULED,
    AppointmentStatus.AWAITING_CARE,
    AppointmentStatus.AWAITING_PHYSICIAN,
    AppointmentStatus.IN_PROGRESS,
)


class AppointmentType(str, Enum):
    """Encounter types"""

    CONSULTATION = "Consulta"
    FOLLOW_UP = "Retorno"
    PRE_OP = "Avaliação Pré-operatória"
    PROCEDURE = "Procedimento"
    TELECONSULTATION = "Teleconsulta"
    URGENT = "Urgência"
    TRIAGE = "Triagem"


# Types whose physician narrative is hidden from nursing in the history view.
MEDICAL_TYPES = frozenset(
    {"Consulta", "Consulta Médica", "Retorno", "Avaliação Pré-operatória"}
)


class RiskClassification(str, Enum):
    """Triage acuity, ordered from lowest to highest"""

    BLUE = "blue"
    GREEN = "green"
    YELLOW = "yellow"
    ORANGE = "orange"
    RED = "red"

    @property
    def rank(self) -> int:
        return list(RiskClassification).index(self)


class LabTestStatus(str, Enum):
    """Lab order states"""

    PENDING = "Pendente"
    COMPLETED = "Concluído"
    URGENT = "Urgente"


class Actor(BaseModel):
    """Current session identity"""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="User id")
    name: str = Field(..., description="Display name")
    role: Role = Field(..., description="Actor role")
    patient_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("patient_id", "patientId"),
        description="Linked patient id for patient-role actors",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class VitalSigns(BaseModel):
    """Vital signs, each kept as the text the nurse typed"""

    bp: str = Field(default="", description="Blood pressure (mmHg)")
    hr: str = Field(default="", description="Heart rate (bpm)")
    temp: str = Field(default="", description="Temperature (Celsius)")
    rr: str = Field(default="", description="Respiratory rate")
    sat: str = Field(default="", description="Oxygen saturation (%)")
    weight: str = Field(default="", description="Weight (kg)")
    height: str = Field(default="", description="Height (cm)")
    glucose: str = Field(default="", description="Glucose (mg/dL)")


class TriageRecord(BaseModel):
    """Nursing assessment attached when triage is saved"""

    vital_signs: VitalSigns = Field(default_factory=VitalSigns)
    chief_complaint: str = Field(..., min_length=1, description="Chief complaint")
    medical_history: str = Field(default="", description="Medical history")
    allergies: str = Field(default="", description="Allergies")
    current_medications: str = Field(default="", description="Current medications")
    pain_level: str = Field(default="0", description="Pain level 0-10")
    consciousness: str = Field(default="Alerta", description="Consciousness level")
    risk_classification: RiskClassification = Field(
        default=RiskClassification.BLUE, description="Risk classification"
    )
    triage_at: str = Field(..., description="Triage time (UTC ISO8601)")
    triage_by: str = Field(..., description="Performer name")


class ClinicalEncounterRecord(BaseModel):
    """Physician documentation that finalizes an appointment"""

    evolution: str = Field(..., min_length=1, description="Evolution / anamnesis")
    diagnosis: str = Field(..., min_length=1, description="Diagnostic hypothesis / ICD")
    prescription: str = Field(default="", description="Prescription / therapeutic plan")
    attended_by: str = Field(..., description="Performer name")
    attended_at: str = Field(..., description="Completion time (UTC ISO8601)")


class Appointment(BaseModel):
    """Appointment record as persisted in the appointments collection"""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Appointment id")
    patient_id: str = Field(..., description="Patient id")
    doctor_id: str | None = Field(default=None, description="Assigned clinician id")
    date: str = Field(..., description="Local civil date-time YYYY-MM-DDTHH:MM")
    type: str = Field(default=AppointmentType.CONSULTATION.value, description="Encounter type")
    reason: str | None = Field(default=None, description="Reason for the visit")
    status: AppointmentStatus = Field(..., description="Lifecycle status")
    patientName: str | None = Field(default=None, description="Denormalized patient name")
    doctorName: str | None = Field(default=None, description="Denormalized clinician name")
    triage: dict | None = Field(default=None, description="Triage payload")
    triage_by: str | None = Field(default=None, description="Triage performer")
    triage_at: str | None = Field(default=None, description="Triage time")
    started_at: str | None = Field(default=None, description="Attendance start time")
    started_by: str | None = Field(default=None, description="Attendance starter")
    description: str | None = Field(default=None, description="Evolution narrative")
    diagnosis: str | None = Field(default=None, description="Diagnosis")
    prescription: str | None = Field(default=None, description="Prescription")
    attended_by: str | None = Field(default=None, description="Encounter performer")
    attended_at: str | None = Field(default=None, description="Encounter completion time")
    created_at: str | None = Field(default=None, description="Creation time")
    updated_at: str | None = Field(default=None, description="Last update time")

    @property
    def triage_record(self) -> TriageRecord | None:
        if not self.triage:
            return None
        return TriageRecord(
            **{
                "triage_by": self.triage_by or "",
                "triage_at": self.triage_at or "",
                **self.triage,
            }
        )

    @property
    def encounter(self) -> ClinicalEncounterRecord | None:
        if not (self.description and self.diagnosis):
            return None
        return ClinicalEncounterRecord(
            evolution=self.description,
            diagnosis=self.diagnosis,
            prescription=self.prescription or "",
            attended_by=self.attended_by or "",
            attended_at=self.attended_at or "",
        )
