from app.core.errors import ValidationError
from app.models.clinical import (
    ClinicalEncounterRecord,
    RiskClassification,
    TriageRecord,
    VitalSigns,
)
from app.utils.parsing import clean_text, require_text

VITAL_FIELDS = ["bp", "hr", "temp", "rr", "sat", "weight", "height", "glucose"]


def _map_risk(value: object) -> RiskClassification:
    """Map the selected risk level to the enum

    Args:
        value: raw risk value

    Returns:
        Risk classification, blue when nothing was selected

    Raises:
        ValidationError: when the value is not one of the five levels
    """
    text = clean_text(value).lower()
    if text == "":
        return RiskClassification.BLUE
    try:
        return RiskClassification(text)
    except ValueError as exc:
        raise ValidationError(
            "risk_classification", f"classificação de risco inválida: {value}"
        ) from exc


def to_triage_record(raw: dict, performer: str, at: str) -> TriageRecord:
    """Convert the nursing form into a triage record

    Accepts both the flat form fields (``history``, ``medications``, vitals
    at top level) and the stored shape (``medical_history``,
    ``current_medications``, nested ``vital_signs``).

    Args:
        raw: submitted triage form
        performer: name of the nurse saving the triage
        at: save time (UTC ISO8601)

    Returns:
        Triage record

    Raises:
        ValidationError: when the chief complaint is missing
    """
    nested = raw.get("vital_signs") or {}
    vitals = VitalSigns(
        **{
            name: clean_text(raw.get(name, nested.get(name)))
            for name in VITAL_FIELDS
        }
    )
    return TriageRecord(
        vital_signs=vitals,
        chief_complaint=require_text(raw.get("chief_complaint"), "chief_complaint"),
        medical_history=clean_text(raw.get("history", raw.get("medical_history"))),
        allergies=clean_text(raw.get("allergies")),
        current_medications=clean_text(
            raw.get("medications", raw.get("current_medications"))
        ),
        pain_level=clean_text(raw.get("pain_level")) or "0",
        consciousness=clean_text(raw.get("consciousness")) or "Alerta",
        risk_classification=_map_risk(raw.get("risk_classification")),
        triage_at=at,
        triage_by=performer,
    )


def to_encounter_record(raw: dict, performer: str, at: str) -> ClinicalEncounterRecord:
    """Convert the physician form into an encounter record

    Args:
        raw: submitted encounter form
        performer: name of the physician finalizing
        at: completion time (UTC ISO8601)

    Returns:
        Clinical encounter record

    Raises:
        ValidationError: when evolution or diagnosis is empty
    """
    evolution = clean_text(raw.get("evolution"))
    diagnosis = clean_text(raw.get("diagnosis"))
    if not evolution or not diagnosis:
        raise ValidationError(
            "evolution" if not evolution else "diagnosis",
            "É necessário preencher a Evolução e o Diagnóstico para finalizar.",
        )
    return ClinicalEncounterRecord(
        evolution=evolution,
        diagnosis=diagnosis,
        prescription=clean_text(raw.get("prescription")),
        attended_by=performer,
        attended_at=at,
    )
