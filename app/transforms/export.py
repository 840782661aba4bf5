from __future__ import annotations

import json
import re
from datetime import datetime
from pathlib import Path

from app.utils.parsing import parse_event_datetime, utc_timestamp


def _safe_name(value: object) -> str:
    """File-name friendly form of a patient name"""
    text = re.sub(r"\s+", "_", str(value or "").strip())
    text = re.sub(r"[^\w.-]", "", text)
    return text or "prontuario"


def to_export_document(patient: dict, history: list[dict]) -> dict:
    """Assemble the patient record handed to the reporting side

    Args:
        patient: patient record
        history: history entries carrying ``event_date``

    Returns:
        Export document with history sorted most recent first
    """
    ordered = sorted(
        history,
        key=lambda entry: parse_event_datetime(entry.get("event_date")) or datetime.min,
        reverse=True,
    )
    return {
        "exported_at": utc_timestamp(),
        "patient": patient,
        "history": ordered,
    }


def export_filename(patient: dict, stamp: datetime | None = None) -> str:
    """Build the prontuario_<name>_<timestamp>.json file name"""
    moment = stamp or datetime.now()
    return f"prontuario_{_safe_name(patient.get('name'))}_{moment.strftime('%Y-%m-%d-%H-%M-%S')}.json"


def write_export(document: dict, directory: str, filename: str) -> Path:
    """Write an export document as JSON

    Args:
        document: export document
        directory: output directory, created when missing
        filename: file name

    Returns:
        Path of the written file
    """
    target = Path(directory)
    target.mkdir(parents=True, exist_ok=True)
    path = target / filename
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(document, handle, ensure_ascii=False, indent=2)
    return path
