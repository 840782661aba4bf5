from __future__ import annotations

import logging

from app.core.telemetry import TelemetryStore
from app.utils.parsing import utc_timestamp


def log_event(
    event: str,
    level: str,
    subject_id: str,
    stage: str,
    message: str,
    actor: str | None = None,
    error_code: str | None = None,
    record_count: int | None = None,
) -> None:
    """Record an event through standard logging and DuckDB

    Args:
        event: event name
        level: logging level name
        subject_id: id of the record or view the event is about
        stage: workflow stage
        message: log message
        actor: name of the acting user (optional)
        error_code: error code (optional)
        record_count: number of records (optional)
    """
    logger = logging.getLogger("ubs-flow")
    extra = {
        "event": event,
        "actor": actor or "-",
        "stage": stage,
    }
    logger.log(getattr(logging, level.upper(), logging.INFO), message, extra=extra)

    TelemetryStore().insert_log(
        {
            "timestamp": utc_timestamp(),
            "level": level.upper(),
            "event": event,
            "subject_id": subject_id,
            "stage": stage,
            "actor": actor,
            "error_code": error_code,
            "message": message,
            "record_count": record_count,
        }
    )
