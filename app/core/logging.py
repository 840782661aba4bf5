import logging

# Extras attached by log_event; records from other loggers fall back to these.
AUDIT_EXTRAS = {"event": "system", "actor": "-", "stage": "-"}

LOG_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s "
    "event=%(event)s actor=%(actor)s stage=%(stage)s %(message)s"
)


class AuditFormatter(logging.Formatter):
    """Formatter that always renders the audit extras"""

    def format(self, record: logging.LogRecord) -> str:
        for name, default in AUDIT_EXTRAS.items():
            if not hasattr(record, name):
                setattr(record, name, default)
        return super().format(record)


def configure_logging(level: str) -> None:
    """Configure application logging

    Args:
        level: logging level name
    """
    handler = logging.StreamHandler()
    handler.setFormatter(AuditFormatter(LOG_FORMAT))
    logging.basicConfig(level=level.upper(), handlers=[handler])
    # Reconciliation runs every few seconds; keep its job chatter out of INFO.
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
