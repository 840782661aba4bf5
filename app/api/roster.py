from fastapi import APIRouter, Depends

from app.api.deps import get_registry, get_store
from app.core.auth import require_actor
from app.core.errors import AccessDeniedError
from app.core.projections import physician_roster
from app.core.store import RecordStore
from app.core.views import ViewRegistry
from app.models.clinical import Actor, Role

router = APIRouter()


@router.get("/roster")
def daily_roster(
    search: str = "",
    actor: Actor = Depends(require_actor),
    store: RecordStore = Depends(get_store),
    registry: ViewRegistry = Depends(get_registry),
) -> dict:
    """Physician's actionable appointments for today

    The roster is served from a live view kept current by change events
    and the reconciliation job.

    Args:
        search: patient-name fragment
        actor: current actor (physician or admin)
        store: record store
        registry: live view registry

    Returns:
        Refresh time and the roster entries, earliest first
    """
    if actor.role not in (Role.PHYSICIAN, Role.ADMIN):
        raise AccessDeniedError(actor.role.value, "visualizar a agenda médica")
    view = registry.open(
        f"roster:{actor.id}",
        ("appointments",),
        lambda: physician_roster(actor, store.get("appointments")),
    )
    term = search.strip().lower()
    items = [
        apt
        for apt in view.snapshot()
        if term in str(apt.get("patientName") or "").lower()
    ]
    return {"refreshed_at": view.refreshed_at, "items": items}
