from fastapi import APIRouter, Request

from app.core.config import load_app_config

router = APIRouter()


@router.get("/health")
def health_check(request: Request) -> dict:
    """Return the service health and live view count"""
    clinic = load_app_config().clinic
    return {
        "status": "ok",
        "clinic_id": clinic.clinic_id,
        "open_views": len(request.app.state.registry.views()),
    }
