from fastapi import APIRouter

from app.api.admin import router as admin_router
from app.api.appointments import router as appointments_router
from app.api.health import router as health_router
from app.api.lab import router as lab_router
from app.api.patients import router as patients_router
from app.api.roster import router as roster_router
from app.api.stock import router as stock_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(appointments_router, prefix="/v1", tags=["appointments"])
router.include_router(roster_router, prefix="/v1", tags=["roster"])
router.include_router(lab_router, prefix="/v1", tags=["lab"])
router.include_router(patients_router, prefix="/v1", tags=["patients"])
router.include_router(stock_router, prefix="/v1", tags=["vaccine-stock"])
router.include_router(admin_router, prefix="/admin", tags=["admin"])
