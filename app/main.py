from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.routes import router as api_router
from app.core.config import get_settings, load_app_config
from app.core.errors import (
    AccessDeniedError,
    ClinicError,
    NotFoundError,
    StorageFailure,
    TransitionError,
    ValidationError,
)
from app.core.events import ChangeBus
from app.core.logging import configure_logging
from app.core.scheduler import start_scheduler
from app.core.store import DuckDBRecordStore
from app.core.views import ViewRegistry
from app.core.workflow import AppointmentWorkflow

ERROR_STATUS = {
    ValidationError: 422,
    TransitionError: 409,
    AccessDeniedError: 403,
    NotFoundError: 404,
    StorageFailure: 503,
}


async def clinic_error_handler(request: Request, exc: ClinicError) -> JSONResponse:
    """Map workflow errors to JSON responses"""
    status_code = next(
        (code for error_type, code in ERROR_STATUS.items() if isinstance(exc, error_type)),
        400,
    )
    return JSONResponse(
        status_code=status_code,
        content={"error_code": exc.code, "message": exc.message},
    )


def create_app() -> FastAPI:
    """Create the application and wire the store, workflow and live views"""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="UBS Flow", version=settings.version)
    bus = ChangeBus()
    store = DuckDBRecordStore(settings.store_path, bus, settings.store_quota_bytes)
    app.state.store = store
    app.state.workflow = AppointmentWorkflow(store)
    app.state.registry = ViewRegistry(bus)
    app.add_exception_handler(ClinicError, clinic_error_handler)
    app.include_router(api_router)

    if settings.scheduler_enabled:
        config = load_app_config()
        start_scheduler(config, app.state.registry)

    return app


app = create_app()
