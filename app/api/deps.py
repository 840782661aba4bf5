from fastapi import Request

from app.core.store import RecordStore
from app.core.views import ViewRegistry
from app.core.workflow import AppointmentWorkflow


def get_store(request: Request) -> RecordStore:
    return request.app.state.store


def get_workflow(request: Request) -> AppointmentWorkflow:
    return request.app.state.workflow


def get_registry(request: Request) -> ViewRegistry:
    return request.app.state.registry
