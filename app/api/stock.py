from fastapi import APIRouter, Depends

from app.api.deps import get_store
from app.core.auth import require_actor
from app.core.config import load_app_config
from app.core.store import RecordStore
from app.core.vaccination import delete_stock_item, save_stock_item, stock_overview
from app.models.clinical import Actor
from app.models.requests import VaccineStockItem

router = APIRouter()


@router.get("/vaccine-stock")
def list_stock(
    actor: Actor = Depends(require_actor),
    store: RecordStore = Depends(get_store),
) -> list[dict]:
    """Vaccine stock with low-stock and expired flags"""
    threshold = load_app_config().clinic.low_stock_threshold
    return stock_overview(store.get("vaccine_stock"), threshold)


@router.post("/vaccine-stock")
def upsert_stock(
    payload: VaccineStockItem,
    actor: Actor = Depends(require_actor),
    store: RecordStore = Depends(get_store),
) -> dict:
    return save_stock_item(store, actor, payload.model_dump())


@router.delete("/vaccine-stock/{stock_id}")
def remove_stock(
    stock_id: str,
    actor: Actor = Depends(require_actor),
    store: RecordStore = Depends(get_store),
) -> dict:
    delete_stock_item(store, actor, stock_id)
    return {"status": "removido", "id": stock_id}
