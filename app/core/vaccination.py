from __future__ import annotations

import uuid
from datetime import date

from app.core.errors import AccessDeniedError, NotFoundError, StorageFailure, ValidationError
from app.core.logger import log_event
from app.core.store import RecordStore
from app.models.clinical import Actor, Role
from app.utils.parsing import DATE_PATTERN, clean_text, coerce_int, normalize_date, require_text, utc_timestamp

VACCINE_ROLES = (Role.ADMIN, Role.NURSING, Role.PHYSICIAN)


def register_vaccination(
    store: RecordStore, actor: Actor, patient_id: str, form: dict
) -> dict:
    """Record an administered dose and consume one stock unit

    The stock decrement is a partial ``{id, quantity}`` write, so other
    fields of the stock item are left as stored. It is committed before the
    dose; a rejected dose write puts the unit back.

    Args:
        store: record store
        actor: admin, nursing or physician
        patient_id: patient receiving the dose
        form: vaccine_stock_id, dose, optional vaccination_date

    Returns:
        Stored vaccination record

    Raises:
        AccessDeniedError: when the role may not vaccinate
        NotFoundError: when the stock item is absent
        ValidationError: when the dose is missing or stock is exhausted
        StorageFailure: when either write is rejected
    """
    if actor.role not in VACCINE_ROLES:
        raise AccessDeniedError(actor.role.value, "registrar vacinas")
    stock_id = require_text(form.get("vaccine_stock_id"), "vaccine_stock_id")
    dose = require_text(form.get("dose"), "dose")
    vaccination_date = clean_text(form.get("vaccination_date")) or date.today().isoformat()
    if not DATE_PATTERN.match(vaccination_date):
        raise ValidationError(
            "vaccination_date", f"A data deve estar no formato YYYY-MM-DD: {vaccination_date}"
        )
    stock_item = store.get_one("vaccine_stock", stock_id)
    if stock_item is None:
        raise NotFoundError("vaccine_stock", stock_id)
    quantity = coerce_int(stock_item.get("quantity"))
    if quantity <= 0:
        raise ValidationError("vaccine_stock_id", "Estoque insuficiente para esta vacina.")

    record = {
        "id": uuid.uuid4().hex,
        "patient_id": patient_id,
        "vaccine_stock_id": stock_id,
        "dose": dose,
        "vaccination_date": vaccination_date,
        "applied_by": actor.name,
        "created_at": utc_timestamp(),
    }
    store.save("vaccine_stock", {"id": stock_id, "quantity": quantity - 1})
    try:
        saved = store.save("vaccines", record)[0]
    except StorageFailure:
        store.save("vaccine_stock", {"id": stock_id, "quantity": quantity})
        raise
    log_event(
        "vaccination_registered",
        "INFO",
        saved["id"],
        "vaccine",
        f"Dose {dose} de {stock_item.get('name')} aplicada",
        actor=actor.name,
        record_count=quantity - 1,
    )
    return saved


def save_stock_item(store: RecordStore, actor: Actor, item: dict) -> dict:
    """Create or update a vaccine stock item (admin only)

    Raises:
        AccessDeniedError: when the actor is not an admin
        ValidationError: when the name is missing or the expiry date is malformed
    """
    if not actor.is_admin:
        raise AccessDeniedError(actor.role.value, "gerenciar o estoque de vacinas")
    name = require_text(item.get("name"), "name")
    expiry = clean_text(item.get("expiry_date")) or None
    if expiry is not None and not DATE_PATTERN.match(expiry):
        raise ValidationError("expiry_date", f"A data deve estar no formato YYYY-MM-DD: {expiry}")
    record = {
        "id": clean_text(item.get("id")) or uuid.uuid4().hex,
        "name": name,
        "batch": clean_text(item.get("batch")),
        "quantity": max(coerce_int(item.get("quantity")), 0),
        "expiry_date": expiry,
        "updated_at": utc_timestamp(),
    }
    saved = store.save("vaccine_stock", record)[0]
    log_event("stock_saved", "INFO", saved["id"], "vaccine", f"Estoque de {name} salvo", actor=actor.name)
    return saved


def delete_stock_item(store: RecordStore, actor: Actor, stock_id: str) -> None:
    """Remove a vaccine stock item (admin only)"""
    if not actor.is_admin:
        raise AccessDeniedError(actor.role.value, "gerenciar o estoque de vacinas")
    if store.get_one("vaccine_stock", stock_id) is None:
        raise NotFoundError("vaccine_stock", stock_id)
    store.delete("vaccine_stock", stock_id)
    log_event("stock_deleted", "INFO", stock_id, "vaccine", "Item de estoque removido", actor=actor.name)


def stock_overview(items: list[dict], threshold: int, today: date | None = None) -> list[dict]:
    """Flag low and expired stock items

    Args:
        items: vaccine_stock collection
        threshold: quantity below which an item is low
        today: reference date, local today by default

    Returns:
        Items with ``low_stock`` and ``expired`` flags, sorted by name
    """
    reference = normalize_date(today or date.today())
    flagged = []
    for item in items:
        expiry = normalize_date(item.get("expiry_date"))
        flagged.append(
            {
                **item,
                "low_stock": coerce_int(item.get("quantity")) < threshold,
                "expired": expiry is not None and expiry < reference,
            }
        )
    return sorted(flagged, key=lambda entry: clean_text(entry.get("name")).lower())
