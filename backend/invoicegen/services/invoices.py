from __future__ import annotations

import logging
import math
from datetime import date, datetime, timezone
from typing import Any, Iterable, List, Mapping, Tuple

from sqlalchemy.orm import Session, selectinload

from invoicegen.core.observability import invoice_totals_recomputed_total, invoice_writes_total
from invoicegen.models.invoice import Invoice, InvoiceItem
from invoicegen.models.user import User, empty_address
from invoicegen.schemas.user import Address
from invoicegen.services.totals import InvoiceTotals, compute_totals


logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"

# Fields callers may send but the store always derives itself.
DERIVED_FIELDS = frozenset({"subtotal", "total"})
TOTALS_TRIGGER_FIELDS = frozenset({"items", "tax_rate"})
_WRITABLE_FIELDS = frozenset(
    {
        "invoice_number",
        "invoice_date",
        "due_date",
        "logo_url",
        "sender",
        "recipient",
        "currency",
        "tax_rate",
    }
)


class InvoiceNotFound(LookupError):
    def __init__(self, invoice_id: str) -> None:
        super().__init__(f"Invoice {invoice_id} not found")
        self.invoice_id = invoice_id


def default_invoice_date(invoice_date: date | None) -> date:
    return invoice_date or datetime.now(timezone.utc).date()


def _address_json(value: Any) -> dict:
    if value is None:
        return empty_address()
    if isinstance(value, Address):
        return value.model_dump(by_alias=True)
    return Address.model_validate(value).model_dump(by_alias=True)


def _coerce_field(field: str, value: Any) -> Any:
    if field in {"sender", "recipient"}:
        return _address_json(value)
    if field == "tax_rate":
        return float(value)
    return value


def replace_invoice_items(db: Session, invoice: Invoice, items_payload: Iterable[Mapping[str, Any]]) -> List[InvoiceItem]:
    invoice.items.clear()
    db.flush()

    created: List[InvoiceItem] = []
    for idx, item in enumerate(items_payload):
        unit_price = item["unit_price"] if "unit_price" in item else item.get("unitPrice", 0.0)
        invoice_item = InvoiceItem(
            description=str(item.get("description") or ""),
            quantity=float(item.get("quantity", 1.0)),
            unit_price=float(unit_price),
            order_index=idx,
        )
        invoice.items.append(invoice_item)
        created.append(invoice_item)
    db.flush()
    return created


def recompute_invoice_totals(invoice: Invoice) -> InvoiceTotals:
    totals = compute_totals(invoice.items, invoice.tax_rate)
    invoice.subtotal = totals.subtotal
    invoice.total = totals.total
    invoice_totals_recomputed_total.inc()
    return totals


def create_invoice(db: Session, *, owner: User, payload: Mapping[str, Any]) -> Invoice:
    """Persist a new invoice for ``owner``.

    ``payload`` uses snake_case keys. Missing sender/logo are pre-filled from
    the owner's settings; any ``subtotal``/``total`` in it are ignored.
    """
    owner_settings = owner.settings or {}
    sender = payload.get("sender")
    if sender is None:
        sender = owner_settings.get("sender")
    logo_url = payload.get("logo_url")
    if logo_url is None:
        logo_url = owner_settings.get("logoUrl") or None

    invoice = Invoice(
        owner_id=owner.id,
        invoice_number=payload.get("invoice_number"),
        invoice_date=default_invoice_date(payload.get("invoice_date")),
        due_date=payload.get("due_date"),
        logo_url=logo_url,
        sender=_address_json(sender),
        recipient=_address_json(payload.get("recipient")),
        currency=payload.get("currency") or DEFAULT_CURRENCY,
        tax_rate=float(payload.get("tax_rate") or 0.0),
    )
    db.add(invoice)
    db.flush()

    replace_invoice_items(db, invoice, payload.get("items") or [])
    recompute_invoice_totals(invoice)
    db.add(invoice)
    db.flush()

    invoice_writes_total.labels(operation="create").inc()
    logger.info(
        "invoice_created",
        extra={
            "invoice_id": invoice.id,
            "user_id": owner.id,
            "items_count": len(invoice.items),
            "subtotal": invoice.subtotal,
            "total": invoice.total,
        },
    )
    return invoice


def update_invoice(db: Session, *, invoice: Invoice, changes: Mapping[str, Any]) -> Invoice:
    """Apply a full or partial update.

    Totals are recomputed whenever ``items`` or ``tax_rate`` is present in
    ``changes``, and left alone otherwise.
    """
    update_data = {key: value for key, value in changes.items() if key not in DERIVED_FIELDS}
    items_payload = update_data.pop("items", None)

    for field, value in update_data.items():
        if field not in _WRITABLE_FIELDS:
            continue
        setattr(invoice, field, _coerce_field(field, value))

    if items_payload is not None:
        replace_invoice_items(db, invoice, items_payload)

    recomputed = bool(TOTALS_TRIGGER_FIELDS & changes.keys())
    if recomputed:
        recompute_invoice_totals(invoice)

    invoice.updated_at = datetime.now(timezone.utc)
    db.add(invoice)
    db.flush()

    invoice_writes_total.labels(operation="update").inc()
    logger.info(
        "invoice_updated",
        extra={
            "invoice_id": invoice.id,
            "user_id": invoice.owner_id,
            "totals_recomputed": recomputed,
            "subtotal": invoice.subtotal,
            "total": invoice.total,
        },
    )
    return invoice


def get_owned_invoice(db: Session, *, owner_id: str, invoice_id: str) -> Invoice:
    invoice = (
        db.query(Invoice)
        .options(selectinload(Invoice.items))
        .filter(Invoice.id == invoice_id, Invoice.owner_id == owner_id)
        .first()
    )
    if not invoice:
        raise InvoiceNotFound(invoice_id)
    return invoice


def list_owned_invoices(
    db: Session,
    *,
    owner_id: str,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[Invoice], int]:
    query = db.query(Invoice).filter(Invoice.owner_id == owner_id)
    total = query.count()
    invoices = (
        query.options(selectinload(Invoice.items))
        .order_by(Invoice.created_at.desc(), Invoice.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return invoices, total


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def delete_invoice(db: Session, *, invoice: Invoice) -> None:
    invoice_id, owner_id = invoice.id, invoice.owner_id
    db.delete(invoice)
    db.flush()
    invoice_writes_total.labels(operation="delete").inc()
    logger.info("invoice_deleted", extra={"invoice_id": invoice_id, "user_id": owner_id})


def backfill_invoice_totals(db: Session, *, batch_size: int = 200) -> int:
    query = db.query(Invoice).options(selectinload(Invoice.items)).order_by(Invoice.id).yield_per(batch_size)
    updated = 0
    for invoice in query:
        recompute_invoice_totals(invoice)
        db.add(invoice)
        updated += 1
    db.commit()
    return updated
