from __future__ import annotations

from datetime import date

import pytest

from invoicegen.models.invoice import Invoice
from invoicegen.services.invoices import (
    InvoiceNotFound,
    backfill_invoice_totals,
    create_invoice,
    get_owned_invoice,
    list_owned_invoices,
    total_pages,
    update_invoice,
)


def _payload(**overrides):
    payload = {
        "invoice_number": "INV-001",
        "invoice_date": date(2026, 1, 15),
        "recipient": {"name": "Acme Corp", "city": "Springfield"},
        "items": [{"description": "Consulting", "quantity": 2, "unit_price": 10}],
        "tax_rate": 10,
    }
    payload.update(overrides)
    return payload


def test_create_computes_totals_and_ignores_supplied_values(db, user):
    invoice = create_invoice(db, owner=user, payload=_payload(subtotal=999, total=12345))
    db.commit()

    assert invoice.subtotal == 20
    assert invoice.total == pytest.approx(22)
    assert invoice.currency == "USD"
    assert [item.order_index for item in invoice.items] == [0]


def test_create_prefills_sender_and_logo_from_settings(db, user):
    user.settings = {
        "sender": {"name": "Me Ltd", "address": "1 Main St", "city": "Town", "postalCode": "123", "country": "US"},
        "logoUrl": "https://example.com/logo.png",
    }
    db.commit()

    invoice = create_invoice(db, owner=user, payload=_payload())
    assert invoice.sender["name"] == "Me Ltd"
    assert invoice.sender["postalCode"] == "123"
    assert invoice.logo_url == "https://example.com/logo.png"
    assert invoice.recipient == {
        "name": "Acme Corp",
        "address": "",
        "city": "Springfield",
        "postalCode": "",
        "country": "",
    }


def test_create_defaults_invoice_date_to_today(db, user):
    payload = _payload()
    payload.pop("invoice_date")
    invoice = create_invoice(db, owner=user, payload=payload)
    assert isinstance(invoice.invoice_date, date)


def test_update_items_recomputes_and_overwrites_supplied_totals(db, user):
    invoice = create_invoice(db, owner=user, payload=_payload())
    db.commit()

    invoice = update_invoice(
        db,
        invoice=invoice,
        changes={"items": [{"description": "Design", "quantity": 1, "unit_price": 50}], "subtotal": 1, "total": 2},
    )
    db.commit()

    assert invoice.subtotal == 50
    assert invoice.total == pytest.approx(55)
    assert [item.description for item in invoice.items] == ["Design"]


def test_update_tax_rate_alone_recomputes(db, user):
    invoice = create_invoice(db, owner=user, payload=_payload())
    invoice = update_invoice(db, invoice=invoice, changes={"tax_rate": 50})
    assert invoice.subtotal == 20
    assert invoice.total == pytest.approx(30)


def test_update_without_items_or_tax_leaves_totals(db, user):
    invoice = create_invoice(db, owner=user, payload=_payload())
    db.commit()
    invoice.subtotal, invoice.total = 1.0, 2.0

    invoice = update_invoice(db, invoice=invoice, changes={"currency": "EUR", "total": 500})
    assert invoice.currency == "EUR"
    assert (invoice.subtotal, invoice.total) == (1.0, 2.0)


def test_get_owned_invoice_hides_other_users_invoices(db, user, make_user):
    other = make_user(email="other@example.com")
    invoice = create_invoice(db, owner=user, payload=_payload())
    db.commit()

    assert get_owned_invoice(db, owner_id=user.id, invoice_id=invoice.id).id == invoice.id
    with pytest.raises(InvoiceNotFound):
        get_owned_invoice(db, owner_id=other.id, invoice_id=invoice.id)


def test_list_owned_invoices_paginates(db, user):
    for number in range(3):
        create_invoice(db, owner=user, payload=_payload(invoice_number=f"INV-{number}"))
    db.commit()

    page, total = list_owned_invoices(db, owner_id=user.id, page=2, limit=2)
    assert total == 3
    assert len(page) == 1
    assert total_pages(total, 2) == 2
    assert db.query(Invoice).count() == 3


def test_backfill_restores_drifted_totals(db, user):
    first = create_invoice(db, owner=user, payload=_payload())
    second = create_invoice(db, owner=user, payload=_payload(tax_rate=0))
    db.commit()
    first.subtotal, first.total = 0.0, 999.0
    second.total = -1.0
    db.commit()

    assert backfill_invoice_totals(db, batch_size=1) == 2

    db.expire_all()
    restored = {invoice.id: (invoice.subtotal, invoice.total) for invoice in db.query(Invoice).all()}
    assert restored[first.id] == (20, pytest.approx(22))
    assert restored[second.id] == (20, 20)
