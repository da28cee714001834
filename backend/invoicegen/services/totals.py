"""Invoice total calculation.

Every code path that creates or updates an invoice goes through
:func:`compute_totals`, so stored ``subtotal``/``total`` always match the
stored line items. Amounts are plain floats and are never rounded here;
rounding to two decimals is a presentation concern.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: float
    total: float

    @property
    def tax_amount(self) -> float:
        return self.total - self.subtotal


def line_amount(item: Any) -> float:
    """quantity * unit price for an ORM row, schema object or plain mapping."""
    if isinstance(item, Mapping):
        quantity = item["quantity"]
        unit_price = item["unit_price"] if "unit_price" in item else item["unitPrice"]
    else:
        quantity = item.quantity
        unit_price = item.unit_price
    return float(quantity) * float(unit_price)


def compute_totals(items: Iterable[Any], tax_rate: float) -> InvoiceTotals:
    """Derive subtotal and total from line items and a percentage tax rate.

    Negative quantities, prices or rates are not rejected; they flow through
    the arithmetic unchanged.
    """
    subtotal = sum((line_amount(item) for item in items), start=0.0)
    total = subtotal + subtotal * (float(tax_rate) / 100)
    return InvoiceTotals(subtotal=subtotal, total=total)


def format_amount(amount: float, currency: str = "USD") -> str:
    return f"{currency} {amount:,.2f}"
