from __future__ import annotations

import pytest

from invoicegen.services.totals import InvoiceTotals, compute_totals, format_amount, line_amount


ITEMS = [
    {"description": "A", "quantity": 3, "unit_price": 20},
    {"description": "B", "quantity": 1, "unit_price": 15},
]


@pytest.mark.parametrize("tax_rate", [0, 8, 12.5, 100])
def test_empty_items_yield_zero(tax_rate):
    assert compute_totals([], tax_rate) == InvoiceTotals(subtotal=0.0, total=0.0)


def test_zero_tax_total_equals_subtotal():
    totals = compute_totals(ITEMS, 0)
    assert totals.total == totals.subtotal
    assert totals.tax_amount == 0


def test_subtotal_is_sum_of_lines_in_any_order():
    forward = compute_totals(ITEMS, 5)
    backward = compute_totals(list(reversed(ITEMS)), 5)
    assert forward.subtotal == 3 * 20 + 1 * 15
    assert backward.subtotal == forward.subtotal


@pytest.mark.parametrize("tax_rate", [0, 1, 7.25, 20, 150])
def test_total_scales_with_tax_rate(tax_rate):
    totals = compute_totals(ITEMS, tax_rate)
    assert totals.total == pytest.approx(totals.subtotal * (1 + tax_rate / 100))


def test_concrete_invoice():
    totals = compute_totals(ITEMS, 8)
    assert totals.subtotal == 75
    assert totals.total == pytest.approx(81.0)


def test_repeat_calls_are_identical():
    assert compute_totals(ITEMS, 8) == compute_totals(ITEMS, 8)


def test_negative_values_propagate():
    totals = compute_totals([{"quantity": -2, "unit_price": 10}], 10)
    assert totals.subtotal == -20
    assert totals.total == pytest.approx(-22)

    discounted = compute_totals([{"quantity": 1, "unit_price": 100}], -10)
    assert discounted.total == pytest.approx(90)


def test_line_amount_accepts_camel_case_and_objects():
    class Row:
        quantity = 2
        unit_price = 2.5

    assert line_amount({"quantity": 4, "unitPrice": 1.5}) == 6.0
    assert line_amount(Row()) == 5.0


def test_no_rounding_until_display():
    totals = compute_totals([{"quantity": 1, "unit_price": 0.1}, {"quantity": 1, "unit_price": 0.2}], 0)
    assert totals.subtotal == 0.1 + 0.2
    assert format_amount(totals.subtotal, "EUR") == "EUR 0.30"
