from datetime import datetime

import pytest

from salesdesk.errors import ValidationError
from salesdesk.validation import (
    coerce_int,
    money_to_cents,
    parse_as_of,
    parse_create_sale,
    parse_stock_adjustment,
    percent_to_bps,
)


@pytest.mark.parametrize("value,expected", [
    (5, 5),
    ("12", 12),
    (" -3 ", -3),
])
def test_coerce_int_accepts(value, expected):
    assert coerce_int(value, "qty") == expected


@pytest.mark.parametrize("value", [True, 1.5, "1e3", "12.0", "", None, "abc"])
def test_coerce_int_rejects(value):
    with pytest.raises(ValidationError):
        coerce_int(value, "qty")


@pytest.mark.parametrize("value,expected", [
    ("10.00", 1000),
    (10, 1000),
    (10.1, 1010),
    ("0.05", 5),
])
def test_money_to_cents(value, expected):
    assert money_to_cents(value, "price") == expected


@pytest.mark.parametrize("value", ["1.005", "-1", "abc", None, "NaN", "10000000"])
def test_money_to_cents_rejects(value):
    with pytest.raises(ValidationError):
        money_to_cents(value, "price")


def test_percent_to_bps():
    assert percent_to_bps(18, "tax_rate") == 1800
    assert percent_to_bps("2.5", "tax_rate") == 250
    with pytest.raises(ValidationError):
        percent_to_bps("12.345", "tax_rate")
    with pytest.raises(ValidationError):
        percent_to_bps(-1, "tax_rate")


def test_parse_create_sale_normalizes():
    req = parse_create_sale({
        "customer_ref": "  ",
        "items": [{"stock_code": " SKU-A ", "quantity": "2", "unit_price": "9.99", "tax_rate": 8,
                   "discount_rate": 10}],
        "payment_method": " cash ",
        "discount_amount": "1.50",
    })

    assert req.customer_ref is None
    assert req.payment_method == "cash"
    assert req.is_installment is False
    assert req.installment_count is None
    assert req.discount_amount_cents == 150
    line = req.items[0]
    assert (line.stock_code, line.quantity, line.unit_price_cents) == ("SKU-A", 2, 999)
    assert (line.tax_rate_bps, line.discount_rate_bps) == (800, 1000)


def test_parse_create_sale_installments():
    req = parse_create_sale({
        "items": [{"stock_code": "A", "quantity": 1, "unit_price": 1}],
        "payment_method": "card",
        "is_installment": True,
        "installment_count": "4",
    })
    assert req.installment_count == 4


@pytest.mark.parametrize("payload,message", [
    (None, "items"),
    ([], "Invalid JSON"),
    ({"items": [{"quantity": 1, "unit_price": 1}], "payment_method": "x"}, "stock_code"),
    ({"items": [{"stock_code": "A", "unit_price": 1}], "payment_method": "x"}, "quantity"),
    ({"items": [{"stock_code": "A", "quantity": 1}], "payment_method": "x"}, "unit_price"),
    ({"items": ["A"], "payment_method": "x"}, "object"),
])
def test_parse_create_sale_errors(payload, message):
    with pytest.raises(ValidationError, match=message):
        parse_create_sale(payload)


def test_parse_as_of():
    assert parse_as_of(None) is None
    assert parse_as_of("2026-02-18") == datetime(2026, 2, 18)
    assert parse_as_of("2026-02-18T23:30:00-02:00") == datetime(2026, 2, 19, 1, 30)
    with pytest.raises(ValidationError):
        parse_as_of(20260218)


def test_parse_stock_adjustment():
    assert parse_stock_adjustment({"quantity": -2, "notes": " broken "}) == (-2, "broken")
    assert parse_stock_adjustment({"quantity": "5"}) == (5, None)
    with pytest.raises(ValidationError):
        parse_stock_adjustment({"notes": "x"})
    with pytest.raises(ValidationError):
        parse_stock_adjustment({"quantity": 3, "notes": "x" * 256})
