from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from salesdesk.errors import ValidationError
from salesdesk.services.sales_service import SaleItemInput
from salesdesk.time_utils import parse_iso_datetime


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

_CENT = Decimal("0.01")


def coerce_int(value: Any, field: str) -> int:
    """Strict integer: rejects floats, decimals, booleans and scientific notation."""
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def _to_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, float):
        # go through str() so 10.1 stays 10.1 and not 10.0999...
        value = str(value)
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if not number.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return number


def money_to_cents(value: Any, field: str) -> int:
    """'10.00', 10, 10.5 -> cents. At most two decimal places."""
    number = _to_decimal(value, field)
    if number != number.quantize(_CENT):
        raise ValidationError(f"{field} cannot have more than two decimal places")
    cents = int((number * 100).to_integral_value(rounding=ROUND_HALF_UP))
    if cents < 0:
        raise ValidationError(f"{field} must be >= 0")
    if cents > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS / 100:,.2f}")
    return cents


def percent_to_bps(value: Any, field: str) -> int:
    """Percent (0-100, up to two decimals) -> basis points."""
    number = _to_decimal(value, field)
    if number < 0 or number > 100:
        raise ValidationError(f"{field} must be between 0 and 100")
    bps = number * 100
    if bps != bps.to_integral_value():
        raise ValidationError(f"{field} cannot have more than two decimal places")
    return int(bps)


def _require_mapping(payload: Any) -> dict:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


@dataclass(frozen=True)
class CreateSaleRequest:
    customer_ref: str | None
    items: list[SaleItemInput]
    payment_method: str
    is_installment: bool
    installment_count: int | None
    discount_amount_cents: int
    notes: str | None


def parse_sale_item(raw: Any, index: int) -> SaleItemInput:
    where = f"items[{index}]"
    if not isinstance(raw, dict):
        raise ValidationError(f"{where} must be an object")

    stock_code = raw.get("stock_code")
    if stock_code is None or not str(stock_code).strip():
        raise ValidationError(f"{where}.stock_code is required")

    if "quantity" not in raw:
        raise ValidationError(f"{where}.quantity is required")
    quantity = coerce_int(raw["quantity"], f"{where}.quantity")
    if quantity < 1:
        raise ValidationError(f"{where}.quantity must be a positive integer")

    if "unit_price" not in raw:
        raise ValidationError(f"{where}.unit_price is required")

    return SaleItemInput(
        stock_code=str(stock_code).strip(),
        quantity=quantity,
        unit_price_cents=money_to_cents(raw["unit_price"], f"{where}.unit_price"),
        tax_rate_bps=percent_to_bps(raw.get("tax_rate", 0), f"{where}.tax_rate"),
        discount_rate_bps=percent_to_bps(raw.get("discount_rate", 0), f"{where}.discount_rate"),
    )


def parse_create_sale(payload: Any) -> CreateSaleRequest:
    """
    Validate + normalize the sale creation payload:

        {customer_ref?, items: [{stock_code, quantity, unit_price, tax_rate,
         discount_rate?}], payment_method, is_installment, installment_count?,
         discount_amount?, notes?}
    """
    payload = _require_mapping(payload)

    items_raw = payload.get("items")
    if not isinstance(items_raw, list) or not items_raw:
        raise ValidationError("items must be a non-empty list")
    items = [parse_sale_item(raw, i) for i, raw in enumerate(items_raw)]

    payment_method = payload.get("payment_method")
    if not isinstance(payment_method, str) or not payment_method.strip():
        raise ValidationError("payment_method is required")

    is_installment = payload.get("is_installment", False)
    if not isinstance(is_installment, bool):
        raise ValidationError("is_installment must be a boolean")

    installment_count = None
    if is_installment:
        if payload.get("installment_count") is None:
            raise ValidationError("installment_count is required for installment sales")
        installment_count = coerce_int(payload["installment_count"], "installment_count")

    discount = payload.get("discount_amount")
    discount_cents = 0 if discount in (None, "") else money_to_cents(discount, "discount_amount")

    customer_ref = payload.get("customer_ref")
    if customer_ref is not None:
        customer_ref = str(customer_ref).strip() or None

    notes = payload.get("notes")
    if notes is not None:
        notes = str(notes).strip() or None

    return CreateSaleRequest(
        customer_ref=customer_ref,
        items=items,
        payment_method=payment_method.strip(),
        is_installment=is_installment,
        installment_count=installment_count,
        discount_amount_cents=discount_cents,
        notes=notes,
    )


def parse_as_of(value: Any):
    """Optional ISO-8601 date/datetime -> UTC-naive datetime (None passes through)."""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError("as_of must be an ISO-8601 date or datetime")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError("as_of must be an ISO-8601 date or datetime")


def parse_stock_adjustment(payload: Any) -> tuple[int, str | None]:
    payload = _require_mapping(payload)
    if "quantity" not in payload:
        raise ValidationError("quantity is required")
    delta = coerce_int(payload["quantity"], "quantity")
    if delta == 0:
        raise ValidationError("quantity must be non-zero")
    note = payload.get("notes")
    if note is not None:
        note = str(note).strip() or None
        if note and len(note) > 255:
            raise ValidationError("notes exceeds max length 255")
    return delta, note
