"""
Sales Service - sale orchestration

WHY: A sale is only meaningful together with its stock movements and
installment schedule. This module is the ONLY writer of that unit:

- create_sale():  header + items + one 'sale' movement per item
                  (+ installments) in ONE transaction
- cancel_sale():  'sale_return' for every 'sale' movement, drop items and
                  unpaid installments, soft-delete; ONE transaction
- update_sale_status(): raw status write for transitions with no side
                  effects. Cancellation never goes through it.

Totals (all cents, rates in basis points, half-up rounding per line):
    line discount = gross * discount_rate
    line net      = gross - line discount
    line tax      = line net * tax_rate
    subtotal      = sum(gross)
    discount      = sum(line discount) + order discount
    tax           = sum(line tax)
    final         = subtotal - discount + tax
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..extensions import db
from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import Product, Sale, SaleItem, Installment, StockMovement
from ..models.inventory import MOVEMENT_SALE, MOVEMENT_SALE_RETURN
from ..models.sales import (
    INSTALLMENT_PAID,
    SALE_STATUSES,
    SALE_STATUS_CANCELLED,
    SALE_STATUS_COMPLETED,
    SALE_STATUS_PENDING_INSTALLMENT,
    SALE_STATUS_REFUNDED,
)
from ..signals import (
    FINANCIALS_PATH,
    INVENTORY_PATH,
    SALES_PATH,
    invalidate_views,
    notify_stock_changed,
    sale_path,
)
from salesdesk.time_utils import utcnow
from .concurrency import lock_for_update, run_in_transaction
from .inventory_service import apply_stock_delta, stock_paths
from .installment_service import build_installment_schedule


MAX_RATE_BPS = 10_000
MAX_PAYMENT_METHOD_LENGTH = 32


@dataclass(frozen=True)
class SaleItemInput:
    stock_code: str
    quantity: int
    unit_price_cents: int
    tax_rate_bps: int = 0
    discount_rate_bps: int = 0


@dataclass(frozen=True)
class LineTotals:
    gross_before_discount_cents: int
    discount_cents: int
    net_cents: int
    tax_cents: int
    gross_cents: int


@dataclass(frozen=True)
class SaleTotals:
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    final_amount_cents: int
    lines: list[LineTotals] = field(default_factory=list)


def _round_half_up_bps(amount_cents: int, rate_bps: int) -> int:
    return (amount_cents * rate_bps + MAX_RATE_BPS // 2) // MAX_RATE_BPS


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_item(index: int, item: SaleItemInput) -> None:
    where = f"items[{index}]"
    if not isinstance(item.stock_code, str) or not item.stock_code.strip():
        raise ValidationError(f"{where}.stock_code is required")
    if not _is_int(item.quantity) or item.quantity < 1:
        raise ValidationError(f"{where}.quantity must be a positive integer")
    if not _is_int(item.unit_price_cents) or item.unit_price_cents < 0:
        raise ValidationError(f"{where}.unit_price must be >= 0")
    for name in ("tax_rate_bps", "discount_rate_bps"):
        value = getattr(item, name)
        if not _is_int(value) or not 0 <= value <= MAX_RATE_BPS:
            raise ValidationError(f"{where}.{name.replace('_bps', '')} must be between 0 and 100")


def compute_line_totals(item: SaleItemInput) -> LineTotals:
    gross_before = item.quantity * item.unit_price_cents
    discount = _round_half_up_bps(gross_before, item.discount_rate_bps)
    net = gross_before - discount
    tax = _round_half_up_bps(net, item.tax_rate_bps)
    return LineTotals(
        gross_before_discount_cents=gross_before,
        discount_cents=discount,
        net_cents=net,
        tax_cents=tax,
        gross_cents=net + tax,
    )


def compute_sale_totals(items: list[SaleItemInput], order_discount_cents: int = 0) -> SaleTotals:
    """Totals for a prospective sale; validates items and the order discount."""
    if not items:
        raise ValidationError("A sale needs at least one item")
    for i, item in enumerate(items):
        _validate_item(i, item)
    if not _is_int(order_discount_cents) or order_discount_cents < 0:
        raise ValidationError("discount_amount must be >= 0")

    lines = [compute_line_totals(item) for item in items]
    subtotal = sum(line.gross_before_discount_cents for line in lines)
    line_discounts = sum(line.discount_cents for line in lines)
    tax = sum(line.tax_cents for line in lines)

    if order_discount_cents > subtotal - line_discounts:
        raise ValidationError(
            "discount_amount cannot exceed the discounted subtotal",
            details={"max_discount_cents": subtotal - line_discounts},
        )

    discount = line_discounts + order_discount_cents
    return SaleTotals(
        subtotal_cents=subtotal,
        discount_cents=discount,
        tax_cents=tax,
        final_amount_cents=subtotal - discount + tax,
        lines=lines,
    )


# =============================================================================
# READS
# =============================================================================

def _session(session):
    return session if session is not None else db.session


def active_sales(session=None):
    """Query over non-archived sales. Every sale read starts here."""
    return _session(session).query(Sale).filter(Sale.not_deleted())


def _get_active_sale(session, sale_id: int, *, lock: bool = False) -> Sale:
    query = active_sales(session).filter(Sale.id == sale_id)
    if lock:
        query = lock_for_update(query)
    sale = query.first()
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale


def get_sale(sale_id: int, *, session=None) -> Sale:
    return _get_active_sale(_session(session), sale_id)


def list_sales(
    *,
    status: str | None = None,
    customer_ref: str | None = None,
    limit: int = 50,
    offset: int = 0,
    session=None,
) -> list[Sale]:
    query = active_sales(session)
    if status is not None:
        if status not in SALE_STATUSES:
            raise ValidationError(f"Invalid status '{status}'")
        query = query.filter(Sale.status == status)
    if customer_ref is not None:
        query = query.filter(Sale.customer_ref == customer_ref)
    return query.order_by(Sale.sale_date.desc(), Sale.id.desc()).limit(limit).offset(offset).all()


# =============================================================================
# ORCHESTRATION
# =============================================================================

def _validate_installment_plan(is_installment: bool, installment_count, final_amount_cents: int) -> None:
    if not is_installment:
        return
    if not _is_int(installment_count) or installment_count < 1:
        raise ValidationError("installment_count must be at least 1 for installment sales")

    max_count = int(current_app.config.get("SALES_MAX_INSTALLMENTS", 36))
    if installment_count > max_count:
        raise ValidationError(
            f"installment_count cannot exceed {max_count}",
            details={"max_installments": max_count},
        )
    if final_amount_cents <= 0:
        raise ValidationError("An installment sale needs a positive final amount")
    if installment_count > final_amount_cents:
        raise ValidationError("installment_count cannot exceed the final amount in cents")


def _check_products(session, items: list[SaleItemInput]) -> None:
    """
    All products exist, are active, and hold enough stock for the summed
    request. The guarded update in apply_stock_delta() stays the final word;
    this pass reports the whole requested quantity per product.
    """
    requested: dict[str, int] = {}
    for item in items:
        requested[item.stock_code] = requested.get(item.stock_code, 0) + item.quantity

    for stock_code, qty in requested.items():
        product = session.query(Product).filter(
            Product.stock_code == stock_code,
            Product.deleted_at.is_(None),
        ).first()
        if product is None:
            raise ValidationError(
                f"Product {stock_code} does not exist", details={"stock_code": stock_code}
            )
        if product.quantity_on_hand < qty:
            raise InsufficientStockError(stock_code, requested=qty, on_hand=product.quantity_on_hand)


def create_sale(
    *,
    customer_ref: str | None,
    items: list[SaleItemInput],
    payment_method: str,
    is_installment: bool = False,
    installment_count: int | None = None,
    discount_amount_cents: int = 0,
    notes: str | None = None,
    sale_date=None,
    session=None,
) -> Sale:
    """
    Create a sale with its items, stock movements and installment schedule.

    All or nothing: on any error no sale, item, movement or installment is
    left behind.

    Raises:
        ValidationError, InsufficientStockError, PersistenceError
    """
    session = _session(session)

    totals = compute_sale_totals(items, discount_amount_cents)

    if not isinstance(payment_method, str) or not payment_method.strip():
        raise ValidationError("payment_method is required")
    payment_method = payment_method.strip()
    if len(payment_method) > MAX_PAYMENT_METHOD_LENGTH:
        raise ValidationError(f"payment_method exceeds max length {MAX_PAYMENT_METHOD_LENGTH}")

    is_installment = bool(is_installment)
    _validate_installment_plan(is_installment, installment_count, totals.final_amount_cents)

    if customer_ref is not None:
        customer_ref = str(customer_ref).strip() or None

    sale_dt = sale_date or utcnow()

    def _op():
        _check_products(session, items)

        sale = Sale(
            customer_ref=customer_ref,
            sale_date=sale_dt,
            subtotal_cents=totals.subtotal_cents,
            discount_cents=totals.discount_cents,
            tax_cents=totals.tax_cents,
            final_amount_cents=totals.final_amount_cents,
            payment_method=payment_method,
            status=SALE_STATUS_PENDING_INSTALLMENT if is_installment else SALE_STATUS_COMPLETED,
            is_installment=is_installment,
            installment_count=installment_count if is_installment else None,
            notes=notes,
        )
        session.add(sale)
        session.flush()

        stock_after: dict[str, int] = {}
        for item, line in zip(items, totals.lines):
            sale.items.append(SaleItem(
                stock_code=item.stock_code,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
                tax_rate_bps=item.tax_rate_bps,
                discount_rate_bps=item.discount_rate_bps,
                discount_cents=line.discount_cents,
                line_net_cents=line.net_cents,
                line_tax_cents=line.tax_cents,
                line_gross_cents=line.gross_cents,
            ))
            stock_after[item.stock_code] = apply_stock_delta(
                item.stock_code,
                -item.quantity,
                MOVEMENT_SALE,
                reference_sale_id=sale.id,
                note=f"Sale #{sale.id}",
                session=session,
            )

        if is_installment:
            for scheduled in build_installment_schedule(
                totals.final_amount_cents, installment_count, sale_dt
            ):
                sale.installments.append(Installment(
                    sequence=scheduled.sequence,
                    due_date=scheduled.due_date,
                    amount_cents=scheduled.amount_cents,
                ))

        session.flush()
        return sale, stock_after

    sale, stock_after = run_in_transaction(session, _op)

    current_app.logger.info(
        "Sale %s created: %s item(s), final %s cents, status %s",
        sale.id, len(items), sale.final_amount_cents, sale.status,
    )
    notify_stock_changed(stock_after)
    invalidate_views(
        [SALES_PATH, sale_path(sale.id), INVENTORY_PATH, FINANCIALS_PATH] + stock_paths(stock_after)
    )
    return sale


def cancel_sale(sale_id: int, *, session=None) -> Sale:
    """
    Cancel a sale and reverse everything it did to stock.

    Every 'sale' movement gets an equal and opposite 'sale_return'
    movement. Items and unpaid installments are removed; paid installments
    stay for audit. The sale is soft-deleted.

    Raises:
        NotFoundError, ValidationError (already cancelled/refunded), PersistenceError
    """
    session = _session(session)

    def _op():
        sale = _get_active_sale(session, sale_id, lock=True)

        if sale.status in (SALE_STATUS_CANCELLED, SALE_STATUS_REFUNDED):
            raise ValidationError(
                f"Sale {sale_id} is already {sale.status}",
                details={"sale_id": sale_id, "status": sale.status},
            )

        movements = session.query(StockMovement).filter_by(
            reference_sale_id=sale.id,
            movement_type=MOVEMENT_SALE,
        ).order_by(StockMovement.id).all()

        stock_after: dict[str, int] = {}
        for movement in movements:
            stock_after[movement.stock_code] = apply_stock_delta(
                movement.stock_code,
                -movement.quantity_delta,
                MOVEMENT_SALE_RETURN,
                reference_sale_id=sale.id,
                note=f"Sale #{sale.id} cancelled",
                session=session,
            )

        for item in list(sale.items):
            sale.items.remove(item)
        for installment in list(sale.installments):
            if installment.status != INSTALLMENT_PAID:
                sale.installments.remove(installment)

        sale.status = SALE_STATUS_CANCELLED
        sale.deleted_at = utcnow()
        session.flush()
        return sale, stock_after

    sale, stock_after = run_in_transaction(session, _op)

    current_app.logger.info("Sale %s cancelled; stock restored for %s product(s)", sale.id, len(stock_after))
    notify_stock_changed(stock_after)
    invalidate_views(
        [SALES_PATH, sale_path(sale.id), INVENTORY_PATH, FINANCIALS_PATH] + stock_paths(stock_after)
    )
    return sale


def update_sale_status(sale_id: int, new_status: str, *, session=None) -> Sale:
    """
    Set a sale's status when the transition has no stock or installment
    side effects.

    Refused:
    - unknown statuses and no-op transitions
    - 'cancelled' (use cancel_sale so stock is restored)
    - any change to a 'refunded' sale
    - 'completed' while an installment sale still has unpaid installments
    - 'pending_installment' for a sale without installments
    """
    session = _session(session)

    if new_status not in SALE_STATUSES:
        raise ValidationError(
            f"Invalid status '{new_status}'. Must be one of: {', '.join(SALE_STATUSES)}"
        )
    if new_status == SALE_STATUS_CANCELLED:
        raise ValidationError("Use cancel_sale to cancel a sale; it restores stock")

    def _op():
        sale = _get_active_sale(session, sale_id, lock=True)

        if sale.status == new_status:
            raise ValidationError(f"Sale {sale_id} is already {new_status}")
        if sale.status == SALE_STATUS_REFUNDED:
            raise ValidationError(f"Sale {sale_id} is refunded and can no longer change status")

        if new_status == SALE_STATUS_PENDING_INSTALLMENT and not sale.is_installment:
            raise ValidationError(f"Sale {sale_id} has no installment plan")

        if new_status == SALE_STATUS_COMPLETED and sale.is_installment:
            unpaid = session.query(Installment).filter(
                Installment.sale_id == sale.id,
                Installment.status != INSTALLMENT_PAID,
            ).count()
            if unpaid:
                raise ValidationError(
                    f"Sale {sale_id} still has {unpaid} unpaid installment(s)",
                    details={"unpaid_installments": unpaid},
                )

        sale.status = new_status
        session.flush()
        return sale

    sale = run_in_transaction(session, _op)

    invalidate_views([SALES_PATH, sale_path(sale.id), FINANCIALS_PATH])
    return sale
