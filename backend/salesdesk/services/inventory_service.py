# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/salesdesk/services/inventory_service.py

from __future__ import annotations

from sqlalchemy import update
from flask import current_app

from ..extensions import db
from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import Product, StockMovement, LowStockAlert
from ..models.inventory import (
    MOVEMENT_TYPES,
    MOVEMENT_ADJUSTMENT,
    ALERT_ACTIVE,
    ALERT_RESOLVED,
)
from ..signals import (
    INVENTORY_PATH,
    LOW_STOCK_ALERTS_PATH,
    invalidate_views,
    notify_stock_changed,
    product_path,
)
from salesdesk.time_utils import utcnow
from .concurrency import run_in_transaction
"""
SalesDesk Stock Ledger Invariants (authoritative)

Stock model:
- Product.quantity_on_hand is the authoritative on-hand count.
- It changes ONLY through apply_stock_delta(): one guarded UPDATE
      SET quantity_on_hand = quantity_on_hand + :delta
      WHERE stock_code = :code AND quantity_on_hand + :delta >= 0
  followed by one StockMovement row recording the delta and the result.
- The guard is evaluated by the database inside the UPDATE itself, so two
  concurrent sales cannot both pass a stale read and drive stock negative.

Business invariants:
- On-hand quantity is never negative (guard + CHECK constraint).
- Movements are append-only; a reversal is a new movement of opposite sign.
- Movement types: sale (negative), sale_return (positive), adjustment (either).

Transactions:
- apply_stock_delta() flushes but never commits. The caller owns the
  transaction (sale creation, cancellation, or adjust_stock()).
- Notifications are sent by the caller after commit.

Alerts:
- A movement that leaves on-hand below a positive min_stock_level opens an
  'active' LowStockAlert unless one is already open.
- A movement that leaves on-hand at or above the minimum (or a product whose
  minimum is 0) resolves the open alert.
"""


def _session(session):
    return session if session is not None else db.session


def get_product(stock_code: str, *, session=None, include_archived: bool = False) -> Product:
    session = _session(session)
    query = session.query(Product).filter(Product.stock_code == stock_code)
    if not include_archived:
        query = query.filter(Product.deleted_at.is_(None))
    product = query.first()
    if product is None:
        raise NotFoundError(f"Product {stock_code} not found", details={"stock_code": stock_code})
    return product


def get_quantity_on_hand(stock_code: str, *, session=None) -> int:
    session = _session(session)
    qty = session.query(Product.quantity_on_hand).filter(Product.stock_code == stock_code).scalar()
    if qty is None:
        raise NotFoundError(f"Product {stock_code} not found", details={"stock_code": stock_code})
    return int(qty)


def _manage_low_stock_alert(session, product: Product, quantity_on_hand: int) -> str | None:
    """
    Open or resolve the product's low stock alert.

    Returns "created", "resolved" or None.
    """
    active = session.query(LowStockAlert).filter_by(
        stock_code=product.stock_code,
        status=ALERT_ACTIVE,
    ).first()

    min_level = product.min_stock_level or 0
    if min_level > 0 and quantity_on_hand < min_level:
        if active is not None:
            return None
        session.add(LowStockAlert(
            stock_code=product.stock_code,
            current_stock_at_alert=quantity_on_hand,
            min_stock_level_at_alert=min_level,
            status=ALERT_ACTIVE,
            created_at=utcnow(),
        ))
        current_app.logger.warning(
            "Low stock for %s: %s on hand, minimum %s", product.stock_code, quantity_on_hand, min_level
        )
        return "created"

    if active is None:
        return None

    active.status = ALERT_RESOLVED
    active.resolved_at = utcnow()
    if min_level <= 0:
        active.note = "Minimum stock level removed"
    else:
        active.note = "Stock back at or above minimum level"
    return "resolved"


def apply_stock_delta(
    stock_code: str,
    delta: int,
    movement_type: str,
    reference_sale_id: int | None = None,
    note: str | None = None,
    *,
    session=None,
) -> int:
    """
    Apply a signed quantity change and journal it. Returns the new on-hand.

    Raises:
        InsufficientStockError: the change would make on-hand negative
        NotFoundError: no product with this stock code
        ValidationError: zero delta or unknown movement type

    Runs inside the caller's transaction (flush only, no commit).
    """
    session = _session(session)

    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(
            f"Invalid movement type '{movement_type}'. Must be one of: {', '.join(MOVEMENT_TYPES)}"
        )
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("delta must be an integer")
    if delta == 0:
        raise ValidationError("delta must be non-zero")

    result = session.execute(
        update(Product)
        .where(
            Product.stock_code == stock_code,
            Product.quantity_on_hand + delta >= 0,
        )
        .values(quantity_on_hand=Product.quantity_on_hand + delta)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        on_hand = session.query(Product.quantity_on_hand).filter(
            Product.stock_code == stock_code
        ).scalar()
        if on_hand is None:
            raise NotFoundError(f"Product {stock_code} not found", details={"stock_code": stock_code})
        raise InsufficientStockError(stock_code, requested=-delta, on_hand=int(on_hand))

    product = session.query(Product).filter(Product.stock_code == stock_code).one()
    session.refresh(product, attribute_names=["quantity_on_hand"])
    new_quantity = int(product.quantity_on_hand)

    session.add(StockMovement(
        stock_code=stock_code,
        quantity_delta=delta,
        quantity_after=new_quantity,
        movement_type=movement_type,
        reference_sale_id=reference_sale_id,
        note=note,
        occurred_at=utcnow(),
    ))

    _manage_low_stock_alert(session, product, new_quantity)
    session.flush()
    return new_quantity


def stock_paths(stock_codes) -> list[str]:
    paths = [INVENTORY_PATH, LOW_STOCK_ALERTS_PATH]
    paths.extend(product_path(code) for code in stock_codes)
    return paths


def adjust_stock(stock_code: str, delta: int, note: str | None = None, *, session=None) -> Product:
    """
    Manual stock adjustment (counts, breakage, supplier deliveries).

    Own transaction; notifications after commit.
    """
    session = _session(session)

    def _op():
        get_product(stock_code, session=session)
        apply_stock_delta(stock_code, delta, MOVEMENT_ADJUSTMENT, note=note, session=session)
        return get_product(stock_code, session=session)

    product = run_in_transaction(session, _op)

    notify_stock_changed({product.stock_code: product.quantity_on_hand})
    invalidate_views(stock_paths([product.stock_code]))
    return product


def register_product(
    *,
    stock_code: str,
    name: str,
    sale_price_cents: int | None = None,
    vat_rate_bps: int = 0,
    min_stock_level: int = 0,
    opening_quantity: int = 0,
    session=None,
) -> Product:
    """
    Create a stock entry at zero and book the opening quantity as an
    adjustment, so every unit on hand is backed by a movement.
    """
    session = _session(session)

    stock_code = (stock_code or "").strip()
    name = (name or "").strip()
    if not stock_code:
        raise ValidationError("stock_code is required")
    if not name:
        raise ValidationError("name is required")
    if opening_quantity < 0:
        raise ValidationError("opening_quantity must be >= 0")
    if min_stock_level < 0:
        raise ValidationError("min_stock_level must be >= 0")
    if sale_price_cents is not None and sale_price_cents < 0:
        raise ValidationError("sale_price_cents must be >= 0")
    if not 0 <= vat_rate_bps <= 10000:
        raise ValidationError("vat_rate_bps must be between 0 and 10000")

    def _op():
        existing = session.query(Product).filter_by(stock_code=stock_code).first()
        if existing is not None:
            raise ValidationError(
                f"Stock code {stock_code} already exists", details={"stock_code": stock_code}
            )

        product = Product(
            stock_code=stock_code,
            name=name,
            sale_price_cents=sale_price_cents,
            vat_rate_bps=vat_rate_bps,
            min_stock_level=min_stock_level,
            quantity_on_hand=0,
        )
        session.add(product)
        session.flush()

        if opening_quantity:
            apply_stock_delta(
                stock_code, opening_quantity, MOVEMENT_ADJUSTMENT, note="Opening stock", session=session
            )
        else:
            _manage_low_stock_alert(session, product, 0)
        return product

    product = run_in_transaction(session, _op)

    notify_stock_changed({product.stock_code: product.quantity_on_hand})
    invalidate_views(stock_paths([product.stock_code]))
    return product


def list_stock_movements(stock_code: str, *, limit: int = 200, session=None) -> list[StockMovement]:
    session = _session(session)
    get_product(stock_code, session=session, include_archived=True)

    return session.query(StockMovement).filter_by(
        stock_code=stock_code,
    ).order_by(
        StockMovement.occurred_at.desc(),
        StockMovement.id.desc(),
    ).limit(limit).all()


def list_low_stock_alerts(*, status: str | None = ALERT_ACTIVE, session=None) -> list[LowStockAlert]:
    session = _session(session)
    query = session.query(LowStockAlert)
    if status is not None:
        if status not in (ALERT_ACTIVE, ALERT_RESOLVED):
            raise ValidationError(f"Invalid alert status '{status}'")
        query = query.filter(LowStockAlert.status == status)
    return query.order_by(LowStockAlert.created_at.desc(), LowStockAlert.id.desc()).all()
