from __future__ import annotations

from ..extensions import db
from salesdesk.time_utils import to_utc_z


MOVEMENT_SALE = "sale"
MOVEMENT_SALE_RETURN = "sale_return"
MOVEMENT_ADJUSTMENT = "adjustment"
MOVEMENT_TYPES = (MOVEMENT_SALE, MOVEMENT_SALE_RETURN, MOVEMENT_ADJUSTMENT)

ALERT_ACTIVE = "active"
ALERT_RESOLVED = "resolved"


class Product(db.Model):
    """
    Product stock entry.

    STOCK CODE DESIGN DECISION:
    Product.stock_code is the canonical identifier used by sale items,
    movements and alerts. It is unique across the store.

    quantity_on_hand is a stored counter, not ledger-derived. It is written
    ONLY by inventory_service.apply_stock_delta(), which performs a guarded
    single-statement update and appends a StockMovement in the same
    transaction. Nothing else assigns this column.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("quantity_on_hand >= 0", name="ck_products_quantity_non_negative"),
        db.CheckConstraint("min_stock_level >= 0", name="ck_products_min_stock_non_negative"),
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    stock_code = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)

    # Authoritative storage in cents / basis points
    sale_price_cents = db.Column(db.Integer, nullable=True)
    vat_rate_bps = db.Column(db.Integer, nullable=False, default=0)

    quantity_on_hand = db.Column(db.Integer, nullable=False, default=0)
    min_stock_level = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<Product id={self.id} stock_code={self.stock_code!r} on_hand={self.quantity_on_hand}>"

    @property
    def is_low_stock(self) -> bool:
        return self.min_stock_level > 0 and self.quantity_on_hand < self.min_stock_level

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stock_code": self.stock_code,
            "name": self.name,
            "sale_price_cents": self.sale_price_cents,
            "vat_rate_bps": self.vat_rate_bps,
            "quantity_on_hand": self.quantity_on_hand,
            "min_stock_level": self.min_stock_level,
            "is_low_stock": self.is_low_stock,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
        }


class StockMovement(db.Model):
    """
    Append-only journal of stock changes.

    IMMUTABLE: Rows are never updated or deleted. A cancelled sale keeps its
    'sale' movements and gains matching 'sale_return' movements.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_code_occurred", "stock_code", "occurred_at"),
        db.Index("ix_stock_movements_sale_type", "reference_sale_id", "movement_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    stock_code = db.Column(db.String(64), db.ForeignKey("products.stock_code"), nullable=False)

    # Signed: negative for sales, positive for returns
    quantity_delta = db.Column(db.Integer, nullable=False)
    quantity_after = db.Column(db.Integer, nullable=False)

    movement_type = db.Column(db.String(32), nullable=False, index=True)
    reference_sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("movements", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stock_code": self.stock_code,
            "quantity_delta": self.quantity_delta,
            "quantity_after": self.quantity_after,
            "movement_type": self.movement_type,
            "reference_sale_id": self.reference_sale_id,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }


class LowStockAlert(db.Model):
    """At most one 'active' alert exists per stock code at a time."""
    __tablename__ = "low_stock_alerts"
    __table_args__ = (
        db.Index("ix_low_stock_alerts_code_status", "stock_code", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    stock_code = db.Column(db.String(64), db.ForeignKey("products.stock_code"), nullable=False)
    current_stock_at_alert = db.Column(db.Integer, nullable=False)
    min_stock_level_at_alert = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=ALERT_ACTIVE, index=True)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stock_code": self.stock_code,
            "current_stock_at_alert": self.current_stock_at_alert,
            "min_stock_level_at_alert": self.min_stock_level_at_alert,
            "status": self.status,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
            "resolved_at": to_utc_z(self.resolved_at) if self.resolved_at else None,
        }
