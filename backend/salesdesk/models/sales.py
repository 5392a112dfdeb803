from __future__ import annotations

from ..extensions import db
from salesdesk.time_utils import to_utc_z


SALE_STATUS_PENDING = "pending"
SALE_STATUS_PENDING_INSTALLMENT = "pending_installment"
SALE_STATUS_COMPLETED = "completed"
SALE_STATUS_CANCELLED = "cancelled"
SALE_STATUS_REFUNDED = "refunded"

SALE_STATUSES = (
    SALE_STATUS_PENDING,
    SALE_STATUS_PENDING_INSTALLMENT,
    SALE_STATUS_COMPLETED,
    SALE_STATUS_CANCELLED,
    SALE_STATUS_REFUNDED,
)

INSTALLMENT_PENDING = "pending"
INSTALLMENT_PAID = "paid"
INSTALLMENT_OVERDUE = "overdue"

INSTALLMENT_STATUSES = (INSTALLMENT_PENDING, INSTALLMENT_PAID, INSTALLMENT_OVERDUE)


class Sale(db.Model):
    """
    Sale header.

    WHY: The header, its items, their stock movements and the installment
    schedule are written in ONE transaction by sales_service.create_sale().
    Readers never observe a sale without items.

    SOFT DELETE: Cancelled sales keep their row (stock movements and paid
    installments still reference it) and get deleted_at set. Every read goes
    through Sale.not_deleted() so archived sales never leak into active views.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_status_date", "status", "sale_date"),
        db.Index("ix_sales_customer_ref", "customer_ref"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Nullable: guest sale
    customer_ref = db.Column(db.String(64), nullable=True)
    sale_date = db.Column(db.DateTime(timezone=True), nullable=False)

    # Amounts in cents; final = subtotal - discount + tax at creation
    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    final_amount_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(32), nullable=False, default=SALE_STATUS_PENDING, index=True)

    is_installment = db.Column(db.Boolean, nullable=False, default=False)
    installment_count = db.Column(db.Integer, nullable=True)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    @classmethod
    def not_deleted(cls):
        """The one visibility predicate for sales."""
        return cls.deleted_at.is_(None)

    def to_dict(self, *, include_children: bool = False) -> dict:
        data = {
            "id": self.id,
            "customer_ref": self.customer_ref,
            "sale_date": to_utc_z(self.sale_date),
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "final_amount_cents": self.final_amount_cents,
            "payment_method": self.payment_method,
            "status": self.status,
            "is_installment": self.is_installment,
            "installment_count": self.installment_count,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
            "version_id": self.version_id,
        }
        if include_children:
            data["items"] = [item.to_dict() for item in self.items]
            data["installments"] = [inst.to_dict() for inst in self.installments]
        return data


class SaleItem(db.Model):
    """Line item; immutable after the sale is created."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    stock_code = db.Column(db.String(64), db.ForeignKey("products.stock_code"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    discount_rate_bps = db.Column(db.Integer, nullable=False, default=0)

    # Computed at creation
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    line_net_cents = db.Column(db.Integer, nullable=False)
    line_tax_cents = db.Column(db.Integer, nullable=False)
    line_gross_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship(
        "Sale",
        backref=db.backref("items", lazy=True, cascade="all, delete-orphan", order_by="SaleItem.id"),
    )
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "stock_code": self.stock_code,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "discount_rate_bps": self.discount_rate_bps,
            "discount_cents": self.discount_cents,
            "line_net_cents": self.line_net_cents,
            "line_tax_cents": self.line_tax_cents,
            "line_gross_cents": self.line_gross_cents,
        }


class Installment(db.Model):
    """
    One scheduled payment of an installment sale.

    STATE MACHINE:
        pending -> paid
        pending -> overdue   (time-based, see installment_service.detect_overdue)
        overdue -> paid

    'paid' is terminal. Amounts of a sale's installments sum to its
    final_amount_cents exactly.
    """
    __tablename__ = "payment_installments"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "sequence", name="uq_installments_sale_sequence"),
        db.CheckConstraint("amount_cents >= 0", name="ck_installments_amount_non_negative"),
        db.Index("ix_installments_status_due", "status", "due_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    sequence = db.Column(db.Integer, nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=INSTALLMENT_PENDING)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    sale = db.relationship(
        "Sale",
        backref=db.backref(
            "installments", lazy=True, cascade="all, delete-orphan", order_by="Installment.sequence"
        ),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "sequence": self.sequence,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "amount_cents": self.amount_cents,
            "status": self.status,
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "version_id": self.version_id,
        }
