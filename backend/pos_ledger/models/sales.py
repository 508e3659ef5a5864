from __future__ import annotations

from ..extensions import db
from pos_ledger.time_utils import to_utc_z

SALE_STATUS_COMPLETED = "COMPLETED"
SALE_STATUS_VOIDED = "VOIDED"
SALE_STATUS_REFUNDED = "REFUNDED"

class Sale(db.Model):
    """
    One completed (or reversed) transaction at one outlet.

    LIFECYCLE:
    - COMPLETED: recorded by the sale ledger (the only initial state)
    - VOIDED / REFUNDED: terminal, set once by the reversal engine

    Sales are never deleted. Only status and updated_at change after creation.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_outlet_status_sold", "outlet_id", "status", "sold_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Caller-supplied, globally unique (replays fail on this constraint)
    receipt_number = db.Column(db.String(64), nullable=False, unique=True)

    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    cashier_id = db.Column(db.Integer, nullable=True, index=True)
    session_id = db.Column(db.Integer, db.ForeignKey("cash_sessions.id"), nullable=True, index=True)

    total_gross = db.Column(db.Numeric(14, 2), nullable=False)
    discount_total = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    tax_rate = db.Column(db.Numeric(5, 2), nullable=True)
    tax_mode = db.Column(db.String(16), nullable=True)
    tax_amount = db.Column(db.Numeric(14, 2), nullable=True)
    total_net = db.Column(db.Numeric(14, 2), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_COMPLETED, index=True)
    void_reason = db.Column(db.String(255), nullable=True)

    sold_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    outlet = db.relationship("Outlet")
    cash_session = db.relationship("CashSession", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleLineItem",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SaleLineItem.id",
    )
    payments = db.relationship(
        "Payment",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="Payment.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    def summary(self) -> dict:
        return {
            "id": self.id,
            "receipt_number": self.receipt_number,
            "total_net": self.total_net,
            "sold_at": to_utc_z(self.sold_at),
            "tax_amount": self.tax_amount,
        }

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "receipt_number": self.receipt_number,
            "outlet_id": self.outlet_id,
            "cashier_id": self.cashier_id,
            "session_id": self.session_id,
            "total_gross": self.total_gross,
            "discount_total": self.discount_total,
            "tax_rate": self.tax_rate,
            "tax_mode": self.tax_mode,
            "tax_amount": self.tax_amount,
            "total_net": self.total_net,
            "status": self.status,
            "void_reason": self.void_reason,
            "sold_at": to_utc_z(self.sold_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }
        if include_lines:
            data["items"] = [item.to_dict() for item in self.items]
            data["payments"] = [payment.to_dict() for payment in self.payments]
        return data

class SaleLineItem(db.Model):
    """Immutable line; its quantity is the source of truth for restocking."""
    __tablename__ = "sale_line_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(14, 2), nullable=False)
    discount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(14, 2), nullable=True)
    total = db.Column(db.Numeric(14, 2), nullable=False)  # unit_price * quantity - discount

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "discount": self.discount,
            "tax_amount": self.tax_amount,
            "total": self.total,
        }

class Payment(db.Model):
    """
    Tender recorded against a sale (captured elsewhere, only recorded here).

    TENDER TYPES: CASH, QRIS, DEBIT, CREDIT, TRANSFER.
    Split payments are multiple rows; their sum reconciles with Sale.total_net.
    """
    __tablename__ = "payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    method = db.Column(db.String(16), nullable=False, index=True)
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    reference = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "method": self.method,
            "amount": self.amount,
            "reference": self.reference,
        }

class Refund(db.Model):
    """
    Monetary reversal of a sale. One per sale; always covers the whole sale.
    """
    __tablename__ = "refunds"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, unique=True)

    amount = db.Column(db.Numeric(14, 2), nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    approved_by_id = db.Column(db.Integer, nullable=True)
    created_by_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    sale = db.relationship("Sale", backref=db.backref("refund", uselist=False))
    items = db.relationship("RefundLineItem", backref="refund", lazy=True, cascade="all, delete-orphan")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "amount": self.amount,
            "reason": self.reason,
            "approved_by_id": self.approved_by_id,
            "created_by_id": self.created_by_id,
            "created_at": to_utc_z(self.created_at),
            "items": [
                {"sale_line_item_id": item.sale_line_item_id, "quantity": item.quantity}
                for item in self.items
            ],
        }

class RefundLineItem(db.Model):
    __tablename__ = "refund_line_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    refund_id = db.Column(db.Integer, db.ForeignKey("refunds.id"), nullable=False, index=True)
    sale_line_item_id = db.Column(db.Integer, db.ForeignKey("sale_line_items.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
