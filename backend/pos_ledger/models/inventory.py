from __future__ import annotations

from ..extensions import db
from pos_ledger.time_utils import to_utc_z

class Product(db.Model):
    """
    Catalogue product.

    The ledger only reads price, min_stock and is_taxable from here;
    catalogue maintenance lives outside this service.
    """
    __tablename__ = "products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)

    price = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    # Low-stock threshold; 0 disables alerts for this product
    min_stock = db.Column(db.Integer, nullable=False, default=0)
    is_taxable = db.Column(db.Boolean, nullable=False, default=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "price": self.price,
            "min_stock": self.min_stock,
            "is_taxable": self.is_taxable,
            "is_active": self.is_active,
        }

class InventoryRecord(db.Model):
    """
    Current stock of one product at one outlet.

    quantity is NOT clamped at zero: overselling leaves a negative balance
    that acts as a backorder signal. The row is only ever changed through an
    atomic `quantity = quantity + delta` update paired with a StockMovement.
    """
    __tablename__ = "inventory_records"
    __table_args__ = (
        db.UniqueConstraint("product_id", "outlet_id", name="uq_inventory_product_outlet"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    cost_price = db.Column(db.Numeric(14, 2), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product")
    outlet = db.relationship("Outlet")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "outlet_id": self.outlet_id,
            "quantity": self.quantity,
            "cost_price": self.cost_price,
            "updated_at": to_utc_z(self.updated_at),
        }

class StockMovement(db.Model):
    """
    Append-only stock ledger row.

    For every (product, outlet): SUM(quantity) over movements == InventoryRecord.quantity.
    Links to sales/refunds are weak back-references for traceability only.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_outlet", "product_id", "outlet_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("inventory_records.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False)

    type = db.Column(db.String(16), nullable=False, index=True)  # SALE, ADJUSTMENT, PURCHASE, INITIAL
    quantity = db.Column(db.Integer, nullable=False)  # signed delta

    reference = db.Column(db.String(64), nullable=True)
    note = db.Column(db.String(255), nullable=True)
    created_by_id = db.Column(db.Integer, nullable=True)

    related_sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    related_refund_id = db.Column(db.Integer, db.ForeignKey("refunds.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    inventory = db.relationship("InventoryRecord", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_id": self.inventory_id,
            "product_id": self.product_id,
            "outlet_id": self.outlet_id,
            "type": self.type,
            "quantity": self.quantity,
            "reference": self.reference,
            "note": self.note,
            "created_by_id": self.created_by_id,
            "related_sale_id": self.related_sale_id,
            "related_refund_id": self.related_refund_id,
            "created_at": to_utc_z(self.created_at),
        }

class LowStockAlert(db.Model):
    """
    Dated low-stock marker for a (product, outlet) pair.

    At most one open (cleared_at IS NULL) alert per pair per UTC day.
    A cleared alert from the same day is reopened instead of duplicated.
    """
    __tablename__ = "low_stock_alerts"
    __table_args__ = (
        db.Index("ix_low_stock_alerts_pair_triggered", "product_id", "outlet_id", "triggered_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)

    triggered_at = db.Column(db.DateTime(timezone=True), nullable=False)
    cleared_at = db.Column(db.DateTime(timezone=True), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    product = db.relationship("Product")
    outlet = db.relationship("Outlet")

    @property
    def is_open(self) -> bool:
        return self.cleared_at is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "outlet_id": self.outlet_id,
            "triggered_at": to_utc_z(self.triggered_at),
            "cleared_at": to_utc_z(self.cleared_at) if self.cleared_at else None,
            "note": self.note,
        }
