from __future__ import annotations

from ..extensions import db
from pos_ledger.time_utils import to_utc_z

SHIFT_STATUS_OPEN = "OPEN"
SHIFT_STATUS_CLOSED = "CLOSED"

class CashSession(db.Model):
    """
    Cashier shift at one outlet.

    LIFECYCLE:
    - OPEN: sales, voids and refunds may be processed for the outlet
    - CLOSED: cash counted, difference recorded; never reopened
    """
    __tablename__ = "cash_sessions"
    __table_args__ = (
        db.Index("ix_cash_sessions_outlet_status", "outlet_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=SHIFT_STATUS_OPEN, index=True)

    opening_cash = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    closing_cash = db.Column(db.Numeric(14, 2), nullable=True)
    expected_cash = db.Column(db.Numeric(14, 2), nullable=True)  # opening + cash sales
    difference = db.Column(db.Numeric(14, 2), nullable=True)  # closing - expected

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    outlet = db.relationship("Outlet")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "outlet_id": self.outlet_id,
            "user_id": self.user_id,
            "status": self.status,
            "opening_cash": self.opening_cash,
            "closing_cash": self.closing_cash,
            "expected_cash": self.expected_cash,
            "difference": self.difference,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "notes": self.notes,
        }
