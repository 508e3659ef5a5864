from __future__ import annotations

from ..extensions import db
from pos_ledger.time_utils import to_utc_z

class AuditLogEntry(db.Model):
    """
    Append-only narration of domain events.

    Written inside the same DB transaction as the mutation it describes.
    The ledger never reads it back; it exists for external reporting.
    """
    __tablename__ = "audit_log_entries"
    __table_args__ = (
        db.Index("ix_audit_log_outlet_occurred", "outlet_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # SHIFT_OPEN, SHIFT_CLOSE, SALE_RECORD, SALE_VOID, SALE_REFUND, LOW_STOCK_TRIGGER
    action = db.Column(db.String(32), nullable=False, index=True)
    actor_id = db.Column(db.Integer, nullable=True, index=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=True)

    # Generic pointer: SALE, REFUND, LOW_STOCK_ALERT, CASH_SESSION
    entity_type = db.Column(db.String(32), nullable=True)
    entity_id = db.Column(db.Integer, nullable=True)

    details = db.Column(db.JSON, nullable=True)

    # Business vs system time
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "action": self.action,
            "actor_id": self.actor_id,
            "outlet_id": self.outlet_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "details": self.details,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
        }
