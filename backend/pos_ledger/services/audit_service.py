# Overview: Append-only audit log writer and read API.

from __future__ import annotations

from datetime import datetime

from ..models import AuditLogEntry
from pos_ledger.time_utils import utcnow

"""
Audit Log Invariants (authoritative)

- Append-only: rows are never updated or deleted.
- Written inside the same DB transaction as the mutation it describes;
  write_audit_log() flushes but never commits.
- A failed write propagates and aborts the surrounding operation.
- occurred_at is business time; created_at is system time (DB default).
"""

ACTION_SHIFT_OPEN = "SHIFT_OPEN"
ACTION_SHIFT_CLOSE = "SHIFT_CLOSE"
ACTION_SALE_RECORD = "SALE_RECORD"
ACTION_SALE_VOID = "SALE_VOID"
ACTION_SALE_REFUND = "SALE_REFUND"
ACTION_LOW_STOCK_TRIGGER = "LOW_STOCK_TRIGGER"

AUDIT_ACTIONS = (
    ACTION_SHIFT_OPEN,
    ACTION_SHIFT_CLOSE,
    ACTION_SALE_RECORD,
    ACTION_SALE_VOID,
    ACTION_SALE_REFUND,
    ACTION_LOW_STOCK_TRIGGER,
)


def write_audit_log(
    session,
    *,
    action: str,
    actor_id: int | None,
    outlet_id: int | None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    details: dict | None = None,
    occurred_at: datetime | None = None,
) -> AuditLogEntry:
    if action not in AUDIT_ACTIONS:
        raise ValueError(f"unknown audit action: {action}")

    entry = AuditLogEntry(
        action=action,
        actor_id=actor_id,
        outlet_id=outlet_id,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
        occurred_at=occurred_at or utcnow(),
    )
    session.add(entry)
    session.flush()
    return entry


def list_audit_log(
    session,
    *,
    outlet_id: int | None = None,
    action: str | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 100,
) -> list[AuditLogEntry]:
    """Newest first. start is inclusive, end is exclusive."""
    query = session.query(AuditLogEntry)
    if outlet_id is not None:
        query = query.filter(AuditLogEntry.outlet_id == outlet_id)
    if action:
        query = query.filter(AuditLogEntry.action == action.upper())
    if entity_type:
        query = query.filter(AuditLogEntry.entity_type == entity_type.upper())
    if entity_id is not None:
        query = query.filter(AuditLogEntry.entity_id == entity_id)
    if start is not None:
        query = query.filter(AuditLogEntry.occurred_at >= start)
    if end is not None:
        query = query.filter(AuditLogEntry.occurred_at < end)
    return (
        query.order_by(AuditLogEntry.occurred_at.desc(), AuditLogEntry.id.desc())
        .limit(max(1, min(limit, 500)))
        .all()
    )
