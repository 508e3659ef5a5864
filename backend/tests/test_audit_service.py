"""Audit log writer tests."""

from datetime import datetime

import pytest

from pos_ledger.models import AuditLogEntry
from pos_ledger.services import audit_service


class TestWriteAuditLog:
    def test_write_flushes_without_commit(self, db_session, outlet):
        entry = audit_service.write_audit_log(
            db_session,
            action="SALE_RECORD",
            actor_id=5,
            outlet_id=outlet.id,
            entity_type="SALE",
            entity_id=1,
            details={"receipt_number": "R-1"},
        )
        assert entry.id is not None

        db_session.rollback()
        assert db_session.query(AuditLogEntry).count() == 0

    def test_unknown_action_rejected(self, db_session, outlet):
        with pytest.raises(ValueError):
            audit_service.write_audit_log(db_session, action="SALE_DELETE", actor_id=1, outlet_id=outlet.id)

    def test_details_round_trip_as_json(self, db_session, outlet):
        audit_service.write_audit_log(
            db_session,
            action="LOW_STOCK_TRIGGER",
            actor_id=None,
            outlet_id=outlet.id,
            entity_type="LOW_STOCK_ALERT",
            entity_id=9,
            details={"product_id": 3, "quantity": 0},
        )
        db_session.commit()

        stored = db_session.query(AuditLogEntry).one()
        assert stored.details == {"product_id": 3, "quantity": 0}
        assert stored.to_dict()["action"] == "LOW_STOCK_TRIGGER"


class TestListAuditLog:
    def test_filters_and_order(self, db_session, outlet, other_outlet):
        early = datetime(2025, 1, 1, 8, 0)
        late = datetime(2025, 1, 1, 9, 0)
        audit_service.write_audit_log(
            db_session, action="SHIFT_OPEN", actor_id=1, outlet_id=outlet.id, occurred_at=early
        )
        audit_service.write_audit_log(
            db_session, action="SALE_RECORD", actor_id=1, outlet_id=outlet.id, occurred_at=late
        )
        audit_service.write_audit_log(
            db_session, action="SALE_RECORD", actor_id=2, outlet_id=other_outlet.id, occurred_at=late
        )
        db_session.commit()

        entries = audit_service.list_audit_log(db_session, outlet_id=outlet.id)
        assert [e.action for e in entries] == ["SALE_RECORD", "SHIFT_OPEN"]

        sales = audit_service.list_audit_log(db_session, action="sale_record")
        assert len(sales) == 2

        windowed = audit_service.list_audit_log(db_session, start=early, end=late)
        assert [e.action for e in windowed] == ["SHIFT_OPEN"]
