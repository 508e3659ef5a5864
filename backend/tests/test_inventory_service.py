"""
Inventory ledger tests.

Verifies:
- First touch creates the record with quantity = delta
- Balances are not clamped at zero
- Every adjust appends one movement and SUM(movements) == quantity
- Manual adjustments validate their movement type
- A writer that loses the first-insert race still applies its delta
"""

from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from pos_ledger.extensions import db
from pos_ledger.models import InventoryRecord, Outlet, Product, StockMovement
from pos_ledger.services import inventory_service
from pos_ledger.validation import NotFound, ValidationError

from conftest import stock


class TestAdjust:
    def test_first_touch_creates_record(self, db_session, product, outlet):
        record = inventory_service.adjust(db_session, product.id, outlet.id, 12, "PURCHASE", 1, "receive")
        db_session.commit()

        assert record.quantity == 12
        assert db_session.query(InventoryRecord).count() == 1
        movement = db_session.query(StockMovement).one()
        assert movement.quantity == 12
        assert movement.type == "PURCHASE"
        assert movement.inventory_id == record.id
        assert movement.created_by_id == 1

    def test_subsequent_adjust_updates_same_record(self, db_session, product, outlet):
        inventory_service.adjust(db_session, product.id, outlet.id, 10, "INITIAL")
        record = inventory_service.adjust(db_session, product.id, outlet.id, -3, "SALE")
        db_session.commit()

        assert record.quantity == 7
        assert db_session.query(InventoryRecord).count() == 1
        assert db_session.query(StockMovement).count() == 2

    def test_quantity_may_go_negative(self, db_session, product, outlet):
        record = inventory_service.adjust(db_session, product.id, outlet.id, -4, "SALE")
        db_session.commit()

        assert record.quantity == -4
        assert inventory_service.get_quantity_on_hand(db_session, product.id, outlet.id) == -4

    def test_outlets_are_partitioned(self, db_session, product, outlet, other_outlet):
        inventory_service.adjust(db_session, product.id, outlet.id, 5, "INITIAL")
        inventory_service.adjust(db_session, product.id, other_outlet.id, 9, "INITIAL")
        db_session.commit()

        assert inventory_service.get_quantity_on_hand(db_session, product.id, outlet.id) == 5
        assert inventory_service.get_quantity_on_hand(db_session, product.id, other_outlet.id) == 9

    def test_untouched_pair_has_zero_on_hand(self, db_session, product, outlet):
        assert inventory_service.get_quantity_on_hand(db_session, product.id, outlet.id) == 0

    def test_unknown_movement_type_rejected(self, db_session, product, outlet):
        with pytest.raises(ValidationError):
            inventory_service.adjust(db_session, product.id, outlet.id, 1, "THEFT")


class TestConservation:
    def test_movement_sum_matches_balance(self, db_session, product, outlet):
        for delta, kind in [(20, "INITIAL"), (-3, "SALE"), (-5, "SALE"), (3, "ADJUSTMENT"), (10, "PURCHASE")]:
            inventory_service.adjust(db_session, product.id, outlet.id, delta, kind)
        db_session.commit()

        balance = inventory_service.get_quantity_on_hand(db_session, product.id, outlet.id)
        assert balance == 25
        assert inventory_service.movement_balance(db_session, product.id, outlet.id) == balance
        assert inventory_service.verify_stock_conservation(db_session) == []

    def test_verify_reports_drift(self, db_session, product, outlet):
        record = inventory_service.adjust(db_session, product.id, outlet.id, 5, "INITIAL")
        record.quantity = 8
        db_session.commit()

        mismatches = inventory_service.verify_stock_conservation(db_session, outlet.id)
        assert mismatches == [
            {"product_id": product.id, "outlet_id": outlet.id, "quantity": 8, "movement_total": 5}
        ]


class TestRecordStockAdjustment:
    def test_purchase_is_committed(self, db_session, product, outlet):
        record = stock(db_session, product, outlet, 15, "PURCHASE")

        db_session.rollback()
        assert inventory_service.get_quantity_on_hand(db_session, product.id, outlet.id) == 15
        assert record.id is not None

    def test_purchase_must_add_stock(self, db_session, product, outlet):
        with pytest.raises(ValidationError):
            stock(db_session, product, outlet, -2, "PURCHASE")

    def test_sale_type_not_allowed_by_hand(self, db_session, product, outlet):
        with pytest.raises(ValidationError):
            stock(db_session, product, outlet, -2, "SALE")

    def test_zero_delta_rejected(self, db_session, product, outlet):
        with pytest.raises(ValidationError):
            stock(db_session, product, outlet, 0, "ADJUSTMENT")

    def test_unknown_product_rejected_without_side_effects(self, db_session, outlet):
        with pytest.raises(NotFound):
            inventory_service.record_stock_adjustment(
                db_session, product_id=999, outlet_id=outlet.id, delta=3, movement_type="PURCHASE"
            )
        assert db_session.query(StockMovement).count() == 0


class TestListings:
    def test_list_inventory_flags_low_rows(self, db_session, product, low_stock_product, outlet):
        stock(db_session, product, outlet, 50)
        stock(db_session, low_stock_product, outlet, 3)

        rows = inventory_service.list_inventory(db_session, outlet.id)
        by_sku = {row["sku"]: row for row in rows}
        assert by_sku["KOPI-01"]["is_low"] is False
        assert by_sku["TEH-01"]["is_low"] is True

        low_rows = inventory_service.list_inventory(db_session, outlet.id, low_only=True)
        assert [row["sku"] for row in low_rows] == ["TEH-01"]

    def test_list_movements_newest_first(self, db_session, product, outlet):
        stock(db_session, product, outlet, 10, "INITIAL")
        stock(db_session, product, outlet, 4, "PURCHASE")

        movements = inventory_service.list_movements(db_session, outlet_id=outlet.id)
        assert [m.type for m in movements] == ["PURCHASE", "INITIAL"]

        purchases = inventory_service.list_movements(db_session, movement_type="purchase")
        assert len(purchases) == 1


# =============================================================================
# FIRST-TOUCH CONTENTION
# =============================================================================


class TestConcurrentFirstTouch:
    """
    Two writers touch a (product, outlet) pair that has no record yet.
    Runs on a file-backed database so each session gets its own connection.
    """

    @pytest.fixture
    def sessions(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'contention.sqlite3'}")
        db.metadata.create_all(engine)
        factory = sessionmaker(bind=engine)
        yield factory
        engine.dispose()

    def test_lost_insert_race_falls_back_to_update(self, sessions, monkeypatch):
        session = sessions()
        outlet = Outlet(code="SRG", name="Cabang Serang", is_active=True)
        product = Product(sku="GULA-01", name="Gula Aren", price=Decimal("15000.00"), min_stock=0)
        session.add_all([outlet, product])
        session.commit()
        product_id, outlet_id = product.id, outlet.id

        original_increment = inventory_service._increment
        raced = []

        def increment_after_competitor(s, *args):
            # The competing writer inserts the record between our zero-row
            # UPDATE and our INSERT.
            if not raced:
                raced.append(True)
                other = sessions()
                inventory_service.adjust(other, product_id, outlet_id, 5, "PURCHASE", 2, "receive")
                other.commit()
                other.close()
                return 0
            return original_increment(s, *args)

        monkeypatch.setattr(inventory_service, "_increment", increment_after_competitor)

        record = inventory_service.adjust(session, product_id, outlet_id, 3, "ADJUSTMENT", 1, "count")
        session.commit()

        assert raced == [True]
        assert record.quantity == 8
        assert session.query(InventoryRecord).count() == 1
        assert sorted(m.quantity for m in session.query(StockMovement).all()) == [3, 5]
        assert inventory_service.verify_stock_conservation(session) == []
        session.close()
