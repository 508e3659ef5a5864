"""
HTTP API tests.

Verifies:
- Requests without an acting user return 401
- Ledger errors map to their status codes with {"error", "details"}
- The sale round trip over HTTP: open shift, record, void, summaries
"""

from decimal import Decimal

import pytest

from pos_ledger.models import Sale
from pos_ledger.services import inventory_service

from conftest import actor_headers, stock


def _sale_payload(outlet, product, receipt="HTTP-0001", **overrides):
    payload = {
        "outlet_id": outlet.id,
        "receipt_number": receipt,
        "items": [
            {"product_id": product.id, "quantity": 2, "unit_price": 85000, "discount": 10000},
        ],
        "payments": [{"method": "cash", "amount": 160000}],
    }
    payload.update(overrides)
    return payload


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestActorRequired:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/shifts/open"),
            ("GET", "/api/shifts/active"),
            ("POST", "/api/sales/"),
            ("POST", "/api/sales/1/void"),
            ("POST", "/api/sales/1/refund"),
            ("GET", "/api/sales/daily-summary"),
            ("GET", "/api/inventory/"),
            ("POST", "/api/inventory/adjust"),
            ("GET", "/api/audit/"),
        ],
    )
    def test_requires_actor(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_non_numeric_actor_rejected(self, client, db_session):
        resp = client.get("/api/audit/", headers={"X-User-Id": "alice"})
        assert resp.status_code == 401

    def test_health_is_public(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"


# =============================================================================
# SHIFTS
# =============================================================================


class TestShiftRoutes:
    def test_open_and_close(self, client, db_session, outlet):
        resp = client.post(
            "/api/shifts/open",
            json={"outlet_id": outlet.id, "opening_cash": "100000"},
            headers=actor_headers(),
        )
        assert resp.status_code == 201
        shift_id = resp.json["shift"]["id"]

        resp = client.get(f"/api/shifts/active?outlet_id={outlet.id}", headers=actor_headers())
        assert resp.json["shift"]["id"] == shift_id

        resp = client.post(
            "/api/shifts/open", json={"outlet_id": outlet.id}, headers=actor_headers(8)
        )
        assert resp.status_code == 409

        resp = client.post(
            f"/api/shifts/{shift_id}/close", json={"closing_cash": 100000}, headers=actor_headers()
        )
        assert resp.status_code == 200
        assert resp.json["shift"]["status"] == "CLOSED"
        assert Decimal(resp.json["shift"]["difference"]) == 0

    def test_close_requires_amount(self, client, db_session, shift):
        resp = client.post(f"/api/shifts/{shift.id}/close", json={}, headers=actor_headers())
        assert resp.status_code == 400


# =============================================================================
# SALES
# =============================================================================


class TestSaleRoutes:
    def test_record_void_round_trip(self, client, db_session, shift, outlet, product):
        stock(db_session, product, outlet, 10)

        resp = client.post("/api/sales/", json=_sale_payload(outlet, product), headers=actor_headers())
        assert resp.status_code == 201
        sale = resp.json["sale"]
        assert sale["receipt_number"] == "HTTP-0001"
        assert Decimal(sale["total_net"]) == Decimal("160000")
        assert inventory_service.get_quantity_on_hand(db_session, product.id, outlet.id) == 8

        resp = client.get(f"/api/sales/{sale['id']}", headers=actor_headers())
        assert resp.status_code == 200
        assert resp.json["sale"]["cashier_id"] == 7
        assert resp.json["sale"]["payments"][0]["method"] == "CASH"

        resp = client.post(
            f"/api/sales/{sale['id']}/void", json={"reason": "dup payment"}, headers=actor_headers()
        )
        assert resp.status_code == 200
        assert resp.json["sale"]["status"] == "VOIDED"
        assert resp.json["sale"]["restocked_quantity"] == 2
        assert inventory_service.get_quantity_on_hand(db_session, product.id, outlet.id) == 10

        resp = client.post(
            f"/api/sales/{sale['id']}/void", json={"reason": "dup payment"}, headers=actor_headers()
        )
        assert resp.status_code == 409
        assert resp.json["details"]["status"] == "VOIDED"

    def test_refund_route(self, client, db_session, shift, outlet, product):
        resp = client.post("/api/sales/", json=_sale_payload(outlet, product), headers=actor_headers())
        sale_id = resp.json["sale"]["id"]

        resp = client.post(
            f"/api/sales/{sale_id}/refund", json={"amount": 150000}, headers=actor_headers()
        )
        assert resp.status_code == 200
        assert Decimal(resp.json["sale"]["refund_amount"]) == Decimal("150000")
        assert resp.json["sale"]["status"] == "REFUNDED"

    def test_record_without_shift_is_forbidden(self, client, db_session, outlet, product):
        resp = client.post("/api/sales/", json=_sale_payload(outlet, product), headers=actor_headers())
        assert resp.status_code == 403
        assert db_session.query(Sale).count() == 0

    def test_payment_mismatch_is_bad_request(self, client, db_session, shift, outlet, product):
        payload = _sale_payload(outlet, product, payments=[{"method": "CASH", "amount": 1000}])
        resp = client.post("/api/sales/", json=payload, headers=actor_headers())
        assert resp.status_code == 400
        assert resp.json["details"]["paid"] == "1000.00"

    def test_duplicate_receipt_conflicts(self, client, db_session, shift, outlet, product):
        client.post("/api/sales/", json=_sale_payload(outlet, product), headers=actor_headers())
        resp = client.post("/api/sales/", json=_sale_payload(outlet, product), headers=actor_headers())
        assert resp.status_code == 409

    def test_invalid_payload(self, client, db_session, shift, outlet, product):
        payload = _sale_payload(outlet, product, items=[{"product_id": product.id, "quantity": 0, "unit_price": 1}])
        resp = client.post("/api/sales/", json=payload, headers=actor_headers())
        assert resp.status_code == 400

    def test_tax_uses_configured_default_rate(self, client, db_session, shift, outlet, product):
        payload = _sale_payload(
            outlet,
            product,
            items=[{"product_id": product.id, "quantity": 1, "unit_price": 100000}],
            payments=[{"method": "DEBIT", "amount": 111000}],
            apply_tax=True,
        )
        resp = client.post("/api/sales/", json=payload, headers=actor_headers())
        assert resp.status_code == 201
        assert Decimal(resp.json["sale"]["tax_amount"]) == Decimal("11000")

    def test_non_object_body_is_bad_request(self, client, db_session, shift, outlet):
        resp = client.post("/api/sales/", json=[1, 2], headers=actor_headers())
        assert resp.status_code == 400

        resp = client.post("/api/shifts/open", json="BSD", headers=actor_headers())
        assert resp.status_code == 400

        resp = client.post(f"/api/shifts/{shift.id}/close", json=[100000], headers=actor_headers())
        assert resp.status_code == 400

    def test_daily_summary_uses_utc_day_of_offset_datetime(self, client, db_session, shift, outlet, product):
        payload = _sale_payload(outlet, product, sold_at="2025-12-04T03:00:00Z")
        assert client.post("/api/sales/", json=payload, headers=actor_headers()).status_code == 201

        resp = client.get(
            "/api/sales/daily-summary",
            query_string={"date": "2025-12-03T22:00:00-05:00", "outlet_id": outlet.id},
            headers=actor_headers(),
        )
        assert resp.status_code == 200
        assert resp.json["date"] == "2025-12-04T00:00:00Z"
        assert [s["receipt_number"] for s in resp.json["sales"]] == ["HTTP-0001"]

    def test_missing_sale_is_not_found(self, client, db_session, shift):
        resp = client.post("/api/sales/999/void", json={"reason": "nope"}, headers=actor_headers())
        assert resp.status_code == 404

    def test_dashboard_reads(self, client, db_session, shift, outlet, product):
        client.post("/api/sales/", json=_sale_payload(outlet, product), headers=actor_headers())

        resp = client.get(f"/api/sales/daily-summary?outlet_id={outlet.id}", headers=actor_headers())
        assert resp.status_code == 200
        assert Decimal(resp.json["totals"]["total_net"]) == Decimal("160000")

        resp = client.get("/api/sales/daily-summary?date=not-a-date", headers=actor_headers())
        assert resp.status_code == 400

        resp = client.get(f"/api/sales/weekly-trend?outlet_id={outlet.id}", headers=actor_headers())
        assert resp.status_code == 200
        assert len(resp.json["series"]) == 7

        resp = client.get(f"/api/sales/recent?outlet_id={outlet.id}", headers=actor_headers())
        assert resp.json["sales"][0]["receipt_number"] == "HTTP-0001"

        resp = client.get(f"/api/sales/forecast?outlet_id={outlet.id}", headers=actor_headers())
        assert resp.status_code == 200
        assert "suggested_float" in resp.json


# =============================================================================
# INVENTORY / AUDIT
# =============================================================================


class TestInventoryRoutes:
    def test_adjust_and_list(self, client, db_session, outlet, product):
        resp = client.post(
            "/api/inventory/adjust",
            json={"product_id": product.id, "outlet_id": outlet.id, "delta": 12, "type": "PURCHASE"},
            headers=actor_headers(),
        )
        assert resp.status_code == 201
        assert resp.json["inventory"]["quantity"] == 12

        resp = client.get(f"/api/inventory/?outlet_id={outlet.id}", headers=actor_headers())
        assert resp.json["items"][0]["quantity"] == 12

        resp = client.get(f"/api/inventory/movements?outlet_id={outlet.id}", headers=actor_headers())
        assert resp.json["movements"][0]["created_by_id"] == 7

    def test_adjust_rejects_sale_type(self, client, db_session, outlet, product):
        resp = client.post(
            "/api/inventory/adjust",
            json={"product_id": product.id, "outlet_id": outlet.id, "delta": -1, "type": "SALE"},
            headers=actor_headers(),
        )
        assert resp.status_code == 400

    def test_low_stock_flow(self, client, db_session, shift, outlet, low_stock_product):
        stock(db_session, low_stock_product, outlet, 6)
        payload = {
            "outlet_id": outlet.id,
            "receipt_number": "LOW-HTTP",
            "items": [{"product_id": low_stock_product.id, "quantity": 6, "unit_price": 20000}],
            "payments": [{"method": "CASH", "amount": 120000}],
        }
        assert client.post("/api/sales/", json=payload, headers=actor_headers()).status_code == 201

        resp = client.get(f"/api/inventory/low-stock?outlet_id={outlet.id}", headers=actor_headers())
        alerts = resp.json["alerts"]
        assert len(alerts) == 1

        resp = client.post(
            f"/api/inventory/low-stock/{alerts[0]['id']}/acknowledge", headers=actor_headers()
        )
        assert resp.status_code == 200
        assert resp.json["alert"]["cleared_at"] is not None

        resp = client.get(f"/api/inventory/low-stock?outlet_id={outlet.id}", headers=actor_headers())
        assert resp.json["alerts"] == []

    def test_adjust_rejects_non_object_body(self, client, db_session, product):
        resp = client.post("/api/inventory/adjust", json=[product.id, 1], headers=actor_headers())
        assert resp.status_code == 400

        resp = client.put(
            f"/api/inventory/products/{product.id}/min-stock", json=3, headers=actor_headers()
        )
        assert resp.status_code == 400

    def test_set_min_stock(self, client, db_session, product):
        resp = client.put(
            f"/api/inventory/products/{product.id}/min-stock", json={"min_stock": 3}, headers=actor_headers()
        )
        assert resp.status_code == 200
        assert resp.json["product"]["min_stock"] == 3

        resp = client.put(
            f"/api/inventory/products/{product.id}/min-stock", json={"min_stock": -1}, headers=actor_headers()
        )
        assert resp.status_code == 400


class TestAuditRoutes:
    def test_audit_trail_of_a_sale(self, client, db_session, shift, outlet, product):
        client.post("/api/sales/", json=_sale_payload(outlet, product), headers=actor_headers())

        resp = client.get(f"/api/audit/?outlet_id={outlet.id}", headers=actor_headers())
        assert resp.status_code == 200
        actions = [entry["action"] for entry in resp.json["entries"]]
        assert "SHIFT_OPEN" in actions
        assert "SALE_RECORD" in actions

        resp = client.get("/api/audit/?start=yesterday", headers=actor_headers())
        assert resp.status_code == 400
