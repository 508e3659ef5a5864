"""
Aggregation query tests.

Verifies:
- Daily summary totals over one UTC day
- Weekly trend buckets, previous-period comparison and change_percent
- Forecast and recent sales listing
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from pos_ledger.services import reporting_service, reversal_service, sales_service
from pos_ledger.validation import PaymentInput, ValidationError

from conftest import cash, item


def _sale(session, outlet, product, cashier_id, receipt, amount, sold_at, payments=None, quantity=1):
    amount = Decimal(amount)
    return sales_service.record_sale(
        session,
        outlet_id=outlet.id,
        cashier_id=cashier_id,
        receipt_number=receipt,
        items=[item(product, quantity, unit_price=amount / quantity)],
        payments=payments or [cash(amount)],
        sold_at=sold_at,
    )


class TestDailySummary:
    def test_totals_for_one_day(self, db_session, shift, outlet, product, cashier_id):
        day = datetime(2025, 1, 6, 9, 0)
        _sale(db_session, outlet, product, cashier_id, "D-1", "50000", day, quantity=2)
        _sale(
            db_session, outlet, product, cashier_id, "D-2", "30000", day.replace(hour=15),
            payments=[cash(Decimal("10000")), PaymentInput("QRIS", Decimal("20000"))],
        )
        _sale(db_session, outlet, product, cashier_id, "NEXT-DAY", "99000", datetime(2025, 1, 7, 0, 0))

        summary = reporting_service.daily_summary(db_session, date(2025, 1, 6), outlet.id)

        assert summary["date"] == "2025-01-06T00:00:00Z"
        totals = summary["totals"]
        assert totals["total_net"] == Decimal("80000.00")
        assert totals["total_gross"] == Decimal("80000.00")
        assert totals["total_items"] == 3
        assert totals["total_cash"] == Decimal("60000.00")
        assert totals["total_tax"] == Decimal("0.00")
        assert [row["receipt_number"] for row in summary["sales"]] == ["D-2", "D-1"]
        assert summary["sales"][0]["payment_methods"] == ["CASH", "QRIS"]
        assert summary["sales"][1]["items"] == [
            {"product_name": "Kopi Susu", "quantity": 2, "unit_price": Decimal("25000.00")}
        ]

    def test_includes_reversed_sales_with_status(self, db_session, shift, outlet, product, cashier_id):
        day = datetime(2025, 1, 6, 9, 0)
        sale = _sale(db_session, outlet, product, cashier_id, "D-V", "40000", day)
        reversal_service.void_sale(db_session, sale.id, "mistake", cashier_id)

        summary = reporting_service.daily_summary(db_session, date(2025, 1, 6))
        assert [row["status"] for row in summary["sales"]] == ["VOIDED"]

    def test_empty_day(self, db_session, outlet):
        summary = reporting_service.daily_summary(db_session, date(2024, 12, 31), outlet.id)
        assert summary["sales"] == []
        assert summary["totals"]["total_net"] == Decimal("0.00")


class TestWeeklyTrend:
    NOW = datetime(2025, 1, 10, 18, 0)

    def test_series_and_comparison(self, db_session, shift, outlet, product, cashier_id):
        _sale(db_session, outlet, product, cashier_id, "W-1", "100000", datetime(2025, 1, 4, 8, 0))
        _sale(db_session, outlet, product, cashier_id, "W-2", "50000", datetime(2025, 1, 10, 8, 0))
        _sale(db_session, outlet, product, cashier_id, "W-3", "50000", datetime(2025, 1, 10, 9, 0))
        _sale(db_session, outlet, product, cashier_id, "P-1", "100000", datetime(2025, 1, 3, 23, 0))
        voided = _sale(db_session, outlet, product, cashier_id, "W-V", "70000", datetime(2025, 1, 9, 8, 0))
        reversal_service.void_sale(db_session, voided.id, "mistake", cashier_id)

        trend = reporting_service.weekly_trend(db_session, outlet.id, now=self.NOW)

        series = trend["series"]
        assert len(series) == 7
        assert series[0]["date"] == "2025-01-04T00:00:00Z"
        assert series[-1]["date"] == "2025-01-10T00:00:00Z"
        assert series[0]["total_net"] == Decimal("100000.00")
        assert series[-1]["transaction_count"] == 2
        assert series[5]["transaction_count"] == 0

        summary = trend["summary"]
        assert summary["current_total_net"] == Decimal("200000.00")
        assert summary["previous_total_net"] == Decimal("100000.00")
        assert summary["current_transaction_count"] == 3
        assert summary["previous_transaction_count"] == 1
        assert summary["change_percent"] == Decimal("100.00")

    def test_change_percent_when_previous_empty(self, db_session, shift, outlet, product, cashier_id):
        _sale(db_session, outlet, product, cashier_id, "W-1", "1000", datetime(2025, 1, 9, 8, 0))
        trend = reporting_service.weekly_trend(db_session, outlet.id, now=self.NOW)
        assert trend["summary"]["change_percent"] == Decimal("100.00")

    def test_change_percent_when_both_empty(self, db_session, outlet):
        trend = reporting_service.weekly_trend(db_session, outlet.id, now=self.NOW)
        assert trend["summary"]["change_percent"] == Decimal("0.00")

    def test_negative_change_rounded(self, db_session, shift, outlet, product, cashier_id):
        _sale(db_session, outlet, product, cashier_id, "P-1", "30000", datetime(2025, 1, 1, 8, 0))
        _sale(db_session, outlet, product, cashier_id, "W-1", "10000", datetime(2025, 1, 8, 8, 0))
        trend = reporting_service.weekly_trend(db_session, outlet.id, now=self.NOW)
        assert trend["summary"]["change_percent"] == Decimal("-66.67")

    def test_payment_method_filter(self, db_session, shift, outlet, product, cashier_id):
        _sale(db_session, outlet, product, cashier_id, "W-C", "1000", datetime(2025, 1, 9, 8, 0))
        _sale(
            db_session, outlet, product, cashier_id, "W-Q", "2000", datetime(2025, 1, 9, 9, 0),
            payments=[PaymentInput("QRIS", Decimal("2000"))],
        )
        trend = reporting_service.weekly_trend(db_session, outlet.id, payment_method="qris", now=self.NOW)
        assert trend["summary"]["current_total_net"] == Decimal("2000.00")

    def test_unknown_payment_method(self, db_session):
        with pytest.raises(ValidationError):
            reporting_service.weekly_trend(db_session, payment_method="GOLD", now=self.NOW)


class TestForecastAndRecent:
    def test_forecast_averages_previous_week(self, db_session, shift, outlet, product, cashier_id):
        now = datetime(2025, 1, 10, 7, 0)
        _sale(db_session, outlet, product, cashier_id, "F-1", "49000", datetime(2025, 1, 3, 8, 0))
        _sale(db_session, outlet, product, cashier_id, "F-2", "21000", datetime(2025, 1, 9, 8, 0))
        _sale(db_session, outlet, product, cashier_id, "F-TODAY", "500000", datetime(2025, 1, 10, 6, 0))
        _sale(db_session, outlet, product, cashier_id, "F-OLD", "500000", datetime(2025, 1, 2, 23, 0))

        forecast = reporting_service.forecast_next_day(db_session, outlet.id, now=now)
        assert forecast == {"suggested_float": Decimal("10000.00")}

    def test_forecast_without_history(self, db_session, outlet):
        assert reporting_service.forecast_next_day(db_session, outlet.id) == {"suggested_float": Decimal("0.00")}

    def test_recent_sales_newest_first(self, db_session, shift, outlet, product, cashier_id):
        _sale(db_session, outlet, product, cashier_id, "R-1", "1000", datetime(2025, 1, 1, 8, 0))
        _sale(db_session, outlet, product, cashier_id, "R-2", "1000", datetime(2025, 1, 2, 8, 0), quantity=2)

        recent = reporting_service.list_recent_sales(db_session, outlet.id, limit=1)
        assert len(recent) == 1
        assert recent[0]["receipt_number"] == "R-2"
        assert recent[0]["total_items"] == 2

    def test_recent_limit_bounds(self, db_session):
        with pytest.raises(ValidationError):
            reporting_service.list_recent_sales(db_session, limit=51)
