# Overview: Read-only aggregations over recorded sales for dashboards and receipts.

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func
from sqlalchemy.orm import selectinload

from ..models import Payment, Sale, SaleLineItem
from ..models.sales import SALE_STATUS_COMPLETED
from ..validation import CENT, PAYMENT_METHODS, ValidationError
from pos_ledger.time_utils import to_utc_z, utc_day_bounds, utcnow

"""
Reporting semantics:
- Days are UTC calendar days: [00:00, next 00:00).
- daily_summary lists every sale of the day whatever its status.
- weekly_trend and forecast_next_day only count COMPLETED sales.
- Reads are not linearizable with concurrent writes.
"""

ZERO = Decimal("0.00")


def _money(value) -> Decimal:
    return Decimal(value or 0).quantize(CENT, rounding=ROUND_HALF_UP)


def daily_summary(session, day: date | None = None, outlet_id: int | None = None) -> dict:
    start, end = utc_day_bounds(day or utcnow())

    query = (
        session.query(Sale)
        .options(
            selectinload(Sale.items).selectinload(SaleLineItem.product),
            selectinload(Sale.payments),
        )
        .filter(Sale.sold_at >= start, Sale.sold_at < end)
    )
    if outlet_id is not None:
        query = query.filter(Sale.outlet_id == outlet_id)
    sales = query.order_by(Sale.sold_at.desc(), Sale.id.desc()).all()

    totals = {
        "total_gross": ZERO,
        "total_discount": ZERO,
        "total_net": ZERO,
        "total_items": 0,
        "total_cash": ZERO,
        "total_tax": ZERO,
    }
    rows = []
    for sale in sales:
        totals["total_gross"] += _money(sale.total_gross)
        totals["total_discount"] += _money(sale.discount_total)
        totals["total_net"] += _money(sale.total_net)
        totals["total_items"] += sale.total_items
        totals["total_cash"] += sum(
            (_money(p.amount) for p in sale.payments if p.method == "CASH"), ZERO
        )
        totals["total_tax"] += _money(sale.tax_amount)

        rows.append(
            {
                "id": sale.id,
                "outlet_id": sale.outlet_id,
                "receipt_number": sale.receipt_number,
                "total_net": _money(sale.total_net),
                "sold_at": to_utc_z(sale.sold_at),
                "status": sale.status,
                "payment_methods": [p.method for p in sale.payments],
                "items": [
                    {
                        "product_name": item.product.name if item.product else "Unknown",
                        "quantity": item.quantity,
                        "unit_price": _money(item.unit_price),
                    }
                    for item in sale.items
                ],
            }
        )

    return {"date": to_utc_z(start), "totals": totals, "sales": rows}


def _completed_sales_between(session, start: datetime, end: datetime, outlet_id, payment_method=None):
    query = session.query(Sale.sold_at, Sale.total_net).filter(
        Sale.status == SALE_STATUS_COMPLETED,
        Sale.sold_at >= start,
        Sale.sold_at < end,
    )
    if outlet_id is not None:
        query = query.filter(Sale.outlet_id == outlet_id)
    if payment_method:
        query = query.filter(
            Sale.payments.any(Payment.method == payment_method)
        )
    return query.all()


def weekly_trend(
    session,
    outlet_id: int | None = None,
    payment_method: str | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Last 7 UTC days (today included) against the 7 days before them.

    change_percent is 100 when the previous period had no sales but the
    current one does, 0 when both are empty.
    """
    if payment_method:
        payment_method = payment_method.upper()
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"unknown payment method: {payment_method}")

    today_start, today_end = utc_day_bounds(now or utcnow())
    current_start = today_start - timedelta(days=6)
    previous_start = current_start - timedelta(days=7)

    buckets: dict[date, list] = {}
    previous_total = ZERO
    previous_count = 0
    for sold_at, total_net in _completed_sales_between(
        session, previous_start, today_end, outlet_id, payment_method
    ):
        amount = _money(total_net)
        if sold_at >= current_start:
            bucket = buckets.setdefault(sold_at.date(), [ZERO, 0])
            bucket[0] += amount
            bucket[1] += 1
        else:
            previous_total += amount
            previous_count += 1

    series = []
    current_total = ZERO
    current_count = 0
    for offset in range(7):
        day = (current_start + timedelta(days=offset)).date()
        total, count = buckets.get(day, [ZERO, 0])
        series.append(
            {
                "date": to_utc_z(datetime.combine(day, datetime.min.time())),
                "total_net": total,
                "transaction_count": count,
            }
        )
        current_total += total
        current_count += count

    if previous_total == 0:
        change_percent = Decimal("100.00") if current_total > 0 else Decimal("0.00")
    else:
        change_percent = ((current_total - previous_total) / previous_total * 100).quantize(
            CENT, rounding=ROUND_HALF_UP
        )

    return {
        "series": series,
        "summary": {
            "current_total_net": current_total,
            "previous_total_net": previous_total,
            "change_percent": change_percent,
            "current_transaction_count": current_count,
            "previous_transaction_count": previous_count,
        },
    }


def forecast_next_day(session, outlet_id: int, now: datetime | None = None) -> dict:
    """Suggested opening float: average daily net of the previous 7 full days."""
    today_start, _ = utc_day_bounds(now or utcnow())
    week_ago = today_start - timedelta(days=7)
    total = (
        session.query(func.coalesce(func.sum(Sale.total_net), 0))
        .filter(
            Sale.outlet_id == outlet_id,
            Sale.status == SALE_STATUS_COMPLETED,
            Sale.sold_at >= week_ago,
            Sale.sold_at < today_start,
        )
        .scalar()
    )
    return {"suggested_float": _money(Decimal(str(total or 0)) / 7)}


def list_recent_sales(session, outlet_id: int | None = None, limit: int = 10) -> list[dict]:
    if limit < 1 or limit > 50:
        raise ValidationError("limit must be between 1 and 50")
    query = session.query(Sale).options(
        selectinload(Sale.items).selectinload(SaleLineItem.product),
        selectinload(Sale.payments),
    )
    if outlet_id is not None:
        query = query.filter(Sale.outlet_id == outlet_id)
    sales = query.order_by(Sale.sold_at.desc(), Sale.id.desc()).limit(limit).all()
    return [
        {
            "id": sale.id,
            "outlet_id": sale.outlet_id,
            "receipt_number": sale.receipt_number,
            "sold_at": to_utc_z(sale.sold_at),
            "total_net": _money(sale.total_net),
            "total_items": sale.total_items,
            "status": sale.status,
            "payment_methods": [p.method for p in sale.payments],
            "items": [
                {
                    "product_name": item.product.name if item.product else "Unknown",
                    "quantity": item.quantity,
                }
                for item in sale.items
            ],
        }
        for sale in sales
    ]
