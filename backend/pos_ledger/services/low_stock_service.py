# Overview: Low-stock threshold detection with one alert per product/outlet per UTC day.

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from ..models import LowStockAlert, Product
from ..validation import NotFound, ValidationError
from pos_ledger.time_utils import to_utc_naive, utcnow, utc_day_bounds
from .concurrency import atomic
from .inventory_service import get_quantity_on_hand

logger = logging.getLogger(__name__)

STATUS_TRIGGERED = "triggered"
STATUS_CLEARED = "cleared"
STATUS_UNCHANGED = "unchanged"


@dataclass(frozen=True)
class LowStockEvaluation:
    status: str
    alert: LowStockAlert | None = None
    quantity: int | None = None
    min_stock: int | None = None


def _same_day_alert(session, product_id: int, outlet_id: int, now: datetime) -> LowStockAlert | None:
    start, end = utc_day_bounds(now)
    return (
        session.query(LowStockAlert)
        .filter(
            LowStockAlert.product_id == product_id,
            LowStockAlert.outlet_id == outlet_id,
            LowStockAlert.triggered_at >= start,
            LowStockAlert.triggered_at < end,
        )
        .order_by(LowStockAlert.triggered_at.desc(), LowStockAlert.id.desc())
        .first()
    )


def evaluate_low_stock(
    session,
    product_id: int,
    outlet_id: int,
    note: str | None = None,
    now: datetime | None = None,
) -> LowStockEvaluation:
    """
    Compare current stock with the product's min_stock.

    - at or below threshold: open an alert, or reopen today's cleared one
    - above threshold: close today's open alert
    - anything else (no product, min_stock <= 0, already in the right
      state): unchanged

    Only flushes. The caller audits `triggered` results in its transaction.
    """
    product = session.get(Product, product_id)
    if product is None or (product.min_stock or 0) <= 0:
        return LowStockEvaluation(STATUS_UNCHANGED)

    now = to_utc_naive(now) if now is not None else utcnow()
    quantity = get_quantity_on_hand(session, product_id, outlet_id)
    alert = _same_day_alert(session, product_id, outlet_id, now)

    if quantity <= product.min_stock:
        if alert is None:
            alert = LowStockAlert(
                product_id=product_id,
                outlet_id=outlet_id,
                triggered_at=now,
                note=note,
            )
            session.add(alert)
        elif alert.cleared_at is not None:
            alert.cleared_at = None
            alert.triggered_at = now
            if note:
                alert.note = note
        else:
            return LowStockEvaluation(STATUS_UNCHANGED, alert, quantity, product.min_stock)
        session.flush()
        logger.info(
            "Low stock triggered product=%s outlet=%s quantity=%s min_stock=%s",
            product_id, outlet_id, quantity, product.min_stock,
        )
        return LowStockEvaluation(STATUS_TRIGGERED, alert, quantity, product.min_stock)

    if alert is not None and alert.cleared_at is None:
        alert.cleared_at = now
        session.flush()
        return LowStockEvaluation(STATUS_CLEARED, alert, quantity, product.min_stock)

    return LowStockEvaluation(STATUS_UNCHANGED, alert, quantity, product.min_stock)


def list_low_stock_alerts(
    session,
    *,
    outlet_id: int | None = None,
    include_cleared: bool = False,
    limit: int = 100,
) -> list[LowStockAlert]:
    query = session.query(LowStockAlert)
    if outlet_id is not None:
        query = query.filter(LowStockAlert.outlet_id == outlet_id)
    if not include_cleared:
        query = query.filter(LowStockAlert.cleared_at.is_(None))
    return (
        query.order_by(LowStockAlert.triggered_at.desc(), LowStockAlert.id.desc())
        .limit(max(1, min(limit, 500)))
        .all()
    )


def acknowledge_alert(session, alert_id: int, actor_id: int | None = None) -> LowStockAlert:
    """Close an open alert by hand. Closing an already closed alert is a no-op."""
    with atomic(session):
        alert = session.get(LowStockAlert, alert_id)
        if alert is None:
            raise NotFound("Low stock alert not found", {"alert_id": alert_id})
        if alert.cleared_at is None:
            alert.cleared_at = utcnow()
            alert.note = f"Acknowledged by user {actor_id}" if actor_id is not None else "Acknowledged"
            session.flush()
    return alert


def set_min_stock(session, product_id: int, min_stock: int) -> Product:
    if isinstance(min_stock, bool) or not isinstance(min_stock, int) or min_stock < 0:
        raise ValidationError("min_stock must be a non-negative integer")
    with atomic(session):
        product = session.get(Product, product_id)
        if product is None:
            raise NotFound("Product not found", {"product_id": product_id})
        product.min_stock = min_stock
    return product
