# Overview: Per-outlet stock quantities and the append-only stock movement log.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..models import InventoryRecord, Product, StockMovement, Outlet
from ..validation import NotFound, ValidationError, to_money
from .concurrency import atomic

"""
Inventory Ledger Invariants (authoritative)

- InventoryRecord.quantity is a running balance, changed ONLY by adjust().
- Every adjust() appends exactly one StockMovement with the same signed delta,
  so for each (product, outlet): SUM(movement.quantity) == record.quantity.
- Quantity is never clamped; negative stock is a backorder signal.
- The balance update is a single `quantity = quantity + :delta` statement,
  so concurrent adjusts never lose an update.
- adjust() only flushes; the caller owns the transaction.
"""

MOVEMENT_SALE = "SALE"
MOVEMENT_ADJUSTMENT = "ADJUSTMENT"
MOVEMENT_PURCHASE = "PURCHASE"
MOVEMENT_INITIAL = "INITIAL"
MOVEMENT_TYPES = (MOVEMENT_SALE, MOVEMENT_ADJUSTMENT, MOVEMENT_PURCHASE, MOVEMENT_INITIAL)

# Types a back-office user may post by hand
MANUAL_MOVEMENT_TYPES = (MOVEMENT_ADJUSTMENT, MOVEMENT_PURCHASE, MOVEMENT_INITIAL)


def _increment(session, product_id: int, outlet_id: int, delta: int, cost_price) -> int:
    values = {InventoryRecord.quantity: InventoryRecord.quantity + delta}
    if cost_price is not None:
        values[InventoryRecord.cost_price] = cost_price
    return (
        session.query(InventoryRecord)
        .filter_by(product_id=product_id, outlet_id=outlet_id)
        .update(values, synchronize_session=False)
    )


def adjust(
    session,
    product_id: int,
    outlet_id: int,
    delta: int,
    movement_type: str,
    actor_id: int | None = None,
    note: str | None = None,
    *,
    related_sale_id: int | None = None,
    related_refund_id: int | None = None,
    reference: str | None = None,
    cost_price: Decimal | None = None,
) -> InventoryRecord:
    """
    Apply a signed stock delta and log the movement.

    The first touch of a (product, outlet) pair creates the record with
    quantity = delta. A concurrent first touch that wins the insert race
    makes ours fail inside a savepoint; we then fall back to the update.
    """
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("delta must be an integer")
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"unknown movement type: {movement_type}")

    updated = _increment(session, product_id, outlet_id, delta, cost_price)
    if not updated:
        try:
            with session.begin_nested():
                session.add(
                    InventoryRecord(
                        product_id=product_id,
                        outlet_id=outlet_id,
                        quantity=delta,
                        cost_price=cost_price,
                    )
                )
        except IntegrityError:
            _increment(session, product_id, outlet_id, delta, cost_price)

    record = (
        session.query(InventoryRecord)
        .filter_by(product_id=product_id, outlet_id=outlet_id)
        .populate_existing()
        .one()
    )

    session.add(
        StockMovement(
            inventory_id=record.id,
            product_id=product_id,
            outlet_id=outlet_id,
            type=movement_type,
            quantity=delta,
            reference=reference,
            note=note,
            created_by_id=actor_id,
            related_sale_id=related_sale_id,
            related_refund_id=related_refund_id,
        )
    )
    session.flush()
    return record


def get_quantity_on_hand(session, product_id: int, outlet_id: int) -> int:
    """Current balance; 0 when the pair was never touched."""
    quantity = (
        session.query(InventoryRecord.quantity)
        .filter_by(product_id=product_id, outlet_id=outlet_id)
        .scalar()
    )
    return int(quantity or 0)


def movement_balance(session, product_id: int, outlet_id: int) -> int:
    """SUM of movement deltas for the pair (the ledger-derived balance)."""
    total = (
        session.query(func.coalesce(func.sum(StockMovement.quantity), 0))
        .filter(
            StockMovement.product_id == product_id,
            StockMovement.outlet_id == outlet_id,
        )
        .scalar()
    )
    return int(total or 0)


def verify_stock_conservation(session, outlet_id: int | None = None) -> list[dict]:
    """
    Compare every InventoryRecord with its movement log.

    Returns one dict per mismatching pair; an empty list means the ledger
    is consistent.
    """
    sums = (
        session.query(
            StockMovement.product_id,
            StockMovement.outlet_id,
            func.sum(StockMovement.quantity).label("total"),
        )
        .group_by(StockMovement.product_id, StockMovement.outlet_id)
        .subquery()
    )
    query = session.query(InventoryRecord, sums.c.total).outerjoin(
        sums,
        (sums.c.product_id == InventoryRecord.product_id)
        & (sums.c.outlet_id == InventoryRecord.outlet_id),
    )
    if outlet_id is not None:
        query = query.filter(InventoryRecord.outlet_id == outlet_id)

    mismatches = []
    for record, total in query.all():
        movement_total = int(total or 0)
        if movement_total != record.quantity:
            mismatches.append(
                {
                    "product_id": record.product_id,
                    "outlet_id": record.outlet_id,
                    "quantity": record.quantity,
                    "movement_total": movement_total,
                }
            )
    return mismatches


def list_inventory(session, outlet_id: int, *, low_only: bool = False) -> list[dict]:
    query = (
        session.query(InventoryRecord, Product)
        .join(Product, Product.id == InventoryRecord.product_id)
        .filter(InventoryRecord.outlet_id == outlet_id)
        .order_by(Product.name.asc())
    )
    if low_only:
        query = query.filter(
            Product.min_stock > 0,
            InventoryRecord.quantity <= Product.min_stock,
        )

    rows = []
    for record, product in query.all():
        data = record.to_dict()
        data["sku"] = product.sku
        data["product_name"] = product.name
        data["min_stock"] = product.min_stock
        data["is_low"] = product.min_stock > 0 and record.quantity <= product.min_stock
        rows.append(data)
    return rows


def list_movements(
    session,
    *,
    outlet_id: int | None = None,
    product_id: int | None = None,
    movement_type: str | None = None,
    limit: int = 100,
) -> list[StockMovement]:
    query = session.query(StockMovement)
    if outlet_id is not None:
        query = query.filter(StockMovement.outlet_id == outlet_id)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    if movement_type:
        query = query.filter(StockMovement.type == movement_type.upper())
    return query.order_by(StockMovement.id.desc()).limit(max(1, min(limit, 500))).all()


def record_stock_adjustment(
    session,
    *,
    product_id: int,
    outlet_id: int,
    delta: int,
    movement_type: str = MOVEMENT_ADJUSTMENT,
    actor_id: int | None = None,
    note: str | None = None,
    reference: str | None = None,
    cost_price=None,
) -> InventoryRecord:
    """
    Committed manual stock change (receiving, counts, opening stock).

    Low-stock alerts are not evaluated here; they follow sales and reversals.
    """
    movement_type = (movement_type or "").upper()
    if movement_type not in MANUAL_MOVEMENT_TYPES:
        raise ValidationError(f"movement type must be one of {', '.join(MANUAL_MOVEMENT_TYPES)}")
    if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
        raise ValidationError("delta must be a non-zero integer")
    if movement_type in (MOVEMENT_PURCHASE, MOVEMENT_INITIAL) and delta < 0:
        raise ValidationError(f"{movement_type} movements must add stock")
    if cost_price is not None:
        cost_price = to_money(cost_price, "cost_price")
        if cost_price < 0:
            raise ValidationError("cost_price may not be negative")

    with atomic(session):
        if session.get(Product, product_id) is None:
            raise NotFound("Product not found", {"product_id": product_id})
        if session.get(Outlet, outlet_id) is None:
            raise NotFound("Outlet not found", {"outlet_id": outlet_id})
        record = adjust(
            session,
            product_id,
            outlet_id,
            delta,
            movement_type,
            actor_id,
            note,
            reference=reference,
            cost_price=cost_price,
        )
    return record
