"""
Sale Ledger Service

WHY: A sale touches money, stock, alerts and the audit trail. All of it is
written in one transaction so a sale is either fully recorded or not at all.

FLOW (record_sale):
1. Shift guard: the outlet must have an open cash session
2. Financials: totals, discount limit, payment reconciliation (no DB writes)
3. One transaction: Sale + lines + payments, stock decrement per line,
   low-stock evaluation per touched product, audit entries
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Sequence

from sqlalchemy.exc import IntegrityError

from ..models import Outlet, Payment, Product, Sale, SaleLineItem
from ..models.sales import SALE_STATUS_COMPLETED
from ..validation import (
    DuplicateReceipt,
    NotFound,
    PaymentInput,
    SaleItemInput,
    TaxPolicy,
    ValidationError,
)
from pos_ledger.time_utils import parse_iso_datetime, to_utc_naive, utcnow
from .audit_service import ACTION_LOW_STOCK_TRIGGER, ACTION_SALE_RECORD, write_audit_log
from .concurrency import atomic
from .financials_service import (
    calculate_financials,
    enforce_discount_limit,
    ensure_payments_cover_total,
)
from .inventory_service import MOVEMENT_SALE, adjust
from .low_stock_service import STATUS_TRIGGERED, evaluate_low_stock
from .shift_service import require_active_shift

logger = logging.getLogger(__name__)

DEFAULT_DISCOUNT_LIMIT_PERCENT = Decimal("50")
DEFAULT_PAYMENT_EPSILON = Decimal("0.5")


def evaluate_and_audit_low_stock(
    session,
    pairs: Iterable[tuple[int, int]],
    actor_id: int | None,
    note: str | None = None,
) -> list:
    """
    Run the low-stock evaluator once per distinct (product, outlet) pair and
    audit every alert that was (re)opened. Shared by sales and reversals.
    """
    results = []
    for product_id, outlet_id in dict.fromkeys(pairs):
        result = evaluate_low_stock(session, product_id, outlet_id, note=note)
        if result.status == STATUS_TRIGGERED:
            alert = result.alert
            write_audit_log(
                session,
                action=ACTION_LOW_STOCK_TRIGGER,
                actor_id=actor_id,
                outlet_id=alert.outlet_id,
                entity_type="LOW_STOCK_ALERT",
                entity_id=alert.id,
                details={
                    "product_id": alert.product_id,
                    "quantity": result.quantity,
                    "min_stock": result.min_stock,
                },
            )
        results.append(result)
    return results


def _apply_catalogue_tax_flags(session, items: Sequence[SaleItemInput]) -> list[SaleItemInput]:
    """Fill in taxable from Product.is_taxable where the terminal left it unset."""
    pending = {item.product_id for item in items if item.taxable is None}
    if not pending:
        return list(items)
    flags = dict(
        session.query(Product.id, Product.is_taxable).filter(Product.id.in_(pending)).all()
    )
    # Unknown products stay taxable here and fail the existence check later
    return [
        item if item.taxable is not None else replace(item, taxable=flags.get(item.product_id, True))
        for item in items
    ]


def _normalize_sold_at(sold_at) -> datetime:
    if sold_at is None:
        return utcnow()
    if isinstance(sold_at, str):
        try:
            parsed = parse_iso_datetime(sold_at)
        except ValueError:
            parsed = None
        if parsed is None:
            raise ValidationError("invalid sold_at")
        return parsed
    if not isinstance(sold_at, datetime):
        raise ValidationError("invalid sold_at")
    return to_utc_naive(sold_at)


def record_sale(
    session,
    *,
    outlet_id: int,
    cashier_id: int | None,
    receipt_number: str,
    items: Sequence[SaleItemInput],
    payments: Sequence[PaymentInput],
    discount_total: Decimal | int | str = 0,
    tax_policy: TaxPolicy | None = None,
    sold_at: datetime | str | None = None,
    discount_limit_percent: Decimal | float | None = None,
    payment_epsilon: Decimal | str | None = None,
) -> Sale:
    """
    Record a completed sale.

    Raises:
        ShiftNotActive: no open shift at the outlet (nothing is written)
        DiscountExceeded / PaymentMismatch: financial checks failed
        NotFound: outlet or product missing
        DuplicateReceipt: receipt_number already recorded
    """
    receipt_number = (receipt_number or "").strip()
    if not receipt_number:
        raise ValidationError("receipt_number is required")
    if not items:
        raise ValidationError("at least one item is required")
    if not payments:
        raise ValidationError("at least one payment is required")

    shift = require_active_shift(session, outlet_id)

    items = _apply_catalogue_tax_flags(session, items)
    tax_policy = tax_policy or TaxPolicy.disabled()
    financials = calculate_financials(items, discount_total, tax_policy)
    enforce_discount_limit(
        financials.total_gross,
        financials.total_discount,
        DEFAULT_DISCOUNT_LIMIT_PERCENT if discount_limit_percent is None else discount_limit_percent,
    )
    ensure_payments_cover_total(
        payments,
        financials.total_net,
        DEFAULT_PAYMENT_EPSILON if payment_epsilon is None else payment_epsilon,
    )
    sold_at = _normalize_sold_at(sold_at)

    with atomic(session):
        if session.get(Outlet, outlet_id) is None:
            raise NotFound("Outlet not found", {"outlet_id": outlet_id})
        product_ids = {item.product_id for item in items}
        found = {
            row.id for row in session.query(Product.id).filter(Product.id.in_(product_ids)).all()
        }
        missing = sorted(product_ids - found)
        if missing:
            raise NotFound("Product not found", {"product_ids": missing})

        if session.query(Sale.id).filter_by(receipt_number=receipt_number).first() is not None:
            raise DuplicateReceipt(
                "Receipt number already recorded",
                {"receipt_number": receipt_number},
            )

        sale = Sale(
            receipt_number=receipt_number,
            outlet_id=outlet_id,
            cashier_id=cashier_id,
            session_id=shift.id,
            sold_at=sold_at,
            total_gross=financials.total_gross,
            discount_total=financials.total_discount,
            tax_rate=tax_policy.rate if tax_policy.apply_tax else None,
            tax_mode=tax_policy.mode if tax_policy.apply_tax else None,
            tax_amount=financials.tax_amount if tax_policy.apply_tax else None,
            total_net=financials.total_net,
            status=SALE_STATUS_COMPLETED,
        )
        for line in financials.lines:
            sale.items.append(
                SaleLineItem(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    discount=line.discount,
                    tax_amount=line.tax_amount if tax_policy.apply_tax else None,
                    total=line.line_total,
                )
            )
        for payment in payments:
            sale.payments.append(
                Payment(method=payment.method, amount=payment.amount, reference=payment.reference)
            )
        session.add(sale)
        try:
            session.flush()
        except IntegrityError as exc:
            raise DuplicateReceipt(
                "Receipt number already recorded",
                {"receipt_number": receipt_number},
            ) from exc

        for line in financials.lines:
            adjust(
                session,
                line.product_id,
                outlet_id,
                -line.quantity,
                MOVEMENT_SALE,
                cashier_id,
                f"Sale {receipt_number}",
                related_sale_id=sale.id,
                reference=str(sale.id),
            )

        evaluate_and_audit_low_stock(
            session,
            ((line.product_id, outlet_id) for line in financials.lines),
            cashier_id,
        )

        write_audit_log(
            session,
            action=ACTION_SALE_RECORD,
            actor_id=cashier_id,
            outlet_id=outlet_id,
            entity_type="SALE",
            entity_id=sale.id,
            details={
                "receipt_number": sale.receipt_number,
                "total_net": str(sale.total_net),
            },
            occurred_at=sold_at,
        )

    logger.info("Recorded sale %s receipt=%s total_net=%s", sale.id, receipt_number, sale.total_net)
    return sale


def get_sale(session, sale_id: int) -> Sale:
    sale = session.get(Sale, sale_id)
    if sale is None:
        raise NotFound("Sale not found", {"sale_id": sale_id})
    return sale


def get_sale_by_receipt(session, receipt_number: str) -> Sale:
    sale = session.query(Sale).filter_by(receipt_number=receipt_number).first()
    if sale is None:
        raise NotFound("Sale not found", {"receipt_number": receipt_number})
    return sale
