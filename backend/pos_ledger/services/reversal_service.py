# Overview: Void and refund of recorded sales; both restock every line in full.

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from ..models import Refund, RefundLineItem, Sale
from ..models.sales import SALE_STATUS_COMPLETED, SALE_STATUS_REFUNDED, SALE_STATUS_VOIDED
from ..validation import AlreadyProcessed, NotFound, ValidationError, to_money, validate_reason
from pos_ledger.time_utils import utcnow
from .audit_service import ACTION_SALE_REFUND, ACTION_SALE_VOID, write_audit_log
from .concurrency import atomic, lock_for_update
from .inventory_service import MOVEMENT_ADJUSTMENT, adjust
from .sales_service import evaluate_and_audit_low_stock
from .shift_service import require_active_shift

"""
Reversal Invariants (authoritative)

- Only COMPLETED sales can be reversed; VOIDED and REFUNDED are terminal.
- The sale row is locked FOR UPDATE before its status is checked, so two
  concurrent reversals of one sale cannot both succeed.
- A reversal restocks every line at its original quantity (ADJUSTMENT
  movements linked back to the sale).
- A refund always covers the whole sale; amount only changes the money
  returned, never the restock.
"""

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReversalResult:
    id: int
    receipt_number: str
    total_net: Decimal
    total_items: int
    restocked_quantity: int
    status: str
    refund_amount: Decimal | None = None
    refund_id: int | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "receipt_number": self.receipt_number,
            "total_net": self.total_net,
            "total_items": self.total_items,
            "restocked_quantity": self.restocked_quantity,
            "status": self.status,
            "refund_amount": self.refund_amount,
            "refund_id": self.refund_id,
        }


def _outlet_of(session, sale_id: int) -> int:
    outlet_id = session.query(Sale.outlet_id).filter_by(id=sale_id).scalar()
    if outlet_id is None:
        raise NotFound("Sale not found", {"sale_id": sale_id})
    return outlet_id


def _lock_completed_sale(session, sale_id: int) -> Sale:
    sale = (
        lock_for_update(session.query(Sale).filter_by(id=sale_id))
        .populate_existing()
        .first()
    )
    if sale is None:
        raise NotFound("Sale not found", {"sale_id": sale_id})
    if sale.status != SALE_STATUS_COMPLETED:
        raise AlreadyProcessed(
            "Sale has already been processed",
            {"sale_id": sale.id, "status": sale.status},
        )
    return sale


def _restock(session, sale: Sale, actor_id: int | None, note: str, refund_id: int | None = None) -> int:
    restocked = 0
    for item in sale.items:
        adjust(
            session,
            item.product_id,
            sale.outlet_id,
            item.quantity,
            MOVEMENT_ADJUSTMENT,
            actor_id,
            note,
            related_sale_id=sale.id,
            related_refund_id=refund_id,
            reference=str(sale.id),
        )
        restocked += item.quantity
    return restocked


def void_sale(session, sale_id: int, reason: str, actor_id: int | None) -> ReversalResult:
    """
    Cancel a sale and put its goods back on the shelf.

    Raises:
        NotFound, ShiftNotActive, AlreadyProcessed, ValidationError (reason)
    """
    reason = validate_reason(reason, required=True)
    require_active_shift(session, _outlet_of(session, sale_id))

    with atomic(session):
        sale = _lock_completed_sale(session, sale_id)
        restocked = _restock(session, sale, actor_id, f"Void receipt {sale.receipt_number}")

        sale.status = SALE_STATUS_VOIDED
        sale.void_reason = reason
        sale.updated_at = utcnow()
        session.flush()

        evaluate_and_audit_low_stock(
            session,
            ((item.product_id, sale.outlet_id) for item in sale.items),
            actor_id,
        )

        write_audit_log(
            session,
            action=ACTION_SALE_VOID,
            actor_id=actor_id,
            outlet_id=sale.outlet_id,
            entity_type="SALE",
            entity_id=sale.id,
            details={
                "receipt_number": sale.receipt_number,
                "reason": reason,
                "restocked_quantity": restocked,
            },
        )

        result = ReversalResult(
            id=sale.id,
            receipt_number=sale.receipt_number,
            total_net=sale.total_net,
            total_items=sale.total_items,
            restocked_quantity=restocked,
            status=sale.status,
        )

    logger.info("Voided sale %s receipt=%s restocked=%s", result.id, result.receipt_number, restocked)
    return result


def refund_sale(
    session,
    sale_id: int,
    reason: str | None,
    actor_id: int | None,
    amount=None,
    *,
    approved_by_id: int | None = None,
) -> ReversalResult:
    """
    Refund a whole sale.

    amount defaults to the sale's total_net. Restocking always uses the
    original line quantities regardless of amount.
    """
    reason = validate_reason(reason, required=False)
    if amount is not None:
        amount = to_money(amount, "amount")
        if amount < 0:
            raise ValidationError("refund amount may not be negative")
    require_active_shift(session, _outlet_of(session, sale_id))

    with atomic(session):
        sale = _lock_completed_sale(session, sale_id)
        if session.query(Refund.id).filter_by(sale_id=sale.id).first() is not None:
            raise AlreadyProcessed(
                "Sale has already been refunded",
                {"sale_id": sale.id, "status": sale.status},
            )

        refund_amount = sale.total_net if amount is None else amount
        refund = Refund(
            sale_id=sale.id,
            amount=refund_amount,
            reason=reason,
            approved_by_id=approved_by_id if approved_by_id is not None else actor_id,
            created_by_id=actor_id,
            created_at=utcnow(),
        )
        for item in sale.items:
            refund.items.append(RefundLineItem(sale_line_item_id=item.id, quantity=item.quantity))
        session.add(refund)
        session.flush()

        restocked = _restock(
            session, sale, actor_id, f"Refund receipt {sale.receipt_number}", refund_id=refund.id
        )

        sale.status = SALE_STATUS_REFUNDED
        sale.updated_at = utcnow()
        session.flush()

        evaluate_and_audit_low_stock(
            session,
            ((item.product_id, sale.outlet_id) for item in sale.items),
            actor_id,
        )

        write_audit_log(
            session,
            action=ACTION_SALE_REFUND,
            actor_id=actor_id,
            outlet_id=sale.outlet_id,
            entity_type="SALE",
            entity_id=sale.id,
            details={
                "receipt_number": sale.receipt_number,
                "refund_id": refund.id,
                "amount": str(refund_amount),
                "reason": reason,
                "restocked_quantity": restocked,
            },
        )

        result = ReversalResult(
            id=sale.id,
            receipt_number=sale.receipt_number,
            total_net=sale.total_net,
            total_items=sale.total_items,
            restocked_quantity=restocked,
            status=sale.status,
            refund_amount=refund_amount,
            refund_id=refund.id,
        )

    logger.info("Refunded sale %s receipt=%s amount=%s", result.id, result.receipt_number, refund_amount)
    return result
