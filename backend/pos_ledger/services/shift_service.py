"""
Cash Session (Shift) Service

WHY: Sales, voids and refunds are only accepted while a cashier shift is
open at the outlet. Closing a shift reconciles the counted drawer against
the cash the ledger says should be there.

DESIGN PRINCIPLES:
- One open session per outlet at a time
- Sessions are immutable once closed
- Variance tracking (expected vs counted cash)
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func

from ..models import CashSession, Outlet, Payment, Sale
from ..models.sales import SALE_STATUS_COMPLETED
from ..models.shifts import SHIFT_STATUS_CLOSED, SHIFT_STATUS_OPEN
from ..validation import LedgerError, NotFound, ShiftNotActive, ValidationError, to_money
from pos_ledger.time_utils import utcnow
from .audit_service import ACTION_SHIFT_CLOSE, ACTION_SHIFT_OPEN, write_audit_log
from .concurrency import atomic, lock_for_update


class ShiftError(LedgerError):
    """Raised for shift lifecycle conflicts."""
    status_code = 409


def get_active_shift(session, outlet_id: int) -> CashSession | None:
    return (
        session.query(CashSession)
        .filter_by(outlet_id=outlet_id, status=SHIFT_STATUS_OPEN)
        .order_by(CashSession.opened_at.desc())
        .first()
    )


def require_active_shift(session, outlet_id: int) -> CashSession:
    """
    Guard for every ledger mutation.

    Only the outlet is checked; any cashier may work an outlet whose
    shift is open.
    """
    shift = get_active_shift(session, outlet_id)
    if shift is None:
        raise ShiftNotActive(
            "No active shift for this outlet",
            {"outlet_id": outlet_id},
        )
    return shift


def open_shift(session, outlet_id: int, user_id: int, opening_cash=0) -> CashSession:
    """
    Open a new shift at an outlet.

    Raises:
        NotFound: outlet does not exist
        ShiftError: outlet inactive or already has an open shift
    """
    opening_cash = to_money(opening_cash, "opening_cash")
    if opening_cash < 0:
        raise ValidationError("opening_cash may not be negative")

    with atomic(session):
        outlet = session.get(Outlet, outlet_id)
        if outlet is None:
            raise NotFound("Outlet not found", {"outlet_id": outlet_id})
        if not outlet.is_active:
            raise ShiftError("Cannot open shift on inactive outlet", {"outlet_id": outlet_id})

        existing = get_active_shift(session, outlet_id)
        if existing is not None:
            raise ShiftError(
                f"Outlet already has open shift (session {existing.id})",
                {"outlet_id": outlet_id, "session_id": existing.id},
            )

        shift = CashSession(
            outlet_id=outlet_id,
            user_id=user_id,
            status=SHIFT_STATUS_OPEN,
            opening_cash=opening_cash,
            opened_at=utcnow(),
        )
        session.add(shift)
        session.flush()

        write_audit_log(
            session,
            action=ACTION_SHIFT_OPEN,
            actor_id=user_id,
            outlet_id=outlet_id,
            entity_type="CASH_SESSION",
            entity_id=shift.id,
            details={"opening_cash": str(opening_cash)},
            occurred_at=shift.opened_at,
        )
    return shift


def expected_cash_for(session, shift: CashSession) -> Decimal:
    """Opening float plus CASH tendered on COMPLETED sales of this shift."""
    cash_total = (
        session.query(func.coalesce(func.sum(Payment.amount), 0))
        .join(Sale, Sale.id == Payment.sale_id)
        .filter(
            Sale.session_id == shift.id,
            Sale.status == SALE_STATUS_COMPLETED,
            Payment.method == "CASH",
        )
        .scalar()
    )
    return to_money(shift.opening_cash or 0) + to_money(cash_total or 0)


def close_shift(
    session,
    shift_id: int,
    closing_cash,
    notes: str | None = None,
    *,
    actor_id: int | None = None,
) -> CashSession:
    """
    Close a shift and record the cash variance.

    IMMUTABLE: Once closed, the session cannot be reopened or modified.
    """
    closing_cash = to_money(closing_cash, "closing_cash")
    if closing_cash < 0:
        raise ValidationError("closing_cash may not be negative")

    with atomic(session):
        shift = lock_for_update(session.query(CashSession).filter_by(id=shift_id)).first()
        if shift is None:
            raise NotFound("Shift not found", {"session_id": shift_id})
        if shift.status != SHIFT_STATUS_OPEN:
            raise ShiftError("Shift already closed", {"session_id": shift_id, "status": shift.status})

        expected = expected_cash_for(session, shift)
        shift.status = SHIFT_STATUS_CLOSED
        shift.closed_at = utcnow()
        shift.closing_cash = closing_cash
        shift.expected_cash = expected
        shift.difference = closing_cash - expected
        shift.notes = notes
        session.flush()

        write_audit_log(
            session,
            action=ACTION_SHIFT_CLOSE,
            actor_id=actor_id if actor_id is not None else shift.user_id,
            outlet_id=shift.outlet_id,
            entity_type="CASH_SESSION",
            entity_id=shift.id,
            details={
                "closing_cash": str(closing_cash),
                "expected_cash": str(expected),
                "difference": str(shift.difference),
            },
            occurred_at=shift.closed_at,
        )
    return shift
