# Overview: Pure money arithmetic for a sale; no database access.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Sequence

from ..validation import (
    CENT,
    DiscountExceeded,
    PaymentInput,
    PaymentMismatch,
    SaleItemInput,
    TAX_MODE_INCLUSIVE,
    TaxPolicy,
    ValidationError,
    to_money,
)

"""
Sale Financials Invariants

- line_total = unit_price * quantity - line discount
- total_gross = SUM(unit_price * quantity)
- total_discount = SUM(line discounts) + manual discount_total
- The manual discount is spread over lines in proportion to line_total; the
  taxable value of a line is its line_total minus that share.
- Tax is computed once on the taxable base, then prorated per line and
  rounded per line (ROUND_HALF_UP, 0.01). tax_amount is the SUM of the
  rounded line taxes, never the rounded aggregate.
- EXCLUSIVE: tax is added on top (total_net = gross - discount + tax).
  INCLUSIVE: tax is already inside the prices (total_net = gross - discount).
"""


def _round(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineFinancials:
    product_id: int
    quantity: int
    unit_price: Decimal
    discount: Decimal
    line_total: Decimal
    taxable_value: Decimal
    tax_amount: Decimal


@dataclass(frozen=True)
class SaleFinancials:
    total_gross: Decimal
    total_discount: Decimal
    taxable_base: Decimal
    tax_amount: Decimal
    total_net: Decimal
    lines: tuple[LineFinancials, ...]


def calculate_financials(
    items: Sequence[SaleItemInput],
    discount_total: Decimal | int | str = 0,
    tax_policy: TaxPolicy | None = None,
) -> SaleFinancials:
    if not items:
        raise ValidationError("at least one item is required")
    tax_policy = tax_policy or TaxPolicy.disabled()
    manual_discount = to_money(discount_total, "discount_total")
    if manual_discount < 0:
        raise ValidationError("discount_total may not be negative")

    total_gross = sum((item.unit_price * item.quantity for item in items), Decimal("0"))
    line_totals = [item.unit_price * item.quantity - item.discount for item in items]
    lines_sum = sum(line_totals, Decimal("0"))
    if manual_discount > lines_sum:
        raise DiscountExceeded(
            "Discount exceeds the sale subtotal",
            {"subtotal": str(lines_sum), "discount": str(manual_discount)},
        )

    # Manual discount share per line; the last line absorbs rounding leftovers
    shares: list[Decimal] = []
    remaining = manual_discount
    for index, line_total in enumerate(line_totals):
        if index == len(line_totals) - 1:
            share = remaining
        elif lines_sum > 0:
            share = _round(manual_discount * line_total / lines_sum)
        else:
            share = Decimal("0.00")
        shares.append(share)
        remaining -= share

    taxable_values = [
        (line_total - share) if item.taxable else Decimal("0.00")
        for item, line_total, share in zip(items, line_totals, shares)
    ]
    taxable_base = sum(taxable_values, Decimal("0"))

    raw_tax = Decimal("0")
    if tax_policy.apply_tax and tax_policy.rate > 0 and taxable_base > 0:
        if tax_policy.mode == TAX_MODE_INCLUSIVE:
            raw_tax = taxable_base * tax_policy.rate / (Decimal("100") + tax_policy.rate)
        else:
            raw_tax = taxable_base * tax_policy.rate / Decimal("100")

    lines = []
    for item, line_total, taxable_value in zip(items, line_totals, taxable_values):
        line_tax = _round(taxable_value * raw_tax / taxable_base) if raw_tax else Decimal("0.00")
        lines.append(
            LineFinancials(
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                discount=item.discount,
                line_total=_round(line_total),
                taxable_value=_round(taxable_value),
                tax_amount=line_tax,
            )
        )

    tax_amount = sum((line.tax_amount for line in lines), Decimal("0.00"))
    total_discount = sum((item.discount for item in items), Decimal("0")) + manual_discount
    total_net = total_gross - total_discount
    if tax_policy.mode != TAX_MODE_INCLUSIVE:
        total_net += tax_amount

    return SaleFinancials(
        total_gross=_round(total_gross),
        total_discount=_round(total_discount),
        taxable_base=_round(taxable_base),
        tax_amount=_round(tax_amount),
        total_net=_round(total_net),
        lines=tuple(lines),
    )


def enforce_discount_limit(gross: Decimal, discount: Decimal, limit_percent: float | Decimal) -> None:
    """Raise DiscountExceeded when discount > gross * limit / 100."""
    limit_percent = Decimal(str(limit_percent))
    if limit_percent < 0 or limit_percent > 100:
        raise ValidationError("discount limit must be between 0 and 100")
    allowed = gross * limit_percent / Decimal("100")
    if discount > allowed:
        raise DiscountExceeded(
            f"Discount exceeds {limit_percent.normalize():f}% of the gross total",
            {
                "gross": str(gross),
                "discount": str(discount),
                "limit_percent": str(limit_percent),
                "allowed": str(_round(allowed)),
            },
        )


def ensure_payments_cover_total(
    payments: Iterable[PaymentInput],
    total_net: Decimal,
    epsilon: Decimal | str | float = Decimal("0.5"),
) -> Decimal:
    """
    Check that the tendered payments reconcile with the net total.

    Over- and under-payment are both rejected once they exceed epsilon;
    change-giving happens at the terminal, not in the ledger.
    Returns the paid total.
    """
    epsilon = Decimal(str(epsilon))
    paid = sum((payment.amount for payment in payments), Decimal("0.00"))
    if abs(paid - total_net) > epsilon:
        raise PaymentMismatch(
            "Payments do not match the sale total",
            {"paid": str(paid), "total_net": str(total_net), "epsilon": str(epsilon)},
        )
    return paid
