from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any


CENT = Decimal("0.01")

PAYMENT_METHODS = ("CASH", "QRIS", "DEBIT", "CREDIT", "TRANSFER")

TAX_MODE_EXCLUSIVE = "EXCLUSIVE"
TAX_MODE_INCLUSIVE = "INCLUSIVE"
TAX_MODES = (TAX_MODE_EXCLUSIVE, TAX_MODE_INCLUSIVE)

MAX_REASON_LENGTH = 200
MIN_VOID_REASON_LENGTH = 3


class ValidationError(ValueError):
    """400-level input problem."""


class LedgerError(Exception):
    """
    Base for sale-ledger failures.

    Every error carries enough context (offending totals, current status)
    for the caller to decide the next action; nothing is retried here.
    """
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ShiftNotActive(LedgerError):
    """No open cash session for the outlet; the operation never starts."""
    status_code = 403


class DiscountExceeded(LedgerError):
    """Discount above the configured share of the gross total."""


class PaymentMismatch(LedgerError):
    """Payments do not reconcile with the net total."""


class NotFound(LedgerError):
    status_code = 404


class AlreadyProcessed(LedgerError):
    """Sale is no longer COMPLETED (voided or refunded already)."""
    status_code = 409


class DuplicateReceipt(LedgerError):
    status_code = 409


def to_money(value: Any, field_name: str = "amount") -> Decimal:
    """Coerce int/str/Decimal input to a 2-place Decimal. Floats go through str()."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field_name} must be a number")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValidationError(f"{field_name} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be a finite number")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def _require_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field_name} must be an integer")
    return value


def _to_rate(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError("tax_rate must be a number")
    try:
        rate = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError("tax_rate must be a number")
    if not rate.is_finite():
        raise ValidationError("tax_rate must be a finite number")
    return rate


@dataclass(frozen=True)
class SaleItemInput:
    """
    One cart line as submitted by the cashier terminal.

    taxable=None defers to the product's is_taxable flag; record_sale
    resolves it before any totals are computed.
    """
    product_id: int
    quantity: int
    unit_price: Decimal
    discount: Decimal = Decimal("0.00")
    taxable: bool | None = True

    def __post_init__(self):
        _require_int(self.product_id, "product_id")
        _require_int(self.quantity, "quantity")
        if self.quantity <= 0:
            raise ValidationError("quantity must be at least 1")
        object.__setattr__(self, "unit_price", to_money(self.unit_price, "unit_price"))
        object.__setattr__(self, "discount", to_money(self.discount, "discount"))
        if self.unit_price < 0:
            raise ValidationError("unit_price may not be negative")
        if self.discount < 0:
            raise ValidationError("discount may not be negative")
        if self.discount > self.unit_price * self.quantity:
            raise ValidationError("line discount exceeds line subtotal")

    @classmethod
    def from_dict(cls, data: dict) -> "SaleItemInput":
        if not isinstance(data, dict):
            raise ValidationError("each item must be an object")
        try:
            return cls(
                product_id=data["product_id"],
                quantity=data["quantity"],
                unit_price=data["unit_price"],
                discount=data.get("discount", 0),
                taxable=None if data.get("taxable") is None else bool(data["taxable"]),
            )
        except KeyError as exc:
            raise ValidationError(f"item field {exc.args[0]} is required")


@dataclass(frozen=True)
class PaymentInput:
    method: str
    amount: Decimal
    reference: str | None = None

    def __post_init__(self):
        method = str(self.method or "").upper()
        if method not in PAYMENT_METHODS:
            raise ValidationError(f"unknown payment method: {self.method}")
        object.__setattr__(self, "method", method)
        object.__setattr__(self, "amount", to_money(self.amount, "payment amount"))
        if self.amount < 0:
            raise ValidationError("payment amount may not be negative")
        if self.reference is not None and not str(self.reference).strip():
            raise ValidationError("payment reference may not be blank")

    @classmethod
    def from_dict(cls, data: dict) -> "PaymentInput":
        if not isinstance(data, dict):
            raise ValidationError("each payment must be an object")
        if "method" not in data or "amount" not in data:
            raise ValidationError("payment method and amount are required")
        return cls(method=data["method"], amount=data["amount"], reference=data.get("reference"))


@dataclass(frozen=True)
class TaxPolicy:
    """Flat VAT applied to the taxable, net-of-discount part of a sale."""
    apply_tax: bool = False
    rate: Decimal = Decimal("0")
    mode: str = TAX_MODE_EXCLUSIVE

    def __post_init__(self):
        rate = self.rate if isinstance(self.rate, Decimal) else _to_rate(self.rate)
        if rate < 0 or rate > 100:
            raise ValidationError("tax rate must be between 0 and 100")
        if not self.apply_tax and rate != 0:
            raise ValidationError("tax rate is only allowed when tax is applied")
        if self.mode not in TAX_MODES:
            raise ValidationError(f"tax mode must be one of {', '.join(TAX_MODES)}")
        object.__setattr__(self, "rate", rate)

    @classmethod
    def disabled(cls) -> "TaxPolicy":
        return cls()


@dataclass(frozen=True)
class RecordSaleInput:
    outlet_id: int
    receipt_number: str
    items: tuple[SaleItemInput, ...]
    payments: tuple[PaymentInput, ...]
    discount_total: Decimal = Decimal("0.00")
    tax_policy: TaxPolicy = field(default_factory=TaxPolicy)

    def __post_init__(self):
        _require_int(self.outlet_id, "outlet_id")
        if not self.receipt_number or not str(self.receipt_number).strip():
            raise ValidationError("receipt_number is required")
        if not self.items:
            raise ValidationError("at least one item is required")
        if not self.payments:
            raise ValidationError("at least one payment is required")
        object.__setattr__(self, "items", tuple(self.items))
        object.__setattr__(self, "payments", tuple(self.payments))
        object.__setattr__(self, "discount_total", to_money(self.discount_total, "discount_total"))
        if self.discount_total < 0:
            raise ValidationError("discount_total may not be negative")

    @classmethod
    def from_dict(cls, data: dict, default_tax_rate: Decimal | str = "0") -> "RecordSaleInput":
        apply_tax = bool(data.get("apply_tax", False))
        rate = data.get("tax_rate")
        if rate is None:
            rate = default_tax_rate if apply_tax else 0
        tax_policy = TaxPolicy(
            apply_tax=apply_tax,
            rate=_to_rate(rate),
            mode=str(data.get("tax_mode") or TAX_MODE_EXCLUSIVE).upper(),
        )
        return cls(
            outlet_id=data.get("outlet_id"),
            receipt_number=data.get("receipt_number"),
            items=tuple(SaleItemInput.from_dict(item) for item in data.get("items") or []),
            payments=tuple(PaymentInput.from_dict(p) for p in data.get("payments") or []),
            discount_total=data.get("discount_total", 0),
            tax_policy=tax_policy,
        )


def validate_reason(reason: str | None, *, required: bool) -> str | None:
    if reason is None or not reason.strip():
        if required:
            raise ValidationError("reason is required")
        return None
    reason = reason.strip()
    if required and len(reason) < MIN_VOID_REASON_LENGTH:
        raise ValidationError(f"reason must be at least {MIN_VOID_REASON_LENGTH} characters")
    if len(reason) > MAX_REASON_LENGTH:
        raise ValidationError(f"reason may not exceed {MAX_REASON_LENGTH} characters")
    return reason
