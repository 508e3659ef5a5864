# backend/pos_ledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pos_ledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pos_ledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Manual + line discounts may not exceed this share of the gross total
    DISCOUNT_LIMIT_PERCENT = float(os.environ.get("DISCOUNT_LIMIT_PERCENT", "50"))

    # Tolerated |sum(payments) - total_net|, in currency units
    PAYMENT_EPSILON = os.environ.get("PAYMENT_EPSILON", "0.5")

    # VAT rate applied when a sale enables tax without an explicit rate
    DEFAULT_TAX_RATE = os.environ.get("DEFAULT_TAX_RATE", "11")
