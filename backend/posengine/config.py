# backend/posengine/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///posengine.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Stock may go negative on sale unless this is switched on.
    ENFORCE_NON_NEGATIVE_STOCK = _env_flag("ENFORCE_NON_NEGATIVE_STOCK", False)

    # A transaction may only be opened in a currency the store offers.
    ENFORCE_STORE_CURRENCY = _env_flag("ENFORCE_STORE_CURRENCY", True)

    # Completion is refused while balance_due > 0.
    REQUIRE_FULL_PAYMENT_ON_COMPLETE = _env_flag("REQUIRE_FULL_PAYMENT_ON_COMPLETE", True)

    # "offer": a non-combinable offer suppresses the customer discount.
    # "best":  the larger of the two discounts wins.
    NON_COMBINABLE_OFFER_POLICY = os.environ.get("NON_COMBINABLE_OFFER_POLICY", "offer")

    RETRY_ATTEMPTS = int(os.environ.get("RETRY_ATTEMPTS", "3"))
    RETRY_BACKOFF_BASE = float(os.environ.get("RETRY_BACKOFF_BASE", "0.05"))
