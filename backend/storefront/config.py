# backend/storefront/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/storefront.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///storefront.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session tokens (the cart lives on the session row)
    SESSION_IDLE_MINUTES = int(os.environ.get("SESSION_IDLE_MINUTES", "30"))
    SESSION_ABSOLUTE_HOURS = int(os.environ.get("SESSION_ABSOLUTE_HOURS", "24"))

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # POS warns when a shop line drops to this many units or fewer
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "2"))

    # Display-only surcharge used by purchase reports (basis points)
    REPORT_TAX_RATE_BPS = int(os.environ.get("REPORT_TAX_RATE_BPS", "1000"))

    # Walk-in customers signed up at the till
    GUEST_DEFAULT_PASSWORD = os.environ.get("GUEST_DEFAULT_PASSWORD", "Guest@1234")
    GUEST_EMAIL_DOMAIN = os.environ.get("GUEST_EMAIL_DOMAIN", "guest.local")
