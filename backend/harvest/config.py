# backend/harvest/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/harvest.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///harvest.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Billing rules
    INVOICE_DUE_DAYS = int(os.environ.get("INVOICE_DUE_DAYS", "14"))
    EFT_LOYALTY_POINTS = int(os.environ.get("EFT_LOYALTY_POINTS", "5"))

    # Yoco card gateway. Empty secret key means dev mode (charges are simulated).
    YOCO_SECRET_KEY = os.environ.get("YOCO_SECRET_KEY", "")
    YOCO_API_URL = os.environ.get("YOCO_API_URL", "https://online.yoco.com/v1")
    YOCO_PAYMENT_PAGE_URL = os.environ.get("YOCO_PAYMENT_PAGE_URL", "https://pay.yoco.com/harvest")
    YOCO_TIMEOUT_SECONDS = float(os.environ.get("YOCO_TIMEOUT_SECONDS", "15"))
    YOCO_CURRENCY = os.environ.get("YOCO_CURRENCY", "ZAR")
