# backend/salesdesk/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/salesdesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///salesdesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upper bound for installment plans (months)
    SALES_MAX_INSTALLMENTS = int(os.environ.get("SALES_MAX_INSTALLMENTS", "36"))

    # Retries for lock/optimistic-lock conflicts inside one sale transaction
    SALES_RETRY_ATTEMPTS = int(os.environ.get("SALES_RETRY_ATTEMPTS", "3"))

    # Informational: how often the external scheduler runs
    # `flask installments sweep-overdue`. Nothing in-process reads a timer.
    OVERDUE_SWEEP_CADENCE = os.environ.get("OVERDUE_SWEEP_CADENCE", "daily")
