# backend/stockflow/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockflow.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockflow.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # App-wide low stock level in main units; 0 disables "Low Stock".
    # Product.low_stock_threshold overrides it per product.
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "0"))

    # Printable gate pass width (monospace characters per line)
    GATE_PASS_LINE_WIDTH = int(os.environ.get("GATE_PASS_LINE_WIDTH", "42"))

    # Units every new account starts with: (code, name, abbreviation)
    DEFAULT_UNITS = (
        ("kg", "Kilogram", "kg"),
        ("pcs", "Pieces", "pcs"),
        ("ltr", "Liter", "ltr"),
        ("box", "Box", "box"),
        ("mtr", "Meter", "m"),
    )
