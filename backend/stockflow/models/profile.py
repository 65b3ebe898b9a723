from __future__ import annotations

from ..extensions import db
from stockflow.time_utils import to_utc_z


class ShopProfile(db.Model):
    """Shop details printed in the gate pass header (one row per account)."""
    __tablename__ = "shop_profiles"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True)

    shop_name = db.Column(db.String(120), nullable=False, default="")
    contact_number = db.Column(db.String(64), nullable=False, default="")
    address = db.Column(db.String(255), nullable=False, default="")

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "shop_name": self.shop_name,
            "contact_number": self.contact_number,
            "address": self.address,
        }


class Employee(db.Model):
    """Names that may authorize a gate pass, kept in display order."""
    __tablename__ = "employees"
    __table_args__ = (
        db.Index("ix_employees_account_position", "account_id", "position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)


class Unit(db.Model):
    """
    Stock-counting unit defined in the shop profile.

    Products and log rows copy name/abbreviation at write time, so renaming
    a unit never rewrites history.
    """
    __tablename__ = "units"
    __table_args__ = (
        db.UniqueConstraint("account_id", "code", name="uq_units_account_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    code = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(64), nullable=False)
    abbreviation = db.Column(db.String(16), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Unit id={self.id} code={self.code!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "abbreviation": self.abbreviation,
            "created_at": to_utc_z(self.created_at),
        }
