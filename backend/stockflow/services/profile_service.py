# Overview: Service-layer operations for the shop profile (details, employees, units).

from __future__ import annotations

from dataclasses import asdict, dataclass

from flask import current_app

from ..errors import ConflictError, UnitNotFound, ValidationFailed
from ..extensions import db
from ..models import Employee, ShopProfile, Unit

MAX_EMPLOYEES = 200


@dataclass(frozen=True)
class ShopDetails:
    shop_name: str = ""
    contact_number: str = ""
    address: str = ""


def ensure_profile(account_id: int) -> ShopProfile:
    """
    Ensure an account has exactly one shop profile row.

    Safe to call repeatedly (idempotent). Flushes, does not commit.
    """
    profile = db.session.query(ShopProfile).filter_by(account_id=account_id).first()
    if profile:
        return profile

    profile = ShopProfile(account_id=account_id, shop_name="", contact_number="", address="")
    db.session.add(profile)
    db.session.flush()
    return profile


def get_shop_details(account_id: int) -> ShopDetails:
    profile = db.session.query(ShopProfile).filter_by(account_id=account_id).first()
    if profile is None:
        return ShopDetails()
    return ShopDetails(
        shop_name=profile.shop_name,
        contact_number=profile.contact_number,
        address=profile.address,
    )


def list_employees(account_id: int) -> list[str]:
    rows = (
        db.session.query(Employee)
        .filter_by(account_id=account_id)
        .order_by(Employee.position.asc(), Employee.id.asc())
        .all()
    )
    return [r.name for r in rows]


def replace_employees(account_id: int, names: list[str]) -> list[str]:
    """
    Replace the employee list, keeping the given order.

    Blank names are dropped and duplicates collapse to their first
    occurrence. Flushes, does not commit.
    """
    if not isinstance(names, list):
        raise ValidationFailed("employees must be a list of names", field="employees")

    cleaned: list[str] = []
    for raw in names:
        name = str(raw or "").strip()
        if not name or name in cleaned:
            continue
        if len(name) > 120:
            raise ValidationFailed("employee name exceeds max length 120", field="employees")
        cleaned.append(name)

    if len(cleaned) > MAX_EMPLOYEES:
        raise ValidationFailed(f"at most {MAX_EMPLOYEES} employees allowed", field="employees")

    db.session.query(Employee).filter_by(account_id=account_id).delete(synchronize_session=False)
    for position, name in enumerate(cleaned):
        db.session.add(Employee(account_id=account_id, name=name, position=position))
    db.session.flush()
    return cleaned


def load_profile(account_id: int) -> dict:
    return {
        "shop_details": asdict(get_shop_details(account_id)),
        "employees": list_employees(account_id),
        "units": [u.to_dict() for u in list_units(account_id)],
    }


def save_profile(account_id: int, *, shop_details: dict | None = None, employees: list | None = None) -> dict:
    """Update shop details and/or employees; omitted sections are left alone."""
    profile = ensure_profile(account_id)

    if shop_details is not None:
        if not isinstance(shop_details, dict):
            raise ValidationFailed("shop_details must be an object", field="shop_details")
        limits = {"shop_name": 120, "contact_number": 64, "address": 255}
        for key, limit in limits.items():
            if key not in shop_details:
                continue
            value = str(shop_details[key] or "").strip()
            if len(value) > limit:
                raise ValidationFailed(f"{key} exceeds max length {limit}", field=key)
            setattr(profile, key, value)

    if employees is not None:
        replace_employees(account_id, employees)

    db.session.commit()
    return load_profile(account_id)


# =============================================================================
# Units
# =============================================================================


def list_units(account_id: int) -> list[Unit]:
    return (
        db.session.query(Unit)
        .filter_by(account_id=account_id)
        .order_by(Unit.name.asc(), Unit.id.asc())
        .all()
    )


def get_unit(account_id: int, unit_id: int) -> Unit:
    unit = db.session.query(Unit).filter_by(id=unit_id, account_id=account_id).first()
    if unit is None:
        raise UnitNotFound(unit_id)
    return unit


def _clean_unit_fields(code, name, abbreviation) -> tuple[str, str, str | None]:
    code = str(code or "").strip().lower()
    name = str(name or "").strip()
    abbreviation = str(abbreviation).strip() if abbreviation is not None else None
    if not code:
        raise ValidationFailed("code is required", field="code")
    if not name:
        raise ValidationFailed("name is required", field="name")
    if len(code) > 32:
        raise ValidationFailed("code exceeds max length 32", field="code")
    if len(name) > 64:
        raise ValidationFailed("name exceeds max length 64", field="name")
    if abbreviation is not None and len(abbreviation) > 16:
        raise ValidationFailed("abbreviation exceeds max length 16", field="abbreviation")
    return code, name, abbreviation or None


def create_unit(account_id: int, *, code: str, name: str, abbreviation: str | None = None) -> Unit:
    code, name, abbreviation = _clean_unit_fields(code, name, abbreviation)

    existing = db.session.query(Unit).filter_by(account_id=account_id, code=code).first()
    if existing:
        raise ConflictError(f"Unit code '{code}' already exists")

    unit = Unit(account_id=account_id, code=code, name=name, abbreviation=abbreviation)
    db.session.add(unit)
    db.session.commit()
    return unit


def update_unit(account_id: int, unit_id: int, *, name: str | None = None, abbreviation: str | None = None) -> Unit:
    """
    Rename a unit.

    Products and log rows hold their own snapshot of the old name and are
    intentionally left unchanged.
    """
    unit = get_unit(account_id, unit_id)
    _, new_name, new_abbreviation = _clean_unit_fields(
        unit.code,
        name if name is not None else unit.name,
        abbreviation if abbreviation is not None else unit.abbreviation,
    )
    unit.name = new_name
    unit.abbreviation = new_abbreviation
    db.session.commit()
    return unit


def seed_default_units(account_id: int) -> int:
    """
    Add any missing default unit (by code). Returns the number created.

    Flushes, does not commit.
    """
    existing = {
        code for (code,) in db.session.query(Unit.code).filter_by(account_id=account_id).all()
    }
    created = 0
    for code, name, abbreviation in current_app.config["DEFAULT_UNITS"]:
        if code in existing:
            continue
        db.session.add(Unit(account_id=account_id, code=code, name=name, abbreviation=abbreviation))
        created += 1
    db.session.flush()
    return created
