# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service (identity provider)

Every account is a single shop owner. Uses bcrypt for secure password
hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
- Sensitive operations (gate pass issuance) call reauthenticate() with the
  password typed for that operation, on top of the bearer token
"""

import bcrypt
import re
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import ConflictError, InvalidCredential, ReauthenticationError, ValidationFailed
from ..extensions import db
from ..models import User
from stockflow.time_utils import utcnow
from .session_service import SessionContext, is_session_active
from . import profile_service

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(ValidationFailed):
    """Raised when password doesn't meet strength requirements."""

    def __init__(self, message: str):
        super().__init__(message, field="password")


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise (including a
    malformed hash). bcrypt.checkpw() is timing-safe.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def create_user(email: str, password: str) -> User:
    """
    Create a new shop account.

    Besides the user row this creates an empty shop profile and the default
    units, so a fresh account can add products immediately.

    Raises:
        ValidationFailed: malformed email
        PasswordValidationError: password doesn't meet requirements
        ConflictError: email already registered
    """
    email = normalize_email(email)
    if not EMAIL_RE.match(email):
        raise ValidationFailed("A valid email is required", field="email")

    existing = db.session.query(User).filter(User.email == email).first()
    if existing:
        raise ConflictError("Email already registered")

    # Hash password with bcrypt (validates strength automatically)
    password_hash = hash_password(password)

    user = User(email=email, password_hash=password_hash)
    db.session.add(user)
    db.session.flush()

    profile_service.ensure_profile(user.id)
    profile_service.seed_default_units(user.id)

    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        User.email == normalize_email(email),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def reauthenticate(context: SessionContext, password: str) -> None:
    """
    Re-validate the active session's credential before a sensitive action.

    Raises:
        InvalidCredential: the password does not match the session's user
        ReauthenticationError: session no longer active, account disabled,
            or the user record could not be read
    """
    try:
        user = db.session.get(User, context.account_id)
    except SQLAlchemyError as exc:
        current_app.logger.exception("Re-authentication lookup failed")
        raise ReauthenticationError("Could not verify credentials, please try again") from exc

    if user is None or not user.is_active:
        raise ReauthenticationError("Account is not active")
    if context.session is not None and not is_session_active(context.session):
        raise ReauthenticationError("Session expired, please log in again")

    if not verify_password(password, user.password_hash):
        current_app.logger.warning("Re-authentication failed for account %s", user.id)
        raise InvalidCredential()

