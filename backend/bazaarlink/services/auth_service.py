# Overview: Service-layer operations for accounts; registration, password hashing and login checks.

"""
Authentication Service

Every order and stock change is attributed to an account. Vendors
(buyers) and suppliers (sellers) register themselves with a phone number,
which is their login identifier.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters with upper, lower, digit and special character
- Session tokens are managed separately (see session_service.py)
"""

import re

import bcrypt

from ..extensions import db
from ..models import User
from ..models.accounts import ROLES, ROLE_SUPPLIER
from ..time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class RegistrationError(Exception):
    """Raised when an account cannot be created (bad fields, duplicate phone)."""
    pass


PASSWORD_RULES = (
    (r".{8,}", "at least 8 characters"),
    (r"[A-Z]", "an uppercase letter"),
    (r"[a-z]", "a lowercase letter"),
    (r"\d", "a digit"),
    (r"[!@#$%^&*(),.'\":{}|<>_\-]", "a special character"),
)


def validate_password_strength(password: str) -> None:
    missing = [label for pattern, label in PASSWORD_RULES if not re.search(pattern, password or "", re.DOTALL)]
    if missing:
        raise PasswordValidationError(f"Password must contain {', '.join(missing)}")


def hash_password(password: str) -> str:
    """Validate strength, then bcrypt with cost factor 12."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. A malformed stored hash or a non-string password never matches."""
    if not isinstance(password, str):
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _as_text(value, field: str) -> str:
    """Strip a text field. JSON numbers are accepted as their digits (e.g. a numeric phone)."""
    if value is None:
        return ""
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    if not isinstance(value, str):
        raise RegistrationError(f"{field} must be a string")
    return value.strip()


def register_user(
    *,
    name: str,
    phone: str,
    location: str,
    password: str,
    role: str,
    aadhaar: str | None = None,
    gstin: str | None = None,
) -> User:
    """
    Create a vendor or supplier account.

    Raises:
        RegistrationError: missing fields, unknown role, phone already used
        PasswordValidationError: weak password
    """
    name = _as_text(name, "name")
    phone = _as_text(phone, "phone")
    location = _as_text(location, "location")
    if password is not None and not isinstance(password, str):
        raise RegistrationError("password must be a string")
    aadhaar = _as_text(aadhaar, "aadhaar") or None
    gstin = _as_text(gstin, "gstin") or None
    if not all([name, phone, location, password, role]):
        raise RegistrationError("All fields are required")

    if role not in ROLES:
        raise RegistrationError(f"role must be one of: {', '.join(ROLES)}")

    existing = db.session.query(User).filter_by(phone=phone).first()
    if existing:
        raise RegistrationError("User already exists")

    user = User(
        name=name,
        phone=phone,
        location=location,
        password_hash=hash_password(password),
        role=role,
        aadhaar=aadhaar,
        gstin=gstin,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(phone: str, password: str) -> User | None:
    """
    Returns the active user for phone/password, or None.

    Updates last_login_at on success.
    """
    if isinstance(phone, int) and not isinstance(phone, bool):
        phone = str(phone)
    if not isinstance(phone, str) or not isinstance(password, str):
        return None

    user = db.session.query(User).filter(
        User.phone == phone.strip(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def list_suppliers() -> list[User]:
    return (
        db.session.query(User)
        .filter(User.role == ROLE_SUPPLIER, User.is_active.is_(True))
        .order_by(User.name.asc(), User.id.asc())
        .all()
    )
