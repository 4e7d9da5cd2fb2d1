# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Reseller registration and login.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Unknown email and wrong password fail with the same message
- Uniqueness is checked email, handle, dni in that order so clients get a
  precise message; the unique constraints on users back the checks when
  two registrations race
"""

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User, UserLevel
from ..validation import ValidationError, ConflictError, AuthenticationError
from .gamification_service import LOWEST_LEVEL


INVALID_CREDENTIALS = "Credenciales inválidas"

REGISTRATION_FIELDS = ("email", "password", "name", "dni", "telefono", "handle")


def hash_password(password: str) -> str:
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() compares in constant time. Malformed hashes count as
    a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_handle(handle: str) -> str:
    return handle.strip().lower()


def register_user(
    email: str,
    password: str,
    name: str,
    dni: str,
    telefono: str,
    handle: str,
) -> User:
    """
    Create a reseller account with the default margin and an empty level record.

    Raises:
        ValidationError: a required field is missing
        ConflictError: email, handle or dni already registered
    """
    values = {
        "email": email,
        "password": password,
        "name": name,
        "dni": dni,
        "telefono": telefono,
        "handle": handle,
    }
    missing = [k for k in REGISTRATION_FIELDS if not isinstance(values[k], str) or not values[k].strip()]
    if missing:
        raise ValidationError(f"Faltan campos requeridos: {', '.join(missing)}")

    email = email.strip().lower()
    handle = normalize_handle(handle)
    dni = dni.strip()

    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError("El email ya está registrado")

    if db.session.query(User).filter_by(handle=handle).first():
        raise ConflictError("El handle ya está en uso")

    if db.session.query(User).filter_by(dni=dni).first():
        raise ConflictError("El DNI ya está registrado")

    user = User(
        email=email,
        password_hash=hash_password(password),
        name=name.strip(),
        dni=dni,
        telefono=telefono.strip(),
        handle=handle,
        margen=current_app.config["DEFAULT_MARGIN"],
    )
    db.session.add(user)

    try:
        db.session.flush()
        db.session.add(UserLevel(user_id=user.id, current_level=LOWEST_LEVEL, current_xp=0, total_sales=0))
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("El email, handle o DNI ya está registrado")

    current_app.logger.info("Registered user %s (@%s)", user.id, user.handle)
    return user


def authenticate(email: str, password: str) -> User:
    """
    Return the user for valid credentials.

    Raises AuthenticationError with one message for every failure so the
    response does not reveal which emails exist.
    """
    if not isinstance(email, str) or not isinstance(password, str) or not email or not password:
        raise AuthenticationError(INVALID_CREDENTIALS)

    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user or not verify_password(password, user.password_hash):
        raise AuthenticationError(INVALID_CREDENTIALS)

    return user
