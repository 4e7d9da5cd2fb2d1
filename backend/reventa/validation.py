from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Upper bound for any money amount accepted from clients
MAX_AMOUNT = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """Business rule conflict (e.g., duplicate email)."""


class NotFoundError(LookupError):
    """404-level missing resource."""


class AuthenticationError(Exception):
    """401-level missing or invalid credentials."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: client key -> model attribute for fields clients may set
    - required_on_create: client keys required when partial=False
    - blank_to_null: string fields where "" is stored as NULL
    """
    writable_fields: dict[str, str]
    required_on_create: frozenset[str] = frozenset()
    blank_to_null: frozenset[str] = frozenset()


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_number(key: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be a number")
        try:
            number = float(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be a number")
    else:
        raise ValidationError(f"{key} must be a number")
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{key} must be a finite number")
    return number


def _coerce_value(key: str, col, value: Any):
    coltype = col.type

    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        number = _coerce_number(key, value)
        if not number.is_integer():
            raise ValidationError(f"{key} must be an integer (no decimals)")
        return int(number)

    if isinstance(coltype, Float):
        return _coerce_number(key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a patch dict keyed by model attribute. Keys outside the
    allowlist are ignored, matching how the clients send whole forms.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(k for k in policy.required_on_create if payload.get(k) in (None, ""))
        if missing:
            raise ValidationError(f"Faltan campos requeridos: {', '.join(missing)}")

    cols = _columns_by_key(model)
    patch: dict = {}

    for key, attr in policy.writable_fields.items():
        if key not in payload:
            continue
        raw = payload[key]
        col = cols[attr]

        if isinstance(raw, str) and raw.strip() == "" and key in policy.blank_to_null:
            raw = None

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[attr] = None
            continue

        val = _coerce_value(key, col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable and val == "":
            raise ValidationError(f"{key} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{key} exceeds max length {col.type.length}")

        patch[attr] = val

    return patch


def enforce_rules_margin(patch: dict) -> None:
    if "margen" in patch and patch["margen"] is not None:
        if patch["margen"] < 0 or patch["margen"] > 1000:
            raise ValidationError("margen must be between 0 and 1000")


def require_positive_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a positive integer")
    number = _coerce_number(key, value)
    if not number.is_integer() or number <= 0:
        raise ValidationError(f"{key} must be a positive integer")
    return int(number)


def parse_bool(key: str, value: Any, default: bool | None = None) -> bool:
    """JSON booleans, or the strings true/false/1/0. Missing uses default when given."""
    if value is None:
        if default is None:
            raise ValidationError(f"{key} is required")
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1"):
            return True
        if lowered in ("false", "0"):
            return False
    raise ValidationError(f"{key} must be a boolean")


def require_amount(key: str, value: Any) -> float:
    """Non-negative money amount within MAX_AMOUNT."""
    if value is None:
        raise ValidationError(f"{key} is required")
    number = _coerce_number(key, value)
    if number < 0:
        raise ValidationError(f"{key} must be >= 0")
    if number > MAX_AMOUNT:
        raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT}")
    return number


def parse_user_id(value: Any) -> int:
    """userId as sent by clients; absent means the caller is not logged in."""
    if value is None or (isinstance(value, str) and value.strip() == ""):
        raise AuthenticationError("Usuario no autenticado")
    try:
        return require_positive_int("userId", value)
    except ValidationError:
        raise ValidationError("userId inválido")
