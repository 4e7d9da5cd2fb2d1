# Overview: Service-layer operations for reseller profiles and payout settings.

from __future__ import annotations

from typing import Any

from flask import current_app

from ..extensions import db
from ..models import User, SOCIAL_FIELDS
from ..time_utils import utcnow
from ..validation import (
    ValidationError,
    ConflictError,
    NotFoundError,
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_margin,
)
from .auth_service import normalize_handle


PROFILE_POLICY = ModelValidationPolicy(
    writable_fields={
        "name": "name",
        "telefono": "telefono",
        "handle": "handle",
        "margen": "margen",
        "cbu": "cbu",
        "alias": "alias",
        "cvu": "cvu",
        "profilePhoto": "profile_photo",
        "bio": "bio",
        **{key: attr for attr, key in SOCIAL_FIELDS},
    },
    blank_to_null=frozenset(
        {"cbu", "alias", "cvu", "profilePhoto", "bio", *(key for _, key in SOCIAL_FIELDS)}
    ),
)

PAYOUT_POLICY = ModelValidationPolicy(
    writable_fields={"margen": "margen", "cbu": "cbu", "alias": "alias"},
    blank_to_null=frozenset({"cbu", "alias"}),
)

PHOTO_PREFIX = "data:image/"


def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("Usuario no encontrado")
    return user


def get_public_profile(handle: str) -> dict:
    user = db.session.query(User).filter_by(handle=normalize_handle(handle or "")).first()
    if user is None:
        raise NotFoundError("Perfil no encontrado")
    return user.to_public_dict()


def get_profile(user_id: int) -> dict:
    return _get_user(user_id).to_dict()


def update_profile(user_id: int, payload: dict) -> User:
    """
    Partial profile update.

    Only known profile fields are applied. A changed handle must not belong
    to another user.
    """
    user = _get_user(user_id)
    patch = validate_payload(model=User, payload=payload, policy=PROFILE_POLICY, partial=True)
    enforce_rules_margin(patch)

    if "profile_photo" in patch and patch["profile_photo"] is not None:
        validate_photo(patch["profile_photo"])

    if "handle" in patch:
        patch["handle"] = normalize_handle(patch["handle"])
        taken = (
            db.session.query(User)
            .filter(User.handle == patch["handle"], User.id != user.id)
            .first()
        )
        if taken:
            raise ConflictError("Este handle ya está en uso")

    for attr, value in patch.items():
        setattr(user, attr, value)
    user.updated_at = utcnow()
    db.session.commit()

    current_app.logger.info("Profile updated for user %s (%s)", user.id, ", ".join(sorted(patch)) or "no changes")
    return user


def update_payout(user_id: int, margen: Any = None, cbu: Any = None, alias: Any = None, *, payload: dict | None = None) -> User:
    """
    Update margin and payout details.

    payload, when given, is the raw request body so that keys which were
    not sent stay untouched.
    """
    if payload is None:
        payload = {k: v for k, v in (("margen", margen), ("cbu", cbu), ("alias", alias)) if v is not None}

    user = _get_user(user_id)
    patch = validate_payload(model=User, payload=payload, policy=PAYOUT_POLICY, partial=True)
    enforce_rules_margin(patch)

    for attr, value in patch.items():
        setattr(user, attr, value)
    user.updated_at = utcnow()
    db.session.commit()
    return user


def validate_photo(photo: Any) -> str:
    """Base64 data URI images only; returned as-is since nothing is stored."""
    if not isinstance(photo, str) or not photo:
        raise ValidationError("userId y photo son requeridos")
    if not photo.startswith(PHOTO_PREFIX):
        raise ValidationError("Formato de imagen inválido")
    return photo
