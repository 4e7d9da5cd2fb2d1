from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


SOCIAL_FIELDS = (
    ("instagram", "instagram"),
    ("facebook", "facebook"),
    ("tiktok", "tiktok"),
    ("whatsapp_business", "whatsappBusiness"),
    ("linkedin", "linkedin"),
    ("twitter", "twitter"),
    ("youtube", "youtube"),
    ("website", "website"),
)


class User(db.Model):
    """
    Reseller account.

    Email, handle and national id (dni) are globally unique. The handle is
    stored lowercased and used for public profile URLs.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_users_email"),
        db.UniqueConstraint("handle", name="uq_users_handle"),
        db.UniqueConstraint("dni", name="uq_users_dni"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), nullable=False, index=True)
    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    name = db.Column(db.String(128), nullable=False)
    dni = db.Column(db.String(32), nullable=False)
    telefono = db.Column(db.String(32), nullable=False)
    handle = db.Column(db.String(64), nullable=False, index=True)

    # Markup percentage applied over wholesale prices
    margen = db.Column(db.Float, nullable=False, default=60)

    # Payout details
    cbu = db.Column(db.String(32), nullable=True)
    alias = db.Column(db.String(64), nullable=True)
    cvu = db.Column(db.String(32), nullable=True)

    # Public profile
    profile_photo = db.Column(db.Text, nullable=True)
    bio = db.Column(db.String(500), nullable=True)
    instagram = db.Column(db.String(255), nullable=True)
    facebook = db.Column(db.String(255), nullable=True)
    tiktok = db.Column(db.String(255), nullable=True)
    whatsapp_business = db.Column(db.String(255), nullable=True)
    linkedin = db.Column(db.String(255), nullable=True)
    twitter = db.Column(db.String(255), nullable=True)
    youtube = db.Column(db.String(255), nullable=True)
    website = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_session_dict(self) -> dict:
        """Fields returned after login and registration."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "handle": self.handle,
            "margen": self.margen,
        }

    def to_public_dict(self) -> dict:
        data = {
            "name": self.name,
            "handle": self.handle,
            "telefono": self.telefono,
            "profilePhoto": self.profile_photo,
            "bio": self.bio,
        }
        for attr, key in SOCIAL_FIELDS:
            data[key] = getattr(self, attr)
        return data

    def to_dict(self) -> dict:
        data = self.to_public_dict()
        data.update({
            "id": self.id,
            "email": self.email,
            "dni": self.dni,
            "margen": self.margen,
            "cbu": self.cbu,
            "alias": self.alias,
            "cvu": self.cvu,
            "createdAt": to_utc_z(self.created_at),
        })
        return data
