from __future__ import annotations

import json

from ..extensions import db
from ..time_utils import to_utc_z


class Badge(db.Model):
    """
    Achievement catalog entry.

    condition holds the serialized unlock rule, e.g.
    {"type": "sales_count", "value": 10}. Rows are reference data seeded
    by slug and rarely mutated.
    """
    __tablename__ = "badges"
    __table_args__ = (
        db.UniqueConstraint("slug", name="uq_badges_slug"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(128), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.String(255), nullable=False, default="")
    icon = db.Column(db.String(255), nullable=False, default="")
    category = db.Column(db.String(32), nullable=False, index=True)  # ventas, embajadora, ...
    rarity = db.Column(db.String(16), nullable=False, default="common")  # common, rare, epic, legendary
    points = db.Column(db.Integer, nullable=False, default=0)
    condition = db.Column(db.Text, nullable=False, default="{}")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def condition_dict(self) -> dict:
        return json.loads(self.condition or "{}")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "slug": self.slug,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "category": self.category,
            "rarity": self.rarity,
            "points": self.points,
        }


class UserBadge(db.Model):
    """Unlock record; one row per (user, badge), never revoked."""
    __tablename__ = "user_badges"
    __table_args__ = (
        db.UniqueConstraint("user_id", "badge_id", name="uq_user_badges_user_badge"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    badge_id = db.Column(db.Integer, db.ForeignKey("badges.id"), nullable=False, index=True)
    unlocked_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    badge = db.relationship("Badge")
    user = db.relationship("User", backref=db.backref("user_badges", lazy=True))


class Point(db.Model):
    """
    Append-only points ledger.

    reason: sale, badge, level_up, cancel. Sale entries reference the order
    that produced them so a cancellation can post the matching reversal.
    """
    __tablename__ = "points"
    __table_args__ = (
        db.Index("ix_points_user_reason", "user_id", "reason"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    pedido_id = db.Column(db.Integer, db.ForeignKey("pedidos.id"), nullable=True, index=True)
    amount = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(32), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "amount": self.amount,
            "reason": self.reason,
            "description": self.description,
            "pedidoId": self.pedido_id,
            "createdAt": to_utc_z(self.created_at),
        }


class UserLevel(db.Model):
    """One row per user, created lazily; XP tracks completed sales."""
    __tablename__ = "user_levels"
    __table_args__ = (
        db.UniqueConstraint("user_id", name="uq_user_levels_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    current_level = db.Column(db.String(32), nullable=False, default="principiante")
    current_xp = db.Column(db.Integer, nullable=False, default=0)
    total_sales = db.Column(db.Integer, nullable=False, default=0)
    # Highest level that already paid its level-up bonus
    highest_level = db.Column(db.String(32), nullable=False, default="principiante")
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", backref=db.backref("level", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "currentLevel": self.current_level,
            "currentXP": self.current_xp,
            "totalSales": self.total_sales,
        }


class BrandAmbassador(db.Model):
    """Brand enrolled in the ambassador program."""
    __tablename__ = "brand_ambassadors"
    __table_args__ = (
        db.UniqueConstraint("brand_slug", name="uq_brand_ambassadors_slug"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    brand_slug = db.Column(db.String(64), nullable=False)
    brand_name = db.Column(db.String(128), nullable=False)
    logo_emoji = db.Column(db.String(16), nullable=False, default="🏷️")
    logo_url = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "brandSlug": self.brand_slug,
            "brandName": self.brand_name,
            "logoEmoji": self.logo_emoji,
            "logoUrl": self.logo_url,
            "isActive": self.is_active,
        }


class UserBrandSales(db.Model):
    """Completed-sale line count per (user, brand)."""
    __tablename__ = "user_brand_sales"
    __table_args__ = (
        db.UniqueConstraint("user_id", "brand_slug", name="uq_user_brand_sales"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    brand_slug = db.Column(db.String(64), nullable=False)
    sales_count = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
