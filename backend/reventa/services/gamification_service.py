# Overview: Service-layer operations for gamification; levels, points ledger, badges and ranking.

"""
Gamification engine.

Only completed orders count. XP equals the number of completed orders and
drives the level; points live in an append-only ledger:

- sale:     floor(total / 1000) * 10, plus 50 on the first completed sale
- level_up: +100 each time the level goes up
- badge:    the badge's points when it unlocks
- cancel:   negative entry reversing the sale points of a completed order
            that was later cancelled

Badges are never revoked once unlocked.

process_order_completed() and process_order_cancelled() only stage writes
on the session; the caller commits them together with the status change.
"""

from __future__ import annotations

import json
import re
from datetime import datetime

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import (
    Badge,
    BrandAmbassador,
    Linea,
    Pedido,
    Point,
    User,
    UserBadge,
    UserBrandSales,
    UserLevel,
    ORDER_COMPLETED,
)
from ..time_utils import utcnow, start_of_month, to_utc_z
from ..validation import ValidationError, ConflictError, NotFoundError
from .concurrency import run_in_transaction
from .pricing import format_currency


# (level, minimum completed sales), lowest first
LEVELS = (
    ("principiante", 0),
    ("bronce", 10),
    ("plata", 50),
    ("oro", 100),
    ("diamante", 200),
    ("leyenda", 500),
)
LOWEST_LEVEL = LEVELS[0][0]

LEVEL_UP_POINTS = 100
FIRST_SALE_BONUS = 50
POINTS_PER_THOUSAND = 10

RANKING_SIZE = 50
RANKING_PERIODS = ("month", "all")

REASON_SALE = "sale"
REASON_BADGE = "badge"
REASON_LEVEL_UP = "level_up"
REASON_CANCEL = "cancel"

SALES_CATEGORY = "ventas"
AMBASSADOR_CATEGORY = "embajadora"

BADGE_DEFINITIONS = (
    {
        "slug": "primera-venta",
        "name": "Primera Venta",
        "description": "¡Tu primera venta exitosa!",
        "icon": "🎉",
        "points": 50,
        "rarity": "common",
        "min_sales": 1,
    },
    {
        "slug": "10-ventas",
        "name": "10 Ventas",
        "description": "Alcanzaste 10 ventas",
        "icon": "⭐",
        "points": 100,
        "rarity": "common",
        "min_sales": 10,
    },
    {
        "slug": "50-ventas",
        "name": "50 Ventas",
        "description": "Alcanzaste 50 ventas",
        "icon": "🌟",
        "points": 200,
        "rarity": "rare",
        "min_sales": 50,
    },
    {
        "slug": "100-ventas",
        "name": "100 Ventas",
        "description": "Alcanzaste 100 ventas",
        "icon": "💫",
        "points": 300,
        "rarity": "rare",
        "min_sales": 100,
    },
    {
        "slug": "200-ventas",
        "name": "200 Ventas",
        "description": "Alcanzaste 200 ventas",
        "icon": "✨",
        "points": 500,
        "rarity": "epic",
        "min_sales": 200,
    },
    {
        "slug": "500-ventas",
        "name": "500 Ventas",
        "description": "Alcanzaste 500 ventas - ¡Eres una leyenda!",
        "icon": "👑",
        "points": 1000,
        "rarity": "legendary",
        "min_sales": 500,
    },
)

# (level, minimum sales of the brand, points, emoji, rarity)
BRAND_LEVELS = (
    ("bronce", 10, 150, "🥉", "common"),
    ("plata", 25, 300, "🥈", "rare"),
    ("oro", 50, 500, "🥇", "epic"),
    ("diamante", 100, 1000, "💎", "legendary"),
)


# -------------------------
# Pure rules
# -------------------------

def calculate_user_level(sales_count: int) -> str:
    level = LOWEST_LEVEL
    for name, threshold in LEVELS:
        if sales_count >= threshold:
            level = name
    return level


def level_rank(level: str) -> int:
    for index, (name, _) in enumerate(LEVELS):
        if name == level:
            return index
    return 0


def next_level(sales_count: int) -> tuple[str, int] | None:
    """(name, threshold) of the next level, or None at the top."""
    for name, threshold in LEVELS:
        if sales_count < threshold:
            return name, threshold
    return None


def progress_percent(sales_count: int) -> int:
    """Progress from the current level threshold to the next one (0-100)."""
    upcoming = next_level(sales_count)
    if upcoming is None:
        return 100
    current_threshold = LEVELS[level_rank(calculate_user_level(sales_count))][1]
    span = upcoming[1] - current_threshold
    return int((sales_count - current_threshold) * 100 / span)


def calculate_sale_points(amount: float, is_first_sale: bool) -> int:
    base = int(amount // 1000) * POINTS_PER_THOUSAND if amount > 0 else 0
    return base + (FIRST_SALE_BONUS if is_first_sale else 0)


def normalize_condition(condition: dict) -> dict:
    """Read legacy {"minSales": N} rules as {"type": "sales_count", "value": N}."""
    if "type" not in condition and "minSales" in condition:
        return {"type": "sales_count", "value": condition["minSales"]}
    if condition.get("type") == "brand_sales" and "value" not in condition and "minSales" in condition:
        return {**condition, "value": condition["minSales"]}
    return condition


def evaluate_condition(condition: dict, stats: dict) -> bool:
    """
    True when stats satisfy the badge condition.

    stats keys: sales_count, sales_amount, total_points and brand_sales
    (brand slug -> completed lines). Unknown rule types never match.
    """
    condition = normalize_condition(condition or {})
    rule = condition.get("type")
    try:
        target = float(condition.get("value"))
    except (TypeError, ValueError):
        return False

    if rule == "sales_count":
        return stats.get("sales_count", 0) >= target
    if rule == "sales_amount":
        return stats.get("sales_amount", 0) >= target
    if rule == "total_points":
        return stats.get("total_points", 0) >= target
    if rule == "brand_sales":
        brand_counts = stats.get("brand_sales") or {}
        return brand_counts.get(condition.get("brandSlug"), 0) >= target
    return False


# -------------------------
# Aggregates
# -------------------------

def _completed_orders(user_id: int):
    return db.session.query(Pedido).filter(
        Pedido.user_id == user_id,
        Pedido.estado == ORDER_COMPLETED,
    )


def count_completed_sales(user_id: int) -> int:
    return _completed_orders(user_id).count()


def completed_sales_amount(user_id: int) -> float:
    total = (
        db.session.query(func.coalesce(func.sum(Linea.venta * Linea.qty), 0))
        .join(Pedido, Linea.pedido_id == Pedido.id)
        .filter(Pedido.user_id == user_id, Pedido.estado == ORDER_COMPLETED)
        .scalar()
    )
    return float(total or 0)


def total_points(user_id: int) -> int:
    total = db.session.query(func.coalesce(func.sum(Point.amount), 0)).filter(Point.user_id == user_id).scalar()
    return int(total or 0)


def get_or_create_level(user_id: int) -> tuple[UserLevel, bool]:
    """Level row for the user, staged on the session when missing."""
    level = db.session.query(UserLevel).filter_by(user_id=user_id).first()
    if level is not None:
        return level, False
    level = UserLevel(user_id=user_id, current_level=LOWEST_LEVEL, current_xp=0, total_sales=0)
    db.session.add(level)
    db.session.flush()
    return level, True


def _unlocked_badge_ids(user_id: int) -> set[int]:
    return {
        badge_id for (badge_id,) in
        db.session.query(UserBadge.badge_id).filter(UserBadge.user_id == user_id).all()
    }


def _add_points(user_id: int, amount: int, reason: str, description: str, pedido_id: int | None = None) -> Point:
    entry = Point(user_id=user_id, amount=amount, reason=reason, description=description, pedido_id=pedido_id)
    db.session.add(entry)
    return entry


# -------------------------
# Level / badges
# -------------------------

def _refresh_level(user_id: int, *, award_level_up: bool) -> tuple[UserLevel, int, bool]:
    """Recount completed sales into the level row. Returns (level, sales, leveled_up)."""
    sales = count_completed_sales(user_id)
    level, _ = get_or_create_level(user_id)
    old_level = level.current_level
    new_level = calculate_user_level(sales)

    level.current_level = new_level
    level.current_xp = sales
    level.total_sales = sales
    level.updated_at = utcnow()

    leveled_up = level_rank(new_level) > level_rank(old_level)
    # The bonus is paid once per level; dropping back after a cancellation
    # and climbing again earns nothing.
    new_high = level_rank(new_level) > level_rank(level.highest_level or LOWEST_LEVEL)
    if new_high:
        level.highest_level = new_level

    if leveled_up and award_level_up and new_high:
        _add_points(user_id, LEVEL_UP_POINTS, REASON_LEVEL_UP, f"¡Subiste a nivel {new_level}!")
        current_app.logger.info("User %s leveled up: %s -> %s", user_id, old_level, new_level)
    elif new_level != old_level:
        current_app.logger.info("User %s level changed: %s -> %s", user_id, old_level, new_level)

    return level, sales, leveled_up


def _unlock_badges(user_id: int, stats: dict) -> list[Badge]:
    """
    Unlock every badge whose condition now holds.

    Cheapest badges are checked first and each unlock adds its points to
    stats["total_points"], so point-based badges can chain in one pass.
    """
    unlocked_ids = _unlocked_badge_ids(user_id)
    unlocked: list[Badge] = []

    badges = db.session.query(Badge).order_by(Badge.points, Badge.id).all()
    for badge in badges:
        if badge.id in unlocked_ids:
            continue
        try:
            condition = badge.condition_dict
        except ValueError:
            current_app.logger.warning("Badge %s has an unreadable condition, skipping", badge.slug)
            continue
        if not evaluate_condition(condition, stats):
            continue

        db.session.add(UserBadge(user_id=user_id, badge_id=badge.id, unlocked_at=utcnow()))
        _add_points(user_id, badge.points, REASON_BADGE, f"¡Badge desbloqueado: {badge.name}!")
        stats["total_points"] = stats.get("total_points", 0) + badge.points
        unlocked.append(badge)
        current_app.logger.info("User %s unlocked badge %s (+%s pts)", user_id, badge.slug, badge.points)

    return unlocked


def _collect_stats(user_id: int, sales: int, brand_sales: dict[str, int]) -> dict:
    db.session.flush()
    return {
        "sales_count": sales,
        "sales_amount": completed_sales_amount(user_id),
        "total_points": total_points(user_id),
        "brand_sales": brand_sales,
    }


# -------------------------
# Brand ambassadors
# -------------------------

def normalize_brand_slug(value: str) -> str:
    return re.sub(r"\s+", "-", value.strip().lower())


def brand_badge_slug(brand_slug: str, level: str) -> str:
    return f"embajadora-{brand_slug}-{level}"


def _brand_badge_icon(brand: BrandAmbassador, emoji: str) -> str:
    if brand.logo_url:
        return f"{brand.logo_url}|{emoji}"
    return f"{brand.logo_emoji}{emoji}"


def ensure_brand_badges(brand: BrandAmbassador) -> int:
    """Create the missing ambassador badges of a brand; returns how many were created."""
    created = 0
    for level, min_sales, points, emoji, rarity in BRAND_LEVELS:
        slug = brand_badge_slug(brand.brand_slug, level)
        if db.session.query(Badge).filter_by(slug=slug).first():
            continue
        db.session.add(Badge(
            slug=slug,
            name=f"Embajadora {brand.brand_name} {emoji}",
            description=f"Alcanzaste {min_sales} ventas de {brand.brand_name}",
            icon=_brand_badge_icon(brand, emoji),
            category=AMBASSADOR_CATEGORY,
            rarity=rarity,
            points=points,
            condition=json.dumps({"type": "brand_sales", "brandSlug": brand.brand_slug, "value": min_sales}),
        ))
        created += 1
    if created:
        db.session.flush()
        current_app.logger.info("Created %s ambassador badges for brand %s", created, brand.brand_slug)
    return created


def _count_brand_lines(brand_name: str, user_id: int | None = None) -> int:
    query = (
        db.session.query(func.count(Linea.id))
        .join(Pedido, Linea.pedido_id == Pedido.id)
        .filter(Pedido.estado == ORDER_COMPLETED, Linea.brand == brand_name)
    )
    if user_id is not None:
        query = query.filter(Pedido.user_id == user_id)
    return int(query.scalar() or 0)


def track_brand_sales(user_id: int) -> dict[str, int]:
    """
    Recount the user's completed lines for every active brand.

    Upserts UserBrandSales and makes sure the ambassador badges exist so
    the badge pass can unlock them. Returns brand slug -> line count.
    """
    counts: dict[str, int] = {}
    brands = db.session.query(BrandAmbassador).filter_by(is_active=True).all()
    if not brands:
        return counts

    now = utcnow()
    for brand in brands:
        count = _count_brand_lines(brand.brand_name, user_id)
        counts[brand.brand_slug] = count

        row = db.session.query(UserBrandSales).filter_by(user_id=user_id, brand_slug=brand.brand_slug).first()
        if row is None:
            row = UserBrandSales(user_id=user_id, brand_slug=brand.brand_slug)
            db.session.add(row)
        row.sales_count = count
        row.updated_at = now

        ensure_brand_badges(brand)

    return counts


def create_brand(
    brand_slug: str,
    brand_name: str,
    logo_emoji: str | None = None,
    logo_url: str | None = None,
    is_active: bool = False,
) -> BrandAmbassador:
    if not brand_slug or not brand_name or not str(brand_slug).strip() or not str(brand_name).strip():
        raise ValidationError("brandSlug y brandName son requeridos")

    slug = normalize_brand_slug(str(brand_slug))
    if db.session.query(BrandAmbassador).filter_by(brand_slug=slug).first():
        raise ConflictError("Ya existe una marca con ese slug")

    brand = BrandAmbassador(
        brand_slug=slug,
        brand_name=str(brand_name).strip(),
        logo_emoji=logo_emoji or "🏷️",
        logo_url=logo_url or None,
        is_active=bool(is_active),
    )
    db.session.add(brand)
    db.session.commit()

    current_app.logger.info("Brand %s created (%s)", brand.brand_slug, "active" if brand.is_active else "inactive")
    return brand


def set_brand_active(brand_slug: str, is_active: bool) -> BrandAmbassador:
    if not brand_slug:
        raise ValidationError("brandSlug es requerido")

    brand = db.session.query(BrandAmbassador).filter_by(brand_slug=brand_slug).first()
    if brand is None:
        raise NotFoundError("Marca no encontrada")

    brand.is_active = bool(is_active)
    db.session.commit()
    return brand


def list_brands() -> list[dict]:
    """Brands with ambassador and sales counts, active ones first."""
    brands = (
        db.session.query(BrandAmbassador)
        .order_by(BrandAmbassador.is_active.desc(), BrandAmbassador.brand_name)
        .all()
    )

    result = []
    for brand in brands:
        ambassador_count = (
            db.session.query(func.count(func.distinct(UserBadge.user_id)))
            .join(Badge, UserBadge.badge_id == Badge.id)
            .filter(Badge.slug.in_([brand_badge_slug(brand.brand_slug, level) for level, *_ in BRAND_LEVELS]))
            .scalar()
        )
        data = brand.to_dict()
        data["stats"] = {
            "ambassadorCount": int(ambassador_count or 0),
            "totalSales": _count_brand_lines(brand.brand_name),
        }
        result.append(data)
    return result


# -------------------------
# Order lifecycle hooks
# -------------------------

def process_order_completed(pedido: Pedido) -> dict:
    """
    Accrue gamification for an order that just entered completado.

    Order of work: level, level-up points, sale points (tied to the order),
    brand tracking, badges.
    """
    user_id = pedido.user_id
    db.session.flush()

    level, sales, leveled_up = _refresh_level(user_id, award_level_up=True)

    amount = pedido.total_venta
    sale_points = calculate_sale_points(amount, is_first_sale=(sales == 1))
    _add_points(user_id, sale_points, REASON_SALE, f"Venta de {format_currency(amount)}", pedido_id=pedido.id)

    brand_sales = track_brand_sales(user_id)
    stats = _collect_stats(user_id, sales, brand_sales)
    badges = _unlock_badges(user_id, stats)

    current_app.logger.info(
        "Gamification for order %s: user %s now %s (%s sales), +%s sale pts, %s new badges",
        pedido.id, user_id, level.current_level, sales, sale_points, len(badges),
    )
    return {
        "level": level.current_level,
        "leveledUp": leveled_up,
        "salePoints": sale_points,
        "badgesUnlocked": [badge.slug for badge in badges],
    }


def process_order_cancelled(pedido: Pedido) -> dict:
    """
    Compensate a completed order that was cancelled.

    Appends a cancel entry equal to the net points still credited for the
    order, then recounts level and brand sales. Badges stay unlocked and
    no level-up points are taken back.
    """
    user_id = pedido.user_id
    db.session.flush()

    credited = (
        db.session.query(func.coalesce(func.sum(Point.amount), 0))
        .filter(Point.user_id == user_id, Point.pedido_id == pedido.id)
        .scalar()
    )
    credited = int(credited or 0)

    reversed_points = 0
    if credited > 0:
        reversed_points = credited
        _add_points(
            user_id,
            -credited,
            REASON_CANCEL,
            f"Pedido #{pedido.id} cancelado",
            pedido_id=pedido.id,
        )

    level, sales, _ = _refresh_level(user_id, award_level_up=False)
    track_brand_sales(user_id)

    current_app.logger.info(
        "Order %s cancelled after completion: user %s -%s pts, now %s (%s sales)",
        pedido.id, user_id, reversed_points, level.current_level, sales,
    )
    return {"level": level.current_level, "pointsReversed": reversed_points}


# -------------------------
# Read side
# -------------------------

def _level_dict(level: UserLevel) -> dict:
    data = level.to_dict()
    upcoming = next_level(level.total_sales)
    data["nextLevel"] = upcoming[0] if upcoming else None
    data["nextLevelXP"] = upcoming[1] if upcoming else None
    data["progressPercent"] = progress_percent(level.total_sales)
    return data


def get_user_stats(user_id: int) -> dict:
    """Points, level and every badge with its unlock state for one user."""
    if db.session.get(User, user_id) is None:
        raise NotFoundError("Usuario no encontrado")

    level, created = get_or_create_level(user_id)
    if created:
        db.session.commit()
        current_app.logger.info("Created level record for user %s", user_id)

    unlocked_at: dict[int, datetime] = {
        ub.badge_id: ub.unlocked_at
        for ub in db.session.query(UserBadge).filter(UserBadge.user_id == user_id).all()
    }
    badges = db.session.query(Badge).order_by(Badge.category, Badge.points, Badge.id).all()

    badge_list = []
    for badge in badges:
        data = badge.to_dict()
        data["unlocked"] = badge.id in unlocked_at
        data["unlockedAt"] = to_utc_z(unlocked_at.get(badge.id))
        badge_list.append(data)

    return {
        "totalPoints": total_points(user_id),
        "badgesUnlocked": len(unlocked_at),
        "totalBadges": len(badges),
        "level": _level_dict(level),
        "badges": badge_list,
    }


def get_ranking(user_id: int, period: str = "month") -> list[dict]:
    """
    Users ordered by completed sales in the period, then by points.

    Returns the top RANKING_SIZE entries plus the caller's own entry when
    it falls outside them.
    """
    if period not in RANKING_PERIODS:
        raise ValidationError("period debe ser 'month' o 'all'")

    sales_query = (
        db.session.query(Pedido.user_id, func.count(Pedido.id))
        .filter(Pedido.estado == ORDER_COMPLETED)
    )
    if period == "month":
        sales_query = sales_query.filter(Pedido.completed_at >= start_of_month())
    sales_by_user = dict(sales_query.group_by(Pedido.user_id).all())

    points_by_user = dict(
        db.session.query(Point.user_id, func.sum(Point.amount)).group_by(Point.user_id).all()
    )
    badges_by_user = dict(
        db.session.query(UserBadge.user_id, func.count(UserBadge.id)).group_by(UserBadge.user_id).all()
    )
    levels_by_user = dict(db.session.query(UserLevel.user_id, UserLevel.current_level).all())

    entries = []
    for user in db.session.query(User).order_by(User.id).all():
        entries.append({
            "userId": user.id,
            "userName": user.name,
            "userHandle": user.handle,
            "level": levels_by_user.get(user.id) or LOWEST_LEVEL,
            "totalSales": int(sales_by_user.get(user.id) or 0),
            "totalPoints": int(points_by_user.get(user.id) or 0),
            "badgesCount": int(badges_by_user.get(user.id) or 0),
            "isCurrentUser": user.id == user_id,
        })

    entries.sort(key=lambda e: (-e["totalSales"], -e["totalPoints"], e["userId"]))
    for position, entry in enumerate(entries, start=1):
        entry["position"] = position

    ranking = entries[:RANKING_SIZE]
    caller = next((e for e in entries if e["isCurrentUser"]), None)
    if caller is not None and caller["position"] > RANKING_SIZE:
        ranking.append(caller)
    return ranking


# -------------------------
# Admin
# -------------------------

def seed_badges() -> dict:
    """Upsert the sales badges by slug. Returns created/existing/total counts."""
    def work():
        created = existing = 0
        for definition in BADGE_DEFINITIONS:
            badge = db.session.query(Badge).filter_by(slug=definition["slug"]).first()
            if badge is None:
                badge = Badge(slug=definition["slug"])
                db.session.add(badge)
                created += 1
            else:
                existing += 1
            badge.name = definition["name"]
            badge.description = definition["description"]
            badge.icon = definition["icon"]
            badge.category = SALES_CATEGORY
            badge.rarity = definition["rarity"]
            badge.points = definition["points"]
            badge.condition = json.dumps({"type": "sales_count", "value": definition["min_sales"]})
        return {"created": created, "existing": existing}

    result = run_in_transaction(work)
    result["total"] = db.session.query(Badge).count()
    current_app.logger.info("Badges seeded: %s created, %s existing", result["created"], result["existing"])
    return result


def gamification_diagnostics() -> dict:
    badges = db.session.query(Badge).order_by(Badge.category, Badge.points).all()
    by_category = (
        db.session.query(Badge.category, func.count(Badge.id))
        .group_by(Badge.category)
        .order_by(Badge.category)
        .all()
    )
    users_with_badges = db.session.query(func.count(func.distinct(UserBadge.user_id))).scalar()
    levels = (
        db.session.query(UserLevel, User)
        .join(User, UserLevel.user_id == User.id)
        .order_by(UserLevel.total_sales.desc(), User.id)
        .all()
    )
    points_total = db.session.query(func.coalesce(func.sum(Point.amount), 0)).scalar()

    return {
        "badges": {
            "total": len(badges),
            "byCategory": [{"category": category, "count": count} for category, count in by_category],
            "list": [
                {
                    "slug": b.slug,
                    "name": b.name,
                    "category": b.category,
                    "rarity": b.rarity,
                    "points": b.points,
                }
                for b in badges
            ],
        },
        "users": {
            "withBadges": int(users_with_badges or 0),
            "levels": [
                {
                    "user": user.name,
                    "handle": user.handle,
                    "level": level.current_level,
                    "xp": level.current_xp,
                    "sales": level.total_sales,
                }
                for level, user in levels
            ],
        },
        "points": {"total": int(points_total or 0)},
    }


def init_gamification() -> dict:
    """
    Recompute level, brand sales and badges for every user.

    Used after importing data or changing badge rules. Existing ledger
    entries are kept; only newly qualifying badges add points.
    """
    def work():
        summary = {"usersProcessed": 0, "badgesAssigned": 0, "levelsUpdated": 0, "pointsAdded": 0}
        for (user_id,) in db.session.query(User.id).order_by(User.id).all():
            _, sales, _ = _refresh_level(user_id, award_level_up=False)
            brand_sales = track_brand_sales(user_id)
            badges = _unlock_badges(user_id, _collect_stats(user_id, sales, brand_sales))

            summary["usersProcessed"] += 1
            summary["levelsUpdated"] += 1
            summary["badgesAssigned"] += len(badges)
            summary["pointsAdded"] += sum(b.points for b in badges)
        return summary

    summary = run_in_transaction(work)
    current_app.logger.info(
        "Gamification initialized: %s users, %s badges, %s pts",
        summary["usersProcessed"], summary["badgesAssigned"], summary["pointsAdded"],
    )
    return summary
