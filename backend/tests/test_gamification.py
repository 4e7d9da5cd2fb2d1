"""Levels, points ledger, badges, ranking and brand ambassadors."""

import json

import pytest

from reventa.models import Badge, Point, UserBadge, UserBrandSales, UserLevel
from reventa.services import gamification_service, order_service
from reventa.services.gamification_service import (
    calculate_user_level,
    calculate_sale_points,
    evaluate_condition,
    next_level,
    progress_percent,
)


class TestRules:
    @pytest.mark.parametrize(
        "sales,level",
        [
            (0, "principiante"),
            (9, "principiante"),
            (10, "bronce"),
            (49, "bronce"),
            (50, "plata"),
            (100, "oro"),
            (200, "diamante"),
            (499, "diamante"),
            (500, "leyenda"),
            (10_000, "leyenda"),
        ],
    )
    def test_levels(self, sales, level):
        assert calculate_user_level(sales) == level

    def test_next_level_and_progress(self):
        assert next_level(0) == ("bronce", 10)
        assert next_level(30) == ("plata", 50)
        assert next_level(500) is None
        assert progress_percent(5) == 50
        assert progress_percent(30) == 50
        assert progress_percent(600) == 100

    @pytest.mark.parametrize(
        "amount,first,points",
        [
            (0, False, 0),
            (999, False, 0),
            (1000, False, 10),
            (2500, False, 20),
            (2500, True, 70),
            (15_999, True, 200),
        ],
    )
    def test_sale_points(self, amount, first, points):
        assert calculate_sale_points(amount, first) == points

    def test_conditions(self):
        stats = {"sales_count": 10, "sales_amount": 50_000, "total_points": 300, "brand_sales": {"nadin": 12}}
        assert evaluate_condition({"type": "sales_count", "value": 10}, stats)
        assert not evaluate_condition({"type": "sales_count", "value": 11}, stats)
        assert evaluate_condition({"type": "sales_amount", "value": 50_000}, stats)
        assert evaluate_condition({"type": "total_points", "value": 250}, stats)
        assert evaluate_condition({"type": "brand_sales", "brandSlug": "nadin", "value": 10}, stats)
        assert not evaluate_condition({"type": "brand_sales", "brandSlug": "otra", "value": 1}, stats)

    def test_legacy_min_sales_condition(self):
        assert evaluate_condition({"minSales": 5}, {"sales_count": 5})
        assert not evaluate_condition({"minSales": 5}, {"sales_count": 4})

    def test_unknown_condition_never_matches(self):
        assert not evaluate_condition({"type": "streak", "value": 1}, {"sales_count": 100})
        assert not evaluate_condition({}, {"sales_count": 100})


class TestSeedBadges:
    def test_idempotent(self, db_session):
        first = gamification_service.seed_badges()
        second = gamification_service.seed_badges()

        assert first["created"] == 6
        assert second["created"] == 0
        assert second["existing"] == 6
        assert db_session.query(Badge).count() == 6

    def test_definitions(self, db_session):
        gamification_service.seed_badges()
        badge = db_session.query(Badge).filter_by(slug="500-ventas").one()
        assert badge.points == 1000
        assert badge.rarity == "legendary"
        assert badge.category == "ventas"
        assert json.loads(badge.condition) == {"type": "sales_count", "value": 500}

    def test_endpoint(self, client, db_session):
        assert client.post("/api/admin/seed-badges").get_json()["created"] == 6
        assert client.post("/api/admin/seed-badges").get_json()["created"] == 0


class TestStats:
    def test_new_user(self, client, db_session):
        gamification_service.seed_badges()
        resp = client.post("/api/auth/registro", json={
            "email": "nueva@test.com",
            "password": "Secreta123",
            "name": "Nueva",
            "dni": "1",
            "telefono": "1",
            "handle": "nueva",
        })
        user_id = resp.get_json()["user"]["id"]

        stats = client.get(f"/api/gamification/stats?userId={user_id}").get_json()
        assert stats["level"]["currentXP"] == 0
        assert stats["level"]["totalSales"] == 0
        assert stats["level"]["currentLevel"] == "principiante"
        assert stats["badgesUnlocked"] == 0
        assert stats["totalPoints"] == 0
        assert stats["totalBadges"] == 6
        assert all(not b["unlocked"] for b in stats["badges"])

    def test_creates_missing_level(self, db_session, user):
        db_session.query(UserLevel).delete()
        db_session.commit()

        stats = gamification_service.get_user_stats(user.id)
        assert stats["level"]["currentXP"] == 0
        assert db_session.query(UserLevel).filter_by(user_id=user.id).count() == 1

    def test_requires_user_id(self, client, db_session):
        assert client.get("/api/gamification/stats").status_code == 400

    def test_unknown_user(self, client, db_session):
        assert client.get("/api/gamification/stats?userId=999").status_code == 404


class TestOrderLifecycle:
    def test_pending_orders_do_not_count(self, db_session, user, make_order):
        make_order(user.id)
        stats = gamification_service.get_user_stats(user.id)
        assert stats["level"]["totalSales"] == 0
        assert stats["totalPoints"] == 0

    def test_first_sale(self, db_session, user, make_order):
        gamification_service.seed_badges()
        pedido = make_order(user.id, lines=((2500, 1500, 1),))

        _, summary = order_service.update_order_status(pedido.id, "completado")

        assert summary["salePoints"] == 70
        assert summary["badgesUnlocked"] == ["primera-venta"]

        stats = gamification_service.get_user_stats(user.id)
        assert stats["level"]["totalSales"] == 1
        assert stats["level"]["currentXP"] == 1
        assert stats["badgesUnlocked"] == 1
        # 70 for the sale, 50 for the badge
        assert stats["totalPoints"] == 120

    def test_second_sale_has_no_bonus(self, db_session, user, make_order):
        first = make_order(user.id, lines=((2500, 1500, 1),))
        second = make_order(user.id, lines=((2500, 1500, 1),))
        order_service.update_order_status(first.id, "completado")
        _, summary = order_service.update_order_status(second.id, "completado")
        assert summary["salePoints"] == 20

    def test_cancel_compensates_and_keeps_badge(self, db_session, user, make_order):
        gamification_service.seed_badges()
        pedido = make_order(user.id, lines=((2500, 1500, 1),))
        order_service.update_order_status(pedido.id, "completado")

        order_service.update_order_status(pedido.id, "cancelado")

        entries = db_session.query(Point).filter_by(user_id=user.id).order_by(Point.id).all()
        assert [e.reason for e in entries] == ["sale", "badge", "cancel"]
        assert entries[-1].amount == -70
        assert entries[-1].pedido_id == pedido.id

        stats = gamification_service.get_user_stats(user.id)
        assert stats["totalPoints"] == 50
        assert stats["badgesUnlocked"] == 1
        assert stats["level"]["totalSales"] == 0

    def test_cancel_pending_order_touches_nothing(self, db_session, user, make_order):
        pedido = make_order(user.id)
        order_service.update_order_status(pedido.id, "cancelado")
        assert db_session.query(Point).count() == 0

    def test_level_up(self, db_session, user, make_order):
        gamification_service.seed_badges()
        for _ in range(10):
            pedido = make_order(user.id, lines=((500, 300, 1),))
            _, summary = order_service.update_order_status(pedido.id, "completado")

        assert summary["leveledUp"] is True
        assert summary["level"] == "bronce"

        stats = gamification_service.get_user_stats(user.id)
        assert stats["level"]["currentLevel"] == "bronce"
        assert stats["level"]["nextLevel"] == "plata"
        assert stats["level"]["nextLevelXP"] == 50
        assert stats["badgesUnlocked"] == 2
        # first-sale bonus 50 + level up 100 + badges 50 + 100
        assert stats["totalPoints"] == 300

        level_ups = db_session.query(Point).filter_by(user_id=user.id, reason="level_up").count()
        assert level_ups == 1

    def test_level_up_bonus_paid_once_per_level(self, db_session, user, make_order):
        completed = []
        for _ in range(10):
            pedido = make_order(user.id, lines=((500, 300, 1),))
            order_service.update_order_status(pedido.id, "completado")
            completed.append(pedido)
        # first-sale bonus 50 + level up 100
        assert gamification_service.total_points(user.id) == 150

        for victim in completed[3:5]:
            order_service.update_order_status(victim.id, "cancelado")
            assert db_session.query(UserLevel).filter_by(user_id=user.id).one().current_level == "principiante"

            replacement = make_order(user.id, lines=((500, 300, 1),))
            _, summary = order_service.update_order_status(replacement.id, "completado")
            assert summary["level"] == "bronce"

        stats = gamification_service.get_user_stats(user.id)
        assert stats["level"]["totalSales"] == 10
        assert stats["totalPoints"] == 150
        assert db_session.query(Point).filter_by(user_id=user.id, reason="level_up").count() == 1

    def test_init_records_highest_level_without_bonus(self, db_session, user, make_order):
        for _ in range(10):
            make_order(user.id, lines=((500, 300, 1),), estado="completado")

        gamification_service.init_gamification()

        level = db_session.query(UserLevel).filter_by(user_id=user.id).one()
        assert level.current_level == "bronce"
        assert level.highest_level == "bronce"
        assert db_session.query(Point).filter_by(reason="level_up").count() == 0


class TestBrandAmbassadors:
    def test_create_and_list(self, client, db_session):
        resp = client.post("/api/admin/brands", json={"brandSlug": "Nadin Lingerie", "brandName": "Nadin", "isActive": True})
        assert resp.status_code == 201
        assert resp.get_json()["brand"]["brandSlug"] == "nadin-lingerie"

        duplicate = client.post("/api/admin/brands", json={"brandSlug": "nadin-lingerie", "brandName": "Nadin"})
        assert duplicate.status_code == 400

        brands = client.get("/api/admin/brands").get_json()["brands"]
        assert brands[0]["brandName"] == "Nadin"
        assert brands[0]["stats"] == {"ambassadorCount": 0, "totalSales": 0}

    def test_requires_slug_and_name(self, client, db_session):
        assert client.post("/api/admin/brands", json={"brandName": "Nadin"}).status_code == 400

    def test_toggle(self, client, db_session):
        client.post("/api/admin/brands", json={"brandSlug": "nadin", "brandName": "Nadin"})
        resp = client.patch("/api/admin/brands", json={"brandSlug": "nadin", "isActive": True})
        assert resp.get_json()["brand"]["isActive"] is True
        assert client.patch("/api/admin/brands", json={"brandSlug": "nope", "isActive": True}).status_code == 404

    def test_bronze_badge_unlocks(self, db_session, user, make_order):
        gamification_service.create_brand("nadin", "Nadin", logo_emoji="💋", is_active=True)
        lines = tuple((1000, 600, 1, "Nadin", f"n{i}") for i in range(10))
        pedido = make_order(user.id, lines=lines)

        _, summary = order_service.update_order_status(pedido.id, "completado")

        assert "embajadora-nadin-bronce" in summary["badgesUnlocked"]
        assert "embajadora-nadin-plata" not in summary["badgesUnlocked"]

        badge = db_session.query(Badge).filter_by(slug="embajadora-nadin-bronce").one()
        assert badge.icon == "💋🥉"
        assert badge.points == 150
        assert db_session.query(Badge).filter_by(category="embajadora").count() == 4

        row = db_session.query(UserBrandSales).filter_by(user_id=user.id, brand_slug="nadin").one()
        assert row.sales_count == 10

    def test_inactive_brand_is_ignored(self, db_session, user, make_order):
        gamification_service.create_brand("nadin", "Nadin", is_active=False)
        pedido = make_order(user.id, lines=tuple((1000, 600, 1, "Nadin", f"n{i}") for i in range(10)))
        order_service.update_order_status(pedido.id, "completado")
        assert db_session.query(UserBrandSales).count() == 0

    def test_ambassador_count_ignores_longer_slugs(self, db_session, user, make_order):
        gamification_service.create_brand("nadin", "Nadin", is_active=True)
        gamification_service.create_brand("nadin-kids", "Nadin Kids", is_active=True)
        pedido = make_order(user.id, lines=tuple((1000, 600, 1, "Nadin Kids", f"k{i}") for i in range(10)))

        _, summary = order_service.update_order_status(pedido.id, "completado")
        assert summary["badgesUnlocked"] == ["embajadora-nadin-kids-bronce"]

        stats = {b["brandSlug"]: b["stats"] for b in gamification_service.list_brands()}
        assert stats["nadin"] == {"ambassadorCount": 0, "totalSales": 0}
        assert stats["nadin-kids"] == {"ambassadorCount": 1, "totalSales": 10}

    @pytest.mark.parametrize("flag,expected", [("false", False), ("0", False), ("true", True), (False, False)])
    def test_is_active_flag_parsing(self, client, db_session, flag, expected):
        resp = client.post("/api/admin/brands", json={"brandSlug": "nadin", "brandName": "Nadin", "isActive": flag})
        assert resp.status_code == 201
        assert resp.get_json()["brand"]["isActive"] is expected

        toggled = client.patch("/api/admin/brands", json={"brandSlug": "nadin", "isActive": str(not expected).lower()})
        assert toggled.get_json()["brand"]["isActive"] is (not expected)

    def test_is_active_rejects_other_values(self, client, db_session):
        client.post("/api/admin/brands", json={"brandSlug": "nadin", "brandName": "Nadin"})
        assert client.post("/api/admin/brands", json={"brandSlug": "otra", "brandName": "Otra", "isActive": "tal vez"}).status_code == 400
        assert client.patch("/api/admin/brands", json={"brandSlug": "nadin", "isActive": 1}).status_code == 400
        assert client.patch("/api/admin/brands", json={"brandSlug": "nadin"}).status_code == 400


class TestRanking:
    def test_orders_by_sales(self, client, make_user, make_order):
        ana, bea, cami = make_user(), make_user(), make_user()
        for _ in range(2):
            order_service.update_order_status(make_order(bea.id).id, "completado")
        order_service.update_order_status(make_order(cami.id).id, "completado")

        ranking = client.get(f"/api/gamification/ranking?userId={ana.id}&period=all").get_json()

        assert [e["userId"] for e in ranking] == [bea.id, cami.id, ana.id]
        assert [e["position"] for e in ranking] == [1, 2, 3]
        assert ranking[0]["totalSales"] == 2
        assert ranking[2]["isCurrentUser"] is True

    def test_month_counts_recent_completions(self, db_session, make_user, make_order):
        ana = make_user()
        order_service.update_order_status(make_order(ana.id).id, "completado")
        ranking = gamification_service.get_ranking(ana.id, "month")
        assert ranking[0]["totalSales"] == 1

    def test_caller_appended_outside_top(self, db_session, make_user, monkeypatch):
        monkeypatch.setattr(gamification_service, "RANKING_SIZE", 2)
        users = [make_user() for _ in range(4)]
        caller = users[-1]

        ranking = gamification_service.get_ranking(caller.id, "all")

        assert len(ranking) == 3
        assert ranking[-1]["userId"] == caller.id
        assert ranking[-1]["position"] == 4

    def test_invalid_period(self, client, user):
        assert client.get(f"/api/gamification/ranking?userId={user.id}&period=year").status_code == 400


class TestAdmin:
    def test_diagnostics(self, client, db_session, user, make_order):
        gamification_service.seed_badges()
        order_service.update_order_status(make_order(user.id).id, "completado")

        body = client.get("/api/admin/diagnostico-gamificacion").get_json()
        assert body["badges"]["total"] == 6
        assert body["badges"]["byCategory"] == [{"category": "ventas", "count": 6}]
        assert body["users"]["withBadges"] == 1
        assert body["points"]["total"] == 120

    def test_init_gamification_backfills_badges(self, client, db_session, user, make_order):
        order_service.update_order_status(make_order(user.id).id, "completado")
        gamification_service.seed_badges()
        assert db_session.query(UserBadge).count() == 0

        resp = client.post("/api/admin/init-gamification")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["usersProcessed"] == 1
        assert body["badgesAssigned"] == 1
        assert body["pointsAdded"] == 50

        second = client.post("/api/admin/init-gamification").get_json()
        assert second["badgesAssigned"] == 0
