"""Health check, admin token guard and CLI commands."""

import pytest

from reventa.models import Badge, BrandAmbassador, CatalogoCache

from conftest import store_product


class TestHealth:
    def test_healthy(self, client, db_session, user):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["details"]["users"] == 1
        assert body["timestamp"].endswith("Z")


class TestAdminToken:
    @pytest.fixture
    def token(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "ADMIN_TOKEN", "admin-token")
        return "admin-token"

    @pytest.mark.parametrize(
        "method,path",
        [
            ("post", "/api/admin/seed-badges"),
            ("post", "/api/admin/limpiar-cache"),
            ("get", "/api/admin/diagnostico-gamificacion"),
            ("post", "/api/admin/init-gamification"),
            ("get", "/api/admin/sync-status"),
            ("get", "/api/admin/brands"),
        ],
    )
    def test_rejects_without_token(self, client, db_session, token, method, path):
        resp = getattr(client, method)(path)
        assert resp.status_code == 401
        assert resp.get_json() == {"error": "No autorizado"}

    def test_rejects_wrong_token(self, client, db_session, token):
        resp = client.get("/api/admin/sync-status", headers={"Authorization": "Bearer otro"})
        assert resp.status_code == 401

    def test_accepts_token(self, client, db_session, token, cached_product):
        cached_product(1)
        resp = client.post("/api/admin/limpiar-cache", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.get_json()["deleted"] == 1

    def test_cron_secret_is_separate(self, client, db_session, token, fake_store):
        resp = client.get("/api/cron/sync-catalog", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200


class TestCommands:
    def test_catalog_sync(self, app, db_session, fake_store):
        fake_store.products = [store_product(1), store_product(2)]
        result = app.test_cli_runner().invoke(args=["catalog", "sync"])

        assert result.exit_code == 0
        assert "PASS 2 products" in result.output
        assert db_session.query(CatalogoCache).count() == 2

    def test_catalog_sync_failure(self, app, db_session, fake_store):
        fake_store.fail_paths["/categories"] = 503
        result = app.test_cli_runner().invoke(args=["catalog", "sync"])

        assert result.exit_code == 1
        assert "FAIL" in result.output

    def test_catalog_wipe(self, app, db_session, cached_product):
        cached_product(1)
        result = app.test_cli_runner().invoke(args=["catalog", "wipe", "--yes"])

        assert result.exit_code == 0
        assert "Deleted 1" in result.output
        assert db_session.query(CatalogoCache).count() == 0

    def test_catalog_stats(self, app, db_session, cached_product):
        cached_product(1, brand="Nadin")
        result = app.test_cli_runner().invoke(args=["catalog", "stats"])

        assert result.exit_code == 0
        assert "Products:      1" in result.output
        assert "Nadin" in result.output

    def test_seed_badges_twice(self, app, db_session):
        runner = app.test_cli_runner()
        first = runner.invoke(args=["badges", "seed"])
        second = runner.invoke(args=["badges", "seed"])

        assert "PASS 6 created" in first.output
        assert "PASS 0 created, 6 already existed" in second.output
        assert db_session.query(Badge).count() == 6

    def test_gamification_init(self, app, db_session, user):
        result = app.test_cli_runner().invoke(args=["gamification", "init"])
        assert result.exit_code == 0
        assert "PASS 1 users" in result.output

    def test_brand_add(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["brands", "add", "--slug", "Nadin", "--name", "Nadin", "--emoji", "💋", "--active"])

        assert result.exit_code == 0
        brand = db_session.query(BrandAmbassador).one()
        assert brand.brand_slug == "nadin"
        assert brand.is_active is True

        duplicate = runner.invoke(args=["brands", "add", "--slug", "nadin", "--name", "Otra"])
        assert duplicate.exit_code == 1
        assert "FAIL" in duplicate.output
