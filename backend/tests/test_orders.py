"""Order creation, listing and status lifecycle."""

import pytest

from reventa.models import Pedido, CatalogoCache
from reventa.services import order_service
from reventa.services.order_service import InvalidTransitionError


def _item(**overrides):
    item = {
        "productId": "10",
        "variantId": "100",
        "sku": "REM-NEG-M",
        "brand": "Nadin",
        "name": "Remera",
        "talle": "M",
        "color": "Negro",
        "qty": 2,
        "mayorista": 1000,
        "venta": 1600,
    }
    item.update(overrides)
    return item


def _order(user_id, **overrides):
    data = {
        "userId": user_id,
        "cliente": "Carla",
        "telefono": "1144443333",
        "nota": "Entregar a la tarde",
        "items": [_item()],
    }
    data.update(overrides)
    return data


class TestCreateOrder:
    def test_starts_pendiente(self, client, user):
        resp = client.post("/api/pedidos", json=_order(user.id))
        assert resp.status_code == 201

        pedido = resp.get_json()["pedido"]
        assert pedido["estado"] == "pendiente"
        assert pedido["totalVenta"] == 3200
        assert pedido["totalMayorista"] == 2000
        assert len(pedido["lineas"]) == 1
        assert pedido["lineas"][0]["talle"] == "M"

    def test_create_alias_route(self, client, user):
        resp = client.post("/api/pedidos/create", json=_order(user.id))
        assert resp.status_code == 201
        assert resp.get_json()["pedido"]["estado"] == "pendiente"

    def test_without_user_is_401(self, client, db_session):
        resp = client.post("/api/pedidos", json=_order(None))
        assert resp.status_code == 401

    def test_unknown_user_is_404(self, client, db_session):
        resp = client.post("/api/pedidos", json=_order(999))
        assert resp.status_code == 404

    def test_empty_items_is_400(self, client, user):
        resp = client.post("/api/pedidos", json=_order(user.id, items=[]))
        assert resp.status_code == 400

    @pytest.mark.parametrize("field", ["cliente", "telefono"])
    def test_missing_customer_data_is_400(self, client, user, field):
        resp = client.post("/api/pedidos", json=_order(user.id, **{field: ""}))
        assert resp.status_code == 400

    @pytest.mark.parametrize(
        "bad",
        [
            {"qty": 0},
            {"qty": -1},
            {"qty": 1.5},
            {"mayorista": -10},
            {"venta": "mucho"},
            {"name": ""},
        ],
    )
    def test_invalid_line_is_400(self, client, user, bad):
        resp = client.post("/api/pedidos", json=_order(user.id, items=[_item(**bad)]))
        assert resp.status_code == 400

    def test_invalid_line_writes_nothing(self, client, user, db_session):
        client.post("/api/pedidos", json=_order(user.id, items=[_item(), _item(qty=0)]))
        assert db_session.query(Pedido).count() == 0


class TestListOrders:
    def test_newest_first(self, client, user):
        first = client.post("/api/pedidos", json=_order(user.id, cliente="Primera")).get_json()["pedido"]
        second = client.post("/api/pedidos", json=_order(user.id, cliente="Segunda")).get_json()["pedido"]

        resp = client.get(f"/api/pedidos?userId={user.id}")
        assert resp.status_code == 200
        ids = [p["id"] for p in resp.get_json()]
        assert ids == [second["id"], first["id"]]

    def test_only_own_orders(self, client, make_user):
        ana, bea = make_user(), make_user()
        client.post("/api/pedidos", json=_order(ana.id))

        resp = client.get(f"/api/pedidos?userId={bea.id}")
        assert resp.get_json() == []

    def test_requires_user(self, client, db_session):
        assert client.get("/api/pedidos").status_code == 401


class TestStatusTransitions:
    @pytest.mark.parametrize(
        "path",
        [
            ["enviado"],
            ["completado"],
            ["cancelado"],
            ["enviado", "completado"],
            ["enviado", "cancelado"],
            ["completado", "cancelado"],
        ],
    )
    def test_allowed(self, db_session, user, make_order, path):
        pedido = make_order(user.id)
        for status in path:
            pedido, _ = order_service.update_order_status(pedido.id, status)
        assert pedido.estado == path[-1]

    @pytest.mark.parametrize("target", ["pendiente", "enviado", "completado"])
    def test_cancelado_is_terminal(self, db_session, user, make_order, target):
        pedido = make_order(user.id)
        order_service.update_order_status(pedido.id, "cancelado")
        with pytest.raises(InvalidTransitionError):
            order_service.update_order_status(pedido.id, target)

    def test_cannot_go_back_to_pendiente(self, db_session, user, make_order):
        pedido = make_order(user.id)
        order_service.update_order_status(pedido.id, "enviado")
        with pytest.raises(InvalidTransitionError):
            order_service.update_order_status(pedido.id, "pendiente")

    def test_same_status_is_noop(self, db_session, user, make_order):
        pedido = make_order(user.id)
        order_service.update_order_status(pedido.id, "completado")
        pedido, summary = order_service.update_order_status(pedido.id, "completado")
        assert pedido.estado == "completado"
        assert summary is None

    def test_timestamps(self, db_session, user, make_order):
        pedido = make_order(user.id)
        pedido, _ = order_service.update_order_status(pedido.id, "completado")
        assert pedido.completed_at is not None
        pedido, _ = order_service.update_order_status(pedido.id, "cancelado")
        assert pedido.cancelled_at is not None

    def test_endpoint(self, client, user, make_order):
        pedido = make_order(user.id)
        resp = client.patch("/api/pedidos/update-status", json={"pedidoId": pedido.id, "estado": "completado"})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["pedido"]["estado"] == "completado"
        assert body["gamification"]["salePoints"] == 70

    def test_endpoint_rejects_bad_transition(self, client, user, make_order):
        pedido = make_order(user.id)
        client.patch("/api/pedidos/update-status", json={"pedidoId": pedido.id, "estado": "cancelado"})
        resp = client.patch("/api/pedidos/update-status", json={"pedidoId": pedido.id, "estado": "completado"})
        assert resp.status_code == 400
        assert resp.get_json()["details"] == {"from": "cancelado", "to": "completado"}

    def test_endpoint_unknown_status(self, client, user, make_order):
        pedido = make_order(user.id)
        resp = client.patch("/api/pedidos/update-status", json={"pedidoId": pedido.id, "estado": "perdido"})
        assert resp.status_code == 400

    def test_endpoint_other_users_order(self, client, make_user, make_order):
        ana, bea = make_user(), make_user()
        pedido = make_order(ana.id)
        resp = client.patch(
            "/api/pedidos/update-status",
            json={"pedidoId": pedido.id, "estado": "completado", "userId": bea.id},
        )
        assert resp.status_code == 404


class TestSalesCounts:
    def test_completion_and_cancellation_adjust_cache(self, db_session, user, make_order, cached_product):
        cached_product("p1")
        pedido = make_order(user.id, lines=((2500, 1500, 3),))

        order_service.update_order_status(pedido.id, "completado")
        db_session.expire_all()
        assert db_session.query(CatalogoCache).filter_by(product_id="p1").one().sales_count == 3

        order_service.update_order_status(pedido.id, "cancelado")
        db_session.expire_all()
        assert db_session.query(CatalogoCache).filter_by(product_id="p1").one().sales_count == 0

    def test_cancelling_pending_order_leaves_counts(self, db_session, user, make_order, cached_product):
        cached_product("p1", sales_count=4)
        pedido = make_order(user.id)

        order_service.update_order_status(pedido.id, "cancelado")
        db_session.expire_all()
        assert db_session.query(CatalogoCache).filter_by(product_id="p1").one().sales_count == 4
