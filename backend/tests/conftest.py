"""
Pytest fixtures for Reventa backend tests.

Provides test database setup, a test client, factories for users and
orders, and a fake store API built on httpx.MockTransport.
"""

import json

import httpx
import pytest

from reventa import create_app
from reventa.extensions import db
from reventa.models import User, UserLevel, Pedido, Linea, CatalogoCache
from reventa.services.auth_service import hash_password


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'CRON_SECRET': None,
        'ADMIN_TOKEN': None,
        'TN_API_BASE': 'https://store.test/v1',
        'TN_STORE_ID': '123',
        'TN_ACCESS_TOKEN': 'test-token',
        'STORE_RETRY_DELAY_SECONDS': 0,
        'STORE_PAGE_DELAY_SECONDS': 0,
        'CATALOG_PAGE_SIZE': 500,
        'BEST_SELLERS_LIMIT': 50,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_user(db_session):
    """Factory creating a user with a level record."""
    counter = {"n": 0}

    def _make(handle=None, password="Secreta123", **fields):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=fields.pop("email", f"user{n}@test.com"),
            password_hash=hash_password(password),
            name=fields.pop("name", f"Usuaria {n}"),
            dni=fields.pop("dni", f"3000000{n}"),
            telefono=fields.pop("telefono", "1155550000"),
            handle=handle or f"usuaria{n}",
            margen=fields.pop("margen", 60),
            **fields,
        )
        db_session.add(user)
        db_session.flush()
        db_session.add(UserLevel(user_id=user.id))
        db_session.commit()
        return user

    return _make


@pytest.fixture(scope='function')
def user(make_user):
    return make_user(handle="vendedora")


@pytest.fixture(scope='function')
def make_order(db_session):
    """Factory creating a pendiente order; lines are (venta, mayorista, qty[, brand[, product_id]])."""
    def _make(user_id, lines=((2500, 1500, 1),), cliente="Ana", telefono="1144443333", estado="pendiente"):
        pedido = Pedido(user_id=user_id, cliente=cliente, telefono=telefono, nota="", estado=estado)
        for i, line in enumerate(lines):
            venta, mayorista, qty = line[:3]
            brand = line[3] if len(line) > 3 else "Marca"
            product_id = line[4] if len(line) > 4 else f"p{i + 1}"
            pedido.lineas.append(Linea(
                product_id=product_id,
                variant_id=f"v{i + 1}",
                sku=f"SKU-{i + 1}",
                brand=brand,
                name=f"Producto {i + 1}",
                talle="M",
                color="Negro",
                qty=qty,
                mayorista=mayorista,
                venta=venta,
            ))
        db_session.add(pedido)
        db_session.commit()
        return pedido

    return _make


@pytest.fixture(scope='function')
def cached_product(db_session):
    """Factory inserting a catalogo_cache row."""
    def _make(product_id, name="Remera", brand="Marca", category="Mujer > Ropa > Remeras", sales_count=0, data=None):
        row = CatalogoCache(
            product_id=str(product_id),
            data=data if data is not None else json.dumps({
                "id": product_id,
                "name": name,
                "brand": brand,
                "category": category,
                "image": "/placeholder.png",
                "variants": [],
                "published": True,
            }),
            brand=brand,
            category=category,
            sales_count=sales_count,
        )
        db_session.add(row)
        db_session.commit()
        return row

    return _make


def store_product(product_id, name="Remera", brand="Marca", category_ids=(3,), price="1000.00"):
    """Raw product as returned by the store API."""
    return {
        "id": product_id,
        "name": {"es": name},
        "brand": brand,
        "published": True,
        "categories": [{"id": cid, "name": {"es": f"Cat {cid}"}} for cid in category_ids],
        "images": [{"src": f"https://cdn.test/{product_id}.jpg"}],
        "variants": [
            {
                "id": product_id * 10,
                "sku": f"SKU-{product_id}",
                "price": price,
                "stock": 5,
                "values": [{"es": "Negro"}, {"es": "M"}],
            }
        ],
    }


STORE_CATEGORIES = [
    {"id": 1, "name": {"es": "Mujer"}, "parent": None},
    {"id": 2, "name": {"es": "Ropa"}, "parent": 1},
    {"id": 3, "name": {"es": "Remeras"}, "parent": 2},
    {"id": 4, "name": {"es": "Hombre"}, "parent": None},
]


class FakeStore:
    """Programmable store API behind httpx.MockTransport."""

    def __init__(self, products=(), categories=STORE_CATEGORIES):
        self.products = list(products)
        self.categories = list(categories)
        self.fail_paths = {}
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        for fragment, status in self.fail_paths.items():
            if fragment in path:
                return httpx.Response(status, json={"error": "boom"})

        page = int(request.url.params.get("page", "1"))
        per_page = int(request.url.params.get("per_page", "200"))
        start, end = (page - 1) * per_page, page * per_page

        if path.endswith("/products"):
            return httpx.Response(200, json=self.products[start:end])
        if path.endswith("/categories"):
            return httpx.Response(200, json=self.categories[start:end])
        return httpx.Response(404, json={"error": "not found"})

    @property
    def transport(self):
        return httpx.MockTransport(self.handler)


@pytest.fixture(scope='function')
def fake_store(app, monkeypatch):
    store = FakeStore()
    monkeypatch.setitem(app.config, 'STORE_HTTP_TRANSPORT', store.transport)
    return store
