# Overview: Service-layer operations for orders; creation, listing and status lifecycle.

"""
Orders (pedidos).

Orders are created pendiente with immutable lines. Status changes follow a
fixed transition table; entering completado accrues gamification and
product sales counts, and cancelling a completed order compensates them.
The status write and its side effects are committed together.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any

from flask import current_app

from ..extensions import db
from ..models import (
    Linea,
    Pedido,
    User,
    ORDER_PENDING,
    ORDER_SENT,
    ORDER_COMPLETED,
    ORDER_CANCELLED,
    ORDER_STATUSES,
)
from ..time_utils import utcnow
from ..validation import (
    ValidationError,
    NotFoundError,
    require_amount,
    require_positive_int,
)
from .concurrency import lock_for_update, run_in_transaction
from . import catalog_service, gamification_service


ALLOWED_TRANSITIONS = {
    ORDER_PENDING: frozenset({ORDER_SENT, ORDER_COMPLETED, ORDER_CANCELLED}),
    ORDER_SENT: frozenset({ORDER_COMPLETED, ORDER_CANCELLED}),
    ORDER_COMPLETED: frozenset({ORDER_CANCELLED}),
    ORDER_CANCELLED: frozenset(),
}


class OrderError(Exception):
    """Raised for order operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InvalidTransitionError(OrderError):
    """Status change not allowed from the current state."""


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _parse_line(index: int, item: Any) -> Linea:
    if not isinstance(item, dict):
        raise ValidationError(f"Item {index + 1} inválido")

    name = _text(item.get("name"))
    if not name:
        raise ValidationError(f"Item {index + 1}: falta el nombre del producto")

    product_id = _text(item.get("productId"))
    if not product_id:
        raise ValidationError(f"Item {index + 1}: falta productId")

    try:
        qty = require_positive_int("qty", item.get("qty"))
        mayorista = require_amount("mayorista", item.get("mayorista"))
        venta = require_amount("venta", item.get("venta"))
    except ValidationError as exc:
        raise ValidationError(f"Item {index + 1}: {exc}")

    return Linea(
        product_id=product_id,
        variant_id=_text(item.get("variantId")),
        sku=_text(item.get("sku")),
        brand=_text(item.get("brand")),
        name=name,
        talle=_text(item.get("talle")),
        color=_text(item.get("color")),
        qty=qty,
        mayorista=mayorista,
        venta=venta,
    )


def create_order(user_id: int, cliente: Any, telefono: Any, nota: Any, items: Any) -> Pedido:
    """
    Create a pendiente order with its lines in one transaction.

    Raises:
        NotFoundError: user does not exist
        ValidationError: missing customer data, no items, or an invalid line
    """
    if db.session.get(User, user_id) is None:
        raise NotFoundError("Usuario no encontrado")

    cliente = _text(cliente)
    telefono = _text(telefono)
    if not cliente or not telefono:
        raise ValidationError("Faltan datos del cliente")

    if not isinstance(items, list) or not items:
        raise ValidationError("El pedido debe tener al menos un producto")

    lineas = [_parse_line(i, item) for i, item in enumerate(items)]

    def _op():
        pedido = Pedido(
            user_id=user_id,
            cliente=cliente,
            telefono=telefono,
            nota=_text(nota),
            estado=ORDER_PENDING,
        )
        pedido.lineas = lineas
        db.session.add(pedido)
        db.session.flush()
        return pedido

    pedido = run_in_transaction(_op)
    current_app.logger.info(
        "Order %s created for user %s: %s lines, total %s",
        pedido.id, user_id, len(lineas), pedido.total_venta,
    )
    return pedido


def list_orders(user_id: int) -> list[Pedido]:
    """User's orders, newest first."""
    return (
        db.session.query(Pedido)
        .filter(Pedido.user_id == user_id)
        .order_by(Pedido.created_at.desc(), Pedido.id.desc())
        .all()
    )


def _sold_quantities(pedido: Pedido, sign: int) -> dict[str, int]:
    quantities: dict[str, int] = defaultdict(int)
    for linea in pedido.lineas:
        quantities[linea.product_id] += sign * linea.qty
    return dict(quantities)


def update_order_status(order_id: int, status: Any, user_id: int | None = None) -> tuple[Pedido, dict | None]:
    """
    Move an order to a new status.

    Same-status requests are a no-op. Returns (order, gamification summary
    or None).

    Raises:
        ValidationError: unknown status
        NotFoundError: order missing, or not owned by user_id when given
        InvalidTransitionError: transition not allowed
    """
    status = _text(status).lower()
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Estado inválido: {status or '(vacío)'}")

    def _op():
        pedido = lock_for_update(db.session.query(Pedido).filter_by(id=order_id)).first()
        if pedido is None or (user_id is not None and pedido.user_id != user_id):
            raise NotFoundError("Pedido no encontrado")

        previous = pedido.estado
        if previous == status:
            return pedido, previous, None

        if status not in ALLOWED_TRANSITIONS.get(previous, frozenset()):
            raise InvalidTransitionError(
                f"No se puede pasar un pedido de {previous} a {status}",
                details={"from": previous, "to": status},
            )

        now = utcnow()
        pedido.estado = status
        pedido.updated_at = now

        summary = None
        if status == ORDER_COMPLETED:
            pedido.completed_at = now
            catalog_service.adjust_sales_counts(_sold_quantities(pedido, +1))
            summary = gamification_service.process_order_completed(pedido)
        elif status == ORDER_CANCELLED:
            pedido.cancelled_at = now
            if previous == ORDER_COMPLETED:
                catalog_service.adjust_sales_counts(_sold_quantities(pedido, -1))
                summary = gamification_service.process_order_cancelled(pedido)

        return pedido, previous, summary

    pedido, previous, summary = run_in_transaction(_op)
    if previous != pedido.estado:
        current_app.logger.info("Order %s: %s -> %s", pedido.id, previous, pedido.estado)
    return pedido, summary
