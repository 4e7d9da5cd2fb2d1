# Overview: Service-layer operations for consolidations; batching pending orders to the supplier.

"""
Consolidation: a reseller batches pending orders into one supplier
shipment. Totals and the supplier CSV are computed from the order lines,
the orders move to enviado, and the Consolidacion row is written in the
same transaction.
"""

from __future__ import annotations

import csv
import io
import json
from typing import Any

from flask import current_app

from ..extensions import db
from ..models import Consolidacion, Pedido, User, ORDER_PENDING, ORDER_SENT
from ..time_utils import utcnow
from ..validation import ValidationError, NotFoundError, require_amount, require_positive_int
from .concurrency import lock_for_update, run_in_transaction


CSV_HEADER = (
    "cliente",
    "telefono",
    "product_id",
    "variant_id",
    "sku",
    "marca",
    "producto",
    "talle",
    "color",
    "cantidad",
    "precio_mayorista_unit",
    "precio_mayorista_total",
    "precio_revendedora_unit",
    "precio_revendedora_total",
    "nota",
)


class ConsolidationError(Exception):
    """Raised when orders cannot be consolidated."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _number(value: float):
    """Render whole amounts without a trailing .0."""
    return int(value) if float(value).is_integer() else value


def build_csv(pedidos: list[Pedido]) -> str:
    """Supplier CSV with one row per order line."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for pedido in pedidos:
        for linea in pedido.lineas:
            writer.writerow([
                pedido.cliente,
                pedido.telefono,
                linea.product_id,
                linea.variant_id,
                linea.sku,
                linea.brand,
                linea.name,
                linea.talle,
                linea.color,
                linea.qty,
                _number(linea.mayorista),
                _number(linea.mayorista * linea.qty),
                _number(linea.venta),
                _number(linea.venta * linea.qty),
                pedido.nota or "",
            ])
    return buffer.getvalue().rstrip("\n")


def _parse_ids(pedido_ids: Any) -> list[int]:
    if not isinstance(pedido_ids, list) or not pedido_ids:
        raise ValidationError("Seleccioná al menos un pedido")
    ids = [require_positive_int("pedidoIds", value) for value in pedido_ids]
    # keep submission order, drop repeats
    return list(dict.fromkeys(ids))


def consolidate_orders(
    user_id: int,
    pedido_ids: Any,
    forma_pago: Any,
    tipo_envio: Any,
    transporte_nombre: Any = None,
    descuento_total: Any = 0,
) -> tuple[Consolidacion, str]:
    """
    Consolidate pending orders of one user.

    Returns (consolidacion, csv_content).

    Raises:
        ValidationError: bad input
        NotFoundError: user missing, or an order missing / owned by someone else
        ConsolidationError: an order is not pendiente
    """
    if db.session.get(User, user_id) is None:
        raise NotFoundError("Usuario no encontrado")

    ids = _parse_ids(pedido_ids)
    forma_pago = str(forma_pago or "").strip()
    tipo_envio = str(tipo_envio or "").strip()
    if not forma_pago or not tipo_envio:
        raise ValidationError("formaPago y tipoEnvio son requeridos")
    transporte_nombre = str(transporte_nombre).strip() if transporte_nombre else None
    descuento = require_amount("descuentoTotal", 0 if descuento_total in (None, "") else descuento_total)

    def _op():
        pedidos = (
            lock_for_update(db.session.query(Pedido).filter(Pedido.id.in_(ids)))
            .order_by(Pedido.id)
            .all()
        )
        found = {p.id: p for p in pedidos}

        missing = [pid for pid in ids if pid not in found or found[pid].user_id != user_id]
        if missing:
            raise NotFoundError(f"Pedidos no encontrados: {', '.join(str(pid) for pid in missing)}")

        not_pending = [pid for pid in ids if found[pid].estado != ORDER_PENDING]
        if not_pending:
            raise ConsolidationError(
                "Solo se pueden consolidar pedidos pendientes",
                details={"pedidoIds": not_pending},
            )

        ordered = [found[pid] for pid in ids]
        total_mayorista = sum(p.total_mayorista for p in ordered)
        total_venta = sum(p.total_venta for p in ordered)
        csv_content = build_csv(ordered)

        now = utcnow()
        consolidacion = Consolidacion(
            user_id=user_id,
            pedido_ids=json.dumps(ids),
            forma_pago=forma_pago,
            tipo_envio=tipo_envio,
            transporte_nombre=transporte_nombre,
            total_mayorista=total_mayorista,
            total_venta=total_venta,
            descuento_total=descuento,
            ganancia=total_venta - descuento - total_mayorista,
            enviado_at=now,
        )
        db.session.add(consolidacion)

        for pedido in ordered:
            pedido.estado = ORDER_SENT
            pedido.updated_at = now

        db.session.flush()
        return consolidacion, csv_content

    consolidacion, csv_content = run_in_transaction(_op)
    current_app.logger.info(
        "Consolidation %s for user %s: %s orders, venta %s, ganancia %s",
        consolidacion.id, user_id, len(ids), consolidacion.total_venta, consolidacion.ganancia,
    )
    return consolidacion, csv_content


def record_real_cost(consolidacion_id: Any, costo_real: Any, user_id: int | None = None) -> Consolidacion:
    """Store the supplier's actual charge and the resulting net gain."""
    consolidacion_id = require_positive_int("consolidacionId", consolidacion_id)
    costo = require_amount("costoReal", costo_real)

    consolidacion = db.session.get(Consolidacion, consolidacion_id)
    if consolidacion is None or (user_id is not None and consolidacion.user_id != user_id):
        raise NotFoundError("Consolidación no encontrada")

    consolidacion.costo_real = costo
    consolidacion.ganancia_neta = consolidacion.total_venta - consolidacion.descuento_total - costo
    db.session.commit()
    return consolidacion


def list_consolidations(user_id: int) -> list[Consolidacion]:
    return (
        db.session.query(Consolidacion)
        .filter(Consolidacion.user_id == user_id)
        .order_by(Consolidacion.enviado_at.desc(), Consolidacion.id.desc())
        .all()
    )
