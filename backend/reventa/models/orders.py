from __future__ import annotations

import json

from ..extensions import db
from ..time_utils import to_utc_z


ORDER_PENDING = "pendiente"
ORDER_SENT = "enviado"
ORDER_COMPLETED = "completado"
ORDER_CANCELLED = "cancelado"

ORDER_STATUSES = (ORDER_PENDING, ORDER_SENT, ORDER_COMPLETED, ORDER_CANCELLED)


class Pedido(db.Model):
    """
    Order placed by a reseller on behalf of an end customer.

    Lifecycle: pendiente -> enviado -> completado, with cancelado reachable
    from every non-terminal state. Lines are immutable once created.
    """
    __tablename__ = "pedidos"
    __table_args__ = (
        db.Index("ix_pedidos_user_estado", "user_id", "estado"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    cliente = db.Column(db.String(128), nullable=False)
    telefono = db.Column(db.String(32), nullable=False)
    nota = db.Column(db.String(500), nullable=False, default="")

    estado = db.Column(db.String(16), nullable=False, default=ORDER_PENDING, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", backref=db.backref("pedidos", lazy=True))
    lineas = db.relationship(
        "Linea",
        backref="pedido",
        lazy=True,
        order_by="Linea.id",
        cascade="all, delete-orphan",
    )

    @property
    def total_venta(self) -> float:
        return sum(linea.venta * linea.qty for linea in self.lineas)

    @property
    def total_mayorista(self) -> float:
        return sum(linea.mayorista * linea.qty for linea in self.lineas)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "cliente": self.cliente,
            "telefono": self.telefono,
            "nota": self.nota,
            "estado": self.estado,
            "totalVenta": self.total_venta,
            "totalMayorista": self.total_mayorista,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
            "completedAt": to_utc_z(self.completed_at),
            "cancelledAt": to_utc_z(self.cancelled_at),
            "lineas": [linea.to_dict() for linea in self.lineas],
        }


class Linea(db.Model):
    """Line item on an order: product/variant snapshot plus prices."""
    __tablename__ = "lineas"
    __table_args__ = (
        db.CheckConstraint("qty > 0", name="ck_lineas_qty_positive"),
        db.CheckConstraint("mayorista >= 0", name="ck_lineas_mayorista_non_negative"),
        db.CheckConstraint("venta >= 0", name="ck_lineas_venta_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    pedido_id = db.Column(db.Integer, db.ForeignKey("pedidos.id"), nullable=False, index=True)

    product_id = db.Column(db.String(64), nullable=False, index=True)
    variant_id = db.Column(db.String(64), nullable=False)
    sku = db.Column(db.String(64), nullable=False, default="")
    brand = db.Column(db.String(128), nullable=False, default="", index=True)
    name = db.Column(db.String(255), nullable=False)
    talle = db.Column(db.String(64), nullable=False, default="")
    color = db.Column(db.String(64), nullable=False, default="")

    qty = db.Column(db.Integer, nullable=False)
    # Wholesale unit price and reseller sale unit price
    mayorista = db.Column(db.Float, nullable=False)
    venta = db.Column(db.Float, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pedidoId": self.pedido_id,
            "productId": self.product_id,
            "variantId": self.variant_id,
            "sku": self.sku,
            "brand": self.brand,
            "name": self.name,
            "talle": self.talle,
            "color": self.color,
            "qty": self.qty,
            "mayorista": self.mayorista,
            "venta": self.venta,
        }


class Consolidacion(db.Model):
    """
    Batch of orders sent upstream to the supplier.

    pedido_ids keeps the JSON list of consolidated order ids as submitted.
    ganancia is estimated from wholesale prices; ganancia_neta is set once
    the real supplier cost is recorded.
    """
    __tablename__ = "consolidaciones"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    pedido_ids = db.Column(db.Text, nullable=False)
    forma_pago = db.Column(db.String(64), nullable=False)
    tipo_envio = db.Column(db.String(64), nullable=False)
    transporte_nombre = db.Column(db.String(128), nullable=True)

    total_mayorista = db.Column(db.Float, nullable=False)
    total_venta = db.Column(db.Float, nullable=False)
    descuento_total = db.Column(db.Float, nullable=False, default=0)
    ganancia = db.Column(db.Float, nullable=False)

    costo_real = db.Column(db.Float, nullable=True)
    ganancia_neta = db.Column(db.Float, nullable=True)

    enviado_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("consolidaciones", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "pedidoIds": json.loads(self.pedido_ids),
            "formaPago": self.forma_pago,
            "tipoEnvio": self.tipo_envio,
            "transporteNombre": self.transporte_nombre,
            "totalMayorista": self.total_mayorista,
            "totalVenta": self.total_venta,
            "descuentoTotal": self.descuento_total,
            "ganancia": self.ganancia,
            "costoReal": self.costo_real,
            "gananciaNeta": self.ganancia_neta,
            "enviadoAt": to_utc_z(self.enviado_at),
        }
