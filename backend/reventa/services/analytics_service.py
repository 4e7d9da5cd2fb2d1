# Overview: Service-layer read models for sales analytics and customer (clienta) activity.

"""
Sales analytics computed from a reseller's own orders.

Cancelled orders never count. Customers are grouped by name, trimmed and
case-insensitive, the way resellers type them on each order. Amounts are
rounded to whole currency units, halves up.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

from ..extensions import db
from ..models import Pedido, ORDER_PENDING, ORDER_COMPLETED, ORDER_CANCELLED
from ..time_utils import utcnow, start_of_month, start_of_year, month_key, to_utc_z
from ..validation import ValidationError, NotFoundError
from .pricing import round_amount


ANALYTICS_PERIODS = ("all", "month", "year")
TOP_SIZE = 10
FAVORITES_SIZE = 5
MONTHLY_WINDOW = 6

RECENT_DAYS = 30
QUARTER_DAYS = 90

# (max days since last purchase, state); anything older is "riesgo"
ACTIVITY_STATES = (
    (15, "activa"),
    (30, "regular"),
    (60, "inactiva"),
)
AT_RISK = "riesgo"

TREND_UP = 1.2
TREND_DOWN = 0.8

NO_BRAND = "Sin marca"


def _naive(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _client_key(name: str) -> str:
    return (name or "").strip().lower()


def _units(pedido: Pedido) -> int:
    return sum(linea.qty for linea in pedido.lineas)


def _orders(user_id: int, since: datetime | None = None) -> list[Pedido]:
    query = db.session.query(Pedido).filter(
        Pedido.user_id == user_id,
        Pedido.estado != ORDER_CANCELLED,
    )
    if since is not None:
        query = query.filter(Pedido.created_at >= since)
    return query.order_by(Pedido.created_at.desc(), Pedido.id.desc()).all()


def _period_start(period: str, now: datetime) -> datetime | None:
    if period not in ANALYTICS_PERIODS:
        raise ValidationError("period debe ser 'all', 'month' o 'year'")
    if period == "month":
        return start_of_month(now)
    if period == "year":
        return start_of_year(now)
    return None


def _last_months(now: datetime, count: int) -> list[str]:
    """count "YYYY-MM" keys ending with the current month, oldest first."""
    keys = []
    year, month = now.year, now.month
    for _ in range(count):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


def _product_totals(pedidos: list[Pedido]) -> list[dict]:
    """Per product variant: units and revenue, most units first."""
    products: dict[tuple[str, str], dict] = {}
    for pedido in pedidos:
        for linea in pedido.lineas:
            key = (linea.product_id, linea.variant_id)
            entry = products.get(key)
            if entry is None:
                entry = products[key] = {
                    "nombre": linea.name,
                    "brand": linea.brand or NO_BRAND,
                    "cantidad": 0,
                    "total": 0.0,
                }
            entry["cantidad"] += linea.qty
            entry["total"] += linea.venta * linea.qty
    return sorted(products.values(), key=lambda p: -p["cantidad"])


def get_analytics(user_id: int, period: str = "all", now: datetime | None = None) -> dict:
    """
    Totals, estimated gain, average ticket, top customers and products.

    period filters on order creation: all, month (current calendar month)
    or year (current calendar year). Gain is estimated from wholesale
    prices; the real figure comes from consolidations.
    """
    now = now or utcnow()
    pedidos = _orders(user_id, _period_start(period, now))

    total_ventas = sum(p.total_venta for p in pedidos)
    total_ganancia = sum(p.total_venta - p.total_mayorista for p in pedidos)
    ticket = total_ventas / len(pedidos) if pedidos else 0

    clients: dict[str, dict] = {}
    for pedido in pedidos:
        created = _naive(pedido.created_at)
        entry = clients.get(_client_key(pedido.cliente))
        if entry is None:
            entry = clients[_client_key(pedido.cliente)] = {
                "nombre": pedido.cliente,
                "totalCompras": 0.0,
                "cantidadPedidos": 0,
                "ultimaCompra": created,
            }
        entry["totalCompras"] += pedido.total_venta
        entry["cantidadPedidos"] += 1
        entry["ultimaCompra"] = max(entry["ultimaCompra"], created)

    top_clients = sorted(clients.values(), key=lambda c: -c["totalCompras"])[:TOP_SIZE]

    monthly = {key: 0.0 for key in _last_months(now, MONTHLY_WINDOW)}
    for pedido in pedidos:
        key = month_key(_naive(pedido.created_at))
        if key in monthly:
            monthly[key] += pedido.total_venta

    by_status: dict[str, int] = {}
    for pedido in pedidos:
        by_status[pedido.estado] = by_status.get(pedido.estado, 0) + 1

    return {
        "metricas": {
            "totalPedidos": len(pedidos),
            "totalVentas": round_amount(total_ventas),
            "totalGanancia": round_amount(total_ganancia),
            "totalClientas": len(clients),
            "ticketPromedio": round_amount(ticket),
        },
        "topClientas": [
            {
                "nombre": c["nombre"],
                "totalCompras": round_amount(c["totalCompras"]),
                "cantidadPedidos": c["cantidadPedidos"],
                "ultimaCompra": to_utc_z(c["ultimaCompra"]),
            }
            for c in top_clients
        ],
        "ventasMensuales": [{"mes": mes, "total": round_amount(total)} for mes, total in monthly.items()],
        "topProductos": [
            {
                "nombre": p["nombre"],
                "brand": p["brand"],
                "cantidadVendida": p["cantidad"],
                "totalVentas": round_amount(p["total"]),
            }
            for p in _product_totals(pedidos)[:TOP_SIZE]
        ],
        "pedidosPorEstado": by_status,
        "periodo": period,
    }


# -------------------------
# Customers
# -------------------------

def days_since(last_purchase: datetime, now: datetime) -> int:
    """Whole days since the last purchase, partial days rounded up."""
    return max(0, math.ceil((now - last_purchase).total_seconds() / 86400))


def activity_state(days: int) -> str:
    for limit, state in ACTIVITY_STATES:
        if days <= limit:
            return state
    return AT_RISK


def purchase_trend(average_ticket: float, recent_amount: float, recent_orders: int) -> str:
    """Recent (30 day) ticket against the customer's overall average."""
    if not recent_orders:
        return "bajando"
    recent_ticket = recent_amount / recent_orders
    if recent_ticket > average_ticket * TREND_UP:
        return "subiendo"
    if recent_ticket < average_ticket * TREND_DOWN:
        return "bajando"
    return "estable"


def _window_totals(pedidos: list[Pedido], now: datetime) -> dict:
    recent_from = now - timedelta(days=RECENT_DAYS)
    quarter_from = now - timedelta(days=QUARTER_DAYS)
    totals = {
        "comprasUltimos30Dias": 0.0,
        "comprasUltimos90Dias": 0.0,
        "pedidosUltimos30Dias": 0,
        "pedidosUltimos90Dias": 0,
    }
    for pedido in pedidos:
        created = _naive(pedido.created_at)
        if created >= recent_from:
            totals["comprasUltimos30Dias"] += pedido.total_venta
            totals["pedidosUltimos30Dias"] += 1
        if created >= quarter_from:
            totals["comprasUltimos90Dias"] += pedido.total_venta
            totals["pedidosUltimos90Dias"] += 1
    return totals


def list_clients(user_id: int, now: datetime | None = None) -> list[dict]:
    """Every customer of the reseller with activity state and trend, biggest spenders first."""
    now = now or utcnow()

    grouped: dict[str, list[Pedido]] = {}
    for pedido in _orders(user_id):
        grouped.setdefault(_client_key(pedido.cliente), []).append(pedido)

    clients = []
    for pedidos in grouped.values():
        # newest first, as loaded
        latest, earliest = pedidos[0], pedidos[-1]
        total = sum(p.total_venta for p in pedidos)
        average = total / len(pedidos)
        windows = _window_totals(pedidos, now)
        days = days_since(_naive(latest.created_at), now)

        clients.append({
            "nombre": latest.cliente,
            "telefono": next((p.telefono for p in pedidos if p.telefono), None),
            "totalCompras": round_amount(total),
            "cantidadPedidos": len(pedidos),
            "primeraCompra": to_utc_z(_naive(earliest.created_at)),
            "ultimaCompra": to_utc_z(_naive(latest.created_at)),
            "ticketPromedio": round_amount(average),
            "productosComprados": sum(_units(p) for p in pedidos),
            "pedidosPendientes": sum(1 for p in pedidos if p.estado == ORDER_PENDING),
            "pedidosCompletados": sum(1 for p in pedidos if p.estado == ORDER_COMPLETED),
            "comprasUltimos30Dias": round_amount(windows["comprasUltimos30Dias"]),
            "comprasUltimos90Dias": round_amount(windows["comprasUltimos90Dias"]),
            "pedidosUltimos30Dias": windows["pedidosUltimos30Dias"],
            "pedidosUltimos90Dias": windows["pedidosUltimos90Dias"],
            "diasSinComprar": days,
            "estado": activity_state(days),
            "tendencia": purchase_trend(average, windows["comprasUltimos30Dias"], windows["pedidosUltimos30Dias"]),
        })

    clients.sort(key=lambda c: -c["totalCompras"])
    return clients


def get_client_detail(user_id: int, nombre: str, now: datetime | None = None) -> dict:
    """
    One customer's history: metrics, favourite products, monthly totals
    and every order with its lines.

    Raises NotFoundError when the reseller has no orders for that name.
    """
    now = now or utcnow()
    key = _client_key(nombre)
    pedidos = [p for p in _orders(user_id) if _client_key(p.cliente) == key] if key else []
    if not pedidos:
        raise NotFoundError("Clienta no encontrada")

    latest, earliest = pedidos[0], pedidos[-1]
    total = sum(p.total_venta for p in pedidos)
    windows = _window_totals(pedidos, now)
    days = days_since(_naive(latest.created_at), now)

    dates = sorted(_naive(p.created_at) for p in pedidos)
    gaps = [(b - a).total_seconds() / 86400 for a, b in zip(dates, dates[1:])]
    frequency = sum(gaps) / len(gaps) if gaps else 0

    monthly: dict[str, float] = {}
    for pedido in pedidos:
        mes = month_key(_naive(pedido.created_at))
        monthly[mes] = monthly.get(mes, 0.0) + pedido.total_venta

    return {
        "nombre": latest.cliente,
        "telefono": latest.telefono,
        "metricas": {
            "totalPedidos": len(pedidos),
            "totalCompras": round_amount(total),
            "totalProductos": sum(_units(p) for p in pedidos),
            "ticketPromedio": round_amount(total / len(pedidos)),
            "primeraCompra": to_utc_z(_naive(earliest.created_at)),
            "ultimaCompra": to_utc_z(_naive(latest.created_at)),
            "frecuenciaPromedio": round_amount(frequency),
            "comprasUltimos30Dias": round_amount(windows["comprasUltimos30Dias"]),
            "comprasUltimos90Dias": round_amount(windows["comprasUltimos90Dias"]),
            "pedidosUltimos30Dias": windows["pedidosUltimos30Dias"],
            "pedidosUltimos90Dias": windows["pedidosUltimos90Dias"],
            "diasSinComprar": days,
            "estado": activity_state(days),
        },
        "productosFavoritos": [
            {
                "nombre": p["nombre"],
                "brand": p["brand"],
                "cantidad": p["cantidad"],
                "totalGastado": round_amount(p["total"]),
            }
            for p in _product_totals(pedidos)[:FAVORITES_SIZE]
        ],
        "historialMensual": [
            {"mes": mes, "total": round_amount(monthly[mes])} for mes in sorted(monthly)
        ],
        "historialPedidos": [
            {
                "id": p.id,
                "fecha": to_utc_z(_naive(p.created_at)),
                "estado": p.estado,
                "totalProductos": _units(p),
                "totalVenta": round_amount(p.total_venta),
                "productos": [
                    {
                        "nombre": linea.name,
                        "talle": linea.talle,
                        "color": linea.color,
                        "cantidad": linea.qty,
                        "precio": linea.venta,
                    }
                    for linea in p.lineas
                ],
            }
            for p in pedidos
        ],
    }
