"""Reseller price math: markup over wholesale, rounded to 50."""

from __future__ import annotations

import math

ROUNDING_STEP = 50


def round_to_50(amount: float) -> int:
    """Nearest multiple of 50; exact halves round up."""
    return int(math.floor(amount / ROUNDING_STEP + 0.5)) * ROUNDING_STEP


def sale_price(wholesale: float, margin: float) -> int:
    """Sale price for a wholesale price and a margin percentage."""
    return round_to_50(wholesale * (1 + margin / 100))


def format_currency(amount: float | None) -> str:
    """'$12.345' (es-AR grouping, no decimals). Missing values render '$0'."""
    if amount is None or (isinstance(amount, float) and math.isnan(amount)):
        return "$0"
    rounded = int(math.floor(abs(amount) + 0.5))
    grouped = f"{rounded:,}".replace(",", ".")
    sign = "-" if amount < 0 and rounded else ""
    return f"{sign}${grouped}"


def round_amount(amount: float) -> int:
    """Whole currency units; exact halves round up."""
    return int(math.floor(amount + 0.5))
