from .users import User, SOCIAL_FIELDS
from .orders import (
    Pedido,
    Linea,
    Consolidacion,
    ORDER_PENDING,
    ORDER_SENT,
    ORDER_COMPLETED,
    ORDER_CANCELLED,
    ORDER_STATUSES,
)
from .gamification import Badge, UserBadge, Point, UserLevel, BrandAmbassador, UserBrandSales
from .catalog import CatalogoCache

__all__ = [
    'User', 'SOCIAL_FIELDS',
    'Pedido', 'Linea', 'Consolidacion',
    'ORDER_PENDING', 'ORDER_SENT', 'ORDER_COMPLETED', 'ORDER_CANCELLED', 'ORDER_STATUSES',
    'Badge', 'UserBadge', 'Point', 'UserLevel', 'BrandAmbassador', 'UserBrandSales',
    'CatalogoCache',
]
