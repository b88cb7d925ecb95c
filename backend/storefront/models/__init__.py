from .auth import (
    User, Role, UserRole, SessionToken,
    ROLE_OWNER, ROLE_ADMIN, ROLE_PROPRIETOR, ROLE_USER, DEFAULT_ROLES,
    TIER_BRONZE, TIER_SILVER, TIER_GOLD, TIER_PLATINUM, TIERS,
)
from .inventory import StockItem, Shop, ShopStock, ShopTransfer, TRANSFER_KIND_TRANSFER, TRANSFER_KIND_RESTOCK
from .sales import Order, OrderItem, ShopOrder, ShopOrderItem, UserSalesHistory
from .messaging import AppMessage, AppMessageRead, MESSAGE_CATEGORIES, TARGET_ALL, TARGET_USERS_ONLY

__all__ = [
    'User', 'Role', 'UserRole', 'SessionToken',
    'ROLE_OWNER', 'ROLE_ADMIN', 'ROLE_PROPRIETOR', 'ROLE_USER', 'DEFAULT_ROLES',
    'TIER_BRONZE', 'TIER_SILVER', 'TIER_GOLD', 'TIER_PLATINUM', 'TIERS',
    'StockItem', 'Shop', 'ShopStock', 'ShopTransfer', 'TRANSFER_KIND_TRANSFER', 'TRANSFER_KIND_RESTOCK',
    'Order', 'OrderItem', 'ShopOrder', 'ShopOrderItem', 'UserSalesHistory',
    'AppMessage', 'AppMessageRead', 'MESSAGE_CATEGORIES', 'TARGET_ALL', 'TARGET_USERS_ONLY',
]
