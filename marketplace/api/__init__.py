"""API layer module.

Contains FastAPI routers and request/response schemas.
"""

from marketplace.api.carts import router as carts_router
from marketplace.api.health import router as health_router
from marketplace.api.orders import router as orders_router
from marketplace.api.orders import user_orders_router
from marketplace.api.products import categories_router, promotions_router
from marketplace.api.products import router as products_router
from marketplace.api.support import router as support_router
from marketplace.api.users import router as users_router
from marketplace.api.users import sellers_router

__all__ = [
    "carts_router",
    "categories_router",
    "health_router",
    "orders_router",
    "products_router",
    "promotions_router",
    "sellers_router",
    "support_router",
    "user_orders_router",
    "users_router",
]
