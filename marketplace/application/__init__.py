"""Application layer module.

Contains application services (use cases) that orchestrate
domain logic and infrastructure.
"""

from marketplace.application.cart_service import CartAggregator, get_cart_service
from marketplace.application.catalog_service import CatalogService, get_catalog_service
from marketplace.application.fulfillment_service import FulfillmentScheduler
from marketplace.application.inventory_service import InventoryLedger, get_inventory_ledger
from marketplace.application.order_service import OrderLedger, get_order_service
from marketplace.application.support_service import SupportService, get_support_service
from marketplace.application.user_service import UserService, get_user_service

__all__ = [
    "CartAggregator",
    "get_cart_service",
    "CatalogService",
    "get_catalog_service",
    "FulfillmentScheduler",
    "InventoryLedger",
    "get_inventory_ledger",
    "OrderLedger",
    "get_order_service",
    "SupportService",
    "get_support_service",
    "UserService",
    "get_user_service",
]
