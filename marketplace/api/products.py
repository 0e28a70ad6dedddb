"""Catalogue API endpoints.

Provides endpoints for catalogue administration:
- POST /products - create a product
- GET /products/{id} - product with a price quote, now or at an instant
- PATCH /products/{id}/price - change the list price
- POST /products/{id}/stock-adjustments - restock or write off units
- POST /promotions - create a promotion for products
- POST /categories - create a product category
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status

from marketplace.api.dependencies import Actor, Audit, SessionFactory, get_request_id
from marketplace.api.schemas import (
    CategoryResponse,
    CreateCategoryRequest,
    CreateProductRequest,
    CreatePromotionRequest,
    ErrorResponse,
    PriceQuoteSchema,
    ProductResponse,
    PromotionResponse,
    StockAdjustmentRequest,
    StockAdjustmentResponse,
    UpdatePriceRequest,
)
from marketplace.application.catalog_service import (
    CatalogService,
    ProductView,
    get_catalog_service,
)
from marketplace.application.inventory_service import InventoryLedger, get_inventory_ledger
from marketplace.infrastructure.models import ProductModel

router = APIRouter(prefix="/products", tags=["Products"])
promotions_router = APIRouter(prefix="/promotions", tags=["Products"])
categories_router = APIRouter(prefix="/categories", tags=["Products"])


# ============================================================================
# Dependencies
# ============================================================================


def get_service(request: Request, session_factory: SessionFactory, audit: Audit) -> CatalogService:
    """Get catalog service with request ID."""
    return get_catalog_service(
        session_factory=session_factory,
        audit=audit,
        request_id=get_request_id(request),
    )


def get_inventory(request: Request, session_factory: SessionFactory) -> InventoryLedger:
    """Get inventory ledger with request ID."""
    return get_inventory_ledger(session_factory=session_factory, request_id=get_request_id(request))


# ============================================================================
# Converters
# ============================================================================


def product_to_response(product: ProductModel, view: ProductView | None = None) -> ProductResponse:
    """Convert ProductModel to ProductResponse, with a quote when available."""
    quote = None
    if view is not None:
        quote = PriceQuoteSchema(
            list_price=view.quote.unit_price,
            discount_percentage=view.quote.discount_percent,
            unit_price=view.quote.effective_unit_price,
            promotion_id=view.quote.promotion_id,
            quantity=view.quantity,
            line_total=view.quote.line_total,
            quoted_at=view.quoted_at,
        )
    return ProductResponse(
        id=product.id,
        name=product.name,
        description=product.description,
        price=product.price,
        stock_quantity=product.stock_quantity,
        category_id=product.category_id,
        category_name=product.category.name if product.category else None,
        quote=quote,
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Create product",
)
async def create_product(
    body: CreateProductRequest,
    service: Annotated[CatalogService, Depends(get_service)],
) -> ProductResponse:
    """Create a product with its initial stock."""
    product = await service.create_product(
        name=body.name,
        price=body.price,
        stock_quantity=body.stock,
        description=body.description,
        category_id=body.category_id,
    )
    return product_to_response(product)


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Get product",
    description="Get a product priced for a quantity at an instant, by default one unit now.",
)
async def get_product(
    product_id: int,
    service: Annotated[CatalogService, Depends(get_service)],
    quantity: Annotated[int, Query(ge=1, description="Units to price")] = 1,
    as_of: Annotated[datetime | None, Query(description="Pricing instant, defaults to now")] = None,
) -> ProductResponse:
    """Get a product and its quote."""
    view = await service.get_product(product_id, quantity=quantity, as_of=as_of)
    return product_to_response(view.product, view)


@router.patch(
    "/{product_id}/price",
    response_model=ProductResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Change list price",
)
async def update_price(
    product_id: int,
    body: UpdatePriceRequest,
    service: Annotated[CatalogService, Depends(get_service)],
    actor: Actor,
) -> ProductResponse:
    """Change a product's list price. Existing orders are unaffected."""
    product = await service.update_price(product_id, body.price, actor=actor)
    return product_to_response(product)


@router.post(
    "/{product_id}/stock-adjustments",
    response_model=StockAdjustmentResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Adjust stock",
)
async def adjust_stock(
    product_id: int,
    body: StockAdjustmentRequest,
    inventory: Annotated[InventoryLedger, Depends(get_inventory)],
) -> StockAdjustmentResponse:
    """Apply a signed stock change. Stock never goes below zero."""
    stock = await inventory.restock(product_id, body.delta)
    return StockAdjustmentResponse(product_id=product_id, stock=stock)


@promotions_router.post(
    "",
    response_model=PromotionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Create promotion",
)
async def create_promotion(
    body: CreatePromotionRequest,
    service: Annotated[CatalogService, Depends(get_service)],
) -> PromotionResponse:
    """Create a promotion with an inclusive validity window."""
    promotion = await service.create_promotion(
        discount_percentage=body.discount_percentage,
        start_date=body.start_date,
        end_date=body.end_date,
        product_ids=body.product_ids,
    )
    return PromotionResponse(
        id=promotion.id,
        discount_percentage=promotion.discount_percentage,
        start_date=promotion.start_date,
        end_date=promotion.end_date,
        product_ids=sorted(product.id for product in promotion.products),
    )


@categories_router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        401: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Create category",
)
async def create_category(
    body: CreateCategoryRequest,
    service: Annotated[CatalogService, Depends(get_service)],
) -> CategoryResponse:
    """Create a product category. Names are unique."""
    category = await service.create_category(body.name)
    return CategoryResponse(id=category.id, name=category.name)
