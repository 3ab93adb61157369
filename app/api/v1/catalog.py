import logging
from fastapi import APIRouter, Depends, HTTPException, status
from typing import Optional
from uuid import UUID
from tortoise.exceptions import IntegrityError

from app.core.dependencies import get_catalog
from app.core.errors import OrderFlowError
from app.schemas.catalog import (
    AvailabilityUpdate,
    CategoryRequest,
    CategoryResponse,
    ProductRequest,
    ProductResponse,
)
from app.schemas.response import SuccessResponse
from app.services.catalog_service import CatalogService

log = logging.getLogger(__name__)

router = APIRouter()


def _product(product) -> dict:
    return ProductResponse.model_validate(product).model_dump(mode="json")


@router.get("/categories", response_model=SuccessResponse)
async def list_categories(catalog: CatalogService = Depends(get_catalog)):
    categories = await catalog.list_categories()
    return SuccessResponse(data=[CategoryResponse.model_validate(c).model_dump(mode="json") for c in categories])


@router.post("/categories", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def add_category(payload: CategoryRequest, catalog: CatalogService = Depends(get_catalog)):
    """Creates a new menu category."""
    try:
        category = await catalog.create_category(payload.name, payload.description)
        return SuccessResponse(
            message=f"Category '{category.name}' created successfully.",
            data={"category_id": str(category.id)},
        )
    except (OrderFlowError, IntegrityError, HTTPException):
        raise
    except Exception as e:
        log.error(f"Error creating category: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Internal error processing request: {e}"
        )


@router.get("/products", response_model=SuccessResponse)
async def list_products(
    available: Optional[bool] = None,
    category_id: Optional[UUID] = None,
    catalog: CatalogService = Depends(get_catalog),
):
    """Menu listing, optionally only orderable products or one category."""
    products = await catalog.list_products(available=available, category_id=category_id)
    return SuccessResponse(data=[_product(p) for p in products])


@router.get("/products/{product_id}", response_model=SuccessResponse)
async def get_product(product_id: UUID, catalog: CatalogService = Depends(get_catalog)):
    product = await catalog.get_product(product_id)
    return SuccessResponse(data=_product(product))


@router.post("/products", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def add_product(payload: ProductRequest, catalog: CatalogService = Depends(get_catalog)):
    """Adds a product to the menu, optionally under a category."""
    try:
        product = await catalog.create_product(
            name=payload.name,
            price=payload.price,
            category_id=payload.category_id,
            description=payload.description,
            is_available=payload.is_available,
        )
        return SuccessResponse(
            message=f"Successfully added '{product.name}' to the menu.",
            data=_product(product),
        )
    except (OrderFlowError, IntegrityError, HTTPException):
        # Re-raise expected errors (missing category, duplicate name)
        raise
    except Exception as e:
        log.error(f"Error adding product: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Internal error processing request: {e}"
        )


@router.put("/products/{product_id}", response_model=SuccessResponse)
async def update_product(product_id: UUID, payload: ProductRequest, catalog: CatalogService = Depends(get_catalog)):
    product = await catalog.update_product(
        product_id,
        name=payload.name,
        price=payload.price,
        category_id=payload.category_id,
        description=payload.description,
        is_available=payload.is_available,
    )
    return SuccessResponse(message="Product updated successfully", data=_product(product))


@router.delete("/products/{product_id}", response_model=SuccessResponse)
async def delete_product(product_id: UUID, catalog: CatalogService = Depends(get_catalog)):
    """Products already ordered cannot be deleted; mark them unavailable instead."""
    await catalog.delete_product(product_id)
    return SuccessResponse(message="Product deleted successfully")


@router.patch("/products/{product_id}/availability", response_model=SuccessResponse)
async def set_product_availability(
    product_id: UUID,
    payload: AvailabilityUpdate,
    catalog: CatalogService = Depends(get_catalog),
):
    """Unavailable products are rejected at order intake; existing orders keep their snapshot."""
    product = await catalog.set_availability(product_id, payload.is_available)
    return SuccessResponse(data=_product(product))
