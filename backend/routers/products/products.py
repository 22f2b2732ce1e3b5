from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from decimal import Decimal
from config import get_db
from dependencies.rbac import require_product_write, require_product_delete
from utils.response_helpers import ApiResponse, paging_meta
from .schemas import (
    ProductCreate, ProductUpdate, ProductResponse, ProductListResponse,
    CategoryResponse, ProductSortField, SortDirection
)
from .helpers import product_helpers
from typing import Optional, List
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["Products"])


# =================
# PUBLIC CATALOG ROUTES
# =================

@router.get("", response_model=ApiResponse[ProductListResponse])
async def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """List all products"""
    try:
        products, total = await product_helpers.list_products(db, page, limit)
        return ApiResponse(data=ProductListResponse(
            products=[ProductResponse.model_validate(p) for p in products],
            page=page,
            limit=limit,
            total=total
        ))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error listing products: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get products"
        )


@router.get("/categories", response_model=ApiResponse[List[CategoryResponse]])
async def get_categories(db: AsyncSession = Depends(get_db)):
    """Get all categories"""
    try:
        categories = await product_helpers.list_categories(db)
        return ApiResponse(data=[CategoryResponse.model_validate(c) for c in categories])
    except Exception as e:
        logger.error(f"Error getting categories: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get categories"
        )


@router.get("/filter", response_model=ApiResponse[List[ProductResponse]])
async def filter_products(
    search_term: Optional[str] = Query(None, max_length=100),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    category_id: Optional[int] = Query(None),
    sort_by: Optional[ProductSortField] = Query(None),
    sort_direction: SortDirection = Query(SortDirection.ASC),
    page_number: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """
    Filter products by text, price range and category with sorting and paging.
    Paging info is returned in meta.
    """
    try:
        products, total = await product_helpers.filter_products(
            db,
            search_term=search_term,
            min_price=min_price,
            max_price=max_price,
            category_id=category_id,
            sort_by=sort_by,
            sort_direction=sort_direction,
            page_number=page_number,
            page_size=page_size
        )
        return ApiResponse(
            data=[ProductResponse.model_validate(p) for p in products],
            meta=paging_meta(total, page_number, page_size)
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error filtering products: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to filter products"
        )


@router.get("/{product_id}", response_model=ApiResponse[ProductResponse])
async def get_product(product_id: int, db: AsyncSession = Depends(get_db)):
    product = await product_helpers.get_product(db, product_id)
    return ApiResponse(data=ProductResponse.model_validate(product))


# =================
# ADMIN CATALOG ROUTES
# =================

@router.post("", response_model=ApiResponse[ProductResponse], status_code=status.HTTP_201_CREATED)
async def create_product(
    product_data: ProductCreate,
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_product_write)
):
    """Admin only: create a product, optionally assigned to a seller"""
    try:
        product = await product_helpers.create_product(db, product_data)
        return ApiResponse(data=ProductResponse.model_validate(product))
    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error creating product: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create product"
        )


@router.put("/{product_id}", response_model=ApiResponse[ProductResponse])
async def update_product(
    product_id: int,
    product_data: ProductUpdate,
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_product_write)
):
    """Admin only: update product fields"""
    try:
        product = await product_helpers.update_product(db, product_id, product_data)
        return ApiResponse(data=ProductResponse.model_validate(product))
    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error updating product {product_id}: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update product"
        )


@router.delete("/{product_id}", response_model=ApiResponse[dict])
async def delete_product(
    product_id: int,
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_product_delete)
):
    """Admin only: delete a product that has never been ordered"""
    try:
        await product_helpers.delete_product(db, product_id)
        return ApiResponse(data={"message": "Product deleted successfully", "product_id": product_id})
    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error deleting product {product_id}: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete product"
        )
