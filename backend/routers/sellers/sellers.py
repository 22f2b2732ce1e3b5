from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from config import get_db
from routers.auth.auth import get_current_user
from dependencies.rbac import require_seller_write, require_seller_catalog, require_review_write
from routers.products.schemas import ProductResponse
from utils.response_helpers import ApiResponse
from .schemas import (
    SellerCreate,
    SellerUpdate,
    SellerResponse,
    SellerStatsResponse,
    BulkCreateProductsRequest,
    BulkUpdateStockRequest,
    ReviewCreate,
    ReviewResponse,
    SellerReportResponse
)
from .helpers import seller_helpers
from typing import Optional, List
from datetime import datetime
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sellers", tags=["Sellers"])


# =================
# PUBLIC SELLER ROUTES
# =================

@router.get("", response_model=ApiResponse[List[SellerResponse]])
async def list_sellers(db: AsyncSession = Depends(get_db)):
    try:
        sellers = await seller_helpers.list_sellers(db)
        return ApiResponse(data=[SellerResponse.model_validate(s) for s in sellers])
    except Exception as e:
        logger.error(f"Error listing sellers: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get sellers"
        )


# =================
# SELLER SELF-SERVICE ROUTES
# =================

@router.post("", response_model=ApiResponse[SellerResponse], status_code=status.HTTP_201_CREATED)
async def create_seller(
    seller_data: SellerCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_seller_write)
):
    """Open a store for the current user. New stores start unapproved."""
    try:
        seller = await seller_helpers.create_seller(db, current_user["user_id"], seller_data)
        return ApiResponse(data=SellerResponse.model_validate(seller))
    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error creating seller: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create seller"
        )


@router.get("/my-products", response_model=ApiResponse[List[ProductResponse]])
async def get_my_products(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_seller_catalog)
):
    products = await seller_helpers.get_my_products(db, current_user["user_id"])
    return ApiResponse(data=[ProductResponse.model_validate(p) for p in products])


@router.get("/my-stats", response_model=ApiResponse[SellerStatsResponse])
async def get_my_stats(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_seller_catalog)
):
    stats = await seller_helpers.get_my_stats(db, current_user["user_id"])
    return ApiResponse(data=stats)


@router.get("/reports", response_model=ApiResponse[SellerReportResponse])
async def get_seller_report(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_seller_catalog)
):
    """Sales report for the calling seller, trailing 30 days by default"""
    try:
        report = await seller_helpers.build_seller_report(db, current_user["user_id"], start_date, end_date)
        return ApiResponse(data=report)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error building seller report: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to build seller report"
        )


@router.post("/bulk-create-products", response_model=ApiResponse[List[ProductResponse]], status_code=status.HTTP_201_CREATED)
async def bulk_create_products(
    request_data: BulkCreateProductsRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_seller_catalog)
):
    """Approved sellers only: list several products at once"""
    try:
        products = await seller_helpers.bulk_create_products(db, current_user["user_id"], request_data)
        return ApiResponse(data=[ProductResponse.model_validate(p) for p in products])
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error bulk creating products: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create products"
        )


@router.put("/bulk-update-stock", response_model=ApiResponse[List[ProductResponse]])
async def bulk_update_stock(
    request_data: BulkUpdateStockRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_seller_catalog)
):
    """Set stock levels on the calling seller's own products"""
    try:
        products = await seller_helpers.bulk_update_stock(db, current_user["user_id"], request_data)
        return ApiResponse(data=[ProductResponse.model_validate(p) for p in products])
    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error bulk updating stock: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update stock"
        )


# =================
# SELLER PROFILE AND REVIEW ROUTES
# =================

@router.get("/{seller_id}", response_model=ApiResponse[SellerResponse])
async def get_seller(seller_id: int, db: AsyncSession = Depends(get_db)):
    seller = await seller_helpers.get_seller(db, seller_id)
    return ApiResponse(data=SellerResponse.model_validate(seller))


@router.put("/{seller_id}", response_model=ApiResponse[SellerResponse])
async def update_seller(
    seller_id: int,
    seller_data: SellerUpdate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_seller_write)
):
    """Store owner or admin: update store profile"""
    try:
        seller = await seller_helpers.update_seller(
            db, seller_id, current_user["user_id"], current_user["role"], seller_data
        )
        return ApiResponse(data=SellerResponse.model_validate(seller))
    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error updating seller {seller_id}: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update seller"
        )


@router.post("/{seller_id}/reviews", response_model=ApiResponse[ReviewResponse], status_code=status.HTTP_201_CREATED)
async def create_review(
    seller_id: int,
    review_data: ReviewCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_review_write)
):
    """Review a seller. Reviews are hidden until an admin approves them."""
    try:
        review = await seller_helpers.create_review(db, seller_id, current_user["user_id"], review_data)
        return ApiResponse(data=seller_helpers.review_response(review))
    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error creating review for seller {seller_id}: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create review"
        )


@router.get("/{seller_id}/reviews", response_model=ApiResponse[List[ReviewResponse]])
async def list_reviews(
    seller_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    reviews = await seller_helpers.list_reviews(db, seller_id)
    return ApiResponse(data=reviews)


@router.get("/{seller_id}/reviews/{review_id}", response_model=ApiResponse[ReviewResponse])
async def get_review(
    seller_id: int,
    review_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    review = await seller_helpers.get_review(db, seller_id, review_id)
    return ApiResponse(data=review)
