from fastapi import APIRouter, Depends, HTTPException, status
from dependencies.rbac import require_admin
from routers.auth.helpers import auth_helpers
from routers.products.schemas import CategoryCreate, CategoryResponse
from routers.products.helpers import product_helpers
from routers.sellers.schemas import SellerResponse, ReviewResponse
from routers.sellers.helpers import seller_helpers
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from config import get_db
from models import UserProfile, Seller, Product, Order, SellerReview
from utils.response_helpers import ApiResponse, to_money
from .schemas import ApprovalRequest, SellerApprovalResponse, RecentOrder, DashboardResponse
from typing import List
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])

RECENT_ORDERS_LIMIT = 5


@router.get("/dashboard", response_model=ApiResponse[DashboardResponse])
async def get_dashboard(db: AsyncSession = Depends(get_db)):
    """Admin only: platform-wide counts, completed revenue and latest orders"""
    try:
        async def count(query):
            return (await db.execute(query)).scalar() or 0

        total_revenue = (await db.execute(
            select(func.sum(Order.total_amount)).where(Order.payment_status == "Completed")
        )).scalar()

        recent = await db.execute(
            select(Order).order_by(Order.order_date.desc(), Order.id.desc()).limit(RECENT_ORDERS_LIMIT)
        )

        return ApiResponse(data=DashboardResponse(
            total_users=await count(select(func.count(UserProfile.id))),
            total_sellers=await count(select(func.count(Seller.id))),
            pending_sellers=await count(select(func.count(Seller.id)).where(Seller.is_approved == False)),
            total_products=await count(select(func.count(Product.id))),
            total_orders=await count(select(func.count(Order.id))),
            pending_reviews=await count(select(func.count(SellerReview.id)).where(SellerReview.is_approved == False)),
            total_revenue=to_money(total_revenue),
            recent_orders=[RecentOrder.model_validate(order) for order in recent.scalars().all()]
        ))
    except Exception as e:
        logger.error(f"Error building admin dashboard: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to build dashboard"
        )


# =================
# SELLER APPROVAL ROUTES
# =================

@router.get("/pending-sellers", response_model=ApiResponse[List[SellerResponse]])
async def list_pending_sellers(db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(Seller).where(Seller.is_approved == False).order_by(Seller.created_at, Seller.id)
    )
    return ApiResponse(data=[SellerResponse.model_validate(s) for s in result.scalars().all()])


@router.put("/sellers/{seller_id}/approve", response_model=ApiResponse[SellerApprovalResponse])
async def approve_seller(
    seller_id: int,
    approval: ApprovalRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Admin only: approve or revoke a store. Approving also promotes the owner
    to the seller role; the new role reaches their JWT after the next login.
    """
    try:
        seller = await seller_helpers.set_seller_approval(db, seller_id, approval.is_approved)

        metadata_updated = False
        if approval.is_approved:
            metadata_updated = auth_helpers.sync_role_metadata(seller.user_id, "seller")

        return ApiResponse(data=SellerApprovalResponse(
            seller_id=seller.id,
            is_approved=seller.is_approved,
            metadata_updated=metadata_updated
        ))
    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error approving seller {seller_id}: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update seller approval"
        )


# =================
# REVIEW MODERATION ROUTES
# =================

@router.get("/pending-reviews", response_model=ApiResponse[List[ReviewResponse]])
async def list_pending_reviews(db: AsyncSession = Depends(get_db)):
    reviews = await seller_helpers.list_pending_reviews(db)
    return ApiResponse(data=reviews)


@router.put("/reviews/{review_id}/approve", response_model=ApiResponse[ReviewResponse])
async def approve_review(
    review_id: int,
    approval: ApprovalRequest,
    db: AsyncSession = Depends(get_db)
):
    """Admin only: approve or hide a review. The seller rating is recomputed either way."""
    try:
        review = await seller_helpers.set_review_approval(db, review_id, approval.is_approved)
        return ApiResponse(data=seller_helpers.review_response(review))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error approving review {review_id}: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update review approval"
        )


# =================
# CATEGORY MANAGEMENT ROUTES
# =================

@router.post("/categories", response_model=ApiResponse[CategoryResponse], status_code=status.HTTP_201_CREATED)
async def create_category(category_data: CategoryCreate, db: AsyncSession = Depends(get_db)):
    """Admin only: Create a new product category"""
    try:
        category = await product_helpers.create_category(db, category_data)
        return ApiResponse(data=CategoryResponse.model_validate(category))
    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error creating category: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create category"
        )
