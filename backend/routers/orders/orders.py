from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from config import get_db
from routers.auth.auth import get_current_user
from dependencies.rbac import require_order_read, require_order_write, require_order_reports
from utils.response_helpers import ApiResponse, total_pages
from .schemas import (
    OrderCreate,
    UpdateOrderItemStatusRequest,
    OrderDetailResponse,
    OrderItemDetailResponse,
    OrderListResponse,
    OrderStatsResponse,
    OrderSearchResponse,
    OrderStatus,
    OrderItemStatus,
    PaymentStatus,
    OrderSortKey
)
from .helpers import order_helpers
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("", response_model=ApiResponse[OrderDetailResponse], status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: OrderCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_order_write)
):
    """
    Place an order. Stock for every line is reserved in the same transaction;
    if any line cannot be fulfilled nothing is written.
    """
    try:
        order = await order_helpers.place_order(db, current_user["user_id"], order_data)
        return ApiResponse(data=order_helpers.to_detail_response(order))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating order: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create order"
        )


@router.get("/my-orders", response_model=ApiResponse[OrderListResponse])
async def get_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_order_read)
):
    """Get current user's orders, newest first"""
    try:
        orders, total = await order_helpers.list_user_orders(db, current_user["user_id"], page, limit)
        return ApiResponse(data=OrderListResponse(
            orders=[order_helpers.to_detail_response(order) for order in orders],
            page=page,
            limit=limit,
            total=total
        ))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting user orders: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get orders"
        )


# =================
# SELLER FULFILLMENT ROUTES
# =================

@router.get("/seller", response_model=ApiResponse[List[OrderDetailResponse]])
async def get_seller_orders(
    item_status: Optional[OrderItemStatus] = Query(None, alias="status"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_order_read)
):
    """Items sold by the calling seller, grouped by order"""
    try:
        orders = await order_helpers.get_seller_orders(db, current_user["user_id"], item_status)
        return ApiResponse(data=orders)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting seller orders: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get seller orders"
        )


@router.put("/seller/items/{order_item_id}/status", response_model=ApiResponse[OrderItemDetailResponse])
async def update_order_item_status(
    order_item_id: int,
    status_data: UpdateOrderItemStatusRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_order_write)
):
    """
    Seller only: move an order item to its next fulfillment status.
    Pending -> Accepted/Rejected, Accepted -> Shipped/Rejected, Shipped -> Delivered.
    """
    try:
        item = await order_helpers.update_item_status(db, current_user["user_id"], order_item_id, status_data.status)
        return ApiResponse(data=order_helpers.item_response(item, item.seller.store_name if item.seller else None))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating order item {order_item_id}: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update order item status"
        )


# =================
# ADMIN REPORTING ROUTES
# =================

@router.get("/stats", response_model=ApiResponse[OrderStatsResponse])
async def get_order_stats(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_order_reports)
):
    """Admin only: order totals and breakdowns, trailing 30 days by default"""
    try:
        stats = await order_helpers.build_order_stats(db, start_date, end_date)
        return ApiResponse(data=stats)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error building order stats: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get order stats"
        )


@router.get("/search", response_model=ApiResponse[OrderSearchResponse])
async def search_orders(
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    payment_status: Optional[PaymentStatus] = Query(None),
    min_amount: Optional[Decimal] = Query(None, ge=0),
    max_amount: Optional[Decimal] = Query(None, ge=0),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    sort_by: OrderSortKey = Query(OrderSortKey.DATE_DESC),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_order_reports)
):
    """Admin only: search all orders"""
    try:
        orders, total = await order_helpers.search_orders(
            db,
            status=order_status,
            payment_status=payment_status,
            min_amount=min_amount,
            max_amount=max_amount,
            start_date=start_date,
            end_date=end_date,
            sort_by=sort_by,
            page=page,
            page_size=page_size
        )
        return ApiResponse(data=OrderSearchResponse(
            items=[order_helpers.to_detail_response(order) for order in orders],
            total_items=total,
            page_size=page_size,
            current_page=page,
            total_pages=total_pages(total, page_size)
        ))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error searching orders: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to search orders"
        )


@router.get("/{order_id}", response_model=ApiResponse[OrderDetailResponse])
async def get_order(
    order_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(require_order_read)
):
    """Order detail for its owner or an admin"""
    try:
        order = await order_helpers.get_order_for_user(db, order_id, current_user["user_id"], current_user["role"])
        return ApiResponse(data=order_helpers.to_detail_response(order))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting order {order_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get order"
        )
