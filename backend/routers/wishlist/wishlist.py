from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from config import get_db
from routers.auth.auth import get_current_user
from dependencies.rbac import require_wishlist_access
from utils.response_helpers import ApiResponse
from .schemas import WishlistItemResponse
from .helpers import wishlist_helpers
from typing import List
import logging

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/wishlist",
    tags=["Wishlist"],
    dependencies=[Depends(require_wishlist_access)]
)


async def _wishlist_response(db: AsyncSession, user_id: str) -> ApiResponse:
    items = await wishlist_helpers.list_items(db, user_id)
    return ApiResponse(data=[wishlist_helpers.to_response(item) for item in items])


@router.get("", response_model=ApiResponse[List[WishlistItemResponse]])
async def get_wishlist(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        return await _wishlist_response(db, current_user["user_id"])
    except Exception as e:
        logger.error(f"Error getting wishlist: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get wishlist"
        )


@router.post("/{product_id}", response_model=ApiResponse[List[WishlistItemResponse]])
async def add_to_wishlist(
    product_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Add a product to the wishlist; adding it twice is a conflict"""
    try:
        await wishlist_helpers.add_item(db, current_user["user_id"], product_id)
        return await _wishlist_response(db, current_user["user_id"])
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error adding product to wishlist: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to add product to wishlist"
        )


@router.delete("/{product_id}", response_model=ApiResponse[List[WishlistItemResponse]])
async def remove_from_wishlist(
    product_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        await wishlist_helpers.remove_item(db, current_user["user_id"], product_id)
        return await _wishlist_response(db, current_user["user_id"])
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error removing product from wishlist: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to remove product from wishlist"
        )
