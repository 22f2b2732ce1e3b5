from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from config import get_db
from routers.auth.auth import get_current_user
from dependencies.rbac import require_cart_access
from utils.response_helpers import ApiResponse
from .schemas import AddToCartRequest, UpdateCartItemRequest, CartResponse
from .helpers import cart_helpers
import logging

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/carts",
    tags=["Cart"],
    dependencies=[Depends(require_cart_access)]
)


@router.get("", response_model=ApiResponse[CartResponse])
async def get_cart(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get the current user's cart, creating an empty one on first access"""
    try:
        cart = await cart_helpers.get_or_create_cart(db, current_user["user_id"])
        return ApiResponse(data=cart_helpers.to_response(cart))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting cart: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get cart"
        )


@router.post("/items", response_model=ApiResponse[CartResponse])
async def add_to_cart(
    item_data: AddToCartRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Add a product to the cart, merging with an existing line"""
    try:
        cart = await cart_helpers.add_item(db, current_user["user_id"], item_data.product_id, item_data.quantity)
        return ApiResponse(data=cart_helpers.to_response(cart))
    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error adding product to cart: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to add product to cart"
        )


@router.put("/items/{product_id}", response_model=ApiResponse[CartResponse])
async def update_cart_item(
    product_id: int,
    item_data: UpdateCartItemRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        cart = await cart_helpers.update_item(db, current_user["user_id"], product_id, item_data.quantity)
        return ApiResponse(data=cart_helpers.to_response(cart))
    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error updating cart item: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update cart"
        )


@router.delete("/items/{product_id}", response_model=ApiResponse[CartResponse])
async def remove_from_cart(
    product_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        cart = await cart_helpers.remove_item(db, current_user["user_id"], product_id)
        return ApiResponse(data=cart_helpers.to_response(cart))
    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error removing product from cart: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to remove product from cart"
        )


@router.delete("", response_model=ApiResponse[CartResponse])
async def clear_cart(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        cart = await cart_helpers.clear_cart(db, current_user["user_id"])
        return ApiResponse(data=cart_helpers.to_response(cart))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error clearing cart: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to clear cart"
        )
