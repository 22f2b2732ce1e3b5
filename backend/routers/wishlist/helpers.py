from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlalchemy import select
from models import WishlistItem, Product
from routers.products.helpers import product_helpers
from utils.exceptions import NotFoundError, DuplicateEntryError
from .schemas import WishlistItemResponse
from typing import List
import logging

logger = logging.getLogger(__name__)


class WishlistHelpers:
    """Helper functions for wishlist operations"""

    async def list_items(self, db: AsyncSession, user_id: str) -> List[WishlistItem]:
        result = await db.execute(
            select(WishlistItem)
            .options(selectinload(WishlistItem.product).selectinload(Product.seller))
            .where(WishlistItem.user_id == user_id)
            .order_by(WishlistItem.added_at.desc(), WishlistItem.id.desc())
        )
        return list(result.scalars().all())

    async def add_item(self, db: AsyncSession, user_id: str, product_id: int) -> None:
        await product_helpers.get_product(db, product_id)

        existing = await db.execute(
            select(WishlistItem.id).where(
                WishlistItem.user_id == user_id,
                WishlistItem.product_id == product_id
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateEntryError("Product is already in the wishlist")

        db.add(WishlistItem(user_id=user_id, product_id=product_id))
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise DuplicateEntryError("Product is already in the wishlist")

        logger.info(f"User {user_id} added product {product_id} to wishlist")

    async def remove_item(self, db: AsyncSession, user_id: str, product_id: int) -> None:
        result = await db.execute(
            select(WishlistItem).where(
                WishlistItem.user_id == user_id,
                WishlistItem.product_id == product_id
            )
        )
        item = result.scalar_one_or_none()
        if not item:
            raise NotFoundError("Product is not in the wishlist")

        await db.delete(item)
        await db.commit()

    def to_response(self, item: WishlistItem) -> WishlistItemResponse:
        product = item.product
        return WishlistItemResponse(
            product_id=product.id,
            product_name=product.name,
            product_image=product.image_url,
            price=product.price,
            added_at=item.added_at,
            seller_store_name=product.seller.store_name if product.seller else None
        )


wishlist_helpers = WishlistHelpers()
