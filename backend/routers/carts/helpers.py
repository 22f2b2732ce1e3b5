from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlalchemy import select
from models import Cart, CartItem, Product, utcnow
from routers.products.helpers import product_helpers
from utils.exceptions import NotFoundError, InsufficientStockError
from utils.response_helpers import to_money
from .schemas import CartResponse, CartItemResponse
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class CartHelpers:
    """Cart manager: one lazily created cart per user"""

    async def _load_cart(self, db: AsyncSession, user_id: str) -> Optional[Cart]:
        result = await db.execute(
            select(Cart)
            .options(
                selectinload(Cart.items)
                .selectinload(CartItem.product)
                .selectinload(Product.seller)
            )
            .where(Cart.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_or_create_cart(self, db: AsyncSession, user_id: str) -> Cart:
        """
        Return the user's cart, creating it on first use.
        Two concurrent first requests race on the unique user_id; the loser
        rolls back and reads the winner's cart.
        """
        cart = await self._load_cart(db, user_id)
        if cart:
            return cart

        db.add(Cart(user_id=user_id))
        try:
            await db.commit()
            logger.info(f"Created cart for user {user_id}")
        except IntegrityError:
            await db.rollback()
            logger.info(f"Cart for user {user_id} was created concurrently, reloading")

        return await self._load_cart(db, user_id)

    def _find_line(self, cart: Cart, product_id: int) -> Optional[CartItem]:
        return next((item for item in cart.items if item.product_id == product_id), None)

    async def add_item(self, db: AsyncSession, user_id: str, product_id: int, quantity: int) -> Cart:
        cart = await self.get_or_create_cart(db, user_id)
        product = await product_helpers.get_product(db, product_id)

        line = self._find_line(cart, product_id)
        new_quantity = quantity + (line.quantity if line else 0)
        if new_quantity > product.stock:
            raise InsufficientStockError(product.id, product.name, product.stock, new_quantity)

        if line:
            line.quantity = new_quantity
        else:
            cart.items.append(CartItem(
                product_id=product.id,
                quantity=quantity,
                unit_price=product.price
            ))

        cart.updated_at = utcnow()
        await db.commit()
        logger.info(f"User {user_id} added {quantity} x product {product_id} to cart")
        return await self._load_cart(db, user_id)

    async def update_item(self, db: AsyncSession, user_id: str, product_id: int, quantity: int) -> Cart:
        cart = await self.get_or_create_cart(db, user_id)

        line = self._find_line(cart, product_id)
        if not line:
            raise NotFoundError("Product is not in the cart")

        product = line.product
        if quantity > product.stock:
            raise InsufficientStockError(product.id, product.name, product.stock, quantity)

        line.quantity = quantity
        cart.updated_at = utcnow()
        await db.commit()
        return await self._load_cart(db, user_id)

    async def remove_item(self, db: AsyncSession, user_id: str, product_id: int) -> Cart:
        cart = await self.get_or_create_cart(db, user_id)

        line = self._find_line(cart, product_id)
        if not line:
            raise NotFoundError("Product is not in the cart")

        cart.items.remove(line)
        cart.updated_at = utcnow()
        await db.commit()
        return await self._load_cart(db, user_id)

    async def clear_cart(self, db: AsyncSession, user_id: str) -> Cart:
        cart = await self.get_or_create_cart(db, user_id)
        cart.items.clear()
        cart.updated_at = utcnow()
        await db.commit()
        return await self._load_cart(db, user_id)

    def to_response(self, cart: Cart) -> CartResponse:
        items = [
            CartItemResponse(
                product_id=item.product_id,
                product_name=item.product.name,
                product_image=item.product.image_url,
                quantity=item.quantity,
                unit_price=to_money(item.unit_price),
                total_price=to_money(item.unit_price * item.quantity),
                seller_store_name=item.product.seller.store_name if item.product.seller else None
            )
            for item in cart.items
        ]
        return CartResponse(
            id=cart.id,
            items=items,
            total_amount=to_money(sum((item.total_price for item in items), to_money(0))),
            updated_at=cart.updated_at
        )


cart_helpers = CartHelpers()
