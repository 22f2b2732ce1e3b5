from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, delete
from models import Product, Category, Seller, OrderItem, CartItem, WishlistItem
from utils.exceptions import NotFoundError, InputValidationError, DuplicateEntryError, BusinessRuleViolation
from .schemas import ProductCreate, ProductUpdate, CategoryCreate, ProductSortField, SortDirection
from typing import Optional, List, Tuple
import logging

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    ProductSortField.NAME: Product.name,
    ProductSortField.PRICE: Product.price,
    ProductSortField.STOCK: Product.stock,
}


class ProductHelpers:
    """Catalog store: product, category and seller lookups plus stock mutation"""

    async def get_product(self, db: AsyncSession, product_id: int) -> Product:
        result = await db.execute(select(Product).where(Product.id == product_id))
        product = result.scalar_one_or_none()
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    async def get_category(self, db: AsyncSession, category_id: int) -> Category:
        result = await db.execute(select(Category).where(Category.id == category_id))
        category = result.scalar_one_or_none()
        if not category:
            raise NotFoundError(f"Category {category_id} not found")
        return category

    async def get_seller_by_user(self, db: AsyncSession, user_id: str) -> Seller:
        result = await db.execute(select(Seller).where(Seller.user_id == user_id))
        seller = result.scalar_one_or_none()
        if not seller:
            raise NotFoundError("Seller profile not found")
        return seller

    async def list_products(self, db: AsyncSession, page: int, limit: int) -> Tuple[List[Product], int]:
        total = (await db.execute(select(func.count(Product.id)))).scalar() or 0

        result = await db.execute(
            select(Product)
            .order_by(Product.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def filter_products(
        self,
        db: AsyncSession,
        search_term: Optional[str] = None,
        min_price=None,
        max_price=None,
        category_id: Optional[int] = None,
        sort_by: Optional[ProductSortField] = None,
        sort_direction: SortDirection = SortDirection.ASC,
        page_number: int = 1,
        page_size: int = 10
    ) -> Tuple[List[Product], int]:
        """
        Filtered, sorted, paged product listing.
        Products are ordered by id when no sort field is given.
        """
        if min_price is not None and max_price is not None and min_price > max_price:
            raise InputValidationError(errors=["min_price must not be greater than max_price"])

        conditions = []
        if search_term:
            pattern = f"%{search_term.strip()}%"
            conditions.append(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))
        if min_price is not None:
            conditions.append(Product.price >= min_price)
        if max_price is not None:
            conditions.append(Product.price <= max_price)
        if category_id is not None:
            conditions.append(Product.category_id == category_id)

        count_query = select(func.count(Product.id))
        query = select(Product)
        if conditions:
            count_query = count_query.where(*conditions)
            query = query.where(*conditions)

        total = (await db.execute(count_query)).scalar() or 0

        if sort_by is not None:
            column = SORT_COLUMNS[sort_by]
            query = query.order_by(column.desc() if sort_direction == SortDirection.DESC else column.asc(), Product.id)
        else:
            query = query.order_by(Product.id)

        result = await db.execute(query.offset((page_number - 1) * page_size).limit(page_size))
        return list(result.scalars().all()), total

    async def create_product(self, db: AsyncSession, product_data: ProductCreate, seller_id: Optional[int] = None) -> Product:
        await self.get_category(db, product_data.category_id)

        values = product_data.model_dump()
        if seller_id is not None:
            values["seller_id"] = seller_id
        elif values.get("seller_id") is not None:
            result = await db.execute(select(Seller.id).where(Seller.id == values["seller_id"]))
            if result.scalar_one_or_none() is None:
                raise NotFoundError(f"Seller {values['seller_id']} not found")

        product = Product(**values)
        db.add(product)
        await db.commit()
        logger.info(f"Created product {product.id} ({product.name})")
        return product

    async def update_product(self, db: AsyncSession, product_id: int, product_data: ProductUpdate) -> Product:
        product = await self.get_product(db, product_id)

        changes = product_data.model_dump(exclude_unset=True, exclude_none=True)
        if "category_id" in changes:
            await self.get_category(db, changes["category_id"])

        for field, value in changes.items():
            setattr(product, field, value)

        await db.commit()
        logger.info(f"Updated product {product_id}: {sorted(changes)}")
        return product

    async def delete_product(self, db: AsyncSession, product_id: int) -> None:
        product = await self.get_product(db, product_id)

        ordered = await db.execute(
            select(func.count(OrderItem.id)).where(OrderItem.product_id == product_id)
        )
        if ordered.scalar():
            raise BusinessRuleViolation("Product has been ordered and cannot be deleted")

        await db.execute(delete(CartItem).where(CartItem.product_id == product_id))
        await db.execute(delete(WishlistItem).where(WishlistItem.product_id == product_id))
        await db.delete(product)
        await db.commit()
        logger.info(f"Deleted product {product_id}")

    async def list_categories(self, db: AsyncSession) -> List[Category]:
        result = await db.execute(select(Category).order_by(Category.name))
        return list(result.scalars().all())

    async def create_category(self, db: AsyncSession, category_data: CategoryCreate) -> Category:
        existing = await db.execute(select(Category.id).where(Category.name == category_data.name))
        if existing.scalar_one_or_none() is not None:
            raise DuplicateEntryError("Category name already exists")

        category = Category(**category_data.model_dump())
        db.add(category)
        await db.commit()
        logger.info(f"Created category {category.id} ({category.name})")
        return category


product_helpers = ProductHelpers()
