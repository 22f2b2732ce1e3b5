from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy import select, func
from models import Seller, SellerReview, Product, Category, OrderItem, Order, UserProfile
from routers.products.helpers import product_helpers
from routers.orders.helpers import resolve_date_range
from routers.orders.schemas import OrderItemStatus
from utils.exceptions import (
    NotFoundError,
    AuthorizationError,
    DuplicateEntryError,
    SellerNotApprovedError
)
from utils.response_helpers import to_money
from .schemas import (
    SellerCreate,
    SellerUpdate,
    SellerStatsResponse,
    BulkCreateProductsRequest,
    BulkUpdateStockRequest,
    ReviewCreate,
    ReviewResponse,
    SellerReportResponse,
    TopProduct,
    DailyRevenue
)
from typing import Dict, List, Optional
from datetime import datetime, date
from decimal import Decimal
import logging

logger = logging.getLogger(__name__)

TOP_PRODUCTS_LIMIT = 5


class SellerHelpers:
    """Seller profiles, reviews, bulk catalog operations and seller reporting"""

    async def get_seller(self, db: AsyncSession, seller_id: int) -> Seller:
        result = await db.execute(select(Seller).where(Seller.id == seller_id))
        seller = result.scalar_one_or_none()
        if not seller:
            raise NotFoundError(f"Seller {seller_id} not found")
        return seller

    async def list_sellers(self, db: AsyncSession) -> List[Seller]:
        result = await db.execute(select(Seller).order_by(Seller.id))
        return list(result.scalars().all())

    async def create_seller(self, db: AsyncSession, user_id: str, seller_data: SellerCreate) -> Seller:
        existing = await db.execute(select(Seller.id).where(Seller.user_id == user_id))
        if existing.scalar_one_or_none() is not None:
            raise DuplicateEntryError("You already have a seller profile")

        seller = Seller(user_id=user_id, is_approved=False, **seller_data.model_dump())
        db.add(seller)
        await db.commit()
        logger.info(f"User {user_id} opened store {seller.id} ({seller.store_name}), awaiting approval")
        return seller

    async def update_seller(
        self,
        db: AsyncSession,
        seller_id: int,
        user_id: str,
        role: str,
        seller_data: SellerUpdate
    ) -> Seller:
        seller = await self.get_seller(db, seller_id)
        if seller.user_id != user_id and role != "admin":
            raise AuthorizationError("You can only update your own store")

        for field, value in seller_data.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(seller, field, value)

        await db.commit()
        return seller

    async def set_seller_approval(self, db: AsyncSession, seller_id: int, is_approved: bool) -> Seller:
        """
        Approve or revoke a store. Approval also promotes the owner's
        profile role to seller.
        """
        seller = await self.get_seller(db, seller_id)
        seller.is_approved = is_approved

        if is_approved:
            result = await db.execute(select(UserProfile).where(UserProfile.user_id == seller.user_id))
            profile = result.scalar_one_or_none()
            if profile and profile.role == "user":
                profile.role = "seller"

        await db.commit()
        logger.info(f"Seller {seller_id} approval set to {is_approved}")
        return seller

    async def get_my_products(self, db: AsyncSession, user_id: str) -> List[Product]:
        seller = await product_helpers.get_seller_by_user(db, user_id)
        result = await db.execute(
            select(Product).where(Product.seller_id == seller.id).order_by(Product.id)
        )
        return list(result.scalars().all())

    async def get_my_stats(self, db: AsyncSession, user_id: str) -> SellerStatsResponse:
        seller = await product_helpers.get_seller_by_user(db, user_id)
        product_count = (await db.execute(
            select(func.count(Product.id)).where(Product.seller_id == seller.id)
        )).scalar() or 0

        return SellerStatsResponse(
            total_products=product_count,
            total_sales=seller.total_sales,
            rating=to_money(seller.rating),
            is_approved=seller.is_approved,
            store_name=seller.store_name,
            join_date=seller.created_at
        )

    async def bulk_create_products(self, db: AsyncSession, user_id: str, request: BulkCreateProductsRequest) -> List[Product]:
        """Create all products under the caller's approved store, or none"""
        seller = await product_helpers.get_seller_by_user(db, user_id)
        if not seller.is_approved:
            raise SellerNotApprovedError("An approved seller account is required to list products")

        category_ids = {p.category_id for p in request.products}
        found = await db.execute(select(Category.id).where(Category.id.in_(category_ids)))
        missing = category_ids - set(found.scalars().all())
        if missing:
            raise NotFoundError(f"Categories not found: {sorted(missing)}")

        products = []
        for product_data in request.products:
            values = product_data.model_dump()
            values["seller_id"] = seller.id
            products.append(Product(**values))

        try:
            db.add_all(products)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(f"Seller {seller.id} created {len(products)} products")
        return products

    async def bulk_update_stock(self, db: AsyncSession, user_id: str, request: BulkUpdateStockRequest) -> List[Product]:
        """
        Set stock directly on the caller's own products. Every product must
        belong to the seller, otherwise nothing is changed.
        """
        seller = await product_helpers.get_seller_by_user(db, user_id)

        new_stock = {update.product_id: update.new_stock for update in request.products}
        result = await db.execute(
            select(Product)
            .where(Product.id.in_(list(new_stock)), Product.seller_id == seller.id)
            .order_by(Product.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        products = list(result.scalars().all())

        missing = set(new_stock) - {product.id for product in products}
        if missing:
            raise NotFoundError(f"Products not found in your store: {sorted(missing)}")

        for product in products:
            product.stock = new_stock[product.id]

        await db.commit()
        logger.info(f"Seller {seller.id} updated stock for {len(products)} products")
        return products

    async def recompute_seller_rating(self, db: AsyncSession, seller_id: int) -> Decimal:
        """
        Mean of the seller's approved review ratings, rounded to 2dp.
        0 when there are none. Caller commits.
        """
        average = (await db.execute(
            select(func.avg(SellerReview.rating)).where(
                SellerReview.seller_id == seller_id,
                SellerReview.is_approved == True
            )
        )).scalar()

        rating = to_money(average)
        seller = await self.get_seller(db, seller_id)
        seller.rating = rating
        return rating

    async def create_review(self, db: AsyncSession, seller_id: int, user_id: str, review_data: ReviewCreate) -> SellerReview:
        seller = await self.get_seller(db, seller_id)
        if seller.user_id == user_id:
            raise AuthorizationError("You cannot review your own store")

        existing = await db.execute(
            select(SellerReview.id).where(
                SellerReview.seller_id == seller_id,
                SellerReview.user_id == user_id
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateEntryError("You have already reviewed this seller")

        review = SellerReview(
            seller_id=seller_id,
            user_id=user_id,
            rating=review_data.rating,
            comment=review_data.comment,
            is_approved=False
        )
        db.add(review)
        await db.commit()
        logger.info(f"User {user_id} reviewed seller {seller_id}, pending approval")
        return review

    async def list_reviews(self, db: AsyncSession, seller_id: int, approved_only: bool = True) -> List[ReviewResponse]:
        await self.get_seller(db, seller_id)

        query = (
            select(SellerReview, UserProfile.username)
            .outerjoin(UserProfile, UserProfile.user_id == SellerReview.user_id)
            .where(SellerReview.seller_id == seller_id)
        )
        if approved_only:
            query = query.where(SellerReview.is_approved == True)

        result = await db.execute(query.order_by(SellerReview.created_at.desc(), SellerReview.id.desc()))
        return [self.review_response(review, username) for review, username in result.all()]

    async def list_pending_reviews(self, db: AsyncSession) -> List[ReviewResponse]:
        result = await db.execute(
            select(SellerReview, UserProfile.username)
            .outerjoin(UserProfile, UserProfile.user_id == SellerReview.user_id)
            .where(SellerReview.is_approved == False)
            .order_by(SellerReview.created_at, SellerReview.id)
        )
        return [self.review_response(review, username) for review, username in result.all()]

    async def get_review(self, db: AsyncSession, seller_id: int, review_id: int) -> ReviewResponse:
        result = await db.execute(
            select(SellerReview, UserProfile.username)
            .outerjoin(UserProfile, UserProfile.user_id == SellerReview.user_id)
            .where(
                SellerReview.id == review_id,
                SellerReview.seller_id == seller_id,
                SellerReview.is_approved == True
            )
        )
        row = result.first()
        if not row:
            raise NotFoundError(f"Review {review_id} not found")
        return self.review_response(row[0], row[1])

    async def set_review_approval(self, db: AsyncSession, review_id: int, is_approved: bool) -> SellerReview:
        """Approve or unapprove a review and recompute the seller rating"""
        result = await db.execute(select(SellerReview).where(SellerReview.id == review_id))
        review = result.scalar_one_or_none()
        if not review:
            raise NotFoundError(f"Review {review_id} not found")

        try:
            review.is_approved = is_approved
            await db.flush()
            rating = await self.recompute_seller_rating(db, review.seller_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(f"Review {review_id} approval set to {is_approved}; seller {review.seller_id} rating now {rating}")
        return review

    async def build_seller_report(
        self,
        db: AsyncSession,
        user_id: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> SellerReportResponse:
        seller = await product_helpers.get_seller_by_user(db, user_id)
        start, end = resolve_date_range(start_date, end_date)

        result = await db.execute(
            select(OrderItem, Order.order_date)
            .join(Order, OrderItem.order_id == Order.id)
            .options(selectinload(OrderItem.product))
            .where(
                OrderItem.seller_id == seller.id,
                Order.order_date >= start,
                Order.order_date <= end
            )
        )
        rows = result.all()

        total_revenue = to_money(sum((item.unit_price * item.quantity for item, _ in rows), Decimal("0")))
        order_ids = {item.order_id for item, _ in rows}
        completed = {item.order_id for item, _ in rows if item.status == OrderItemStatus.DELIVERED.value}
        pending = {item.order_id for item, _ in rows if item.status == OrderItemStatus.PENDING.value}

        per_product: Dict[int, TopProduct] = {}
        per_day: Dict[date, dict] = {}
        for item, order_date in rows:
            line_total = item.unit_price * item.quantity

            top = per_product.setdefault(item.product_id, TopProduct(
                product_id=item.product_id,
                product_name=item.product.name,
                total_sales=0,
                revenue=Decimal("0")
            ))
            top.total_sales += item.quantity
            top.revenue = to_money(top.revenue + line_total)

            bucket = per_day.setdefault(order_date.date(), {"revenue": Decimal("0"), "orders": set()})
            bucket["revenue"] += line_total
            bucket["orders"].add(item.order_id)

        top_products = sorted(per_product.values(), key=lambda p: (-p.revenue, p.product_id))[:TOP_PRODUCTS_LIMIT]
        daily_revenue = [
            DailyRevenue(day=day, revenue=to_money(bucket["revenue"]), order_count=len(bucket["orders"]))
            for day, bucket in sorted(per_day.items())
        ]

        return SellerReportResponse(
            start_date=start,
            end_date=end,
            total_revenue=total_revenue,
            total_orders=len(order_ids),
            completed_orders=len(completed),
            pending_orders=len(pending),
            average_order_value=to_money(total_revenue / len(order_ids)) if order_ids else to_money(0),
            top_products=top_products,
            daily_revenue=daily_revenue
        )

    def review_response(self, review: SellerReview, username: Optional[str] = None) -> ReviewResponse:
        return ReviewResponse(
            id=review.id,
            seller_id=review.seller_id,
            user_id=review.user_id,
            username=username,
            rating=review.rating,
            comment=review.comment,
            is_approved=review.is_approved,
            created_at=review.created_at
        )


seller_helpers = SellerHelpers()
