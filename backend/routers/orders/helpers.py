from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload, contains_eager
from sqlalchemy import select, update, func
from models import Order, OrderItem, Product, Seller
from routers.products.helpers import product_helpers
from utils.exceptions import (
    NotFoundError,
    AuthorizationError,
    InputValidationError,
    InsufficientStockError,
    OrderValidationError,
    InvalidStatusTransitionError
)
from utils.response_helpers import to_money
from config import DEFAULT_REPORT_DAYS
from .schemas import (
    OrderCreate,
    OrderStatus,
    OrderItemStatus,
    PaymentStatus,
    OrderSortKey,
    OrderDetailResponse,
    OrderItemDetailResponse,
    OrderStatsResponse,
    OrderStatusCount,
    DailyOrderStats,
    PaymentMethodStats
)
from typing import Dict, Iterable, List, Optional, Set, Tuple
from datetime import datetime, timedelta, timezone
from decimal import Decimal
import logging

logger = logging.getLogger(__name__)

# Per-item fulfillment transitions. Rejected and Delivered are terminal.
ALLOWED_TRANSITIONS: Dict[str, Set[str]] = {
    OrderItemStatus.PENDING.value: {OrderItemStatus.ACCEPTED.value, OrderItemStatus.REJECTED.value},
    OrderItemStatus.ACCEPTED.value: {OrderItemStatus.SHIPPED.value, OrderItemStatus.REJECTED.value},
    OrderItemStatus.SHIPPED.value: {OrderItemStatus.DELIVERED.value},
    OrderItemStatus.REJECTED.value: set(),
    OrderItemStatus.DELIVERED.value: set(),
}

ORDER_SORT_CLAUSES = {
    OrderSortKey.DATE_DESC: (Order.order_date.desc(), Order.id.desc()),
    OrderSortKey.DATE_ASC: (Order.order_date.asc(), Order.id.asc()),
    OrderSortKey.AMOUNT_DESC: (Order.total_amount.desc(), Order.id.desc()),
    OrderSortKey.AMOUNT_ASC: (Order.total_amount.asc(), Order.id.asc()),
}


def can_transition(current_status: str, new_status: str) -> bool:
    return new_status in ALLOWED_TRANSITIONS.get(current_status, set())


def derive_order_status(item_statuses: Iterable[str]) -> Optional[str]:
    """
    Order status implied by its item statuses, or None when the items do not
    determine one. Only the all-Delivered case rolls up.
    """
    statuses = list(item_statuses)
    if statuses and all(s == OrderItemStatus.DELIVERED.value for s in statuses):
        return OrderStatus.DELIVERED.value
    return None


def merge_order_lines(order_data: OrderCreate) -> Dict[int, int]:
    """Requested quantity per product id, in first-seen order"""
    requested: Dict[int, int] = {}
    for line in order_data.items:
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity
    return requested


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Naive datetimes from query strings are taken as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def resolve_date_range(
    start_date: Optional[datetime],
    end_date: Optional[datetime]
) -> Tuple[datetime, datetime]:
    start_date, end_date = _as_utc(start_date), _as_utc(end_date)
    end = end_date or datetime.now(timezone.utc)
    start = start_date or end - timedelta(days=DEFAULT_REPORT_DAYS)
    if start > end:
        raise InputValidationError(errors=["start_date must not be after end_date"])
    return start, end


class OrderHelpers:
    """Order placement, fulfillment and order reporting"""

    def _detail_query(self):
        return (
            select(Order)
            .options(
                selectinload(Order.items).selectinload(OrderItem.product),
                selectinload(Order.items).selectinload(OrderItem.seller)
            )
            .execution_options(populate_existing=True)
        )

    async def get_order(self, db: AsyncSession, order_id: int) -> Order:
        result = await db.execute(self._detail_query().where(Order.id == order_id))
        order = result.scalar_one_or_none()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    async def get_order_for_user(self, db: AsyncSession, order_id: int, user_id: str, role: str) -> Order:
        order = await self.get_order(db, order_id)
        if order.user_id != user_id and role != "admin":
            logger.warning(f"User {user_id} tried to read order {order_id} owned by {order.user_id}")
            raise AuthorizationError("You are not allowed to view this order")
        return order

    async def place_order(self, db: AsyncSession, user_id: str, order_data: OrderCreate) -> Order:
        """
        Create an order with one item per requested product and reserve stock.

        Product rows are locked in id order for the duration of the
        transaction and every decrement is guarded by stock >= quantity, so
        concurrent orders cannot overdraw stock. Nothing is written unless
        every line can be fulfilled.
        """
        requested = merge_order_lines(order_data)

        try:
            result = await db.execute(
                select(Product)
                .options(selectinload(Product.seller))
                .where(Product.id.in_(list(requested)))
                .order_by(Product.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            products = {product.id: product for product in result.scalars().all()}

            if len(products) != len(requested):
                missing = sorted(set(requested) - set(products))
                raise OrderValidationError(f"Some products were not found: {missing}")

            for product_id, quantity in requested.items():
                product = products[product_id]
                if product.stock < quantity:
                    raise InsufficientStockError(product.id, product.name, product.stock, quantity)

            order = Order(
                user_id=user_id,
                status=OrderStatus.PENDING.value,
                payment_status=PaymentStatus.PENDING.value,
                shipping_address=order_data.shipping_address,
                contact_phone=order_data.contact_phone,
                payment_method=order_data.payment_method
            )

            total_amount = Decimal("0.00")
            for product_id, quantity in requested.items():
                product = products[product_id]
                order.items.append(OrderItem(
                    product_id=product.id,
                    seller_id=product.seller_id,
                    quantity=quantity,
                    unit_price=product.price,
                    status=OrderItemStatus.PENDING.value
                ))
                total_amount += product.price * quantity
            order.total_amount = total_amount

            for product_id, quantity in requested.items():
                outcome = await db.execute(
                    update(Product)
                    .where(Product.id == product_id, Product.stock >= quantity)
                    .values(stock=Product.stock - quantity)
                    .execution_options(synchronize_session=False)
                )
                if outcome.rowcount != 1:
                    product = products[product_id]
                    available = (await db.execute(
                        select(Product.stock).where(Product.id == product_id)
                    )).scalar_one()
                    raise InsufficientStockError(product.id, product.name, available, quantity)

            db.add(order)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            f"Order {order.id} placed by {user_id}: {len(requested)} item(s), total {total_amount}"
        )
        return await self.get_order(db, order.id)

    async def list_user_orders(self, db: AsyncSession, user_id: str, page: int, limit: int) -> Tuple[List[Order], int]:
        total = (await db.execute(
            select(func.count(Order.id)).where(Order.user_id == user_id)
        )).scalar() or 0

        result = await db.execute(
            self._detail_query()
            .where(Order.user_id == user_id)
            .order_by(Order.order_date.desc(), Order.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def get_seller_orders(
        self,
        db: AsyncSession,
        user_id: str,
        item_status: Optional[OrderItemStatus] = None
    ) -> List[OrderDetailResponse]:
        """
        The calling seller's items grouped by order, newest order first.
        total_amount of each group is the seller's share of that order.
        """
        seller = await product_helpers.get_seller_by_user(db, user_id)

        query = (
            select(OrderItem)
            .join(OrderItem.order)
            .options(contains_eager(OrderItem.order), selectinload(OrderItem.product))
            .where(OrderItem.seller_id == seller.id)
        )
        if item_status is not None:
            query = query.where(OrderItem.status == item_status.value)
        query = query.order_by(Order.order_date.desc(), Order.id.desc(), OrderItem.id)

        result = await db.execute(query)

        grouped: Dict[int, OrderDetailResponse] = {}
        for item in result.scalars().all():
            order = item.order
            if order.id not in grouped:
                grouped[order.id] = OrderDetailResponse(
                    id=order.id,
                    order_date=order.order_date,
                    status=order.status,
                    total_amount=Decimal("0.00"),
                    shipping_address=order.shipping_address,
                    contact_phone=order.contact_phone,
                    payment_method=order.payment_method,
                    payment_status=order.payment_status,
                    items=[]
                )
            detail = grouped[order.id]
            detail.items.append(self.item_response(item, seller.store_name))
            detail.total_amount = to_money(detail.total_amount + item.unit_price * item.quantity)

        return list(grouped.values())

    async def update_item_status(
        self,
        db: AsyncSession,
        user_id: str,
        order_item_id: int,
        new_status: OrderItemStatus
    ) -> OrderItem:
        """
        Move one of the calling seller's items along the fulfillment flow and
        roll the order status up from its items.
        """
        try:
            seller = await product_helpers.get_seller_by_user(db, user_id)

            result = await db.execute(
                select(OrderItem)
                .options(selectinload(OrderItem.product), selectinload(OrderItem.seller))
                .where(OrderItem.id == order_item_id, OrderItem.seller_id == seller.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            item = result.scalar_one_or_none()
            if not item:
                raise NotFoundError(f"Order item {order_item_id} not found")

            current_status = item.status
            if not can_transition(current_status, new_status.value):
                raise InvalidStatusTransitionError(current_status, new_status.value)

            # Roll-ups for one order run one at a time so the last item moved
            # always sees every sibling's committed status
            order = (await db.execute(
                select(Order)
                .where(Order.id == item.order_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )).scalar_one()

            item.status = new_status.value
            await db.flush()

            if new_status == OrderItemStatus.DELIVERED:
                await db.execute(
                    update(Seller)
                    .where(Seller.id == seller.id)
                    .values(total_sales=func.coalesce(Seller.total_sales, 0) + item.quantity)
                    .execution_options(synchronize_session=False)
                )

            sibling_statuses = (await db.execute(
                select(OrderItem.status).where(OrderItem.order_id == item.order_id)
            )).scalars().all()

            derived_status = derive_order_status(sibling_statuses)
            if derived_status:
                if order.status != derived_status:
                    order.status = derived_status
                    logger.info(f"Order {order.id} is now {derived_status}")

            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            f"Seller {seller.id} moved order item {order_item_id} from {current_status} to {new_status.value}"
        )
        return item

    async def build_order_stats(
        self,
        db: AsyncSession,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> OrderStatsResponse:
        start, end = resolve_date_range(start_date, end_date)
        in_range = (Order.order_date >= start, Order.order_date <= end)

        totals = (await db.execute(
            select(func.count(Order.id), func.sum(Order.total_amount)).where(*in_range)
        )).one()
        total_orders = totals[0] or 0
        total_revenue = to_money(totals[1])
        average = to_money(total_revenue / total_orders) if total_orders else to_money(0)

        by_status = await db.execute(
            select(Order.status, func.count(Order.id))
            .where(*in_range)
            .group_by(Order.status)
            .order_by(Order.status)
        )

        order_day = func.date(Order.order_date)
        daily = await db.execute(
            select(order_day, func.count(Order.id), func.sum(Order.total_amount))
            .where(*in_range)
            .group_by(order_day)
            .order_by(order_day)
        )

        by_method = await db.execute(
            select(Order.payment_method, func.count(Order.id), func.sum(Order.total_amount))
            .where(*in_range)
            .group_by(Order.payment_method)
            .order_by(Order.payment_method)
        )

        return OrderStatsResponse(
            start_date=start,
            end_date=end,
            total_orders=total_orders,
            total_revenue=total_revenue,
            average_order_value=average,
            orders_by_status=[
                OrderStatusCount(status=status, count=count) for status, count in by_status.all()
            ],
            daily_stats=[
                DailyOrderStats(day=day, order_count=count, revenue=to_money(revenue))
                for day, count, revenue in daily.all()
            ],
            payment_method_stats=[
                PaymentMethodStats(method=method, count=count, total_amount=to_money(amount))
                for method, count, amount in by_method.all()
            ]
        )

    async def search_orders(
        self,
        db: AsyncSession,
        status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        min_amount: Optional[Decimal] = None,
        max_amount: Optional[Decimal] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        sort_by: OrderSortKey = OrderSortKey.DATE_DESC,
        page: int = 1,
        page_size: int = 10
    ) -> Tuple[List[Order], int]:
        if min_amount is not None and max_amount is not None and min_amount > max_amount:
            raise InputValidationError(errors=["min_amount must not be greater than max_amount"])

        start_date, end_date = _as_utc(start_date), _as_utc(end_date)
        conditions = []
        if status is not None:
            conditions.append(Order.status == status.value)
        if payment_status is not None:
            conditions.append(Order.payment_status == payment_status.value)
        if min_amount is not None:
            conditions.append(Order.total_amount >= min_amount)
        if max_amount is not None:
            conditions.append(Order.total_amount <= max_amount)
        if start_date is not None:
            conditions.append(Order.order_date >= start_date)
        if end_date is not None:
            conditions.append(Order.order_date <= end_date)

        total = (await db.execute(select(func.count(Order.id)).where(*conditions))).scalar() or 0

        result = await db.execute(
            self._detail_query()
            .where(*conditions)
            .order_by(*ORDER_SORT_CLAUSES[sort_by])
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    def item_response(self, item: OrderItem, store_name: Optional[str]) -> OrderItemDetailResponse:
        return OrderItemDetailResponse(
            id=item.id,
            product_id=item.product_id,
            product_name=item.product.name if item.product else None,
            quantity=item.quantity,
            unit_price=to_money(item.unit_price),
            status=item.status,
            seller_id=item.seller_id,
            seller_store_name=store_name
        )

    def to_detail_response(self, order: Order) -> OrderDetailResponse:
        return OrderDetailResponse(
            id=order.id,
            order_date=order.order_date,
            status=order.status,
            total_amount=to_money(order.total_amount),
            shipping_address=order.shipping_address,
            contact_phone=order.contact_phone,
            payment_method=order.payment_method,
            payment_status=order.payment_status,
            items=[
                self.item_response(item, item.seller.store_name if item.seller else None)
                for item in order.items
            ]
        )


order_helpers = OrderHelpers()
