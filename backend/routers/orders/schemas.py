from pydantic import BaseModel, Field, validator
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal
from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class OrderItemStatus(str, Enum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"


class PaymentStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"


class OrderSortKey(str, Enum):
    DATE_DESC = "date_desc"
    DATE_ASC = "date_asc"
    AMOUNT_DESC = "amount_desc"
    AMOUNT_ASC = "amount_asc"


# Request schemas
class OrderLineCreate(BaseModel):
    product_id: int
    quantity: int = Field(..., gt=0)


class OrderCreate(BaseModel):
    items: List[OrderLineCreate] = Field(..., min_length=1)
    shipping_address: str = Field(..., min_length=1, max_length=500)
    contact_phone: str = Field(..., min_length=1, max_length=20)
    payment_method: str = Field(..., min_length=1, max_length=50)

    @validator('shipping_address', 'contact_phone', 'payment_method')
    def not_blank(cls, v):
        if not v.strip():
            raise ValueError('must not be blank')
        return v.strip()


class UpdateOrderItemStatusRequest(BaseModel):
    status: OrderItemStatus


# Response schemas
class OrderItemDetailResponse(BaseModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    quantity: int
    unit_price: Decimal
    status: str
    seller_id: Optional[int] = None
    seller_store_name: Optional[str] = None


class OrderDetailResponse(BaseModel):
    id: int
    order_date: datetime
    status: str
    total_amount: Decimal
    shipping_address: str
    contact_phone: str
    payment_method: str
    payment_status: str
    items: List[OrderItemDetailResponse] = []


class OrderListResponse(BaseModel):
    orders: List[OrderDetailResponse]
    page: int
    limit: int
    total: int


class OrderStatusCount(BaseModel):
    status: str
    count: int


class DailyOrderStats(BaseModel):
    day: date
    order_count: int
    revenue: Decimal


class PaymentMethodStats(BaseModel):
    method: str
    count: int
    total_amount: Decimal


class OrderStatsResponse(BaseModel):
    start_date: datetime
    end_date: datetime
    total_orders: int
    total_revenue: Decimal
    average_order_value: Decimal
    orders_by_status: List[OrderStatusCount] = []
    daily_stats: List[DailyOrderStats] = []
    payment_method_stats: List[PaymentMethodStats] = []


class OrderSearchResponse(BaseModel):
    items: List[OrderDetailResponse]
    total_items: int
    page_size: int
    current_page: int
    total_pages: int
