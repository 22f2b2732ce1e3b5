from pydantic import BaseModel
from typing import List
from datetime import datetime
from decimal import Decimal


class ApprovalRequest(BaseModel):
    is_approved: bool


class SellerApprovalResponse(BaseModel):
    seller_id: int
    is_approved: bool
    metadata_updated: bool


class RecentOrder(BaseModel):
    id: int
    user_id: str
    order_date: datetime
    status: str
    total_amount: Decimal

    class Config:
        from_attributes = True


class DashboardResponse(BaseModel):
    total_users: int
    total_sellers: int
    pending_sellers: int
    total_products: int
    total_orders: int
    pending_reviews: int
    total_revenue: Decimal
    recent_orders: List[RecentOrder] = []
