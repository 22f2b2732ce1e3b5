from pydantic import BaseModel, EmailStr, Field, validator
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal
from routers.products.schemas import ProductCreate


# Seller profile schemas
class SellerCreate(BaseModel):
    store_name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    contact_email: EmailStr
    contact_phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=200)

    @validator('store_name')
    def store_name_not_blank(cls, v):
        if not v.strip():
            raise ValueError('store_name must not be blank')
        return v.strip()

class SellerUpdate(BaseModel):
    store_name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=200)

class SellerResponse(BaseModel):
    id: int
    user_id: str
    store_name: str
    description: Optional[str] = None
    contact_email: str
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    created_at: datetime
    is_approved: bool
    rating: Decimal
    total_sales: int

    class Config:
        from_attributes = True

class SellerStatsResponse(BaseModel):
    total_products: int
    total_sales: int
    rating: Decimal
    is_approved: bool
    store_name: str
    join_date: datetime


# Bulk catalog schemas
class BulkCreateProductsRequest(BaseModel):
    products: List[ProductCreate] = Field(..., min_length=1, max_length=100)

class StockUpdate(BaseModel):
    product_id: int
    new_stock: int = Field(..., ge=0)

class BulkUpdateStockRequest(BaseModel):
    products: List[StockUpdate] = Field(..., min_length=1, max_length=500)

    @validator('products')
    def unique_products(cls, v):
        ids = [p.product_id for p in v]
        if len(ids) != len(set(ids)):
            raise ValueError('each product may only appear once')
        return v


# Review schemas
class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)

class ReviewResponse(BaseModel):
    id: int
    seller_id: int
    user_id: str
    username: Optional[str] = None
    rating: int
    comment: Optional[str] = None
    is_approved: bool
    created_at: datetime


# Report schemas
class TopProduct(BaseModel):
    product_id: int
    product_name: str
    total_sales: int
    revenue: Decimal

class DailyRevenue(BaseModel):
    day: date
    revenue: Decimal
    order_count: int

class SellerReportResponse(BaseModel):
    start_date: datetime
    end_date: datetime
    total_revenue: Decimal
    total_orders: int
    completed_orders: int
    pending_orders: int
    average_order_value: Decimal
    top_products: List[TopProduct] = []
    daily_revenue: List[DailyRevenue] = []
