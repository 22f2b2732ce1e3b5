from pydantic import BaseModel, Field, validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from enum import Enum


class ProductSortField(str, Enum):
    NAME = "name"
    PRICE = "price"
    STOCK = "stock"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


# Category Schemas
class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    description: Optional[str] = Field(None, max_length=200)

    @validator('name')
    def strip_name(cls, v):
        v = v.strip()
        if len(v) < 2:
            raise ValueError('name must be at least 2 characters')
        return v

class CategoryResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


# Product Schemas
class ProductCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    price: Decimal = Field(..., gt=0, max_digits=18, decimal_places=2)
    stock: int = Field(..., ge=0)
    image_url: Optional[str] = Field(None, max_length=500)
    category_id: int
    seller_id: Optional[int] = None

class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    price: Optional[Decimal] = Field(None, gt=0, max_digits=18, decimal_places=2)
    stock: Optional[int] = Field(None, ge=0)
    image_url: Optional[str] = Field(None, max_length=500)
    category_id: Optional[int] = None

class ProductResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    stock: int
    image_url: Optional[str] = None
    category_id: int
    seller_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True

class ProductListResponse(BaseModel):
    products: List[ProductResponse]
    page: int
    limit: int
    total: int
