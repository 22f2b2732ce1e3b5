from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal


class AddToCartRequest(BaseModel):
    product_id: int
    quantity: int = Field(..., gt=0)


class UpdateCartItemRequest(BaseModel):
    quantity: int = Field(..., gt=0)


class CartItemResponse(BaseModel):
    product_id: int
    product_name: str
    product_image: Optional[str] = None
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    seller_store_name: Optional[str] = None


class CartResponse(BaseModel):
    """
    Cart contents. unit_price is the price captured when the product was
    added; later catalog price changes are not reflected until checkout,
    which always charges the current product price.
    """
    id: int
    items: List[CartItemResponse] = []
    total_amount: Decimal
    updated_at: Optional[datetime] = None
