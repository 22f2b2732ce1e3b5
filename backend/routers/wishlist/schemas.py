from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from decimal import Decimal


class WishlistItemResponse(BaseModel):
    product_id: int
    product_name: str
    product_image: Optional[str] = None
    price: Decimal
    added_at: datetime
    seller_store_name: Optional[str] = None
