"""
Response helper utilities: the ApiResponse envelope, paging metadata and
money normalisation
"""
from typing import Any, Dict, Generic, List, Optional, TypeVar
from decimal import Decimal, ROUND_HALF_UP
from pydantic import BaseModel, ConfigDict, Field
import math

T = TypeVar("T")

TWO_PLACES = Decimal("0.01")


class ApiResponse(BaseModel, Generic[T]):
    """
    Envelope returned by every endpoint.
    Exactly one of data / error is normally set; meta carries paging info.
    """
    model_config = ConfigDict(populate_by_name=True)

    data: Optional[T] = None
    error: Optional[str] = None
    validation_errors: Optional[List[str]] = Field(None, alias="validationErrors")
    meta: Optional[Dict[str, Any]] = None


def to_money(value: Any) -> Decimal:
    """
    Normalise a numeric value coming back from the database (Decimal on
    PostgreSQL, sometimes float or int from aggregates) to a 2dp Decimal
    """
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def total_pages(total_items: int, page_size: int) -> int:
    if page_size <= 0:
        return 0
    return math.ceil(total_items / page_size)


def paging_meta(total_items: int, page_number: int, page_size: int) -> Dict[str, Any]:
    """Paging metadata attached to list responses"""
    return {
        "total_items": total_items,
        "total_pages": total_pages(total_items, page_size),
        "current_page": page_number,
        "page_size": page_size
    }
