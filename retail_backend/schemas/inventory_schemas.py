from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional
from datetime import datetime

from retail_backend.schemas.snapshot_schemas import RefSnapshot


# --------------------------
# Product Schemas
# --------------------------
class ProductCreate(BaseModel):
    name: str = Field(min_length=1)
    sku: Optional[str] = None
    model: Optional[str] = None
    others: Optional[str] = None
    description: Optional[str] = None
    category: Optional[RefSnapshot] = None
    subcategory: Optional[RefSnapshot] = None
    brand: Optional[RefSnapshot] = None
    unit: Optional[RefSnapshot] = None
    quantity: int = 0
    purchase_price: float = 0.0
    sale_price: float = 0.0
    min_quantity: int = 0

    @field_validator('quantity', 'purchase_price', 'sale_price', 'min_quantity')
    def non_negative_values(cls, value):
        if value < 0:
            raise ValueError('Must be non-negative')
        return value


class ProductOut(BaseModel):
    id: int
    product_code: str
    name: str
    sku: Optional[str] = None
    model: Optional[str] = None
    category: Optional[RefSnapshot] = None
    brand: Optional[RefSnapshot] = None
    unit: Optional[RefSnapshot] = None
    quantity: int
    sold_quantity: int
    purchase_price: float
    sale_price: float
    min_quantity: int
    created_at_string: Optional[str] = None

    class Config:
        from_attributes = True


class ProductResponse(BaseModel):
    message: str
    data: Optional[ProductOut] = None


# --------------------------
# Stock Schemas
# --------------------------
class StockSet(BaseModel):
    quantity: int


class StockAdjust(BaseModel):
    delta: int
    reason: Literal["restock", "adjustment"] = "restock"

    @field_validator('delta')
    def non_zero(cls, value):
        if value == 0:
            raise ValueError('delta must be non-zero')
        return value


class StockMovementOut(BaseModel):
    product_id: int
    delta: int
    previous_quantity: int
    updated_quantity: int
    entry_id: Optional[int] = None


class StockMovementResponse(BaseModel):
    message: str
    data: StockMovementOut


class QuantityAsOfResponse(BaseModel):
    product_id: int
    as_of: datetime
    quantity: int
