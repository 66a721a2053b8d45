from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime
from typing_extensions import Annotated

from retail_backend.models.order_models import OrderStatus
from retail_backend.schemas.billing_schemas.customer_schema import CustomerIn

PositiveInt = Annotated[int, Field(gt=0)]
NonNegativeFloat = Annotated[float, Field(ge=0)]


# --------------------------
# Order Schemas
# --------------------------
class OrderLineIn(BaseModel):
    product_id: int
    sold_quantity: PositiveInt
    sale_price: NonNegativeFloat
    # Falls back to the catalog purchase price when omitted
    purchase_price: Optional[NonNegativeFloat] = None


class OrderCreate(BaseModel):
    products: List[OrderLineIn] = Field(min_length=1)
    customer: Optional[CustomerIn] = None
    sold_date: Optional[datetime] = None
    reference_no: Optional[str] = None
    discount_type: Optional[Literal["amount", "percent"]] = None
    discount_amount: NonNegativeFloat = 0.0
    discount_percent: NonNegativeFloat = 0.0
    shipping_charge: NonNegativeFloat = 0.0
    sub_total: Optional[NonNegativeFloat] = None
    total: Optional[NonNegativeFloat] = None
    status: OrderStatus = OrderStatus.PENDING

    @field_validator("status")
    def not_returned(cls, value):
        if value == OrderStatus.RETURNED:
            raise ValueError("an order cannot be placed as Returned")
        return value


class OrderOut(BaseModel):
    id: int
    invoice_no: str
    customer: Optional[Dict[str, Any]] = None
    salesman: Optional[Dict[str, Any]] = None
    products: List[Dict[str, Any]]
    sold_date: datetime
    sold_date_string: str
    reference_no: Optional[str] = None
    discount_type: Optional[str] = None
    discount_amount: float
    discount_percent: float
    shipping_charge: float
    sub_total: float
    total: float
    total_purchase_price: float
    status: OrderStatus
    month: int
    year: int

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    message: str
    data: Optional[OrderOut] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


# --------------------------
# Return Schemas
# --------------------------
class ReturnLineIn(BaseModel):
    product_id: int
    returned_quantity: PositiveInt


class ReturnCreate(BaseModel):
    invoice_no: str = Field(min_length=1)
    products: List[ReturnLineIn] = Field(min_length=1)
    return_date: Optional[datetime] = None


class ReturnOut(BaseModel):
    id: int
    invoice_no: str
    sale_id: int
    customer: Optional[Dict[str, Any]] = None
    salesman: Optional[Dict[str, Any]] = None
    products: List[Dict[str, Any]]
    return_date: datetime
    return_date_string: str
    sub_total: float
    total: float
    month: int
    year: int

    class Config:
        from_attributes = True


class ReturnResponse(BaseModel):
    message: str
    data: Optional[ReturnOut] = None


class ReturnListResponse(BaseModel):
    message: str
    data: List[ReturnOut]
