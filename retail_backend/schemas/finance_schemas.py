from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime

from retail_backend.schemas.snapshot_schemas import Snapshot


class VendorRef(Snapshot):
    id: Optional[int] = None
    name: str
    phone: Optional[str] = None


# --------------------------
# Expense Schemas
# --------------------------
class ExpenseCreate(BaseModel):
    date: Optional[datetime] = None
    expense_for: Optional[str] = None
    description: Optional[str] = None
    paid_amount: float = Field(0.0, ge=0)
    due_amount: float = Field(0.0, ge=0)


class ExpenseOut(BaseModel):
    id: int
    date: datetime
    date_string: str
    expense_for: Optional[str] = None
    description: Optional[str] = None
    paid_amount: float
    due_amount: float

    class Config:
        from_attributes = True


class ExpenseResponse(BaseModel):
    message: str
    data: Optional[ExpenseOut] = None


# --------------------------
# Vendor Transaction Schemas
# --------------------------
class TransactionCreate(BaseModel):
    vendor: VendorRef
    description: Optional[str] = None
    paid_amount: float = Field(0.0, ge=0)
    due_amount: float = Field(0.0, ge=0)
    transaction_date: Optional[datetime] = None


class TransactionOut(BaseModel):
    id: int
    vendor: Optional[Dict[str, Any]] = None
    vendor_name: Optional[str] = None
    description: Optional[str] = None
    paid_amount: float
    due_amount: float
    transaction_date: datetime
    transaction_date_string: str

    class Config:
        from_attributes = True


class TransactionResponse(BaseModel):
    message: str
    data: Optional[TransactionOut] = None


class DashboardOut(BaseModel):
    date: str
    total_sale: float
    total_profit: float = Field(
        description="Sum of (total - total_purchase_price) over sales that made money; never negative"
    )
    total_loss: float = Field(
        description="Sum of (total_purchase_price - total) over sales below cost; never negative"
    )
    total_expense: float
    total_purchase: float


class DashboardResponse(BaseModel):
    message: str
    data: DashboardOut
