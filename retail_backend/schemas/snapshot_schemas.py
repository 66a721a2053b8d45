# retail_backend/schemas/snapshot_schemas.py
"""
Copies of customer, salesman and product fields embedded into orders and
ledger entries. They are frozen at write time so later catalog edits never
rewrite history.
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict


class Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    def to_json(self) -> dict:
        return self.model_dump(mode="json")


class RefSnapshot(Snapshot):
    id: Optional[int] = None
    name: Optional[str] = None


class CustomerSnapshot(Snapshot):
    id: int
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class SalesmanSnapshot(Snapshot):
    id: int
    name: Optional[str] = None
    phone: Optional[str] = None


class ProductSnapshot(Snapshot):
    id: int
    product_code: Optional[str] = None
    name: Optional[str] = None
    sku: Optional[str] = None
    model: Optional[str] = None
    others: Optional[str] = None
    purchase_price: Optional[float] = None
    sale_price: Optional[float] = None


class OrderLineSnapshot(Snapshot):
    product_id: int
    name: Optional[str] = None
    sku: Optional[str] = None
    model: Optional[str] = None
    sold_quantity: int
    sale_price: float
    purchase_price: float = 0.0


class ReturnLineSnapshot(Snapshot):
    product_id: int
    name: Optional[str] = None
    sold_quantity: int
    returned_quantity: int
    sale_price: float
