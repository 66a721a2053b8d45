# retail_backend/models/product_models.py
from datetime import datetime, timezone
import enum
from sqlalchemy import (
    Column, Integer, String, Float, Boolean, JSON, Index,
    ForeignKey, DateTime, event, func
)
from retail_backend.core.db import Base
from retail_backend.core.exceptions import ValidationError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LedgerReason(str, enum.Enum):
    OPENING = "opening"
    RESTOCK = "restock"
    ADJUSTMENT = "adjustment"
    SALE = "sale"
    RETURN = "return"
    COMPENSATION = "compensation"


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    product_code = Column(String(32), unique=True, nullable=False, index=True)
    name = Column(String(255), index=True, nullable=False)
    sku = Column(String, nullable=True)
    model = Column(String, nullable=True)
    others = Column(String, nullable=True)
    description = Column(String, nullable=True)

    # {"id": ..., "name": ...} copies of the catalog references
    category = Column(JSON, nullable=True)
    subcategory = Column(JSON, nullable=True)
    brand = Column(JSON, nullable=True)
    unit = Column(JSON, nullable=True)

    # No non-negative check: over-selling stays visible in the stock figure.
    quantity = Column(Integer, default=0, nullable=False)
    sold_quantity = Column(Integer, default=0, nullable=False)
    purchase_price = Column(Float, default=0.0, nullable=False)
    sale_price = Column(Float, default=0.0, nullable=False)
    min_quantity = Column(Integer, default=0, nullable=False)
    status = Column(Boolean, default=True, nullable=False)

    created_at_string = Column(String(10), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        Index("ix_product_name_sku", "name", "sku"),
    )

    def __repr__(self):
        return f"<Product(id={self.id}, code='{self.product_code}', quantity={self.quantity})>"


class ProductPurchase(Base):
    """Append-only stock movement ledger. Rows are never updated or deleted."""

    __tablename__ = "product_purchases"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True)
    product = Column(JSON, nullable=False)
    previous_quantity = Column(Integer, nullable=False, default=0)
    updated_quantity = Column(Integer, nullable=False, default=0)
    reason = Column(String(20), nullable=False, index=True)
    reference = Column(String, nullable=True, index=True)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    created_at_string = Column(String(10), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, index=True)

    __table_args__ = (
        Index("ix_product_purchase_period", "product_id", "year", "month"),
    )


@event.listens_for(ProductPurchase, "before_update")
def _reject_ledger_update(mapper, connection, target):
    raise ValidationError(f"Ledger entry {target.id} is immutable and cannot be updated")


@event.listens_for(ProductPurchase, "before_delete")
def _reject_ledger_delete(mapper, connection, target):
    raise ValidationError(f"Ledger entry {target.id} is immutable and cannot be deleted")
