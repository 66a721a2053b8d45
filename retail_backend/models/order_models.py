# retail_backend/models/order_models.py
import enum
from sqlalchemy import (
    Column, Integer, String, Float, ForeignKey, JSON, DateTime, Enum, Index, func
)
from retail_backend.core.db import Base


class OrderStatus(str, enum.Enum):
    PENDING = "Pending"
    HOLD = "Hold"
    READY_FOR_SHIPPING = "Ready for Shipping"
    COMPLETED = "Completed"
    CANCELED = "Canceled"
    RETURNED = "Returned"


def _status_column():
    return Column(
        Enum(
            OrderStatus,
            name="order_status",
            values_callable=lambda members: [m.value for m in members],
        ),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True,
    )


class OrderColumns:
    """Columns shared by sales and pre-orders."""

    id = Column(Integer, primary_key=True, index=True)
    invoice_no = Column(String, unique=True, nullable=False, index=True)

    # Snapshots taken when the order was placed
    customer = Column(JSON, nullable=True)
    customer_id = Column(Integer, nullable=True, index=True)
    customer_phone = Column(String, nullable=True, index=True)
    salesman = Column(JSON, nullable=True)
    salesman_id = Column(Integer, nullable=True, index=True)
    salesman_phone = Column(String, nullable=True)
    products = Column(JSON, nullable=False, default=list)

    sold_date = Column(DateTime(timezone=True), nullable=False)
    sold_date_string = Column(String(10), nullable=False, index=True)
    reference_no = Column(String, nullable=True)
    discount_type = Column(String, nullable=True)
    discount_amount = Column(Float, default=0.0, nullable=False)
    discount_percent = Column(Float, default=0.0, nullable=False)
    shipping_charge = Column(Float, default=0.0, nullable=False)
    sub_total = Column(Float, default=0.0, nullable=False)
    total = Column(Float, default=0.0, nullable=False)
    total_purchase_price = Column(Float, default=0.0, nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Sale(OrderColumns, Base):
    __tablename__ = "sales"

    status = _status_column()
    # Bumped by every filed return; a return only commits if it still matches.
    return_version = Column(Integer, nullable=False, default=0, server_default="0")

    __table_args__ = (
        Index("ix_sales_period", "year", "month"),
    )


class PreOrder(OrderColumns, Base):
    __tablename__ = "pre_orders"

    status = _status_column()

    __table_args__ = (
        Index("ix_pre_orders_period", "year", "month"),
    )


class SalesReturn(Base):
    __tablename__ = "sales_returns"

    id = Column(Integer, primary_key=True, index=True)
    # Invoice number of the sale being returned against; many returns may share it.
    invoice_no = Column(String, nullable=False, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id", ondelete="RESTRICT"), nullable=False, index=True)

    customer = Column(JSON, nullable=True)
    customer_phone = Column(String, nullable=True, index=True)
    salesman = Column(JSON, nullable=True)
    products = Column(JSON, nullable=False, default=list)

    return_date = Column(DateTime(timezone=True), nullable=False)
    return_date_string = Column(String(10), nullable=False, index=True)
    sub_total = Column(Float, default=0.0, nullable=False)
    total = Column(Float, default=0.0, nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
