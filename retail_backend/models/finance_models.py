# retail_backend/models/finance_models.py
from sqlalchemy import Column, Integer, String, Float, DateTime, JSON, Text, func
from retail_backend.core.db import Base


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(DateTime(timezone=True), nullable=False)
    date_string = Column(String(10), nullable=False, index=True)
    expense_for = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    paid_amount = Column(Float, default=0.0, nullable=False)
    due_amount = Column(Float, default=0.0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class VendorTransaction(Base):
    __tablename__ = "vendor_transactions"

    id = Column(Integer, primary_key=True, index=True)
    vendor = Column(JSON, nullable=True)  # {"id", "name", "phone"} at transaction time
    vendor_name = Column(String, nullable=True, index=True)
    description = Column(Text, nullable=True)
    paid_amount = Column(Float, default=0.0, nullable=False)
    due_amount = Column(Float, default=0.0, nullable=False)
    transaction_date = Column(DateTime(timezone=True), nullable=False)
    transaction_date_string = Column(String(10), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
