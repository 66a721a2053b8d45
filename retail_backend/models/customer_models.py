from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from retail_backend.core.db import Base


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=True)
    # Unique when present; several anonymous rows may carry NULL.
    phone = Column(String, unique=True, nullable=True, index=True)
    email = Column(String, nullable=True)
    address = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
