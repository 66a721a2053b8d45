# retail_backend/models/sequence_models.py
from sqlalchemy import Column, Integer, String
from retail_backend.core.db import Base


class SequenceCounter(Base):
    """One row per numbering series; ``value`` is the last number handed out."""

    __tablename__ = "sequence_counters"

    series = Column(String(50), primary_key=True)
    value = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<SequenceCounter(series='{self.series}', value={self.value})>"
