"""
Sequence allocation for invoice numbers and product codes.

Each series is one row in ``sequence_counters``. A value is issued by a single
``INSERT ... ON CONFLICT DO UPDATE SET value = value + 1 RETURNING value``
statement, so the increment and the read happen inside the database as one
operation and two callers can never receive the same number. The statement
is committed straight away; a number that was issued but whose order later
failed is burnt, never reissued.
"""
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from retail_backend.core.config import (
    INVOICE_SERIES, PRODUCT_SERIES, INVOICE_NUMBER_WIDTH, PRODUCT_CODE_WIDTH
)
from retail_backend.core.db import dialect_insert
from retail_backend.core.exceptions import SequenceExhaustionError
from retail_backend.core.logging_config import get_logger
from retail_backend.models.sequence_models import SequenceCounter

logger = get_logger("services.sequence")


def format_sequence(value: int, width: int) -> str:
    """Zero-pad ``value`` to ``width`` digits; longer values are kept whole."""
    return str(value).zfill(width)


async def next_value(db: AsyncSession, series: str) -> int:
    """Atomically increment ``series`` and return the new value (first call returns 1)."""
    if not series:
        raise ValueError("series name is required")

    insert_stmt = dialect_insert(db, SequenceCounter).values(series=series, value=1)
    stmt = insert_stmt.on_conflict_do_update(
        index_elements=["series"],
        set_={"value": SequenceCounter.value + 1},
    ).returning(SequenceCounter.value)

    try:
        result = await db.execute(stmt)
        value = result.scalar_one()
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("sequence_allocation_failed", extra={"series": series}, exc_info=True)
        raise SequenceExhaustionError(series, str(e.__class__.__name__)) from e

    logger.debug("sequence_allocated", extra={"series": series, "value": value})
    return value


async def current_value(db: AsyncSession, series: str) -> int:
    result = await db.execute(
        select(SequenceCounter.value).where(SequenceCounter.series == series)
    )
    return result.scalar_one_or_none() or 0


async def next_invoice_no(db: AsyncSession) -> str:
    return format_sequence(await next_value(db, INVOICE_SERIES), INVOICE_NUMBER_WIDTH)


async def next_product_code(db: AsyncSession) -> str:
    return format_sequence(await next_value(db, PRODUCT_SERIES), PRODUCT_CODE_WIDTH)
