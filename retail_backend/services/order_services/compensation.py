"""
Undo stock movements whose owning order could not be stored.

Stock movements are committed one by one before the order row is written,
so a failed write leaves stock changed with nothing referencing it. The
reversal is recorded as ordinary ``compensation`` ledger entries rather than
by deleting anything.
"""
from typing import Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from retail_backend.core.exceptions import PartialApplicationError, RetailError
from retail_backend.core.logging_config import get_logger
from retail_backend.models.product_models import LedgerReason
from retail_backend.services.inventory_services.stock_ledger_service import (
    StockMovement, adjust_stock
)

logger = get_logger("services.compensation")


async def compensate_movements(
    db: AsyncSession,
    movements: Sequence[StockMovement],
    reference: str,
    cause: BaseException,
) -> None:
    """
    Reverse ``movements`` newest first.

    Returns normally when every movement was reversed; the caller then
    re-raises ``cause``. Raises ``PartialApplicationError`` listing the
    movements that are still applied otherwise.
    """
    if not movements:
        return

    unreconciled: list[StockMovement] = []
    for movement in reversed(movements):
        try:
            await adjust_stock(
                db,
                movement.product_id,
                movement.reverse(),
                reason=LedgerReason.COMPENSATION,
                reference=reference,
                sold_delta=-movement.sold_delta,
            )
        except (RetailError, SQLAlchemyError):
            await db.rollback()
            logger.error(
                "compensation_step_failed",
                extra={"reference": reference, "product_id": movement.product_id, "delta": movement.delta},
                exc_info=True,
            )
            unreconciled.append(movement)

    if unreconciled:
        error = PartialApplicationError(
            reference,
            [m.to_dict() for m in unreconciled],
            cause=type(cause).__name__,
        )
        logger.error(
            "partial_application",
            extra={
                "reference": reference,
                "unreconciled": [m.to_dict() for m in unreconciled],
                "cause": str(cause),
            },
        )
        raise error from cause

    logger.warning(
        "compensation_executed",
        extra={
            "reference": reference,
            "movements": len(movements),
            "cause": type(cause).__name__,
        },
    )
