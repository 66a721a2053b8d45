"""
Filing returns against sales.

A return is one transaction: claiming the sale, the restocking movements,
the return row and the status flag commit together, so a failure leaves
nothing to compensate.

The claim is a conditional ``UPDATE sales ... WHERE return_version = :seen``.
It holds the sale's row lock until the return commits; a concurrent return
on the same invoice waits for it, finds the version moved on and validates
again against the returns committed in between.
"""
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from retail_backend.core.exceptions import ConflictError, ValidationError
from retail_backend.core.logging_config import get_logger
from retail_backend.models.order_models import OrderStatus, Sale, SalesReturn
from retail_backend.models.product_models import LedgerReason
from retail_backend.schemas.billing_schemas.order_schemas import ReturnLineIn
from retail_backend.schemas.snapshot_schemas import ReturnLineSnapshot
from retail_backend.services.billing_services.order_service import get_order_by_invoice
from retail_backend.services.inventory_services.stock_ledger_service import adjust_stock
from retail_backend.utils.date_utils import as_utc, date_string, period_of

logger = get_logger("services.return")

RETURN_CLAIM_ATTEMPTS = 3


async def _already_returned(db: AsyncSession, invoice_no: str) -> dict[int, int]:
    """Units per product returned by earlier returns against ``invoice_no``."""
    result = await db.execute(
        select(SalesReturn.products).where(SalesReturn.invoice_no == invoice_no)
    )
    returned: dict[int, int] = {}
    for products in result.scalars().all():
        for line in products:
            pid = line["product_id"]
            returned[pid] = returned.get(pid, 0) + line["returned_quantity"]
    return returned


def _sold_by_product(order_lines: list[dict]) -> dict[int, dict]:
    """Merge order lines per product; an order may list one product twice."""
    merged: dict[int, dict] = {}
    for line in order_lines:
        pid = line["product_id"]
        if pid in merged:
            merged[pid]["sold_quantity"] += line["sold_quantity"]
        else:
            merged[pid] = dict(line)
    return merged


async def _plan_return(
    db: AsyncSession, sale: Sale, lines: Sequence[ReturnLineIn]
) -> list[ReturnLineSnapshot]:
    """Check every line against the sale and earlier returns; nothing is written."""
    invoice_no = sale.invoice_no
    if sale.status == OrderStatus.CANCELED:
        raise ValidationError(f"Invoice '{invoice_no}' was canceled and cannot take returns")

    sold = _sold_by_product(sale.products)
    previously_returned = await _already_returned(db, invoice_no)

    requested: dict[int, int] = {}
    for line in lines:
        if line.returned_quantity <= 0:
            raise ValidationError(
                f"Returned quantity for product {line.product_id} must be positive"
            )
        if line.product_id not in sold:
            raise ValidationError(
                f"Product {line.product_id} is not part of invoice '{invoice_no}'"
            )
        requested[line.product_id] = requested.get(line.product_id, 0) + line.returned_quantity

    for product_id, quantity in requested.items():
        remaining = sold[product_id]["sold_quantity"] - previously_returned.get(product_id, 0)
        if quantity > remaining:
            raise ValidationError(
                f"Cannot return {quantity} of product {product_id} on invoice "
                f"'{invoice_no}'; {remaining} left to return"
            )

    return [
        ReturnLineSnapshot(
            product_id=product_id,
            name=sold[product_id].get("name"),
            sold_quantity=sold[product_id]["sold_quantity"],
            returned_quantity=quantity,
            sale_price=sold[product_id]["sale_price"],
        )
        for product_id, quantity in requested.items()
    ]


async def _claim_sale(db: AsyncSession, sale: Sale) -> bool:
    """
    Flag the sale Returned and bump its ``return_version``, provided it has
    not changed since it was read. Not committed.
    """
    result = await db.execute(
        update(Sale)
        .where(
            Sale.id == sale.id,
            Sale.return_version == sale.return_version,
            Sale.status != OrderStatus.CANCELED,
        )
        .values(return_version=Sale.return_version + 1, status=OrderStatus.RETURNED)
        .returning(Sale.return_version)
        .execution_options(synchronize_session=False)
    )
    return result.first() is not None


# ---------------------------------------------------
# FILE RETURN
# ---------------------------------------------------
async def file_return(
    db: AsyncSession,
    invoice_no: str,
    lines: Sequence[ReturnLineIn],
    return_date: Optional[datetime] = None,
) -> SalesReturn:
    """
    Record a return against a sale and put the returned units back in stock.

    Each line names a product of the original order and how many units came
    back. Every line is checked before stock moves: it must match a product
    on the invoice, and together with earlier returns it may not exceed the
    sold quantity. The sale is flagged ``Returned`` as a whole even when only
    part of it came back.

    Raises ``ConflictError`` if other returns on the invoice kept winning the
    claim for ``RETURN_CLAIM_ATTEMPTS`` rounds.
    """
    if not lines:
        raise ValidationError("A return needs at least one product line")

    moment = as_utc(return_date)
    month, year = period_of(moment)
    in_transaction = False
    try:
        for attempt in range(1, RETURN_CLAIM_ATTEMPTS + 1):
            sale = await get_order_by_invoice(db, "sale", invoice_no)
            snapshots = await _plan_return(db, sale, lines)
            in_transaction = True
            if await _claim_sale(db, sale):
                break
            logger.info(
                "return_claim_retry",
                extra={"invoice_no": invoice_no, "attempt": attempt},
            )
        else:
            raise ConflictError(
                f"Invoice '{invoice_no}' is taking other returns; try again"
            )

        for snapshot in snapshots:
            await adjust_stock(
                db,
                snapshot.product_id,
                snapshot.returned_quantity,
                reason=LedgerReason.RETURN,
                reference=invoice_no,
                sold_delta=-snapshot.returned_quantity,
                commit=False,
            )

        sub_total = round(sum(s.sale_price * s.returned_quantity for s in snapshots), 2)
        sales_return = SalesReturn(
            invoice_no=invoice_no,
            sale_id=sale.id,
            customer=sale.customer,
            customer_phone=sale.customer_phone,
            salesman=sale.salesman,
            products=[s.to_json() for s in snapshots],
            return_date=moment,
            return_date_string=date_string(moment),
            sub_total=sub_total,
            total=sub_total,
            month=month,
            year=year,
        )
        db.add(sales_return)
        await db.commit()
    except Exception:
        if in_transaction:
            await db.rollback()
        raise

    await db.refresh(sales_return)
    logger.info(
        "return_filed",
        extra={
            "return_id": sales_return.id,
            "invoice_no": invoice_no,
            "lines": len(snapshots),
            "units": sum(s.returned_quantity for s in snapshots),
            "total": sub_total,
        },
    )
    return sales_return


async def list_returns_for_invoice(db: AsyncSession, invoice_no: str) -> list[SalesReturn]:
    result = await db.execute(
        select(SalesReturn)
        .where(SalesReturn.invoice_no == invoice_no)
        .order_by(SalesReturn.id)
    )
    return list(result.scalars().all())
