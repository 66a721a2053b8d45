"""
Stock ledger: the only code that changes ``Product.quantity``.

Every change is paired with an immutable ``ProductPurchase`` row recording
the quantity before and after, so the current stock always equals the last
ledger entry of the product and month/year movement reports can be built
from the ledger alone.

Relative changes (sales, returns, restocks) are applied with
``UPDATE products SET quantity = quantity + :delta ... RETURNING``. The
database computes the new value, so two concurrent adjustments to the same
product are both counted; there is no read-then-write window in which an
update could be lost.
"""
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from retail_backend.core import config
from retail_backend.core.exceptions import (
    ConflictError, InsufficientStockError, NotFoundError, ValidationError
)
from retail_backend.core.logging_config import get_logger
from retail_backend.models.product_models import LedgerReason, Product, ProductPurchase
from retail_backend.schemas.inventory_schemas import ProductCreate
from retail_backend.schemas.snapshot_schemas import ProductSnapshot
from retail_backend.services.order_services.sequence_service import next_product_code
from retail_backend.utils.date_utils import as_utc, date_string, period_of

logger = get_logger("services.stock_ledger")


@dataclass(frozen=True)
class StockMovement:
    product_id: int
    delta: int
    previous_quantity: int
    updated_quantity: int
    entry_id: Optional[int] = None
    sold_delta: int = 0

    def reverse(self) -> int:
        """Delta that undoes this movement."""
        return -self.delta

    def to_dict(self) -> dict:
        return asdict(self)


async def _append_entry(
    db: AsyncSession,
    snapshot: ProductSnapshot,
    previous_quantity: int,
    updated_quantity: int,
    reason: LedgerReason,
    reference: Optional[str] = None,
) -> ProductPurchase:
    month, year = period_of()
    entry = ProductPurchase(
        product_id=snapshot.id,
        product=snapshot.to_json(),
        previous_quantity=previous_quantity,
        updated_quantity=updated_quantity,
        reason=LedgerReason(reason).value,
        reference=reference,
        month=month,
        year=year,
        created_at_string=date_string(),
    )
    db.add(entry)
    await db.flush()
    return entry


async def _commit(db: AsyncSession):
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise


# ---------------------------------------------------
# RELATIVE ADJUSTMENT
# ---------------------------------------------------
async def adjust_stock(
    db: AsyncSession,
    product_id: int,
    delta: int,
    *,
    reason: LedgerReason,
    reference: Optional[str] = None,
    sold_delta: int = 0,
    commit: bool = True,
) -> StockMovement:
    """
    Add ``delta`` (negative for a sale) to the product's stock and append a
    ledger entry. ``sold_delta`` moves the cumulative sold counter in the
    same statement.
    """
    if delta == 0:
        raise ValidationError("Stock adjustment must change the quantity")

    stmt = (
        update(Product)
        .where(Product.id == product_id)
        .values(
            quantity=Product.quantity + delta,
            sold_quantity=Product.sold_quantity + sold_delta,
        )
        .returning(
            Product.quantity,
            Product.product_code,
            Product.name,
            Product.sku,
            Product.model,
            Product.others,
            Product.purchase_price,
            Product.sale_price,
        )
    )
    if delta < 0 and not config.ALLOW_NEGATIVE_STOCK:
        stmt = stmt.where(Product.quantity + delta >= 0)

    row = (await db.execute(stmt)).first()
    if row is None:
        available = await db.scalar(select(Product.quantity).where(Product.id == product_id))
        if available is None:
            raise NotFoundError("Product", product_id)
        raise InsufficientStockError(product_id, -delta, available)

    updated_quantity = row.quantity
    previous_quantity = updated_quantity - delta
    snapshot = ProductSnapshot(
        id=product_id,
        product_code=row.product_code,
        name=row.name,
        sku=row.sku,
        model=row.model,
        others=row.others,
        purchase_price=row.purchase_price,
        sale_price=row.sale_price,
    )
    entry = await _append_entry(db, snapshot, previous_quantity, updated_quantity, reason, reference)

    if commit:
        await _commit(db)

    logger.info(
        "stock_adjusted",
        extra={
            "product_id": product_id,
            "delta": delta,
            "previous_quantity": previous_quantity,
            "updated_quantity": updated_quantity,
            "reason": LedgerReason(reason).value,
            "reference": reference,
        },
    )
    if updated_quantity < 0:
        logger.warning(
            "stock_negative",
            extra={"product_id": product_id, "updated_quantity": updated_quantity},
        )

    return StockMovement(
        product_id, delta, previous_quantity, updated_quantity, entry.id, sold_delta
    )


# ---------------------------------------------------
# ABSOLUTE SET
# ---------------------------------------------------
async def set_stock(
    db: AsyncSession,
    product_id: int,
    quantity: int,
    *,
    reason: LedgerReason = LedgerReason.ADJUSTMENT,
) -> StockMovement:
    """Overwrite the stock figure (stock count correction) under a row lock."""
    if quantity < 0 and not config.ALLOW_NEGATIVE_STOCK:
        raise ValidationError(f"Stock of product {product_id} cannot be set below zero")

    result = await db.execute(
        select(Product)
        .where(Product.id == product_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    product = result.scalars().first()
    if not product:
        raise NotFoundError("Product", product_id)

    previous_quantity = product.quantity
    product.quantity = quantity
    entry = await _append_entry(
        db, ProductSnapshot.model_validate(product), previous_quantity, quantity, reason
    )
    await _commit(db)

    logger.info(
        "stock_set",
        extra={
            "product_id": product_id,
            "previous_quantity": previous_quantity,
            "updated_quantity": quantity,
        },
    )
    if quantity < 0:
        logger.warning(
            "stock_negative",
            extra={"product_id": product_id, "updated_quantity": quantity},
        )
    return StockMovement(product_id, quantity - previous_quantity, previous_quantity, quantity, entry.id)


# ---------------------------------------------------
# CREATE PRODUCT (opening stock)
# ---------------------------------------------------
async def create_product(db: AsyncSession, data: ProductCreate) -> Product:
    """Create a product with an allocated code and an opening ledger entry."""
    product_code = await next_product_code(db)

    values = data.model_dump()
    for ref in ("category", "subcategory", "brand", "unit"):
        if values.get(ref) is not None:
            values[ref] = getattr(data, ref).to_json()

    product = Product(
        **values,
        product_code=product_code,
        sold_quantity=0,
        created_at_string=date_string(),
    )
    db.add(product)
    try:
        await db.flush()
        await _append_entry(
            db, ProductSnapshot.model_validate(product), 0, product.quantity, LedgerReason.OPENING
        )
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError(f"Product code '{product_code}' already exists") from e

    await db.refresh(product)
    logger.info(
        "product_created",
        extra={"product_id": product.id, "product_code": product_code, "quantity": product.quantity},
    )
    return product


# ---------------------------------------------------
# HISTORY
# ---------------------------------------------------
async def quantity_as_of(db: AsyncSession, product_id: int, moment: datetime) -> int:
    """Stock level recorded by the latest ledger entry at or before ``moment``."""
    if await db.scalar(select(Product.id).where(Product.id == product_id)) is None:
        raise NotFoundError("Product", product_id)

    result = await db.execute(
        select(ProductPurchase.updated_quantity)
        .where(
            ProductPurchase.product_id == product_id,
            ProductPurchase.created_at <= as_utc(moment),
        )
        .order_by(ProductPurchase.created_at.desc(), ProductPurchase.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none() or 0


async def get_product(db: AsyncSession, product_id: int) -> Product:
    result = await db.execute(
        select(Product)
        .where(Product.id == product_id)
        .execution_options(populate_existing=True)
    )
    product = result.scalars().first()
    if not product:
        raise NotFoundError("Product", product_id)
    return product
