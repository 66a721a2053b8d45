"""
Placing sales and pre-orders.

A sale touches three kinds of rows that are not written in one transaction:
the invoice counter, product stock (one committed movement per line) and
the order itself. They are written in that order. Once stock has moved,
any failure reverses the applied movements before the error leaves this
module; see ``compensation.compensate_movements``.

Pre-orders allocate an invoice number but leave stock alone.
"""
from typing import Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from retail_backend.core.exceptions import ConflictError, NotFoundError, ValidationError
from retail_backend.core.logging_config import get_logger
from retail_backend.models.order_models import OrderStatus, PreOrder, Sale
from retail_backend.models.product_models import LedgerReason, Product
from retail_backend.models.user_models import User
from retail_backend.schemas.billing_schemas.order_schemas import OrderCreate
from retail_backend.schemas.snapshot_schemas import OrderLineSnapshot, SalesmanSnapshot
from retail_backend.services.billing_services.customer_service import (
    customer_snapshot, resolve_customer
)
from retail_backend.services.inventory_services.stock_ledger_service import adjust_stock
from retail_backend.services.order_services.compensation import compensate_movements
from retail_backend.services.order_services.sequence_service import next_invoice_no
from retail_backend.utils.date_utils import as_utc, date_string, period_of

logger = get_logger("services.order")

ORDER_MODELS = {
    "sale": Sale,
    "pre_order": PreOrder,
}

# Statuses a user may move an order to. RETURNED is only set by filing a return.
SETTABLE_STATUSES = frozenset({
    OrderStatus.PENDING,
    OrderStatus.HOLD,
    OrderStatus.READY_FOR_SHIPPING,
    OrderStatus.COMPLETED,
    OrderStatus.CANCELED,
})
TERMINAL_STATUSES = frozenset({OrderStatus.CANCELED, OrderStatus.RETURNED})

Order = Union[Sale, PreOrder]


def order_model(kind: str):
    try:
        return ORDER_MODELS[kind]
    except KeyError:
        raise ValidationError(f"Unknown order kind '{kind}'")


def _pricing(payload: OrderCreate) -> tuple[float, float]:
    """(sub_total, total); submitted figures win over computed ones."""
    sub_total = payload.sub_total
    if sub_total is None:
        sub_total = sum(line.sale_price * line.sold_quantity for line in payload.products)

    total = payload.total
    if total is None:
        if payload.discount_type == "percent":
            discount = sub_total * payload.discount_percent / 100
        else:
            discount = payload.discount_amount
        total = max(sub_total - discount, 0.0) + payload.shipping_charge

    return round(sub_total, 2), round(total, 2)


async def _load_products(db: AsyncSession, payload: OrderCreate) -> dict[int, Product]:
    ids = {line.product_id for line in payload.products}
    result = await db.execute(select(Product).where(Product.id.in_(ids)))
    products = {p.id: p for p in result.scalars().all()}
    for line in payload.products:
        if line.product_id not in products:
            raise NotFoundError("Product", line.product_id)
    return products


# ---------------------------------------------------
# PLACE ORDER
# ---------------------------------------------------
async def place_order(
    db: AsyncSession, kind: str, payload: OrderCreate, salesman_id: int
) -> Order:
    model = order_model(kind)
    if not payload.products:
        raise ValidationError("An order needs at least one product line")

    salesman = await db.get(User, salesman_id)
    if not salesman:
        raise NotFoundError("User", salesman_id)
    products = await _load_products(db, payload)

    invoice_no = await next_invoice_no(db)

    movements = []
    try:
        if model is Sale:
            for line in payload.products:
                movements.append(
                    await adjust_stock(
                        db,
                        line.product_id,
                        -line.sold_quantity,
                        reason=LedgerReason.SALE,
                        reference=invoice_no,
                        sold_delta=line.sold_quantity,
                    )
                )

        candidate = payload.customer
        customer = await resolve_customer(db, candidate.phone if candidate else None, candidate)
        snapshot = customer_snapshot(customer)

        sold_date = as_utc(payload.sold_date)
        month, year = period_of(sold_date)
        lines = [
            OrderLineSnapshot(
                product_id=line.product_id,
                name=products[line.product_id].name,
                sku=products[line.product_id].sku,
                model=products[line.product_id].model,
                sold_quantity=line.sold_quantity,
                sale_price=line.sale_price,
                purchase_price=(
                    line.purchase_price
                    if line.purchase_price is not None
                    else products[line.product_id].purchase_price
                ),
            )
            for line in payload.products
        ]
        sub_total, total = _pricing(payload)

        order = model(
            invoice_no=invoice_no,
            customer=snapshot.to_json() if snapshot else None,
            customer_id=customer.id if customer else None,
            customer_phone=customer.phone if customer else None,
            salesman=SalesmanSnapshot.model_validate(salesman).to_json(),
            salesman_id=salesman.id,
            salesman_phone=salesman.phone,
            products=[line.to_json() for line in lines],
            sold_date=sold_date,
            sold_date_string=date_string(sold_date),
            reference_no=payload.reference_no,
            discount_type=payload.discount_type,
            discount_amount=payload.discount_amount,
            discount_percent=payload.discount_percent,
            shipping_charge=payload.shipping_charge,
            sub_total=sub_total,
            total=total,
            total_purchase_price=round(
                sum(line.purchase_price * line.sold_quantity for line in lines), 2
            ),
            status=payload.status,
            month=month,
            year=year,
        )
        db.add(order)
        await db.commit()
    except Exception as e:
        await db.rollback()
        await compensate_movements(db, movements, invoice_no, e)
        if isinstance(e, IntegrityError):
            raise ConflictError(f"Invoice number '{invoice_no}' already exists") from e
        raise

    await db.refresh(order)
    logger.info(
        "order_placed",
        extra={
            "kind": kind,
            "order_id": order.id,
            "invoice_no": invoice_no,
            "lines": len(lines),
            "total": total,
            "salesman_id": salesman.id,
            "customer_id": order.customer_id,
        },
    )
    return order


# ---------------------------------------------------
# READ
# ---------------------------------------------------
async def get_order(db: AsyncSession, kind: str, order_id: int) -> Order:
    model = order_model(kind)
    result = await db.execute(
        select(model).where(model.id == order_id).execution_options(populate_existing=True)
    )
    order = result.scalars().first()
    if not order:
        raise NotFoundError(model.__name__, order_id)
    return order


async def get_order_by_invoice(db: AsyncSession, kind: str, invoice_no: str) -> Order:
    model = order_model(kind)
    result = await db.execute(
        select(model)
        .where(model.invoice_no == invoice_no)
        .execution_options(populate_existing=True)
    )
    order = result.scalars().first()
    if not order:
        raise NotFoundError(model.__name__, invoice_no)
    return order


# ---------------------------------------------------
# STATUS
# ---------------------------------------------------
async def update_order_status(
    db: AsyncSession, kind: str, order_id: int, status: OrderStatus
) -> Order:
    """Move an order between workflow statuses. Canceling does not restock."""
    status = OrderStatus(status)
    if status not in SETTABLE_STATUSES:
        raise ValidationError(f"Status '{status.value}' can only be set by filing a return")

    order = await get_order(db, kind, order_id)
    previous: Optional[OrderStatus] = order.status
    if previous in TERMINAL_STATUSES:
        raise ValidationError(
            f"Order '{order.invoice_no}' is {previous.value} and can no longer change status"
        )

    order.status = status
    await db.commit()
    await db.refresh(order)

    logger.info(
        "order_status_changed",
        extra={
            "kind": kind,
            "invoice_no": order.invoice_no,
            "previous_status": previous.value,
            "status": status.value,
        },
    )
    return order
