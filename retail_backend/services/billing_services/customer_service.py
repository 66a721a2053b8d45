from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from retail_backend.core.db import dialect_insert
from retail_backend.core.exceptions import NotFoundError
from retail_backend.core.logging_config import get_logger
from retail_backend.models.customer_models import Customer
from retail_backend.schemas.billing_schemas.customer_schema import CustomerIn
from retail_backend.schemas.snapshot_schemas import CustomerSnapshot

logger = get_logger("services.customer")


def _normalise_phone(phone: Optional[str]) -> Optional[str]:
    if phone is None:
        return None
    phone = phone.strip()
    return phone or None


async def _find_by_phone(db: AsyncSession, phone: str) -> Optional[Customer]:
    result = await db.execute(select(Customer).where(Customer.phone == phone))
    return result.scalars().first()


# FIND OR CREATE BY PHONE
async def resolve_customer(
    db: AsyncSession, phone: Optional[str], candidate: Optional[CustomerIn] = None
) -> Optional[Customer]:
    """
    Return the customer owning ``phone``, creating it from ``candidate`` on a
    miss. A blank phone means an anonymous order and resolves to ``None``.

    An existing customer is returned untouched even if ``candidate`` carries
    different details. Creation is ``INSERT ... ON CONFLICT (phone) DO
    NOTHING`` followed by a re-select, so two orders racing on a new phone
    both end up with the same row. Nothing is committed here.
    """
    phone = _normalise_phone(phone)
    if phone is None:
        return None

    customer = await _find_by_phone(db, phone)
    if customer:
        return customer

    values = {"phone": phone}
    if candidate is not None:
        values.update(candidate.model_dump(exclude={"phone"}, exclude_none=True))

    stmt = dialect_insert(db, Customer).values(**values).on_conflict_do_nothing(
        index_elements=["phone"]
    )
    result = await db.execute(stmt)

    customer = await _find_by_phone(db, phone)
    if result.rowcount:
        logger.info("customer_created", extra={"customer_id": customer.id, "phone": phone})
    return customer


def customer_snapshot(customer: Optional[Customer]) -> Optional[CustomerSnapshot]:
    if customer is None:
        return None
    return CustomerSnapshot.model_validate(customer)


async def get_customer_by_phone(db: AsyncSession, phone: str) -> Customer:
    customer = await _find_by_phone(db, _normalise_phone(phone) or "")
    if not customer:
        raise NotFoundError("Customer", phone)
    return customer
