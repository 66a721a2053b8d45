from sqlalchemy.ext.asyncio import AsyncSession

from retail_backend.core.logging_config import get_logger
from retail_backend.models.finance_models import Expense, VendorTransaction
from retail_backend.schemas.finance_schemas import ExpenseCreate, TransactionCreate
from retail_backend.utils.date_utils import as_utc, date_string

logger = get_logger("services.finance")


async def create_expense(db: AsyncSession, data: ExpenseCreate) -> Expense:
    moment = as_utc(data.date)
    expense = Expense(
        date=moment,
        date_string=date_string(moment),
        expense_for=data.expense_for,
        description=data.description,
        paid_amount=data.paid_amount,
        due_amount=data.due_amount,
    )
    db.add(expense)
    await db.commit()
    await db.refresh(expense)
    logger.info("expense_created", extra={"expense_id": expense.id, "paid_amount": expense.paid_amount})
    return expense


async def create_vendor_transaction(db: AsyncSession, data: TransactionCreate) -> VendorTransaction:
    moment = as_utc(data.transaction_date)
    transaction = VendorTransaction(
        vendor=data.vendor.to_json(),
        vendor_name=data.vendor.name,
        description=data.description,
        paid_amount=data.paid_amount,
        due_amount=data.due_amount,
        transaction_date=moment,
        transaction_date_string=date_string(moment),
    )
    db.add(transaction)
    await db.commit()
    await db.refresh(transaction)
    logger.info(
        "vendor_transaction_created",
        extra={"transaction_id": transaction.id, "vendor_name": transaction.vendor_name},
    )
    return transaction
