from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from retail_backend.models.finance_models import Expense
from retail_backend.models.order_models import Sale
from retail_backend.models.product_models import Product
from retail_backend.models.user_models import User
from retail_backend.services.reporting_service import margin_of, sum_of, summarize
from retail_backend.utils.date_utils import date_string


async def sales_dashboard(db: AsyncSession, user: User, today: Optional[datetime] = None) -> dict:
    """
    Figures for the landing page: today's sales with profit and loss,
    today's expenses and the purchase value of products added today.
    A salesman only sees the sales they made.

    ``total_profit`` and ``total_loss`` are split by sign per sale (see
    ``margin_of``); both are non-negative and their difference is the net.
    """
    day = date_string(today)

    sale_conditions = [Sale.sold_date_string == day]
    if (user.role or "").lower() == "salesman":
        sale_conditions.append(Sale.salesman_id == user.id)

    sales = await summarize(db, Sale, sale_conditions, {
        "total_sale": sum_of(Sale.total),
        "total_profit": margin_of(Sale.total, Sale.total_purchase_price, positive=True),
        "total_loss": margin_of(Sale.total, Sale.total_purchase_price, positive=False),
    })
    expenses = await summarize(db, Expense, [Expense.date_string == day], {
        "total_expense": sum_of(Expense.paid_amount),
    })
    purchases = await summarize(db, Product, [Product.created_at_string == day], {
        "total_purchase": sum_of(Product.purchase_price),
    })

    return {
        "date": day,
        **(sales or {"total_sale": 0.0, "total_profit": 0.0, "total_loss": 0.0}),
        **(expenses or {"total_expense": 0.0}),
        **(purchases or {"total_purchase": 0.0}),
    }
