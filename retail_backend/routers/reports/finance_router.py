from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from retail_backend.core.db import get_db
from retail_backend.schemas.finance_schemas import (
    DashboardOut, DashboardResponse, ExpenseCreate, ExpenseOut, ExpenseResponse,
    TransactionCreate, TransactionOut, TransactionResponse
)
from retail_backend.schemas.query_schemas import FilterAndPagination, ListResponse
from retail_backend.services import dashboard_service, finance_service, reporting_service
from retail_backend.utils.check_roles import ADMIN_ONLY, STAFF_ROLES, require_role
from retail_backend.utils.get_user import get_current_user

expenses_router = APIRouter(prefix="/expenses", tags=["Expenses"])
transactions_router = APIRouter(prefix="/transactions", tags=["Vendor Transactions"])
dashboard_router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


# ----------------- EXPENSES -----------------
@expenses_router.post("", response_model=ExpenseResponse)
@require_role(ADMIN_ONLY)
async def create_expense_route(
    payload: ExpenseCreate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    expense = await finance_service.create_expense(db, payload)
    return ExpenseResponse(message="Expense created successfully", data=ExpenseOut.model_validate(expense))


@expenses_router.post("/get-all", response_model=ListResponse)
@require_role(ADMIN_ONLY)
async def list_expenses_route(
    query: FilterAndPagination,
    q: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    return await reporting_service.get_all(db, "expenses", query, q)


# ----------------- VENDOR TRANSACTIONS -----------------
@transactions_router.post("", response_model=TransactionResponse)
@require_role(ADMIN_ONLY)
async def create_transaction_route(
    payload: TransactionCreate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    transaction = await finance_service.create_vendor_transaction(db, payload)
    return TransactionResponse(
        message="Transaction created successfully",
        data=TransactionOut.model_validate(transaction),
    )


@transactions_router.post("/get-all", response_model=ListResponse)
@require_role(ADMIN_ONLY)
async def list_transactions_route(
    query: FilterAndPagination,
    q: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    return await reporting_service.get_all(db, "transactions", query, q)


# ----------------- DASHBOARD -----------------
@dashboard_router.get("/sales", response_model=DashboardResponse)
@require_role(STAFF_ROLES)
async def sales_dashboard_route(
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    figures = await dashboard_service.sales_dashboard(db, _user)
    return DashboardResponse(message="Data retrieved successfully", data=DashboardOut(**figures))
