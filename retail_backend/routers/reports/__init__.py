from fastapi import APIRouter
from .finance_router import expenses_router, transactions_router, dashboard_router

router = APIRouter(prefix="/reports")

router.include_router(expenses_router)
router.include_router(transactions_router)
router.include_router(dashboard_router)
