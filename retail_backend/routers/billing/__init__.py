from fastapi import APIRouter
from .orders_router import sales_router, pre_orders_router
from .returns_router import router as returns_router
from .customers_router import router as customers_router

router = APIRouter(prefix="/billing")

router.include_router(sales_router)
router.include_router(pre_orders_router)
router.include_router(returns_router)
router.include_router(customers_router)
