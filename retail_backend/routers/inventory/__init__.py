from fastapi import APIRouter
from .products_router import router as products_router
from .ledger_router import router as ledger_router

router = APIRouter(prefix="/inventory")

router.include_router(products_router)
router.include_router(ledger_router)
