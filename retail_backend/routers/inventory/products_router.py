from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from retail_backend.core.db import get_db
from retail_backend.models.product_models import LedgerReason
from retail_backend.schemas.inventory_schemas import (
    ProductCreate, ProductOut, ProductResponse, QuantityAsOfResponse,
    StockAdjust, StockMovementOut, StockMovementResponse, StockSet
)
from retail_backend.schemas.query_schemas import FilterAndPagination, ListResponse
from retail_backend.services import reporting_service
from retail_backend.services.inventory_services import stock_ledger_service
from retail_backend.utils.check_roles import ADMIN_ONLY, STAFF_ROLES, require_role
from retail_backend.utils.get_user import get_current_user

router = APIRouter(prefix="/products", tags=["Products"])


# CREATE
@router.post("", response_model=ProductResponse)
@require_role(ADMIN_ONLY)
async def create_product_route(
    product: ProductCreate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    created = await stock_ledger_service.create_product(db, product)
    return ProductResponse(message="Product created successfully", data=ProductOut.model_validate(created))


# GET ALL WITH FILTER, SEARCH, PAGINATION
@router.post("/get-all", response_model=ListResponse)
@require_role(STAFF_ROLES)
async def list_products_route(
    query: FilterAndPagination,
    q: Optional[str] = Query(None, description="Search name, sku or model"),
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    return await reporting_service.get_all(db, "products", query, q)


# SET STOCK (stock count correction)
@router.put("/{product_id}/stock", response_model=StockMovementResponse)
@require_role(ADMIN_ONLY)
async def set_stock_route(
    product_id: int,
    payload: StockSet,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    movement = await stock_ledger_service.set_stock(db, product_id, payload.quantity)
    return StockMovementResponse(message="Stock updated", data=StockMovementOut(**movement.to_dict()))


# RELATIVE ADJUSTMENT (restock / correction)
@router.post("/{product_id}/adjust", response_model=StockMovementResponse)
@require_role(ADMIN_ONLY)
async def adjust_stock_route(
    product_id: int,
    payload: StockAdjust,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    movement = await stock_ledger_service.adjust_stock(
        db, product_id, payload.delta, reason=LedgerReason(payload.reason)
    )
    return StockMovementResponse(message="Stock adjusted", data=StockMovementOut(**movement.to_dict()))


# HISTORICAL QUANTITY
@router.get("/{product_id}/quantity-as-of", response_model=QuantityAsOfResponse)
@require_role(STAFF_ROLES)
async def quantity_as_of_route(
    product_id: int,
    at: datetime = Query(..., description="Point in time (ISO 8601)"),
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    quantity = await stock_ledger_service.quantity_as_of(db, product_id, at)
    return QuantityAsOfResponse(product_id=product_id, as_of=at, quantity=quantity)
