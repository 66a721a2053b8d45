from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from retail_backend.core.db import get_db
from retail_backend.schemas.billing_schemas.order_schemas import (
    OrderCreate, OrderOut, OrderResponse, OrderStatusUpdate
)
from retail_backend.schemas.query_schemas import FilterAndPagination, ListResponse
from retail_backend.services import reporting_service
from retail_backend.services.billing_services import order_service
from retail_backend.utils.check_roles import STAFF_ROLES, require_role
from retail_backend.utils.get_user import get_current_user


def build_order_router(kind: str, report_name: str, prefix: str, label: str) -> APIRouter:
    """Routes for one order kind; sales and pre-orders expose the same surface."""
    router = APIRouter(prefix=prefix, tags=[label])

    # CREATE
    @router.post("", response_model=OrderResponse)
    @require_role(STAFF_ROLES)
    async def place_order_route(
        payload: OrderCreate,
        db: AsyncSession = Depends(get_db),
        _user=Depends(get_current_user),
    ):
        order = await order_service.place_order(db, kind, payload, _user.id)
        return OrderResponse(
            message=f"{label} created successfully",
            data=OrderOut.model_validate(order),
        )

    # GET ALL WITH FILTER, SEARCH, PAGINATION
    @router.post("/get-all", response_model=ListResponse)
    @require_role(STAFF_ROLES)
    async def list_orders_route(
        query: FilterAndPagination,
        q: Optional[str] = Query(None, description="Search invoice number or phone"),
        db: AsyncSession = Depends(get_db),
        _user=Depends(get_current_user),
    ):
        return await reporting_service.get_all(db, report_name, query, q)

    # GET BY INVOICE NUMBER
    @router.get("/invoice/{invoice_no}", response_model=OrderResponse)
    @require_role(STAFF_ROLES)
    async def get_order_by_invoice_route(
        invoice_no: str,
        db: AsyncSession = Depends(get_db),
        _user=Depends(get_current_user),
    ):
        order = await order_service.get_order_by_invoice(db, kind, invoice_no)
        return OrderResponse(message=f"{label} fetched successfully", data=OrderOut.model_validate(order))

    # GET SINGLE
    @router.get("/{order_id}", response_model=OrderResponse)
    @require_role(STAFF_ROLES)
    async def get_order_route(
        order_id: int,
        db: AsyncSession = Depends(get_db),
        _user=Depends(get_current_user),
    ):
        order = await order_service.get_order(db, kind, order_id)
        return OrderResponse(message=f"{label} fetched successfully", data=OrderOut.model_validate(order))

    # UPDATE STATUS
    @router.put("/{order_id}/status", response_model=OrderResponse)
    @require_role(STAFF_ROLES)
    async def update_status_route(
        order_id: int,
        payload: OrderStatusUpdate,
        db: AsyncSession = Depends(get_db),
        _user=Depends(get_current_user),
    ):
        order = await order_service.update_order_status(db, kind, order_id, payload.status)
        return OrderResponse(message=f"{label} status updated", data=OrderOut.model_validate(order))

    return router


sales_router = build_order_router("sale", "sales", "/sales", "Sale")
pre_orders_router = build_order_router("pre_order", "pre_orders", "/pre-orders", "Pre-order")
