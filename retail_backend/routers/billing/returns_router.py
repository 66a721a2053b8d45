from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from retail_backend.core.db import get_db
from retail_backend.schemas.billing_schemas.order_schemas import (
    ReturnCreate, ReturnListResponse, ReturnOut, ReturnResponse
)
from retail_backend.schemas.query_schemas import FilterAndPagination, ListResponse
from retail_backend.services import reporting_service
from retail_backend.services.billing_services import return_service
from retail_backend.utils.check_roles import STAFF_ROLES, require_role
from retail_backend.utils.get_user import get_current_user

router = APIRouter(prefix="/returns", tags=["Returns"])


# FILE RETURN
@router.post("", response_model=ReturnResponse)
@require_role(STAFF_ROLES)
async def file_return_route(
    payload: ReturnCreate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    sales_return = await return_service.file_return(
        db, payload.invoice_no, payload.products, payload.return_date
    )
    return ReturnResponse(
        message="Return filed successfully",
        data=ReturnOut.model_validate(sales_return),
    )


# GET ALL
@router.post("/get-all", response_model=ListResponse)
@require_role(STAFF_ROLES)
async def list_returns_route(
    query: FilterAndPagination,
    q: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    return await reporting_service.get_all(db, "returns", query, q)


# RETURNS OF ONE INVOICE
@router.get("/invoice/{invoice_no}", response_model=ReturnListResponse)
@require_role(STAFF_ROLES)
async def returns_for_invoice_route(
    invoice_no: str,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    returns = await return_service.list_returns_for_invoice(db, invoice_no)
    return ReturnListResponse(
        message="Returns fetched successfully",
        data=[ReturnOut.model_validate(r) for r in returns],
    )
