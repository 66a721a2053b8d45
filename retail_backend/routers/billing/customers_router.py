from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from retail_backend.core.db import get_db
from retail_backend.schemas.billing_schemas.customer_schema import CustomerOut, CustomerResponse
from retail_backend.schemas.query_schemas import FilterAndPagination, ListResponse
from retail_backend.services import reporting_service
from retail_backend.services.billing_services import customer_service
from retail_backend.utils.check_roles import STAFF_ROLES, require_role
from retail_backend.utils.get_user import get_current_user

router = APIRouter(prefix="/customers", tags=["Customers"])


# LOOKUP BY PHONE
@router.get("/phone/{phone}", response_model=CustomerResponse)
@require_role(STAFF_ROLES)
async def get_customer_by_phone_route(
    phone: str,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    customer = await customer_service.get_customer_by_phone(db, phone)
    return CustomerResponse(message="Customer fetched successfully", data=CustomerOut.model_validate(customer))


# GET ALL
@router.post("/get-all", response_model=ListResponse)
@require_role(STAFF_ROLES)
async def list_customers_route(
    query: FilterAndPagination,
    q: Optional[str] = Query(None, description="Search name or phone"),
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    return await reporting_service.get_all(db, "customers", query, q)
