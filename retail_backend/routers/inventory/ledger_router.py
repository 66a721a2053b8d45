from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from retail_backend.core.db import get_db
from retail_backend.schemas.query_schemas import FilterAndPagination, ListResponse
from retail_backend.services import reporting_service
from retail_backend.utils.check_roles import ADMIN_ONLY, require_role
from retail_backend.utils.get_user import get_current_user

router = APIRouter(prefix="/ledger", tags=["Stock Ledger"])


# filter by product_id, month, year, reason
@router.post("/get-all", response_model=ListResponse)
@require_role(ADMIN_ONLY)
async def list_ledger_route(
    query: FilterAndPagination,
    q: Optional[str] = Query(None, description="Search reason or invoice reference"),
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    return await reporting_service.get_all(db, "ledger", query, q)
