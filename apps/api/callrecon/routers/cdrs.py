import uuid
from datetime import date, time
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from callrecon.config import settings
from callrecon.db import get_db
from callrecon.deps import get_tenant_id
from callrecon.schemas.calls import CdrDetail, CdrFilters, CdrLogResponse, CdrPage, CdrSortField
from callrecon.services.reporting import CallReportingService
from callrecon.services.status_mapper import Disposition

router = APIRouter(prefix="/cdrs", tags=["cdrs"])


@router.get("", response_model=CdrPage)
async def list_cdrs(
    tenant_id: Annotated[uuid.UUID, Depends(get_tenant_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
    from_number: Annotated[str | None, Query(alias="from", max_length=255)] = None,
    to_number: Annotated[str | None, Query(alias="to", max_length=255)] = None,
    disposition: Disposition | None = None,
    token: Annotated[str | None, Query(max_length=255)] = None,
    start_date: date | None = None,
    end_date: date | None = None,
    start_time: time | None = None,
    end_time: time | None = None,
    sort_by: CdrSortField = "start_time",
    sort_order: Literal["asc", "desc"] = "desc",
    page: Annotated[int, Query(ge=1)] = 1,
    per_page: Annotated[int, Query(ge=1, le=settings.cdr_max_page_size)] = settings.cdr_default_page_size,
):
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=422, detail="start_date must be on or before end_date")

    filters = CdrFilters(
        from_number=from_number,
        to_number=to_number,
        disposition=disposition,
        token=token,
        start_date=start_date,
        end_date=end_date,
        start_time=start_time,
        end_time=end_time,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        per_page=per_page,
    )
    return await CallReportingService(db).list_cdrs(tenant_id, filters)


@router.get("/{cdr_id}", response_model=CdrDetail)
async def get_cdr(
    cdr_id: uuid.UUID,
    tenant_id: Annotated[uuid.UUID, Depends(get_tenant_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    cdr = await CallReportingService(db).get_cdr(tenant_id, cdr_id)
    if not cdr:
        raise HTTPException(status_code=404, detail="CDR not found")
    return CdrDetail(data=CdrLogResponse.model_validate(cdr))
