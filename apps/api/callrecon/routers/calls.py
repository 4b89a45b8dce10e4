import uuid
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from callrecon.db import get_db
from callrecon.deps import get_tenant_id
from callrecon.schemas.calls import ActiveCallsResponse, CallStatistics
from callrecon.services.reporting import CallReportingService

router = APIRouter(prefix="/calls", tags=["calls"])


@router.get("/active", response_model=ActiveCallsResponse)
async def active_calls(
    tenant_id: Annotated[uuid.UUID, Depends(get_tenant_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await CallReportingService(db).active_calls(tenant_id)


@router.get("/statistics", response_model=CallStatistics)
async def call_statistics(
    tenant_id: Annotated[uuid.UUID, Depends(get_tenant_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await CallReportingService(db).statistics(tenant_id)
