import math
import uuid
from datetime import UTC, date, datetime, time, timedelta

from sqlalchemy import case, extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from callrecon.models.call_session import CallSession
from callrecon.models.cdr_log import CdrLog
from callrecon.schemas.calls import (
    ActiveCall,
    ActiveCallsMeta,
    ActiveCallsResponse,
    CallStatistics,
    CdrFilters,
    CdrLogResponse,
    CdrPage,
    PageMeta,
)
from callrecon.services.status_mapper import ACTIVE_STATUSES
from callrecon.services.timestamps import as_utc


def _minutes_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


class CallReportingService:
    """Tenant-scoped reads over call sessions and CDRs."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def list_cdrs(self, tenant_id: uuid.UUID, filters: CdrFilters) -> CdrPage:
        stmt = select(CdrLog).where(CdrLog.tenant_id == tenant_id)

        if filters.from_number:
            stmt = stmt.where(CdrLog.from_number.contains(filters.from_number, autoescape=True))
        if filters.to_number:
            stmt = stmt.where(CdrLog.to_number.contains(filters.to_number, autoescape=True))
        if filters.disposition:
            stmt = stmt.where(CdrLog.disposition == filters.disposition)
        if filters.token:
            stmt = stmt.where(CdrLog.session_token.contains(filters.token, autoescape=True))

        if filters.start_date or filters.end_date:
            first_day = filters.start_date or date(1970, 1, 1)
            last_day = filters.end_date or datetime.now(UTC).date()
            window_start = datetime.combine(first_day, time.min, tzinfo=UTC)
            window_end = datetime.combine(last_day + timedelta(days=1), time.min, tzinfo=UTC)
            stmt = stmt.where(CdrLog.start_time >= window_start, CdrLog.start_time < window_end)

        if filters.start_time or filters.end_time:
            earliest = _minutes_of_day(filters.start_time or time(0, 0))
            latest = _minutes_of_day(filters.end_time or time(23, 59))
            minute_of_day = (
                extract("hour", CdrLog.start_time) * 60 + extract("minute", CdrLog.start_time)
            )
            stmt = stmt.where(minute_of_day.between(earliest, latest))

        total = (
            await self.db.execute(select(func.count()).select_from(stmt.subquery()))
        ).scalar_one()

        sort_column = getattr(CdrLog, filters.sort_by)
        ordering = sort_column.asc() if filters.sort_order == "asc" else sort_column.desc()
        offset = (filters.page - 1) * filters.per_page
        rows = (
            await self.db.execute(
                stmt.order_by(ordering, CdrLog.id.asc()).offset(offset).limit(filters.per_page)
            )
        ).scalars().all()

        meta = PageMeta(
            current_page=filters.page,
            per_page=filters.per_page,
            total=total,
            last_page=max(1, math.ceil(total / filters.per_page)),
            first_item=offset + 1 if rows else None,
            last_item=offset + len(rows) if rows else None,
        )
        return CdrPage(
            data=[CdrLogResponse.model_validate(row) for row in rows],
            meta=meta,
            filters_applied=filters.applied(),
        )

    async def get_cdr(self, tenant_id: uuid.UUID, cdr_id: uuid.UUID) -> CdrLog | None:
        result = await self.db.execute(
            select(CdrLog).where(CdrLog.tenant_id == tenant_id, CdrLog.id == cdr_id)
        )
        return result.scalar_one_or_none()

    async def active_calls(
        self, tenant_id: uuid.UUID, now: datetime | None = None
    ) -> ActiveCallsResponse:
        now = now or datetime.now(UTC)
        result = await self.db.execute(
            select(CallSession)
            .where(
                CallSession.tenant_id == tenant_id,
                CallSession.status.in_(ACTIVE_STATUSES),
            )
            .order_by(
                CallSession.webhook_modified_at.desc().nulls_last(),
                CallSession.created_at.desc(),
            )
        )
        calls = []
        for call in result.scalars().all():
            started = call.call_start_time or call.webhook_created_at or call.created_at
            calls.append(
                ActiveCall(
                    id=call.id,
                    session_id=call.session_id,
                    token=call.token,
                    domain=call.domain,
                    caller_id=call.caller_id,
                    destination=call.destination,
                    direction=call.direction,
                    status=call.status,
                    duration_seconds=max(0, int((now - as_utc(started)).total_seconds())),
                    call_start_time=call.call_start_time,
                    created_at=call.webhook_created_at or call.created_at,
                )
            )
        return ActiveCallsResponse(
            data=calls,
            meta=ActiveCallsMeta(total=len(calls), active_count=len(calls)),
        )

    async def statistics(
        self, tenant_id: uuid.UUID, now: datetime | None = None
    ) -> CallStatistics:
        now = now or datetime.now(UTC)
        day_start = datetime.combine(now.date(), time.min, tzinfo=UTC)
        day_end = day_start + timedelta(days=1)

        active = (
            await self.db.execute(
                select(func.count()).where(
                    CallSession.tenant_id == tenant_id,
                    CallSession.status.in_(ACTIVE_STATUSES),
                )
            )
        ).scalar_one()

        today = (
            await self.db.execute(
                select(
                    func.count().label("total"),
                    func.avg(CallSession.duration_seconds).label("avg_duration"),
                    func.sum(case((CallSession.status == "completed", 1), else_=0)).label(
                        "completed"
                    ),
                    func.sum(case((CallSession.status == "failed", 1), else_=0)).label("failed"),
                ).where(
                    CallSession.tenant_id == tenant_id,
                    CallSession.webhook_created_at >= day_start,
                    CallSession.webhook_created_at < day_end,
                )
            )
        ).one()

        return CallStatistics(
            active_calls=active,
            total_today=int(today.total or 0),
            avg_duration=round(float(today.avg_duration or 0), 1),
            completed_today=int(today.completed or 0),
            failed_today=int(today.failed or 0),
        )
