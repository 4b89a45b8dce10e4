import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from callrecon.models.call_session import utcnow
from callrecon.models.cdr_log import CdrLog
from callrecon.schemas.webhooks import CdrPayload, CdrSessionInfo
from callrecon.services.status_mapper import map_disposition
from callrecon.services.timestamps import from_epoch_ms
from callrecon.services.upsert import dialect_insert

# The CDR feed carries no reliable direction marker yet, so every record is
# stored as inbound until direction detection exists.
CDR_DIRECTION = "inbound"


class CdrStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def upsert_cdr(
        self, tenant_id: uuid.UUID, cdr: CdrPayload, raw_payload: dict
    ) -> CdrLog:
        session = cdr.session or CdrSessionInfo()
        values = {
            "tenant_id": tenant_id,
            "call_id": cdr.call_id,
            "session_token": session.token,
            "from_number": cdr.from_number,
            "to_number": cdr.to_number,
            "direction": CDR_DIRECTION,
            "disposition": map_disposition(cdr.disposition),
            "start_time": from_epoch_ms(session.call_start_time),
            "answer_time": from_epoch_ms(session.call_answer_time),
            "end_time": from_epoch_ms(session.call_end_time),
            "duration_seconds": cdr.duration,
            "billsec": cdr.billsec,
            "domain": cdr.domain,
            "subscriber": cdr.subscriber,
            "cx_trunk_id": cdr.cx_trunk_id,
            "application": cdr.application,
            "route": cdr.route,
            "vapp_server": cdr.vapp_server or session.vapp_server,
            "raw_cdr": raw_payload,
            "updated_at": utcnow(),
        }
        table = CdrLog.__table__
        stmt = dialect_insert(self.db, table).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.tenant_id, table.c.call_id],
            set_={
                key: stmt.excluded[key]
                for key in values
                if key not in ("tenant_id", "call_id")
            },
        )
        await self.db.execute(stmt)

        result = await self.db.execute(
            select(CdrLog)
            .where(CdrLog.tenant_id == tenant_id, CdrLog.call_id == cdr.call_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()
