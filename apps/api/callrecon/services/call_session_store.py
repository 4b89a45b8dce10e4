import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import ColumnElement, select
from sqlalchemy.ext.asyncio import AsyncSession

from callrecon.models.call_session import CallSession, utcnow
from callrecon.models.tenant import VoiceApplication
from callrecon.schemas.webhooks import InboundWebhook, SessionUpdatePayload
from callrecon.services.timestamps import as_utc, from_epoch_ms
from callrecon.services.upsert import dialect_insert


def compute_duration_seconds(
    call_start_time_ms: int | None, answer_time: datetime | None
) -> int | None:
    """Whole seconds between call start (epoch ms) and answer, clamped at zero."""
    if call_start_time_ms is None or answer_time is None:
        return None
    answered = int(as_utc(answer_time).timestamp())
    started = call_start_time_ms // 1000
    return max(0, answered - started)


def _text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


class CallSessionStore:
    """Keyed writes for call sessions.

    Session updates are keyed by provider token and always overwrite; voice
    application bootstraps are keyed by session id and never overwrite.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def upsert_from_session_update(
        self,
        tenant_id: uuid.UUID,
        update: SessionUpdatePayload,
        status: str,
        duration_seconds: int | None,
        raw_payload: dict,
    ) -> CallSession:
        answer_time = as_utc(update.answer_time) if update.answer_time else None
        values = {
            "tenant_id": tenant_id,
            "session_id": str(update.id),
            "token": update.token,
            "domain": update.domain,
            "caller_id": update.caller_id,
            "destination": update.destination,
            "direction": update.direction or "inbound",
            "status": status,
            "vapp_server": update.vapp_server,
            "call_start_time": from_epoch_ms(update.call_start_time),
            "call_answer_time": answer_time,
            "answer_time": answer_time,
            "webhook_created_at": as_utc(update.created_at) if update.created_at else None,
            "webhook_modified_at": as_utc(update.modified_at) if update.modified_at else None,
            "duration_seconds": duration_seconds,
            "call_metadata": raw_payload,
            "updated_at": utcnow(),
        }
        table = CallSession.__table__
        stmt = dialect_insert(self.db, table).values(**values)
        # No recency guard: a late, stale delivery overwrites a newer one.
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.token],
            set_={key: stmt.excluded[key] for key in values if key != "token"},
        )
        await self.db.execute(stmt)
        return await self._load(CallSession.token == update.token)

    async def create_from_application_bootstrap(
        self, application: VoiceApplication, inbound: InboundWebhook
    ) -> CallSession:
        payload = inbound.payload
        now = utcnow()
        call_sid = _text(payload.get("CallSid"))
        session_id = call_sid or f"unknown_{int(now.timestamp())}"

        values = {
            "tenant_id": application.tenant_id,
            "session_id": session_id,
            "call_id": call_sid,
            "direction": _text(payload.get("Direction")) or "inbound",
            "caller_id": _text(payload.get("From")),
            "destination": _text(payload.get("To")),
            "status": "ringing",
            "started_at": now,
            "state": {"initial_request": True},
            "call_metadata": {
                "voice_application_id": str(application.id),
                "request_data": payload,
                "headers": inbound.headers,
            },
        }
        stmt = (
            dialect_insert(self.db, CallSession.__table__)
            .values(**values)
            .on_conflict_do_nothing(index_elements=["session_id"])
        )
        await self.db.execute(stmt)
        return await self._load(CallSession.session_id == session_id)

    async def _load(self, criterion: ColumnElement[bool]) -> CallSession:
        result = await self.db.execute(
            select(CallSession).where(criterion).execution_options(populate_existing=True)
        )
        return result.scalar_one()
