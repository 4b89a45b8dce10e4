import uuid
from datetime import datetime

import structlog
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from callrecon.models.call_event import CallEvent
from callrecon.models.call_session import CallSession, utcnow
from callrecon.services.upsert import dialect_insert

SESSION_UPDATE_EVENT = "session_update"


def _lock_key_for_session(call_session_id: uuid.UUID) -> int:
    """Create a deterministic signed 64-bit key from UUID."""
    high = call_session_id.int >> 64
    low = call_session_id.int & ((1 << 64) - 1)
    return (high ^ low) & ((1 << 63) - 1)


class CallEventLog:
    """Append-only audit trail of accepted session-update webhooks."""

    def __init__(self, db: AsyncSession, logger: structlog.typing.FilteringBoundLogger) -> None:
        self.db = db
        self.logger = logger

    async def record_session_update(
        self,
        call_session: CallSession,
        payload: dict,
        headers: dict[str, str],
        occurred_at: datetime | None,
    ) -> CallEvent | None:
        """Append one audit row; returns None when the dedup key was already taken."""
        now = utcnow()
        stamp = int(now.timestamp()) * 1_000_000 + now.microsecond
        event_id = f"{SESSION_UPDATE_EVENT}_{call_session.token}_{stamp}"

        await self._lock_sequence(call_session.id)
        max_seq_result = await self.db.execute(
            select(func.max(CallEvent.sequence)).where(
                CallEvent.call_session_id == call_session.id
            )
        )
        next_seq = (max_seq_result.scalar_one_or_none() or 0) + 1

        stmt = (
            dialect_insert(self.db, CallEvent.__table__)
            .values(
                tenant_id=call_session.tenant_id,
                call_session_id=call_session.id,
                sequence=next_seq,
                event_type=SESSION_UPDATE_EVENT,
                event_id=event_id,
                payload=payload,
                headers=headers,
                occurred_at=occurred_at or now,
                processed_at=now,
                processing_status="completed",
            )
            .on_conflict_do_nothing(index_elements=["tenant_id", "event_id"])
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            self.logger.info(
                "call_event_duplicate_skipped",
                event_id=event_id,
                call_session_id=str(call_session.id),
            )
            return None

        event_result = await self.db.execute(
            select(CallEvent).where(
                CallEvent.tenant_id == call_session.tenant_id,
                CallEvent.event_id == event_id,
            )
        )
        return event_result.scalar_one()

    async def list_for_session(self, call_session_id: uuid.UUID) -> list[CallEvent]:
        result = await self.db.execute(
            select(CallEvent)
            .where(CallEvent.call_session_id == call_session_id)
            .order_by(CallEvent.sequence.asc())
        )
        return list(result.scalars().all())

    async def _lock_sequence(self, call_session_id: uuid.UUID) -> None:
        # Serializes sequence assignment per call session until commit.
        if self.db.get_bind().dialect.name != "postgresql":
            return
        await self.db.execute(
            text("SELECT pg_advisory_xact_lock(:lock_key)"),
            {"lock_key": _lock_key_for_session(call_session_id)},
        )
