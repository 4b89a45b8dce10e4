from datetime import UTC, datetime, timedelta, timezone

import pytest
import structlog
from sqlalchemy import select

from callrecon.models import CallEvent, CallSession
from callrecon.schemas.webhooks import SessionUpdatePayload
from callrecon.services import call_event_log
from callrecon.services.call_event_log import CallEventLog
from callrecon.services.call_session_store import CallSessionStore, compute_duration_seconds

from conftest import TENANT_DOMAIN


def test_duration_uses_whole_seconds():
    answered = datetime.fromtimestamp(1716239102, tz=UTC)
    assert compute_duration_seconds(1716239100387, answered) == 2


def test_duration_is_clamped_at_zero():
    answered = datetime.fromtimestamp(1716239000, tz=UTC)
    assert compute_duration_seconds(1716239100387, answered) == 0


def test_duration_requires_both_inputs():
    assert compute_duration_seconds(None, datetime.now(UTC)) is None
    assert compute_duration_seconds(1716239100387, None) is None


def test_duration_reads_naive_answer_time_as_utc():
    assert compute_duration_seconds(1716239100387, datetime(2024, 5, 20, 21, 5, 2)) == 2


def test_duration_honours_answer_time_offset():
    answered = datetime(2024, 5, 20, 23, 5, 2, tzinfo=timezone(timedelta(hours=2)))
    assert compute_duration_seconds(1716239100387, answered) == 2


def make_update(**overrides):
    fields = {"id": 1, "domain": TENANT_DOMAIN, "token": "tok-1", "status": "ringing"}
    fields.update(overrides)
    return SessionUpdatePayload.model_validate(fields)


@pytest.mark.asyncio
async def test_upsert_by_token_overwrites(db_session, tenant):
    store = CallSessionStore(db_session)

    first = await store.upsert_from_session_update(
        tenant.id, make_update(callerId="+1555"), "ringing", None, {"n": 1}
    )
    second = await store.upsert_from_session_update(
        tenant.id, make_update(status="completed"), "completed", 30, {"n": 2}
    )
    await db_session.commit()

    assert first.id == second.id
    assert second.status == "completed"
    assert second.duration_seconds == 30
    assert second.caller_id is None
    assert second.call_metadata == {"n": 2}
    assert second.direction == "inbound"


@pytest.mark.asyncio
async def test_audit_sequence_increments_per_session(db_session, tenant, monkeypatch):
    times = iter(
        [
            datetime(2024, 5, 20, 21, 5, 0, tzinfo=UTC),
            datetime(2024, 5, 20, 21, 5, 1, tzinfo=UTC),
            datetime(2024, 5, 20, 21, 5, 2, tzinfo=UTC),
        ]
    )
    monkeypatch.setattr(call_event_log, "utcnow", lambda: next(times))

    call = await CallSessionStore(db_session).upsert_from_session_update(
        tenant.id, make_update(), "ringing", None, {}
    )
    events = CallEventLog(db_session, structlog.get_logger())
    for status in ("ringing", "connected", "completed"):
        await events.record_session_update(call, {"status": status}, {}, None)
    await db_session.commit()

    recorded = await events.list_for_session(call.id)
    assert [event.sequence for event in recorded] == [1, 2, 3]
    assert [event.payload["status"] for event in recorded] == ["ringing", "connected", "completed"]
    assert recorded[0].event_id == "session_update_tok-1_1716239100000000"
    assert all(event.processing_status == "completed" for event in recorded)
    assert all(event.event_type == "session_update" for event in recorded)


@pytest.mark.asyncio
async def test_audit_duplicate_key_is_skipped(db_session, tenant, monkeypatch):
    frozen = datetime(2024, 5, 20, 21, 5, 0, tzinfo=UTC)
    monkeypatch.setattr(call_event_log, "utcnow", lambda: frozen)

    call = await CallSessionStore(db_session).upsert_from_session_update(
        tenant.id, make_update(), "ringing", None, {}
    )
    events = CallEventLog(db_session, structlog.get_logger())

    first = await events.record_session_update(call, {}, {}, None)
    second = await events.record_session_update(call, {}, {}, None)
    await db_session.commit()

    assert first is not None
    assert second is None
    rows = (await db_session.execute(select(CallEvent))).scalars().all()
    assert len(rows) == 1
    assert rows[0].occurred_at is not None


@pytest.mark.asyncio
async def test_sessions_are_scoped_to_their_tenant(db_session, tenant, other_tenant):
    store = CallSessionStore(db_session)
    await store.upsert_from_session_update(tenant.id, make_update(token="a"), "ringing", None, {})
    await store.upsert_from_session_update(
        other_tenant.id, make_update(id=2, token="b"), "ringing", None, {}
    )
    await db_session.commit()

    owned = (
        await db_session.execute(select(CallSession).where(CallSession.tenant_id == tenant.id))
    ).scalars().all()
    assert [call.token for call in owned] == ["a"]


@pytest.mark.asyncio
async def test_audit_keeps_updates_within_the_same_second(db_session, tenant, monkeypatch):
    times = iter(
        [
            datetime(2024, 5, 20, 21, 5, 0, 120000, tzinfo=UTC),
            datetime(2024, 5, 20, 21, 5, 0, 480000, tzinfo=UTC),
        ]
    )
    monkeypatch.setattr(call_event_log, "utcnow", lambda: next(times))

    call = await CallSessionStore(db_session).upsert_from_session_update(
        tenant.id, make_update(), "ringing", None, {}
    )
    events = CallEventLog(db_session, structlog.get_logger())
    ringing = await events.record_session_update(call, {"status": "ringing"}, {}, None)
    connected = await events.record_session_update(call, {"status": "connected"}, {}, None)
    await db_session.commit()

    assert ringing is not None
    assert connected is not None
    assert ringing.event_id == "session_update_tok-1_1716239100120000"
    assert connected.event_id == "session_update_tok-1_1716239100480000"
    assert [event.sequence for event in await events.list_for_session(call.id)] == [1, 2]
