import pytest
from sqlalchemy import func, select
from structlog.testing import capture_logs

from callrecon.config import settings
from callrecon.models import CallEvent, CallSession, CdrLog
from callrecon.services.broadcaster import broadcaster

from conftest import PROVIDER_HEADERS, TENANT_DOMAIN


def session_update(**overrides):
    payload = {
        "id": 4242,
        "domain": TENANT_DOMAIN,
        "token": "tok-4242",
        "status": "ringing",
        "callerId": "+15550001111",
        "destination": "+15550002222",
        "direction": "inbound",
        "createdAt": "2024-05-20T21:04:59Z",
        "modifiedAt": "2024-05-20T21:05:00Z",
        "callStartTime": 1716239100387,
        "vappServer": "vapp-eu-1",
    }
    payload.update(overrides)
    return payload


async def count(db_session, model):
    return (await db_session.execute(select(func.count()).select_from(model))).scalar_one()


async def load_by_token(db_session, token):
    result = await db_session.execute(
        select(CallSession)
        .where(CallSession.token == token)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


@pytest.mark.asyncio
async def test_session_update_creates_session(client, db_session, tenant):
    response = await client.post("/session/update", json=session_update(), headers=PROVIDER_HEADERS)

    assert response.status_code == 200
    assert response.text == "OK"

    call = await load_by_token(db_session, "tok-4242")
    assert call.tenant_id == tenant.id
    assert call.session_id == "4242"
    assert call.status == "ringing"
    assert call.caller_id == "+15550001111"
    assert call.vapp_server == "vapp-eu-1"
    assert call.duration_seconds is None
    assert call.call_metadata["token"] == "tok-4242"
    assert await count(db_session, CallEvent) == 1


@pytest.mark.asyncio
async def test_redelivery_keeps_one_row_with_latest_values(client, db_session, tenant):
    deliveries = [
        session_update(status="ringing"),
        session_update(status="answer", answerTime="2024-05-20T21:05:02Z"),
        session_update(status="completed", callerId="+15559999999"),
        session_update(status="completed", callerId="+15559999999"),
    ]
    for payload in deliveries:
        response = await client.post("/session/update", json=payload, headers=PROVIDER_HEADERS)
        assert response.status_code == 200

    assert await count(db_session, CallSession) == 1
    call = await load_by_token(db_session, "tok-4242")
    assert call.status == "completed"
    assert call.caller_id == "+15559999999"
    # The last delivery carried no answer time, so it clears what the earlier one set.
    assert call.answer_time is None
    assert call.duration_seconds is None
    assert await count(db_session, CallEvent) == len(deliveries)


@pytest.mark.asyncio
async def test_stale_delivery_overwrites_newer_status(client, db_session, tenant):
    await client.post(
        "/session/update",
        json=session_update(status="completed", modifiedAt="2024-05-20T21:10:00Z"),
        headers=PROVIDER_HEADERS,
    )
    await client.post(
        "/session/update",
        json=session_update(status="ringing", modifiedAt="2024-05-20T21:05:00Z"),
        headers=PROVIDER_HEADERS,
    )

    call = await load_by_token(db_session, "tok-4242")
    assert call.status == "ringing"


@pytest.mark.asyncio
async def test_duration_from_start_and_answer_time(client, db_session, tenant):
    payload = session_update(status="answered", answerTime="2024-05-20T21:05:02Z")
    response = await client.post("/session/update", json=payload, headers=PROVIDER_HEADERS)

    assert response.status_code == 200
    call = await load_by_token(db_session, "tok-4242")
    assert call.status == "answered"
    assert call.duration_seconds == 2


@pytest.mark.asyncio
async def test_answer_before_start_is_clamped_to_zero(client, db_session, tenant):
    payload = session_update(status="answered", answerTime="2024-05-20T21:04:00Z")
    await client.post("/session/update", json=payload, headers=PROVIDER_HEADERS)

    call = await load_by_token(db_session, "tok-4242")
    assert call.duration_seconds == 0


@pytest.mark.asyncio
async def test_unknown_provider_status_maps_to_ringing(client, db_session, tenant):
    await client.post(
        "/session/update", json=session_update(status="bogus-value"), headers=PROVIDER_HEADERS
    )

    call = await load_by_token(db_session, "tok-4242")
    assert call.status == "ringing"


@pytest.mark.asyncio
async def test_unknown_domain_is_rejected_without_writes(client, db_session, tenant):
    response = await client.post(
        "/session/update",
        json=session_update(domain="nobody.example.com"),
        headers=PROVIDER_HEADERS,
    )

    assert response.status_code == 404
    assert response.text == "Tenant not found"
    assert await count(db_session, CallSession) == 0
    assert await count(db_session, CallEvent) == 0
    assert await count(db_session, CdrLog) == 0


@pytest.mark.asyncio
async def test_domain_match_is_exact(client, db_session, tenant):
    response = await client.post(
        "/session/update",
        json=session_update(domain=TENANT_DOMAIN.upper()),
        headers=PROVIDER_HEADERS,
    )

    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["id", "domain", "token", "status"])
async def test_missing_required_field_is_rejected(client, db_session, tenant, missing):
    payload = session_update()
    del payload[missing]

    response = await client.post("/session/update", json=payload, headers=PROVIDER_HEADERS)

    assert response.status_code == 400
    assert response.text == "Invalid payload"
    assert await count(db_session, CallSession) == 0


@pytest.mark.asyncio
async def test_non_integer_session_id_is_rejected(client, db_session, tenant):
    response = await client.post(
        "/session/update", json=session_update(id="not-a-number"), headers=PROVIDER_HEADERS
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_unparseable_body_is_rejected(client, db_session, tenant):
    response = await client.post(
        "/session/update",
        content=b"{not json",
        headers={**PROVIDER_HEADERS, "Content-Type": "application/json"},
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_form_encoded_update_is_accepted(client, db_session, tenant):
    form = {key: str(value) for key, value in session_update().items()}
    response = await client.post("/session/update", data=form, headers=PROVIDER_HEADERS)

    assert response.status_code == 200
    call = await load_by_token(db_session, "tok-4242")
    assert call.session_id == "4242"


@pytest.mark.asyncio
async def test_persistence_failure_returns_500(client, db_session, tenant, monkeypatch):
    async def explode(*args, **kwargs):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(
        "callrecon.services.call_session_store.CallSessionStore.upsert_from_session_update",
        explode,
    )

    response = await client.post("/session/update", json=session_update(), headers=PROVIDER_HEADERS)

    assert response.status_code == 500
    assert response.text == "Internal server error"
    assert await count(db_session, CallEvent) == 0


@pytest.mark.asyncio
async def test_update_is_broadcast_to_subscribers(client, db_session, tenant):
    received = []

    async def subscriber(message):
        received.append(message)

    unsubscribe = broadcaster.subscribe(subscriber)
    try:
        await client.post(
            "/session/update", json=session_update(status="connected"), headers=PROVIDER_HEADERS
        )
        await broadcaster.drain()
    finally:
        unsubscribe()

    assert len(received) == 1
    assert received[0]["type"] == "call.updated"
    assert received[0]["token"] == "tok-4242"
    assert received[0]["status"] == "connected"
    assert received[0]["tenant_id"] == str(tenant.id)


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_fail_webhook(client, db_session, tenant):
    async def subscriber(message):
        raise RuntimeError("socket closed")

    unsubscribe = broadcaster.subscribe(subscriber)
    try:
        with capture_logs() as logs:
            response = await client.post(
                "/session/update", json=session_update(), headers=PROVIDER_HEADERS
            )
            await broadcaster.drain()
    finally:
        unsubscribe()

    assert response.status_code == 200
    assert any(entry["event"] == "call_update_subscriber_failed" for entry in logs)


@pytest.mark.asyncio
async def test_unrecognized_sender_is_logged_but_accepted(client, db_session, tenant):
    with capture_logs() as logs:
        response = await client.post(
            "/session/update", json=session_update(), headers={"User-Agent": "curl/8.0"}
        )

    assert response.status_code == 200
    warnings = [entry for entry in logs if entry["event"] == "webhook_verification_failed"]
    assert len(warnings) == 1
    assert warnings[0]["log_level"] == "warning"
    assert warnings[0]["enforced"] is False


@pytest.mark.asyncio
async def test_unrecognized_sender_is_refused_when_enforced(
    client, db_session, tenant, monkeypatch
):
    monkeypatch.setattr(settings, "webhook_enforce_verification", True)

    response = await client.post(
        "/session/update", json=session_update(), headers={"User-Agent": "curl/8.0"}
    )

    assert response.status_code == 403
    assert await count(db_session, CallSession) == 0


@pytest.mark.asyncio
async def test_trace_id_is_echoed(client, tenant):
    response = await client.post(
        "/session/update",
        json=session_update(),
        headers={"X-Cloudonix-Request-Id": "req-123"},
    )

    assert response.headers["X-Trace-Id"] == "req-123"


@pytest.mark.asyncio
async def test_back_to_back_updates_are_each_audited(client, db_session, tenant):
    for status in ("ringing", "connected", "completed"):
        response = await client.post(
            "/session/update", json=session_update(status=status), headers=PROVIDER_HEADERS
        )
        assert response.status_code == 200

    events = (
        await db_session.execute(select(CallEvent).order_by(CallEvent.sequence))
    ).scalars().all()
    assert [event.sequence for event in events] == [1, 2, 3]
    assert [event.payload["status"] for event in events] == ["ringing", "connected", "completed"]
    assert len({event.event_id for event in events}) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize("call_start_time", [10**18, -1])
async def test_out_of_range_call_start_time_is_rejected(
    client, db_session, tenant, call_start_time
):
    response = await client.post(
        "/session/update",
        json=session_update(callStartTime=call_start_time),
        headers=PROVIDER_HEADERS,
    )

    assert response.status_code == 400
    assert response.text == "Invalid payload"
    assert await count(db_session, CallSession) == 0
    assert await count(db_session, CallEvent) == 0
