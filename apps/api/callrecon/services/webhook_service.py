"""
Webhook ingestion: validation, tenant resolution and persistence for the
three provider callbacks. Every failure is turned into a response here.
"""

import structlog
from fastapi import Request, Response
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from callrecon.config import settings
from callrecon.models.call_session import CallSession
from callrecon.models.cdr_log import CdrLog
from callrecon.schemas.webhooks import CdrPayload, InboundWebhook, SessionUpdatePayload
from callrecon.services.broadcaster import CallBroadcaster
from callrecon.services.call_control import CallControlService
from callrecon.services.call_event_log import CallEventLog
from callrecon.services.call_session_store import CallSessionStore, compute_duration_seconds
from callrecon.services.cdr_store import CdrStore
from callrecon.services.status_mapper import map_disposition, map_session_status
from callrecon.services.tenant_directory import TenantDirectory
from callrecon.services.timestamps import as_utc
from callrecon.services.webhook_verifier import WebhookVerifier

XML_MEDIA_TYPE = "application/xml"
_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def read_inbound_webhook(request: Request) -> InboundWebhook:
    """Capture a callback as JSON or form data; unparseable bodies become {}."""
    body = await request.body()
    content_type = request.headers.get("content-type", "").lower()
    payload: dict = {}
    is_form = content_type.startswith(_FORM_TYPES)
    if is_form:
        form = await request.form()
        payload = {key: str(value) for key, value in form.items()}
    elif body:
        try:
            parsed = await request.json()
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            payload = parsed
    return InboundWebhook(
        url=str(request.url),
        payload=payload,
        headers=dict(request.headers),
        body=body.decode("utf-8", errors="replace"),
        is_form=is_form,
    )


class WebhookService:
    def __init__(
        self,
        db: AsyncSession,
        logger: structlog.typing.FilteringBoundLogger,
        verifier: WebhookVerifier,
        broadcaster: CallBroadcaster,
        call_control: CallControlService | None = None,
        enforce_verification: bool | None = None,
    ) -> None:
        self.db = db
        self.logger = logger
        self.verifier = verifier
        self.broadcaster = broadcaster
        self.call_control = call_control or CallControlService()
        self.enforce_verification = (
            settings.webhook_enforce_verification
            if enforce_verification is None
            else enforce_verification
        )
        self.tenants = TenantDirectory(db)
        self.sessions = CallSessionStore(db)
        self.events = CallEventLog(db, logger)
        self.cdrs = CdrStore(db)

    async def handle_application(self, request: Request, application_id: str) -> Response:
        """Answer a voice application request with call-control markup.

        Internal errors never surface as 5xx: the gateway has a live call
        waiting for instructions, so it gets a hangup document instead.
        """
        try:
            inbound = await read_inbound_webhook(request)
            if not self.check_authenticity(inbound):
                return PlainTextResponse("Forbidden", status_code=403)

            application = await self.tenants.find_active_application(application_id)
            if application is None:
                self.logger.warning(
                    "voice_application_not_found",
                    application_id=application_id,
                    request_data=inbound.payload,
                    headers=inbound.headers,
                )
                return PlainTextResponse("Application not found", status_code=404)

            self.logger.info(
                "voice_application_request_received",
                application_id=application_id,
                tenant_id=str(application.tenant_id),
                request_data=inbound.payload,
            )
            call_session = await self.sessions.create_from_application_bootstrap(
                application, inbound
            )
            await self.db.commit()
            markup = self.call_control.render(application)
        except Exception:
            await self._rollback()
            self.logger.exception("voice_application_request_failed", application_id=application_id)
            return Response(content=self.call_control.hangup_document(), media_type=XML_MEDIA_TYPE)

        self.logger.info(
            "voice_application_session_ready",
            application_id=application_id,
            session_id=call_session.session_id,
            status=call_session.status,
        )
        return Response(content=markup, media_type=XML_MEDIA_TYPE)

    async def handle_session_update(self, request: Request) -> Response:
        inbound: InboundWebhook | None = None
        try:
            inbound = await read_inbound_webhook(request)
            if not self.check_authenticity(inbound):
                return PlainTextResponse("Forbidden", status_code=403)

            try:
                update = SessionUpdatePayload.model_validate(inbound.payload)
            except ValidationError as exc:
                self.logger.warning(
                    "session_update_invalid_payload",
                    errors=exc.errors(include_url=False),
                    payload=inbound.payload,
                    headers=inbound.headers,
                )
                return PlainTextResponse("Invalid payload", status_code=400)

            tenant = await self.tenants.resolve(update.domain)
            if tenant is None:
                self.logger.warning(
                    "session_update_tenant_not_found",
                    domain=update.domain,
                    session_id=update.id,
                )
                return PlainTextResponse("Tenant not found", status_code=404)

            internal_status = map_session_status(update.status)
            duration_seconds = compute_duration_seconds(update.call_start_time, update.answer_time)
            call_session = await self.sessions.upsert_from_session_update(
                tenant.id, update, internal_status, duration_seconds, inbound.payload
            )
            await self.events.record_session_update(
                call_session,
                inbound.payload,
                inbound.headers,
                as_utc(update.modified_at) if update.modified_at else None,
            )
            await self.db.commit()
        except Exception:
            await self._rollback()
            self.logger.exception(
                "session_update_failed",
                payload=inbound.payload if inbound is not None else None,
            )
            return PlainTextResponse("Internal server error", status_code=500)

        self._broadcast(call_session)
        self.logger.info(
            "session_update_processed",
            session_id=update.id,
            token=update.token,
            domain=update.domain,
            status=update.status,
            internal_status=internal_status,
            tenant_id=str(tenant.id),
            duration_seconds=duration_seconds,
        )
        return PlainTextResponse("OK")

    async def handle_cdr(self, request: Request) -> Response:
        inbound: InboundWebhook | None = None
        try:
            inbound = await read_inbound_webhook(request)
            if not self.check_authenticity(inbound):
                return PlainTextResponse("Forbidden", status_code=403)

            try:
                cdr = CdrPayload.model_validate(inbound.payload)
            except ValidationError as exc:
                self.logger.warning(
                    "cdr_invalid_payload",
                    errors=exc.errors(include_url=False),
                    payload=inbound.payload,
                    headers=inbound.headers,
                )
                return PlainTextResponse("Invalid payload", status_code=400)

            tenant = await self.tenants.resolve(cdr.domain)
            if tenant is None:
                self.logger.warning(
                    "cdr_tenant_not_found",
                    domain=cdr.domain,
                    call_id=cdr.call_id,
                )
                return PlainTextResponse("Tenant not found", status_code=404)

            cdr_log = await self.cdrs.upsert_cdr(tenant.id, cdr, inbound.payload)
            await self.db.commit()
        except Exception:
            await self._rollback()
            self.logger.exception(
                "cdr_webhook_failed",
                payload=inbound.payload if inbound is not None else None,
            )
            return PlainTextResponse("Internal server error", status_code=500)

        self._log_cdr(cdr, cdr_log)
        return PlainTextResponse("OK")

    def check_authenticity(self, inbound: InboundWebhook) -> bool:
        """Advisory provider check; only blocks when enforcement is switched on."""
        result = self.verifier.verify(inbound)
        if result.ok:
            return True
        self.logger.warning(
            "webhook_verification_failed",
            reason=result.reason,
            enforced=self.enforce_verification,
            user_agent=inbound.headers.get("user-agent"),
            headers=inbound.headers,
        )
        return not self.enforce_verification

    def _broadcast(self, call_session: CallSession) -> None:
        try:
            self.broadcaster.publish(call_session, self.logger)
        except Exception as exc:
            self.logger.error(
                "call_update_broadcast_failed",
                token=call_session.token,
                error=str(exc),
            )

    def _log_cdr(self, cdr: CdrPayload, cdr_log: CdrLog) -> None:
        self.logger.info(
            "cdr_webhook_processed",
            call_id=cdr.call_id,
            disposition=cdr.disposition,
            mapped_disposition=map_disposition(cdr.disposition),
            domain=cdr.domain,
            tenant_id=str(cdr_log.tenant_id),
            duration=cdr.duration,
            cdr_log_id=str(cdr_log.id),
        )

    async def _rollback(self) -> None:
        try:
            await self.db.rollback()
        except Exception as exc:
            self.logger.error("webhook_rollback_failed", error=str(exc))
