from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from callrecon.db import get_db
from callrecon.services.broadcaster import CallBroadcaster, get_broadcaster
from callrecon.services.webhook_service import WebhookService
from callrecon.services.webhook_verifier import WebhookVerifier, build_verifier

router = APIRouter(tags=["voice"])


def get_webhook_logger(request: Request) -> structlog.typing.FilteringBoundLogger:
    return structlog.get_logger().bind(
        component="webhooks",
        path=request.url.path,
        client_ip=request.client.host if request.client else None,
    )


def get_webhook_verifier() -> WebhookVerifier:
    return build_verifier()


def get_webhook_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    logger: Annotated[structlog.typing.FilteringBoundLogger, Depends(get_webhook_logger)],
    verifier: Annotated[WebhookVerifier, Depends(get_webhook_verifier)],
    broadcaster: Annotated[CallBroadcaster, Depends(get_broadcaster)],
) -> WebhookService:
    return WebhookService(db, logger, verifier, broadcaster)


@router.post("/application/{application_id}")
async def voice_application(
    application_id: str,
    request: Request,
    service: Annotated[WebhookService, Depends(get_webhook_service)],
) -> Response:
    return await service.handle_application(request, application_id)


@router.post("/session/update")
async def session_update(
    request: Request,
    service: Annotated[WebhookService, Depends(get_webhook_service)],
) -> Response:
    return await service.handle_session_update(request)


@router.post("/session/cdr")
async def session_cdr(
    request: Request,
    service: Annotated[WebhookService, Depends(get_webhook_service)],
) -> Response:
    return await service.handle_cdr(request)
