from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from callrecon.config import settings
from callrecon.db import engine
from callrecon.logging_config import setup_logging
from callrecon.middleware.correlation import CorrelationIdMiddleware
from callrecon.routers import calls, cdrs, health, voice
from callrecon.services.broadcaster import broadcaster

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level)
    logger.info(
        "callrecon_starting",
        environment=settings.environment,
        webhook_verifier=settings.webhook_verifier,
        enforce_verification=settings.webhook_enforce_verification,
    )
    yield
    await broadcaster.drain()
    await engine.dispose()
    logger.info("callrecon_shutting_down")


app = FastAPI(
    title="Call Reconciliation API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(voice.router, prefix=settings.webhook_path_prefix)
app.include_router(calls.router)
app.include_router(cdrs.router)
