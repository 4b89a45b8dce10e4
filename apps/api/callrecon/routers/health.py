from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from callrecon.db import get_db
from callrecon.services.broadcaster import CallBroadcaster, get_broadcaster

router = APIRouter()


@router.get("/health")
async def health(
    db: Annotated[AsyncSession, Depends(get_db)],
    broadcaster: Annotated[CallBroadcaster, Depends(get_broadcaster)],
):
    try:
        await db.execute(text("SELECT 1"))
        db_state = {"status": "ok", "db": "connected"}
    except Exception:
        db_state = {"status": "degraded", "db": "disconnected"}
    return {**db_state, "subscribers": broadcaster.subscriber_count}
