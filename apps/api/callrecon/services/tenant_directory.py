from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from callrecon.models.tenant import Tenant, VoiceApplication


class TenantDirectory:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def resolve(self, domain: str) -> Tenant | None:
        # Exact match on purpose: no case folding or trimming of the domain.
        result = await self.db.execute(select(Tenant).where(Tenant.domain == domain))
        return result.scalar_one_or_none()

    async def find_active_application(self, provider_app_id: str) -> VoiceApplication | None:
        result = await self.db.execute(
            select(VoiceApplication)
            .where(
                VoiceApplication.provider_app_id == provider_app_id,
                VoiceApplication.is_active.is_(True),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()
