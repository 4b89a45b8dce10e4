import argparse
import asyncio

from sqlalchemy import select

from callrecon.db import async_session
from callrecon.models.tenant import Tenant, VoiceApplication

SAMPLE_CXML = """<?xml version="1.0" encoding="UTF-8"?>
<Response>
  <Say voice="woman">Thank you for calling. Please hold while we connect you.</Say>
  <Dial timeout="30">
    <Number>+15550100200</Number>
  </Dial>
  <Hangup/>
</Response>"""


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed a tenant and its voice application.")
    parser.add_argument("--name", default="Demo Tenant", help="Tenant display name")
    parser.add_argument("--slug", default="demo", help="Tenant slug")
    parser.add_argument(
        "--domain",
        default="demo.cloudonix.net",
        help="Provider domain sent in webhook payloads",
    )
    parser.add_argument(
        "--provider-app-id",
        default="demo-app",
        help="Application id the provider puts in /application/{id}",
    )
    return parser.parse_args()


async def seed_tenant(name: str, slug: str, domain: str, provider_app_id: str) -> None:
    async with async_session() as db:
        tenant = (
            await db.execute(select(Tenant).where(Tenant.domain == domain))
        ).scalar_one_or_none()
        if tenant is None:
            tenant = Tenant(name=name, slug=slug, domain=domain)
            db.add(tenant)
            await db.flush()
            print(f"Created tenant {tenant.id} for domain {domain}")
        else:
            print(f"Tenant {tenant.id} already owns domain {domain}")

        application = (
            await db.execute(
                select(VoiceApplication).where(
                    VoiceApplication.tenant_id == tenant.id,
                    VoiceApplication.provider_app_id == provider_app_id,
                )
            )
        ).scalar_one_or_none()
        if application is None:
            db.add(
                VoiceApplication(
                    tenant_id=tenant.id,
                    name=f"{name} main line",
                    cxml_definition=SAMPLE_CXML,
                    provider_app_id=provider_app_id,
                    is_active=True,
                )
            )
            print(f"Created voice application {provider_app_id}")

        await db.commit()
        print(f"Use X-Tenant-Id: {tenant.id} for the read endpoints")


def main() -> None:
    args = parse_args()
    asyncio.run(seed_tenant(args.name, args.slug, args.domain, args.provider_app_id))


if __name__ == "__main__":
    main()
