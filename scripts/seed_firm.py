"""
Seed a demo law firm (org, inbound number, practice areas, qualification rules).

Usage:
    python scripts/seed_firm.py
    python scripts/seed_firm.py --phone "+15125550100" --slug "hale-injury-law"
"""
import argparse
import asyncio
import logging

from sqlalchemy import select

from caseintake.database import dispose_engine, session_scope
from caseintake.models import AiConfig, Organization, PhoneNumber, PracticeArea
from caseintake.schemas.qualification import QualificationRules
from caseintake.utils.phone import normalize_e164

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

PRACTICE_AREAS = ["Personal Injury", "Family Law", "Criminal Defense", "Employment"]

# Default rules, stored with their camelCase keys
QUALIFICATION_RULES = QualificationRules().model_dump(by_alias=True)


async def seed(name: str, slug: str, phone: str, provider: str) -> None:
    e164 = normalize_e164(phone)
    if not e164:
        raise SystemExit(f"Not a usable phone number: {phone}")

    async with session_scope() as session:
        existing = (await session.execute(
            select(Organization).where(Organization.slug == slug)
        )).scalar_one_or_none()
        if existing:
            logger.info("Firm already exists (id=%s). Skipping.", existing.id)
            return

        org = Organization(name=name, slug=slug)
        session.add(org)
        await session.flush()

        session.add(PhoneNumber(org_id=org.id, e164=e164, provider=provider, inbound_enabled=True))
        for area in PRACTICE_AREAS:
            session.add(PracticeArea(org_id=org.id, name=area))
        session.add(AiConfig(
            org_id=org.id,
            voice_greeting=f"Thank you for calling {name}. How can we help you today?",
            disclaimer_text="This call may be recorded. Speaking with us does not create an attorney-client relationship.",
            qualification_rules=QUALIFICATION_RULES,
        ))
        logger.info("Seeded firm %s (id=%s) with inbound number %s", name, org.id, e164)


async def _run(args) -> None:
    try:
        await seed(args.name, args.slug, args.phone, args.provider)
    finally:
        await dispose_engine()


def main():
    parser = argparse.ArgumentParser(description="Seed a demo law firm")
    parser.add_argument("--name", default="Hale Injury Law")
    parser.add_argument("--slug", default="hale-injury-law")
    parser.add_argument("--phone", default="+15125550100")
    parser.add_argument("--provider", default="vapi", choices=["twilio", "vapi", "openai_realtime"])
    args = parser.parse_args()
    asyncio.run(_run(args))


if __name__ == "__main__":
    main()
