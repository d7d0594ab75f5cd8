"""Seed script: create a local seller account and print its licence key.

Usage:
    cd backend
    python scripts/seed_seller.py seller@example.com "Sam @ Retro Parts" [plan]

Re-running with the same email prints the existing key.
"""

import asyncio
import logging
import os
import sys
import uuid

# Ensure backend/src is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

logging.basicConfig(level=logging.INFO, format="%(levelname)s  %(message)s")
logger = logging.getLogger(__name__)

SAMPLE_TONE = (
    "Hi! Thanks so much for your order. It went out this morning and you should "
    "have it in a few days. Any questions, just message me here. Cheers, {name}"
)


async def seed(email: str, signature: str, plan: str) -> None:
    from sqlalchemy import select
    from replymate.domain.enums import Plan
    from replymate.domain.models import SellerAccount, ToneSample
    from replymate.infra.database import async_session, init_db

    if plan not in {p.value for p in Plan}:
        logger.error("Unknown plan '%s' (choose from %s).", plan, ", ".join(p.value for p in Plan))
        return

    await init_db()

    async with async_session() as session:
        result = await session.execute(select(SellerAccount).where(SellerAccount.email == email))
        account = result.scalar_one_or_none()
        if account is not None:
            logger.info("Seller %s already exists (plan=%s).", email, account.plan)
            print(account.license_key)
            return

        account = SellerAccount(
            id=str(uuid.uuid4()),
            email=email,
            name=signature,
            license_key=uuid.uuid4().hex,
            plan=plan,
            signature_name=signature,
            reply_tone="friendly",
        )
        session.add(account)
        session.add(ToneSample(account_id=account.id, text=SAMPLE_TONE.format(name=signature)))
        await session.commit()

        logger.info("Created seller %s on plan %s.", email, plan)
        print(account.license_key)


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print(__doc__)
        sys.exit(1)
    asyncio.run(seed(sys.argv[1], sys.argv[2], sys.argv[3] if len(sys.argv) > 3 else "trial"))
