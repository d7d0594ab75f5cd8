"""Seller lookup — licence key to SellerProfile plus entitlement check."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from replymate.agents.reply.contracts import SellerProfile
from replymate.agents.reply.policy import get_policy
from replymate.domain.enums import Plan, SubscriptionStatus
from replymate.domain.models import SellerAccount, ToneSample, as_utc

logger = logging.getLogger(__name__)

class LicenseError(Exception):
    """Missing or unknown licence key."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class EntitlementError(Exception):
    """The seller exists but may not generate replies right now."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


@dataclass(frozen=True)
class SellerContext:
    account_id: str
    plan: str
    profile: SellerProfile


def check_entitlement(account: SellerAccount, now: datetime | None = None) -> None:
    """Raise EntitlementError unless ``account`` may use the service."""
    now = now or datetime.now(timezone.utc)
    plan = account.plan or Plan.TRIAL.value

    if plan == Plan.OWNER.value:
        return

    trial_end = as_utc(account.trial_end)
    if plan == Plan.TRIAL.value and trial_end is not None and now > trial_end:
        raise EntitlementError(
            "trial_expired", "Your 14-day trial has ended. Please upgrade to continue.",
        )
    if plan == Plan.EXPIRED.value:
        raise EntitlementError(
            "trial_expired", "Your trial has ended. Please upgrade to continue.",
        )

    subscription_end = as_utc(account.subscription_end)
    if (
        plan != Plan.TRIAL.value
        and account.subscription_status == SubscriptionStatus.CANCELED.value
        and subscription_end is not None
        and now > subscription_end
    ):
        raise EntitlementError("subscription_ended", "Your subscription has ended.")


async def load_tone_samples(db: AsyncSession, account_id: str, limit: int | None = None) -> tuple[str, ...]:
    if limit is None:
        limit = get_policy().routing.tone_sample_limit
    result = await db.execute(
        select(ToneSample.text)
        .where(ToneSample.account_id == account_id)
        .order_by(ToneSample.created_at)
        .limit(limit)
    )
    return tuple(text for text in result.scalars().all() if text)


async def load_seller_context(db: AsyncSession, license_key: str | None) -> SellerContext:
    """Resolve a licence key into the caller's profile.

    Raises:
        LicenseError: no key, or no account for the key.
        EntitlementError: trial or subscription no longer valid.
    """
    if not license_key:
        raise LicenseError("No license key")

    result = await db.execute(
        select(SellerAccount).where(SellerAccount.license_key == license_key)
    )
    account = result.scalar_one_or_none()
    if account is None:
        raise LicenseError("Invalid license key")

    check_entitlement(account)

    profile = SellerProfile(
        display_name=account.signature_name or account.name,
        business_name=account.business_name,
        tone=account.reply_tone or "professional",
        tone_samples=await load_tone_samples(db, account.id),
    )
    return SellerContext(account_id=account.id, plan=account.plan, profile=profile)
