"""SQLAlchemy ORM models for ReplyMate.

All models use SQLite-compatible types:
- String(36) for UUID primary keys
- Numeric(10, 6) for USD amounts
- DateTime for timestamps (no TIMESTAMPTZ)
"""

import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from replymate.infra.database import Base


def _trial_end() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=14)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Seller accounts
# ---------------------------------------------------------------------------


class SellerAccount(Base):
    """A licensed seller using the reply extension."""

    __tablename__ = "seller_accounts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255))
    license_key = Column(String(64), unique=True, nullable=False, index=True)
    plan = Column(String(20), nullable=False, default="trial")
    trial_end = Column(DateTime, default=_trial_end)
    subscription_status = Column(String(20))
    subscription_end = Column(DateTime)
    business_name = Column(String(255))
    signature_name = Column(String(255))
    reply_tone = Column(String(50), default="professional")
    last_active = Column(DateTime)
    created_at = Column(DateTime, default=func.now())

    tone_samples = relationship("ToneSample", back_populates="account", cascade="all, delete-orphan")
    marketplace_accounts = relationship(
        "MarketplaceAccount", back_populates="account", cascade="all, delete-orphan",
    )


class ToneSample(Base):
    """Example reply written by the seller, used as a style reference."""

    __tablename__ = "tone_samples"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    account_id = Column(String(36), ForeignKey("seller_accounts.id", ondelete="CASCADE"), nullable=False)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime, default=func.now())

    account = relationship("SellerAccount", back_populates="tone_samples")


class MarketplaceAccount(Base):
    """Linked eBay account. Token refresh is owned by the OAuth service."""

    __tablename__ = "marketplace_accounts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    account_id = Column(String(36), ForeignKey("seller_accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    ebay_username = Column(String(255), nullable=False)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text)
    token_expires_at = Column(DateTime)
    is_primary = Column(Boolean, default=True)
    created_at = Column(DateTime, default=func.now())

    account = relationship("SellerAccount", back_populates="marketplace_accounts")


# ---------------------------------------------------------------------------
# Usage accounting
# ---------------------------------------------------------------------------


class UsageDaily(Base):
    """Per-account, per-day usage counters. Only ever incremented."""

    __tablename__ = "usage_daily"
    __table_args__ = (UniqueConstraint("account_id", "date", name="uq_usage_account_date"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    account_id = Column(String(36), ForeignKey("seller_accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    replies_count = Column(Integer, nullable=False, default=0)
    rule_count = Column(Integer, nullable=False, default=0)
    low_count = Column(Integer, nullable=False, default=0)
    high_count = Column(Integer, nullable=False, default=0)
    tokens_used = Column(Integer, nullable=False, default=0)
    cost_usd = Column(Numeric(10, 6), nullable=False, default=0)


class ReplyLog(Base):
    """One row per generated or modified reply."""

    __tablename__ = "reply_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    account_id = Column(String(36), ForeignKey("seller_accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    intent = Column(String(50))
    risk = Column(String(10))
    route = Column(String(10))
    model = Column(String(100))
    customer_message = Column(Text)
    generated_reply = Column(Text)
    modify_instructions = Column(Text)
    facts_used = Column(Boolean, default=False)
    latency_ms = Column(Integer)
    tokens_used = Column(Integer, default=0)
    cost_usd = Column(Numeric(10, 6), default=0)
    source = Column(String(20), default="extension")
    created_at = Column(DateTime, default=func.now(), index=True)
