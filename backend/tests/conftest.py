"""Shared test infrastructure for the ReplyMate test suite.

Provides:
- session_factory / db_session: async SQLite in-memory database with all tables
- make_seller: factory for SellerAccount rows (plus tone samples)
- fake_backend: scripted TextBackend that records every call
- make_writer: TieredWriter wired to fake backends
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Import Base first, then models to register all tables
from replymate.infra.database import Base

import replymate.domain.models  # noqa: F401

from replymate.agents.reply.writer import TierAgent, TieredWriter
from replymate.domain.enums import Tier
from replymate.domain.models import SellerAccount, ToneSample
from replymate.infra.llm_clients import BackendResponse, TextBackend


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
async def session_factory():
    """Session factory over a fresh in-memory SQLite database.

    StaticPool keeps one connection so every session sees the same data.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def db_session(session_factory):
    """Async session on the shared in-memory database."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------------------------
# Seller factory
# ---------------------------------------------------------------------------

@pytest.fixture
def make_seller(db_session):
    """Factory that creates a committed SellerAccount.

    Usage:
        seller = await make_seller(license_key="key-1", plan="pro")
    """
    async def _factory(
        license_key: str | None = None,
        plan: str = "pro",
        name: str = "Sam",
        signature_name: str | None = "Sam @ Retro Parts",
        business_name: str | None = "Retro Parts",
        trial_end: datetime | None = None,
        subscription_status: str | None = "active",
        subscription_end: datetime | None = None,
        tone_samples: list[str] | None = None,
    ) -> SellerAccount:
        account = SellerAccount(
            id=str(uuid.uuid4()),
            email=f"{uuid.uuid4().hex[:8]}@example.com",
            name=name,
            license_key=license_key or uuid.uuid4().hex,
            plan=plan,
            trial_end=trial_end or datetime.now(timezone.utc) + timedelta(days=7),
            subscription_status=subscription_status,
            subscription_end=subscription_end,
            business_name=business_name,
            signature_name=signature_name,
            reply_tone="friendly",
        )
        db_session.add(account)
        for text in tone_samples or []:
            db_session.add(ToneSample(account_id=account.id, text=text))
        await db_session.commit()
        return account

    return _factory


# ---------------------------------------------------------------------------
# Fake generation backends
# ---------------------------------------------------------------------------

class FakeBackend(TextBackend):
    """TextBackend returning scripted outcomes.

    Each outcome is a reply string, a BackendResponse, or an Exception
    instance to raise. The last outcome repeats once the script runs out.
    """

    provider = "fake"

    def __init__(self, model_id: str, outcomes: list):
        super().__init__(model_id=model_id)
        self.outcomes = list(outcomes)
        self.calls: list[tuple[str, str]] = []

    async def complete(self, system_instruction: str, user_message: str) -> BackendResponse:
        self.calls.append((system_instruction, user_message))
        index = min(len(self.calls) - 1, len(self.outcomes) - 1)
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, BackendResponse):
            return outcome
        return BackendResponse(text=outcome, model_id=self.model_id, input_tokens=100, output_tokens=50)


@pytest.fixture
def fake_backend():
    """Factory for FakeBackend.

    Usage:
        low = fake_backend("gpt-4o-mini", ["Hi there"])
        high = fake_backend("claude", [BackendError("down")])
    """
    def _factory(model_id: str, outcomes: list | None = None) -> FakeBackend:
        return FakeBackend(model_id, outcomes if outcomes is not None else ["Generated reply"])

    return _factory


@pytest.fixture
def make_writer(fake_backend):
    """Factory returning (writer, low_backend, high_backend)."""
    def _factory(low_outcomes: list | None = None, high_outcomes: list | None = None):
        low = fake_backend("gpt-4o-mini", low_outcomes if low_outcomes is not None else ["Low tier reply"])
        high = fake_backend(
            "claude-3-5-haiku-20241022",
            high_outcomes if high_outcomes is not None else ["High tier reply"],
        )
        writer = TieredWriter(
            low=TierAgent(Tier.LOW, low, timeout=5),
            high=TierAgent(Tier.HIGH, high, timeout=5),
        )
        return writer, low, high

    return _factory

