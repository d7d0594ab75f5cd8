"""Tests for usage accounting — atomic daily increments and the reply log."""

from datetime import date

import pytest
from sqlalchemy import select

from replymate.agents.reply.contracts import GenerationResult, TierAttempt, UsageEvent
from replymate.domain.enums import Tier
from replymate.domain.models import ReplyLog, SellerAccount, UsageDaily
from replymate.services.usage_service import MAX_LOGGED_TEXT, ReplyRecord, UsageRecorder

DAY = date(2025, 6, 3)


async def _usage(session_factory, account_id, day=DAY):
    async with session_factory() as session:
        result = await session.execute(
            select(UsageDaily).where(UsageDaily.account_id == account_id, UsageDaily.date == day)
        )
        return result.scalar_one_or_none()


class TestUsageEvent:
    def test_low_tier_generation(self):
        result = GenerationResult(
            text="hi",
            tier=Tier.HIGH,
            model_id="claude",
            tokens_used=150,
            cost_usd=0.00028,
            attempts=[
                TierAttempt(tier=Tier.LOW, model_id="gpt", ok=False, tokens_used=20, cost_usd=0.000003),
                TierAttempt(tier=Tier.HIGH, model_id="claude", ok=True, tokens_used=150, cost_usd=0.00028),
            ],
        )
        event = UsageEvent.for_generation("acct", result)
        assert event.replies_count == 1
        assert (event.rule_count, event.low_count, event.high_count) == (0, 0, 1)
        assert event.tokens_used == 170
        assert event.cost_usd == pytest.approx(0.000283)

    def test_modify_does_not_count_reply(self):
        result = GenerationResult(text="hi", tier=Tier.LOW, model_id="gpt", tokens_used=10)
        event = UsageEvent.for_generation("acct", result, count_reply=False)
        assert event.replies_count == 0
        assert event.low_count == 1
        assert event.tokens_used == 10


class TestUsageRecorder:
    async def test_first_event_creates_row(self, session_factory, make_seller):
        seller = await make_seller()
        recorder = UsageRecorder(session_factory)

        ok = await recorder.record(
            UsageEvent(account_id=seller.id, replies_count=1, low_count=1, tokens_used=150, cost_usd=0.000045),
            day=DAY,
        )

        assert ok is True
        usage = await _usage(session_factory, seller.id)
        assert usage.replies_count == 1
        assert usage.low_count == 1
        assert usage.tokens_used == 150
        assert float(usage.cost_usd) == pytest.approx(0.000045)

    async def test_events_accumulate(self, session_factory, make_seller):
        seller = await make_seller()
        recorder = UsageRecorder(session_factory)

        await recorder.record(UsageEvent(account_id=seller.id, replies_count=1, rule_count=1), day=DAY)
        await recorder.record(
            UsageEvent(account_id=seller.id, replies_count=1, high_count=1, tokens_used=300, cost_usd=0.001),
            day=DAY,
        )

        usage = await _usage(session_factory, seller.id)
        assert usage.replies_count == 2
        assert usage.rule_count == 1
        assert usage.high_count == 1
        assert usage.tokens_used == 300

    async def test_days_are_separate(self, session_factory, make_seller):
        seller = await make_seller()
        recorder = UsageRecorder(session_factory)

        await recorder.record(UsageEvent(account_id=seller.id, replies_count=1), day=DAY)
        await recorder.record(UsageEvent(account_id=seller.id, replies_count=1), day=date(2025, 6, 4))

        assert (await _usage(session_factory, seller.id)).replies_count == 1
        assert (await _usage(session_factory, seller.id, date(2025, 6, 4))).replies_count == 1

    async def test_reply_log_written_and_truncated(self, session_factory, make_seller):
        seller = await make_seller()
        recorder = UsageRecorder(session_factory)

        await recorder.record(
            UsageEvent(account_id=seller.id, replies_count=1, low_count=1),
            ReplyRecord(
                route="low",
                model="gpt-4o-mini",
                customer_message="x" * (MAX_LOGGED_TEXT + 50),
                generated_reply="Hello",
                intent="tracking",
                risk="low",
                facts_used=True,
            ),
            day=DAY,
        )

        async with session_factory() as session:
            log = (await session.execute(select(ReplyLog))).scalar_one()
            account = await session.get(SellerAccount, seller.id)

        assert log.route == "low"
        assert log.intent == "tracking"
        assert log.facts_used is True
        assert len(log.customer_message) == MAX_LOGGED_TEXT
        assert account.last_active is not None

    async def test_failure_is_swallowed(self):
        def _broken_factory():
            raise RuntimeError("no database")

        recorder = UsageRecorder(_broken_factory)
        ok = await recorder.record(UsageEvent(account_id="acct", replies_count=1), day=DAY)
        assert ok is False
