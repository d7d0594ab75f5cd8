"""Tests for the tiered writer — rule eligibility, fallback chain, abandonment.

Backends are FakeBackend instances from conftest; no network calls.
"""

import asyncio

import httpx
import pytest

from replymate.agents.reply.contracts import (
    ClassificationResult,
    ReasoningBundle,
    SellerProfile,
)
from replymate.agents.reply.writer import (
    RULE_MODEL_ID,
    ExhaustedFallbackError,
    GenerationAbandonedError,
    TierAgent,
    TieredWriter,
)
from replymate.domain.enums import Intent, RiskTier, Tier
from replymate.infra.llm_clients import (
    AnthropicMessagesBackend,
    BackendError,
    BackendResponse,
    TextBackend,
)

PROFILE = SellerProfile(display_name="Sam @ Retro Parts", business_name="Retro Parts", tone="friendly")
REASONING = ReasoningBundle(constraints=["Never suggest off-eBay communication"])

PRAISE = ClassificationResult(intent=Intent.POSITIVE_FEEDBACK, confidence=80, risk=RiskTier.LOW, score=2)
WEAK_PRAISE = ClassificationResult(intent=Intent.POSITIVE_FEEDBACK, confidence=50, risk=RiskTier.LOW, score=1)
HAGGLE = ClassificationResult(intent=Intent.DISCOUNT_REQUEST, confidence=80, risk=RiskTier.LOW, score=2)
REFUND = ClassificationResult(intent=Intent.REFUND, confidence=80, risk=RiskTier.MEDIUM, score=2)
LEGAL = ClassificationResult(intent=Intent.LEGAL_THREAT, confidence=95, risk=RiskTier.HIGH, score=3)
OFF_PLATFORM = ClassificationResult(intent=Intent.OFF_PLATFORM, confidence=95, risk=RiskTier.HIGH, score=3)


def _abandon_after(checks_allowed: int):
    calls = {"n": 0}

    async def _check() -> bool:
        calls["n"] += 1
        return calls["n"] > checks_allowed

    return _check


class SlowBackend(TextBackend):
    provider = "slow"

    async def complete(self, system_instruction, user_message):
        await asyncio.sleep(5)
        return BackendResponse(text="too late", model_id=self.model_id)


# ---------------------------------------------------------------------------
# Rule tier
# ---------------------------------------------------------------------------

class TestRuleTier:
    async def test_confident_low_risk_uses_template(self, make_writer):
        writer, low, high = make_writer()
        result = await writer.generate(PROFILE, "Thanks, love it!", None, REASONING, PRAISE)

        assert result.tier == Tier.RULE
        assert result.model_id == RULE_MODEL_ID
        assert result.tokens_used == 0
        assert result.cost_usd == 0.0
        assert result.text.endswith("Sam @ Retro Parts")
        assert low.calls == [] and high.calls == []

    async def test_low_confidence_skips_rule(self, make_writer):
        writer, low, _ = make_writer()
        result = await writer.generate(PROFILE, "Thanks", None, REASONING, WEAK_PRAISE)
        assert result.tier == Tier.LOW
        assert len(low.calls) == 1

    async def test_edit_instructions_skip_rule(self, make_writer):
        writer, low, _ = make_writer()
        result = await writer.generate(
            PROFILE, "Thanks, love it!", None, REASONING, PRAISE, edit_instructions="mention the sale",
        )
        assert result.tier == Tier.LOW
        assert "mention the sale" in low.calls[0][1]

    async def test_facts_required_skips_rule(self, make_writer):
        writer, _, _ = make_writer()
        result = await writer.generate(PROFILE, "Thanks", None, REASONING, PRAISE, facts_required=True)
        assert result.tier == Tier.LOW

    async def test_intent_without_template_falls_to_low(self, make_writer):
        writer, low, _ = make_writer()
        result = await writer.generate(PROFILE, "Best price for bulk?", None, REASONING, HAGGLE)
        assert result.tier == Tier.LOW
        assert len(low.calls) == 1

    def test_rule_eligibility_requires_low_risk(self, make_writer):
        writer, _, _ = make_writer()
        assert writer.rule_eligible(PRAISE) is True
        assert writer.rule_eligible(REFUND) is False
        assert writer.rule_eligible(OFF_PLATFORM) is False


# ---------------------------------------------------------------------------
# Model chain
# ---------------------------------------------------------------------------

class TestModelChain:
    async def test_medium_risk_prefers_low(self, make_writer):
        writer, low, high = make_writer()
        result = await writer.generate(PROFILE, "I want a refund", None, REASONING, REFUND)

        assert result.tier == Tier.LOW
        assert result.text == "Low tier reply"
        assert result.model_id == "gpt-4o-mini"
        assert result.tokens_used == 150
        assert result.cost_usd == pytest.approx(0.000045)
        assert high.calls == []

    async def test_high_risk_never_calls_low(self, make_writer):
        writer, low, high = make_writer()
        result = await writer.generate(PROFILE, "My lawyer will call", None, REASONING, LEGAL)

        assert result.tier == Tier.HIGH
        assert result.text == "High tier reply"
        assert low.calls == []
        assert len(high.calls) == 1

    async def test_high_risk_with_template_still_uses_high(self, make_writer):
        writer, low, _ = make_writer()
        result = await writer.generate(PROFILE, "whatsapp me", None, REASONING, OFF_PLATFORM)
        assert result.tier == Tier.HIGH
        assert low.calls == []

    async def test_high_risk_failure_exhausts_without_low(self, make_writer):
        writer, low, high = make_writer(high_outcomes=[BackendError("overloaded")])
        with pytest.raises(ExhaustedFallbackError) as exc_info:
            await writer.generate(PROFILE, "court", None, REASONING, LEGAL)

        assert [a.tier for a in exc_info.value.attempts] == [Tier.HIGH]
        assert low.calls == []

    async def test_low_failure_falls_through_to_high(self, make_writer):
        writer, low, high = make_writer(low_outcomes=[BackendError("rate limited")])
        result = await writer.generate(PROFILE, "refund please", None, REASONING, REFUND)

        assert result.tier == Tier.HIGH
        assert len(low.calls) == 1
        assert len(high.calls) == 1
        assert [(a.tier, a.ok) for a in result.attempts] == [(Tier.LOW, False), (Tier.HIGH, True)]

    async def test_billed_failure_tokens_counted(self, make_writer):
        billed = BackendResponse(text="", model_id="gpt-4o-mini", input_tokens=80, output_tokens=0)
        writer, _, _ = make_writer(low_outcomes=[BackendError("empty completion", response=billed)])
        result = await writer.generate(PROFILE, "refund please", None, REASONING, REFUND)

        assert result.tier == Tier.HIGH
        assert result.tokens_used == 150
        assert result.total_tokens == 230
        assert result.total_cost_usd == pytest.approx(0.000012 + 0.00028)

    async def test_both_tiers_fail(self, make_writer):
        writer, low, high = make_writer(
            low_outcomes=[BackendError("low down")],
            high_outcomes=[BackendError("high down")],
        )
        with pytest.raises(ExhaustedFallbackError, match="low down"):
            await writer.generate(PROFILE, "refund please", None, REASONING, REFUND)
        assert len(low.calls) == 1
        assert len(high.calls) == 1

    async def test_unexpected_exception_falls_through_to_high(self, make_writer):
        writer, low, high = make_writer(low_outcomes=[RuntimeError("unexpected shape")])
        result = await writer.generate(PROFILE, "refund please", None, REASONING, REFUND)

        assert result.tier == Tier.HIGH
        assert len(high.calls) == 1
        assert result.attempts[0].ok is False
        assert "RuntimeError" in result.attempts[0].error

    async def test_malformed_low_payload_falls_through_to_high(self, fake_backend):
        low = AnthropicMessagesBackend(
            api_key="ak-test",
            model_id="claude-3-5-haiku-20241022",
            base_url="https://llm.test/v1",
            transport=httpx.MockTransport(lambda req: httpx.Response(200, json=[])),
        )
        high = fake_backend("claude-3-5-sonnet", ["Recovered"])
        writer = TieredWriter(
            low=TierAgent(Tier.LOW, low, timeout=5),
            high=TierAgent(Tier.HIGH, high, timeout=5),
        )
        result = await writer.generate(PROFILE, "refund please", None, REASONING, REFUND)

        assert result.tier == Tier.HIGH
        assert result.text == "Recovered"
        assert "unexpected payload" in result.attempts[0].error

    async def test_tier_timeout_is_failure(self, fake_backend):
        high = fake_backend("claude-3-5-haiku-20241022", ["Recovered"])
        writer = TieredWriter(
            low=TierAgent(Tier.LOW, SlowBackend("slow-model"), timeout=0.05),
            high=TierAgent(Tier.HIGH, high, timeout=5),
        )
        result = await writer.generate(PROFILE, "refund please", None, REASONING, REFUND)

        assert result.tier == Tier.HIGH
        assert result.attempts[0].ok is False
        assert "timed out" in result.attempts[0].error


# ---------------------------------------------------------------------------
# Abandonment
# ---------------------------------------------------------------------------

class TestAbandonment:
    async def test_abandoned_before_first_tier(self, make_writer):
        writer, low, high = make_writer()
        with pytest.raises(GenerationAbandonedError) as exc_info:
            await writer.generate(
                PROFILE, "refund", None, REASONING, REFUND, abandon_check=_abandon_after(0),
            )
        assert exc_info.value.attempts == []
        assert low.calls == [] and high.calls == []

    async def test_abandoned_between_tiers(self, make_writer):
        writer, low, high = make_writer(low_outcomes=[BackendError("down")])
        with pytest.raises(GenerationAbandonedError) as exc_info:
            await writer.generate(
                PROFILE, "refund", None, REASONING, REFUND, abandon_check=_abandon_after(1),
            )
        assert len(low.calls) == 1
        assert high.calls == []
        assert [a.tier for a in exc_info.value.attempts] == [Tier.LOW]

    async def test_rule_tier_ignores_abandonment(self, make_writer):
        writer, _, _ = make_writer()
        result = await writer.generate(
            PROFILE, "Thanks!", None, REASONING, PRAISE, abandon_check=_abandon_after(0),
        )
        assert result.tier == Tier.RULE


# ---------------------------------------------------------------------------
# Prompts handed to the backend
# ---------------------------------------------------------------------------

class TestPrompts:
    async def test_reasoning_and_thread_reach_backend(self, make_writer):
        writer, low, _ = make_writer()
        reasoning = ReasoningBundle(
            facts=["Order ID: 12-34567-89012"],
            questions=["Could you confirm?"],
            constraints=["Do not admit fault or liability"],
        )
        thread = [{"role": "buyer", "text": "Hello"}, {"role": "seller", "text": "Hi!"}]
        await writer.generate(PROFILE, "refund", thread, reasoning, REFUND, buyer_name="Alex")

        system, user = low.calls[0]
        assert "- Order ID: 12-34567-89012" in system
        assert "- Could you confirm?" in system
        assert "- Do not admit fault or liability" in system
        assert "CAREFUL, SENSITIVE MESSAGE (refund)" in system
        assert "BUYER: Hello\nSELLER: Hi!" in user
        assert "Buyer name: Alex" in user

    async def test_high_risk_notice(self, make_writer):
        writer, _, high = make_writer()
        await writer.generate(PROFILE, "court", None, REASONING, LEGAL)
        assert "HIGH RISK MESSAGE DETECTED (legal_threat)" in high.calls[0][0]

    async def test_tone_samples_limited(self, make_writer):
        writer, low, _ = make_writer()
        profile = SellerProfile(display_name="Sam", tone_samples=("one", "two", "three", "four"))
        await writer.generate(profile, "refund", None, REASONING, REFUND)

        system = low.calls[0][0]
        assert "Example 3:\nthree" in system
        assert "four" not in system

    async def test_missing_thread_rendered_as_not_provided(self, make_writer):
        writer, low, _ = make_writer()
        await writer.generate(PROFILE, "refund", None, REASONING, REFUND)
        assert "(not provided)" in low.calls[0][1]


# ---------------------------------------------------------------------------
# Modify
# ---------------------------------------------------------------------------

class TestModify:
    async def test_modify_uses_low_first(self, make_writer):
        writer, low, high = make_writer(low_outcomes=["Shorter reply"])
        result = await writer.modify(PROFILE, "Long draft", "make it shorter", "Where is it?")

        assert result.tier == Tier.LOW
        assert result.text == "Shorter reply"
        system, user = low.calls[0]
        assert "modify a draft reply" in system
        assert '"Long draft"' in user
        assert '"make it shorter"' in user
        assert '"Where is it?"' in user
        assert high.calls == []

    async def test_modify_never_rule_even_for_praise_draft(self, make_writer):
        writer, low, _ = make_writer()
        result = await writer.modify(PROFILE, "Thanks so much!", "add emoji")
        assert result.tier != Tier.RULE
        assert "Not provided" in low.calls[0][1]

    async def test_modify_falls_back_to_high(self, make_writer):
        writer, _, high = make_writer(low_outcomes=[BackendError("down")])
        result = await writer.modify(PROFILE, "draft", "friendlier")
        assert result.tier == Tier.HIGH
        assert len(high.calls) == 1

    async def test_modify_exhausted(self, make_writer):
        writer, _, _ = make_writer(
            low_outcomes=[BackendError("down")], high_outcomes=[BackendError("down too")],
        )
        with pytest.raises(ExhaustedFallbackError):
            await writer.modify(PROFILE, "draft", "friendlier")
