"""Tiered writer — template, low-cost model, high-cost model.

Routing:
    risk high             -> high tier only
    otherwise             -> rule (if eligible) -> low -> high

Tiers run strictly one after another and are never retried. The high
tier is the final fallback; when it fails too the writer raises
``ExhaustedFallbackError``. Before every model call the optional
``abandon_check`` is awaited so a request whose caller has gone away
stops walking the chain. A call already in flight is allowed to finish
and its tokens are still reported.
"""

import logging
from typing import Awaitable, Callable, Optional

from replymate.agents.base import AgentResult, BaseAgent
from replymate.agents.prompts.reply import (
    build_modify_prompts,
    build_system_prompt,
    build_user_prompt,
)
from replymate.agents.reply.contracts import (
    ClassificationResult,
    GenerationResult,
    ReasoningBundle,
    SellerProfile,
    TierAttempt,
)
from replymate.agents.reply.policy import ReplyPolicy, get_policy
from replymate.agents.reply.templates import get_template
from replymate.app.config import Settings, get_settings
from replymate.domain.enums import RiskTier, Tier
from replymate.infra.llm_clients import TextBackend, build_backend

logger = logging.getLogger(__name__)

RULE_MODEL_ID = "rule-based"

AbandonCheck = Callable[[], Awaitable[bool]]


class ExhaustedFallbackError(Exception):
    """Every tier in the applicable chain failed."""

    def __init__(self, attempts: list[TierAttempt]):
        self.attempts = attempts
        tried = ", ".join(f"{a.tier.value}:{a.error}" for a in attempts) or "none"
        super().__init__(f"all generation tiers failed ({tried})")


class GenerationAbandonedError(Exception):
    """The caller went away or the deadline passed before a tier could run."""

    def __init__(self, attempts: list[TierAttempt]):
        self.attempts = attempts
        super().__init__("generation abandoned")


class TierAgent(BaseAgent):
    """One model-backed tier."""

    def __init__(self, tier: Tier, backend: TextBackend, timeout: float = 30.0):
        super().__init__(agent_name=f"writer_{tier.value}", backend=backend, timeout=timeout)
        self.tier = tier


class TieredWriter:
    """Chooses and runs the generation tiers for one request."""

    def __init__(
        self,
        low: TierAgent,
        high: TierAgent,
        policy: ReplyPolicy | None = None,
    ):
        self.low = low
        self.high = high
        self.policy = policy or get_policy()

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None, policy: ReplyPolicy | None = None,
    ) -> "TieredWriter":
        settings = settings or get_settings()
        low = build_backend(settings.low_tier_provider, settings.low_tier_model, settings.low_tier_max_tokens, settings)
        high = build_backend(settings.high_tier_provider, settings.high_tier_model, settings.high_tier_max_tokens, settings)
        timeout = settings.generation_timeout_seconds
        return cls(
            low=TierAgent(Tier.LOW, low, timeout=timeout),
            high=TierAgent(Tier.HIGH, high, timeout=timeout),
            policy=policy,
        )

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def rule_eligible(
        self,
        classification: ClassificationResult,
        edit_instructions: str | None = None,
        facts_required: bool = False,
    ) -> bool:
        return (
            classification.confidence >= self.policy.routing.rule_min_confidence
            and classification.risk == RiskTier.LOW
            and not edit_instructions
            and not facts_required
        )

    def model_chain(self, risk: RiskTier) -> list[TierAgent]:
        if risk == RiskTier.HIGH:
            return [self.high]
        return [self.low, self.high]

    # ------------------------------------------------------------------
    # Generate
    # ------------------------------------------------------------------

    async def generate(
        self,
        profile: SellerProfile,
        message: str,
        thread_excerpt: list | None,
        reasoning: ReasoningBundle,
        classification: ClassificationResult,
        *,
        edit_instructions: str | None = None,
        facts_required: bool = False,
        buyer_name: str | None = None,
        abandon_check: Optional[AbandonCheck] = None,
    ) -> GenerationResult:
        """Draft a reply. Raises ExhaustedFallbackError if no tier succeeds."""
        attempts: list[TierAttempt] = []

        if self.rule_eligible(classification, edit_instructions, facts_required):
            text = get_template(classification.intent, profile.signature)
            if text is not None:
                attempts.append(TierAttempt(tier=Tier.RULE, model_id=RULE_MODEL_ID, ok=True))
                logger.info("[writer] Rule tier served intent=%s", classification.intent.value)
                return GenerationResult(
                    text=text, tier=Tier.RULE, model_id=RULE_MODEL_ID, attempts=attempts,
                )
            logger.debug("[writer] No template for intent=%s", classification.intent.value)

        routing = self.policy.routing
        system_prompt = build_system_prompt(
            profile,
            reasoning,
            classification.intent,
            classification.risk,
            tone_sample_limit=routing.tone_sample_limit,
            tone_sample_chars=routing.tone_sample_chars,
        )
        user_prompt = build_user_prompt(
            message,
            thread_excerpt,
            buyer_name=buyer_name,
            edit_instructions=edit_instructions,
            thread_limit=routing.thread_message_limit,
        )
        return await self._run_chain(
            self.model_chain(classification.risk), system_prompt, user_prompt, attempts, abandon_check,
        )

    # ------------------------------------------------------------------
    # Modify
    # ------------------------------------------------------------------

    async def modify(
        self,
        profile: SellerProfile,
        draft: str,
        instructions: str,
        customer_message: str | None = None,
        abandon_check: Optional[AbandonCheck] = None,
    ) -> GenerationResult:
        """Rewrite ``draft`` per ``instructions``. Low then high, never rule."""
        system_prompt, user_prompt = build_modify_prompts(profile, draft, instructions, customer_message)
        return await self._run_chain(
            [self.low, self.high], system_prompt, user_prompt, [], abandon_check,
        )

    # ------------------------------------------------------------------
    # Chain execution
    # ------------------------------------------------------------------

    async def _run_chain(
        self,
        chain: list[TierAgent],
        system_prompt: str,
        user_prompt: str,
        attempts: list[TierAttempt],
        abandon_check: Optional[AbandonCheck],
    ) -> GenerationResult:
        for agent in chain:
            if abandon_check is not None and await abandon_check():
                logger.warning(
                    "[writer] Abandoning before %s tier after %d attempt(s)",
                    agent.tier.value,
                    len(attempts),
                )
                raise GenerationAbandonedError(attempts)

            result = await agent.generate(user_prompt, system_instruction=system_prompt)
            attempts.append(self._attempt(agent.tier, result))
            if result.ok:
                last = attempts[-1]
                return GenerationResult(
                    text=result.data,
                    tier=agent.tier,
                    model_id=result.model_id,
                    tokens_used=last.tokens_used,
                    cost_usd=last.cost_usd,
                    attempts=attempts,
                )
            logger.warning("[writer] %s tier failed, falling through: %s", agent.tier.value, result.error)

        raise ExhaustedFallbackError(attempts)

    def _attempt(self, tier: Tier, result: AgentResult) -> TierAttempt:
        return TierAttempt(
            tier=tier,
            model_id=result.model_id,
            ok=result.ok,
            tokens_used=result.tokens_used,
            cost_usd=self.policy.price(tier, result.input_tokens, result.output_tokens),
            error=result.error,
        )
