"""Reply Pipeline — coordinates the reply agents for one request.

1. Classify intent / risk (deterministic)
2. Resolve order id (request field, message, then thread)
3. Fetch order facts when the intent needs them
4. Constraint agents (risk + profit protection)
5. Assemble the reasoning bundle
6. Tiered writer (rule -> low -> high)
7. Safety filter
8. Fire-and-forget usage accounting
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Awaitable, Callable, Optional

from replymate.agents.reply.classifier import classify, extract_order_id, requires_order_data
from replymate.agents.reply.constraints import build_constraints
from replymate.agents.reply.contracts import (
    ClassificationResult,
    FactsResult,
    GenerationResult,
    SellerProfile,
    TierAttempt,
    UsageEvent,
)
from replymate.agents.reply.fact_provider import EbayFactProvider, FactProvider, db_token_lookup
from replymate.agents.reply.policy import ReplyPolicy, get_policy
from replymate.agents.reply.reasoning import assemble
from replymate.agents.reply.safety import find_violations, safety_filter
from replymate.agents.reply.writer import (
    AbandonCheck,
    ExhaustedFallbackError,
    GenerationAbandonedError,
    TieredWriter,
)
from replymate.app.config import get_settings
from replymate.domain.enums import MissingDataReason
from replymate.services.usage_service import ReplyRecord, UsageRecorder

logger = logging.getLogger(__name__)

MODIFY_ROUTE = "modify"

# Strong references so accounting tasks are not garbage-collected mid-flight
_background_tasks: set[asyncio.Task] = set()


@dataclass
class PipelineResult:
    """Result of one generate or modify run."""
    reply: str
    generation: GenerationResult
    classification: ClassificationResult | None = None
    facts_used: bool = False
    latency_ms: int = 0
    violations: list[str] = field(default_factory=list)

    @property
    def route(self) -> str:
        return self.generation.tier.value


def make_abandon_check(
    is_disconnected: Callable[[], Awaitable[bool]] | None,
    deadline_seconds: float | None,
) -> AbandonCheck:
    """Combine a request deadline and a client-disconnect probe."""
    deadline = time.monotonic() + deadline_seconds if deadline_seconds else None

    async def _check() -> bool:
        if deadline is not None and time.monotonic() >= deadline:
            return True
        if is_disconnected is not None:
            return await is_disconnected()
        return False

    return _check


async def wait_for_accounting() -> None:
    """Wait for outstanding accounting writes (shutdown, tests)."""
    if _background_tasks:
        await asyncio.gather(*list(_background_tasks), return_exceptions=True)


class ReplyPipeline:
    """Runs the reply agents in dependency order for one request at a time."""

    def __init__(
        self,
        writer: TieredWriter,
        fact_provider: FactProvider,
        recorder: UsageRecorder | None = None,
        policy: ReplyPolicy | None = None,
    ):
        self.writer = writer
        self.fact_provider = fact_provider
        self.recorder = recorder
        self.policy = policy or get_policy()

    # ------------------------------------------------------------------
    # Generate
    # ------------------------------------------------------------------

    async def generate_reply(
        self,
        account_id: str,
        profile: SellerProfile,
        message: str,
        *,
        edit_instructions: str | None = None,
        buyer_name: str | None = None,
        order_id: str | None = None,
        thread_messages: list | None = None,
        abandon_check: Optional[AbandonCheck] = None,
    ) -> PipelineResult:
        """Produce a safe reply to ``message``.

        Raises:
            ExhaustedFallbackError: every generation tier failed.
            GenerationAbandonedError: caller gone or deadline passed.
        """
        start_time = time.time()

        # == 1. Classify ==
        classification = classify(message, self.policy)

        # == 2. Order id ==
        resolved_order_id = order_id or extract_order_id(message, thread_messages)

        # == 3. Facts (conditional) ==
        facts_required = requires_order_data(classification.intent, self.policy) or bool(resolved_order_id)
        facts_result: FactsResult | None = None
        if facts_required:
            facts_result = await self._fetch_facts(account_id, resolved_order_id)
        order = facts_result.order if facts_result is not None and facts_result.ok else None

        # == 4 + 5. Constraints and reasoning ==
        constraints = build_constraints(classification.intent, classification.risk, order)
        reasoning = assemble(classification, facts_result, constraints)

        if order is not None:
            facts_state = "found"
        elif facts_result is not None and facts_result.reason is not None:
            facts_state = facts_result.reason.value
        else:
            facts_state = "not needed"
        logger.info(
            "Reply pipeline: intent=%s confidence=%d risk=%s order_id=%s facts=%s",
            classification.intent.value,
            classification.confidence,
            classification.risk.value,
            resolved_order_id or "-",
            facts_state,
        )

        # == 6. Writer ==
        try:
            generation = await self.writer.generate(
                profile,
                message,
                thread_messages,
                reasoning,
                classification,
                edit_instructions=edit_instructions,
                facts_required=facts_required,
                buyer_name=buyer_name,
                abandon_check=abandon_check,
            )
        except (ExhaustedFallbackError, GenerationAbandonedError) as exc:
            self._account_unanswered(account_id, exc.attempts)
            raise

        # == 7. Safety ==
        violations = find_violations(generation.text)
        if violations:
            logger.info("Safety filter rewrote %s tier draft: %s", generation.tier.value, ", ".join(violations))
        reply = safety_filter(generation.text)

        latency_ms = int((time.time() - start_time) * 1000)

        # == 8. Accounting ==
        self._schedule_accounting(
            UsageEvent.for_generation(account_id, generation),
            ReplyRecord(
                route=generation.tier.value,
                model=generation.model_id,
                customer_message=message,
                generated_reply=reply,
                intent=classification.intent.value,
                risk=classification.risk.value,
                modify_instructions=edit_instructions,
                facts_used=order is not None,
                latency_ms=latency_ms,
                tokens_used=generation.total_tokens,
                cost_usd=generation.total_cost_usd,
            ),
        )

        return PipelineResult(
            reply=reply,
            generation=generation,
            classification=classification,
            facts_used=order is not None,
            latency_ms=latency_ms,
            violations=violations,
        )

    # ------------------------------------------------------------------
    # Modify
    # ------------------------------------------------------------------

    async def modify_reply(
        self,
        account_id: str,
        profile: SellerProfile,
        draft: str,
        instructions: str,
        customer_message: str | None = None,
        abandon_check: Optional[AbandonCheck] = None,
    ) -> PipelineResult:
        """Rewrite an existing draft. Never uses the rule tier."""
        start_time = time.time()
        try:
            generation = await self.writer.modify(
                profile, draft, instructions, customer_message, abandon_check=abandon_check,
            )
        except (ExhaustedFallbackError, GenerationAbandonedError) as exc:
            self._account_unanswered(account_id, exc.attempts)
            raise

        violations = find_violations(generation.text)
        reply = safety_filter(generation.text)
        latency_ms = int((time.time() - start_time) * 1000)

        # A modification refines an existing reply, so replies_count stays put
        self._schedule_accounting(
            UsageEvent.for_generation(account_id, generation, count_reply=False),
            ReplyRecord(
                route=MODIFY_ROUTE,
                model=generation.model_id,
                customer_message=customer_message or "",
                generated_reply=reply,
                modify_instructions=instructions,
                latency_ms=latency_ms,
                tokens_used=generation.total_tokens,
                cost_usd=generation.total_cost_usd,
            ),
        )
        return PipelineResult(
            reply=reply,
            generation=generation,
            latency_ms=latency_ms,
            violations=violations,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fetch_facts(self, account_id: str, order_id: str | None) -> FactsResult:
        if not order_id:
            return FactsResult.missing(MissingDataReason.ORDER_ID_MISSING)
        try:
            return await self.fact_provider.fetch_facts(account_id, order_id)
        except Exception as exc:
            logger.warning("Fact provider raised for order %s: %s", order_id, exc)
            return FactsResult.missing(MissingDataReason.UPSTREAM_UNAVAILABLE)

    def _account_unanswered(self, account_id: str, attempts: list[TierAttempt]) -> None:
        """Record tokens that were billed even though no reply went out."""
        tokens = sum(a.tokens_used for a in attempts)
        cost = round(sum(a.cost_usd for a in attempts), 6)
        if not tokens and not cost:
            return
        self._schedule_accounting(
            UsageEvent(account_id=account_id, tokens_used=tokens, cost_usd=cost),
            None,
        )

    def _schedule_accounting(self, event: UsageEvent, record: ReplyRecord | None) -> None:
        if self.recorder is None:
            return
        task = asyncio.create_task(self.recorder.record(event, record))
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)


@lru_cache
def get_reply_pipeline() -> ReplyPipeline:
    """FastAPI dependency: process-wide pipeline built from settings."""
    settings = get_settings()
    return ReplyPipeline(
        writer=TieredWriter.from_settings(settings),
        fact_provider=EbayFactProvider(
            token_lookup=db_token_lookup(),
            base_url=settings.ebay_api_base,
            timeout=settings.ebay_timeout_seconds,
        ),
        recorder=UsageRecorder(),
    )
