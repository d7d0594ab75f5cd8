"""Versioned reply policy: intent patterns, risk membership, routing and pricing.

The policy lives in ``policy.json`` next to this module so tuning the
pattern tables or prices is a data change. ``REPLY_POLICY_PATH`` points
the service at an alternative file.
"""

import json
import logging
import re
from functools import cached_property, lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

from replymate.app.config import get_settings
from replymate.domain.enums import Intent, RiskTier, Tier

logger = logging.getLogger(__name__)

_BUNDLED_POLICY = Path(__file__).resolve().parent / "policy.json"


class IntentRule(BaseModel):
    name: Intent
    patterns: list[str]


class RoutingPolicy(BaseModel):
    rule_min_confidence: int = 80
    tone_sample_limit: int = 3
    tone_sample_chars: int = 500
    thread_message_limit: int = 10


class TierPrice(BaseModel):
    input_per_token: float = Field(ge=0)
    output_per_token: float = Field(ge=0)


class ReplyPolicy(BaseModel):
    """Validated policy document. Treated as immutable once loaded."""

    version: str
    intents: list[IntentRule]
    risk_tiers: dict[RiskTier, list[Intent]]
    order_data_intents: list[Intent] = Field(default_factory=list)
    routing: RoutingPolicy = Field(default_factory=RoutingPolicy)
    pricing: dict[Tier, TierPrice]

    @model_validator(mode="after")
    def _check_consistency(self) -> "ReplyPolicy":
        names = [rule.name for rule in self.intents]
        if Intent.GENERAL in names:
            raise ValueError("'general' is the fallback intent and cannot carry patterns")
        if len(set(names)) != len(names):
            raise ValueError("intent table contains duplicate entries")

        seen: set[Intent] = set()
        for tier, members in self.risk_tiers.items():
            if tier == RiskTier.LOW:
                raise ValueError("low risk is implicit; list only medium and high intents")
            overlap = seen.intersection(members)
            if overlap:
                raise ValueError(f"intents in more than one risk tier: {sorted(i.value for i in overlap)}")
            seen.update(members)

        for rule in self.intents:
            for pattern in rule.patterns:
                try:
                    re.compile(pattern)
                except re.error as exc:
                    raise ValueError(f"bad pattern for {rule.name.value}: {pattern!r} ({exc})") from exc

        for tier in (Tier.LOW, Tier.HIGH):
            if tier not in self.pricing:
                raise ValueError(f"missing pricing for tier '{tier.value}'")
        return self

    def risk_for(self, intent: Intent) -> RiskTier:
        for tier in (RiskTier.HIGH, RiskTier.MEDIUM):
            if intent in self.risk_tiers.get(tier, []):
                return tier
        return RiskTier.LOW

    @cached_property
    def compiled_patterns(self) -> list[tuple[Intent, list[re.Pattern]]]:
        """Intent table in declaration order with compiled, case-insensitive tests."""
        return [
            (rule.name, [re.compile(p, re.IGNORECASE) for p in rule.patterns])
            for rule in self.intents
        ]

    def price(self, tier: Tier, input_tokens: int, output_tokens: int) -> float:
        """USD cost of one backend call, rounded to 6 decimals. Rule tier is free."""
        if tier == Tier.RULE:
            return 0.0
        rate = self.pricing[tier]
        cost = input_tokens * rate.input_per_token + output_tokens * rate.output_per_token
        return round(cost, 6)


def load_policy(path: str | Path | None = None) -> ReplyPolicy:
    """Read and validate a policy file."""
    policy_path = Path(path) if path else _BUNDLED_POLICY
    with policy_path.open(encoding="utf-8") as fh:
        raw = json.load(fh)
    policy = ReplyPolicy.model_validate(raw)
    logger.info("Loaded reply policy %s from %s", policy.version, policy_path)
    return policy


@lru_cache
def get_policy() -> ReplyPolicy:
    """Return the process-wide policy, loaded once."""
    settings = get_settings()
    return load_policy(settings.reply_policy_path or None)
