"""Typed dataclasses for reply pipeline I/O contracts."""

from dataclasses import dataclass, field

from replymate.domain.enums import Intent, MissingDataReason, RiskTier, Tier


@dataclass(frozen=True)
class ClassificationResult:
    """Output of the Pattern Classifier."""
    intent: Intent = Intent.GENERAL
    confidence: int = 20
    risk: RiskTier = RiskTier.LOW
    score: int = 0


@dataclass(frozen=True)
class SellerProfile:
    """Caller-supplied seller identity and style. Never mutated by the pipeline."""
    display_name: str | None = None
    business_name: str | None = None
    tone: str = "professional"
    tone_samples: tuple[str, ...] = ()

    @property
    def signature(self) -> str:
        return self.display_name or self.business_name or "The Seller"


@dataclass(frozen=True)
class OrderItem:
    title: str
    qty: int = 1
    item_id: str | None = None


@dataclass(frozen=True)
class TrackingEntry:
    carrier: str = ""
    tracking_number: str = ""
    shipped_date: str = ""
    delivery_status: str = ""


@dataclass(frozen=True)
class OrderFacts:
    """Normalized order data as returned by a Fact Provider."""
    order_id: str
    status: str = ""
    payment_status: str = ""
    buyer_username: str = ""
    items: tuple[OrderItem, ...] = ()
    tracking: tuple[TrackingEntry, ...] = ()

    @property
    def tracking_number(self) -> str:
        """First non-empty tracking number, or empty string."""
        for entry in self.tracking:
            if entry.tracking_number:
                return entry.tracking_number
        return ""


@dataclass(frozen=True)
class FactsResult:
    """Fact Provider response: either ``order`` or a ``reason`` it is missing."""
    ok: bool
    order: OrderFacts | None = None
    reason: MissingDataReason | None = None

    @classmethod
    def found(cls, order: OrderFacts) -> "FactsResult":
        return cls(ok=True, order=order)

    @classmethod
    def missing(cls, reason: MissingDataReason) -> "FactsResult":
        return cls(ok=False, reason=reason)


@dataclass
class ConstraintBundle:
    """Directives from the constraint agents, in emission order."""
    constraints: list[str] = field(default_factory=list)
    questions: list[str] = field(default_factory=list)


@dataclass
class ReasoningBundle:
    """The only payload handed to the writer."""
    facts: list[str] = field(default_factory=list)
    questions: list[str] = field(default_factory=list)
    constraints: list[str] = field(default_factory=list)


@dataclass
class TierAttempt:
    """One backend call made while walking the tier chain."""
    tier: Tier
    model_id: str
    ok: bool
    tokens_used: int = 0
    cost_usd: float = 0.0
    error: str | None = None


@dataclass
class GenerationResult:
    """Text drafted by the writer plus its accounting."""
    text: str
    tier: Tier
    model_id: str
    tokens_used: int = 0
    cost_usd: float = 0.0
    attempts: list[TierAttempt] = field(default_factory=list)

    @property
    def total_tokens(self) -> int:
        """Tokens across every attempt, including failed calls that still billed."""
        return sum(a.tokens_used for a in self.attempts) or self.tokens_used

    @property
    def total_cost_usd(self) -> float:
        return round(sum(a.cost_usd for a in self.attempts), 6) or self.cost_usd


@dataclass
class UsageEvent:
    """Daily usage delta for one (account, date) key."""
    account_id: str
    replies_count: int = 0
    rule_count: int = 0
    low_count: int = 0
    high_count: int = 0
    tokens_used: int = 0
    cost_usd: float = 0.0

    @classmethod
    def for_generation(
        cls, account_id: str, result: GenerationResult, count_reply: bool = True,
    ) -> "UsageEvent":
        return cls(
            account_id=account_id,
            replies_count=1 if count_reply else 0,
            rule_count=1 if result.tier == Tier.RULE else 0,
            low_count=1 if result.tier == Tier.LOW else 0,
            high_count=1 if result.tier == Tier.HIGH else 0,
            tokens_used=result.total_tokens,
            cost_usd=result.total_cost_usd,
        )
