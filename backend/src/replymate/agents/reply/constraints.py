"""Constraint agents — hard rules and profit-protection guidance.

Both agents are pure functions of (intent, risk, facts). They read order
facts but never fetch or change them.
"""

import re

from replymate.agents.reply.contracts import ConstraintBundle, OrderFacts
from replymate.domain.enums import Intent, RiskTier

SHIPPED_STATUS = re.compile(r"SHIPPED|FULFILLED", re.IGNORECASE)

BASELINE_CONSTRAINTS = (
    "Never suggest off-eBay communication",
    "Never invent tracking/order details",
    "Do not admit fault or liability",
)


def risk_agent(intent: Intent, risk: RiskTier, facts: OrderFacts | None = None) -> list[str]:
    constraints = list(BASELINE_CONSTRAINTS)

    if risk == RiskTier.HIGH:
        constraints.append("Stay calm and factual; do not escalate")
        constraints.append("If needed, suggest the eBay Resolution Center")

    if intent == Intent.FRAUD_CLAIM:
        constraints.append("Avoid accusing the buyer; offer a resolution path")

    return constraints


def profit_protection_agent(intent: Intent, risk: RiskTier, facts: OrderFacts | None = None) -> list[str]:
    guidance: list[str] = []

    if intent == Intent.TRACKING:
        if facts is not None and facts.tracking_number:
            guidance.append("Confirm shipment and provide carrier + tracking if present")
            guidance.append("Set expectations on delivery window")
        else:
            guidance.append("State we are checking shipment status; avoid promising dates")

    elif intent in (Intent.REFUND, Intent.RETURN):
        guidance.append("Do not promise refund until return process is followed")
        guidance.append("Refer to return policy / official eBay return flow")

    elif intent == Intent.CANCELLATION:
        status = facts.status if facts is not None else ""
        if SHIPPED_STATUS.search(status or ""):
            guidance.append("Explain order may already be dispatched; offer return options")
        else:
            guidance.append("If not shipped, confirm cancellation steps")

    return guidance


def build_constraints(intent: Intent, risk: RiskTier, facts: OrderFacts | None = None) -> ConstraintBundle:
    """Run both agents. Risk output first, then profit guidance, no de-duplication."""
    return ConstraintBundle(
        constraints=risk_agent(intent, risk, facts) + profit_protection_agent(intent, risk, facts),
    )
