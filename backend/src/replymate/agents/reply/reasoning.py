"""Reasoning assembler — flattens facts, questions and constraints for the writer."""

from replymate.agents.reply.contracts import (
    ClassificationResult,
    ConstraintBundle,
    FactsResult,
    OrderFacts,
    ReasoningBundle,
)
from replymate.domain.enums import MissingDataReason

ASK_ORDER_NUMBER = (
    "Could you please confirm your eBay order number so I can check the tracking/status?"
)
ACCOUNT_NOT_LINKED = "Seller needs to connect eBay account to fetch live order/tracking data."
ORDER_LOOKUP_PENDING = (
    "Order details could not be loaded right now; tell the buyer we are checking on it "
    "and do not guess any order or tracking details."
)

_QUESTION_FOR_REASON = {
    MissingDataReason.ORDER_ID_MISSING: ASK_ORDER_NUMBER,
    MissingDataReason.ACCOUNT_NOT_LINKED: ACCOUNT_NOT_LINKED,
    MissingDataReason.UPSTREAM_UNAVAILABLE: ORDER_LOOKUP_PENDING,
}


def fact_lines(order: OrderFacts) -> list[str]:
    """Human-readable lines for populated fields only."""
    lines: list[str] = []
    if order.order_id:
        lines.append(f"Order ID: {order.order_id}")
    if order.status:
        lines.append(f"Order status: {order.status}")
    if order.payment_status:
        lines.append(f"Payment status: {order.payment_status}")

    items = [f"{item.qty}× {item.title}" for item in order.items if item.title]
    if items:
        lines.append("Items: " + "; ".join(items))

    if order.tracking:
        first = order.tracking[0]
        parts = [p for p in (first.carrier, first.tracking_number) if p]
        if parts:
            lines.append("Tracking: " + " ".join(parts))
        if first.shipped_date:
            lines.append(f"Shipped: {first.shipped_date}")
    return lines


def assemble(
    classification: ClassificationResult,
    facts_result: FactsResult | None,
    constraints: ConstraintBundle,
) -> ReasoningBundle:
    """Build the writer payload.

    ``facts_result`` is None when the intent needed no order data.
    """
    bundle = ReasoningBundle()

    if facts_result is not None:
        if facts_result.ok and facts_result.order is not None:
            bundle.facts.extend(fact_lines(facts_result.order))
        elif facts_result.reason is not None:
            bundle.questions.append(_QUESTION_FOR_REASON[facts_result.reason])

    bundle.questions.extend(constraints.questions)
    bundle.constraints.extend(constraints.constraints)
    return bundle
