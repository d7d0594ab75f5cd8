"""Pattern Classifier — deterministic intent, confidence and risk scoring.

No LLM call. Each intent in the policy table carries an ordered list of
independent regex tests; the score is how many of them hit. The highest
score wins and ties go to the intent listed first.
"""

import re

from replymate.agents.reply.contracts import ClassificationResult
from replymate.agents.reply.policy import ReplyPolicy, get_policy
from replymate.domain.enums import Intent

ORDER_ID_PATTERN = re.compile(r"\b\d{2}-\d{5}-\d{5}\b")

MAX_CONFIDENCE = 95
BASE_CONFIDENCE = 20
CONFIDENCE_PER_MATCH = 30


def confidence_for(score: int) -> int:
    return min(score * CONFIDENCE_PER_MATCH + BASE_CONFIDENCE, MAX_CONFIDENCE)


def classify(text: str | None, policy: ReplyPolicy | None = None) -> ClassificationResult:
    """Classify a buyer message. Never raises; empty input yields ``general``."""
    policy = policy or get_policy()
    normalized = (text or "").lower()

    best_intent = Intent.GENERAL
    best_score = 0
    for intent, tests in policy.compiled_patterns:
        score = sum(1 for test in tests if test.search(normalized))
        if score > best_score:
            best_intent = intent
            best_score = score

    return ClassificationResult(
        intent=best_intent,
        confidence=confidence_for(best_score),
        risk=policy.risk_for(best_intent),
        score=best_score,
    )


def extract_order_id(text: str | None, thread_messages: list | None = None) -> str | None:
    """Return the first eBay order number in the message, else in the thread.

    ``thread_messages`` items may be dicts or objects with a ``text`` field.
    """
    match = ORDER_ID_PATTERN.search(text or "")
    if match:
        return match.group(0)

    if thread_messages:
        joined = "\n".join(_message_text(m) for m in thread_messages)
        match = ORDER_ID_PATTERN.search(joined)
        if match:
            return match.group(0)
    return None


def requires_order_data(intent: Intent, policy: ReplyPolicy | None = None) -> bool:
    policy = policy or get_policy()
    return intent in policy.order_data_intents


def _message_text(message) -> str:
    if isinstance(message, dict):
        return str(message.get("text") or "")
    return str(getattr(message, "text", "") or "")
