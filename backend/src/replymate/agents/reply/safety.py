"""Safety filter — deterministic rewrite of drafted replies.

Runs on every reply regardless of which tier produced it. Each rule
replaces risky phrasing with a neutral alternative; the replacements
themselves never trigger a rule, so applying the filter twice is a no-op.
"""

import re

OFF_PLATFORM_REPLACEMENT = "eBay messages"
APOLOGY_REPLACEMENT = "I'm sorry for the inconvenience"
BEST_EFFORT_REPLACEMENT = "will do our best to"

SAFETY_RULES: list[tuple[str, re.Pattern, str]] = [
    (
        "off_platform",
        re.compile(r"whatsapp|telegram|paypal|email me|call me|text me", re.IGNORECASE),
        OFF_PLATFORM_REPLACEMENT,
    ),
    (
        "fault_admission",
        re.compile(r"\b(it['’]?s our fault|we messed up|our mistake)\b", re.IGNORECASE),
        APOLOGY_REPLACEMENT,
    ),
    (
        "absolute_guarantee",
        re.compile(r"\b(guarantee[ds]?|definitely|100% sure)\b", re.IGNORECASE),
        BEST_EFFORT_REPLACEMENT,
    ),
]


def safety_filter(text: str | None) -> str:
    """Return ``text`` trimmed with every safety rule applied."""
    cleaned = (text or "").strip()
    for _name, pattern, replacement in SAFETY_RULES:
        cleaned = pattern.sub(replacement, cleaned)
    return cleaned


def find_violations(text: str | None) -> list[str]:
    """Names of the rules ``text`` would trigger, in rule order."""
    return [name for name, pattern, _ in SAFETY_RULES if pattern.search(text or "")]
