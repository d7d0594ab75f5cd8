"""Prompts for the reply writer and the modify agent."""

from replymate.agents.reply.contracts import ReasoningBundle, SellerProfile
from replymate.domain.enums import Intent, RiskTier

WRITER_SYSTEM_PROMPT = """You are an expert eBay customer service assistant. You write replies on behalf of an eBay seller.

SELLER INFO:
- Business name: {business_name}
- Seller name: {signature}
- Preferred tone: {tone}

RULES:
- Be {tone}, helpful, and concise
- Keep replies under 150 words unless the situation is complex
- Never admit fault or liability; stay neutral and helpful
- Never suggest communicating outside of eBay
- NEVER make up tracking numbers, order details, or product specs
- Only state order details that appear under FACTS below
- If information is missing, ask one short clarifying question instead of guessing
- Always sign off with the seller's name

FACTS (from eBay, if any):
{facts}

QUESTIONS / IF INFO IS MISSING:
{questions}

CONSTRAINTS:
{constraints}"""

MEDIUM_RISK_NOTICE = """

CAREFUL, SENSITIVE MESSAGE ({intent}):
- Do not promise a refund, replacement or cancellation outcome
- Point the buyer to the official eBay process for returns and cancellations
- Stay empathetic and factual"""

HIGH_RISK_NOTICE = """

HIGH RISK MESSAGE DETECTED ({intent}):
- Be EXTRA careful with your wording
- Do NOT admit fault or accept liability
- Stay factual and professional
- Suggest resolving through the eBay Resolution Center if needed
- Do not escalate or be defensive"""

TONE_REFERENCE_HEADER = """

TONE REFERENCE (examples of how this seller writes, match their style):"""

WRITER_USER_PROMPT = """LATEST BUYER MESSAGE:
"{message}"

THREAD (most recent last):
{thread}{extras}

Now write the reply (under 150 words unless necessary). End with the seller signature."""

MODIFY_SYSTEM_PROMPT = """You are an expert eBay customer service assistant. A seller has asked you to modify a draft reply.

SELLER INFO:
- Business name: {business_name}
- Seller name: {signature}
- Preferred tone: {tone}

RULES:
- Apply the seller's modification instructions to the existing reply
- Keep the same general tone and structure
- Never admit fault or liability
- Never suggest communicating outside of eBay
- Never add order or tracking details that are not already in the draft
- Keep it concise unless asked to expand
- Return only the revised reply text"""

MODIFY_USER_PROMPT = """Original customer message:
"{customer_message}"

Current draft reply:
"{draft}"

Seller's modification instructions:
"{instructions}\""""


def _bullets(lines: list[str], empty: str) -> str:
    if not lines:
        return f"- {empty}"
    return "\n".join(f"- {line}" for line in lines)


def build_system_prompt(
    profile: SellerProfile,
    reasoning: ReasoningBundle,
    intent: Intent,
    risk: RiskTier,
    tone_sample_limit: int = 3,
    tone_sample_chars: int = 500,
) -> str:
    prompt = WRITER_SYSTEM_PROMPT.format(
        business_name=profile.business_name or "eBay Store",
        signature=profile.signature,
        tone=profile.tone or "professional",
        facts=_bullets(reasoning.facts, "(none)"),
        questions=_bullets(reasoning.questions, "Ask 1 short clarifying question, do not guess."),
        constraints=_bullets(reasoning.constraints, "(none)"),
    )

    if risk == RiskTier.MEDIUM:
        prompt += MEDIUM_RISK_NOTICE.format(intent=intent.value)
    elif risk == RiskTier.HIGH:
        prompt += HIGH_RISK_NOTICE.format(intent=intent.value)

    samples = [s for s in profile.tone_samples if s and s.strip()][:tone_sample_limit]
    if samples:
        prompt += TONE_REFERENCE_HEADER
        for i, sample in enumerate(samples, start=1):
            prompt += f"\n\nExample {i}:\n{sample[:tone_sample_chars]}"

    return prompt


def format_thread(thread_messages: list | None, limit: int = 10) -> str:
    """Render the last ``limit`` thread messages as ``ROLE: text`` lines."""
    if not thread_messages:
        return "(not provided)"
    lines = []
    for message in thread_messages[-limit:]:
        if isinstance(message, dict):
            role, text = message.get("role"), message.get("text")
        else:
            role, text = getattr(message, "role", None), getattr(message, "text", None)
        lines.append(f"{(role or 'buyer').upper()}: {str(text or '').strip()}")
    return "\n".join(lines)


def build_user_prompt(
    message: str,
    thread_messages: list | None = None,
    buyer_name: str | None = None,
    edit_instructions: str | None = None,
    thread_limit: int = 10,
) -> str:
    extras = ""
    if buyer_name:
        extras += f"\n\nBuyer name: {buyer_name}"
    if edit_instructions:
        extras += f"\n\nAdditional instructions from seller: {edit_instructions}"

    return WRITER_USER_PROMPT.format(
        message=message.strip(),
        thread=format_thread(thread_messages, thread_limit),
        extras=extras,
    )


def build_modify_prompts(
    profile: SellerProfile,
    draft: str,
    instructions: str,
    customer_message: str | None = None,
) -> tuple[str, str]:
    """Return (system, user) prompts for a draft modification."""
    system = MODIFY_SYSTEM_PROMPT.format(
        business_name=profile.business_name or "eBay Store",
        signature=profile.signature,
        tone=profile.tone or "professional",
    )
    user = MODIFY_USER_PROMPT.format(
        customer_message=customer_message or "Not provided",
        draft=draft,
        instructions=instructions,
    )
    return system, user
