"""Rule-tier templates — zero-cost replies for simple, low-risk intents.

Only used when the classifier is confident, risk is low, the seller gave
no edit instructions and no order data was needed. Intents without an
entry here fall through to the model tiers.
"""

from replymate.domain.enums import Intent

TEMPLATES = {
    Intent.POSITIVE_FEEDBACK: (
        "Hi,\n\n"
        "Thank you so much for the kind words, that really means a lot! "
        "I'm glad you're happy with your purchase. If you ever need anything "
        "in the future, don't hesitate to reach out.\n\n"
        "Wishing you all the best,\n{signature}"
    ),
    Intent.SHIPPING_INQUIRY: (
        "Hi there,\n\n"
        "Thank you for your interest! Shipping details including estimated delivery "
        "times and costs are listed on each item's listing page. Standard shipping "
        "typically takes 3-5 business days domestically.\n\n"
        "If you have any specific questions about shipping to your location, "
        "I'm happy to help.\n\n"
        "Best regards,\n{signature}"
    ),
    Intent.ITEM_QUESTION: (
        "Hi,\n\n"
        "Thank you for your question! All product details, specifications, and "
        "compatibility information are listed in the item description. I'd recommend "
        "checking there first.\n\n"
        "If you need any clarification or have specific questions not covered in the "
        "listing, please let me know and I'll be happy to help.\n\n"
        "Best regards,\n{signature}"
    ),
    Intent.OFF_PLATFORM: (
        "Hi,\n\n"
        "Thank you for your message. For the protection of both buyers and sellers, "
        "I handle all communication and transactions through eBay's official messaging "
        "and checkout system.\n\n"
        "Please feel free to continue our conversation here. I'm happy to help with "
        "anything you need.\n\n"
        "Best regards,\n{signature}"
    ),
}


def get_template(intent: Intent, signature: str) -> str | None:
    """Return the filled template for ``intent``, or None if there isn't one."""
    template = TEMPLATES.get(intent)
    if template is None:
        return None
    return template.format(signature=signature)
