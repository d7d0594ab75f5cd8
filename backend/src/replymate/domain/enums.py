"""Domain enumerations for ReplyMate.

All enums use the (str, Enum) pattern to ensure JSON serialization compatibility.
"""

from enum import Enum


class Intent(str, Enum):
    """Categorized purpose of a buyer message."""

    TRACKING = "tracking"
    RETURN = "return"
    REFUND = "refund"
    DAMAGED_ITEM = "damaged_item"
    SHIPPING_INQUIRY = "shipping_inquiry"
    ITEM_QUESTION = "item_question"
    DISCOUNT_REQUEST = "discount_request"
    CANCELLATION = "cancellation"
    POSITIVE_FEEDBACK = "positive_feedback"
    LEGAL_THREAT = "legal_threat"
    FRAUD_CLAIM = "fraud_claim"
    OFF_PLATFORM = "off_platform"
    GENERAL = "general"


class RiskTier(str, Enum):
    """How sensitive a reply to the message is."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Tier(str, Enum):
    """Reply-production strategy that produced the text."""

    RULE = "rule"
    LOW = "low"
    HIGH = "high"


class MissingDataReason(str, Enum):
    """Why order facts could not be supplied."""

    ORDER_ID_MISSING = "order_id_missing"
    ACCOUNT_NOT_LINKED = "account_not_linked"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"


class Plan(str, Enum):
    """Seller subscription plan."""

    TRIAL = "trial"
    PRO = "pro"
    AGENCY = "agency"
    EXPIRED = "expired"
    OWNER = "owner"


class SubscriptionStatus(str, Enum):
    """Payment-provider subscription state."""

    ACTIVE = "active"
    CANCELED = "canceled"
    PAST_DUE = "past_due"
