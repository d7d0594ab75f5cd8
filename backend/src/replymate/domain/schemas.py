"""Pydantic v2 schemas for API request/response validation."""

from pydantic import BaseModel, Field, field_validator


# ---------------------------------------------------------------------------
# Reply generation
# ---------------------------------------------------------------------------


class ThreadMessage(BaseModel):
    """One prior message in the buyer/seller thread."""

    role: str = "buyer"
    text: str = ""

    @field_validator("role", mode="before")
    @classmethod
    def _default_role(cls, value):
        return "buyer" if value is None else value

    @field_validator("text", mode="before")
    @classmethod
    def _null_text(cls, value):
        return "" if value is None else value


class GenerateReplyRequest(BaseModel):
    """Body of POST /api/reply/generate."""

    customer_message: str
    modify_instructions: str | None = None
    buyer_name: str | None = None
    order_id: str | None = None
    thread_messages: list[ThreadMessage] = Field(default_factory=list)

    @field_validator("thread_messages", mode="before")
    @classmethod
    def _null_thread(cls, value):
        return [] if value is None else value

    @field_validator("customer_message")
    @classmethod
    def _message_long_enough(cls, value: str) -> str:
        if len(value.strip()) < 3:
            raise ValueError("Customer message is required")
        return value

    @field_validator("modify_instructions", "buyer_name", "order_id")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()


class GenerateReplyResponse(BaseModel):
    """Successful reply generation."""

    success: bool = True
    reply: str
    intent: str
    risk: str
    route: str
    latency_ms: int
    facts_used: bool


# ---------------------------------------------------------------------------
# Reply modification
# ---------------------------------------------------------------------------


class ModifyReplyRequest(BaseModel):
    """Body of POST /api/reply/modify."""

    original_reply: str
    customer_message: str | None = None
    instructions: str

    @field_validator("original_reply", "instructions")
    @classmethod
    def _required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Original reply and instructions are required")
        return value


class ModifyReplyResponse(BaseModel):
    """Successful reply modification."""

    success: bool = True
    reply: str
    route: str = "modify"
    latency_ms: int
