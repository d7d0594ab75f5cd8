"""Reply routes — generate and modify replies for the browser extension."""

import logging

from fastapi import APIRouter, Depends, Request

from replymate.agents.reply.writer import ExhaustedFallbackError, GenerationAbandonedError
from replymate.app.config import get_settings
from replymate.app.routes.deps import ApiError, require_seller
from replymate.domain.schemas import (
    GenerateReplyRequest,
    GenerateReplyResponse,
    ModifyReplyRequest,
    ModifyReplyResponse,
)
from replymate.services.profile_service import SellerContext
from replymate.services.reply_pipeline import ReplyPipeline, get_reply_pipeline, make_abandon_check

logger = logging.getLogger(__name__)

SERVICE_UNAVAILABLE = "AI service unavailable. Please try again in a moment."
REQUEST_ABANDONED = "Reply generation took too long. Please try again."

router = APIRouter(prefix="/api/reply", tags=["reply"])


@router.post("/generate", response_model=GenerateReplyResponse)
async def generate_reply(
    body: GenerateReplyRequest,
    request: Request,
    seller: SellerContext = Depends(require_seller),
    pipeline: ReplyPipeline = Depends(get_reply_pipeline),
):
    """Generate a reply to a buyer message."""
    settings = get_settings()
    try:
        result = await pipeline.generate_reply(
            seller.account_id,
            seller.profile,
            body.customer_message,
            edit_instructions=body.modify_instructions,
            buyer_name=body.buyer_name,
            order_id=body.order_id,
            thread_messages=body.thread_messages,
            abandon_check=make_abandon_check(request.is_disconnected, settings.request_deadline_seconds),
        )
    except ExhaustedFallbackError as exc:
        logger.error("Reply generation exhausted all tiers for %s: %s", seller.account_id, exc)
        raise ApiError(503, SERVICE_UNAVAILABLE)
    except GenerationAbandonedError:
        logger.warning("Reply generation abandoned for %s", seller.account_id)
        raise ApiError(503, REQUEST_ABANDONED)

    return GenerateReplyResponse(
        reply=result.reply,
        intent=result.classification.intent.value,
        risk=result.classification.risk.value,
        route=result.route,
        latency_ms=result.latency_ms,
        facts_used=result.facts_used,
    )


@router.post("/modify", response_model=ModifyReplyResponse)
async def modify_reply(
    body: ModifyReplyRequest,
    request: Request,
    seller: SellerContext = Depends(require_seller),
    pipeline: ReplyPipeline = Depends(get_reply_pipeline),
):
    """Apply seller edit instructions to an existing draft."""
    settings = get_settings()
    try:
        result = await pipeline.modify_reply(
            seller.account_id,
            seller.profile,
            body.original_reply,
            body.instructions,
            customer_message=body.customer_message,
            abandon_check=make_abandon_check(request.is_disconnected, settings.request_deadline_seconds),
        )
    except ExhaustedFallbackError as exc:
        logger.error("Reply modification exhausted all tiers for %s: %s", seller.account_id, exc)
        raise ApiError(503, SERVICE_UNAVAILABLE)
    except GenerationAbandonedError:
        logger.warning("Reply modification abandoned for %s", seller.account_id)
        raise ApiError(503, REQUEST_ABANDONED)

    return ModifyReplyResponse(reply=result.reply, latency_ms=result.latency_ms)
