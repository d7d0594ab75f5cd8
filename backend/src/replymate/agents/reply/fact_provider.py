"""Fact providers — normalized order and tracking data for the pipeline.

A provider never raises for upstream trouble. It answers with
``FactsResult.found(order)`` or ``FactsResult.missing(reason)`` and the
pipeline turns a missing result into a clarifying question.
"""

import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable
from urllib.parse import quote

import httpx
from sqlalchemy import select

from replymate.agents.reply.contracts import FactsResult, OrderFacts, OrderItem, TrackingEntry
from replymate.domain.enums import MissingDataReason

logger = logging.getLogger(__name__)

TokenLookup = Callable[[str], Awaitable[str | None]]

ORDER_PATH = "/sell/fulfillment/v1/order/{order_id}"
FULFILLMENT_PATH = "/sell/fulfillment/v1/order/{order_id}/shipping_fulfillment"


class FactProvider:
    """Interface consumed by the reply pipeline."""

    async def fetch_facts(self, account_id: str, order_id: str | None) -> FactsResult:
        raise NotImplementedError


class StaticFactProvider(FactProvider):
    """In-memory provider for local development and tests."""

    def __init__(self, orders: dict[str, OrderFacts] | None = None, linked: bool = True):
        self.orders = dict(orders or {})
        self.linked = linked
        self.calls: list[tuple[str, str | None]] = []

    async def fetch_facts(self, account_id: str, order_id: str | None) -> FactsResult:
        self.calls.append((account_id, order_id))
        if not order_id:
            return FactsResult.missing(MissingDataReason.ORDER_ID_MISSING)
        if not self.linked:
            return FactsResult.missing(MissingDataReason.ACCOUNT_NOT_LINKED)
        order = self.orders.get(order_id)
        if order is None:
            return FactsResult.missing(MissingDataReason.ORDER_ID_MISSING)
        return FactsResult.found(order)


# ---------------------------------------------------------------------------
# eBay Sell Fulfillment API
# ---------------------------------------------------------------------------


def normalize_order(order: dict, fulfillments: dict | None = None) -> OrderFacts:
    """Map eBay order + shipping_fulfillment JSON onto OrderFacts."""
    items = tuple(
        OrderItem(
            title=str(li.get("title") or ""),
            qty=int(li.get("quantity") or 1),
            item_id=li.get("legacyItemId") or li.get("lineItemId"),
        )
        for li in order.get("lineItems") or []
    )
    tracking = tuple(
        TrackingEntry(
            carrier=f.get("shippingCarrierCode") or "",
            tracking_number=f.get("trackingNumber") or "",
            shipped_date=f.get("shippedDate") or "",
            delivery_status=f.get("deliveryStatus") or "",
        )
        for f in (fulfillments or {}).get("fulfillments") or []
    )
    return OrderFacts(
        order_id=str(order.get("orderId") or ""),
        status=order.get("orderFulfillmentStatus") or "",
        payment_status=order.get("orderPaymentStatus") or "",
        buyer_username=(order.get("buyer") or {}).get("username") or "",
        items=items,
        tracking=tracking,
    )


class EbayFactProvider(FactProvider):
    """Fetches orders from the eBay Sell Fulfillment API.

    Token storage and refresh belong to the OAuth service; this provider
    only asks ``token_lookup`` for a currently valid access token.
    """

    def __init__(
        self,
        token_lookup: TokenLookup,
        base_url: str = "https://api.ebay.com",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._token_lookup = token_lookup
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def fetch_facts(self, account_id: str, order_id: str | None) -> FactsResult:
        if not order_id:
            return FactsResult.missing(MissingDataReason.ORDER_ID_MISSING)

        try:
            token = await self._token_lookup(account_id)
        except Exception as exc:
            logger.warning("eBay token lookup failed for account %s: %s", account_id, exc)
            return FactsResult.missing(MissingDataReason.UPSTREAM_UNAVAILABLE)
        if not token:
            return FactsResult.missing(MissingDataReason.ACCOUNT_NOT_LINKED)

        encoded = quote(order_id, safe="")
        async with httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
            headers={"Authorization": f"Bearer {token}"},
        ) as client:
            try:
                resp = await client.get(ORDER_PATH.format(order_id=encoded))
                resp.raise_for_status()
                order_json = resp.json()
            except httpx.HTTPStatusError as exc:
                code = exc.response.status_code
                logger.warning("eBay order fetch HTTP %d for %s", code, order_id)
                if code in (401, 403):
                    return FactsResult.missing(MissingDataReason.ACCOUNT_NOT_LINKED)
                if code == 404:
                    return FactsResult.missing(MissingDataReason.ORDER_ID_MISSING)
                return FactsResult.missing(MissingDataReason.UPSTREAM_UNAVAILABLE)
            except (httpx.RequestError, ValueError) as exc:
                logger.warning("eBay order fetch failed for %s: %s", order_id, exc)
                return FactsResult.missing(MissingDataReason.UPSTREAM_UNAVAILABLE)

            fulfillments_json = None
            try:
                resp = await client.get(FULFILLMENT_PATH.format(order_id=encoded))
                resp.raise_for_status()
                fulfillments_json = resp.json()
            except (httpx.HTTPError, ValueError) as exc:
                # Order facts are still usable without tracking
                logger.info("eBay tracking unavailable for %s: %s", order_id, exc)

        return FactsResult.found(normalize_order(order_json, fulfillments_json))


def db_token_lookup(session_factory=None) -> TokenLookup:
    """Token lookup reading the seller's primary linked eBay account.

    Returns None when nothing is linked or the stored token has expired.
    """

    async def _lookup(account_id: str) -> str | None:
        from replymate.domain.models import MarketplaceAccount, as_utc

        factory = session_factory
        if factory is None:
            from replymate.infra.database import async_session
            factory = async_session

        async with factory() as session:
            result = await session.execute(
                select(MarketplaceAccount)
                .where(MarketplaceAccount.account_id == account_id)
                .where(MarketplaceAccount.is_primary.is_(True))
                .limit(1)
            )
            account = result.scalar_one_or_none()

        if account is None or not account.access_token:
            return None
        expires_at = as_utc(account.token_expires_at)
        if expires_at is not None and expires_at <= datetime.now(timezone.utc):
            logger.info("eBay token expired for account %s", account_id)
            return None
        return account.access_token

    return _lookup
