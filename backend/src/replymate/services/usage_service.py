"""Usage accounting — daily counters and the per-reply audit log.

Counters are bumped with a single ``INSERT ... ON CONFLICT DO UPDATE``
keyed by (account_id, date), so two replies landing at the same moment
cannot overwrite each other's increments. Failures are logged and
swallowed: a reply that was already generated is never withheld because
accounting broke.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from replymate.agents.reply.contracts import UsageEvent
from replymate.domain.models import ReplyLog, SellerAccount, UsageDaily

logger = logging.getLogger(__name__)

_COUNTER_COLUMNS = (
    "replies_count",
    "rule_count",
    "low_count",
    "high_count",
    "tokens_used",
    "cost_usd",
)

MAX_LOGGED_TEXT = 2000


@dataclass
class ReplyRecord:
    """One row for the reply audit log."""
    route: str
    model: str
    customer_message: str = ""
    generated_reply: str = ""
    intent: str | None = None
    risk: str | None = None
    modify_instructions: str | None = None
    facts_used: bool = False
    latency_ms: int = 0
    tokens_used: int = 0
    cost_usd: float = 0.0
    source: str = "extension"


class UsageRecorder:
    """Accounting sink used by the reply pipeline."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory

    def _factory(self):
        if self._session_factory is None:
            from replymate.infra.database import async_session
            return async_session
        return self._session_factory

    async def record(
        self,
        event: UsageEvent,
        reply: ReplyRecord | None = None,
        day: date | None = None,
    ) -> bool:
        """Apply ``event`` and append ``reply``. Returns False on failure."""
        day = day or datetime.now(timezone.utc).date()
        try:
            async with self._factory()() as session:
                await increment_usage(session, event, day)
                if reply is not None:
                    session.add(_reply_log_row(event.account_id, reply))
                await session.execute(
                    update(SellerAccount)
                    .where(SellerAccount.id == event.account_id)
                    .values(last_active=datetime.now(timezone.utc))
                )
                await session.commit()
        except Exception as exc:
            logger.warning(
                "Usage accounting failed for account %s on %s: %s",
                event.account_id,
                day.isoformat(),
                exc,
            )
            return False

        logger.debug(
            "Usage recorded: account=%s replies=+%d tokens=+%d cost=+%.6f",
            event.account_id,
            event.replies_count,
            event.tokens_used,
            event.cost_usd,
        )
        return True


async def increment_usage(session: AsyncSession, event: UsageEvent, day: date) -> None:
    """Atomically add ``event`` to the (account, day) row, creating it if needed."""
    values = {
        "id": str(uuid.uuid4()),
        "account_id": event.account_id,
        "date": day,
        "replies_count": event.replies_count,
        "rule_count": event.rule_count,
        "low_count": event.low_count,
        "high_count": event.high_count,
        "tokens_used": event.tokens_used,
        "cost_usd": event.cost_usd,
    }

    dialect = session.bind.dialect.name if session.bind is not None else ""
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    elif dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        await _increment_locked(session, event, day, values)
        return

    table = UsageDaily.__table__
    stmt = insert(UsageDaily).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.account_id, table.c.date],
        set_={col: table.c[col] + stmt.excluded[col] for col in _COUNTER_COLUMNS},
    )
    await session.execute(stmt)


async def _increment_locked(session: AsyncSession, event: UsageEvent, day: date, values: dict) -> None:
    # Row lock for dialects without ON CONFLICT support
    result = await session.execute(
        select(UsageDaily)
        .where(UsageDaily.account_id == event.account_id, UsageDaily.date == day)
        .with_for_update()
    )
    row = result.scalar_one_or_none()
    if row is None:
        session.add(UsageDaily(**values))
        return
    for col in _COUNTER_COLUMNS:
        delta = Decimal(str(values[col])) if col == "cost_usd" else values[col]
        setattr(row, col, (getattr(row, col) or 0) + delta)


def _reply_log_row(account_id: str, reply: ReplyRecord) -> ReplyLog:
    return ReplyLog(
        account_id=account_id,
        intent=reply.intent,
        risk=reply.risk,
        route=reply.route,
        model=reply.model,
        customer_message=(reply.customer_message or "")[:MAX_LOGGED_TEXT],
        generated_reply=(reply.generated_reply or "")[:MAX_LOGGED_TEXT],
        modify_instructions=reply.modify_instructions,
        facts_used=reply.facts_used,
        latency_ms=reply.latency_ms,
        tokens_used=reply.tokens_used,
        cost_usd=reply.cost_usd,
        source=reply.source,
    )
