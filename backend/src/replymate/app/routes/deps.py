"""Shared route dependencies — licence-key resolution and the API error shape."""

import logging

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from replymate.infra.database import get_db
from replymate.services.profile_service import (
    EntitlementError,
    LicenseError,
    SellerContext,
    load_seller_context,
)

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Error rendered as ``{"error": ..., "message": ...}`` with ``status_code``."""

    def __init__(self, status_code: int, error: str, message: str | None = None):
        self.status_code = status_code
        self.error = error
        self.message = message
        super().__init__(error)

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.message:
            body["message"] = self.message
        return body


async def require_seller(
    x_license_key: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> SellerContext:
    """Dependency: resolve the licence key header; 401 if unknown, 403 if not entitled."""
    try:
        return await load_seller_context(db, x_license_key)
    except LicenseError as exc:
        raise ApiError(401, exc.message)
    except EntitlementError as exc:
        logger.info("Entitlement refused: %s", exc.code)
        raise ApiError(403, exc.code, exc.message)
