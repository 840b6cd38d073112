"""Request admission: client origin resolution and rate-limit enforcement.

Limiter rejections raise :class:`RateLimitExceeded` with a generic detail,
rendered as 429 by the app.  The caller's address and bucket key never
appear in the response or the logs.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Request

from chatrelay.protocol.errors import RateLimitExceeded
from chatrelay.relay.rate_limit import FixedWindowCounter, rate_limit_key

logger = logging.getLogger(__name__)


def client_origin(request: Request) -> str:
    """Return the caller's network address for key derivation only.

    Uses the first ``X-Forwarded-For`` hop when the deployment trusts its
    proxy, else the socket peer.
    """
    settings = request.app.state.settings
    if settings.trust_proxy:
        forwarded = request.headers.get("x-forwarded-for", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client is not None:
        return request.client.host
    return "unknown"


def enforce_limit(
    request: Request,
    limiter: FixedWindowCounter,
    user_id: Any = None,
    detail: str = "Rate limit exceeded",
) -> None:
    """Count this request against *limiter*; raise when over budget."""
    salt = request.app.state.settings.redaction_salt
    key = rate_limit_key(user_id, client_origin(request), salt)
    if not limiter.check(key):
        logger.info("Rate limit hit on %s", request.url.path)
        raise RateLimitExceeded(detail)


async def general_rate_limit(request: Request) -> None:
    """Router dependency: general-traffic budget keyed by redacted origin."""
    enforce_limit(
        request,
        request.app.state.general_limiter,
        detail="Too many requests, please try again later.",
    )
