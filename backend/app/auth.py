"""
Service-to-service authentication for the Fin endpoints.

Fin (Intercom's AI agent) calls this API with a static bearer token:

    Authorization: Bearer <FIN_API_TOKEN>

The token is read from the environment on every request so it can be
rotated without a restart. When FIN_API_TOKEN is not configured every
request is rejected.
"""

import hmac
import logging
import os
from typing import Optional

from fastapi import HTTPException, Header

logger = logging.getLogger(__name__)


def _get_fin_api_token() -> str:
    """Return the configured Fin API token, or '' when unset."""
    return os.getenv("FIN_API_TOKEN", "").strip()


def _extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from a "Bearer <token>" header, or None when malformed."""
    if not authorization:
        return None

    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        return None

    return parts[1]


async def verify_fin_token(authorization: Optional[str] = Header(None)) -> None:
    """
    FastAPI dependency that checks the Fin bearer token.

    Raises:
        HTTPException: 401 if the token is missing, malformed, unconfigured,
        or does not match FIN_API_TOKEN.
    """
    expected = _get_fin_api_token()
    if not expected:
        logger.warning(
            "FIN_API_TOKEN is not configured: all classify-and-route requests "
            "will be rejected"
        )
        raise HTTPException(status_code=401, detail="Unauthorized")

    token = _extract_bearer_token(authorization)
    if token is None or not hmac.compare_digest(token.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")
