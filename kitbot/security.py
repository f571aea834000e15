"""
API key check for the transport-facing endpoints.
- The WhatsApp transport sends the shared key in the X-API-Key header
- No key configured means local development: every caller is accepted
"""

import secrets

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader
from kitbot.config import config
from kitbot.logging_config import get_logger

logger = get_logger(__name__)

# Same header the follow-up job sends to the transport (followups.WhatsAppGatewaySender)
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(api_key: str = Security(api_key_header)) -> str:
    """
    Verify the API key of the calling transport.

    Usage:
        @router.post("/agent/turn")
        def agent_turn(api_key: str = Depends(verify_api_key)):
            ...
    """
    if not config.API_KEY:
        return "development"

    # Constant-time comparison
    if not api_key or not secrets.compare_digest(api_key.encode(), config.API_KEY.encode()):
        logger.warning("transport_api_key_rejected", key_present=bool(api_key))
        raise HTTPException(
            status_code=403,
            detail="Invalid or missing API key"
        )

    return api_key
