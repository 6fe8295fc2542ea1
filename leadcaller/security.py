"""
API key authentication for mutating endpoints.
The provider webhook is deliberately left open.
"""

from fastapi import Security
from fastapi.security import APIKeyHeader
from leadcaller.config import config
from leadcaller.errors import AuthenticationError
from leadcaller.logging_config import get_logger

logger = get_logger(__name__)

# API Key authentication scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(api_key: str = Security(api_key_header)) -> str:
    """
    Verify the X-API-Key header.

    Usage:
        @router.post("/leads", dependencies=[Depends(verify_api_key)])
    """
    if not config.API_KEY:
        # No key configured: development mode, everything is allowed.
        return "development"

    if api_key != config.API_KEY:
        logger.warning("api_key_authentication_failed", provided_key=api_key[:8] if api_key else None)
        raise AuthenticationError("Invalid or missing API key")

    return api_key
