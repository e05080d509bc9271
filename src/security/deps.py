"""
FastAPI Security Dependencies
Static API-key check for every route except the liveness probe.
"""

import logging
import secrets

from fastapi import Request

from src.config import Config
from src.utils.exceptions import APIExceptions

logger = logging.getLogger(__name__)

API_KEY_HEADER = "Authorization"


def is_valid_api_key(provided: str | None, api_keys: tuple[str, ...]) -> bool:
    """Constant-time comparison against every configured key."""
    if not provided:
        return False
    return any(secrets.compare_digest(provided, key) for key in api_keys)


async def require_api_key(request: Request) -> None:
    """
    Reject the request with 401 unless it carries a configured API key.

    Does nothing when no API keys are configured.
    """
    config: Config = request.app.state.config
    if not config.api_key_required:
        return

    if not is_valid_api_key(request.headers.get(API_KEY_HEADER), config.api_keys):
        logger.warning(f"Rejected request to {request.url.path}: invalid API key")
        raise APIExceptions.unauthorized()
