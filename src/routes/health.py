"""
Liveness endpoint
"""

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

router = APIRouter()

HEALTH_MESSAGE = "Rate Limiter is up and running!"


@router.get("/", response_class=PlainTextResponse, tags=["health"])
async def health_check():
    """Always 200 while the process is serving requests."""
    return HEALTH_MESSAGE
