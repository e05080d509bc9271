"""
Prometheus scrape endpoint
"""

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from prometheus_client import REGISTRY, generate_latest

from src.security.deps import require_api_key

router = APIRouter(dependencies=[Depends(require_api_key)])


@router.get("/metrics", tags=["monitoring"], include_in_schema=False)
async def metrics():
    """
    Refresh and notification cycle metrics in Prometheus text format.
    """
    return Response(generate_latest(REGISTRY), media_type="text/plain; charset=utf-8")
