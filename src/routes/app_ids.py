"""
Applications over their daily limit
"""

from fastapi import APIRouter, Depends, Request

from src.models.usage_models import AppIDsResponse
from src.security.deps import require_api_key

router = APIRouter(dependencies=[Depends(require_api_key)])


@router.get("/v0/app-ids", response_model=AppIDsResponse, tags=["usage"])
async def get_app_ids(request: Request):
    """
    IDs of applications whose usage stayed over their daily limit past the
    grace period, as of the last successful refresh.
    """
    engine = request.app.state.engine
    return AppIDsResponse(application_ids=engine.get_app_ids_passed_limit())
