"""
Analytics API Endpoints
Read-only reliability and revenue reports
"""

import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, Field

from paycall_backend.core.security import verify_provider_key
from paycall_backend.database.connection import get_db
from paycall_backend.database.models import Provider
from paycall_backend.services.analytics_service import analytics_service

logger = logging.getLogger(__name__)
router = APIRouter()

PERIOD_PATTERN = r"^(24h|7d|30d|all)$"

class MyAgentsRequest(BaseModel):
    apiKeys: List[str] = Field(default_factory=list)
    period: str = Field("all", pattern=PERIOD_PATTERN)

@router.get("/overview")
async def overview(
    period: str = Query("all", pattern=PERIOD_PATTERN),
    db: AsyncSession = Depends(get_db)
):
    """Platform-wide revenue, reliability and latency"""
    return await analytics_service.overview(db, period)

@router.get("/activity")
async def activity(
    limit: Optional[int] = Query(None, ge=0),
    db: AsyncSession = Depends(get_db)
):
    """Most recent usage, newest first"""
    return await analytics_service.activity(db, limit)

@router.get("/tools/{tool_id}/stats")
async def tool_stats(
    tool_id: str,
    period: str = Query("7d", pattern=PERIOD_PATTERN),
    db: AsyncSession = Depends(get_db)
):
    return await analytics_service.tool_stats(db, tool_id, period)

@router.get("/apis/{api_id}")
async def api_summary(api_id: str, db: AsyncSession = Depends(get_db)):
    return await analytics_service.api_summary(db, api_id)

@router.post("/my-agents")
async def my_agents(request: MyAgentsRequest, db: AsyncSession = Depends(get_db)):
    """Spend and reliability for the agents owning the given API keys"""
    return await analytics_service.agents_report(db, request.apiKeys, request.period)

@router.get("/my-provider")
async def my_provider(
    period: str = Query("all", pattern=PERIOD_PATTERN),
    db: AsyncSession = Depends(get_db),
    provider: Provider = Depends(verify_provider_key)
):
    return await analytics_service.provider_report(db, provider, period)
