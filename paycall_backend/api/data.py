"""
Data API Endpoints
Anonymous pay-per-call data feeds at a flat price
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from paycall_backend.api.tools import get_gateway
from paycall_backend.database.connection import get_db
from paycall_backend.x402.gateway import DATA_ENDPOINTS, ExecutionGateway

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get("")
async def list_data_apis():
    """Public catalogue of the data endpoints"""
    return {
        "apis": [
            {
                "id": kind,
                "name": tool.name,
                "description": tool.description,
                "endpoint": f"/data/{kind}",
                "price": f"${tool.price}",
                "category": tool.category,
            }
            for kind, tool in DATA_ENDPOINTS.items()
        ]
    }

@router.get("/{kind}")
async def get_data(
    kind: str,
    request: Request,
    x_payment_tx: Optional[str] = Header(None, alias="X-Payment-Tx"),
    x_agent_id: Optional[str] = Header(None, alias="X-Agent-ID"),
    db: AsyncSession = Depends(get_db),
    gateway: ExecutionGateway = Depends(get_gateway)
):
    """Serve one data feed once its payment verifies"""
    params = dict(request.query_params)
    return await gateway.unlock_data(db, kind, params, x_payment_tx, x_agent_id or "anonymous")
