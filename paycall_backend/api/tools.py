"""
Tool API Endpoints
Discovery and payment-gated execution
"""

import logging
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, Field

from paycall_backend.blockchain.chain_client import get_chain_client
from paycall_backend.core.config import settings
from paycall_backend.core.security import verify_api_key
from paycall_backend.database.connection import get_db
from paycall_backend.database.models import Agent
from paycall_backend.services.tool_registry import ToolRegistry, get_tool_registry
from paycall_backend.services.ledger import Ledger, get_ledger
from paycall_backend.x402.gateway import ExecutionGateway

logger = logging.getLogger(__name__)
router = APIRouter()

class ExecuteRequest(BaseModel):
    params: Dict[str, Any] = Field(default_factory=dict, description="Tool parameters, passed through verbatim")

def get_gateway(
    chain=Depends(get_chain_client),
    registry: ToolRegistry = Depends(get_tool_registry),
    ledger: Ledger = Depends(get_ledger)
) -> ExecutionGateway:
    return ExecutionGateway(chain, registry, ledger)

@router.get("")
async def list_tools(
    db: AsyncSession = Depends(get_db),
    agent: Agent = Depends(verify_api_key),
    registry: ToolRegistry = Depends(get_tool_registry)
):
    """List built-in and approved provider tools"""
    tools = await registry.list_all(db)
    return {
        "tools": [tool.summary() for tool in tools],
        "payment": settings.payment_config,
    }

@router.get("/{tool_id}")
async def get_tool(
    tool_id: str,
    db: AsyncSession = Depends(get_db),
    agent: Agent = Depends(verify_api_key),
    registry: ToolRegistry = Depends(get_tool_registry)
):
    """Get one tool with payment configuration"""
    tool = await registry.resolve(db, tool_id)
    data = tool.summary()
    data["payment"] = settings.payment_config
    return data

@router.post("/{tool_id}/execute")
async def execute_tool(
    tool_id: str,
    request: Optional[ExecuteRequest] = None,
    x_payment_tx: Optional[str] = Header(None, alias="X-Payment-Tx"),
    db: AsyncSession = Depends(get_db),
    agent: Agent = Depends(verify_api_key),
    gateway: ExecutionGateway = Depends(get_gateway)
):
    """Execute a tool; answers 402 until a verified payment is attached"""
    params = request.params if request else {}
    return await gateway.execute_tool(db, agent.id, tool_id, params, x_payment_tx)
