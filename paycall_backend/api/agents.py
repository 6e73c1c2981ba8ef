"""
Agent API Endpoints
Agent registration and running totals
"""

import logging
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, Field

from paycall_backend.core.exceptions import ConflictError, NotFoundError
from paycall_backend.database.connection import get_db
from paycall_backend.database.models import Agent
from paycall_backend.services.ledger import Ledger, get_ledger

logger = logging.getLogger(__name__)
router = APIRouter()

class AgentRegisterRequest(BaseModel):
    walletAddress: str = Field(..., pattern=r"^0x", description="EVM wallet address")
    name: Optional[str] = Field(None, description="Agent name")
    email: Optional[str] = Field(None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", description="Contact email")

class AgentRegisterResponse(BaseModel):
    success: bool
    agentId: str
    apiKey: str
    walletAddress: str
    message: str

class AgentResponse(BaseModel):
    id: str
    walletAddress: str
    name: Optional[str]
    email: Optional[str]
    totalSpent: str
    requestCount: int
    lastActiveAt: Optional[datetime]
    createdAt: Optional[datetime]

class AgentStatsResponse(BaseModel):
    totalSpent: str
    requestCount: int
    lastActiveAt: Optional[datetime]

async def _get_agent(agent_id: str, db: AsyncSession) -> Agent:
    agent = await db.get(Agent, agent_id)
    if not agent:
        raise NotFoundError("Agent not found", "AGENT_NOT_FOUND", {"agentId": agent_id})
    return agent

@router.post("/register", response_model=AgentRegisterResponse, status_code=status.HTTP_201_CREATED)
async def register_agent(
    request: AgentRegisterRequest,
    db: AsyncSession = Depends(get_db),
    ledger: Ledger = Depends(get_ledger)
):
    """Register a new agent and issue its API key"""

    agent, created = await ledger.register_agent(
        db,
        request.walletAddress,
        name=request.name,
        email=request.email
    )

    if not created:
        raise ConflictError(
            "Agent already registered",
            "AGENT_EXISTS",
            {"agentId": agent.id, "walletAddress": agent.wallet_address}
        )

    return AgentRegisterResponse(
        success=True,
        agentId=agent.id,
        apiKey=agent.api_key,
        walletAddress=agent.wallet_address,
        message="Agent registered successfully"
    )

@router.get("/{agent_id}", response_model=AgentResponse)
async def get_agent(agent_id: str, db: AsyncSession = Depends(get_db)):
    """Get agent by ID"""
    agent = await _get_agent(agent_id, db)
    return AgentResponse(
        id=agent.id,
        walletAddress=agent.wallet_address,
        name=agent.name,
        email=agent.email,
        totalSpent=str(agent.total_spent),
        requestCount=agent.request_count,
        lastActiveAt=agent.last_active_at,
        createdAt=agent.created_at
    )

@router.get("/{agent_id}/stats", response_model=AgentStatsResponse)
async def get_agent_stats(agent_id: str, db: AsyncSession = Depends(get_db)):
    agent = await _get_agent(agent_id, db)
    return AgentStatsResponse(
        totalSpent=str(agent.total_spent),
        requestCount=agent.request_count,
        lastActiveAt=agent.last_active_at
    )
