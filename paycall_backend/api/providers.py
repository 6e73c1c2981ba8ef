"""
Provider API Endpoints
Provider registration, tool submission and dashboard
"""

import re
import logging
from decimal import Decimal
from typing import Any, Dict, Literal, Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from pydantic import BaseModel, Field

from paycall_backend.core.config import settings
from paycall_backend.core.exceptions import ConflictError, NotFoundError
from paycall_backend.core.security import generate_api_key, require_approved_provider, verify_provider_key
from paycall_backend.database.connection import get_db
from paycall_backend.database.models import Payment, Provider, Tool
from paycall_backend.services.analytics_service import format_money
from paycall_backend.services.ledger import provider_share
from paycall_backend.services.tool_registry import BUILTIN_TOOLS, EMPTY_PARAMETERS

logger = logging.getLogger(__name__)
router = APIRouter()

PRICE_PATTERN = r"^\d+\.?\d*$"

class ProviderRegisterRequest(BaseModel):
    name: str = Field(..., min_length=2)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    walletAddress: str = Field(..., pattern=r"^0x")

class ToolSubmitRequest(BaseModel):
    name: str = Field(..., min_length=2)
    description: str = Field(..., min_length=10)
    externalUrl: str = Field(..., pattern=r"^https?://")
    priceUsd: str = Field(..., pattern=PRICE_PATTERN)
    category: Literal["finance", "crypto", "weather", "ai", "data", "other"]
    method: Literal["GET", "POST"] = "GET"
    headers: Optional[Dict[str, str]] = None
    parameters: Optional[Dict[str, Any]] = None
    exampleResponse: Optional[Any] = None

class ToolUpdateRequest(BaseModel):
    isActive: Optional[bool] = None
    priceUsd: Optional[str] = Field(None, pattern=PRICE_PATTERN)

def tool_id_for(provider: Provider, name: str) -> str:
    """Provider prefix plus a slug of the tool name"""
    slug = re.sub(r"\s+", "-", name.lower())
    return f"{provider.id[:8]}-{slug}"

def _tool_dict(api: Tool) -> Dict[str, Any]:
    return {
        "id": api.id,
        "name": api.name,
        "description": api.description,
        "category": api.category,
        "endpoint": api.endpoint,
        "externalUrl": api.external_url,
        "priceUsd": api.price_usd,
        "method": api.method,
        "parameters": api.parameters,
        "revenueShare": api.revenue_share,
        "status": api.status,
        "isActive": api.is_active,
        "createdAt": api.created_at.isoformat() if api.created_at else None,
    }

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register_provider(request: ProviderRegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create a provider account and issue its key"""

    result = await db.execute(select(Provider).where(Provider.wallet_address == request.walletAddress))
    existing = result.scalar_one_or_none()
    if existing:
        raise ConflictError(
            "Already registered as provider",
            "PROVIDER_EXISTS",
            {"providerId": existing.id}
        )

    provider = Provider(
        user_id=request.walletAddress,
        name=request.name,
        email=request.email,
        wallet_address=request.walletAddress,
        api_key=generate_api_key(settings.API_KEY_PREFIX_PROVIDER),
        total_earned=Decimal("0"),
        status="approved"
    )
    db.add(provider)
    await db.commit()

    logger.info(f"Registered provider {provider.id} ({provider.name})")
    return {
        "success": True,
        "providerId": provider.id,
        "apiKey": provider.api_key,
        "message": "Provider account created",
    }

@router.post("/apis", status_code=status.HTTP_201_CREATED)
async def submit_tool(
    request: ToolSubmitRequest,
    db: AsyncSession = Depends(get_db),
    provider: Provider = Depends(require_approved_provider)
):
    """Submit a tool backed by the provider's own endpoint"""

    api_id = tool_id_for(provider, request.name)
    endpoint = f"/tools/{api_id}"

    if api_id in BUILTIN_TOOLS or await db.get(Tool, api_id):
        raise ConflictError("API with this name already exists", "TOOL_EXISTS", {"apiId": api_id})

    approved = settings.AUTO_APPROVE_TOOLS
    api = Tool(
        id=api_id,
        provider_id=provider.id,
        name=request.name,
        description=request.description,
        endpoint=endpoint,
        external_url=request.externalUrl,
        price_usd=request.priceUsd,
        revenue_share=settings.DEFAULT_REVENUE_SHARE,
        category=request.category,
        method=request.method,
        headers=request.headers or {},
        parameters=request.parameters or dict(EMPTY_PARAMETERS),
        example_response=request.exampleResponse,
        status="approved" if approved else "pending",
        is_active=True
    )
    db.add(api)
    await db.commit()

    logger.info(f"Provider {provider.id} submitted tool {api_id}")
    return {
        "success": True,
        "apiId": api_id,
        "endpoint": endpoint,
        "message": "API submitted and approved" if approved else "API submitted for review",
    }

@router.get("/apis")
async def list_provider_tools(
    db: AsyncSession = Depends(get_db),
    provider: Provider = Depends(verify_provider_key)
):
    result = await db.execute(select(Tool).where(Tool.provider_id == provider.id).order_by(Tool.created_at))
    return {"apis": [_tool_dict(api) for api in result.scalars().all()]}

@router.patch("/apis/{api_id}")
async def update_provider_tool(
    api_id: str,
    request: ToolUpdateRequest,
    db: AsyncSession = Depends(get_db),
    provider: Provider = Depends(verify_provider_key)
):
    """Toggle a tool or change its price"""

    result = await db.execute(
        select(Tool).where(Tool.id == api_id, Tool.provider_id == provider.id)
    )
    api = result.scalar_one_or_none()
    if not api:
        raise NotFoundError("API not found or not owned by you", "TOOL_NOT_FOUND", {"apiId": api_id})

    if request.isActive is not None:
        api.is_active = request.isActive
    if request.priceUsd is not None:
        api.price_usd = request.priceUsd
    await db.commit()

    logger.info(f"Provider {provider.id} updated tool {api_id}")
    return {"success": True, "message": "API updated"}

@router.get("/dashboard")
async def provider_dashboard(
    db: AsyncSession = Depends(get_db),
    provider: Provider = Depends(verify_provider_key)
):
    """Earnings from confirmed payments on the provider's tools"""

    result = await db.execute(select(Tool).where(Tool.provider_id == provider.id))
    apis = list(result.scalars().all())
    shares = {api.id: api.revenue_share for api in apis}

    total_earnings = Decimal("0")
    total_requests = 0
    if apis:
        payments = await db.execute(
            select(Payment).where(Payment.tool_id.in_(list(shares)), Payment.status == "confirmed")
        )
        for payment in payments.scalars().all():
            total_earnings += provider_share(Decimal(payment.amount_usd), shares[payment.tool_id])
            total_requests += 1

    return {
        "provider": {
            "id": provider.id,
            "name": provider.name,
            "email": provider.email,
            "walletAddress": provider.wallet_address,
            "status": provider.status,
        },
        "stats": {
            "totalEarnings": format_money(total_earnings),
            "totalRequests": total_requests,
            "apiCount": len(apis),
        },
        "apis": [
            {
                "id": api.id,
                "name": api.name,
                "endpoint": api.endpoint,
                "price": api.price_usd,
                "status": api.status,
                "isActive": api.is_active,
            }
            for api in apis
        ],
    }
