"""
Security and Authentication
API key generation and agent/provider key verification
"""

import secrets
import logging
from typing import Optional
from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from paycall_backend.database.connection import get_db
from paycall_backend.database.models import Agent, Provider
from paycall_backend.core.exceptions import AuthenticationError, PermissionDeniedError

logger = logging.getLogger(__name__)

def generate_api_key(prefix: str) -> str:
    """Generate a new bearer credential with the given prefix"""
    return f"{prefix}{secrets.token_hex(24)}"

def mask_key(api_key: str) -> str:
    return f"{api_key[:10]}..."

async def get_agent_by_api_key(api_key: str, db: AsyncSession) -> Optional[Agent]:
    result = await db.execute(select(Agent).where(Agent.api_key == api_key))
    return result.scalar_one_or_none()

async def get_provider_by_api_key(api_key: str, db: AsyncSession) -> Optional[Provider]:
    result = await db.execute(select(Provider).where(Provider.api_key == api_key))
    return result.scalar_one_or_none()

async def verify_api_key(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    db: AsyncSession = Depends(get_db)
) -> Agent:
    """Verify agent API key and return the agent"""

    if not x_api_key:
        raise AuthenticationError("API key required", "MISSING_API_KEY")

    agent = await get_agent_by_api_key(x_api_key, db)
    if not agent:
        logger.warning(f"Invalid API key used: {mask_key(x_api_key)}")
        raise AuthenticationError("Invalid API key", "INVALID_API_KEY")

    return agent

async def verify_provider_key(
    x_provider_key: Optional[str] = Header(None, alias="X-Provider-Key"),
    db: AsyncSession = Depends(get_db)
) -> Provider:
    """Verify provider key and return the provider"""

    if not x_provider_key:
        raise AuthenticationError("Provider key required", "MISSING_PROVIDER_KEY")

    provider = await get_provider_by_api_key(x_provider_key, db)
    if not provider:
        logger.warning(f"Invalid provider key used: {mask_key(x_provider_key)}")
        raise AuthenticationError("Invalid provider key", "INVALID_PROVIDER_KEY")

    return provider

def require_approved_provider(provider: Provider = Depends(verify_provider_key)) -> Provider:
    """Only approved providers may manage tools"""
    if provider.status != "approved":
        raise PermissionDeniedError(
            f"Provider status is {provider.status}",
            "PROVIDER_NOT_APPROVED"
        )
    return provider
