"""
Ledger
Payments, usage logs and agent/provider running totals
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from paycall_backend.blockchain.chain_client import normalize_tx_hash
from paycall_backend.core.config import settings
from paycall_backend.core.exceptions import DuplicatePaymentError
from paycall_backend.core.security import generate_api_key
from paycall_backend.database.models import Agent, Payment, Provider, UsageLog, utcnow
from paycall_backend.services.tool_registry import ToolInfo

logger = logging.getLogger(__name__)

def provider_share(price: Decimal, revenue_share: Optional[int]) -> Decimal:
    """Provider's cut of one call"""
    share = revenue_share or settings.DEFAULT_REVENUE_SHARE
    return price * Decimal(share) / Decimal(100)

class Ledger:
    """Write side of the marketplace books"""

    async def record_paid_call(
        self,
        db: AsyncSession,
        tx_hash: str,
        agent_id: str,
        tool: ToolInfo,
        amount_token: Optional[Decimal] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Payment:
        """
        Insert the confirmed Payment and apply agent/provider credits.

        All three writes commit together. A tx_hash that was already
        recorded rolls everything back and raises DuplicatePaymentError.
        """
        tx_hash = normalize_tx_hash(tx_hash)
        price = Decimal(tool.price)
        now = utcnow()

        payment = Payment(
            tx_hash=tx_hash,
            agent_id=agent_id,
            tool_id=tool.id,
            amount_usd=price,
            amount_token=amount_token if amount_token is not None else price,
            network=settings.NETWORK,
            status="confirmed",
            confirmed_at=now,
            payment_metadata=metadata or {}
        )
        db.add(payment)

        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            logger.warning(f"Duplicate payment rejected: {tx_hash}")
            raise DuplicatePaymentError(tx_hash)

        await db.execute(
            update(Agent)
            .where(Agent.id == agent_id)
            .values(
                total_spent=Agent.total_spent + price,
                request_count=Agent.request_count + 1,
                last_active_at=now
            )
        )

        if tool.provider_id:
            await db.execute(
                update(Provider)
                .where(Provider.id == tool.provider_id)
                .values(total_earned=Provider.total_earned + provider_share(price, tool.revenue_share))
            )

        await db.commit()
        logger.info(f"Recorded payment {tx_hash} for {tool.id} by agent {agent_id}")
        return payment

    async def log_usage(
        self,
        db: AsyncSession,
        tool_id: str,
        agent_id: str,
        status_code: int,
        success: bool,
        response_time_ms: int = 0,
        payment_id: Optional[str] = None,
        error_type: Optional[str] = None,
        error_message: Optional[str] = None
    ) -> Optional[UsageLog]:
        """Best-effort usage row; a failure here is logged, never raised"""
        if error_message:
            error_message = error_message[:settings.USAGE_ERROR_MESSAGE_MAX]

        log = UsageLog(
            tool_id=tool_id,
            agent_id=agent_id,
            payment_id=payment_id,
            response_time_ms=response_time_ms,
            status_code=status_code,
            success=success,
            error_type=error_type,
            error_message=error_message
        )

        try:
            db.add(log)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Failed to log usage for {tool_id}: {e}")
            return None

        return log

    async def register_agent(
        self,
        db: AsyncSession,
        wallet_address: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        api_key: Optional[str] = None
    ) -> Tuple[Agent, bool]:
        """Look up the agent by wallet, creating it if absent; returns (agent, created)"""
        result = await db.execute(select(Agent).where(Agent.wallet_address == wallet_address))
        agent = result.scalar_one_or_none()
        if agent:
            return agent, False

        agent = Agent(
            wallet_address=wallet_address,
            api_key=api_key or generate_api_key(settings.API_KEY_PREFIX_AGENT),
            name=name,
            email=email,
            total_spent=Decimal("0"),
            request_count=0
        )
        db.add(agent)
        await db.commit()

        logger.info(f"Registered agent {agent.id} for wallet {wallet_address}")
        return agent, True

ledger = Ledger()

def get_ledger() -> Ledger:
    return ledger
