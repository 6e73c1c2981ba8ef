"""
x402 Execution Gateway
Challenge, verify, record, execute and log: the paid-call protocol
"""

import time
import logging
from functools import partial
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from paycall_backend.blockchain.chain_client import from_token_units, normalize_tx_hash
from paycall_backend.core.config import settings
from paycall_backend.core.exceptions import (
    ChainUnavailableError,
    ConfigurationError,
    ExecutionError,
    NotFoundError,
    PaymentRejectedError,
    PaymentRequiredError,
    ProviderError,
)
from paycall_backend.services.builtin_data import detailed_payload
from paycall_backend.services.ledger import Ledger, ledger as default_ledger
from paycall_backend.services.tool_registry import BuiltInSource, ToolInfo, ToolRegistry, tool_registry
from paycall_backend.x402.verifier import PaymentVerifier, VerificationResult

logger = logging.getLogger(__name__)

PAYMENT_INSTRUCTIONS = "Send an ERC-20 transfer to the recipient, then retry with X-Payment-Tx header"

def _data_tool(kind: str, usage_id: str, name: str, description: str, category: str) -> ToolInfo:
    return ToolInfo(
        id=usage_id,
        name=name,
        description=description,
        price="0.01",
        source=BuiltInSource(handler=partial(detailed_payload, kind)),
        category=category,
    )

# Flat price table for the anonymous /data endpoints
DATA_ENDPOINTS: Dict[str, ToolInfo] = {
    "market": _data_tool("market", "market-data", "Market Data API",
                         "Real-time stock market data including S&P 500, NASDAQ, and Dow Jones", "finance"),
    "crypto": _data_tool("crypto", "crypto-prices", "Crypto Prices API",
                         "Current cryptocurrency prices for Bitcoin, Ethereum, and MNEE", "crypto"),
    "weather": _data_tool("weather", "weather-data", "Weather Data API",
                          "Current weather data for any location worldwide", "weather"),
    "sentiment": _data_tool("sentiment", "social-sentiment", "Social Sentiment API",
                            "Social media sentiment analysis for any topic", "ai"),
    "web3": _data_tool("web3", "web3-analytics", "Web3 Analytics API",
                       "Web3 analytics including TVL, gas prices, and DEX volume", "crypto"),
}

def payment_requirements(amount: str) -> Dict[str, str]:
    """The payment block of a 402 challenge"""
    return {
        "amount": amount,
        "token": settings.PAYMENT_TOKEN_ADDRESS,
        "recipient": settings.SERVER_PAYMENT_ADDRESS,
        "network": settings.NETWORK,
    }

def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)

class ExecutionGateway:
    """Ties the verifier, the registry and the ledger into one request flow"""

    def __init__(self, chain, registry: ToolRegistry = None, ledger: Ledger = None):
        self.verifier = PaymentVerifier(chain)
        self.registry = registry or tool_registry
        self.ledger = ledger or default_ledger

    async def verify_payment(self, tx_hash: str, price: str) -> VerificationResult:
        try:
            result = await self.verifier.verify(
                tx_hash,
                price,
                settings.PAYMENT_TOKEN_ADDRESS,
                settings.SERVER_PAYMENT_ADDRESS
            )
        except Exception as e:
            logger.error(f"Chain lookup failed for {tx_hash}: {e}")
            raise ChainUnavailableError(str(e)) from e
        if not result.ok:
            raise PaymentRejectedError(result.reason.value, result.message, {"txHash": tx_hash})
        return result

    async def execute_tool(
        self,
        db: AsyncSession,
        agent_id: str,
        tool_id: str,
        params: Optional[Mapping[str, Any]] = None,
        tx_hash: Optional[str] = None
    ) -> Dict[str, Any]:
        """POST /tools/{id}/execute"""
        tool = await self.registry.resolve(db, tool_id)

        if not tx_hash:
            raise PaymentRequiredError(
                f'Tool "{tool.name}" requires payment',
                payment_requirements(tool.price),
                PAYMENT_INSTRUCTIONS
            )

        tx_hash = normalize_tx_hash(tx_hash)

        data, response_time = await self._settle_and_run(db, tool, agent_id, params, tx_hash)
        return {
            "success": True,
            "tool": tool.id,
            "responseTime": response_time,
            "payment": {"txHash": tx_hash, "amount": tool.price},
            "data": data,
        }

    async def unlock_data(
        self,
        db: AsyncSession,
        kind: str,
        params: Optional[Mapping[str, Any]] = None,
        tx_hash: Optional[str] = None,
        agent_id: str = "anonymous"
    ) -> Dict[str, Any]:
        """GET /data/{kind}: same challenge, anonymous caller"""
        tool = DATA_ENDPOINTS.get(kind)
        if not tool:
            raise NotFoundError("Data endpoint not found", "TOOL_NOT_FOUND", {"kind": kind})

        if not tx_hash:
            challenge = payment_requirements(tool.price)
            challenge["description"] = tool.description
            raise PaymentRequiredError("This endpoint requires payment", challenge)

        tx_hash = normalize_tx_hash(tx_hash)

        data, _ = await self._settle_and_run(db, tool, agent_id, params, tx_hash)
        return data

    async def _settle_and_run(self, db, tool: ToolInfo, agent_id: str, params, tx_hash: str):
        verification = await self.verify_payment(tx_hash, tool.price)

        payment = await self.ledger.record_paid_call(
            db,
            tx_hash,
            agent_id,
            tool,
            amount_token=from_token_units(verification.amount_units),
            metadata={"payer": verification.payer}
        )
        payment_id = payment.id
        logger.info(f"Payment verified, executing tool: {tool.id}")

        start = time.monotonic()
        try:
            data = await self.registry.execute(tool, params or {})
        except ProviderError as e:
            await self.ledger.log_usage(
                db, tool.id, agent_id,
                status_code=e.upstream_status,
                success=False,
                response_time_ms=_elapsed_ms(start),
                payment_id=payment_id,
                error_type="provider_error",
                error_message=f"Provider returned {e.upstream_status}: {e.body[:settings.PROVIDER_ERROR_DETAIL_MAX]}"
            )
            raise
        except ConfigurationError as e:
            await self.ledger.log_usage(
                db, tool.id, agent_id,
                status_code=500,
                success=False,
                response_time_ms=_elapsed_ms(start),
                payment_id=payment_id,
                error_type="configuration_error",
                error_message=e.message
            )
            raise
        except Exception as e:
            logger.error(f"Execution error for {tool.id}: {e}")
            await self.ledger.log_usage(
                db, tool.id, agent_id,
                status_code=500,
                success=False,
                response_time_ms=_elapsed_ms(start),
                payment_id=payment_id,
                error_type="execution_error",
                error_message=str(e)
            )
            raise ExecutionError(str(e)) from e

        response_time = _elapsed_ms(start)
        await self.ledger.log_usage(
            db, tool.id, agent_id,
            status_code=200,
            success=True,
            response_time_ms=response_time,
            payment_id=payment_id
        )
        return data, response_time
