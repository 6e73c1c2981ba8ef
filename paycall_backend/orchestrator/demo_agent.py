"""
Demo Agent
Autonomous agent session: register, choose a tool with an LLM, pay on-chain,
fetch the data and deliver a recommendation, streaming every step
"""

import asyncio
import json
import time
import uuid
import logging
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Optional

from paycall_backend.blockchain.chain_client import load_account, to_token_units
from paycall_backend.core.config import settings
from paycall_backend.core.exceptions import OrchestratorError
from paycall_backend.orchestrator.event_broadcaster import EventBroadcaster, EventType
from paycall_backend.services.ledger import Ledger, ledger as default_ledger
from paycall_backend.services.llm_client import LLMClient
from paycall_backend.services.tool_registry import ToolRegistry, tool_registry

logger = logging.getLogger(__name__)

DEMO_AGENT_NAME = "Live Demo Agent"
DEMO_AGENT_EMAIL = "demo@paycall-marketplace.com"

class AgentState(str, Enum):
    IDLE = "idle"
    REGISTERING = "registering"
    DECIDING = "deciding"
    PAYING = "paying"
    FETCHING_DATA = "fetching_data"
    ANALYZING = "analyzing"
    DELIVERED = "delivered"
    ERROR = "error"

class DemoAgentSession:
    """One live workflow; owns its observers and its in-memory state"""

    def __init__(
        self,
        session_id: str,
        session_factory: Callable[[], Any],
        chain,
        llm: LLMClient,
        registry: ToolRegistry = None,
        ledger: Ledger = None,
        private_key: Optional[str] = None,
        wallet_address: Optional[str] = None
    ):
        self.session_id = session_id
        self.session_factory = session_factory
        self.chain = chain
        self.llm = llm
        self.registry = registry or tool_registry
        self.ledger = ledger or default_ledger
        self.private_key = private_key or settings.DEMO_AGENT_PRIVATE_KEY
        self.wallet_address = wallet_address or settings.DEMO_AGENT_WALLET

        self.broadcaster = EventBroadcaster()
        self.state = AgentState.IDLE
        self.agent_id: Optional[str] = None
        self.account = None
        self.tx_hash: Optional[str] = None
        self.task: Optional[asyncio.Task] = None

    @property
    def started(self) -> bool:
        return self.task is not None

    def start(self) -> asyncio.Task:
        """Launch the workflow once; later calls return the same task"""
        if self.task is None:
            self.task = asyncio.create_task(self.run())
        return self.task

    async def emit(self, event_type: EventType, content: str, metadata: dict = None):
        await self.broadcaster.emit(event_type, content, metadata)

    async def reset(self):
        """Forget the agent identity; an in-flight step is left to finish"""
        self.agent_id = None
        await self.emit(EventType.ACTION, "Agent reset by user")

    async def handle_message(self, raw: str):
        try:
            message = json.loads(raw)
        except ValueError:
            return
        if isinstance(message, dict) and message.get("type") == "reset":
            await self.reset()

    async def run(self):
        try:
            await self._workflow()
        except Exception as e:
            self.state = AgentState.ERROR
            logger.error(f"Agent workflow error in session {self.session_id}: {e}")
            await self.emit(EventType.ERROR, f"❌ Error: {e}")

    async def _workflow(self):
        agent_id = await self._register()
        self._initialize_account()
        await self.emit(EventType.ACTION, "✅ Payment account ready for transactions")

        tool, arguments = await self._decide()
        price = tool.price

        tx_hash = await self._pay(tool)

        async with self.session_factory() as db:
            await self.ledger.record_paid_call(
                db, tx_hash, agent_id, tool,
                amount_token=Decimal(price),
                metadata={"source": "demo", "sessionId": self.session_id}
            )

        data = await self._fetch(agent_id, tool, arguments)

        await self.emit(
            EventType.PAYMENT,
            f"✅ Payment successful! ${price} paid on {settings.NETWORK}",
            {
                "amount": price,
                "network": settings.NETWORK,
                "txHash": tx_hash,
                "blockExplorer": f"https://etherscan.io/tx/{tx_hash}",
            }
        )
        preview = json.dumps(data, default=str)[:200] + "..."
        await self.emit(
            EventType.DATA,
            f"✅ Data received from {tool.name}",
            {"data": data, "preview": preview}
        )

        self.state = AgentState.ANALYZING
        await self.emit(EventType.THOUGHT, "📈 Analyzing data and formulating trading recommendation...")
        recommendation = await self.llm.analyze(data)

        self.state = AgentState.DELIVERED
        await self.emit(
            EventType.RECOMMENDATION,
            recommendation,
            {"totalCost": price, "apiUsed": tool.id}
        )
        await self.emit(
            EventType.ACTION,
            f"✅ Demo complete! Total cost: ${price} (paid on {settings.NETWORK})",
            {
                "agentId": agent_id,
                "totalCost": price,
                "network": settings.NETWORK,
                "txHash": tx_hash,
            }
        )

    async def _register(self) -> str:
        self.state = AgentState.REGISTERING
        await self.emit(EventType.THOUGHT, "🤖 Initializing autonomous agent...")
        await self.emit(EventType.ACTION, "Registering with marketplace...")

        async with self.session_factory() as db:
            agent, created = await self.ledger.register_agent(
                db,
                self.wallet_address,
                name=DEMO_AGENT_NAME,
                email=DEMO_AGENT_EMAIL,
                api_key=f"{settings.API_KEY_PREFIX_AGENT}demo_{uuid.uuid4().hex}"
            )
            agent_id = agent.id
        verb = "Registered successfully!" if created else "Found existing registration!"
        await self.emit(
            EventType.ACTION,
            f"✅ {verb} Agent ID: {agent_id[:8]}...",
            {"agentId": agent_id}
        )

        self.agent_id = agent_id
        return agent_id

    def _initialize_account(self):
        if not self.private_key:
            raise OrchestratorError("DEMO_AGENT_PRIVATE_KEY is not configured")
        self.account = load_account(self.private_key)
        logger.info(f"Payment account ready: {self.account.address}")

    async def _decide(self):
        self.state = AgentState.DECIDING
        await self.emit(EventType.THOUGHT, "🔍 Discovering available data APIs in marketplace...")

        async with self.session_factory() as db:
            tools = await self.registry.list_all(db)
        listing = "\n".join(f"• {t.id}: ${t.price} - {t.description}" for t in tools)
        await self.emit(
            EventType.ACTION,
            f"Found {len(tools)} data APIs:\n{listing}",
            {"tools": [t.id for t in tools]}
        )

        await self.emit(EventType.THOUGHT, "🧠 Analyzing available tools and making autonomous purchase decision...")
        choice = await self.llm.choose_tool(tools)

        tool = next((t for t in tools if t.id == choice.tool_id), None)
        if tool is None:
            raise OrchestratorError(f"Tool not found: {choice.tool_id}")

        await self.emit(
            EventType.THOUGHT,
            f"💡 Decision: {tool.id}\nReasoning: {choice.reasoning}",
            {"tool": tool.id, "args": choice.arguments, "price": tool.price}
        )
        return tool, choice.arguments

    async def _pay(self, tool) -> str:
        self.state = AgentState.PAYING
        price = tool.price
        await self.emit(
            EventType.ACTION,
            f"💳 Initiating automatic blockchain payment: ${price}...",
            {"amount": price, "network": settings.NETWORK}
        )
        await self.emit(
            EventType.PAYMENT,
            f"💳 Payment required: ${price}",
            {
                "amount": price,
                "token": settings.PAYMENT_TOKEN_ADDRESS,
                "recipient": settings.SERVER_PAYMENT_ADDRESS,
                "network": settings.NETWORK,
            }
        )
        await self.emit(EventType.ACTION, "⛓️ Executing blockchain payment...")

        tx_hash = await self.chain.send_transfer(
            self.account,
            settings.SERVER_PAYMENT_ADDRESS,
            to_token_units(price)
        )
        self.tx_hash = tx_hash
        await self.emit(
            EventType.PAYMENT,
            f"✅ Payment transaction submitted: {tx_hash[:10]}...",
            {"txHash": tx_hash, "amount": price}
        )

        await self.emit(EventType.ACTION, "⏳ Waiting for transaction confirmation...")
        receipt = await self.chain.wait_for_confirmation(tx_hash)
        await self.emit(
            EventType.PAYMENT,
            "✅ Payment confirmed on blockchain!",
            {"txHash": tx_hash, "blockNumber": receipt.get("blockNumber")}
        )
        return tx_hash

    async def _fetch(self, agent_id: str, tool, arguments):
        """Run the tool in-process; the payment is already on chain"""
        self.state = AgentState.FETCHING_DATA
        start = time.monotonic()
        try:
            data = await self.registry.execute(tool, arguments)
        except Exception as e:
            async with self.session_factory() as db:
                await self.ledger.log_usage(
                    db, tool.id, agent_id,
                    status_code=500,
                    success=False,
                    response_time_ms=int((time.monotonic() - start) * 1000),
                    error_type="execution_error",
                    error_message=str(e)
                )
            raise

        async with self.session_factory() as db:
            await self.ledger.log_usage(
                db, tool.id, agent_id,
                status_code=200,
                success=True,
                response_time_ms=int((time.monotonic() - start) * 1000)
            )
        return data
