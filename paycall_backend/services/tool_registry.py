"""
Tool Registry
Resolves tool ids to built-in generators or provider-proxied endpoints
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from paycall_backend.core.config import settings
from paycall_backend.core.exceptions import ConfigurationError, NotFoundError, ProviderError
from paycall_backend.database.models import Tool
from paycall_backend.services.builtin_data import BUILTIN_HANDLERS

logger = logging.getLogger(__name__)

EMPTY_PARAMETERS = {"type": "object", "properties": {}, "required": []}

@dataclass(frozen=True)
class BuiltInSource:
    handler: Callable[[Mapping[str, str]], Dict[str, Any]]

@dataclass(frozen=True)
class ProxySource:
    url: Optional[str]
    revenue_share: int
    provider_id: Optional[str] = None

ToolSource = Union[BuiltInSource, ProxySource]

@dataclass
class ToolInfo:
    """Everything needed to price and execute one tool"""
    id: str
    name: str
    description: str
    price: str
    source: ToolSource
    parameters: Dict[str, Any] = field(default_factory=lambda: dict(EMPTY_PARAMETERS))
    category: Optional[str] = None

    @property
    def is_builtin(self) -> bool:
        return isinstance(self.source, BuiltInSource)

    @property
    def provider_id(self) -> Optional[str]:
        return None if self.is_builtin else self.source.provider_id

    @property
    def revenue_share(self) -> int:
        return 0 if self.is_builtin else self.source.revenue_share

    @property
    def source_label(self) -> str:
        return "provider" if self.provider_id else "platform"

    def summary(self) -> Dict[str, Any]:
        """Listing shape used by GET /tools"""
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": f"${self.price}",
            "priceRaw": self.price,
            "parameters": self.parameters,
            "source": self.source_label,
        }
        if self.category:
            data["category"] = self.category
        return data

def _builtin(tool_id: str, name: str, description: str, parameters: Dict[str, Any] = None) -> ToolInfo:
    return ToolInfo(
        id=tool_id,
        name=name,
        description=description,
        price="0.01",
        source=BuiltInSource(handler=BUILTIN_HANDLERS[tool_id]),
        parameters=parameters or dict(EMPTY_PARAMETERS),
    )

# Platform-owned tools; checked before anything persisted
BUILTIN_TOOLS: Dict[str, ToolInfo] = {
    "market": _builtin(
        "market", "get_market_data",
        "Get real-time stock market data including S&P 500, NASDAQ, and Dow Jones indices"
    ),
    "crypto": _builtin(
        "crypto", "get_crypto_prices",
        "Get current cryptocurrency prices for Bitcoin, Ethereum, and MNEE"
    ),
    "weather": _builtin(
        "weather", "get_weather",
        "Get current weather data for a specific location",
        {"type": "object", "properties": {"location": {"type": "string", "description": "City name"}}, "required": []}
    ),
    "sentiment": _builtin(
        "sentiment", "get_sentiment",
        "Get social media sentiment analysis for a topic",
        {"type": "object", "properties": {"topic": {"type": "string", "description": "Topic to analyze"}}, "required": []}
    ),
    "web3": _builtin(
        "web3", "get_web3_analytics",
        "Get Web3 analytics including TVL, gas prices, and DEX volume"
    ),
}

def tool_from_model(api: Tool) -> ToolInfo:
    return ToolInfo(
        id=api.id,
        name=api.name,
        description=api.description or "",
        price=api.price_usd,
        source=ProxySource(
            url=api.external_url,
            revenue_share=api.revenue_share or settings.DEFAULT_REVENUE_SHARE,
            provider_id=api.provider_id,
        ),
        parameters=api.parameters or dict(EMPTY_PARAMETERS),
        category=api.category,
    )

def stringify_params(params: Mapping[str, Any]) -> Dict[str, str]:
    """Flatten a parameter bag into string query values, keeping order"""
    flat = {}
    for key, value in (params or {}).items():
        flat[str(key)] = value if isinstance(value, str) else json.dumps(value)
    return flat

class ToolRegistry:
    """Uniform lookup and execution over built-in and provider tools"""

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout

    def _reachable(self):
        return select(Tool).where(Tool.is_active == True, Tool.status == "approved")

    async def resolve(self, db: AsyncSession, tool_id: str) -> ToolInfo:
        builtin = BUILTIN_TOOLS.get(tool_id)
        if builtin:
            return builtin

        result = await db.execute(self._reachable().where(Tool.id == tool_id))
        api = result.scalar_one_or_none()
        if not api:
            raise NotFoundError("Tool not found", "TOOL_NOT_FOUND", {"toolId": tool_id})
        return tool_from_model(api)

    async def list_all(self, db: AsyncSession) -> List[ToolInfo]:
        result = await db.execute(self._reachable().order_by(Tool.created_at))
        persisted = [
            tool_from_model(api) for api in result.scalars().all()
            if api.id not in BUILTIN_TOOLS
        ]
        return list(BUILTIN_TOOLS.values()) + persisted

    async def execute(self, tool: ToolInfo, params: Mapping[str, Any] = None) -> Any:
        """Run the tool; raises ProviderError / ConfigurationError on failure"""
        flat = stringify_params(params or {})

        if isinstance(tool.source, BuiltInSource):
            return tool.source.handler(flat)

        if not tool.source.url:
            raise ConfigurationError()

        status, body = await self._fetch(tool.source.url, flat)
        if not 200 <= status < 300:
            logger.warning(
                f"Provider for {tool.id} returned {status}: "
                f"{body[:settings.PROVIDER_ERROR_DETAIL_MAX]}"
            )
            raise ProviderError(status, body)

        return json.loads(body)

    async def _fetch(self, url: str, params: Dict[str, str]) -> Tuple[int, str]:
        """GET the provider endpoint with params appended to its query string"""
        logger.info(f"Proxying to external URL: {url}")

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(
                url,
                params=params or None,
                headers={"User-Agent": settings.PROVIDER_USER_AGENT}
            )
            return response.status_code, response.text

tool_registry = ToolRegistry()

def get_tool_registry() -> ToolRegistry:
    return tool_registry
