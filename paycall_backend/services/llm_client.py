"""
LLM Client
OpenAI-compatible chat completions used by the demo agent
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from paycall_backend.core.config import settings
from paycall_backend.core.exceptions import ConfigurationError, NoToolSelectedError, OrchestratorError
from paycall_backend.services.tool_registry import ToolInfo

logger = logging.getLogger(__name__)

CHOOSER_PROMPT = """You are an autonomous trading agent with access to various paid data APIs.
Your goal is to choose ONE data API that will provide the most value for making a trading recommendation.
Consider both the cost and the informational value of each API.
Be strategic and cost-conscious."""

CHOOSER_REQUEST = (
    "Analyze the available tools and choose ONE to purchase for making a trading "
    "recommendation. Explain your reasoning."
)

ANALYST_PROMPT = (
    "You are a professional trading analyst. Provide concise, actionable trading "
    "insights based on the data. Be specific and clear."
)

@dataclass
class ToolChoice:
    tool_id: str
    arguments: Dict[str, Any]
    reasoning: str

def tool_functions(tools: List[ToolInfo]) -> List[Dict[str, Any]]:
    """Describe each tool as a callable function, price included"""
    return [
        {
            "type": "function",
            "function": {
                "name": tool.id,
                "description": f"{tool.description} - ${tool.price}",
                "parameters": tool.parameters,
            },
        }
        for tool in tools
    ]

class LLMClient:
    """Minimal chat-completions client"""

    def __init__(self, api_key: Optional[str] = None, base_url: str = None, model: str = None, timeout: float = 60.0):
        self.api_key = api_key or settings.OPENAI_API_KEY
        self.base_url = (base_url or settings.OPENAI_BASE_URL).rstrip("/")
        self.model = model or settings.OPENAI_MODEL
        self.timeout = timeout

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise ConfigurationError("OPENAI_API_KEY is not configured")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(f"{self.base_url}/chat/completions", json=payload, headers=headers)

        if response.status_code >= 400:
            raise OrchestratorError(f"Language model request failed ({response.status_code}): {response.text[:200]}")
        return response.json()

    async def choose_tool(self, tools: List[ToolInfo]) -> ToolChoice:
        """Ask the model to pick exactly one tool under a cost/value tradeoff"""
        completion = await self._post({
            "model": self.model,
            "messages": [
                {"role": "system", "content": CHOOSER_PROMPT},
                {"role": "user", "content": CHOOSER_REQUEST},
            ],
            "tools": tool_functions(tools),
            "tool_choice": "required",
        })

        message = completion["choices"][0]["message"]
        tool_calls = message.get("tool_calls") or []
        call = tool_calls[0] if tool_calls else None
        if not call or call.get("type", "function") != "function":
            raise NoToolSelectedError()

        try:
            arguments = json.loads(call["function"].get("arguments") or "{}")
        except ValueError:
            logger.warning(f"Unparseable tool arguments: {call['function'].get('arguments')}")
            arguments = {}

        reasoning = message.get("content") or "Strategic choice based on value/cost ratio"
        return ToolChoice(tool_id=call["function"]["name"], arguments=arguments, reasoning=reasoning)

    async def analyze(self, payload: Any) -> str:
        completion = await self._post({
            "model": self.model,
            "messages": [
                {"role": "system", "content": ANALYST_PROMPT},
                {
                    "role": "user",
                    "content": f"Analyze this data and provide a trading recommendation:\n\n{json.dumps(payload, indent=2)}",
                },
            ],
            "max_tokens": 500,
        })
        return completion["choices"][0]["message"].get("content") or "Analysis complete"
