"""
PayCall Client

Async client for agents: discover tools, answer 402 challenges, execute.
"""

import logging
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union
from urllib.parse import urljoin

import aiohttp

from .exceptions import (
    AuthenticationError,
    DuplicatePaymentError,
    NetworkError,
    NotFoundError,
    PayCallError,
    PaymentLimitError,
    PaymentRejectedError,
    PaymentRequiredError,
    ProviderError,
    ServerError,
)

logger = logging.getLogger(__name__)

# Receives the 402 payment block, returns the transaction hash
Payer = Callable[[Dict[str, Any]], Awaitable[str]]


class PayCallClient:
    """
    Client for the PayCall marketplace

    Example:
        async with PayCallClient("https://api.example.com", api_key="mnee_...") as client:
            tools = await client.list_tools()
            result = await client.pay_and_execute("market", {}, payer=my_payer)
    """

    def __init__(self, base_url: str = "http://localhost:8000", api_key: Optional[str] = None, timeout: int = 60):
        self.base_url = base_url.rstrip("/") + "/"
        self.api_key = api_key
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        await self._get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session"""
        if self._session is None or self._session.closed:
            headers = {
                "Content-Type": "application/json",
                "User-Agent": "paycall-sdk-python/1.0.0",
            }
            if self.api_key:
                headers["X-API-Key"] = self.api_key
            self._session = aiohttp.ClientSession(
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    async def _request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Tuple[int, Dict[str, Any]]:
        """Raw call; returns (status, json body)"""
        session = await self._get_session()
        url = urljoin(self.base_url, endpoint.lstrip("/"))
        try:
            async with session.request(method, url, json=data, headers=headers) as response:
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    body = {"error": await response.text()}
                return response.status, body or {}
        except aiohttp.ClientError as e:
            raise NetworkError(f"Network error: {str(e)}")

    def _raise_for_status(self, status: int, body: Dict[str, Any]):
        if status < 400:
            return

        message = body.get("error") or f"Request failed with status {status}"
        code = body.get("code")

        if status == 401:
            raise AuthenticationError(message, code or "INVALID_API_KEY")
        if status == 402:
            if "payment" in body and code in (None, "PAYMENT_REQUIRED"):
                raise PaymentRequiredError(body.get("message", message), body["payment"])
            raise PaymentRejectedError(message, code, body, status)
        if status == 404:
            raise NotFoundError(message, code, body, status)
        if status == 409 and code == "DUPLICATE_PAYMENT":
            raise DuplicatePaymentError(message, code, body, status)
        if status == 502:
            raise ProviderError(message, code, body, status)
        if status >= 500:
            raise ServerError(message, code, body, status)
        raise PayCallError(message, code, body, status)

    async def list_tools(self) -> Dict[str, Any]:
        """All tools plus the marketplace payment configuration"""
        status, body = await self._request("GET", "/tools")
        self._raise_for_status(status, body)
        return body

    async def get_tool(self, tool_id: str) -> Dict[str, Any]:
        status, body = await self._request("GET", f"/tools/{tool_id}")
        self._raise_for_status(status, body)
        return body

    async def execute(
        self,
        tool_id: str,
        params: Optional[Dict[str, Any]] = None,
        payment_tx: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Execute a tool.

        Without payment_tx the server answers with a challenge, raised as
        PaymentRequiredError.
        """
        headers = {"X-Payment-Tx": payment_tx} if payment_tx else None
        status, body = await self._request(
            "POST", f"/tools/{tool_id}/execute", {"params": params or {}}, headers
        )
        self._raise_for_status(status, body)
        return body

    async def pay_and_execute(
        self,
        tool_id: str,
        params: Optional[Dict[str, Any]] = None,
        payer: Payer = None,
        max_amount: Optional[Union[str, Decimal]] = None
    ) -> Dict[str, Any]:
        """Execute, paying through `payer` when challenged, then retry once"""
        if payer is None:
            raise ValueError("payer is required")

        try:
            return await self.execute(tool_id, params)
        except PaymentRequiredError as challenge:
            if max_amount is not None and Decimal(challenge.amount) > Decimal(str(max_amount)):
                raise PaymentLimitError(challenge.amount, str(max_amount))

            logger.info(f"Paying {challenge.amount} for {tool_id}")
            tx_hash = await payer(challenge.payment)
            return await self.execute(tool_id, params, payment_tx=tx_hash)
