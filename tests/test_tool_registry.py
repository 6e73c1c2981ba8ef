"""Tests for tool resolution and execution"""

import uuid

import pytest
from unittest.mock import AsyncMock, patch

from paycall_backend.core.exceptions import ConfigurationError, NotFoundError, ProviderError
from paycall_backend.database.models import Provider, Tool
from paycall_backend.services.tool_registry import (
    BUILTIN_TOOLS,
    ProxySource,
    ToolInfo,
    ToolRegistry,
    stringify_params,
)


async def _provider_tool(db, tool_id="abcd1234-weather-pro", status="approved", is_active=True, url="https://provider.example.com/api"):
    provider = Provider(
        name="Weather Co",
        email="ops@weather.example.com",
        wallet_address=f"0x{uuid.uuid4().hex}",
        api_key=f"prov_{tool_id}",
    )
    db.add(provider)
    await db.flush()
    db.add(Tool(
        id=tool_id,
        provider_id=provider.id,
        name="Weather Pro",
        description="Hyperlocal forecasts",
        category="weather",
        price_usd="0.05",
        revenue_share=80,
        external_url=url,
        status=status,
        is_active=is_active,
    ))
    await db.commit()
    return provider


class TestResolve:

    async def test_builtin(self, db):
        tool = await ToolRegistry().resolve(db, "market")
        assert tool.is_builtin
        assert tool.name == "get_market_data"
        assert tool.price == "0.01"

    async def test_provider_tool(self, db):
        """Test an active approved row resolves to a proxy tool"""
        provider = await _provider_tool(db)

        tool = await ToolRegistry().resolve(db, "abcd1234-weather-pro")

        assert not tool.is_builtin
        assert tool.price == "0.05"
        assert tool.provider_id == provider.id
        assert tool.revenue_share == 80

    async def test_builtin_wins_over_persisted_row(self, db):
        await _provider_tool(db, tool_id="market")

        tool = await ToolRegistry().resolve(db, "market")

        assert tool.is_builtin
        assert tool.price == "0.01"

    @pytest.mark.parametrize("status,is_active", [("pending", True), ("approved", False), ("rejected", True)])
    async def test_unreachable_rows(self, db, status, is_active):
        await _provider_tool(db, status=status, is_active=is_active)

        with pytest.raises(NotFoundError) as exc:
            await ToolRegistry().resolve(db, "abcd1234-weather-pro")
        assert exc.value.code == "TOOL_NOT_FOUND"

    async def test_unknown(self, db):
        with pytest.raises(NotFoundError):
            await ToolRegistry().resolve(db, "nope")


class TestListAll:

    async def test_builtins_then_providers(self, db):
        await _provider_tool(db)
        await _provider_tool(db, tool_id="abcd1234-hidden", status="pending")

        tools = await ToolRegistry().list_all(db)
        ids = [t.id for t in tools]

        assert ids[:5] == ["market", "crypto", "weather", "sentiment", "web3"]
        assert "abcd1234-weather-pro" in ids
        assert "abcd1234-hidden" not in ids

    async def test_summary_shape(self, db):
        summary = BUILTIN_TOOLS["weather"].summary()
        assert summary["price"] == "$0.01"
        assert summary["priceRaw"] == "0.01"
        assert summary["source"] == "platform"
        assert "location" in summary["parameters"]["properties"]


class TestExecute:

    async def test_builtin_handler(self):
        data = await ToolRegistry().execute(BUILTIN_TOOLS["weather"], {"location": "Paris"})
        assert data["location"] == "Paris"
        assert data["temperature"] == 72

    async def test_builtin_defaults(self):
        data = await ToolRegistry().execute(BUILTIN_TOOLS["sentiment"], {})
        assert data["topic"] == "crypto"

    async def test_proxy_success(self):
        """Test provider JSON is returned verbatim"""
        tool = ToolInfo("p", "P", "d", "0.05", ProxySource(url="https://provider.example.com/api", revenue_share=80))
        registry = ToolRegistry()

        with patch.object(registry, "_fetch", AsyncMock(return_value=(200, '{"forecast": "sunny"}'))) as fetch:
            data = await registry.execute(tool, {"days": 3, "city": "Oslo"})

        assert data == {"forecast": "sunny"}
        fetch.assert_awaited_once_with("https://provider.example.com/api", {"days": "3", "city": "Oslo"})

    async def test_proxy_failure(self):
        tool = ToolInfo("p", "P", "d", "0.05", ProxySource(url="https://provider.example.com/api", revenue_share=80))
        registry = ToolRegistry()

        with patch.object(registry, "_fetch", AsyncMock(return_value=(503, "upstream down"))):
            with pytest.raises(ProviderError) as exc:
                await registry.execute(tool, {})

        assert exc.value.upstream_status == 503
        assert exc.value.to_dict()["details"] == "upstream down"

    async def test_missing_url(self):
        tool = ToolInfo("p", "P", "d", "0.05", ProxySource(url=None, revenue_share=80))
        with pytest.raises(ConfigurationError):
            await ToolRegistry().execute(tool, {})


def test_stringify_params():
    assert stringify_params({"a": "x", "b": 2, "c": [1, 2], "d": True}) == {
        "a": "x", "b": "2", "c": "[1, 2]", "d": "true"
    }
