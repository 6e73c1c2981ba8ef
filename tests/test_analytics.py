"""Tests for analytics aggregation and reports"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from paycall_backend.core.exceptions import ValidationError
from paycall_backend.database.models import Agent, Payment, Provider, Tool, UsageLog
from paycall_backend.services.analytics_service import (
    AnalyticsService,
    format_money,
    percentile,
    period_start,
    round_half_up,
    success_rate,
)


def _log(tool_id, agent_id, success=True, ms=100, error_type=None, created_at=None):
    return UsageLog(
        tool_id=tool_id,
        agent_id=agent_id,
        status_code=200 if success else 500,
        success=success,
        response_time_ms=ms,
        error_type=error_type,
        created_at=created_at or datetime.now(timezone.utc),
    )


def _payment(tx_hash, tool_id, agent_id, amount="0.01", created_at=None):
    return Payment(
        tx_hash=tx_hash,
        tool_id=tool_id,
        agent_id=agent_id,
        amount_usd=Decimal(amount),
        amount_token=Decimal(amount),
        network="mainnet",
        status="confirmed",
        created_at=created_at or datetime.now(timezone.utc),
    )


class TestHelpers:

    def test_percentile_nearest_rank(self):
        values = [10, 20, 30, 40, 50]
        assert percentile(values, 50) == 30
        assert percentile(values, 95) == 50
        assert percentile(values, 99) == 50

    def test_percentile_small_samples(self):
        assert percentile([], 50) == 0
        assert percentile([7], 1) == 7
        assert percentile([5, 1], 50) == 1

    def test_success_rate(self):
        assert success_rate(0, 0) == "100"
        assert success_rate(2, 3) == "66.7"
        assert success_rate(1, 8) == "12.5"
        assert success_rate(3, 3) == "100.0"

    def test_rounding(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(62.5) == 63
        assert format_money(Decimal("0.125")) == "0.13"
        assert format_money(Decimal("0")) == "0.00"

    def test_period_start(self):
        now = datetime(2026, 1, 10, tzinfo=timezone.utc)
        assert period_start("all", now) is None
        assert period_start("24h", now) == now - timedelta(hours=24)
        assert period_start("7d", now) == now - timedelta(days=7)

    def test_unknown_period(self):
        with pytest.raises(ValidationError):
            period_start("1y")


class TestOverview:

    async def test_empty(self, db):
        overview = await AnalyticsService().overview(db)

        assert overview["totalRequests"] == 0
        assert overview["successRate"] == "100"
        assert overview["totalRevenue"] == "0.00"
        assert overview["latency"] == {"p50": 0, "p95": 0, "p99": 0, "avg": 0}

    async def test_aggregates(self, db):
        """Test latency ignores failures and errors group by type"""
        db.add_all([
            _log("market", "a1", ms=10),
            _log("market", "a1", ms=20),
            _log("market", "a2", ms=30),
            _log("crypto", "a2", ms=40),
            _log("crypto", "a3", ms=50),
            _log("crypto", "a3", success=False, ms=9000, error_type="provider_error"),
            _log("weather", "a3", success=False, ms=0),
            _payment("0x01", "market", "a1"),
            _payment("0x02", "crypto", "a2", amount="0.05"),
        ])
        await db.commit()

        overview = await AnalyticsService().overview(db, "all")

        assert overview["totalRequests"] == 7
        assert overview["successfulRequests"] == 5
        assert overview["failedRequests"] == 2
        assert overview["successRate"] == "71.4"
        assert overview["uniqueAgents"] == 3
        assert overview["totalRevenue"] == "0.06"
        assert overview["latency"] == {"p50": 30, "p95": 50, "p99": 50, "avg": 30}
        assert {"apiId": "crypto", "count": 3} in overview["topApis"]
        assert overview["errorBreakdown"] == {"provider_error": 1, "unknown": 1}

    async def test_period_window(self, db):
        old = datetime.now(timezone.utc) - timedelta(days=3)
        db.add_all([_log("market", "a1", created_at=old), _log("market", "a1")])
        await db.commit()

        assert (await AnalyticsService().overview(db, "24h"))["totalRequests"] == 1
        assert (await AnalyticsService().overview(db, "7d"))["totalRequests"] == 2


class TestActivity:

    async def test_newest_first_and_masked(self, db):
        base = datetime.now(timezone.utc)
        db.add_all([
            _log("market", "agent-0123456789", created_at=base - timedelta(minutes=5)),
            _log("crypto", "agent-0123456789", created_at=base),
        ])
        await db.commit()

        activity = (await AnalyticsService().activity(db))["activity"]

        assert [a["toolId"] for a in activity] == ["crypto", "market"]
        assert activity[0]["agentId"] == "agent-01..."

    async def test_limit_capped(self, db):
        db.add_all([_log("market", "a1") for _ in range(3)])
        await db.commit()
        assert len((await AnalyticsService().activity(db, 2))["activity"]) == 2


class TestReports:

    async def _provider_with_tools(self, db):
        provider = Provider(
            name="Signals Inc",
            email="team@signals.example.com",
            wallet_address="0x4444444444444444444444444444444444444444",
            api_key="prov_signals",
            total_earned=Decimal("0.12"),
        )
        db.add(provider)
        await db.flush()
        for tool_id, share in (("sig-a", 80), ("sig-b", 50)):
            db.add(Tool(
                id=tool_id, provider_id=provider.id, name=tool_id, description="d",
                price_usd="0.10", revenue_share=share, external_url="https://x.example.com",
                status="approved", is_active=True,
            ))
        db.add_all([
            _payment("0x01", "sig-a", "a1", "0.10"),
            _payment("0x02", "sig-b", "a1", "0.10"),
            _log("sig-a", "a1", ms=100),
            _log("sig-b", "a1", success=False, error_type="provider_error"),
        ])
        await db.commit()
        return provider

    async def test_provider_report(self, db):
        """Test earnings sum each tool's own revenue share"""
        provider = await self._provider_with_tools(db)

        report = await AnalyticsService().provider_report(db, provider)

        apis = {api["id"]: api for api in report["apis"]}
        assert apis["sig-a"]["earned"] == "0.08"
        assert apis["sig-b"]["earned"] == "0.05"
        assert report["totals"]["earned"] == "0.13"
        assert report["totals"]["successRate"] == "50.0"
        assert report["provider"]["totalEarned"] == "0.12"
        assert "p99" not in report["totals"]["latency"]

    async def test_provider_without_tools(self, db):
        provider = Provider(name="New", email="n@example.com", wallet_address="0x5", api_key="prov_new")
        db.add(provider)
        await db.commit()

        report = await AnalyticsService().provider_report(db, provider)
        assert report["apis"] == []
        assert report["totals"]["earned"] == "0.00"

    async def test_agents_report(self, db):
        agent = Agent(wallet_address="0xabc", api_key="mnee_alpha", name="Alpha")
        db.add(agent)
        await db.flush()
        db.add_all([
            _log("market", agent.id, ms=10),
            _log("market", agent.id, ms=30),
            _log("crypto", agent.id, success=False),
            _payment("0x01", "market", agent.id),
            _payment("0x02", "market", agent.id),
        ])
        await db.commit()

        report = await AnalyticsService().agents_report(db, ["mnee_alpha", "prov_ignored", "mnee_unknown"])

        assert len(report["agents"]) == 1
        stats = report["agents"][0]
        assert stats["totalSpent"] == "0.02"
        assert stats["requestCount"] == 3
        assert stats["successRate"] == "66.7"
        assert stats["latency"] == {"p50": 10, "p95": 30, "avg": 20}
        assert stats["topTools"][0] == {"toolId": "market", "count": 2}
        assert report["totals"]["spent"] == "0.02"

    async def test_agents_report_no_keys(self, db):
        report = await AnalyticsService().agents_report(db, ["prov_x"])
        assert report["agents"] == []
        assert report["totals"]["successRate"] == "100"


class TestAnalyticsApi:

    async def test_overview_endpoint(self, client):
        response = await client.get("/analytics/overview", params={"period": "7d"})
        assert response.status_code == 200
        assert response.json()["period"] == "7d"

    async def test_bad_period(self, client):
        response = await client.get("/analytics/overview", params={"period": "1y"})
        assert response.status_code == 422

    async def test_tool_stats_default_period(self, client):
        response = await client.get("/analytics/tools/market/stats")
        assert response.status_code == 200
        assert response.json()["period"] == "7d"
        assert response.json()["successRate"] == "100"

    async def test_api_summary_missing(self, client):
        response = await client.get("/analytics/apis/nope")
        assert response.status_code == 404

    async def test_my_provider_requires_key(self, client):
        response = await client.get("/analytics/my-provider")
        assert response.status_code == 401

    async def test_my_agents(self, client, agent):
        response = await client.post("/analytics/my-agents", json={"apiKeys": [agent.api_key]})
        assert response.status_code == 200
        assert response.json()["agents"][0]["id"] == agent.id
