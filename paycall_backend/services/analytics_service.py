"""
Analytics Service
Read-side aggregation over payments and usage logs
"""

import math
import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from paycall_backend.core.config import settings
from paycall_backend.core.exceptions import NotFoundError, ValidationError
from paycall_backend.database.models import Agent, Payment, Provider, Tool, UsageLog

logger = logging.getLogger(__name__)

PERIODS = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "all": None,
}

def percentile(values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile; 0 for an empty sample"""
    if not values:
        return 0
    ordered = sorted(values)
    index = math.ceil((p / 100) * len(ordered)) - 1
    return ordered[max(0, index)]

def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))

def format_money(amount: Decimal) -> str:
    return str(Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))

def success_rate(successful: int, total: int) -> str:
    """One-decimal percentage string; "100" when nothing was attempted"""
    if total == 0:
        return "100"
    rate = Decimal(successful) * 100 / Decimal(total)
    return str(rate.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))

def period_start(period: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Lower bound for a reporting window; None means all time"""
    if period not in PERIODS:
        raise ValidationError(
            f"Unknown period '{period}'",
            details={"allowed": list(PERIODS)}
        )
    window = PERIODS[period]
    if window is None:
        return None
    return (now or datetime.now(timezone.utc)) - window

def latency_summary(logs: Iterable[UsageLog], include_p99: bool = True) -> Dict[str, int]:
    """Percentiles over successful calls with a positive response time"""
    times = [log.response_time_ms for log in logs if log.success and log.response_time_ms and log.response_time_ms > 0]
    summary = {
        "p50": round_half_up(percentile(times, 50)),
        "p95": round_half_up(percentile(times, 95)),
    }
    if include_p99:
        summary["p99"] = round_half_up(percentile(times, 99))
    summary["avg"] = round_half_up(sum(times) / len(times)) if times else 0
    return summary

def _sum_usd(payments: Iterable[Payment]) -> Decimal:
    return sum((Decimal(p.amount_usd) for p in payments), Decimal("0"))

def _empty_totals(money_key: str) -> Dict[str, Any]:
    return {
        money_key: "0.00",
        "requests": 0,
        "successRate": "100",
        "latency": {"p50": 0, "p95": 0, "avg": 0},
    }

class AnalyticsService:
    """Observational metrics; nothing here feeds back into payment decisions"""

    async def _usage_logs(self, db: AsyncSession, since: Optional[datetime], *criteria) -> List[UsageLog]:
        stmt = select(UsageLog).where(*criteria)
        if since is not None:
            stmt = stmt.where(UsageLog.created_at >= since)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def _confirmed_payments(self, db: AsyncSession, since: Optional[datetime], *criteria) -> List[Payment]:
        stmt = select(Payment).where(Payment.status == "confirmed", *criteria)
        if since is not None:
            stmt = stmt.where(Payment.created_at >= since)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def overview(self, db: AsyncSession, period: str = "all") -> Dict[str, Any]:
        since = period_start(period)
        logs = await self._usage_logs(db, since)
        payments = await self._confirmed_payments(db, since)

        successful = [log for log in logs if log.success]
        failed = [log for log in logs if not log.success]

        top_apis = Counter(log.tool_id for log in logs).most_common(5)
        errors = Counter(log.error_type or "unknown" for log in failed)

        return {
            "period": period,
            "totalRevenue": format_money(_sum_usd(payments)),
            "totalRequests": len(logs),
            "successfulRequests": len(successful),
            "failedRequests": len(failed),
            "successRate": success_rate(len(successful), len(logs)),
            "uniqueAgents": len({log.agent_id for log in logs}),
            "latency": latency_summary(logs),
            "topApis": [{"apiId": api_id, "count": count} for api_id, count in top_apis],
            "errorBreakdown": dict(errors),
        }

    async def activity(self, db: AsyncSession, limit: Optional[int] = None) -> Dict[str, Any]:
        limit = min(limit or 20, 100)
        result = await db.execute(
            select(UsageLog).order_by(UsageLog.created_at.desc()).limit(limit)
        )
        return {
            "activity": [
                {
                    "id": log.id,
                    "toolId": log.tool_id,
                    "agentId": f"{log.agent_id[:8]}...",
                    "success": log.success,
                    "responseTime": log.response_time_ms,
                    "errorType": log.error_type,
                    "createdAt": log.created_at.isoformat() if log.created_at else None,
                }
                for log in result.scalars().all()
            ]
        }

    async def tool_stats(self, db: AsyncSession, tool_id: str, period: str = "7d") -> Dict[str, Any]:
        since = period_start(period)
        logs = await self._usage_logs(db, since, UsageLog.tool_id == tool_id)
        payments = await self._confirmed_payments(db, since, Payment.tool_id == tool_id)
        successful = [log for log in logs if log.success]

        return {
            "toolId": tool_id,
            "period": period,
            "totalRequests": len(logs),
            "successfulRequests": len(successful),
            "failedRequests": len(logs) - len(successful),
            "successRate": success_rate(len(successful), len(logs)),
            "revenue": format_money(_sum_usd(payments)),
            "latency": latency_summary(logs),
            "uniqueAgents": len({log.agent_id for log in logs}),
        }

    async def api_summary(self, db: AsyncSession, api_id: str) -> Dict[str, Any]:
        api = await db.get(Tool, api_id)
        if not api:
            raise NotFoundError("API not found", "TOOL_NOT_FOUND", {"apiId": api_id})

        logs = await self._usage_logs(db, None, UsageLog.tool_id == api_id)
        payments = await self._confirmed_payments(db, None, Payment.tool_id == api_id)

        return {
            "api": {"id": api.id, "name": api.name, "price": api.price_usd},
            "requestCount": len(logs),
            "revenue": format_money(_sum_usd(payments)),
        }

    async def agents_report(self, db: AsyncSession, api_keys: List[str], period: str = "all") -> Dict[str, Any]:
        """Per-agent spend and reliability for the agents owning the given keys"""
        since = period_start(period)
        keys = [k for k in api_keys or [] if k.startswith(settings.API_KEY_PREFIX_AGENT)]
        if not keys:
            return {"period": period, "agents": [], "totals": _empty_totals("spent")}

        result = await db.execute(select(Agent).where(Agent.api_key.in_(keys)))
        agents = list(result.scalars().all())
        if not agents:
            return {"period": period, "agents": [], "totals": _empty_totals("spent")}

        agent_ids = [agent.id for agent in agents]
        logs = await self._usage_logs(db, since, UsageLog.agent_id.in_(agent_ids))
        payments = await self._confirmed_payments(db, since, Payment.agent_id.in_(agent_ids))

        agent_stats = []
        for agent in agents:
            agent_logs = [log for log in logs if log.agent_id == agent.id]
            successful = [log for log in agent_logs if log.success]
            spent = _sum_usd(p for p in payments if p.agent_id == agent.id)
            top_tools = Counter(log.tool_id for log in agent_logs).most_common(3)

            agent_stats.append({
                "id": agent.id,
                "name": agent.name,
                "walletAddress": agent.wallet_address,
                "totalSpent": format_money(spent),
                "requestCount": len(agent_logs),
                "successCount": len(successful),
                "failedCount": len(agent_logs) - len(successful),
                "successRate": success_rate(len(successful), len(agent_logs)),
                "latency": latency_summary(agent_logs, include_p99=False),
                "lastActiveAt": agent.last_active_at.isoformat() if agent.last_active_at else None,
                "topTools": [{"toolId": tool_id, "count": count} for tool_id, count in top_tools],
            })

        all_successful = [log for log in logs if log.success]
        return {
            "period": period,
            "agents": agent_stats,
            "totals": {
                "spent": format_money(_sum_usd(payments)),
                "requests": len(logs),
                "successful": len(all_successful),
                "failed": len(logs) - len(all_successful),
                "successRate": success_rate(len(all_successful), len(logs)),
                "latency": latency_summary(logs, include_p99=False),
            },
        }

    async def provider_report(self, db: AsyncSession, provider: Provider, period: str = "all") -> Dict[str, Any]:
        """Per-tool revenue and reliability for one provider"""
        since = period_start(period)
        provider_block = {
            "id": provider.id,
            "name": provider.name,
            "totalEarned": format_money(provider.total_earned or Decimal("0")),
        }

        result = await db.execute(select(Tool).where(Tool.provider_id == provider.id))
        apis = list(result.scalars().all())
        if not apis:
            return {"period": period, "provider": provider_block, "apis": [], "totals": _empty_totals("earned")}

        api_ids = [api.id for api in apis]
        logs = await self._usage_logs(db, since, UsageLog.tool_id.in_(api_ids))
        payments = await self._confirmed_payments(db, since, Payment.tool_id.in_(api_ids))

        api_stats = []
        total_earned = Decimal("0")
        for api in apis:
            api_logs = [log for log in logs if log.tool_id == api.id]
            successful = [log for log in api_logs if log.success]
            revenue = _sum_usd(p for p in payments if p.tool_id == api.id)
            share = api.revenue_share or settings.DEFAULT_REVENUE_SHARE
            earned = revenue * Decimal(share) / Decimal(100)
            total_earned += earned

            api_stats.append({
                "id": api.id,
                "name": api.name,
                "price": api.price_usd,
                "requestCount": len(api_logs),
                "successCount": len(successful),
                "failedCount": len(api_logs) - len(successful),
                "successRate": success_rate(len(successful), len(api_logs)),
                "latency": latency_summary(api_logs, include_p99=False),
                "revenue": format_money(revenue),
                "earned": format_money(earned),
                "isActive": api.is_active,
                "status": api.status,
            })

        all_successful = [log for log in logs if log.success]
        return {
            "period": period,
            "provider": provider_block,
            "apis": api_stats,
            "totals": {
                "earned": format_money(total_earned),
                "requests": len(logs),
                "successful": len(all_successful),
                "failed": len(logs) - len(all_successful),
                "successRate": success_rate(len(all_successful), len(logs)),
                "latency": latency_summary(logs, include_p99=False),
            },
        }

analytics_service = AnalyticsService()
