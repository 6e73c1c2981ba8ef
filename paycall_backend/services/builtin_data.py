"""
Built-in data generators
Deterministic payloads served by the platform's own tools and /data endpoints
"""

import time
from typing import Any, Callable, Dict, Mapping

def _now_ms() -> int:
    return int(time.time() * 1000)

# Flat payloads returned by POST /tools/{id}/execute

def market_data(params: Mapping[str, str]) -> Dict[str, Any]:
    return {
        "timestamp": _now_ms(),
        "sp500": {"price": 4783.35, "change": 40.85, "changePercent": 0.86},
        "nasdaq": {"price": 15095.14, "change": -45.23, "changePercent": -0.3},
        "dowJones": {"price": 37305.16, "change": 134.58, "changePercent": 0.36},
    }

def crypto_prices(params: Mapping[str, str]) -> Dict[str, Any]:
    return {
        "timestamp": _now_ms(),
        "bitcoin": {"symbol": "BTC", "price": 43250.5, "change24h": 2.34},
        "ethereum": {"symbol": "ETH", "price": 2285.75, "change24h": 1.87},
        "mnee": {"symbol": "MNEE", "price": 1.0, "change24h": 0.01},
    }

def weather_data(params: Mapping[str, str]) -> Dict[str, Any]:
    return {
        "timestamp": _now_ms(),
        "location": params.get("location") or "New York",
        "temperature": 72,
        "humidity": 65,
        "conditions": "Partly Cloudy",
        "windSpeed": 12,
    }

def sentiment_data(params: Mapping[str, str]) -> Dict[str, Any]:
    return {
        "timestamp": _now_ms(),
        "topic": params.get("topic") or "crypto",
        "sentiment": 0.68,
        "volume": 15420,
        "trending": True,
    }

def web3_analytics(params: Mapping[str, str]) -> Dict[str, Any]:
    return {
        "timestamp": _now_ms(),
        "totalValueLocked": "85.4B",
        "gasPrice": {"fast": 25, "standard": 18, "slow": 12},
        "dexVolume24h": "4.2B",
    }

BUILTIN_HANDLERS: Dict[str, Callable[[Mapping[str, str]], Dict[str, Any]]] = {
    "market": market_data,
    "crypto": crypto_prices,
    "weather": weather_data,
    "sentiment": sentiment_data,
    "web3": web3_analytics,
}

# Detailed payloads returned by GET /data/{kind}

def detailed_payload(kind: str, params: Mapping[str, str]) -> Dict[str, Any]:
    """Richer `{timestamp, data}` envelope used by the anonymous data endpoints"""
    if kind == "market":
        return {
            "timestamp": _now_ms(),
            "data": {
                "sp500": {"price": 4783.35, "change": 40.85, "changePercent": 0.86, "volume": 3245678900},
                "nasdaq": {"price": 15095.14, "change": -45.23, "changePercent": -0.3, "volume": 4567890123},
                "dowJones": {"price": 37305.16, "change": 134.58, "changePercent": 0.36, "volume": 2876543210},
            },
        }
    if kind == "crypto":
        return {
            "timestamp": _now_ms(),
            "data": {
                "bitcoin": {"symbol": "BTC", "price": 43250.5, "marketCap": 847000000000,
                            "volume24h": 28500000000, "change24h": 2.34},
                "ethereum": {"symbol": "ETH", "price": 2285.75, "marketCap": 275000000000,
                             "volume24h": 15200000000, "change24h": 1.87},
                "mnee": {"symbol": "MNEE", "price": 1.0, "marketCap": 103412221,
                         "volume24h": 850000, "change24h": 0.01},
            },
        }
    if kind == "weather":
        return {
            "timestamp": _now_ms(),
            "location": params.get("location") or "New York",
            "data": {
                "temperature": 72,
                "feelsLike": 70,
                "humidity": 65,
                "conditions": "Partly Cloudy",
                "windSpeed": 12,
                "windDirection": "NW",
                "pressure": 1013,
                "visibility": 10,
            },
        }
    if kind == "sentiment":
        return {
            "timestamp": _now_ms(),
            "topic": params.get("topic") or "crypto",
            "data": {
                "sentiment": 0.68,  # -1 to 1
                "volume": 15420,
                "trending": True,
                "keywords": ["bullish", "adoption", "innovation", "growth"],
                "sources": {
                    "twitter": {"sentiment": 0.72, "volume": 8900},
                    "reddit": {"sentiment": 0.65, "volume": 4200},
                    "news": {"sentiment": 0.64, "volume": 2320},
                },
            },
        }
    if kind == "web3":
        return {
            "timestamp": _now_ms(),
            "data": {
                "totalValueLocked": "85.4B",
                "tvlChange24h": 2.3,
                "activeAddresses24h": 1250000,
                "transactions24h": 3456789,
                "gasPrice": {
                    "ethereum": {"fast": 25, "standard": 18, "slow": 12},
                    "polygon": {"fast": 35, "standard": 28, "slow": 20},
                },
                "dexVolume24h": "4.2B",
                "topProtocols": [
                    {"name": "Uniswap", "tvl": "5.2B", "volume24h": "1.8B"},
                    {"name": "Aave", "tvl": "8.1B", "volume24h": "320M"},
                    {"name": "Curve", "tvl": "4.3B", "volume24h": "890M"},
                ],
            },
        }
    raise KeyError(kind)
