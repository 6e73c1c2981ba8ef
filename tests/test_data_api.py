"""Tests for the anonymous data endpoints"""

from sqlalchemy import select

from paycall_backend.database.models import Payment, UsageLog
from conftest import RECIPIENT, tx


class TestDataCatalogue:

    async def test_catalogue(self, client):
        response = await client.get("/data")

        assert response.status_code == 200
        apis = {api["id"]: api for api in response.json()["apis"]}
        assert set(apis) == {"market", "crypto", "weather", "sentiment", "web3"}
        assert apis["weather"]["endpoint"] == "/data/weather"
        assert apis["weather"]["price"] == "$0.01"


class TestDataUnlock:

    async def test_challenge(self, client):
        response = await client.get("/data/market")

        assert response.status_code == 402
        body = response.json()
        assert body["message"] == "This endpoint requires payment"
        assert body["payment"]["amount"] == "0.01"
        assert body["payment"]["recipient"] == RECIPIENT
        assert "S&P 500" in body["payment"]["description"]

    async def test_unknown_kind(self, client):
        response = await client.get("/data/stocks")
        assert response.status_code == 404

    async def test_paid_weather(self, client, chain, session_maker):
        """Test query params reach the generator and usage is logged under the data id"""
        chain.add_transfer(tx(7), 10000)

        response = await client.get(
            "/data/weather",
            params={"location": "Tokyo"},
            headers={"X-Payment-Tx": tx(7), "X-Agent-ID": "agent-xyz"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["location"] == "Tokyo"
        assert body["data"]["windDirection"] == "NW"

        async with session_maker() as session:
            payment = (await session.execute(select(Payment))).scalar_one()
            log = (await session.execute(select(UsageLog))).scalar_one()
        assert payment.tool_id == "weather-data"
        assert payment.agent_id == "agent-xyz"
        assert log.tool_id == "weather-data"
        assert log.success is True

    async def test_anonymous_caller(self, client, chain, session_maker):
        chain.add_transfer(tx(8), 10000)

        response = await client.get("/data/sentiment", headers={"X-Payment-Tx": tx(8)})

        assert response.status_code == 200
        assert response.json()["topic"] == "crypto"
        async with session_maker() as session:
            payment = (await session.execute(select(Payment))).scalar_one()
        assert payment.agent_id == "anonymous"

    async def test_replay_rejected(self, client, chain):
        chain.add_transfer(tx(9), 10000)
        headers = {"X-Payment-Tx": tx(9)}

        assert (await client.get("/data/crypto", headers=headers)).status_code == 200
        assert (await client.get("/data/crypto", headers=headers)).status_code == 409

    async def test_replay_with_different_case(self, client, chain):
        chain.add_transfer(tx(0xbeef), 10000)

        first = await client.get("/data/crypto", headers={"X-Payment-Tx": tx(0xbeef)})
        second = await client.get("/data/crypto", headers={"X-Payment-Tx": tx(0xbeef).upper().replace("0X", "0x")})

        assert first.status_code == 200
        assert second.status_code == 409

    async def test_underpaid(self, client, chain):
        chain.add_transfer(tx(10), 5000)
        response = await client.get("/data/web3", headers={"X-Payment-Tx": tx(10)})
        assert response.status_code == 402
        assert response.json()["code"] == "INSUFFICIENT_AMOUNT"
