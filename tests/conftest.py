"""Shared fixtures: sqlite database, fake chain, fake redis, API client"""

import math
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SERVER_PAYMENT_ADDRESS"] = "0x1111111111111111111111111111111111111111"
os.environ["PAYMENT_TOKEN_ADDRESS"] = "0x8ccedbAe4916b79da7F3F612EfB2EB93A2bFD6cF"
os.environ["NETWORK"] = "mainnet"
os.environ["ENVIRONMENT"] = "development"
os.environ.pop("OPENAI_API_KEY", None)
os.environ.pop("DEMO_AGENT_PRIVATE_KEY", None)

import pytest
import httpx
from redis.exceptions import ResponseError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from paycall_backend.blockchain.chain_client import TransferEvent, get_chain_client
from paycall_backend.core.config import settings
from paycall_backend.database.connection import Base, get_db, get_redis
from paycall_backend.main import app
from paycall_backend.services.ledger import ledger

TOKEN = settings.PAYMENT_TOKEN_ADDRESS
RECIPIENT = settings.SERVER_PAYMENT_ADDRESS
PAYER = "0x2222222222222222222222222222222222222222"
AGENT_KEY = "mnee_test_agent_key"


def tx(n: int) -> str:
    return "0x" + format(n, "064x")


class FakeChain:
    """In-memory receipts and transactions keyed by hash"""

    def __init__(self):
        self.receipts = {}
        self.transactions = {}
        self.sent = []

    def add_transfer(self, tx_hash, value, to=RECIPIENT, token=TOKEN, status=1, tx_to=None, with_log=True):
        logs = []
        if with_log:
            logs.append({"address": token, "transfer": TransferEvent(PAYER, to, value)})
        self.receipts[tx_hash] = {"status": status, "logs": logs, "blockNumber": 19000000}
        self.transactions[tx_hash] = {"to": tx_to or token, "from": PAYER}
        return tx_hash

    async def get_receipt(self, tx_hash):
        return self.receipts.get(tx_hash)

    async def get_transaction(self, tx_hash):
        return self.transactions.get(tx_hash)

    def decode_transfer_event(self, log):
        return log.get("transfer")

    async def send_transfer(self, account, to, amount_units):
        tx_hash = tx(1000 + len(self.sent))
        self.sent.append((to, amount_units))
        return self.add_transfer(tx_hash, amount_units, to=to)

    async def wait_for_confirmation(self, tx_hash, timeout=None):
        return self.receipts[tx_hash]


class FakeRedis:
    """Counters with expiry on a settable clock; pipelines run their queue in order"""

    def __init__(self, now=0.0):
        self.now = now
        self.store = {}
        self.expires_at = {}

    def _live(self, key):
        if key in self.expires_at and self.expires_at[key] <= self.now:
            self.store.pop(key, None)
            self.expires_at.pop(key, None)
        return key in self.store

    def pipeline(self):
        return FakePipeline(self)

    def set(self, key, value, ex=None, nx=False):
        if nx and self._live(key):
            return None
        self.store[key] = str(value)
        if ex is not None:
            self.expires_at[key] = self.now + ex
        return True

    def incr(self, key):
        if not self._live(key):
            self.store[key] = "0"
        try:
            value = int(self.store[key]) + 1
        except ValueError:
            raise ResponseError("value is not an integer or out of range")
        self.store[key] = str(value)
        return value

    def ttl(self, key):
        if not self._live(key):
            return -2
        if key not in self.expires_at:
            return -1
        return math.ceil(self.expires_at[key] - self.now)


class FakePipeline:
    def __init__(self, redis_client):
        self.redis_client = redis_client
        self.queued = []

    def __getattr__(self, name):
        def queue(*args, **kwargs):
            self.queued.append((name, args, kwargs))
            return self
        return queue

    async def execute(self):
        queued, self.queued = self.queued, []
        return [getattr(self.redis_client, name)(*args, **kwargs) for name, args, kwargs in queued]


@pytest.fixture
async def session_maker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'paycall.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
async def agent(session_maker):
    async with session_maker() as session:
        created, _ = await ledger.register_agent(
            session, PAYER, name="Test Agent", email="agent@example.com", api_key=AGENT_KEY
        )
    return created


@pytest.fixture
async def client(session_maker, chain, fake_redis):
    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_chain_client] = lambda: chain
    app.dependency_overrides[get_redis] = lambda: fake_redis

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http

    app.dependency_overrides.clear()
