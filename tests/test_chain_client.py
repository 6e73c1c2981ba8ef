"""Tests for token unit conversion and Transfer log decoding"""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import TransactionNotFound, Web3RPCError

from paycall_backend.blockchain.chain_client import (
    ChainClient,
    from_token_units,
    load_account,
    normalize_tx_hash,
    to_token_units,
)
from conftest import PAYER, RECIPIENT, TOKEN

TRANSFER_TOPIC = Web3.keccak(text="Transfer(address,address,uint256)")


def _topic(address: str) -> HexBytes:
    return HexBytes(b"\x00" * 12 + bytes.fromhex(address[2:]))


def _log(topics, data=b""):
    return {
        "address": TOKEN,
        "topics": topics,
        "data": HexBytes(data),
        "logIndex": 0,
        "transactionIndex": 0,
        "transactionHash": HexBytes(b"\x01" * 32),
        "blockHash": HexBytes(b"\x02" * 32),
        "blockNumber": 1,
    }


class TestTokenUnits:

    @pytest.mark.parametrize("amount,units", [
        ("0.01", 10000),
        ("1", 1000000),
        ("0.0000005", 1),
        ("0.0000004", 0),
        (Decimal("2.5"), 2500000),
    ])
    def test_to_token_units(self, amount, units):
        assert to_token_units(amount) == units

    def test_custom_decimals(self):
        assert to_token_units("1", decimals=18) == 10 ** 18

    def test_from_token_units(self):
        assert from_token_units(10000) == Decimal("0.01")


class TestChainClient:
    """Decoding runs locally; no RPC is contacted"""

    def test_decode_transfer_event(self):
        """Test a well-formed Transfer log decodes to addresses and value"""
        client = ChainClient(rpc_url="http://localhost:8545", token_address=TOKEN)
        log = _log(
            [HexBytes(TRANSFER_TOPIC), _topic(PAYER), _topic(RECIPIENT)],
            (10000).to_bytes(32, "big")
        )

        event = client.decode_transfer_event(log)

        assert event is not None
        assert event.from_address.lower() == PAYER.lower()
        assert event.to_address.lower() == RECIPIENT.lower()
        assert event.value == 10000

    def test_decode_other_event(self):
        """Test logs of other events decode to None"""
        client = ChainClient(rpc_url="http://localhost:8545", token_address=TOKEN)
        other = HexBytes(Web3.keccak(text="Approval(address,address,uint256)"))
        log = _log([other, _topic(PAYER), _topic(RECIPIENT)], (1).to_bytes(32, "big"))

        assert client.decode_transfer_event(log) is None

    def test_decode_wrong_topic_count(self):
        client = ChainClient(rpc_url="http://localhost:8545", token_address=TOKEN)
        assert client.decode_transfer_event(_log([HexBytes(TRANSFER_TOPIC)])) is None

    def test_load_account(self):
        account = load_account("0x" + "11" * 32)
        assert account.address.startswith("0x")
        assert len(account.address) == 42


class TestTransactionLookup:

    def _client(self, **eth_methods):
        client = ChainClient(rpc_url="http://localhost:8545", token_address=TOKEN)
        client.w3 = SimpleNamespace(eth=SimpleNamespace(**eth_methods))
        return client

    @pytest.mark.parametrize("error", [
        TransactionNotFound("not found"),
        Web3RPCError("invalid argument 0: hex string has length 4, want 64 for common.Hash"),
        ValueError("malformed hash"),
    ])
    async def test_unknown_hash_reads_as_missing(self, error):
        """Test a node rejecting the hash is treated like an unknown transaction"""
        client = self._client(
            get_transaction_receipt=AsyncMock(side_effect=error),
            get_transaction=AsyncMock(side_effect=error),
        )

        assert await client.get_receipt("0x12") is None
        assert await client.get_transaction("0x12") is None

    async def test_connection_failure_propagates(self):
        client = self._client(get_transaction_receipt=AsyncMock(side_effect=ConnectionError("refused")))

        with pytest.raises(ConnectionError):
            await client.get_receipt("0x12")

    @pytest.mark.parametrize("raw,expected", [
        ("0xABCdef", "0xabcdef"),
        ("  0XABC ", "0xabc"),
        ("abc", "0xabc"),
    ])
    def test_normalize_tx_hash(self, raw, expected):
        assert normalize_tx_hash(raw) == expected
