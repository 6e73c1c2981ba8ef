"""
Chain Client
Receipt lookup, ERC-20 Transfer decoding and token transfer submission
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional, Union

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3, Web3
from web3.exceptions import (
    LogTopicError,
    MismatchedABI,
    TimeExhausted,
    TransactionNotFound,
    Web3RPCError,
    Web3ValidationError,
)

from paycall_backend.core.config import settings

logger = logging.getLogger(__name__)

# Lookup failures that mean "no such transaction" rather than "chain unavailable"
UNKNOWN_TX_ERRORS = (TransactionNotFound, Web3RPCError, Web3ValidationError, ValueError)

# Minimal ERC-20 ABI: transfer() to pay, Transfer to verify
ERC20_ABI = [
    {
        "constant": False,
        "inputs": [
            {"name": "_to", "type": "address"},
            {"name": "_value", "type": "uint256"}
        ],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function"
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "from", "type": "address"},
            {"indexed": True, "name": "to", "type": "address"},
            {"indexed": False, "name": "value", "type": "uint256"}
        ],
        "name": "Transfer",
        "type": "event"
    }
]

class BlockchainError(Exception):
    """Base blockchain error"""
    pass

class ConfirmationTimeout(BlockchainError):
    """Transaction was not mined in time"""
    pass

@dataclass
class TransferEvent:
    """Decoded ERC-20 Transfer log"""
    from_address: str
    to_address: str
    value: int

def to_token_units(amount: Union[str, Decimal], decimals: int = None) -> int:
    """Convert a decimal amount string to the token's smallest unit (half-up)"""
    decimals = settings.PAYMENT_TOKEN_DECIMALS if decimals is None else decimals
    scaled = Decimal(str(amount)) * (Decimal(10) ** decimals)
    return int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP))

def from_token_units(units: int, decimals: int = None) -> Decimal:
    """Convert smallest-unit integer back to a decimal amount"""
    decimals = settings.PAYMENT_TOKEN_DECIMALS if decimals is None else decimals
    return Decimal(units) / (Decimal(10) ** decimals)

def normalize_tx_hash(tx_hash: str) -> str:
    """Lowercase 0x-prefixed form; nodes treat hash hex case-insensitively"""
    tx_hash = tx_hash.strip().lower()
    if not tx_hash.startswith("0x"):
        tx_hash = "0x" + tx_hash
    return tx_hash

def load_account(private_key: str) -> LocalAccount:
    """Derive the signing account from a hex private key"""
    return Account.from_key(private_key)

class ChainClient:
    """Thin async wrapper over a single EVM RPC endpoint and the payment token"""

    def __init__(self, rpc_url: str = None, token_address: str = None):
        self.rpc_url = rpc_url or settings.ETHEREUM_RPC_URL
        self.token_address = Web3.to_checksum_address(token_address or settings.PAYMENT_TOKEN_ADDRESS)
        self.w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(self.rpc_url))
        self.token = self.w3.eth.contract(address=self.token_address, abi=ERC20_ABI)

    async def get_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """Transaction receipt, or None when the chain does not know the hash"""
        try:
            return await self.w3.eth.get_transaction_receipt(tx_hash)
        except UNKNOWN_TX_ERRORS as e:
            logger.warning(f"Receipt lookup failed for {tx_hash}: {e}")
            return None

    async def get_transaction(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.w3.eth.get_transaction(tx_hash)
        except UNKNOWN_TX_ERRORS as e:
            logger.warning(f"Transaction lookup failed for {tx_hash}: {e}")
            return None

    def decode_transfer_event(self, log: Dict[str, Any]) -> Optional[TransferEvent]:
        """Decode a log as Transfer(from, to, value); None if it is something else"""
        try:
            event = self.token.events.Transfer().process_log(log)
        except (MismatchedABI, LogTopicError, ValueError):
            return None

        args = event["args"]
        return TransferEvent(
            from_address=args["from"],
            to_address=args["to"],
            value=int(args["value"])
        )

    async def send_transfer(self, account: LocalAccount, to: str, amount_units: int) -> str:
        """Sign and submit token.transfer(to, amount_units); returns the tx hash"""
        nonce = await self.w3.eth.get_transaction_count(account.address)
        chain_id = await self.w3.eth.chain_id

        tx = await self.token.functions.transfer(
            Web3.to_checksum_address(to), amount_units
        ).build_transaction({
            "from": account.address,
            "nonce": nonce,
            "chainId": chain_id,
        })

        signed = account.sign_transaction(tx)
        tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        hex_hash = Web3.to_hex(tx_hash)

        logger.info(f"Submitted transfer of {amount_units} units to {to}: {hex_hash}")
        return hex_hash

    async def wait_for_confirmation(self, tx_hash: str, timeout: int = None) -> Dict[str, Any]:
        timeout = timeout or settings.CHAIN_CONFIRMATION_TIMEOUT
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except TimeExhausted as e:
            raise ConfirmationTimeout(f"Transaction {tx_hash} not confirmed after {timeout}s") from e

        if receipt["status"] != 1:
            raise BlockchainError(f"Transaction {tx_hash} reverted")
        return receipt

_chain_client: Optional[ChainClient] = None

def get_chain_client() -> ChainClient:
    """Chain client dependency; built lazily so imports never touch the RPC"""
    global _chain_client
    if _chain_client is None:
        _chain_client = ChainClient()
    return _chain_client
