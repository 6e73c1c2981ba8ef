"""
x402 Payment Verifier
Validates a claimed transaction hash against price, token and recipient
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union
from decimal import Decimal

from paycall_backend.blockchain.chain_client import to_token_units

logger = logging.getLogger(__name__)

class RejectionReason(str, Enum):
    TX_NOT_FOUND_OR_FAILED = "TX_NOT_FOUND_OR_FAILED"
    WRONG_TOKEN = "WRONG_TOKEN"
    NO_TRANSFER_EVENT = "NO_TRANSFER_EVENT"
    WRONG_RECIPIENT = "WRONG_RECIPIENT"
    INSUFFICIENT_AMOUNT = "INSUFFICIENT_AMOUNT"

REJECTION_MESSAGES = {
    RejectionReason.TX_NOT_FOUND_OR_FAILED: "Transaction not found or failed",
    RejectionReason.WRONG_TOKEN: "Transaction is not a payment token transfer",
    RejectionReason.NO_TRANSFER_EVENT: "No Transfer event found for the payment token",
    RejectionReason.WRONG_RECIPIENT: "Payment sent to wrong address",
    RejectionReason.INSUFFICIENT_AMOUNT: "Insufficient payment amount",
}

@dataclass
class VerificationResult:
    ok: bool
    reason: Optional[RejectionReason] = None
    amount_units: int = 0
    payer: Optional[str] = None

    @property
    def message(self) -> Optional[str]:
        return REJECTION_MESSAGES[self.reason] if self.reason else None

    @classmethod
    def rejected(cls, reason: RejectionReason) -> "VerificationResult":
        return cls(ok=False, reason=reason)

class PaymentVerifier:
    """Stateless check of one on-chain transfer; never records anything"""

    def __init__(self, chain):
        self.chain = chain

    async def verify(
        self,
        tx_hash: str,
        expected_price: Union[str, Decimal],
        token_address: str,
        recipient: str
    ) -> VerificationResult:
        receipt = await self.chain.get_receipt(tx_hash)
        if not receipt or receipt["status"] != 1:
            return self._reject(tx_hash, RejectionReason.TX_NOT_FOUND_OR_FAILED)

        tx = await self.chain.get_transaction(tx_hash)
        if not tx or not tx.get("to") or tx["to"].lower() != token_address.lower():
            return self._reject(tx_hash, RejectionReason.WRONG_TOKEN)

        transfer = None
        for log in receipt.get("logs", []):
            if log["address"].lower() != token_address.lower():
                continue
            transfer = self.chain.decode_transfer_event(log)
            if transfer:
                break

        if not transfer:
            return self._reject(tx_hash, RejectionReason.NO_TRANSFER_EVENT)

        if transfer.to_address.lower() != recipient.lower():
            return self._reject(tx_hash, RejectionReason.WRONG_RECIPIENT)

        # Overpayment is accepted
        if transfer.value < to_token_units(expected_price):
            return self._reject(tx_hash, RejectionReason.INSUFFICIENT_AMOUNT)

        logger.info(f"Payment verified: {tx_hash} ({transfer.value} units from {transfer.from_address})")
        return VerificationResult(ok=True, amount_units=transfer.value, payer=transfer.from_address)

    def _reject(self, tx_hash: str, reason: RejectionReason) -> VerificationResult:
        logger.warning(f"Payment rejected: {tx_hash} - {reason.value}")
        return VerificationResult.rejected(reason)
