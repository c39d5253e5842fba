"""Key custodian backed by a local keypair."""

from __future__ import annotations

import logging

from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from ...application.dtos import UnsignedTransaction
from ...domain.shared import LedgerProtocol

logger = logging.getLogger(__name__)


def compile_transaction(unsigned: UnsignedTransaction, signer: Keypair) -> Transaction:
    """Compile and sign ``unsigned`` with ``signer`` as the fee payer."""
    message = Message.new_with_blockhash(
        [instruction.compile() for instruction in unsigned.instructions],
        unsigned.fee_payer,
        Hash.from_string(unsigned.recent_blockhash),
    )
    return Transaction([signer], message, Hash.from_string(unsigned.recent_blockhash))


class KeypairCustodian:
    """Signs with an in-process keypair and submits through the ledger."""

    def __init__(self, keypair: Keypair, ledger: LedgerProtocol) -> None:
        self._keypair = keypair
        self._ledger = ledger

    @classmethod
    def from_base58(cls, secret: str, ledger: LedgerProtocol) -> "KeypairCustodian":
        return cls(Keypair.from_base58_string(secret), ledger)

    @property
    def public_key(self) -> Pubkey:
        return self._keypair.pubkey()

    async def sign_and_submit(self, transaction: UnsignedTransaction) -> str:
        if transaction.fee_payer != self.public_key:
            raise ValueError(
                f"Fee payer {transaction.fee_payer} is not the custodian key {self.public_key}"
            )
        signed = compile_transaction(transaction, self._keypair)
        return await self._ledger.submit(bytes(signed))

    async def sign_message(self, message: str) -> bytes:
        return bytes(self._keypair.sign_message(message.encode("utf-8")))
