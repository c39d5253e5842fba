"""Protocol interface for the ledger (Solana RPC) collaborator.

The client only ever reads accounts, submits already-signed transactions and
waits for their confirmation. Implementations are injected so use cases can be
tested against an in-memory ledger.
"""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel, ConfigDict
from solders.pubkey import Pubkey


class AccountInfo(BaseModel):
    """Raw account as returned by the ledger."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    owner: Pubkey
    data: bytes
    lamports: int = 0
    executable: bool = False


class LatestBlockhash(BaseModel):
    """Fee-payer metadata required to build a transaction."""

    blockhash: str
    last_valid_block_height: int


class LedgerProtocol(Protocol):
    """Read and submit interface to the ledger."""

    async def get_account(self, address: Pubkey) -> AccountInfo | None:
        """Return the account at ``address`` or ``None`` if it was never initialized."""
        ...

    async def get_token_balance(self, address: Pubkey) -> int:
        """Return the token amount (smallest unit) held by a token account.

        Returns 0 when the token account does not exist.
        """
        ...

    async def get_latest_blockhash(self) -> LatestBlockhash:
        """Return the most recent blockhash and its expiry height."""
        ...

    async def submit(self, signed_transaction: bytes) -> str:
        """Submit a signed, serialized transaction and return its signature.

        Raises:
            SubmissionFailedError: If the ledger rejects the transaction.
        """
        ...

    async def confirm(self, signature: str) -> None:
        """Wait until ``signature`` reaches the configured commitment.

        Raises:
            SubmissionFailedError: If the transaction failed or never confirmed.
        """
        ...
