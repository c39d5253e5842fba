"""Protocol interface for the key-custody collaborator.

The custodian owns the user's signing key (an embedded wallet, a mobile wallet
adapter, a local keypair). The client hands it fully-built unsigned
transactions and plain-text messages; it never sees the key itself.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from solders.pubkey import Pubkey

if TYPE_CHECKING:
    from ...application.dtos import UnsignedTransaction


class KeyCustodianProtocol(Protocol):
    """Narrow signing capability exposed by any custody backend."""

    @property
    def public_key(self) -> Pubkey:
        """The user's wallet address."""
        ...

    async def sign_and_submit(self, transaction: "UnsignedTransaction") -> str:
        """Sign ``transaction``, submit it and return its base58 signature.

        Raises:
            SubmissionFailedError: If the ledger rejects the transaction.
        """
        ...

    async def sign_message(self, message: str) -> bytes:
        """Return the raw 64-byte Ed25519 signature over the UTF-8 message."""
        ...
