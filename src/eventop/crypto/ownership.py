"""Ownership proofs binding a checkout session to a wallet.

The proof is an Ed25519 signature over a freshly minted message. It proves
control of the wallet independently of the on-chain transaction signature.
"""

from __future__ import annotations

from datetime import datetime

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from solders.pubkey import Pubkey
from solders.signature import Signature

from ..domain.errors import OwnershipProofError

CHECKOUT_MESSAGE_PREFIX = "checkout"


def build_checkout_message(session_id: str, issued_at: datetime) -> str:
    """Build ``checkout:{session_id}:{timestamp_ms}``."""
    timestamp_ms = int(issued_at.timestamp()) * 1000 + issued_at.microsecond // 1000
    return f"{CHECKOUT_MESSAGE_PREFIX}:{session_id}:{timestamp_ms}"


def verify_ownership_signature(
    public_key: Pubkey, message: str, signature: bytes
) -> None:
    """Verify an Ed25519 signature over ``message``. Raises OwnershipProofError on failure."""
    if len(signature) != 64:
        raise OwnershipProofError(
            f"Ownership signature must be 64 bytes, got {len(signature)}"
        )
    verifier = Ed25519PublicKey.from_public_bytes(bytes(public_key))
    try:
        verifier.verify(signature, message.encode("utf-8"))
    except InvalidSignature as e:
        raise OwnershipProofError(
            f"Ownership signature does not match wallet {public_key}"
        ) from e


def encode_signature_b58(signature: bytes) -> str:
    """Render a raw signature in base58, the form the backend verifies."""
    return str(Signature.from_bytes(signature))
