"""System addresses and constants shared by the program schema and the builder."""

from __future__ import annotations

from typing import Final

from solders.pubkey import Pubkey

SYSTEM_PROGRAM: Final[Pubkey] = Pubkey.from_string("11111111111111111111111111111111")
TOKEN_PROGRAM: Final[Pubkey] = Pubkey.from_string(
    "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
)
ASSOCIATED_TOKEN_PROGRAM: Final[Pubkey] = Pubkey.from_string(
    "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
)
RENT_SYSVAR: Final[Pubkey] = Pubkey.from_string(
    "SysvarRent111111111111111111111111111111111"
)

# Stablecoin precision used for every supported mint.
DEFAULT_MINT_DECIMALS: Final[int] = 6

# Months of fees kept in reserve per active subscription.
COMMITMENT_BUFFER_MONTHS: Final[int] = 3

MAX_SEED_LENGTH: Final[int] = 32
MAX_SESSION_TOKEN_LENGTH: Final[int] = 64
