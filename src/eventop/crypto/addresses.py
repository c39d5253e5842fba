"""Deterministic program-derived addresses for every account the client touches.

All consumers (reader, builder, orchestrator, checkout binder) share one
``AddressDeriver`` so that seed layouts are defined exactly once.
"""

from __future__ import annotations

import hashlib
from enum import Enum
from typing import NamedTuple, Optional, Sequence

from solders.pubkey import Pubkey

from ..domain.errors import AddressDerivationError
from ..program.constants import (
    ASSOCIATED_TOKEN_PROGRAM,
    MAX_SEED_LENGTH,
    TOKEN_PROGRAM,
)


class Purpose(str, Enum):
    """Seed tag identifying the kind of account being derived."""

    WALLET = "subscription_wallet"
    MERCHANT_PLAN = "merchant_plan"
    SUBSCRIPTION = "subscription"
    SESSION_TOKEN_TRACKER = "session_token"
    PROTOCOL_CONFIG = "protocol_config"


class _SeedLayout(NamedTuple):
    # number of caller-supplied components
    components: int
    # index at which the mint is spliced into the components, or None
    mint_position: Optional[int]


_LAYOUTS: dict[Purpose, _SeedLayout] = {
    Purpose.WALLET: _SeedLayout(components=1, mint_position=1),
    Purpose.MERCHANT_PLAN: _SeedLayout(components=2, mint_position=1),
    Purpose.SUBSCRIPTION: _SeedLayout(components=2, mint_position=2),
    Purpose.SESSION_TOKEN_TRACKER: _SeedLayout(components=1, mint_position=None),
    Purpose.PROTOCOL_CONFIG: _SeedLayout(components=0, mint_position=None),
}


class DerivedAddress(NamedTuple):
    address: Pubkey
    nonce: int


def derive(
    purpose: Purpose,
    component_keys: Sequence[bytes],
    mint: Optional[Pubkey],
    program_id: Pubkey,
) -> DerivedAddress:
    """Derive the program address for ``purpose``. Pure function.

    Args:
        purpose: Which account kind to derive.
        component_keys: Ordered seed components (owner keys, plan id bytes, ...).
        mint: Token mint for purposes whose layout includes it.
        program_id: Program owning the derived address.

    Returns:
        The derived address and its bump nonce.

    Raises:
        AddressDerivationError: If a component is empty or too long, the
            component count does not match the layout, or a required mint is
            missing.
    """
    layout = _LAYOUTS[purpose]
    if len(component_keys) != layout.components:
        raise AddressDerivationError(
            f"{purpose.value} expects {layout.components} seed components, "
            f"got {len(component_keys)}"
        )

    seeds: list[bytes] = [purpose.value.encode("utf-8")]
    for index, component in enumerate(component_keys):
        if not component:
            raise AddressDerivationError(
                f"{purpose.value} seed component {index} must not be empty"
            )
        if len(component) > MAX_SEED_LENGTH:
            raise AddressDerivationError(
                f"{purpose.value} seed component {index} exceeds "
                f"{MAX_SEED_LENGTH} bytes"
            )
        seeds.append(bytes(component))

    if layout.mint_position is not None:
        if mint is None:
            raise AddressDerivationError(f"{purpose.value} requires a mint")
        # +1 skips the purpose tag
        seeds.insert(layout.mint_position + 1, bytes(mint))

    address, nonce = Pubkey.find_program_address(seeds, program_id)
    return DerivedAddress(address, nonce)


def session_token_seed(session_token: str) -> bytes:
    """Session tokens may exceed the seed limit, so the tracker is keyed by their hash."""
    if not session_token:
        raise AddressDerivationError("session token must not be empty")
    return hashlib.sha256(session_token.encode("utf-8")).digest()


def associated_token_address(owner: Pubkey, mint: Pubkey) -> Pubkey:
    """Associated token account of ``owner`` for ``mint`` (owner may be off-curve)."""
    address, _ = Pubkey.find_program_address(
        [bytes(owner), bytes(TOKEN_PROGRAM), bytes(mint)],
        ASSOCIATED_TOKEN_PROGRAM,
    )
    return address


class AddressDeriver:
    """Derivation bound to one program and its default mint."""

    def __init__(self, program_id: Pubkey, mint: Pubkey) -> None:
        self.program_id = program_id
        self.mint = mint

    def _mint(self, mint: Optional[Pubkey]) -> Pubkey:
        return mint if mint is not None else self.mint

    def wallet(self, owner: Pubkey, mint: Optional[Pubkey] = None) -> DerivedAddress:
        return derive(Purpose.WALLET, [bytes(owner)], self._mint(mint), self.program_id)

    def merchant_plan(
        self, merchant: Pubkey, plan_id: str, mint: Optional[Pubkey] = None
    ) -> DerivedAddress:
        return derive(
            Purpose.MERCHANT_PLAN,
            [bytes(merchant), plan_id.encode("utf-8")],
            self._mint(mint),
            self.program_id,
        )

    def subscription(
        self, user: Pubkey, merchant: Pubkey, mint: Optional[Pubkey] = None
    ) -> DerivedAddress:
        return derive(
            Purpose.SUBSCRIPTION,
            [bytes(user), bytes(merchant)],
            self._mint(mint),
            self.program_id,
        )

    def session_token_tracker(self, session_token: str) -> DerivedAddress:
        return derive(
            Purpose.SESSION_TOKEN_TRACKER,
            [session_token_seed(session_token)],
            None,
            self.program_id,
        )

    def protocol_config(self) -> DerivedAddress:
        return derive(Purpose.PROTOCOL_CONFIG, [], None, self.program_id)

    def token_account(self, owner: Pubkey, mint: Optional[Pubkey] = None) -> Pubkey:
        return associated_token_address(owner, self._mint(mint))

    def wallet_token_account(
        self, owner: Pubkey, mint: Optional[Pubkey] = None
    ) -> Pubkey:
        """Token account held by the owner's subscription wallet PDA."""
        wallet, _ = self.wallet(owner, mint)
        return associated_token_address(wallet, self._mint(mint))
