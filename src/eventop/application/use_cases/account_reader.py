"""Fetch and decode program accounts from the ledger."""

from __future__ import annotations

import logging
from typing import Optional, Type, TypeVar

from pydantic import BaseModel
from solders.pubkey import Pubkey

from ...domain.entities import (
    MerchantPlan,
    ProtocolConfig,
    SessionTokenTracker,
    SubscriptionState,
    SubscriptionWallet,
)
from ...domain.errors import CorruptAccountError
from ...domain.shared import LedgerProtocol
from ...program.accounts import AccountDecodeError, schema_for

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class AccountReader:
    """Read-only view of program accounts.

    Every call goes to the ledger; nothing is cached, so a freshly confirmed
    transaction is always reflected in the next read.
    """

    def __init__(self, ledger: LedgerProtocol, program_id: Pubkey) -> None:
        self.ledger = ledger
        self.program_id = program_id

    async def fetch(self, address: Pubkey, model: Type[T]) -> Optional[T]:
        """Return the decoded account, or None if it was never initialized.

        Raises:
            CorruptAccountError: If the account exists but does not decode as ``model``.
        """
        info = await self.ledger.get_account(address)
        if info is None:
            return None
        schema = schema_for(model)
        if info.owner != self.program_id:
            raise CorruptAccountError(
                address, schema.name, f"owned by {info.owner}, not {self.program_id}"
            )
        try:
            return schema.decode(info.data)
        except AccountDecodeError as e:
            logger.warning("Failed to decode %s at %s: %s", schema.name, address, e)
            raise CorruptAccountError(address, schema.name, str(e)) from e

    async def fetch_wallet(self, address: Pubkey) -> Optional[SubscriptionWallet]:
        return await self.fetch(address, SubscriptionWallet)

    async def fetch_plan(self, address: Pubkey) -> Optional[MerchantPlan]:
        return await self.fetch(address, MerchantPlan)

    async def fetch_subscription(self, address: Pubkey) -> Optional[SubscriptionState]:
        return await self.fetch(address, SubscriptionState)

    async def fetch_session_tracker(
        self, address: Pubkey
    ) -> Optional[SessionTokenTracker]:
        return await self.fetch(address, SessionTokenTracker)

    async def fetch_protocol_config(self, address: Pubkey) -> Optional[ProtocolConfig]:
        return await self.fetch(address, ProtocolConfig)

    async def fetch_token_balance(self, token_account: Pubkey) -> int:
        """Smallest-unit balance of a token account; 0 if it does not exist."""
        return await self.ledger.get_token_balance(token_account)

    async def account_exists(self, address: Pubkey) -> bool:
        return await self.ledger.get_account(address) is not None

    async def wallet_exists(self, address: Pubkey) -> bool:
        """True only if the wallet account exists and is owned by the program."""
        info = await self.ledger.get_account(address)
        return info is not None and info.owner == self.program_id
