"""Unified balance: total on-chain funds minus the commitment reserve.

The reserve holds back ``commitment_buffer_months`` cycles of every active
subscription's fee so recurring payments keep clearing. Balances are never
cached; every call reads the wallet's token account again.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Union

from solders.pubkey import Pubkey

from ...domain.entities import SubscriptionState, UnifiedBalance
from ...domain.errors import InsufficientBalanceError
from ...program.constants import COMMITMENT_BUFFER_MONTHS, DEFAULT_MINT_DECIMALS
from ..amounts import MajorAmount, parse_major_amount, to_major_units
from ..dtos import UserSubscriptionDTO
from .account_reader import AccountReader

logger = logging.getLogger(__name__)

ActiveSubscription = Union[SubscriptionState, UserSubscriptionDTO]


def compute_committed(
    subscriptions: Iterable[ActiveSubscription],
    *,
    buffer_months: int = COMMITMENT_BUFFER_MONTHS,
    decimals: int = DEFAULT_MINT_DECIMALS,
) -> Decimal:
    """Sum ``fee * buffer_months`` over active subscriptions, in major units. Pure function."""
    committed = Decimal(0)
    for subscription in subscriptions:
        if subscription.is_active:
            committed += to_major_units(subscription.fee_amount, decimals) * buffer_months
    return committed


def build_unified_balance(total: Decimal, committed: Decimal) -> UnifiedBalance:
    """Clamp available at zero so it always lies within ``[0, total]``."""
    available = max(Decimal(0), total - committed)
    return UnifiedBalance(total=total, committed=committed, available=available)


class BalanceReconciler:
    """Derives the unified balance from on-chain truth."""

    def __init__(
        self,
        reader: AccountReader,
        *,
        buffer_months: int = COMMITMENT_BUFFER_MONTHS,
        decimals: int = DEFAULT_MINT_DECIMALS,
    ) -> None:
        self.reader = reader
        self.buffer_months = buffer_months
        self.decimals = decimals

    async def reconcile(
        self,
        wallet_token_account: Pubkey,
        active_subscriptions: Iterable[ActiveSubscription],
    ) -> UnifiedBalance:
        units = await self.reader.fetch_token_balance(wallet_token_account)
        total = to_major_units(units, self.decimals)
        committed = compute_committed(
            active_subscriptions,
            buffer_months=self.buffer_months,
            decimals=self.decimals,
        )
        balance = build_unified_balance(total, committed)
        logger.debug(
            "Reconciled %s: total=%s committed=%s available=%s",
            wallet_token_account,
            balance.total,
            balance.committed,
            balance.available,
        )
        return balance

    @staticmethod
    def ensure_withdrawable(balance: UnifiedBalance, amount: MajorAmount) -> None:
        """Raise InsufficientBalanceError if ``amount`` exceeds the available balance."""
        required = parse_major_amount(amount)
        if required > balance.available:
            raise InsufficientBalanceError(required, balance.available)

    def ensure_affordable(self, balance: UnifiedBalance, fee_amount: int) -> None:
        """A new subscription needs its own reserve on top of existing commitments."""
        required = to_major_units(fee_amount, self.decimals) * self.buffer_months
        if required > balance.available:
            raise InsufficientBalanceError(required, balance.available)
