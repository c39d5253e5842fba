"""Facade over the subscription protocol for a single user."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Iterable, Optional

from solders.pubkey import Pubkey

from ...crypto.addresses import AddressDeriver
from ...domain.entities import SubscriptionState, SubscriptionWallet, UnifiedBalance
from ...domain.errors import AccountNotFoundError, SessionAlreadyCompletedError
from ...domain.shared import BackendClientProtocol, KeyCustodianProtocol, LedgerProtocol
from ..amounts import MajorAmount
from ..dtos import OperationResult, UnsignedTransaction
from ..explorer import transaction_url
from .account_reader import AccountReader
from .balance_reconciler import BalanceReconciler
from .subscription_validators import (
    check_can_subscribe,
    check_plan_subscribable,
    validate_session_token,
)
from .transaction_builder import TransactionBuilder
from .wallet_lifecycle import WalletLifecycleOrchestrator

logger = logging.getLogger(__name__)

BalanceListener = Callable[[UnifiedBalance], None]


class SubscriptionProtocolClient:
    """Wallet, subscription and balance operations for the custodian's user.

    Every state-changing operation is signed by the custodian, confirmed on
    the ledger and followed by a fresh reconciliation that is published to
    ``balance_listener``.
    """

    def __init__(
        self,
        deriver: AddressDeriver,
        reader: AccountReader,
        builder: TransactionBuilder,
        reconciler: BalanceReconciler,
        orchestrator: WalletLifecycleOrchestrator,
        custodian: KeyCustodianProtocol,
        ledger: LedgerProtocol,
        *,
        backend: Optional[BackendClientProtocol] = None,
        balance_listener: Optional[BalanceListener] = None,
        cluster: str = "devnet",
    ) -> None:
        self.deriver = deriver
        self.reader = reader
        self.builder = builder
        self.reconciler = reconciler
        self.orchestrator = orchestrator
        self.custodian = custodian
        self.ledger = ledger
        self.backend = backend
        self.balance_listener = balance_listener
        self.cluster = cluster

    @property
    def owner(self) -> Pubkey:
        return self.custodian.public_key

    @property
    def wallet_address(self) -> Pubkey:
        return self.deriver.wallet(self.owner).address

    # Reads

    async def get_wallet(self) -> Optional[SubscriptionWallet]:
        return await self.reader.fetch_wallet(self.wallet_address)

    async def get_subscription(self, merchant: Pubkey) -> Optional[SubscriptionState]:
        address, _ = self.deriver.subscription(self.owner, merchant)
        return await self.reader.fetch_subscription(address)

    async def list_subscriptions(
        self, merchants: Optional[Iterable[Pubkey]] = None
    ) -> list[SubscriptionState]:
        """On-chain subscription records of the user.

        Addresses come from ``merchants`` when given, otherwise from the
        backend index. Each record is re-read from the ledger.
        """
        if merchants is not None:
            addresses = [
                self.deriver.subscription(self.owner, merchant).address
                for merchant in merchants
            ]
        elif self.backend is not None:
            indexed = await self.backend.get_user_subscriptions(str(self.owner))
            addresses = [Pubkey.from_string(item.subscription_pda) for item in indexed]
        else:
            raise ValueError(
                "Listing subscriptions requires merchant keys or a backend client"
            )

        records: list[SubscriptionState] = []
        for address in addresses:
            record = await self.reader.fetch_subscription(address)
            if record is not None:
                records.append(record)
        return records

    async def get_unified_balance(
        self, merchants: Optional[Iterable[Pubkey]] = None
    ) -> UnifiedBalance:
        subscriptions = await self.list_subscriptions(merchants)
        return await self.reconciler.reconcile(
            self.deriver.wallet_token_account(self.owner),
            [s for s in subscriptions if s.is_active],
        )

    # Operations

    async def ensure_wallet(self) -> Pubkey:
        return await self.orchestrator.ensure(self.owner)

    async def deposit(self, amount: MajorAmount) -> OperationResult:
        """Deposit ``amount`` (major units), creating the wallet first if needed."""
        await self.ensure_wallet()
        return await self._execute("deposit", lambda: self.builder.deposit(self.owner, amount))

    async def withdraw(self, amount: MajorAmount) -> OperationResult:
        """Withdraw ``amount`` (major units) from the available balance.

        Raises:
            AccountNotFoundError: If the user has no subscription wallet.
            InsufficientBalanceError: If ``amount`` exceeds the available
                balance; no transaction is built in that case.
        """
        if not await self.reader.wallet_exists(self.wallet_address):
            raise AccountNotFoundError(self.wallet_address, "subscription wallet")
        balance = await self.get_unified_balance()
        self.reconciler.ensure_withdrawable(balance, amount)
        return await self._execute(
            "withdraw", lambda: self.builder.withdraw(self.owner, amount)
        )

    async def subscribe(
        self, merchant: Pubkey, plan_id: str, session_token: str
    ) -> OperationResult:
        """Subscribe to ``plan_id`` of ``merchant``, consuming ``session_token``.

        Raises:
            InvalidSessionTokenError: If the token is empty or too long.
            SessionAlreadyCompletedError: If the token was already consumed.
            AlreadySubscribedError: If an active subscription exists.
            PreviouslyCancelledError: If the subscription was cancelled before.
            PlanNotFoundError: If the plan does not exist.
            PlanInactiveError: If the plan no longer accepts subscribers.
            InsufficientBalanceError: If the available balance does not cover
                the new subscription's commitment reserve.
            WalletCreationError: If the wallet is missing and cannot be created.
        """
        validate_session_token(session_token)

        # every check below is read-only; nothing is submitted until they pass
        address, _ = self.deriver.subscription(self.owner, merchant)
        check_can_subscribe(await self.reader.fetch_subscription(address), address)

        tracker_address, _ = self.deriver.session_token_tracker(session_token)
        tracker = await self.reader.fetch_session_tracker(tracker_address)
        if tracker is not None:
            raise SessionAlreadyCompletedError(session_token, str(tracker.subscription))

        plan_address, _ = self.deriver.merchant_plan(merchant, plan_id)
        plan = check_plan_subscribable(
            await self.reader.fetch_plan(plan_address), plan_address, plan_id
        )

        balance = await self.get_unified_balance()
        self.reconciler.ensure_affordable(balance, plan.fee_amount)

        await self.ensure_wallet()
        result = await self._execute(
            "subscribe",
            lambda: self.builder.subscribe(self.owner, merchant, plan_id, session_token),
        )
        result.address = address
        return result

    async def execute_payment(self, merchant: Pubkey) -> OperationResult:
        return await self._execute(
            "execute_payment", lambda: self.builder.execute_payment(self.owner, merchant)
        )

    async def cancel(self, merchant: Pubkey) -> OperationResult:
        """Cancel the subscription to ``merchant``. Cancellation is terminal."""
        return await self._execute(
            "cancel", lambda: self.builder.cancel(self.owner, merchant)
        )

    # Internals

    async def _execute(
        self, operation: str, build: Callable[[], Awaitable[UnsignedTransaction]]
    ) -> OperationResult:
        signature: Optional[str] = None
        succeeded = False
        balance: Optional[UnifiedBalance] = None
        try:
            tx = await build()
            signature = await self.custodian.sign_and_submit(tx)
            await self.ledger.confirm(signature)
            logger.info(
                "%s confirmed for %s: %s",
                operation,
                self.owner,
                transaction_url(signature, self.cluster),
            )
            succeeded = True
        finally:
            balance = await self._reconcile_after(operation, succeeded)
        return OperationResult(signature=signature, balance=balance)

    async def _reconcile_after(
        self, operation: str, succeeded: bool
    ) -> Optional[UnifiedBalance]:
        try:
            balance = await self.get_unified_balance()
        except Exception:
            if succeeded:
                raise
            # the operation's own error is already propagating
            logger.exception("Balance reconciliation after failed %s failed", operation)
            return None
        if self.balance_listener is not None:
            self.balance_listener(balance)
        return balance
