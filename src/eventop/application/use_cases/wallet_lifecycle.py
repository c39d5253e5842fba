"""Ensure a subscription wallet exists before operations that need one."""

from __future__ import annotations

import logging
from enum import Enum

from solders.pubkey import Pubkey

from ...crypto.addresses import AddressDeriver
from ...domain.errors import WalletCreationError
from ...domain.shared import KeyCustodianProtocol, LedgerProtocol
from .account_reader import AccountReader
from .transaction_builder import TransactionBuilder

logger = logging.getLogger(__name__)


class WalletStatus(str, Enum):
    UNKNOWN = "unknown"
    CHECKING = "checking"
    EXISTS = "exists"
    MISSING = "missing"
    CREATING = "creating"


class WalletLifecycleOrchestrator:
    """Check, create, then recheck the owner's subscription wallet.

    Existence is always read from the ledger. The last observed status per
    owner is kept only for observability, never to skip the check. One
    orchestrator serves the single custodian owner of a client, so the status
    map holds one entry in practice and is never pruned.
    """

    def __init__(
        self,
        deriver: AddressDeriver,
        reader: AccountReader,
        builder: TransactionBuilder,
        custodian: KeyCustodianProtocol,
        ledger: LedgerProtocol,
    ) -> None:
        self.deriver = deriver
        self.reader = reader
        self.builder = builder
        self.custodian = custodian
        self.ledger = ledger
        self._statuses: dict[Pubkey, WalletStatus] = {}

    def status(self, owner: Pubkey) -> WalletStatus:
        return self._statuses.get(owner, WalletStatus.UNKNOWN)

    def _transition(self, owner: Pubkey, status: WalletStatus) -> None:
        previous = self.status(owner)
        self._statuses[owner] = status
        logger.info("Wallet of %s: %s -> %s", owner, previous.value, status.value)

    async def ensure(self, owner: Pubkey) -> Pubkey:
        """Return the owner's wallet address, creating the wallet if needed.

        Any creation failure, including custodian errors after the transaction
        landed, is followed by a recheck. It is tolerated when the recheck
        finds the wallet, as when a concurrent caller created it first.

        Raises:
            WalletCreationError: If the wallet is still missing after a failed creation.
        """
        address, _ = self.deriver.wallet(owner)

        self._transition(owner, WalletStatus.CHECKING)
        if await self.reader.wallet_exists(address):
            self._transition(owner, WalletStatus.EXISTS)
            return address

        self._transition(owner, WalletStatus.MISSING)
        self._transition(owner, WalletStatus.CREATING)
        try:
            tx = await self.builder.create_wallet(owner)
            signature = await self.custodian.sign_and_submit(tx)
            await self.ledger.confirm(signature)
            logger.info("Created subscription wallet %s (%s)", address, signature)
        except Exception as e:
            if await self.reader.wallet_exists(address):
                logger.info(
                    "Wallet %s exists after failed creation; ignoring: %r",
                    address,
                    e,
                )
            else:
                self._transition(owner, WalletStatus.MISSING)
                raise WalletCreationError(address, e) from e

        self._transition(owner, WalletStatus.EXISTS)
        return address
