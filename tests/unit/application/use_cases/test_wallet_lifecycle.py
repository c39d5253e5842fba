"""Unit tests for WalletLifecycleOrchestrator."""

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from eventop.application.use_cases.account_reader import AccountReader
from eventop.application.use_cases.transaction_builder import TransactionBuilder
from eventop.application.use_cases.wallet_lifecycle import (
    WalletLifecycleOrchestrator,
    WalletStatus,
)
from eventop.crypto.addresses import AddressDeriver
from eventop.domain.errors import RecoveryAction, WalletCreationError
from tests.fixtures import FakeCustodian, InMemoryLedger


@pytest.fixture
def orchestrator(
    ledger: InMemoryLedger,
    deriver: AddressDeriver,
    program_id: Pubkey,
    custodian: FakeCustodian,
) -> WalletLifecycleOrchestrator:
    reader = AccountReader(ledger, program_id)
    builder = TransactionBuilder(ledger, deriver, reader)
    return WalletLifecycleOrchestrator(deriver, reader, builder, custodian, ledger)


class TestEnsure:
    @pytest.mark.asyncio
    async def test_creates_missing_wallet_once(
        self,
        orchestrator: WalletLifecycleOrchestrator,
        custodian: FakeCustodian,
        deriver: AddressDeriver,
    ) -> None:
        owner = custodian.public_key

        first = await orchestrator.ensure(owner)
        second = await orchestrator.ensure(owner)

        assert first == second == deriver.wallet(owner).address
        assert len(custodian.transactions) == 1
        assert orchestrator.status(owner) == WalletStatus.EXISTS

    @pytest.mark.asyncio
    async def test_custodian_error_after_wallet_landed_is_absorbed(
        self,
        orchestrator: WalletLifecycleOrchestrator,
        custodian: FakeCustodian,
        ledger: InMemoryLedger,
    ) -> None:
        owner = custodian.public_key
        custodian.fail_after_next_submit(RuntimeError("wallet adapter timed out"))

        address = await orchestrator.ensure(owner)

        assert len(ledger.confirmed) == 1
        assert await orchestrator.reader.wallet_exists(address)
        assert orchestrator.status(owner) == WalletStatus.EXISTS

    @pytest.mark.asyncio
    async def test_generic_error_without_wallet_raises_wallet_creation_error(
        self,
        orchestrator: WalletLifecycleOrchestrator,
        custodian: FakeCustodian,
    ) -> None:
        owner = custodian.public_key
        custodian.fail_next_submit(RuntimeError("user rejected the request"))

        with pytest.raises(WalletCreationError) as exc_info:
            await orchestrator.ensure(owner)

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert exc_info.value.recovery == RecoveryAction.RETRY
        assert orchestrator.status(owner) == WalletStatus.MISSING


def test_status_is_unknown_for_unseen_owner(
    orchestrator: WalletLifecycleOrchestrator,
) -> None:
    assert orchestrator.status(Keypair().pubkey()) == WalletStatus.UNKNOWN
