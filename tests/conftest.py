"""Shared pytest fixtures for protocol client tests."""

from __future__ import annotations

from typing import Generator

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from eventop.application.use_cases.checkout import CheckoutSessionBinder
from eventop.application.use_cases.protocol_client import SubscriptionProtocolClient
from eventop.crypto.addresses import AddressDeriver
from eventop.domain.entities import UnifiedBalance
from eventop.env import Settings
from eventop.factory import ProtocolClientBundle, build_protocol_client
from tests.fixtures import (
    FakeCustodian,
    InMemoryLedger,
    TestBackendClient,
    ledger_indexer,
)


@pytest.fixture
def program_id() -> Pubkey:
    return Keypair().pubkey()


@pytest.fixture
def mint() -> Pubkey:
    return Keypair().pubkey()


@pytest.fixture
def deriver(program_id: Pubkey, mint: Pubkey) -> AddressDeriver:
    return AddressDeriver(program_id, mint)


@pytest.fixture
def user_keypair() -> Keypair:
    return Keypair()


@pytest.fixture
def merchant() -> Pubkey:
    return Keypair().pubkey()


@pytest.fixture
def settings(program_id: Pubkey, mint: Pubkey) -> Settings:
    return Settings(
        program_id=str(program_id),
        usdc_mint=str(mint),
        rpc_url="http://127.0.0.1:8899",
    )


@pytest.fixture
def ledger(program_id: Pubkey, mint: Pubkey) -> Generator[InMemoryLedger, None, None]:
    """Create an in-memory ledger running the program simulator."""
    ledger = InMemoryLedger(program_id, mint)
    yield ledger
    ledger.clear()


@pytest.fixture
def custodian(user_keypair: Keypair, ledger: InMemoryLedger) -> FakeCustodian:
    return FakeCustodian(user_keypair, ledger)


@pytest.fixture
def backend(ledger: InMemoryLedger) -> TestBackendClient:
    return TestBackendClient(indexer=ledger_indexer(ledger))


@pytest.fixture
def published_balances() -> list[UnifiedBalance]:
    return []


@pytest.fixture
def bundle(
    settings: Settings,
    custodian: FakeCustodian,
    ledger: InMemoryLedger,
    backend: TestBackendClient,
    published_balances: list[UnifiedBalance],
) -> ProtocolClientBundle:
    return build_protocol_client(
        settings,
        custodian,
        ledger=ledger,
        backend=backend,
        balance_listener=published_balances.append,
    )


@pytest.fixture
def client(bundle: ProtocolClientBundle) -> SubscriptionProtocolClient:
    return bundle.client


@pytest.fixture
def checkout(bundle: ProtocolClientBundle) -> CheckoutSessionBinder:
    return bundle.checkout
