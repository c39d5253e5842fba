"""Test fixtures for in-memory implementations."""

from .fake_custodian import FakeCustodian
from .in_memory_ledger import InMemoryLedger, ProgramFailure
from .scenario import (
    MONTH_SECONDS,
    fund_user,
    ledger_indexer,
    make_checkout_session,
    seed_plan,
)
from .test_backend_client import TestBackendClient

__all__ = [
    "MONTH_SECONDS",
    "FakeCustodian",
    "InMemoryLedger",
    "ProgramFailure",
    "TestBackendClient",
    "fund_user",
    "ledger_indexer",
    "make_checkout_session",
    "seed_plan",
]
