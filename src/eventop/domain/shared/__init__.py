"""Shared domain utilities.

This package is domain-accessible and should not depend on application code.
"""

from .backend_protocol import BackendClientProtocol
from .custodian_protocol import KeyCustodianProtocol
from .ledger_protocol import AccountInfo, LatestBlockhash, LedgerProtocol

__all__ = [
    "AccountInfo",
    "BackendClientProtocol",
    "KeyCustodianProtocol",
    "LatestBlockhash",
    "LedgerProtocol",
]
