"""Explicit composition of the protocol client from settings."""

from __future__ import annotations

from typing import NamedTuple, Optional

from .application.use_cases.account_reader import AccountReader
from .application.use_cases.balance_reconciler import BalanceReconciler
from .application.use_cases.checkout import CheckoutSessionBinder
from .application.use_cases.protocol_client import (
    BalanceListener,
    SubscriptionProtocolClient,
)
from .application.use_cases.transaction_builder import TransactionBuilder
from .application.use_cases.wallet_lifecycle import WalletLifecycleOrchestrator
from .crypto.addresses import AddressDeriver
from .domain.shared import BackendClientProtocol, KeyCustodianProtocol, LedgerProtocol
from .env import Settings
from .infrastructure.backend.backend_client import AsyncBackendClient
from .infrastructure.http.http_client import AccessTokenProvider, AsyncHttpClient
from .infrastructure.ledger.rpc_ledger import RpcLedger


class ProtocolClientBundle(NamedTuple):
    client: SubscriptionProtocolClient
    checkout: CheckoutSessionBinder
    ledger: LedgerProtocol
    backend: BackendClientProtocol

    async def aclose(self) -> None:
        await self.backend.aclose()
        aclose = getattr(self.ledger, "aclose", None)
        if aclose is not None:
            await aclose()


def build_rpc_ledger(settings: Settings) -> RpcLedger:
    return RpcLedger(
        AsyncHttpClient(settings.rpc_url, timeout=settings.rpc_timeout),
        commitment=settings.commitment,
        confirm_timeout=settings.confirm_timeout,
    )


def build_backend_client(
    settings: Settings, access_token_provider: Optional[AccessTokenProvider] = None
) -> AsyncBackendClient:
    return AsyncBackendClient(
        settings.api_base_url,
        timeout=settings.api_timeout,
        access_token_provider=access_token_provider,
    )


def build_protocol_client(
    settings: Settings,
    custodian: KeyCustodianProtocol,
    *,
    ledger: Optional[LedgerProtocol] = None,
    backend: Optional[BackendClientProtocol] = None,
    access_token_provider: Optional[AccessTokenProvider] = None,
    balance_listener: Optional[BalanceListener] = None,
) -> ProtocolClientBundle:
    """Wire every component for one user.

    ``ledger`` and ``backend`` default to the JSON-RPC and REST
    implementations configured by ``settings``. A custodian that submits
    through the ledger should be given the same ``ledger`` instance.
    """
    ledger = ledger if ledger is not None else build_rpc_ledger(settings)
    backend = (
        backend
        if backend is not None
        else build_backend_client(settings, access_token_provider)
    )

    deriver = AddressDeriver(settings.program_pubkey, settings.mint_pubkey)
    reader = AccountReader(ledger, settings.program_pubkey)
    builder = TransactionBuilder(
        ledger, deriver, reader, mint_decimals=settings.mint_decimals
    )
    reconciler = BalanceReconciler(
        reader,
        buffer_months=settings.commitment_buffer_months,
        decimals=settings.mint_decimals,
    )
    orchestrator = WalletLifecycleOrchestrator(
        deriver, reader, builder, custodian, ledger
    )
    client = SubscriptionProtocolClient(
        deriver,
        reader,
        builder,
        reconciler,
        orchestrator,
        custodian,
        ledger,
        backend=backend,
        balance_listener=balance_listener,
        cluster=settings.cluster,
    )
    checkout = CheckoutSessionBinder(client, backend, custodian)
    return ProtocolClientBundle(client, checkout, ledger, backend)
