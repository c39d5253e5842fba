"""Protocol interface for backend REST client implementations.

This protocol defines the contract the protocol client relies on. It enables
dependency injection and makes services testable by allowing mock
implementations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional, Protocol, Type
from types import TracebackType

if TYPE_CHECKING:
    from ..entities import CheckoutSession
    from ...application.dtos import (
        CheckoutCompletionRequestDTO,
        CheckoutCompletionResponseDTO,
        MerchantPlanDTO,
        UserSubscriptionDTO,
        WalletBalanceDTO,
    )


class BackendClientProtocol(Protocol):
    """Protocol defining the interface for backend client implementations."""

    # Plan catalogue

    async def search_plans(
        self, *, category: Optional[str] = None, search: Optional[str] = None
    ) -> list["MerchantPlanDTO"]:
        """Search the merchant plan catalogue."""
        ...

    async def get_plan(self, plan_pda: str) -> "MerchantPlanDTO":
        """Get one merchant plan by its on-chain address."""
        ...

    # Subscription history

    async def get_user_subscriptions(self, wallet: str) -> list["UserSubscriptionDTO"]:
        """List the indexed subscriptions of a user wallet."""
        ...

    async def get_subscription(self, subscription_pda: str) -> dict[str, Any]:
        """Get the indexed detail of one subscription."""
        ...

    async def get_upcoming_payments(self, wallet: str) -> list[dict[str, Any]]:
        """List upcoming recurring payments for a user wallet."""
        ...

    async def get_wallet_summary(self, wallet_pda: str) -> "WalletBalanceDTO":
        """Get the indexed summary of a subscription wallet."""
        ...

    async def get_user_stats(self, wallet: str) -> dict[str, Any]:
        """Get aggregate statistics for a user wallet."""
        ...

    # Checkout

    async def get_checkout_session(self, session_id: str) -> "CheckoutSession":
        """Fetch a checkout session.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        ...

    async def complete_checkout_session(
        self, session_id: str, dto: "CheckoutCompletionRequestDTO"
    ) -> "CheckoutCompletionResponseDTO":
        """Bind a checkout session to the on-chain subscription."""
        ...

    # Context Manager Support

    async def aclose(self) -> None:
        ...

    async def __aenter__(self: "BackendClientProtocol") -> "BackendClientProtocol":
        ...

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        ...
