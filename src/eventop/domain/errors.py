"""Domain-specific exceptions.

Every error carries a ``recovery`` hint so callers can render an actionable
message (offer a deposit, navigate to an existing subscription, retry, ...)
without string-matching on the message.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from decimal import Decimal

    from solders.pubkey import Pubkey

    from .entities import SubscriptionState


class RecoveryAction(str, Enum):
    """What the caller should offer the user after an error."""

    NONE = "none"
    RETRY = "retry"
    DEPOSIT = "deposit"
    VIEW_SUBSCRIPTION = "view_subscription"
    RETRY_FROM_MERCHANT = "retry_from_merchant"
    RETRY_COMPLETION = "retry_completion"
    CONTACT_SUPPORT = "contact_support"
    REAUTHENTICATE = "reauthenticate"


class ProtocolError(Exception):
    """Base class for every error raised by the protocol client."""

    recovery: RecoveryAction = RecoveryAction.NONE


class AddressDerivationError(ProtocolError, ValueError):
    """Raised when derivation inputs are malformed. Never retried."""


class AccountNotFoundError(ProtocolError):
    """Raised when an account that must exist is absent."""

    def __init__(self, address: "Pubkey", kind: str = "account") -> None:
        super().__init__(f"{kind} {address} not found")
        self.address = address
        self.kind = kind


class CorruptAccountError(ProtocolError):
    """Raised when account data does not decode against its schema."""

    recovery = RecoveryAction.CONTACT_SUPPORT

    def __init__(self, address: "Pubkey", kind: str, reason: str) -> None:
        super().__init__(f"Corrupt {kind} account {address}: {reason}")
        self.address = address
        self.kind = kind
        self.reason = reason


class InvalidAmountError(ProtocolError, ValueError):
    """Raised for non-positive or unparseable amounts."""


class InvalidSessionTokenError(ProtocolError, ValueError):
    """Raised for empty or over-long session tokens."""


class InsufficientBalanceError(ProtocolError):
    """Raised when the available balance does not cover a request."""

    recovery = RecoveryAction.DEPOSIT

    def __init__(self, required: "Decimal", available: "Decimal") -> None:
        super().__init__(
            f"Insufficient balance: required {required}, available {available}"
        )
        self.required = required
        self.available = available


class SubscriptionStateError(ProtocolError):
    """Base for subscription state machine violations."""

    def __init__(
        self,
        message: str,
        *,
        address: Optional["Pubkey"] = None,
        record: Optional["SubscriptionState"] = None,
    ) -> None:
        super().__init__(message)
        self.address = address
        self.record = record


class AlreadySubscribedError(SubscriptionStateError):
    """Raised when an active subscription already exists for the triple."""

    recovery = RecoveryAction.VIEW_SUBSCRIPTION


class PreviouslyCancelledError(SubscriptionStateError):
    """Raised when re-subscribing to a merchant after a cancellation."""

    recovery = RecoveryAction.CONTACT_SUPPORT


class SubscriptionNotFoundError(SubscriptionStateError):
    """Raised when no subscription record exists for the triple."""


class SubscriptionInactiveError(SubscriptionStateError):
    """Raised when operating on a cancelled subscription."""

    recovery = RecoveryAction.VIEW_SUBSCRIPTION


class PlanNotFoundError(ProtocolError):
    """Raised when the merchant plan account does not exist."""

    def __init__(self, address: "Pubkey", plan_id: str) -> None:
        super().__init__(f"Merchant plan {plan_id!r} ({address}) not found")
        self.address = address
        self.plan_id = plan_id


class PlanInactiveError(ProtocolError):
    """Raised when the merchant has deactivated the plan."""

    def __init__(self, address: "Pubkey", plan_id: str) -> None:
        super().__init__(f"Merchant plan {plan_id!r} ({address}) is not active")
        self.address = address
        self.plan_id = plan_id


class SessionNotFoundError(ProtocolError):
    """Raised when the backend has no checkout session with this id."""

    recovery = RecoveryAction.RETRY_FROM_MERCHANT

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Checkout session {session_id} not found")
        self.session_id = session_id


class SessionExpiredError(ProtocolError):
    """Raised when a checkout session is past its expiry."""

    recovery = RecoveryAction.RETRY_FROM_MERCHANT

    def __init__(self, session_id: str) -> None:
        super().__init__(
            f"Checkout session {session_id} has expired; start over from the merchant"
        )
        self.session_id = session_id


class SessionAlreadyCompletedError(ProtocolError):
    """Raised when a checkout session was already bound to a subscription."""

    recovery = RecoveryAction.VIEW_SUBSCRIPTION

    def __init__(self, session_id: str, subscription_address: Optional[str]) -> None:
        super().__init__(f"Checkout session {session_id} is already completed")
        self.session_id = session_id
        self.subscription_address = subscription_address


class OwnershipProofError(ProtocolError):
    """Raised when the custodian's message signature does not verify."""

    recovery = RecoveryAction.RETRY


class SubmissionFailedError(ProtocolError):
    """Raised when the ledger rejects a transaction.

    Retryable by rebuilding the transaction with a fresh blockhash.
    """

    recovery = RecoveryAction.RETRY

    def __init__(self, message: str, signature: Optional[str] = None) -> None:
        super().__init__(message)
        self.signature = signature


class LedgerError(ProtocolError):
    """Raised when a ledger read fails (transport error or JSON-RPC error)."""

    recovery = RecoveryAction.RETRY

    def __init__(self, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.code = code


class WalletCreationError(ProtocolError):
    """Raised when a subscription wallet is still missing after creation."""

    recovery = RecoveryAction.RETRY

    def __init__(self, address: "Pubkey", cause: BaseException) -> None:
        super().__init__(f"Failed to create subscription wallet {address}: {cause}")
        self.address = address


class PartialCompletionError(ProtocolError):
    """Raised when the on-chain subscribe succeeded but the checkout was not recorded.

    Covers every step after confirmation: signing the ownership proof,
    verifying it and posting the completion. Only the completion may be
    retried; the transaction must not be resubmitted. ``completion`` is the
    prepared request, or None when the proof itself could not be produced.
    """

    recovery = RecoveryAction.RETRY_COMPLETION

    def __init__(
        self,
        session_id: str,
        transaction_signature: str,
        subscription_address: str,
        completion: Any,
        cause: BaseException,
    ) -> None:
        super().__init__(
            f"Subscription {transaction_signature} confirmed on-chain but checkout "
            f"session {session_id} was not completed: {cause}"
        )
        self.session_id = session_id
        self.transaction_signature = transaction_signature
        self.subscription_address = subscription_address
        self.completion = completion


class BackendError(ProtocolError):
    """Raised when the backend REST API fails."""

    recovery = RecoveryAction.RETRY

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BackendUnauthorizedError(BackendError):
    """Raised when the backend rejects the access token."""

    recovery = RecoveryAction.REAUTHENTICATE
