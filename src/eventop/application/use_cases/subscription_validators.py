"""Pure validation functions for the subscription state machine.

A subscription for a (user, merchant, mint) triple moves
NO_SUBSCRIPTION -> ACTIVE -> CANCELLED; CANCELLED is terminal. These
functions contain the transition rules and can be tested in isolation
without a ledger.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from solders.pubkey import Pubkey

from ...domain.entities import MerchantPlan, SubscriptionState
from ...domain.errors import (
    AlreadySubscribedError,
    InvalidSessionTokenError,
    PlanInactiveError,
    PlanNotFoundError,
    PreviouslyCancelledError,
    SubscriptionInactiveError,
    SubscriptionNotFoundError,
)
from ...program.constants import MAX_SESSION_TOKEN_LENGTH


class SubscriptionStatus(str, Enum):
    NO_SUBSCRIPTION = "no_subscription"
    ACTIVE = "active"
    CANCELLED = "cancelled"


def resolve_status(record: Optional[SubscriptionState]) -> SubscriptionStatus:
    """Map an on-chain record (or its absence) to a state. Pure function."""
    if record is None:
        return SubscriptionStatus.NO_SUBSCRIPTION
    if record.is_active:
        return SubscriptionStatus.ACTIVE
    return SubscriptionStatus.CANCELLED


def validate_session_token(session_token: str) -> None:
    """Validate a session token before it is encoded.

    Raises:
        InvalidSessionTokenError: If the token is empty or longer than 64 characters.
    """
    if not session_token:
        raise InvalidSessionTokenError("Session token must not be empty")
    if len(session_token) > MAX_SESSION_TOKEN_LENGTH:
        raise InvalidSessionTokenError(
            f"Session token must be at most {MAX_SESSION_TOKEN_LENGTH} characters, "
            f"got {len(session_token)}"
        )


def check_can_subscribe(
    record: Optional[SubscriptionState], address: Pubkey
) -> None:
    """Subscribe is legal only when no record exists for the triple.

    Raises:
        AlreadySubscribedError: If an active subscription exists.
        PreviouslyCancelledError: If the triple's subscription was cancelled.
    """
    status = resolve_status(record)
    if status == SubscriptionStatus.ACTIVE:
        raise AlreadySubscribedError(
            f"Already subscribed to merchant {record.merchant} ({address})",
            address=address,
            record=record,
        )
    if status == SubscriptionStatus.CANCELLED:
        raise PreviouslyCancelledError(
            f"Subscription {address} to merchant {record.merchant} was cancelled "
            f"and cannot be reopened",
            address=address,
            record=record,
        )


def _require_active(
    record: Optional[SubscriptionState], address: Pubkey, action: str
) -> SubscriptionState:
    status = resolve_status(record)
    if status == SubscriptionStatus.NO_SUBSCRIPTION:
        raise SubscriptionNotFoundError(
            f"Cannot {action}: no subscription at {address}", address=address
        )
    if status == SubscriptionStatus.CANCELLED:
        raise SubscriptionInactiveError(
            f"Cannot {action}: subscription {address} is cancelled",
            address=address,
            record=record,
        )
    assert record is not None
    return record


def check_can_execute_payment(
    record: Optional[SubscriptionState], address: Pubkey
) -> SubscriptionState:
    """Return the active record.

    Raises:
        SubscriptionNotFoundError: If no record exists.
        SubscriptionInactiveError: If the subscription was cancelled.
    """
    return _require_active(record, address, "execute payment")


def check_can_cancel(
    record: Optional[SubscriptionState], address: Pubkey
) -> SubscriptionState:
    return _require_active(record, address, "cancel")


def check_plan_subscribable(
    plan: Optional[MerchantPlan], address: Pubkey, plan_id: str
) -> MerchantPlan:
    """Return the plan if it exists and accepts subscribers."""
    if plan is None:
        raise PlanNotFoundError(address, plan_id)
    if not plan.is_active:
        raise PlanInactiveError(address, plan_id)
    return plan
