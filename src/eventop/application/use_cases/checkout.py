"""Bind an externally issued checkout session to an on-chain subscription."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from solders.pubkey import Pubkey

from ...crypto.ownership import (
    build_checkout_message,
    encode_signature_b58,
    verify_ownership_signature,
)
from ...domain.entities import CheckoutSession, CheckoutStatus
from ...domain.errors import (
    PartialCompletionError,
    SessionAlreadyCompletedError,
    SessionExpiredError,
)
from ...domain.shared import BackendClientProtocol, KeyCustodianProtocol
from ..dtos import (
    CheckoutCompletionRequestDTO,
    CheckoutCompletionResponseDTO,
    CheckoutResult,
)
from .protocol_client import SubscriptionProtocolClient

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def check_session_open(session: CheckoutSession, now: datetime) -> None:
    """Raise if the session can no longer be bound. Pure function.

    Raises:
        SessionAlreadyCompletedError: If the session is already completed.
        SessionExpiredError: If the session expired or is past ``expires_at``.
    """
    if session.status == CheckoutStatus.COMPLETED:
        raise SessionAlreadyCompletedError(session.session_id, session.subscription_pda)
    if session.is_expired(now):
        raise SessionExpiredError(session.session_id)


class CheckoutSessionBinder:
    """Runs the subscribe-via-checkout flow.

    1. fetch and validate the session
    2. subscribe on-chain with the session id as the single-use token
    3. sign and verify an ownership proof
    4. post the completion record to the backend
    """

    def __init__(
        self,
        client: SubscriptionProtocolClient,
        backend: BackendClientProtocol,
        custodian: KeyCustodianProtocol,
        *,
        clock: Clock = _utcnow,
    ) -> None:
        self.client = client
        self.backend = backend
        self.custodian = custodian
        self.clock = clock

    async def load_session(self, session_id: str) -> CheckoutSession:
        """Fetch a session that is still open for binding."""
        session = await self.backend.get_checkout_session(session_id)
        check_session_open(session, self.clock())
        return session

    async def bind(self, session_id: str) -> CheckoutResult:
        """Complete the checkout session.

        Raises:
            SessionNotFoundError: If the backend has no such session.
            SessionAlreadyCompletedError: If the session is already bound.
            SessionExpiredError: If the session expired.
            PartialCompletionError: If the subscription is on-chain but any later
                step failed: signing or verifying the ownership proof, or the
                backend completion.
        """
        session = await self.load_session(session_id)
        merchant = Pubkey.from_string(session.merchant.wallet_address)

        result = await self.client.subscribe(merchant, session.plan.plan_id, session_id)
        assert result.signature is not None and result.address is not None
        logger.info(
            "Checkout %s subscribed on-chain: %s (%s)",
            session_id,
            result.address,
            result.signature,
        )

        # nothing below may resubmit the transaction
        completion: Optional[CheckoutCompletionRequestDTO] = None
        try:
            completion = await self.prepare_completion(
                session_id, result.address, result.signature
            )
            response = await self.backend.complete_checkout_session(session_id, completion)
        except Exception as e:
            logger.error(
                "Checkout %s confirmed on-chain (%s) but completion failed: %r",
                session_id,
                result.signature,
                e,
            )
            raise PartialCompletionError(
                session_id, result.signature, str(result.address), completion, e
            ) from e

        return CheckoutResult(
            session_id=session_id,
            subscription_address=result.address,
            transaction_signature=result.signature,
            success_url=session.success_url,
            completion=response,
            balance=result.balance,
        )

    async def prepare_completion(
        self, session_id: str, subscription_address: Pubkey, transaction_signature: str
    ) -> CheckoutCompletionRequestDTO:
        """Sign a fresh ownership proof and build the completion request.

        Raises:
            OwnershipProofError: If the custodian's message signature does not verify.
        """
        user = self.custodian.public_key
        message = build_checkout_message(session_id, self.clock())
        raw_signature = await self.custodian.sign_message(message)
        verify_ownership_signature(user, message, raw_signature)
        return CheckoutCompletionRequestDTO(
            subscription_address=str(subscription_address),
            user_identity=str(user),
            transaction_signature=transaction_signature,
            message=message,
            ownership_signature=encode_signature_b58(raw_signature),
        )

    async def retry_completion(
        self, error: PartialCompletionError
    ) -> CheckoutCompletionResponseDTO:
        """Resubmit only the backend completion of a partially completed checkout.

        A new ownership proof is signed when the failed attempt never produced one.
        """
        logger.info(
            "Retrying completion of checkout %s (%s)",
            error.session_id,
            error.transaction_signature,
        )
        completion = error.completion
        if completion is None:
            completion = await self.prepare_completion(
                error.session_id,
                Pubkey.from_string(error.subscription_address),
                error.transaction_signature,
            )
        return await self.backend.complete_checkout_session(error.session_id, completion)
