"""Builders for ledger state and checkout sessions used across tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from solders.pubkey import Pubkey

from eventop.application.dtos import UserSubscriptionDTO
from eventop.domain.entities import (
    CheckoutSession,
    CheckoutStatus,
    MerchantPlan,
)

from .in_memory_ledger import InMemoryLedger

MONTH_SECONDS = 30 * 24 * 60 * 60


def seed_plan(
    ledger: InMemoryLedger,
    merchant: Pubkey,
    plan_id: str = "pro-monthly",
    *,
    fee_amount: int = 9_990_000,
    is_active: bool = True,
) -> Pubkey:
    """Store a merchant plan and the merchant's token account; return the plan address."""
    address, bump = ledger.deriver.merchant_plan(merchant, plan_id)
    ledger.put_account(
        address,
        MerchantPlan(
            merchant=merchant,
            mint=ledger.mint,
            plan_id=plan_id,
            plan_name=plan_id.replace("-", " ").title(),
            fee_amount=fee_amount,
            payment_interval=MONTH_SECONDS,
            is_active=is_active,
            bump=bump,
        ),
    )
    ledger.set_token_balance(ledger.deriver.token_account(merchant), 0)
    return address


def fund_user(ledger: InMemoryLedger, owner: Pubkey, amount: int) -> Pubkey:
    """Give ``owner`` a token account holding ``amount`` smallest units."""
    token_account = ledger.deriver.token_account(owner)
    ledger.set_token_balance(token_account, amount)
    return token_account


def ledger_indexer(ledger: InMemoryLedger):
    """Backend subscription index that mirrors the in-memory ledger."""

    def index(wallet: str) -> list[UserSubscriptionDTO]:
        return [
            UserSubscriptionDTO(
                subscription_pda=str(address),
                user_wallet=str(state.user),
                subscription_wallet_pda=str(state.subscription_wallet),
                merchant_wallet=str(state.merchant),
                merchant_plan_pda=str(state.merchant_plan),
                mint=str(state.mint),
                fee_amount=state.fee_amount,
                payment_interval=state.payment_interval,
                last_payment_timestamp=state.last_payment_timestamp,
                total_paid=state.total_paid,
                payment_count=state.payment_count,
                is_active=state.is_active,
            )
            for address, state in ledger.subscriptions_of(Pubkey.from_string(wallet))
        ]

    return index


def make_checkout_session(
    session_id: str,
    merchant: Pubkey,
    plan_address: Pubkey,
    plan_id: str = "pro-monthly",
    *,
    fee_amount: int = 9_990_000,
    status: CheckoutStatus = CheckoutStatus.PENDING,
    expires_at: Optional[datetime] = None,
    subscription_pda: Optional[str] = None,
) -> CheckoutSession:
    """Build a session the way the backend serializes it (camelCase)."""
    if expires_at is None:
        expires_at = datetime.now(timezone.utc) + timedelta(hours=1)
    return CheckoutSession.model_validate(
        {
            "sessionId": session_id,
            "status": status.value,
            "expiresAt": expires_at.isoformat(),
            "successUrl": "https://merchant.example/success",
            "cancelUrl": "https://merchant.example/cancel",
            "customerEmail": "customer@example.com",
            "subscriptionPda": subscription_pda,
            "merchant": {
                "walletAddress": str(merchant),
                "companyName": "Example Merchant",
                "logoUrl": None,
            },
            "plan": {
                "planPda": str(plan_address),
                "planId": plan_id,
                "planName": "Pro Monthly",
                "feeAmount": fee_amount,
                "paymentInterval": MONTH_SECONDS,
                "description": "Everything in Pro",
            },
        }
    )


__all__ = [
    "MONTH_SECONDS",
    "fund_user",
    "ledger_indexer",
    "make_checkout_session",
    "seed_plan",
]
