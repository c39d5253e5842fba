"""Domain entities: on-chain accounts, the unified balance and checkout sessions."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from solders.pubkey import Pubkey


class YieldStrategy(IntEnum):
    """Yield strategy tag stored on the subscription wallet (u8 on chain)."""

    NONE = 0
    MARGINFI = 1
    KAMINO = 2
    SOLEND = 3
    DRIFT = 4


class _OnChainAccount(BaseModel):
    """Base for decoded program accounts."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)


class SubscriptionWallet(_OnChainAccount):
    """Non-custodial wallet PDA holding a user's subscription funds for one mint."""

    owner: Pubkey
    main_token_account: Pubkey
    mint: Pubkey
    yield_vault: Optional[Pubkey] = None
    yield_strategy: YieldStrategy = YieldStrategy.NONE
    is_yield_enabled: bool = False
    total_subscriptions: int = 0
    total_spent: int = 0
    bump: int


class MerchantPlan(_OnChainAccount):
    """A merchant's recurring plan; owned by the merchant side."""

    merchant: Pubkey
    mint: Pubkey
    plan_id: str
    plan_name: str
    fee_amount: int
    payment_interval: int
    is_active: bool = True
    total_subscribers: int = 0
    bump: int


class SubscriptionState(_OnChainAccount):
    """One subscription of a user to a merchant for a mint."""

    user: Pubkey
    subscription_wallet: Pubkey
    merchant: Pubkey
    mint: Pubkey
    merchant_plan: Pubkey
    fee_amount: int
    payment_interval: int
    last_payment_timestamp: int
    total_paid: int = 0
    payment_count: int = 0
    is_active: bool = True
    session_token: str = Field(default="", max_length=64)
    bump: int


class SessionTokenTracker(_OnChainAccount):
    """Marks a checkout session token as consumed."""

    session_token: str = Field(max_length=64)
    subscription: Pubkey
    used_at: int
    bump: int


class ProtocolConfig(_OnChainAccount):
    """Global program configuration."""

    authority: Pubkey
    treasury: Pubkey
    protocol_fee_bps: int = 0
    is_paused: bool = False
    bump: int


class UnifiedBalance(BaseModel):
    """Total / committed / available balance in major units.

    Never persisted; always rederived from the ledger and the subscription list.
    """

    model_config = ConfigDict(frozen=True)

    total: Decimal
    committed: Decimal
    available: Decimal

    @model_validator(mode="after")
    def check_bounds(self) -> "UnifiedBalance":
        if self.available < 0 or self.available > self.total:
            raise ValueError(
                f"available {self.available} must lie within [0, {self.total}]"
            )
        return self


class CheckoutStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    EXPIRED = "expired"


class _BackendModel(BaseModel):
    """Backend payloads are camelCase; Python attributes stay snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CheckoutMerchant(_BackendModel):
    wallet_address: str
    company_name: str
    logo_url: Optional[str] = None


class CheckoutPlan(_BackendModel):
    plan_pda: str
    plan_id: str
    plan_name: str
    fee_amount: int
    payment_interval: int
    description: Optional[str] = None


class CheckoutSession(_BackendModel):
    """A merchant-initiated subscribe request awaiting the user's wallet."""

    session_id: str
    status: CheckoutStatus
    expires_at: datetime
    success_url: str
    cancel_url: str
    customer_email: Optional[str] = None
    customer_id: Optional[str] = None
    subscription_pda: Optional[str] = None
    merchant: CheckoutMerchant
    plan: CheckoutPlan
    metadata: Optional[dict[str, str]] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return self.status == CheckoutStatus.EXPIRED or now >= expires_at
