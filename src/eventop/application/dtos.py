"""Data Transfer Objects for the protocol client application layer."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from solders.pubkey import Pubkey

from ..domain.entities import UnifiedBalance
from ..program.instructions import InstructionSpec


class UnsignedTransaction(BaseModel):
    """Instructions plus fee-payer metadata, ready for the custodian to sign."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    instructions: list[InstructionSpec]
    fee_payer: Pubkey
    recent_blockhash: str
    last_valid_block_height: int

    @property
    def instruction_names(self) -> list[str]:
        return [instruction.name for instruction in self.instructions]


class OperationResult(BaseModel):
    """Outcome of a confirmed state-changing operation."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    signature: str
    balance: Optional[UnifiedBalance] = None
    address: Optional[Pubkey] = None


class _BackendDTO(BaseModel):
    """Backend payloads use camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MerchantPlanDTO(_BackendDTO):
    """Indexed merchant plan as listed by the backend catalogue."""

    plan_pda: str
    merchant_wallet: str
    plan_id: str
    plan_name: str
    mint: str
    fee_amount: int
    payment_interval: int
    is_active: bool
    total_subscribers: int = 0
    description: Optional[str] = None
    logo_url: Optional[str] = None
    category: Optional[str] = None


class UserSubscriptionDTO(_BackendDTO):
    """Indexed subscription of a user."""

    subscription_pda: str
    user_wallet: str
    subscription_wallet_pda: Optional[str] = None
    merchant_wallet: str
    merchant_plan_pda: str
    mint: Optional[str] = None
    fee_amount: int
    payment_interval: int
    last_payment_timestamp: int = 0
    total_paid: int = 0
    payment_count: int = 0
    is_active: bool
    customer_email: Optional[str] = None
    customer_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class WalletBalanceDTO(_BackendDTO):
    """Indexed summary of a subscription wallet."""

    wallet_pda: str
    owner_wallet: str
    mint: str
    is_yield_enabled: bool = False
    total_subscriptions: int = 0
    total_spent: int = 0


class CheckoutCompletionRequestDTO(_BackendDTO):
    """Binds a checkout session to its on-chain subscription.

    ``ownership_signature`` is the base58 Ed25519 signature over ``message``
    by ``user_identity``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    subscription_address: str = Field(..., min_length=32, max_length=44)
    user_identity: str = Field(..., min_length=32, max_length=44)
    transaction_signature: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    ownership_signature: str = Field(..., min_length=1)


class CheckoutCompletionResponseDTO(_BackendDTO):
    success: bool = True
    subscription_pda: Optional[str] = None
    redirect_url: Optional[str] = None


class CheckoutResult(BaseModel):
    """Result of binding a checkout session."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    session_id: str
    subscription_address: Pubkey
    transaction_signature: str
    success_url: str
    completion: CheckoutCompletionResponseDTO
    balance: Optional[UnifiedBalance] = None

