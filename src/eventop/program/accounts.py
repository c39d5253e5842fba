"""Borsh schemas for every program account kind.

A single decode path serves all account kinds: an 8-byte discriminator
(``sha256("account:<Name>")[:8]``) followed by the borsh-encoded fields.
"""

from __future__ import annotations

import hashlib
from typing import Any, Callable, Generic, NamedTuple, Type, TypeVar

from borsh_construct import I64, U16, U32, U64, U8, Bool, CStruct, Option, String
from construct import ConstructError
from pydantic import BaseModel, ValidationError
from solders.pubkey import Pubkey

from ..domain.entities import (
    MerchantPlan,
    ProtocolConfig,
    SessionTokenTracker,
    SubscriptionState,
    SubscriptionWallet,
    YieldStrategy,
)

T = TypeVar("T", bound=BaseModel)

DISCRIMINATOR_LENGTH = 8


class AccountDecodeError(ValueError):
    """Account bytes do not match the expected schema."""


def account_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"account:{name}".encode("utf-8")).digest()[:DISCRIMINATOR_LENGTH]


def _identity(value: Any) -> Any:
    return value


def _pubkey_from_raw(raw: Any) -> Pubkey:
    return Pubkey.from_bytes(bytes(raw))


def _pubkey_to_raw(value: Pubkey) -> list[int]:
    return list(bytes(value))


def _optional_pubkey_from_raw(raw: Any) -> Pubkey | None:
    return None if raw is None else _pubkey_from_raw(raw)


def _optional_pubkey_to_raw(value: Pubkey | None) -> list[int] | None:
    return None if value is None else _pubkey_to_raw(value)


class _Field(NamedTuple):
    name: str
    subcon: Any
    decode: Callable[[Any], Any] = _identity
    encode: Callable[[Any], Any] = _identity


def _pubkey(name: str) -> _Field:
    return _Field(name, U8[32], _pubkey_from_raw, _pubkey_to_raw)


def _optional_pubkey(name: str) -> _Field:
    return _Field(name, Option(U8[32]), _optional_pubkey_from_raw, _optional_pubkey_to_raw)


class AccountSchema(Generic[T]):
    """Discriminator plus ordered borsh fields for one account kind."""

    def __init__(self, name: str, model: Type[T], fields: list[_Field]) -> None:
        self.name = name
        self.model = model
        self.fields = fields
        self.discriminator = account_discriminator(name)
        self.layout = CStruct(*(field.name / field.subcon for field in fields))

    def decode(self, data: bytes) -> T:
        if len(data) < DISCRIMINATOR_LENGTH:
            raise AccountDecodeError(
                f"expected at least {DISCRIMINATOR_LENGTH} bytes, got {len(data)}"
            )
        if data[:DISCRIMINATOR_LENGTH] != self.discriminator:
            raise AccountDecodeError(f"discriminator does not match {self.name}")
        try:
            parsed = self.layout.parse(data[DISCRIMINATOR_LENGTH:])
            values = {field.name: field.decode(parsed[field.name]) for field in self.fields}
            return self.model.model_validate(values)
        except (ConstructError, UnicodeDecodeError, ValidationError, ValueError) as e:
            raise AccountDecodeError(f"{self.name}: {e}") from e

    def encode(self, account: T) -> bytes:
        values = {
            field.name: field.encode(getattr(account, field.name))
            for field in self.fields
        }
        return self.discriminator + self.layout.build(values)


SUBSCRIPTION_WALLET = AccountSchema(
    "SubscriptionWallet",
    SubscriptionWallet,
    [
        _pubkey("owner"),
        _pubkey("main_token_account"),
        _pubkey("mint"),
        _optional_pubkey("yield_vault"),
        _Field("yield_strategy", U8, YieldStrategy, int),
        _Field("is_yield_enabled", Bool),
        _Field("total_subscriptions", U32),
        _Field("total_spent", U64),
        _Field("bump", U8),
    ],
)

MERCHANT_PLAN = AccountSchema(
    "MerchantPlan",
    MerchantPlan,
    [
        _pubkey("merchant"),
        _pubkey("mint"),
        _Field("plan_id", String),
        _Field("plan_name", String),
        _Field("fee_amount", U64),
        _Field("payment_interval", I64),
        _Field("is_active", Bool),
        _Field("total_subscribers", U32),
        _Field("bump", U8),
    ],
)

SUBSCRIPTION_STATE = AccountSchema(
    "SubscriptionState",
    SubscriptionState,
    [
        _pubkey("user"),
        _pubkey("subscription_wallet"),
        _pubkey("merchant"),
        _pubkey("mint"),
        _pubkey("merchant_plan"),
        _Field("fee_amount", U64),
        _Field("payment_interval", I64),
        _Field("last_payment_timestamp", I64),
        _Field("total_paid", U64),
        _Field("payment_count", U32),
        _Field("is_active", Bool),
        _Field("session_token", String),
        _Field("bump", U8),
    ],
)

SESSION_TOKEN_TRACKER = AccountSchema(
    "SessionTokenTracker",
    SessionTokenTracker,
    [
        _Field("session_token", String),
        _pubkey("subscription"),
        _Field("used_at", I64),
        _Field("bump", U8),
    ],
)

PROTOCOL_CONFIG = AccountSchema(
    "ProtocolConfig",
    ProtocolConfig,
    [
        _pubkey("authority"),
        _pubkey("treasury"),
        _Field("protocol_fee_bps", U16),
        _Field("is_paused", Bool),
        _Field("bump", U8),
    ],
)

SCHEMAS: dict[type, AccountSchema[Any]] = {
    schema.model: schema
    for schema in (
        SUBSCRIPTION_WALLET,
        MERCHANT_PLAN,
        SUBSCRIPTION_STATE,
        SESSION_TOKEN_TRACKER,
        PROTOCOL_CONFIG,
    )
}


def schema_for(model: Type[T]) -> AccountSchema[T]:
    return SCHEMAS[model]


def encode_account(account: BaseModel) -> bytes:
    """Serialize an account entity with its discriminator."""
    return SCHEMAS[type(account)].encode(account)
