"""Instruction schema for the subscription program.

Instructions are described as ordered ``AccountSlot`` lists. Optional accounts
(the yield vault) are ``None`` in the schema and only become the program id
when compiled, which is how the program marks an omitted optional account.
"""

from __future__ import annotations

import hashlib
from typing import Any, Optional

from borsh_construct import CStruct, String, U64
from pydantic import BaseModel, ConfigDict
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from .constants import ASSOCIATED_TOKEN_PROGRAM, SYSTEM_PROGRAM, TOKEN_PROGRAM

CREATE_SUBSCRIPTION_WALLET = "create_subscription_wallet"
DEPOSIT_TO_WALLET = "deposit_to_wallet"
WITHDRAW_FROM_WALLET = "withdraw_from_wallet"
SUBSCRIBE_WITH_WALLET = "subscribe_with_wallet"
EXECUTE_PAYMENT_FROM_WALLET = "execute_payment_from_wallet"
CANCEL_SUBSCRIPTION_WALLET = "cancel_subscription_wallet"

CREATE_ASSOCIATED_TOKEN_ACCOUNT = "create_associated_token_account"

AmountArgs = CStruct("amount" / U64)
SubscribeArgs = CStruct("plan_id" / String, "session_token" / String)

_ARG_LAYOUTS: dict[str, tuple[Any, tuple[str, ...]]] = {
    DEPOSIT_TO_WALLET: (AmountArgs, ("amount",)),
    WITHDRAW_FROM_WALLET: (AmountArgs, ("amount",)),
    SUBSCRIBE_WITH_WALLET: (SubscribeArgs, ("plan_id", "session_token")),
}


def sighash(name: str) -> bytes:
    return hashlib.sha256(f"global:{name}".encode("utf-8")).digest()[:8]


PROGRAM_INSTRUCTIONS: dict[bytes, str] = {
    sighash(name): name
    for name in (
        CREATE_SUBSCRIPTION_WALLET,
        DEPOSIT_TO_WALLET,
        WITHDRAW_FROM_WALLET,
        SUBSCRIBE_WITH_WALLET,
        EXECUTE_PAYMENT_FROM_WALLET,
        CANCEL_SUBSCRIPTION_WALLET,
    )
}


def encode_instruction_data(name: str, args: Optional[dict[str, Any]] = None) -> bytes:
    entry = _ARG_LAYOUTS.get(name)
    if entry is None:
        if args:
            raise ValueError(f"{name} takes no arguments")
        return sighash(name)
    layout, _ = entry
    return sighash(name) + layout.build(args or {})


def decode_instruction_data(data: bytes) -> tuple[str, dict[str, Any]]:
    """Inverse of ``encode_instruction_data`` for program instructions."""
    name = PROGRAM_INSTRUCTIONS.get(bytes(data[:8]))
    if name is None:
        raise ValueError("unknown instruction discriminator")
    entry = _ARG_LAYOUTS.get(name)
    if entry is None:
        return name, {}
    layout, field_names = entry
    parsed = layout.parse(bytes(data[8:]))
    return name, {key: parsed[key] for key in field_names}


class AccountSlot(BaseModel):
    """One account position in an instruction."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    name: str
    address: Optional[Pubkey]
    is_signer: bool = False
    is_writable: bool = False


class InstructionSpec(BaseModel):
    """Program id, ordered account slots and encoded data of one instruction."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    name: str
    program_id: Pubkey
    accounts: list[AccountSlot]
    data: bytes

    def account(self, name: str) -> AccountSlot:
        for slot in self.accounts:
            if slot.name == name:
                return slot
        raise KeyError(name)

    def compile(self) -> Instruction:
        metas = [
            AccountMeta(
                slot.address if slot.address is not None else self.program_id,
                slot.is_signer,
                slot.is_writable,
            )
            for slot in self.accounts
        ]
        return Instruction(self.program_id, self.data, metas)


def create_associated_token_account(
    payer: Pubkey, associated_account: Pubkey, owner: Pubkey, mint: Pubkey
) -> InstructionSpec:
    return InstructionSpec(
        name=CREATE_ASSOCIATED_TOKEN_ACCOUNT,
        program_id=ASSOCIATED_TOKEN_PROGRAM,
        accounts=[
            AccountSlot(name="payer", address=payer, is_signer=True, is_writable=True),
            AccountSlot(name="associated_account", address=associated_account, is_writable=True),
            AccountSlot(name="owner", address=owner),
            AccountSlot(name="mint", address=mint),
            AccountSlot(name="system_program", address=SYSTEM_PROGRAM),
            AccountSlot(name="token_program", address=TOKEN_PROGRAM),
        ],
        data=bytes([0]),
    )
