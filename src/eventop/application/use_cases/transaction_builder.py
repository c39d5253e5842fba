"""Build unsigned transactions for every subscription wallet operation.

The builder never signs or submits. It reads the ledger only for fee-payer
metadata, token account existence and the subscription record that
execute-payment and cancel reference.
"""

from __future__ import annotations

import logging
from typing import Optional

from solders.pubkey import Pubkey

from ...crypto.addresses import AddressDeriver
from ...domain.shared import LedgerProtocol
from ...program import instructions as ix
from ...program.constants import RENT_SYSVAR, SYSTEM_PROGRAM, TOKEN_PROGRAM
from ..amounts import MajorAmount, to_smallest_unit
from ..dtos import UnsignedTransaction
from .account_reader import AccountReader
from .subscription_validators import (
    check_can_cancel,
    check_can_execute_payment,
    validate_session_token,
)

logger = logging.getLogger(__name__)

Slot = ix.AccountSlot


class TransactionBuilder:
    """Assembles instructions plus fee-payer metadata for one user."""

    def __init__(
        self,
        ledger: LedgerProtocol,
        deriver: AddressDeriver,
        reader: AccountReader,
        *,
        mint_decimals: int = 6,
    ) -> None:
        self.ledger = ledger
        self.deriver = deriver
        self.reader = reader
        self.mint_decimals = mint_decimals

    @property
    def program_id(self) -> Pubkey:
        return self.deriver.program_id

    async def _finalize(
        self, fee_payer: Pubkey, instructions: list[ix.InstructionSpec]
    ) -> UnsignedTransaction:
        latest = await self.ledger.get_latest_blockhash()
        tx = UnsignedTransaction(
            instructions=instructions,
            fee_payer=fee_payer,
            recent_blockhash=latest.blockhash,
            last_valid_block_height=latest.last_valid_block_height,
        )
        logger.debug(
            "Built transaction %s for %s", tx.instruction_names, fee_payer
        )
        return tx

    def _instruction(
        self, name: str, accounts: list[Slot], args: Optional[dict] = None
    ) -> ix.InstructionSpec:
        return ix.InstructionSpec(
            name=name,
            program_id=self.program_id,
            accounts=accounts,
            data=ix.encode_instruction_data(name, args),
        )

    async def _ensure_token_account(
        self,
        payer: Pubkey,
        owner: Pubkey,
        token_account: Pubkey,
        instructions: list[ix.InstructionSpec],
    ) -> None:
        if not await self.reader.account_exists(token_account):
            instructions.append(
                ix.create_associated_token_account(
                    payer, token_account, owner, self.deriver.mint
                )
            )

    async def create_wallet(self, owner: Pubkey) -> UnsignedTransaction:
        """Initialize the owner's subscription wallet and its token account."""
        wallet, _ = self.deriver.wallet(owner)
        main_token_account = self.deriver.token_account(wallet)
        instructions = [
            self._instruction(
                ix.CREATE_SUBSCRIPTION_WALLET,
                [
                    Slot(name="subscription_wallet", address=wallet, is_writable=True),
                    Slot(
                        name="main_token_account",
                        address=main_token_account,
                        is_writable=True,
                    ),
                    Slot(name="user", address=owner, is_signer=True, is_writable=True),
                    Slot(name="mint", address=self.deriver.mint),
                    Slot(name="token_program", address=TOKEN_PROGRAM),
                    Slot(name="system_program", address=SYSTEM_PROGRAM),
                    Slot(name="rent", address=RENT_SYSVAR),
                ],
            )
        ]
        return await self._finalize(owner, instructions)

    async def deposit(self, owner: Pubkey, amount: MajorAmount) -> UnsignedTransaction:
        """Move tokens from the owner's token account into the wallet."""
        units = to_smallest_unit(amount, self.mint_decimals)
        wallet, _ = self.deriver.wallet(owner)
        user_token_account = self.deriver.token_account(owner)
        wallet_token_account = self.deriver.token_account(wallet)

        instructions: list[ix.InstructionSpec] = []
        await self._ensure_token_account(
            owner, wallet, wallet_token_account, instructions
        )
        instructions.append(
            self._instruction(
                ix.DEPOSIT_TO_WALLET,
                self._transfer_accounts(
                    wallet, owner, user_token_account, wallet_token_account
                ),
                {"amount": units},
            )
        )
        return await self._finalize(owner, instructions)

    async def withdraw(self, owner: Pubkey, amount: MajorAmount) -> UnsignedTransaction:
        """Move tokens from the wallet back to the owner's token account."""
        units = to_smallest_unit(amount, self.mint_decimals)
        wallet, _ = self.deriver.wallet(owner)
        user_token_account = self.deriver.token_account(owner)
        wallet_token_account = self.deriver.token_account(wallet)

        instructions: list[ix.InstructionSpec] = []
        await self._ensure_token_account(
            owner, owner, user_token_account, instructions
        )
        instructions.append(
            self._instruction(
                ix.WITHDRAW_FROM_WALLET,
                self._transfer_accounts(
                    wallet, owner, user_token_account, wallet_token_account
                ),
                {"amount": units},
            )
        )
        return await self._finalize(owner, instructions)

    @staticmethod
    def _transfer_accounts(
        wallet: Pubkey,
        owner: Pubkey,
        user_token_account: Pubkey,
        wallet_token_account: Pubkey,
    ) -> list[Slot]:
        return [
            Slot(name="subscription_wallet", address=wallet),
            Slot(name="user", address=owner, is_signer=True, is_writable=True),
            Slot(name="user_token_account", address=user_token_account, is_writable=True),
            Slot(
                name="wallet_token_account",
                address=wallet_token_account,
                is_writable=True,
            ),
            Slot(name="yield_vault", address=None),
            Slot(name="token_program", address=TOKEN_PROGRAM),
        ]

    async def subscribe(
        self,
        user: Pubkey,
        merchant: Pubkey,
        plan_id: str,
        session_token: str,
    ) -> UnsignedTransaction:
        """Create the subscription record and consume the session token.

        Raises:
            InvalidSessionTokenError: If the token is empty or too long.
        """
        validate_session_token(session_token)
        wallet, _ = self.deriver.wallet(user)
        subscription, _ = self.deriver.subscription(user, merchant)
        plan, _ = self.deriver.merchant_plan(merchant, plan_id)
        tracker, _ = self.deriver.session_token_tracker(session_token)
        wallet_token_account = self.deriver.token_account(wallet)
        merchant_token_account = self.deriver.token_account(merchant)

        instructions = [
            self._instruction(
                ix.SUBSCRIBE_WITH_WALLET,
                [
                    Slot(name="subscription_state", address=subscription, is_writable=True),
                    Slot(name="subscription_wallet", address=wallet, is_writable=True),
                    Slot(name="merchant_plan", address=plan, is_writable=True),
                    Slot(name="session_token_tracker", address=tracker, is_writable=True),
                    Slot(name="user", address=user, is_signer=True, is_writable=True),
                    Slot(
                        name="wallet_token_account",
                        address=wallet_token_account,
                        is_writable=True,
                    ),
                    Slot(
                        name="merchant_token_account",
                        address=merchant_token_account,
                        is_writable=True,
                    ),
                    Slot(name="wallet_yield_vault", address=None),
                    Slot(name="token_program", address=TOKEN_PROGRAM),
                    Slot(name="system_program", address=SYSTEM_PROGRAM),
                ],
                {"plan_id": plan_id, "session_token": session_token},
            )
        ]
        return await self._finalize(user, instructions)

    async def execute_payment(
        self, user: Pubkey, merchant: Pubkey
    ) -> UnsignedTransaction:
        """Debit one billing cycle from the wallet to the merchant.

        Raises:
            SubscriptionNotFoundError: If the user never subscribed to the merchant.
            SubscriptionInactiveError: If the subscription was cancelled.
        """
        wallet, _ = self.deriver.wallet(user)
        subscription, _ = self.deriver.subscription(user, merchant)
        record = check_can_execute_payment(
            await self.reader.fetch_subscription(subscription), subscription
        )
        instructions = [
            self._instruction(
                ix.EXECUTE_PAYMENT_FROM_WALLET,
                [
                    Slot(name="subscription_state", address=subscription, is_writable=True),
                    Slot(name="subscription_wallet", address=wallet, is_writable=True),
                    Slot(name="merchant_plan", address=record.merchant_plan),
                    Slot(
                        name="wallet_token_account",
                        address=self.deriver.token_account(wallet),
                        is_writable=True,
                    ),
                    Slot(
                        name="merchant_token_account",
                        address=self.deriver.token_account(merchant),
                        is_writable=True,
                    ),
                    Slot(name="token_program", address=TOKEN_PROGRAM),
                ],
            )
        ]
        return await self._finalize(user, instructions)

    async def cancel(self, user: Pubkey, merchant: Pubkey) -> UnsignedTransaction:
        wallet, _ = self.deriver.wallet(user)
        subscription, _ = self.deriver.subscription(user, merchant)
        record = check_can_cancel(
            await self.reader.fetch_subscription(subscription), subscription
        )
        instructions = [
            self._instruction(
                ix.CANCEL_SUBSCRIPTION_WALLET,
                [
                    Slot(name="subscription_state", address=subscription, is_writable=True),
                    Slot(name="subscription_wallet", address=wallet, is_writable=True),
                    Slot(name="merchant_plan", address=record.merchant_plan, is_writable=True),
                    Slot(name="user", address=user, is_signer=True, is_writable=True),
                ],
            )
        ]
        return await self._finalize(user, instructions)
