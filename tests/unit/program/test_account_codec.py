"""Unit tests for the borsh account schemas."""

import hashlib

import pytest
from solders.keypair import Keypair

from eventop.domain.entities import (
    MerchantPlan,
    SubscriptionState,
    SubscriptionWallet,
    YieldStrategy,
)
from eventop.program.accounts import (
    MERCHANT_PLAN,
    SUBSCRIPTION_STATE,
    SUBSCRIPTION_WALLET,
    AccountDecodeError,
    account_discriminator,
    encode_account,
)


def _wallet(**overrides) -> SubscriptionWallet:
    values = dict(
        owner=Keypair().pubkey(),
        main_token_account=Keypair().pubkey(),
        mint=Keypair().pubkey(),
        bump=254,
    )
    values.update(overrides)
    return SubscriptionWallet(**values)


class TestDiscriminators:
    def test_discriminator_is_prefix_of_account_name_hash(self) -> None:
        expected = hashlib.sha256(b"account:SubscriptionWallet").digest()[:8]
        assert account_discriminator("SubscriptionWallet") == expected
        assert SUBSCRIPTION_WALLET.discriminator == expected

    def test_known_discriminators(self) -> None:
        assert MERCHANT_PLAN.discriminator == bytes([186, 54, 183, 129, 39, 81, 74, 89])
        assert SUBSCRIPTION_STATE.discriminator == bytes(
            [35, 41, 45, 165, 253, 34, 95, 225]
        )
        assert SUBSCRIPTION_WALLET.discriminator == bytes(
            [255, 81, 65, 25, 250, 57, 38, 118]
        )


class TestSubscriptionWalletSchema:
    def test_decode_encoded_wallet(self) -> None:
        wallet = _wallet(
            yield_vault=Keypair().pubkey(),
            yield_strategy=YieldStrategy.KAMINO,
            is_yield_enabled=True,
            total_subscriptions=2,
            total_spent=19_980_000,
        )
        decoded = SUBSCRIPTION_WALLET.decode(encode_account(wallet))
        assert decoded == wallet
        assert decoded.yield_strategy is YieldStrategy.KAMINO

    def test_absent_yield_vault_decodes_as_none(self) -> None:
        decoded = SUBSCRIPTION_WALLET.decode(encode_account(_wallet()))
        assert decoded.yield_vault is None

    def test_layout_size_without_yield_vault(self) -> None:
        # 8 discriminator + 3 * 32 keys + 1 option tag + 1 + 1 + 4 + 8 + 1
        assert len(encode_account(_wallet())) == 8 + 96 + 1 + 1 + 1 + 4 + 8 + 1


class TestDecodeFailures:
    def test_wrong_discriminator_raises(self) -> None:
        data = encode_account(_wallet())
        with pytest.raises(AccountDecodeError, match="discriminator"):
            MERCHANT_PLAN.decode(data)

    def test_truncated_data_raises(self) -> None:
        data = encode_account(_wallet())
        with pytest.raises(AccountDecodeError):
            SUBSCRIPTION_WALLET.decode(data[:40])

    def test_too_short_for_discriminator_raises(self) -> None:
        with pytest.raises(AccountDecodeError, match="at least 8 bytes"):
            SUBSCRIPTION_WALLET.decode(b"\x01\x02")

    def test_over_long_session_token_fails_validation(self) -> None:
        state = SubscriptionState.model_construct(
            user=Keypair().pubkey(),
            subscription_wallet=Keypair().pubkey(),
            merchant=Keypair().pubkey(),
            mint=Keypair().pubkey(),
            merchant_plan=Keypair().pubkey(),
            fee_amount=1,
            payment_interval=60,
            last_payment_timestamp=0,
            total_paid=0,
            payment_count=0,
            is_active=True,
            session_token="x" * 65,
            bump=1,
        )
        with pytest.raises(AccountDecodeError):
            SUBSCRIPTION_STATE.decode(SUBSCRIPTION_STATE.encode(state))


def test_merchant_plan_strings_survive_encoding() -> None:
    plan = MerchantPlan(
        merchant=Keypair().pubkey(),
        mint=Keypair().pubkey(),
        plan_id="pro-monthly",
        plan_name="Pro Monthly ✓",
        fee_amount=9_990_000,
        payment_interval=2_592_000,
        bump=255,
    )
    decoded = MERCHANT_PLAN.decode(encode_account(plan))
    assert decoded.plan_name == "Pro Monthly ✓"
    assert decoded.fee_amount == 9_990_000
