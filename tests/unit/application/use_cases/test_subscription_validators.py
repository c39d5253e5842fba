"""Unit tests for the subscription state machine (pure functions)."""

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from eventop.application.use_cases.subscription_validators import (
    SubscriptionStatus,
    check_can_cancel,
    check_can_execute_payment,
    check_can_subscribe,
    check_plan_subscribable,
    resolve_status,
    validate_session_token,
)
from eventop.domain.entities import MerchantPlan, SubscriptionState
from eventop.domain.errors import (
    AlreadySubscribedError,
    InvalidSessionTokenError,
    PlanInactiveError,
    PlanNotFoundError,
    PreviouslyCancelledError,
    RecoveryAction,
    SubscriptionInactiveError,
    SubscriptionNotFoundError,
)


@pytest.fixture
def address() -> Pubkey:
    return Keypair().pubkey()


def _state(is_active: bool = True) -> SubscriptionState:
    return SubscriptionState(
        user=Keypair().pubkey(),
        subscription_wallet=Keypair().pubkey(),
        merchant=Keypair().pubkey(),
        mint=Keypair().pubkey(),
        merchant_plan=Keypair().pubkey(),
        fee_amount=9_990_000,
        payment_interval=2_592_000,
        last_payment_timestamp=1_700_000_000,
        is_active=is_active,
        session_token="cs_1",
        bump=250,
    )


class TestResolveStatus:
    def test_no_record(self) -> None:
        assert resolve_status(None) == SubscriptionStatus.NO_SUBSCRIPTION

    def test_active_record(self) -> None:
        assert resolve_status(_state()) == SubscriptionStatus.ACTIVE

    def test_cancelled_record(self) -> None:
        assert resolve_status(_state(is_active=False)) == SubscriptionStatus.CANCELLED


class TestCheckCanSubscribe:
    def test_no_record_allows_subscribe(self, address: Pubkey) -> None:
        check_can_subscribe(None, address)
        # Should not raise

    def test_active_record_raises_with_existing_record(self, address: Pubkey) -> None:
        record = _state()
        with pytest.raises(AlreadySubscribedError) as exc_info:
            check_can_subscribe(record, address)
        assert exc_info.value.record == record
        assert exc_info.value.address == address
        assert exc_info.value.recovery == RecoveryAction.VIEW_SUBSCRIPTION

    def test_cancelled_record_cannot_be_reopened(self, address: Pubkey) -> None:
        with pytest.raises(PreviouslyCancelledError, match="cannot be reopened"):
            check_can_subscribe(_state(is_active=False), address)


class TestActiveOnlyTransitions:
    @pytest.mark.parametrize("check", [check_can_execute_payment, check_can_cancel])
    def test_missing_record_raises_not_found(self, check, address: Pubkey) -> None:
        with pytest.raises(SubscriptionNotFoundError):
            check(None, address)

    @pytest.mark.parametrize("check", [check_can_execute_payment, check_can_cancel])
    def test_cancelled_record_raises_inactive(self, check, address: Pubkey) -> None:
        with pytest.raises(SubscriptionInactiveError, match="is cancelled"):
            check(_state(is_active=False), address)

    @pytest.mark.parametrize("check", [check_can_execute_payment, check_can_cancel])
    def test_active_record_is_returned(self, check, address: Pubkey) -> None:
        record = _state()
        assert check(record, address) is record


class TestValidateSessionToken:
    def test_accepts_64_characters(self) -> None:
        validate_session_token("s" * 64)

    def test_rejects_65_characters(self) -> None:
        with pytest.raises(InvalidSessionTokenError, match="at most 64"):
            validate_session_token("s" * 65)

    def test_rejects_empty(self) -> None:
        with pytest.raises(InvalidSessionTokenError, match="must not be empty"):
            validate_session_token("")


class TestCheckPlanSubscribable:
    def _plan(self, is_active: bool) -> MerchantPlan:
        return MerchantPlan(
            merchant=Keypair().pubkey(),
            mint=Keypair().pubkey(),
            plan_id="pro",
            plan_name="Pro",
            fee_amount=1,
            payment_interval=60,
            is_active=is_active,
            bump=1,
        )

    def test_missing_plan_raises(self, address: Pubkey) -> None:
        with pytest.raises(PlanNotFoundError):
            check_plan_subscribable(None, address, "pro")

    def test_inactive_plan_raises(self, address: Pubkey) -> None:
        with pytest.raises(PlanInactiveError):
            check_plan_subscribable(self._plan(False), address, "pro")

    def test_active_plan_is_returned(self, address: Pubkey) -> None:
        plan = self._plan(True)
        assert check_plan_subscribable(plan, address, "pro") is plan
