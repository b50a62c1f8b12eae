"""Unit tests for the payment transaction state machine."""

import pytest
from fastapi import HTTPException
from services.payments_service.models import PaymentTransactionStatus as S
from services.payments_service.state_machine import (
    PAYMENT_TRANSACTION_TRANSITIONS,
    allowed_transitions,
    assert_payment_transaction_status_transition,
    is_terminal,
    validate_payment_transaction_status_transition,
)


@pytest.mark.unit
@pytest.mark.parametrize("status", list(S))
def test_same_status_is_always_allowed(status):
    result = validate_payment_transaction_status_transition(status, status)

    assert result.allowed is True
    assert result.reason is None


@pytest.mark.unit
@pytest.mark.parametrize("target", [s for s in S if s != S.REFUNDED])
def test_refunded_is_terminal(target):
    result = validate_payment_transaction_status_transition(S.REFUNDED, target)

    assert result.allowed is False
    assert result.reason == "Cannot change status from terminal state: REFUNDED"


@pytest.mark.unit
def test_pending_to_success_allowed():
    assert validate_payment_transaction_status_transition(S.PENDING, S.SUCCESS).allowed


@pytest.mark.unit
def test_pending_to_disputed_rejected_with_allowed_list():
    result = validate_payment_transaction_status_transition(S.PENDING, S.DISPUTED)

    assert result.allowed is False
    assert result.reason == (
        "Invalid transition from PENDING to DISPUTED. Allowed: SUCCESS, FAILED"
    )


@pytest.mark.unit
@pytest.mark.parametrize(
    "current,target",
    [
        (S.PENDING, S.SUCCESS),
        (S.PENDING, S.FAILED),
        (S.SUCCESS, S.DISPUTED),
        (S.SUCCESS, S.REFUNDED),
        (S.SUCCESS, S.REFUND_PENDING),
        (S.FAILED, S.PENDING),
        (S.DISPUTED, S.SUCCESS),
        (S.DISPUTED, S.REFUNDED),
        (S.REFUND_PENDING, S.REFUNDED),
        (S.REFUND_PENDING, S.SUCCESS),
    ],
)
def test_table_transitions_allowed(current, target):
    assert validate_payment_transaction_status_transition(current, target).allowed


@pytest.mark.unit
def test_every_transition_outside_the_table_is_rejected():
    for current in S:
        for target in S:
            if target == current or target in PAYMENT_TRANSACTION_TRANSITIONS[current]:
                continue
            result = validate_payment_transaction_status_transition(current, target)
            assert result.allowed is False, (current, target)
            assert result.reason


@pytest.mark.unit
def test_failed_cannot_jump_to_success():
    result = validate_payment_transaction_status_transition(S.FAILED, S.SUCCESS)

    assert not result.allowed
    assert result.reason.endswith("Allowed: PENDING")


@pytest.mark.unit
def test_accepts_string_values():
    assert validate_payment_transaction_status_transition("SUCCESS", "REFUND_PENDING").allowed
    assert not validate_payment_transaction_status_transition("REFUNDED", "SUCCESS").allowed


@pytest.mark.unit
def test_helpers():
    assert is_terminal(S.REFUNDED)
    assert not is_terminal(S.DISPUTED)
    assert allowed_transitions(S.REFUND_PENDING) == (S.REFUNDED, S.SUCCESS)
    assert allowed_transitions(S.REFUNDED) == ()


@pytest.mark.unit
def test_assert_transition_raises_conflict():
    with pytest.raises(HTTPException) as exc_info:
        assert_payment_transaction_status_transition(S.PENDING, S.REFUNDED)

    assert exc_info.value.status_code == 409
    assert "Invalid transition from PENDING to REFUNDED" in exc_info.value.detail


@pytest.mark.unit
def test_assert_transition_passes_for_allowed():
    assert_payment_transaction_status_transition(S.SUCCESS, S.DISPUTED)
