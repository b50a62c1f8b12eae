"""Payment transaction state machine."""

from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, status
from services.payments_service.models.enums import PaymentTransactionStatus

S = PaymentTransactionStatus

PAYMENT_TRANSACTION_TRANSITIONS: dict[PaymentTransactionStatus, tuple[PaymentTransactionStatus, ...]] = {
    S.PENDING: (S.SUCCESS, S.FAILED),
    S.SUCCESS: (S.DISPUTED, S.REFUNDED, S.REFUND_PENDING),
    S.FAILED: (S.PENDING,),
    S.DISPUTED: (S.SUCCESS, S.REFUNDED),
    S.REFUNDED: (),
    S.REFUND_PENDING: (S.REFUNDED, S.SUCCESS),
}

TERMINAL_PAYMENT_STATES = frozenset({S.REFUNDED})


@dataclass(frozen=True)
class StateTransitionResult:
    allowed: bool
    reason: Optional[str] = None


def allowed_transitions(
    current: PaymentTransactionStatus | str,
) -> tuple[PaymentTransactionStatus, ...]:
    return PAYMENT_TRANSACTION_TRANSITIONS[PaymentTransactionStatus(current)]


def is_terminal(current: PaymentTransactionStatus | str) -> bool:
    return PaymentTransactionStatus(current) in TERMINAL_PAYMENT_STATES


def validate_payment_transaction_status_transition(
    current: PaymentTransactionStatus | str,
    target: PaymentTransactionStatus | str,
) -> StateTransitionResult:
    """
    Check whether a transaction may move from ``current`` to ``target``.

    Staying in the same status is always allowed, terminal statuses included.
    """
    current = PaymentTransactionStatus(current)
    target = PaymentTransactionStatus(target)

    if current == target:
        return StateTransitionResult(allowed=True)

    if current in TERMINAL_PAYMENT_STATES:
        return StateTransitionResult(
            allowed=False,
            reason=f"Cannot change status from terminal state: {current.value}",
        )

    allowed = PAYMENT_TRANSACTION_TRANSITIONS[current]
    if target not in allowed:
        return StateTransitionResult(
            allowed=False,
            reason=(
                f"Invalid transition from {current.value} to {target.value}. "
                f"Allowed: {', '.join(s.value for s in allowed)}"
            ),
        )

    return StateTransitionResult(allowed=True)


def assert_payment_transaction_status_transition(
    current: PaymentTransactionStatus | str,
    target: PaymentTransactionStatus | str,
) -> None:
    result = validate_payment_transaction_status_transition(current, target)
    if not result.allowed:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=result.reason)
