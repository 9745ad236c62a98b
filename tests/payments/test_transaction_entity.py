from decimal import Decimal

import pytest

from domain.common.exceptions import DomainValidationException, InvalidTransitionException
from domain.payment.entity import (
    TRANSITIONS,
    PaymentStatus,
    Transaction,
    can_transition,
    predecessors,
)


def test_open_builds_pending_row():
    tx = Transaction.open(order_id="order_abc", amount=500, currency="inr", metadata={"sku": "A1"})
    assert tx.payment_status is PaymentStatus.PENDING
    assert tx.amount == Decimal("500")
    assert tx.currency == "INR"
    assert tx.transaction_id.startswith("txn_")
    assert tx.is_verified is False and tx.is_refunded is False
    assert tx.metadata == {"sku": "A1"}
    assert tx.created_at is not None and tx.created_at.tzinfo is not None


@pytest.mark.parametrize("amount", [0, -1, "-0.01"])
def test_non_positive_amount_rejected(amount):
    with pytest.raises(DomainValidationException):
        Transaction.open(order_id="order_abc", amount=amount)


def test_invalid_currency_rejected():
    with pytest.raises(DomainValidationException):
        Transaction.open(order_id="order_abc", amount=1, currency="RUPEE")


def test_allowed_transitions():
    assert can_transition(PaymentStatus.PENDING, PaymentStatus.SUCCESS)
    assert can_transition(PaymentStatus.PENDING, PaymentStatus.FAILED)
    assert can_transition(PaymentStatus.PENDING, PaymentStatus.ERROR)
    assert can_transition(PaymentStatus.SUCCESS, PaymentStatus.REFUNDED)


@pytest.mark.parametrize("terminal", [PaymentStatus.FAILED, PaymentStatus.ERROR, PaymentStatus.REFUNDED])
def test_terminal_states_never_move(terminal):
    assert terminal not in TRANSITIONS
    for target in PaymentStatus:
        assert not can_transition(terminal, target)


def test_nothing_moves_back_to_pending():
    assert predecessors(PaymentStatus.PENDING) == frozenset()


def test_refund_requires_success():
    assert predecessors(PaymentStatus.REFUNDED) == frozenset({PaymentStatus.SUCCESS})


def test_ensure_can_transition_raises_for_terminal_row():
    tx = Transaction.open(order_id="order_abc", amount=10)
    tx.payment_status = PaymentStatus.FAILED
    with pytest.raises(InvalidTransitionException) as exc:
        tx.ensure_can_transition(PaymentStatus.SUCCESS)
    assert exc.value.details["current_status"] == "failed"


def test_is_replay_of_only_for_same_payment():
    tx = Transaction.open(order_id="order_abc", amount=10)
    tx.payment_status = PaymentStatus.SUCCESS
    tx.payment_id = "pay_1"
    assert tx.is_replay_of("pay_1")
    assert not tx.is_replay_of("pay_2")
