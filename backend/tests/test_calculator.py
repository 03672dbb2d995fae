from decimal import Decimal
from random import Random
from types import SimpleNamespace

import pytest

from loanbook.services.calculator import calculate, replay

D = Decimal


def test_interest_charged_on_balance_and_added_once_to_pending():
    r = calculate(D("1000"), D("50"), D("5"), received_interest=D("30"))

    assert r.interest_accrued_this_period == D("50.00")
    assert r.total_interest_due == D("100.00")
    assert r.new_balance_interest == D("70.00")
    assert r.new_balance_amount == D("1000.00")


def test_first_checkpoint_without_payment():
    r = calculate(D("1000"), D("0"), D("10"))

    assert r.interest_accrued_this_period == D("100.00")
    assert r.new_balance_interest == D("100.00")
    assert r.new_balance_amount == D("1000.00")


def test_second_checkpoint_with_principal_and_interest_payment():
    r = calculate(D("1000"), D("100"), D("10"), D("200"), D("100"))

    assert r.interest_accrued_this_period == D("100.00")
    assert r.total_interest_due == D("200.00")
    assert r.new_balance_interest == D("100.00")
    assert r.new_balance_amount == D("800.00")


def test_principal_overpayment_floors_at_zero():
    r = calculate(D("100"), D("0"), D("10"), received_amount=D("150"))
    assert r.new_balance_amount == D("0.00")


def test_interest_overpayment_floors_at_zero():
    r = calculate(D("100"), D("5"), D("10"), received_interest=D("500"))
    assert r.total_interest_due == D("15.00")
    assert r.new_balance_interest == D("0.00")


def test_zero_rate_accrues_nothing():
    r = calculate(D("2500.50"), D("12.34"), D("0"))
    assert r.interest_accrued_this_period == D("0.00")
    assert r.new_balance_interest == D("12.34")


def test_fractional_interest_rounds_half_up_to_cents():
    r = calculate(D("333.33"), D("0"), D("1.5"))
    # 4.99995 -> 5.00
    assert r.interest_accrued_this_period == D("5.00")


def test_accepts_floats_and_none_without_drift():
    r = calculate(0.1 + 0.2, None, 10.0, None, None)
    assert r.new_balance_amount == D("0.30")
    assert r.interest_accrued_this_period == D("0.03")


def test_repeated_percentages_stay_exact():
    bal, pending = D("1000.00"), D("0")
    for _ in range(120):
        r = calculate(bal, pending, D("1.1"))
        bal, pending = r.new_balance_amount, r.new_balance_interest
    assert pending == D("11.00") * 120
    assert pending.as_tuple().exponent == -2


@pytest.mark.parametrize("seed", [7, 42, 1337])
def test_random_payment_sequences_never_go_negative(seed):
    rng = Random(seed)
    bal, pending = D("5000.00"), D("0")
    for _ in range(60):
        amt = D(rng.randint(0, 1500))
        intr = D(rng.randint(0, 900))
        r = calculate(bal, pending, D(rng.choice(["0", "1.25", "3", "12.5"])), amt, intr)
        assert r.new_balance_amount >= 0
        assert r.new_balance_interest >= 0
        assert r.new_balance_amount <= bal
        bal, pending = r.new_balance_amount, r.new_balance_interest


def test_replay_folds_from_principal():
    entries = [
        SimpleNamespace(received_amount=None, received_interest=None),
        SimpleNamespace(received_amount=D("200"), received_interest=D("100")),
    ]
    assert replay(D("1000"), D("10"), entries) == (D("800.00"), D("100.00"))


def test_replay_of_nothing_is_the_opening_position():
    assert replay(D("750"), D("4"), []) == (D("750.00"), D("0"))
