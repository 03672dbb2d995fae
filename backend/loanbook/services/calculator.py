from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Protocol

from loanbook.core.config import settings

ZERO = Decimal("0")
HUNDRED = Decimal("100")
Q2 = Decimal(1).scaleb(-settings.money_places)


def d2(x: Decimal) -> Decimal:
    return x.quantize(Q2, rounding=ROUND_HALF_UP)


def to_dec(v) -> Decimal:
    if v is None:
        return ZERO
    if isinstance(v, Decimal):
        return v
    return Decimal(str(v))


@dataclass(frozen=True)
class BalanceResult:
    new_balance_amount: Decimal
    new_balance_interest: Decimal
    interest_accrued_this_period: Decimal
    # shown to operators as "total pending interest"; not stored anywhere
    total_interest_due: Decimal


def calculate(
    balance_amount,
    balance_interest,
    interest_rate_percent,
    received_amount=ZERO,
    received_interest=ZERO,
) -> BalanceResult:
    """Advance a loan's balances by one interest checkpoint.

    Simple interest is charged on the outstanding principal and added once to
    the interest already pending. Payments are then taken off each side.
    Overpayments are capped at zero, the excess is not carried forward.

    Inputs are assumed to be validated (non-negative); this never raises.
    """
    balance_amount = to_dec(balance_amount)
    balance_interest = to_dec(balance_interest)
    rate = to_dec(interest_rate_percent)
    received_amount = to_dec(received_amount)
    received_interest = to_dec(received_interest)

    accrued = d2(balance_amount * rate / HUNDRED)
    total_due = d2(balance_interest + accrued)

    return BalanceResult(
        new_balance_amount=d2(max(ZERO, balance_amount - received_amount)),
        new_balance_interest=d2(max(ZERO, total_due - received_interest)),
        interest_accrued_this_period=accrued,
        total_interest_due=total_due,
    )


class _Payment(Protocol):
    received_amount: Decimal | None
    received_interest: Decimal | None


def replay(principal, interest_rate_percent, entries: Iterable[_Payment]) -> tuple[Decimal, Decimal]:
    """Fold ``calculate`` over entries (already in posting order) from ``(principal, 0)``."""
    balance_amount = d2(to_dec(principal))
    balance_interest = ZERO
    for e in entries:
        r = calculate(
            balance_amount,
            balance_interest,
            interest_rate_percent,
            e.received_amount,
            e.received_interest,
        )
        balance_amount = r.new_balance_amount
        balance_interest = r.new_balance_interest
    return balance_amount, d2(balance_interest)
