from __future__ import annotations

from datetime import date, timedelta

from sqlalchemy.orm import Session

from loanbook.core.config import settings
from loanbook.models.loan import Loan
from loanbook.services.calculator import calculate
from loanbook.services.entries import last_entry_date, live_loan, require_id


def next_entry_date(s: Session, loan: Loan) -> date:
    base = last_entry_date(s, loan.id) or loan.loan_date
    return base + timedelta(days=settings.next_entry_offset_days)


def loan_preview(s: Session, loan_id: int) -> dict:
    """What posting an entry with no payment would charge right now. Read-only."""
    ln = live_loan(s, require_id(loan_id, "loan"))
    r = calculate(ln.balance_amount, ln.balance_interest, ln.interest)
    return {
        "id": ln.id,
        "loan_date": ln.loan_date,
        "balance_amount": ln.balance_amount,
        "balance_interest": ln.balance_interest,
        "interest": ln.interest,
        "calculated_interest_amount": r.interest_accrued_this_period,
        "total_pending_interest": r.total_interest_due,
        "next_entry_date": next_entry_date(s, ln),
    }
