from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Sequence

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from loanbook.core.errors import BalanceIntegrityError, NotFound, ValidationError
from loanbook.models.entry import Entry
from loanbook.models.loan import Loan
from loanbook.models.party import Party
from loanbook.services.audit import log_event
from loanbook.services.calculator import ZERO, d2, replay, to_dec
from loanbook.services.entries import live_entries, live_loan, require_id
from loanbook.services.paging import Page, order_clause, paginate

log = logging.getLogger(__name__)

LOAN_SORT_COLUMNS = {
    "loanDate": Loan.loan_date,
    "loan_date": Loan.loan_date,
    "loanAmount": Loan.loan_amount,
    "loan_amount": Loan.loan_amount,
    "balanceAmount": Loan.balance_amount,
    "balance_amount": Loan.balance_amount,
    "createdAt": Loan.created_at,
    "created_at": Loan.created_at,
    "id": Loan.id,
}


def _amount(v, field: str, *, positive: bool = False) -> Decimal:
    try:
        x = to_dec(v)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field}_invalid")
    if v is None or not x.is_finite():
        raise ValidationError(f"{field}_invalid")
    if x < 0 or (positive and x == 0):
        raise ValidationError(f"{field}_invalid", f"{field} must be {'positive' if positive else 'non-negative'}")
    return x


def create_loan(
    s: Session,
    party_id: int,
    loan_date: date | None,
    loan_amount,
    interest,
    username: str | None = None,
) -> Loan:
    party_id = require_id(party_id, "party")
    if loan_date is None:
        raise ValidationError("loan_date_required")
    principal = d2(_amount(loan_amount, "loan_amount", positive=True))
    rate = _amount(interest, "interest")

    if s.get(Party, party_id) is None:
        raise NotFound("party_not_found")

    ln = Loan(
        party_id=party_id,
        loan_date=loan_date,
        loan_amount=principal,
        interest=rate,
        balance_amount=principal,
        balance_interest=ZERO,
        total_interest_received=ZERO,
    )
    try:
        s.add(ln)
        s.flush()
        log_event(s, username=username, action="loan.create", entity_type="loan", entity_id=ln.id,
                  details={"party_id": party_id, "loan_amount": str(principal), "interest": str(rate)})
        s.commit()
    except Exception:
        s.rollback()
        raise
    s.refresh(ln)
    return ln


def update_loan(
    s: Session,
    loan_id: int,
    loan_date: date | None = None,
    loan_amount=None,
    interest=None,
    username: str | None = None,
) -> Loan:
    """Administrative edit. Principal and rate are fixed once the ledger has lines."""
    if loan_date is None and loan_amount is None and interest is None:
        raise ValidationError("nothing_to_update")
    ln = live_loan(s, require_id(loan_id, "loan"))

    principal = d2(_amount(loan_amount, "loan_amount", positive=True)) if loan_amount is not None else None
    rate = _amount(interest, "interest") if interest is not None else None
    if principal is not None or rate is not None:
        has_entries = s.execute(select(func.count(Entry.id)).where(Entry.loan_id == ln.id)).scalar_one()
        if has_entries:
            raise ValidationError("loan_has_entries", "principal and rate cannot change after entries are posted")

    changes: dict = {}
    if loan_date is not None:
        ln.loan_date = loan_date
        changes["loan_date"] = str(loan_date)
    if principal is not None:
        ln.loan_amount = principal
        ln.balance_amount = principal
        changes["loan_amount"] = str(principal)
    if rate is not None:
        ln.interest = rate
        changes["interest"] = str(rate)

    try:
        log_event(s, username=username, action="loan.update", entity_type="loan", entity_id=ln.id, details=changes)
        s.commit()
    except Exception:
        s.rollback()
        raise
    s.refresh(ln)
    return ln


def get_loan(s: Session, loan_id: int) -> Loan:
    return live_loan(s, require_id(loan_id, "loan"))


def list_loans(
    s: Session,
    party_id: int | None = None,
    page: int = 1,
    limit: int = 10,
    sort_by: str = "loanDate",
    sort_order: str = "desc",
    search: str | None = None,
) -> Page:
    q = select(Loan).where(Loan.deleted_at.is_(None))
    if party_id is not None:
        q = q.where(Loan.party_id == require_id(party_id, "party"))
    if search:
        like = f"%{search.strip()}%"
        q = q.join(Party, Party.id == Loan.party_id).where(
            Party.party_name.ilike(like) | Party.account_number.ilike(like)
        )
    q = q.order_by(order_clause(LOAN_SORT_COLUMNS, sort_by, sort_order), Loan.id.desc())
    return paginate(s, q, page, limit)


def reconcile(ln: Loan, entries: Sequence[Entry]) -> dict:
    """Compare a loan's stored running balances with a replay of ``entries``."""
    exp_amount, exp_interest = replay(ln.loan_amount, ln.interest, entries)
    stored_amount = d2(to_dec(ln.balance_amount))
    stored_interest = d2(to_dec(ln.balance_interest))
    return {
        "loan_id": ln.id,
        "entries": len(entries),
        "stored_balance_amount": stored_amount,
        "stored_balance_interest": stored_interest,
        "replayed_balance_amount": exp_amount,
        "replayed_balance_interest": exp_interest,
        "consistent": exp_amount == stored_amount and exp_interest == stored_interest,
    }


def verify_loan(s: Session, loan_id: int) -> dict:
    ln = get_loan(s, loan_id)
    rec = reconcile(ln, live_entries(s, ln.id))
    if not rec["consistent"]:
        log.warning("loan %s balances differ from replay: %s", ln.id, rec)
    return rec


def assert_consistent(rec: dict) -> None:
    if not rec["consistent"]:
        raise BalanceIntegrityError(
            "balance_mismatch",
            f"loan {rec['loan_id']} stores {rec['stored_balance_amount']}/{rec['stored_balance_interest']}, "
            f"entries replay to {rec['replayed_balance_amount']}/{rec['replayed_balance_interest']}",
        )
