from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Callable, TypeVar

from sqlalchemy import select, func
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from loanbook.core.errors import (
    AlreadyDeleted,
    BalanceIntegrityError,
    ConflictError,
    NotFound,
    ValidationError,
)
from loanbook.models.entry import Entry
from loanbook.models.loan import Loan
from loanbook.services.audit import log_event
from loanbook.services.calculator import BalanceResult, ZERO, calculate, d2, to_dec
from loanbook.services.paging import Page, order_clause, paginate
from loanbook.utils.timezone import now_utc

log = logging.getLogger(__name__)

T = TypeVar("T")

# postgres: serialization_failure, deadlock_detected
_RETRYABLE_SQLSTATES = {"40001", "40P01"}

ENTRY_SORT_COLUMNS = {
    "entryDate": Entry.entry_date,
    "entry_date": Entry.entry_date,
    "receivedDate": Entry.received_date,
    "received_date": Entry.received_date,
    "createdAt": Entry.created_at,
    "created_at": Entry.created_at,
    "id": Entry.id,
}


def require_id(v, what: str) -> int:
    try:
        n = int(v)
    except (TypeError, ValueError):
        raise ValidationError(f"{what}_id_invalid")
    if n <= 0:
        raise ValidationError(f"{what}_id_invalid")
    return n


def payment_amount(v, field: str) -> Decimal | None:
    """Validate an optional received amount; ``None`` stays ``None``."""
    if v is None:
        return None
    try:
        amt = to_dec(v)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field}_invalid", f"{field} must be a number")
    if not amt.is_finite():
        raise ValidationError(f"{field}_invalid", f"{field} must be finite")
    if amt < 0:
        raise ValidationError(f"{field}_negative", f"{field} cannot be negative")
    return d2(amt)


def live_loan(s: Session, loan_id: int, *, for_update: bool = False) -> Loan:
    q = select(Loan).where(Loan.id == loan_id)
    if for_update:
        # fresh balances under a row lock; the version counter covers backends without FOR UPDATE
        q = q.with_for_update(of=Loan).execution_options(populate_existing=True)
    ln = s.execute(q).scalar_one_or_none()
    if ln is None or ln.in_bin:
        raise NotFound("loan_not_found")
    return ln


def last_entry_date(s: Session, loan_id: int) -> date | None:
    return s.execute(
        select(func.max(Entry.entry_date)).where(Entry.loan_id == loan_id, Entry.deleted_at.is_(None))
    ).scalar_one()


def build_entry(
    loan: Loan,
    result: BalanceResult,
    entry_date: date,
    received_date: date | None,
    received_amount: Decimal | None,
    received_interest: Decimal | None,
) -> Entry:
    """The only constructor for ledger lines; financial fields freeze once the row is flushed."""
    return Entry(
        loan_id=loan.id,
        entry_date=entry_date,
        balance_amount=d2(to_dec(loan.balance_amount)),
        interest_amount=result.interest_accrued_this_period,
        received_date=received_date,
        received_amount=received_amount,
        received_interest=received_interest,
    )


def _check_balances(loan: Loan) -> None:
    if to_dec(loan.balance_amount) < 0 or to_dec(loan.balance_interest) < 0:
        raise BalanceIntegrityError(
            "negative_balance",
            f"loan {loan.id} would go negative: {loan.balance_amount} / {loan.balance_interest}",
        )


def _is_retryable(e: OperationalError) -> bool:
    return getattr(e.orig, "sqlstate", None) in _RETRYABLE_SQLSTATES


def post_entry(
    s: Session,
    loan_id: int,
    entry_date: date | None,
    received_date: date | None = None,
    received_amount=None,
    received_interest=None,
    username: str | None = None,
) -> Entry:
    """Post one ledger line against a live loan and roll its balances forward.

    The entry insert, the loan update and the audit row commit together. A
    concurrent posting on the same loan surfaces as ``ConflictError`` with
    nothing written; callers retry the whole call.

    ``entry_date`` may not fall before the loan's latest live entry
    (``ValidationError("entry_date_before_last_entry")``), so stored balances
    always equal a replay of the entries in date order. Same-day entries are
    accepted.
    """
    loan_id = require_id(loan_id, "loan")
    if entry_date is None:
        raise ValidationError("entry_date_required")
    amt = payment_amount(received_amount, "received_amount")
    intr = payment_amount(received_interest, "received_interest")

    try:
        # every failure from here on rolls back, which also drops the row lock
        loan = live_loan(s, loan_id, for_update=True)

        last = last_entry_date(s, loan_id)
        if last is not None and entry_date < last:
            raise ValidationError("entry_date_before_last_entry", f"latest entry is dated {last}")

        result = calculate(
            loan.balance_amount,
            loan.balance_interest,
            loan.interest,
            amt or ZERO,
            intr or ZERO,
        )

        entry = build_entry(loan, result, entry_date, received_date, amt, intr)
        s.add(entry)

        loan.balance_amount = result.new_balance_amount
        loan.balance_interest = result.new_balance_interest
        loan.total_interest_received = d2(to_dec(loan.total_interest_received) + (intr or ZERO))
        _check_balances(loan)

        s.flush()
        log_event(
            s,
            username=username,
            action="entry.create",
            entity_type="entry",
            entity_id=entry.id,
            details={
                "loan_id": loan_id,
                "entry_date": str(entry_date),
                "interest_amount": str(result.interest_accrued_this_period),
                "received_amount": str(amt) if amt is not None else None,
                "received_interest": str(intr) if intr is not None else None,
            },
        )
        s.commit()
    except StaleDataError:
        s.rollback()
        log.warning("concurrent posting on loan %s, nothing written", loan_id)
        raise ConflictError()
    except OperationalError as e:
        s.rollback()
        if _is_retryable(e):
            log.warning("serialization failure posting on loan %s", loan_id)
            raise ConflictError()
        raise
    except BalanceIntegrityError:
        s.rollback()
        log.exception("balance invariant broken posting on loan %s", loan_id)
        raise
    except Exception:
        s.rollback()
        raise

    log.info(
        "posted entry %s on loan %s: balance %s, pending interest %s",
        entry.id,
        loan_id,
        result.new_balance_amount,
        result.new_balance_interest,
    )
    return entry


def retry_on_conflict(fn: Callable[[], T], attempts: int = 3) -> T:
    for i in range(attempts):
        try:
            return fn()
        except ConflictError:
            if i == attempts - 1:
                raise
            log.info("retrying after conflict (attempt %d/%d)", i + 2, attempts)
    raise AssertionError("unreachable")


def get_entry(s: Session, entry_id: int) -> Entry:
    entry_id = require_id(entry_id, "entry")
    e = s.execute(select(Entry).where(Entry.id == entry_id)).scalar_one_or_none()
    if e is None:
        raise NotFound("entry_not_found")
    return e


def live_entries(s: Session, loan_id: int) -> list[Entry]:
    """Live entries of a loan in ledger order."""
    return list(
        s.execute(
            select(Entry)
            .where(Entry.loan_id == loan_id, Entry.deleted_at.is_(None))
            .order_by(Entry.entry_date.asc(), Entry.id.asc())
        )
        .scalars()
        .all()
    )


def list_entries(
    s: Session,
    loan_id: int | None = None,
    page: int = 1,
    limit: int = 10,
    sort_by: str = "entryDate",
    sort_order: str = "desc",
) -> Page:
    q = select(Entry).where(Entry.deleted_at.is_(None))
    if loan_id is not None:
        q = q.where(Entry.loan_id == require_id(loan_id, "loan"))
    q = q.order_by(order_clause(ENTRY_SORT_COLUMNS, sort_by, sort_order), Entry.id.desc())
    return paginate(s, q, page, limit)


def delete_entry(s: Session, entry_id: int, username: str | None = None) -> dict:
    """Move one entry to the recycle bin. Loan balances are left as they are."""
    e = get_entry(s, entry_id)
    if e.in_bin:
        raise AlreadyDeleted("entry_already_deleted")
    ln = s.get(Loan, e.loan_id)
    if ln is None or ln.in_bin:
        raise NotFound("loan_in_bin", "the entry's loan is in the recycle bin")

    try:
        e.deleted_at = now_utc()
        log_event(s, username=username, action="entry.delete", entity_type="entry", entity_id=e.id,
                  details={"loan_id": e.loan_id})
        s.commit()
    except Exception:
        s.rollback()
        raise
    log.info("entry %s moved to recycle bin", e.id)
    return {"loans": 0, "entries": 1}
