"""Recycle bin: soft delete, restore and purge of loans and entries.

A loan's delete and restore cascade to its entries under one shared
timestamp, inside one transaction. None of these operations touch the
balance columns. Delete snapshots the loan's balances; restore refuses if
anything changed them while the loan sat in the bin.

Restoring a loan brings back every binned entry of that loan, including ones
that were binned on their own before the loan was.
"""
from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import select, update, delete
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from loanbook.core.errors import (
    AlreadyDeleted,
    BalanceIntegrityError,
    ConflictError,
    NotFound,
    NotInBin,
    ValidationError,
)
from loanbook.models.entry import Entry
from loanbook.models.loan import Loan
from loanbook.services.audit import log_event
from loanbook.services.calculator import d2, to_dec
from loanbook.services.entries import get_entry, require_id
from loanbook.services.paging import Page, paginate
from loanbook.utils.timezone import now_utc

log = logging.getLogger(__name__)

BIN_SCOPES = ("loans", "entries", "all")


def _counts(loans: int = 0, entries: int = 0) -> dict:
    return {"loans": loans, "entries": entries}


def _locked_loan(s: Session, loan_id: int, *, binned: bool) -> Loan:
    """Lock the loan row and check it is (``binned``) or is not in the bin."""
    loan_id = require_id(loan_id, "loan")
    ln = s.execute(
        select(Loan)
        .where(Loan.id == loan_id)
        .with_for_update(of=Loan)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    try:
        if ln is None:
            raise NotFound("loan_not_found")
        if binned and not ln.in_bin:
            raise NotInBin("loan_not_in_bin")
        if not binned and ln.in_bin:
            raise AlreadyDeleted("loan_already_deleted")
    except NotFound:
        # release the row lock
        s.rollback()
        raise
    return ln


def _commit(s: Session, what: str) -> None:
    try:
        s.commit()
    except StaleDataError:
        s.rollback()
        log.warning("%s lost a race with another write", what)
        raise ConflictError()
    except Exception:
        s.rollback()
        raise


def _balances_moved(ln: Loan) -> bool:
    if ln.binned_balance_amount is None or ln.binned_balance_interest is None:
        return False
    return (
        d2(to_dec(ln.balance_amount)) != d2(to_dec(ln.binned_balance_amount))
        or d2(to_dec(ln.balance_interest)) != d2(to_dec(ln.binned_balance_interest))
    )


def delete_loan(s: Session, loan_id: int, username: str | None = None) -> dict:
    ln = _locked_loan(s, loan_id, binned=False)

    stamp = now_utc()
    ln.deleted_at = stamp
    ln.binned_balance_amount = ln.balance_amount
    ln.binned_balance_interest = ln.balance_interest
    n = s.execute(
        update(Entry)
        .where(Entry.loan_id == ln.id, Entry.deleted_at.is_(None))
        .values(deleted_at=stamp)
    ).rowcount
    log_event(s, username=username, action="loan.delete", entity_type="loan", entity_id=ln.id,
              details={"entries": n})
    _commit(s, f"delete of loan {ln.id}")

    log.info("loan %s moved to recycle bin with %d entries", ln.id, n)
    return _counts(1, n)


def restore_loan(s: Session, loan_id: int, username: str | None = None) -> dict:
    ln = _locked_loan(s, loan_id, binned=True)

    if _balances_moved(ln):
        lid, stored = ln.id, (ln.balance_amount, ln.balance_interest)
        binned_at = (ln.binned_balance_amount, ln.binned_balance_interest)
        s.rollback()
        log.error("refusing to restore loan %s: balances %s changed in the bin from %s", lid, stored, binned_at)
        raise BalanceIntegrityError("stale_balances", f"loan {lid} balances changed while it was in the bin")

    ln.deleted_at = None
    ln.binned_balance_amount = None
    ln.binned_balance_interest = None
    n = s.execute(
        update(Entry)
        .where(Entry.loan_id == ln.id, Entry.deleted_at.is_not(None))
        .values(deleted_at=None)
    ).rowcount

    log_event(s, username=username, action="loan.restore", entity_type="loan", entity_id=ln.id,
              details={"entries": n})
    _commit(s, f"restore of loan {ln.id}")

    log.info("loan %s restored with %d entries", ln.id, n)
    return _counts(1, n)


def permanently_delete_loan(s: Session, loan_id: int, username: str | None = None) -> dict:
    ln = _locked_loan(s, loan_id, binned=True)

    lid = ln.id
    n = s.execute(delete(Entry).where(Entry.loan_id == lid)).rowcount
    s.delete(ln)
    log_event(s, username=username, action="loan.purge", entity_type="loan", entity_id=lid,
              details={"entries": n})
    _commit(s, f"purge of loan {lid}")

    log.info("loan %s purged with %d entries", lid, n)
    return _counts(1, n)


def _binned_entry_of_live_loan(s: Session, entry_id: int) -> Entry:
    e = get_entry(s, entry_id)
    if not e.in_bin:
        raise NotInBin("entry_not_in_bin")
    ln = s.get(Loan, e.loan_id)
    if ln is None or ln.in_bin:
        # the loan's own restore or purge decides this entry's fate
        raise NotFound("loan_in_bin", "the entry's loan is in the recycle bin")
    return e


def restore_entry(s: Session, entry_id: int, username: str | None = None) -> dict:
    e = _binned_entry_of_live_loan(s, entry_id)
    e.deleted_at = None
    log_event(s, username=username, action="entry.restore", entity_type="entry", entity_id=e.id,
              details={"loan_id": e.loan_id})
    _commit(s, f"restore of entry {e.id}")
    log.info("entry %s restored", e.id)
    return _counts(0, 1)


def permanently_delete_entry(s: Session, entry_id: int, username: str | None = None) -> dict:
    e = _binned_entry_of_live_loan(s, entry_id)
    eid, lid = e.id, e.loan_id
    s.delete(e)
    log_event(s, username=username, action="entry.purge", entity_type="entry", entity_id=eid,
              details={"loan_id": lid})
    _commit(s, f"purge of entry {eid}")
    log.info("entry %s purged", eid)
    return _counts(0, 1)


def _binned_loan_ids():
    return select(Loan.id).where(Loan.deleted_at.is_not(None))


def _live_loan_ids():
    return select(Loan.id).where(Loan.deleted_at.is_(None))


def empty_bin(s: Session, scope: str, username: str | None = None) -> dict:
    """Purge the bin. ``loans`` takes binned loans with all their entries;
    ``entries`` takes binned entries of live loans only; ``all`` does both."""
    if scope not in BIN_SCOPES:
        raise ValidationError("bin_scope_invalid", f"scope must be one of {', '.join(BIN_SCOPES)}")

    loans = entries = 0
    if scope in ("loans", "all"):
        entries += s.execute(
            delete(Entry).where(Entry.loan_id.in_(_binned_loan_ids())),
            execution_options={"synchronize_session": False},
        ).rowcount
        loans += s.execute(
            delete(Loan).where(Loan.deleted_at.is_not(None)),
            execution_options={"synchronize_session": False},
        ).rowcount
    if scope in ("entries", "all"):
        entries += s.execute(
            delete(Entry).where(Entry.deleted_at.is_not(None), Entry.loan_id.in_(_live_loan_ids())),
            execution_options={"synchronize_session": False},
        ).rowcount

    log_event(s, username=username, action="bin.empty", entity_type="bin",
              details={"scope": scope, "loans": loans, "entries": entries})
    _commit(s, "empty bin")
    s.expire_all()

    log.info("recycle bin emptied (%s): %d loans, %d entries", scope, loans, entries)
    return _counts(loans, entries)


def deleted_loans(s: Session, page: int = 1, limit: int = 10) -> Page:
    q = select(Loan).where(Loan.deleted_at.is_not(None)).order_by(Loan.deleted_at.desc(), Loan.id.desc())
    return paginate(s, q, page, limit)


def deleted_entries(s: Session, page: int = 1, limit: int = 10) -> Page:
    q = select(Entry).where(Entry.deleted_at.is_not(None)).order_by(Entry.deleted_at.desc(), Entry.id.desc())
    return paginate(s, q, page, limit)


def binned_loan_ids(s: Session, loan_ids: Iterable[int]) -> set[int]:
    ids = set(loan_ids)
    if not ids:
        return set()
    return set(
        s.execute(select(Loan.id).where(Loan.id.in_(ids), Loan.deleted_at.is_not(None))).scalars().all()
    )
