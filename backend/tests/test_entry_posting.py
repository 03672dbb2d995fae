from datetime import date, timedelta
from decimal import Decimal
from random import Random

import pytest
from sqlalchemy import func, select

from loanbook.core.errors import NotFound, ValidationError
from loanbook.models.audit_log import AuditLog
from loanbook.models.entry import Entry
from loanbook.services.entries import get_entry, list_entries, live_entries, post_entry
from loanbook.services.loans import assert_consistent, verify_loan
from loanbook.services.recycle_bin import delete_loan, restore_loan

from conftest import mk_loan

D = Decimal


def test_first_entry_charges_interest_without_touching_principal(session):
    loan = mk_loan(session, "1000", "10")

    e = post_entry(session, loan.id, date(2026, 1, 31), received_amount=0, received_interest=0)
    session.refresh(loan)

    assert e.interest_amount == D("100.00")
    assert e.balance_amount == D("1000.00")
    assert loan.balance_interest == D("100.00")
    assert loan.balance_amount == D("1000.00")


def test_second_entry_applies_both_payments(session):
    loan = mk_loan(session, "1000", "10")
    post_entry(session, loan.id, date(2026, 1, 31))

    e = post_entry(session, loan.id, date(2026, 3, 2), date(2026, 3, 2), D("200"), D("100"))
    session.refresh(loan)

    assert e.interest_amount == D("100.00")
    # snapshot is the balance interest was charged on, not the post-payment one
    assert e.balance_amount == D("1000.00")
    assert loan.balance_amount == D("800.00")
    assert loan.balance_interest == D("100.00")
    assert loan.total_interest_received == D("100.00")


def test_pending_interest_is_carried_not_recharged(session):
    loan = mk_loan(session, "1000", "5")
    post_entry(session, loan.id, date(2026, 1, 31))
    post_entry(session, loan.id, date(2026, 3, 2), received_interest=D("20"))
    session.refresh(loan)

    # 50 pending, +50 accrued, -20 paid
    assert loan.balance_interest == D("80.00")


def test_overpayment_caps_principal_at_zero(session):
    loan = mk_loan(session, "100", "0")

    post_entry(session, loan.id, date(2026, 1, 31), received_amount=D("150"))
    session.refresh(loan)

    assert loan.balance_amount == D("0.00")
    assert loan.balance_interest == D("0.00")


def test_missing_payments_are_stored_as_given(session):
    loan = mk_loan(session)
    e = post_entry(session, loan.id, date(2026, 1, 31), received_date=None)

    assert e.received_amount is None
    assert e.received_interest is None
    assert e.received_date is None


def test_cumulative_interest_received_only_grows(session):
    loan = mk_loan(session, "5000", "2")
    seen = []
    for i, paid in enumerate(["0", "40", "0", "125.50", "10"]):
        post_entry(session, loan.id, date(2026, 1, 1) + timedelta(days=30 * (i + 1)), received_interest=D(paid))
        session.refresh(loan)
        seen.append(loan.total_interest_received)
    assert seen == sorted(seen)
    assert seen[-1] == D("175.50")


@pytest.mark.parametrize(
    "kwargs, code",
    [
        ({"entry_date": None}, "entry_date_required"),
        ({"received_amount": D("-1")}, "received_amount_negative"),
        ({"received_interest": -0.01}, "received_interest_negative"),
        ({"received_amount": "abc"}, "received_amount_invalid"),
        ({"received_amount": D("NaN")}, "received_amount_invalid"),
    ],
)
def test_bad_input_is_rejected_before_any_write(session, kwargs, code):
    loan = mk_loan(session)
    args = {"entry_date": date(2026, 1, 31), **kwargs}

    with pytest.raises(ValidationError) as ei:
        post_entry(session, loan.id, **args)

    assert ei.value.code == code
    session.refresh(loan)
    assert loan.balance_amount == D("1000.00")
    assert session.execute(select(func.count(Entry.id)).where(Entry.loan_id == loan.id)).scalar_one() == 0


@pytest.mark.parametrize("bad_id", [0, -3, "x", None])
def test_non_positive_loan_id_is_a_validation_error(session, bad_id):
    with pytest.raises(ValidationError):
        post_entry(session, bad_id, date(2026, 1, 31))


def test_posting_to_missing_loan_is_not_found(session):
    with pytest.raises(NotFound) as ei:
        post_entry(session, 999999, date(2026, 1, 31))
    assert ei.value.code == "loan_not_found"


def test_posting_to_binned_loan_is_not_found(session):
    loan = mk_loan(session)
    delete_loan(session, loan.id)

    with pytest.raises(NotFound):
        post_entry(session, loan.id, date(2026, 1, 31), received_amount=D("10"))

    session.refresh(loan)
    assert loan.balance_amount == D("1000.00")


def test_backdated_entry_is_rejected(session):
    loan = mk_loan(session)
    post_entry(session, loan.id, date(2026, 2, 1))

    with pytest.raises(ValidationError) as ei:
        post_entry(session, loan.id, date(2026, 1, 15))
    assert ei.value.code == "entry_date_before_last_entry"


def test_same_day_entries_are_allowed(session):
    loan = mk_loan(session)
    post_entry(session, loan.id, date(2026, 2, 1))
    post_entry(session, loan.id, date(2026, 2, 1), received_amount=D("1"))
    assert len(live_entries(session, loan.id)) == 2


def test_posted_entry_financial_fields_are_frozen(session):
    loan = mk_loan(session)
    e = post_entry(session, loan.id, date(2026, 1, 31))

    for field, value in [
        ("interest_amount", D("1")),
        ("balance_amount", D("1")),
        ("received_amount", D("1")),
        ("received_interest", D("1")),
        ("entry_date", date(2030, 1, 1)),
    ]:
        with pytest.raises(ValidationError) as ei:
            setattr(e, field, value)
        assert ei.value.code == "entry_immutable"


def test_bin_round_trip_leaves_entry_figures_alone(session):
    loan = mk_loan(session, "1000", "10")
    post_entry(session, loan.id, date(2026, 1, 31))
    e = post_entry(session, loan.id, date(2026, 3, 2), None, D("300"), D("150"))
    before = (e.balance_amount, e.interest_amount, e.received_amount, e.received_interest)

    delete_loan(session, loan.id)
    restore_loan(session, loan.id)

    e = get_entry(session, e.id)
    assert (e.balance_amount, e.interest_amount, e.received_amount, e.received_interest) == before


@pytest.mark.parametrize("seed", [3, 11, 2026])
def test_stored_balances_equal_replay_of_live_entries(session, seed):
    rng = Random(seed)
    loan = mk_loan(session, str(rng.randint(500, 20000)), rng.choice(["0", "1.5", "2", "7.25"]))
    day = date(2026, 1, 1)

    for _ in range(25):
        day += timedelta(days=rng.randint(0, 40))
        amt = D(rng.randint(0, 900)) if rng.random() < 0.6 else None
        intr = D(rng.randint(0, 400)) + D(rng.randint(0, 99)) / 100 if rng.random() < 0.6 else None
        post_entry(session, loan.id, day, day if (amt or intr) else None, amt, intr)

        session.refresh(loan)
        assert loan.balance_amount >= 0
        assert loan.balance_interest >= 0

    rec = verify_loan(session, loan.id)
    assert rec["consistent"], rec
    assert rec["entries"] == 25
    assert_consistent(rec)


def test_each_posting_writes_one_audit_row(session):
    loan = mk_loan(session)
    e = post_entry(session, loan.id, date(2026, 1, 31), username="alice")

    rows = session.execute(
        select(AuditLog).where(AuditLog.action == "entry.create", AuditLog.entity_id == e.id)
    ).scalars().all()
    assert len(rows) == 1
    assert rows[0].username == "alice"
    assert rows[0].details["loan_id"] == loan.id


def test_listing_hides_binned_entries_and_pages(session):
    loan = mk_loan(session)
    for i in range(5):
        post_entry(session, loan.id, date(2026, 1, 1) + timedelta(days=30 * (i + 1)))
    other = mk_loan(session)
    post_entry(session, other.id, date(2026, 1, 31))
    delete_loan(session, other.id)

    pg = list_entries(session, loan_id=loan.id, page=2, limit=2, sort_by="entryDate", sort_order="asc")
    assert pg.total == 5
    assert pg.total_pages == 3
    assert [e.entry_date for e in pg.items] == [date(2026, 4, 1), date(2026, 5, 1)]

    assert all(e.loan_id != other.id for e in list_entries(session, limit=100).items)


def test_listing_rejects_unknown_sort_field(session):
    with pytest.raises(ValidationError):
        list_entries(session, sort_by="balance_amount; drop table entries")


def test_rejected_posting_releases_the_loan(file_sessionmaker):
    with file_sessionmaker() as s:
        loan = mk_loan(s)
        lid = loan.id
        post_entry(s, lid, date(2026, 2, 1))

        with pytest.raises(ValidationError):
            post_entry(s, lid, date(2026, 1, 15))
        # rolled back, so the row lock taken for the posting is gone
        assert not s.in_transaction()

        delete_loan(s, lid)
        with pytest.raises(NotFound):
            post_entry(s, lid, date(2026, 3, 1))
        assert not s.in_transaction()
