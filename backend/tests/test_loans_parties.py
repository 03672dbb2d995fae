from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from loanbook.core.errors import BalanceIntegrityError, NotFound, ValidationError
from loanbook.models.audit_log import AuditLog
from loanbook.services.day_close import close_day, last_day_close
from loanbook.services.entries import post_entry
from loanbook.services.loans import assert_consistent, create_loan, list_loans, update_loan, verify_loan
from loanbook.services.parties import create_party, list_parties, update_party

from conftest import mk_loan, mk_party

D = Decimal


def test_create_loan_opens_at_principal(session):
    party = mk_party(session)
    ln = create_loan(session, party.id, date(2026, 1, 1), "2500.005", "1.5", username="bob")

    assert ln.loan_amount == D("2500.01")
    assert ln.balance_amount == D("2500.01")
    assert ln.balance_interest == D("0.00")
    assert ln.total_interest_received == D("0.00")
    assert ln.party_name == party.party_name

    row = session.execute(
        select(AuditLog).where(AuditLog.action == "loan.create", AuditLog.entity_id == ln.id)
    ).scalar_one()
    assert row.username == "bob"


@pytest.mark.parametrize(
    "overrides, code",
    [
        ({"loan_amount": "0"}, "loan_amount_invalid"),
        ({"loan_amount": "-5"}, "loan_amount_invalid"),
        ({"loan_amount": None}, "loan_amount_invalid"),
        ({"interest": "-1"}, "interest_invalid"),
        ({"interest": "ten"}, "interest_invalid"),
        ({"loan_date": None}, "loan_date_required"),
    ],
)
def test_create_loan_validation(session, overrides, code):
    party = mk_party(session)
    args = {"party_id": party.id, "loan_date": date(2026, 1, 1), "loan_amount": "100", "interest": "2", **overrides}
    with pytest.raises(ValidationError) as ei:
        create_loan(session, **args)
    assert ei.value.code == code


def test_create_loan_for_unknown_party(session):
    with pytest.raises(NotFound) as ei:
        create_loan(session, 424242, date(2026, 1, 1), "100", "2")
    assert ei.value.code == "party_not_found"


def test_update_loan_before_and_after_entries(session):
    ln = mk_loan(session, "1000", "10")

    ln = update_loan(session, ln.id, loan_amount="1200", interest="8")
    assert ln.balance_amount == D("1200.00")
    assert ln.interest == D("8")

    post_entry(session, ln.id, date(2026, 1, 31))
    with pytest.raises(ValidationError) as ei:
        update_loan(session, ln.id, interest="9")
    assert ei.value.code == "loan_has_entries"

    ln = update_loan(session, ln.id, loan_date=date(2025, 12, 30))
    assert ln.loan_date == date(2025, 12, 30)
    assert verify_loan(session, ln.id)["consistent"]

    with pytest.raises(ValidationError):
        update_loan(session, ln.id)


def test_list_loans_search_and_sort(session):
    a = mk_loan(session, "100")
    b = mk_loan(session, "900")

    pg = list_loans(session, search=a.party.party_name)
    assert [ln.id for ln in pg.items] == [a.id]

    ids = [ln.id for ln in list_loans(session, sort_by="loanAmount", sort_order="asc", limit=1000).items]
    assert ids.index(a.id) < ids.index(b.id)

    with pytest.raises(ValidationError):
        list_loans(session, sort_by="party_id")


def test_verify_report_and_assert(session):
    ln = mk_loan(session, "1000", "10")
    post_entry(session, ln.id, date(2026, 1, 31), received_amount=D("100"))

    rec = verify_loan(session, ln.id)
    assert rec["entries"] == 1
    assert rec["replayed_balance_amount"] == D("900.00")
    assert rec["replayed_balance_interest"] == D("100.00")
    assert_consistent(rec)

    with pytest.raises(BalanceIntegrityError):
        assert_consistent({**rec, "consistent": False})


def test_party_lifecycle(session):
    p = create_party(session, "  Ravi Traders ", "ACC-778", username="bob", mobile1=" 98765 ")
    assert p.party_name == "Ravi Traders"
    assert p.mobile1 == "98765"

    with pytest.raises(ValidationError) as ei:
        create_party(session, "Someone", "ACC-778")
    assert ei.value.code == "account_number_exists"
    with pytest.raises(ValidationError):
        create_party(session, "", "ACC-779")

    p = update_party(session, p.id, party_name="Ravi & Sons")
    assert p.party_name == "Ravi & Sons"

    create_loan(session, p.id, date(2026, 1, 1), "100", "1")
    with pytest.raises(ValidationError) as ei:
        update_party(session, p.id, account_number="ACC-900")
    assert ei.value.code == "party_has_loans"

    p = update_party(session, p.id, address="12 Market Road")
    assert p.address == "12 Market Road"

    assert p.id in {x.id for x in list_parties(session, search="ACC-778").items}


def test_day_close(session):
    assert close_day(session, "alice", on=date(2026, 5, 1))["next_day"] == date(2026, 5, 2)
    with pytest.raises(ValidationError) as ei:
        close_day(session, "alice", on=date(2026, 5, 1))
    assert ei.value.code == "day_already_closed"

    out = close_day(session, "bob")
    assert out["closed_on"] == date(2026, 5, 2)
    assert last_day_close(session).closed_by == "bob"
