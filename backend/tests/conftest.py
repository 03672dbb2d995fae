from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from loanbook.db.base import Base
from loanbook.models.audit_log import AuditLog  # noqa: F401
from loanbook.models.day_close import DayClose  # noqa: F401
from loanbook.models.entry import Entry  # noqa: F401
from loanbook.models.loan import Loan  # noqa: F401
from loanbook.models.party import Party
from loanbook.models.user import User  # noqa: F401
from loanbook.services.loans import create_loan


@pytest.fixture(scope="session")
def engine():
    eng = create_engine("sqlite+pysqlite:///:memory:", future=True)

    # let SQLAlchemy own BEGIN so SAVEPOINT works under pysqlite
    @event.listens_for(eng, "connect")
    def _no_implicit_begin(dbapi_connection, _record):
        dbapi_connection.isolation_level = None

    @event.listens_for(eng, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(eng)
    return eng


@pytest.fixture()
def session(engine):
    """Service commits and rollbacks land on savepoints; the test's outer transaction is always undone."""
    connection = engine.connect()
    trans = connection.begin()
    Session = sessionmaker(
        bind=connection,
        autoflush=False,
        autocommit=False,
        future=True,
        join_transaction_mode="create_savepoint",
    )
    s = Session()
    try:
        yield s
    finally:
        s.close()
        trans.rollback()
        connection.close()


@pytest.fixture()
def file_sessionmaker(tmp_path):
    """Independent sessions over one on-disk database, for interleaving tests."""
    eng = create_engine(f"sqlite+pysqlite:///{tmp_path / 'ledger.db'}", future=True)
    Base.metadata.create_all(eng)
    try:
        yield sessionmaker(bind=eng, autoflush=False, autocommit=False, future=True)
    finally:
        eng.dispose()


def mk_party(session) -> Party:
    p = Party(party_name=f"Party-{uuid4().hex[:8]}", account_number=f"AC-{uuid4().hex[:10]}")
    session.add(p)
    session.commit()
    return p


def mk_loan(session, amount="1000.00", rate="10", loan_date=date(2026, 1, 1)) -> Loan:
    party = mk_party(session)
    return create_loan(
        session,
        party_id=party.id,
        loan_date=loan_date,
        loan_amount=Decimal(amount),
        interest=Decimal(rate),
        username="tester",
    )
