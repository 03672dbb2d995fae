from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Integer, Date, DateTime, func, ForeignKey, Numeric, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from loanbook.db.base import Base
from loanbook.models.party import Party

class Loan(Base):
    __tablename__ = "loans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    party_id: Mapped[int] = mapped_column(ForeignKey("parties.id", ondelete="RESTRICT"), index=True)

    loan_date: Mapped[date] = mapped_column(Date, index=True)
    loan_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    interest: Mapped[Decimal] = mapped_column(Numeric(8, 4))

    # running totals, kept equal to a replay of the live entries
    balance_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    balance_interest: Mapped[Decimal] = mapped_column(Numeric(14, 2), server_default="0")
    total_interest_received: Mapped[Decimal] = mapped_column(Numeric(14, 2), server_default="0")

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    # balances as they stood when the loan was binned; restore refuses if they moved
    binned_balance_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    binned_balance_interest: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now())

    party: Mapped[Party] = relationship(lazy="joined")

    __table_args__ = (
        CheckConstraint("balance_amount >= 0", name="ck_loans_balance_amount_nonneg"),
        CheckConstraint("balance_interest >= 0", name="ck_loans_balance_interest_nonneg"),
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def in_bin(self) -> bool:
        return self.deleted_at is not None

    @property
    def party_name(self) -> str | None:
        return self.party.party_name if self.party is not None else None
